import json
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path

from core.utils.json_serializers import json_serializer


class Color(Enum):
    RED = "red"


class TestJsonSerializer:
    def test_datetime(self):
        dt = datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
        assert json_serializer(dt) == "2024-05-01T12:30:00+00:00"

    def test_date(self):
        assert json_serializer(date(2024, 5, 1)) == "2024-05-01"

    def test_decimal_stays_numeric(self):
        assert json_serializer(Decimal("1.5")) == 1.5

    def test_path(self):
        assert json_serializer(Path("/tmp/x")) == "/tmp/x"

    def test_enum(self):
        assert json_serializer(Color.RED) == "red"

    def test_bytes_invalid_utf8_replaced(self):
        assert json_serializer(b"ok\xff") == "ok�"

    def test_fallback_str(self):
        class Thing:
            def __str__(self):
                return "thing"

        assert json_serializer(Thing()) == "thing"

    def test_used_as_default_hook(self):
        out = json.dumps({"v": Decimal("2")}, default=json_serializer)
        assert json.loads(out) == {"v": 2.0}
