from core import ErrorCategory
from core.errors.exceptions import ErrorCategory as ReexportedCategory


class TestErrorCategory:
    def test_values(self):
        assert ErrorCategory.TRANSIENT.value == "transient"
        assert ErrorCategory.PERMANENT.value == "permanent"
        assert ErrorCategory.UNKNOWN.value == "unknown"

    def test_single_enum_class(self):
        assert ErrorCategory is ReexportedCategory
        assert ErrorCategory.TRANSIENT == ReexportedCategory.TRANSIENT
