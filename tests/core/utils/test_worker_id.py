from unittest.mock import patch

from core.utils.worker_id import generate_worker_id


class TestGenerateWorkerId:
    def test_prefix_is_prepended(self):
        with patch("core.utils.worker_id.generate_slug", return_value="brave-golden-tiger"):
            assert generate_worker_id("indexer") == "indexer-brave-golden-tiger"

    def test_no_prefix(self):
        with patch("core.utils.worker_id.generate_slug", return_value="brave-golden-tiger"):
            assert generate_worker_id() == "brave-golden-tiger"

    def test_real_slug_has_three_words(self):
        worker_id = generate_worker_id("indexer")
        assert worker_id.startswith("indexer-")
        assert len(worker_id.split("-")) >= 4
