"""Tests for the ingestion exception hierarchy and classification helpers."""

import pytest

from core.errors.exceptions import (
    ErrorCategory,
    IndexProvisioningError,
    IndexWriteItemError,
    MalformedEventError,
    PermanentError,
    PipelineError,
    TransientError,
    TransportError,
    classify_exception,
    classify_http_status,
)


class TestPipelineError:
    def test_defaults(self):
        err = PipelineError("boom")
        assert err.message == "boom"
        assert err.cause is None
        assert err.context == {}
        assert err.category == ErrorCategory.UNKNOWN
        assert err.is_retryable is True

    def test_str_includes_cause(self):
        err = PipelineError("outer", cause=ValueError("inner"))
        assert str(err) == "outer | Caused by: inner"

    def test_context_is_kept(self):
        err = PipelineError("x", context={"index": "wiki"})
        assert err.context == {"index": "wiki"}


class TestIngestionTaxonomy:
    def test_malformed_event_is_permanent(self):
        err = MalformedEventError("bad payload")
        assert isinstance(err, PermanentError)
        assert err.category == ErrorCategory.PERMANENT
        assert err.is_retryable is False

    def test_transport_error_is_transient(self):
        err = TransportError("connection refused")
        assert isinstance(err, TransientError)
        assert err.category == ErrorCategory.TRANSIENT
        assert err.is_retryable is True

    def test_index_provisioning_error_is_permanent(self):
        err = IndexProvisioningError("cannot create")
        assert err.category == ErrorCategory.PERMANENT
        assert not isinstance(err, TransientError)

    def test_item_error_carries_item_details(self):
        err = IndexWriteItemError(
            "rejected", doc_id="abc", status=400, error_type="mapper_parsing_exception"
        )
        assert err.doc_id == "abc"
        assert err.status == 400
        assert err.error_type == "mapper_parsing_exception"
        assert err.category == ErrorCategory.PERMANENT

    def test_item_error_category_follows_status(self):
        err = IndexWriteItemError("throttled", doc_id="abc", status=429)
        assert err.category == ErrorCategory.TRANSIENT
        # Class default is untouched
        assert IndexWriteItemError.category == ErrorCategory.PERMANENT

    def test_item_error_without_status_keeps_default(self):
        err = IndexWriteItemError("rejected", doc_id="abc")
        assert err.category == ErrorCategory.PERMANENT


class TestClassifyHttpStatus:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (200, ErrorCategory.UNKNOWN),
            (400, ErrorCategory.PERMANENT),
            (404, ErrorCategory.PERMANENT),
            (409, ErrorCategory.PERMANENT),
            (408, ErrorCategory.TRANSIENT),
            (429, ErrorCategory.TRANSIENT),
            (500, ErrorCategory.TRANSIENT),
            (503, ErrorCategory.TRANSIENT),
        ],
    )
    def test_mapping(self, status, expected):
        assert classify_http_status(status) == expected


class TestClassifyException:
    def test_pipeline_error_uses_category(self):
        assert classify_exception(MalformedEventError("x")) == ErrorCategory.PERMANENT
        assert classify_exception(TransportError("x")) == ErrorCategory.TRANSIENT

    def test_connection_errors_are_transient(self):
        assert classify_exception(ConnectionRefusedError("Connection refused")) == ErrorCategory.TRANSIENT

    def test_timeouts_are_transient(self):
        assert classify_exception(TimeoutError("operation timeout")) == ErrorCategory.TRANSIENT

    def test_status_code_attribute(self):
        class HttpError(Exception):
            status_code = 400

        assert classify_exception(HttpError("bad")) == ErrorCategory.PERMANENT

    def test_value_error_is_permanent(self):
        assert classify_exception(ValueError("nope")) == ErrorCategory.PERMANENT

    def test_unknown(self):
        assert classify_exception(RuntimeError("???")) == ErrorCategory.UNKNOWN
