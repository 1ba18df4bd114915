"""
Unit tests for app.schemas — envelope shape rules, query rendering,
postcode helpers, and the bulk job tagged union.
"""
from datetime import date

import pytest
from pydantic import TypeAdapter, ValidationError

from app.schemas.bulk import BulkJob, CompletedJob, FailedJob, ProcessingJob
from app.schemas.envelope import ApiError, ResultEnvelope
from app.schemas.land_registry import (
    BulkSearchRequest,
    OwnershipLookupParams,
    PricePaidSearchParams,
    PropertySearchParams,
    format_postcode,
    validate_postcode,
)

_jobs = TypeAdapter(BulkJob)


# ── Envelope ──────────────────────────────────────────────────────────────────

def test_ok_and_fail_constructors():
    ok = ResultEnvelope.ok([1, 2])
    bad = ResultEnvelope.fail("HTTP_404", "Not Found")

    assert ok.success and ok.data == [1, 2] and ok.error is None
    assert not bad.success and bad.data is None and bad.error.code == "HTTP_404"


def test_success_with_error_is_rejected():
    with pytest.raises(ValidationError):
        ResultEnvelope(success=True, error=ApiError(code="X", message="y"))


def test_failure_without_error_is_rejected():
    with pytest.raises(ValidationError):
        ResultEnvelope(success=False)


def test_failure_with_data_is_rejected():
    with pytest.raises(ValidationError):
        ResultEnvelope(success=False, data=[1], error=ApiError(code="X", message="y"))


@pytest.mark.parametrize("code,details,retryable", [
    ("NETWORK_ERROR", None, True),
    ("HTTP_500", None, True),
    ("HTTP_503", None, True),
    ("HTTP_404", None, False),
    ("HTTP_429", None, False),
    ("DECODE_ERROR", None, False),
    ("VALIDATION_ERROR", None, False),
    ("UPSTREAM_DOWN", {"status": 502}, True),
    ("TITLE_NOT_FOUND", {"status": 404}, False),
])
def test_retryable_classification(code, details, retryable):
    assert ApiError(code=code, message="m", details=details).retryable is retryable


# ── Postcodes ─────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("raw,expected", [
    ("sw1a1aa", "SW1A 1AA"),
    ("  SW1A   1AA ", "SW1A 1AA"),
    ("m11ae", "M1 1AE"),
    ("SW1A", "SW1A"),
])
def test_format_postcode(raw, expected):
    assert format_postcode(raw) == expected


@pytest.mark.parametrize("postcode,valid", [
    ("SW1A 1AA", True),
    ("sw1a1aa", True),
    ("M1 1AE", True),
    ("EC1A 1BB", True),
    ("SW1A", False),
    ("12345", False),
    ("NOT A POSTCODE", False),
])
def test_validate_postcode(postcode, valid):
    assert validate_postcode(postcode) is valid


# ── Query rendering ───────────────────────────────────────────────────────────

def test_to_query_omits_empty_and_none():
    params = PropertySearchParams(postcode="sw1a 1aa", address="  ", page=2)
    assert params.to_query() == {"postcode": "SW1A 1AA", "page": "2"}


def test_to_query_renders_booleans_lowercase():
    params = OwnershipLookupParams(title_number="ABC123456", include_historical=False)
    assert params.to_query() == {"title_number": "ABC123456", "include_historical": "false"}


def test_to_query_renders_dates_iso():
    params = PricePaidSearchParams(date_from=date(2020, 1, 1), date_to="2021-12-31")
    assert params.to_query() == {"date_from": "2020-01-01", "date_to": "2021-12-31"}


def test_param_records_are_closed():
    with pytest.raises(ValidationError):
        PropertySearchParams(postcode="SW1A 1AA", radius=5)


def test_param_records_bound_page_size():
    with pytest.raises(ValidationError):
        PropertySearchParams(limit=101)


# ── Bulk request ──────────────────────────────────────────────────────────────

def test_bulk_request_normalizes_targets():
    req = BulkSearchRequest(postcodes=["sw1a1aa"], title_numbers=[" abc1 ", ""])
    assert req.to_payload() == {
        "postcodes": ["SW1A 1AA"],
        "title_numbers": ["ABC1"],
        "search_type": "both",
    }


def test_bulk_request_needs_a_target():
    with pytest.raises(ValidationError):
        BulkSearchRequest(title_numbers=["   "])


# ── Bulk job union ────────────────────────────────────────────────────────────

def test_job_union_picks_state_by_status():
    job = _jobs.validate_python({"request_id": "j1", "status": "processing", "created_at": "t0"})
    assert isinstance(job, ProcessingJob)
    assert job.submitted_at == "t0"
    assert job.is_terminal is False


def test_completed_job_requires_results():
    with pytest.raises(ValidationError):
        _jobs.validate_python({"request_id": "j1", "status": "completed"})
    job = _jobs.validate_python({"request_id": "j1", "status": "completed", "results": {}})
    assert isinstance(job, CompletedJob)
    assert job.is_terminal and job.results.record_count == 0


def test_failed_job_requires_errors():
    with pytest.raises(ValidationError):
        _jobs.validate_python({"request_id": "j1", "status": "failed", "errors": []})
    job = _jobs.validate_python({"request_id": "j1", "status": "failed", "errors": ["boom"]})
    assert isinstance(job, FailedJob)


def test_unknown_status_is_rejected():
    with pytest.raises(ValidationError):
        _jobs.validate_python({"request_id": "j1", "status": "queued"})
