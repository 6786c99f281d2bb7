"""Tests for so_common.errors, so_common.response and so_common.datetime_utils."""

from datetime import UTC, datetime

from src.so_common.datetime_utils import current_year, utc_now
from src.so_common.errors import (
    AppError,
    CurrencyMismatchError,
    InvalidAmountError,
    OrderNotFoundError,
    OrganizationResolutionError,
    ReferenceAllocationConflictError,
    ReferenceAllocationError,
    ReferenceImmutableError,
)
from src.so_common.response import error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1, message="x"), Exception)


class TestSpecificErrors:
    def test_currency_mismatch(self) -> None:
        err = CurrencyMismatchError("EUR", "USD")
        assert err.code == 3001
        assert err.http_status == 422
        assert "EUR" in err.message and "USD" in err.message

    def test_invalid_amount(self) -> None:
        err = InvalidAmountError("abc")
        assert err.code == 3002
        assert "'abc'" in err.message

    def test_organization_resolution(self) -> None:
        err = OrganizationResolutionError("002851234", "database error")
        assert err.code == 1001
        assert "002851234" in err.message
        assert "database error" in err.message

    def test_conflict_is_distinct_from_exhausted(self) -> None:
        conflict = ReferenceAllocationConflictError("org-1")
        exhausted = ReferenceAllocationError("org-1", 3)
        assert conflict.code == 2002
        assert exhausted.code == 2003
        assert "3 attempts" in exhausted.message

    def test_reference_immutable(self) -> None:
        err = ReferenceImmutableError("o-1", "6666-2024-12")
        assert err.http_status == 409

    def test_order_not_found(self) -> None:
        err = OrderNotFoundError("o-1")
        assert err.code == 2001
        assert err.http_status == 404


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": "abc"})
        assert resp.code == 0
        assert resp.data == {"id": "abc"}
        assert resp.request_id.startswith("req_")

    def test_request_id_passthrough(self) -> None:
        resp = success_response(None, request_id="req_fixed")
        assert resp.request_id == "req_fixed"

    def test_error(self) -> None:
        resp = error_response(3001, "Currency mismatch")
        assert resp.code == 3001
        assert resp.data is None


class TestDatetimeUtils:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo == UTC

    def test_current_year_from_given_time(self) -> None:
        assert current_year(datetime(2024, 12, 31, 23, 59, tzinfo=UTC)) == 2024
