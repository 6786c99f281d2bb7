"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Organization
  2xxx: Order / reference
  3xxx: Money / totals
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Organization ---

class OrganizationResolutionError(AppError):
    def __init__(self, target_organization: str | None, detail: str = "") -> None:
        message = f"Cannot resolve organization: {target_organization!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(1001, message, 422)


class OrganizationNotFoundError(AppError):
    def __init__(self, organization_id: str) -> None:
        super().__init__(1002, f"Organization not found: {organization_id}", 404)


# --- 2xxx: Order / reference ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(2001, f"Order not found: {order_id}", 404)


class ReferenceAllocationConflictError(AppError):
    """Transient: the counter increment lost a serialization race. Retried by the allocator."""

    def __init__(self, organization_id: str) -> None:
        super().__init__(
            2002,
            f"Concurrent reference allocation conflict for organization {organization_id}",
            409,
        )


class ReferenceAllocationError(AppError):
    def __init__(self, organization_id: str, attempts: int) -> None:
        super().__init__(
            2003,
            f"Reference allocation failed for organization {organization_id} "
            f"after {attempts} attempts",
            503,
        )


class ReferenceImmutableError(AppError):
    def __init__(self, order_id: str, reference: str) -> None:
        super().__init__(
            2004, f"Order {order_id} already has reference {reference}", 409
        )


# --- 3xxx: Money / totals ---

class CurrencyMismatchError(AppError):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            3001,
            f"Currency mismatch: order is in {expected}, item is in {actual}",
            422,
        )


class InvalidAmountError(AppError):
    def __init__(self, value: object) -> None:
        super().__init__(3002, f"Invalid amount: {value!r}", 422)


class InvalidCurrencyError(AppError):
    def __init__(self, value: object) -> None:
        super().__init__(3003, f"Invalid ISO 4217 currency code: {value!r}", 422)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
