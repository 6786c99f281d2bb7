# src/so_order/application/schemas.py
"""Pydantic schemas for the orders API.

Prices come in as major-unit values ("12.50", 12.5, 12) and are converted to
minor units exactly once, in the application service, via to_minor_units.
"""
from datetime import datetime

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from src.so_common.money import format_rate, minor_to_decimal_str
from src.so_order.domain.models import Order, OrderItem

_HTTP_URL = TypeAdapter(HttpUrl)

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TaxIn(BaseModel):
    percentage: str | int | float
    name: str | None = Field(None, max_length=255)


class OrderItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2550)
    price: str | int | float = Field(..., description="Unit price in major units, e.g. '12.50'")
    price_currency: str = Field(..., description="ISO 4217 code, e.g. EUR")
    # order_items.quantity is INT
    quantity: int = Field(1, ge=1, le=2_147_483_647)
    taxes: list[TaxIn] = Field(default_factory=list)


class OrderFields(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2550)
    customer: str | None = Field(None, max_length=255)
    remark: str | None = None
    items: list[OrderItemIn] = Field(default_factory=list)

    @field_validator("customer")
    @classmethod
    def customer_is_url(cls, v: str | None) -> str | None:
        """The customer is a link to a person or organization resource."""
        if v is None:
            return v
        try:
            _HTTP_URL.validate_python(v)
        except ValidationError as exc:
            raise ValueError("customer must be an http(s) URL") from exc
        return v


class CreateOrderRequest(OrderFields):
    target_organization: str = Field(
        ..., min_length=1, max_length=255, description="External organization id (RSIN)"
    )

    @field_validator("target_organization")
    @classmethod
    def no_whitespace(cls, v: str) -> str:
        if v != v.strip() or " " in v:
            raise ValueError("target_organization must not contain whitespace")
        return v


class UpdateOrderRequest(OrderFields):
    pass


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TaxOut(BaseModel):
    percentage: str
    name: str | None


class OrderItemOut(BaseModel):
    id: str | None
    name: str
    description: str | None
    price: str
    price_cents: int
    price_currency: str
    quantity: int
    line_total: str
    taxes: list[TaxOut]

    @classmethod
    def from_domain(cls, item: OrderItem) -> "OrderItemOut":
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            price=minor_to_decimal_str(item.price_cents),
            price_cents=item.price_cents,
            price_currency=item.price_currency,
            quantity=item.quantity,
            line_total=minor_to_decimal_str(item.line_total_cents),
            taxes=[TaxOut(percentage=format_rate(t.percentage), name=t.name) for t in item.taxes],
        )


class OrderResponse(BaseModel):
    id: str
    name: str
    description: str | None
    customer: str | None
    remark: str | None
    target_organization: str
    organization_id: str | None
    reference: str | None
    reference_id: int | None
    price: str
    price_cents: int
    price_currency: str | None
    taxes: dict[str, str]  # {"21": "31.50"}
    items: list[OrderItemOut]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            name=order.name,
            description=order.description,
            customer=order.customer,
            remark=order.remark,
            target_organization=order.target_organization,
            organization_id=order.organization_id,
            reference=order.reference,
            reference_id=order.reference_id,
            price=order.price,
            price_cents=order.price_cents,
            price_currency=order.price_currency,
            taxes={
                format_rate(rate): minor_to_decimal_str(amount)
                for rate, amount in order.taxes.items()
            },
            items=[OrderItemOut.from_domain(i) for i in order.items],
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
