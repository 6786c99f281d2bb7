"""Order domain model — pure dataclasses, no SQLAlchemy dependency.

All money fields are int minor units (cents) except `Order.price`, the two-digit
decimal string stored in the NUMERIC(10, 2) column.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.so_common.enums import ReferenceState
from src.so_common.errors import ReferenceImmutableError
from src.so_order.domain.totals import compute_totals
from src.so_organization.domain.models import Organization


@dataclass
class Tax:
    percentage: Decimal
    name: str | None = None


@dataclass(eq=False)
class OrderItem:
    name: str
    price_cents: int          # unit price, minor units
    price_currency: str       # ISO 4217
    quantity: int = 1
    taxes: list[Tax] = field(default_factory=list)
    description: str | None = None
    id: str | None = None
    order: Order | None = field(default=None, repr=False)

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity


@dataclass
class Order:
    id: str
    name: str
    target_organization: str
    description: str | None = None
    customer: str | None = None
    remark: str | None = None
    organization_id: str | None = None
    organization: Organization | None = None
    reference: str | None = None
    reference_id: int | None = None
    # Derived by recalculate_totals()
    price_cents: int = 0
    price: str = "0.00"
    price_currency: str | None = None
    taxes: dict[Decimal, int] = field(default_factory=dict)
    items: list[OrderItem] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # --- items (owning side) ---

    def add_item(self, item: OrderItem) -> Order:
        if not any(existing is item for existing in self.items):
            self.items.append(item)
            item.order = self
        return self

    def remove_item(self, item: OrderItem) -> Order:
        for idx, existing in enumerate(self.items):
            if existing is item:
                del self.items[idx]
                if item.order is self:
                    item.order = None
                break
        return self

    def replace_items(self, items: list[OrderItem]) -> Order:
        for item in list(self.items):
            self.remove_item(item)
        for item in items:
            self.add_item(item)
        return self

    # --- organization ---

    def attach_organization(self, organization: Organization) -> None:
        self.organization = organization
        self.organization_id = organization.id

    # --- reference ---

    @property
    def reference_state(self) -> ReferenceState:
        return ReferenceState.ALLOCATED if self.reference else ReferenceState.UNALLOCATED

    def assign_reference(self, reference_id: int, reference: str) -> None:
        """Set reference and reference_id once. Re-assigning the same pair is a no-op."""
        if self.reference is not None:
            if self.reference == reference and self.reference_id == reference_id:
                return
            raise ReferenceImmutableError(self.id, self.reference)
        self.reference_id = reference_id
        self.reference = reference

    # --- totals ---

    def recalculate_totals(self, default_currency: str) -> None:
        """Persist hook: refresh price, currency and tax buckets from the current items."""
        totals = compute_totals(self.items, default_currency)
        self.price_cents = totals.price_cents
        self.price = totals.price
        self.price_currency = totals.currency
        self.taxes = totals.taxes
