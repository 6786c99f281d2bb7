"""Order totals: total price, currency and per-rate tax buckets.

Pure function of the item list. Everything is int minor units until the final
two-digit formatting, so no float ever touches an amount.

Tax buckets are keyed by percentage only. Two different taxes that happen to share
a percentage land in the same bucket.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from src.so_common.errors import CurrencyMismatchError
from src.so_common.money import (
    check_minor_units,
    minor_to_decimal_str,
    normalize_currency,
    percentage_of,
)

if TYPE_CHECKING:
    from src.so_order.domain.models import OrderItem


@dataclass(frozen=True)
class OrderTotals:
    price_cents: int
    price: str                      # "25.00"
    currency: str
    taxes: dict[Decimal, int] = field(default_factory=dict)


def compute_totals(items: Iterable[OrderItem], default_currency: str) -> OrderTotals:
    """Aggregate line totals and taxes over `items` in collection order.

    The order currency is the first item's currency; `default_currency` applies only
    when there are no items. Raises CurrencyMismatchError on a second currency and
    InvalidAmountError when the total does not fit the stored price column.
    """
    currency: str | None = None
    total = 0
    taxes: dict[Decimal, int] = {}

    for item in items:
        item_currency = normalize_currency(item.price_currency)
        if currency is None:
            currency = item_currency
        elif item_currency != currency:
            raise CurrencyMismatchError(currency, item_currency)

        line_total = item.price_cents * item.quantity
        total += line_total

        for tax in item.taxes:
            taxes[tax.percentage] = taxes.get(tax.percentage, 0) + percentage_of(
                line_total, tax.percentage
            )

    if currency is None:
        currency = normalize_currency(default_currency)
    check_minor_units(total)

    return OrderTotals(
        price_cents=total,
        price=minor_to_decimal_str(total),
        currency=currency,
        taxes=taxes,
    )
