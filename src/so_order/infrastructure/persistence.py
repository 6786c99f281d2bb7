# src/so_order/infrastructure/persistence.py
"""OrderRepository — raw SQL persistence implementation.

Items are owned by the order: save() inserts them after the order row, update()
replaces them wholesale. Reference columns are write-once: the UPDATE only fills
them while they are still NULL.
"""
import json
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.so_common.errors import InternalError, OrderNotFoundError
from src.so_common.money import format_rate, parse_rate
from src.so_order.domain.models import Order, OrderItem, Tax

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, name, description, customer, remark,
        target_organization, organization_id, reference, reference_id,
        price_cents, price, price_currency, taxes)
    VALUES (:id, :name, :description, :customer, :remark,
        :target_organization, :organization_id, :reference, :reference_id,
        :price_cents, :price, :price_currency, CAST(:taxes AS JSONB))
    RETURNING created_at, updated_at
""")

_UPDATE_ORDER_SQL = text("""
    UPDATE orders
    SET name = :name, description = :description, customer = :customer,
        remark = :remark,
        organization_id = COALESCE(organization_id, :organization_id),
        reference = COALESCE(reference, :reference),
        reference_id = COALESCE(reference_id, :reference_id),
        price_cents = :price_cents, price = :price,
        price_currency = :price_currency, taxes = CAST(:taxes AS JSONB),
        updated_at = NOW()
    WHERE id = :id
    RETURNING updated_at
""")

_INSERT_ITEM_SQL = text("""
    INSERT INTO order_items (id, order_id, position, name, description,
        price_cents, price_currency, quantity, taxes)
    VALUES (:id, :order_id, :position, :name, :description,
        :price_cents, :price_currency, :quantity, CAST(:taxes AS JSONB))
""")

_DELETE_ITEMS_SQL = text("DELETE FROM order_items WHERE order_id = :order_id")

_SELECT_COLUMNS = """
    id, name, description, customer, remark,
    target_organization, organization_id, reference, reference_id,
    price_cents, price, price_currency, taxes, created_at, updated_at
"""

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_GET_ORDER_BY_REFERENCE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE reference = :reference
""")

_LIST_ITEMS_SQL = text("""
    SELECT id, name, description, price_cents, price_currency, quantity, taxes
    FROM order_items
    WHERE order_id = :order_id
    ORDER BY position
""")


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def _load_json(value: Any) -> Any:
    # asyncpg decodes JSONB through SQLAlchemy's codec; plain drivers hand back str
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _dump_order_taxes(taxes: dict[Decimal, int]) -> str:
    return json.dumps({format_rate(rate): amount for rate, amount in taxes.items()})


def _load_order_taxes(raw: Any) -> dict[Decimal, int]:
    data = _load_json(raw) or {}
    return {parse_rate(rate): int(amount) for rate, amount in data.items()}


def _dump_item_taxes(taxes: list[Tax]) -> str:
    return json.dumps(
        [{"percentage": format_rate(t.percentage), "name": t.name} for t in taxes]
    )


def _load_item_taxes(raw: Any) -> list[Tax]:
    data = _load_json(raw) or []
    return [Tax(percentage=parse_rate(t["percentage"]), name=t.get("name")) for t in data]


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_item(row: Any) -> OrderItem:
    return OrderItem(
        id=str(row.id),
        name=row.name,
        description=row.description,
        price_cents=row.price_cents,
        price_currency=row.price_currency,
        quantity=row.quantity,
        taxes=_load_item_taxes(row.taxes),
    )


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object (items loaded separately)."""
    return Order(
        id=str(row.id),
        name=row.name,
        description=row.description,
        customer=row.customer,
        remark=row.remark,
        target_organization=row.target_organization,
        organization_id=str(row.organization_id) if row.organization_id else None,
        reference=row.reference,
        reference_id=row.reference_id,
        price_cents=row.price_cents,
        price=f"{Decimal(row.price):.2f}",
        price_currency=row.price_currency,
        taxes=_load_order_taxes(row.taxes),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _order_params(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "name": order.name,
        "description": order.description,
        "customer": order.customer,
        "remark": order.remark,
        "target_organization": order.target_organization,
        "organization_id": order.organization_id,
        "reference": order.reference,
        "reference_id": order.reference_id,
        "price_cents": order.price_cents,
        "price": Decimal(order.price),
        "price_currency": order.price_currency,
        "taxes": _dump_order_taxes(order.taxes),
    }


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def save(self, order: Order, db: AsyncSession) -> None:
        result = await db.execute(_INSERT_ORDER_SQL, _order_params(order))
        row = result.fetchone()
        if row is None:
            raise InternalError("Order insert returned no rows")
        order.created_at = row.created_at
        order.updated_at = row.updated_at
        await self._insert_items(order, db)

    async def update(self, order: Order, db: AsyncSession) -> None:
        result = await db.execute(_UPDATE_ORDER_SQL, _order_params(order))
        row = result.fetchone()
        if row is None:
            raise OrderNotFoundError(order.id)
        order.updated_at = row.updated_at
        await db.execute(_DELETE_ITEMS_SQL, {"order_id": order.id})
        await self._insert_items(order, db)

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return await self._with_items(_row_to_order(row), db) if row else None

    async def get_by_reference(self, reference: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_REFERENCE_SQL, {"reference": reference})
        row = result.fetchone()
        return await self._with_items(_row_to_order(row), db) if row else None

    async def _insert_items(self, order: Order, db: AsyncSession) -> None:
        for position, item in enumerate(order.items):
            if item.id is None:
                item.id = str(uuid.uuid4())
            await db.execute(
                _INSERT_ITEM_SQL,
                {
                    "id": item.id,
                    "order_id": order.id,
                    "position": position,
                    "name": item.name,
                    "description": item.description,
                    "price_cents": item.price_cents,
                    "price_currency": item.price_currency,
                    "quantity": item.quantity,
                    "taxes": _dump_item_taxes(item.taxes),
                },
            )

    async def _with_items(self, order: Order, db: AsyncSession) -> Order:
        result = await db.execute(_LIST_ITEMS_SQL, {"order_id": order.id})
        for row in result.fetchall():
            order.add_item(_row_to_item(row))
        return order
