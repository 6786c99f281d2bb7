# src/so_order/application/service.py
"""OrderApplicationService — create / update / read flows.

create: build order -> recalculate totals -> assign reference (once) -> insert -> commit
update: load order -> replace fields and items -> recalculate totals -> update -> commit

Totals are recalculated immediately before every write; nothing else sets price,
price_currency or taxes. Any failure rolls the transaction back and re-raises.
"""
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.so_common.database import async_session_factory
from src.so_common.errors import OrderNotFoundError
from src.so_common.money import normalize_currency, parse_rate, to_minor_units
from src.so_order.application.schemas import (
    CreateOrderRequest,
    OrderItemIn,
    OrderResponse,
    UpdateOrderRequest,
)
from src.so_order.domain.models import Order, OrderItem, Tax
from src.so_order.domain.reference import ReferenceAllocator
from src.so_order.domain.repository import OrderRepositoryProtocol
from src.so_order.infrastructure.persistence import OrderRepository
from src.so_organization.infrastructure.persistence import OrganizationRepository

logger = logging.getLogger(__name__)


def item_from_request(item: OrderItemIn) -> OrderItem:
    """The single boundary where major-unit prices become minor units."""
    return OrderItem(
        name=item.name,
        description=item.description,
        price_cents=to_minor_units(item.price),
        price_currency=normalize_currency(item.price_currency),
        quantity=item.quantity,
        taxes=[Tax(percentage=parse_rate(t.percentage), name=t.name) for t in item.taxes],
    )


class OrderApplicationService:
    def __init__(
        self,
        repo: OrderRepositoryProtocol | None = None,
        allocator: ReferenceAllocator | None = None,
        default_currency: str | None = None,
    ) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._allocator = allocator or ReferenceAllocator(
            OrganizationRepository(),
            max_retries=settings.REFERENCE_ALLOCATION_MAX_RETRIES,
            session_factory=async_session_factory,
        )
        self._default_currency = default_currency or settings.DEFAULT_CURRENCY

    def _before_persist(self, order: Order) -> None:
        order.recalculate_totals(self._default_currency)

    async def create_order(self, db: AsyncSession, req: CreateOrderRequest) -> OrderResponse:
        order = Order(
            id=str(uuid.uuid4()),
            name=req.name,
            description=req.description,
            customer=req.customer,
            remark=req.remark,
            target_organization=req.target_organization,
        )
        try:
            for item in req.items:
                order.add_item(item_from_request(item))
            await self.finalize_new_order(db, order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Order created: id=%s reference=%s total=%s %s",
            order.id,
            order.reference,
            order.price,
            order.price_currency,
        )
        return OrderResponse.from_domain(order)

    async def finalize_new_order(self, db: AsyncSession, order: Order) -> Order:
        """Creation path without commit: totals, reference (if unset), insert.

        Totals run first so an order that cannot be priced never consumes a reference id.
        """
        self._before_persist(order)
        await self._allocator.assign_reference(db, order)
        await self._repo.save(order, db)
        return order

    async def update_order(
        self, db: AsyncSession, order_id: str, req: UpdateOrderRequest
    ) -> OrderResponse:
        try:
            order = await self._repo.get_by_id(order_id, db)
            if order is None:
                raise OrderNotFoundError(order_id)
            order.name = req.name
            order.description = req.description
            order.customer = req.customer
            order.remark = req.remark
            order.replace_items([item_from_request(i) for i in req.items])
            self._before_persist(order)
            await self._repo.update(order, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order updated: id=%s total=%s %s", order.id, order.price, order.price_currency)
        return OrderResponse.from_domain(order)

    async def get_order(self, db: AsyncSession, order_id: str) -> OrderResponse:
        order = await self._repo.get_by_id(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        return OrderResponse.from_domain(order)

    async def get_order_by_reference(self, db: AsyncSession, reference: str) -> OrderResponse:
        order = await self._repo.get_by_reference(reference, db)
        if order is None:
            raise OrderNotFoundError(reference)
        return OrderResponse.from_domain(order)
