"""ReferenceAllocator — gives a new order its `{short_code}-{year}-{reference_id}` reference.

Allocation happens once, on the creation path only. The counter lives on the
organization row and is incremented with a single atomic UPDATE ... RETURNING
(see OrganizationRepository.next_reference_id). Within this process, allocations
for the same organization are also serialized by a per-organization asyncio.Lock.

With a `session_factory`, organization resolution and every counter increment run
in their own short transaction that commits before the order is written. A create
that fails afterwards leaves a gap in the sequence; it never hands the same
reference id to the next order. Without one, both run in the caller's session and
roll back with it.

A serialization failure on the increment is transient: it is retried up to
`max_retries` attempts before surfacing as ReferenceAllocationError.
"""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.so_common.datetime_utils import current_year, utc_now
from src.so_common.errors import (
    AppError,
    OrganizationResolutionError,
    ReferenceAllocationConflictError,
    ReferenceAllocationError,
)
from src.so_order.domain.models import Order
from src.so_organization.domain.models import Organization
from src.so_organization.domain.repository import OrganizationRepositoryProtocol

logger = logging.getLogger(__name__)


def format_reference(short_code: str, year: int, reference_id: int) -> str:
    """'6666', 2024, 12 -> '6666-2024-12'."""
    return f"{short_code}-{year:04d}-{reference_id}"


class ReferenceAllocator:
    def __init__(
        self,
        org_repo: OrganizationRepositoryProtocol,
        max_retries: int = 3,
        clock: Callable[[], datetime] = utc_now,
        session_factory: Callable[[], AsyncSession] | None = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._org_repo = org_repo
        self._max_retries = max_retries
        self._clock = clock
        self._session_factory = session_factory
        # Entries disappear once no allocation for the organization holds its lock
        self._org_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @asynccontextmanager
    async def _counter_session(self, db: AsyncSession) -> AsyncIterator[AsyncSession]:
        if self._session_factory is None:
            yield db
            return
        async with self._session_factory() as own_db, own_db.begin():
            yield own_db

    def _lock_for(self, organization_id: str) -> asyncio.Lock:
        lock = self._org_locks.get(organization_id)
        if lock is None:
            lock = asyncio.Lock()
            self._org_locks[organization_id] = lock
        return lock

    async def resolve_organization(self, db: AsyncSession, order: Order) -> Organization:
        """Return the order's organization, resolving-or-creating it from target_organization."""
        if order.organization is not None:
            return order.organization
        if not order.target_organization:
            raise OrganizationResolutionError(order.target_organization, "no target organization")
        try:
            async with self._counter_session(db) as org_db:
                organization = await self._org_repo.find_or_create_by_external_id(
                    org_db, order.target_organization
                )
        except OrganizationResolutionError:
            raise
        except AppError as exc:
            raise OrganizationResolutionError(order.target_organization, exc.message) from exc
        order.attach_organization(organization)
        return organization

    async def allocate(self, db: AsyncSession, organization: Organization) -> tuple[int, str]:
        """Return (reference_id, reference) for the next order of `organization`."""
        async with self._lock_for(organization.id):
            reference_id = await self._next_reference_id(db, organization.id)
        reference = format_reference(
            organization.short_code, current_year(self._clock()), reference_id
        )
        logger.info(
            "Reference allocated: org=%s reference_id=%d reference=%s",
            organization.id,
            reference_id,
            reference,
        )
        return reference_id, reference

    async def assign_reference(self, db: AsyncSession, order: Order) -> Order:
        """Creation-path entry point. No-op when the order already has a reference."""
        if order.reference:
            logger.debug("Order %s already has reference %s", order.id, order.reference)
            return order
        organization = await self.resolve_organization(db, order)
        reference_id, reference = await self.allocate(db, organization)
        order.assign_reference(reference_id, reference)
        return order

    async def _next_reference_id(self, db: AsyncSession, organization_id: str) -> int:
        for attempt in range(1, self._max_retries + 1):
            try:
                async with self._counter_session(db) as counter_db:
                    return await self._org_repo.next_reference_id(counter_db, organization_id)
            except ReferenceAllocationConflictError:
                logger.warning(
                    "Reference counter conflict: org=%s attempt=%d/%d",
                    organization_id,
                    attempt,
                    self._max_retries,
                )
        raise ReferenceAllocationError(organization_id, self._max_retries)
