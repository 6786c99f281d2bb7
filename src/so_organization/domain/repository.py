"""OrganizationRepository Protocol — interface the reference allocator depends on.

Unit tests inject an AsyncMock conforming to this Protocol.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.so_organization.domain.models import Organization


class OrganizationRepositoryProtocol(Protocol):
    async def find_or_create_by_external_id(
        self, db: AsyncSession, external_id: str
    ) -> Organization: ...

    async def get_by_id(
        self, db: AsyncSession, organization_id: str
    ) -> Organization | None: ...

    async def next_reference_id(self, db: AsyncSession, organization_id: str) -> int: ...
