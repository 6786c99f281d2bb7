"""OrganizationRepository — raw SQL implementation of OrganizationRepositoryProtocol.

find-or-create is a single INSERT ... ON CONFLICT, so two transactions creating the
same external id race on the unique index instead of on a SELECT.

The reference counter is a single UPDATE ... RETURNING on the organization row.
The row lock serializes concurrent increments; there is no read-then-write.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.so_common.errors import (
    OrganizationNotFoundError,
    OrganizationResolutionError,
    ReferenceAllocationConflictError,
)
from src.so_organization.domain.models import (
    Organization,
    derive_short_code,
    is_valid_external_id,
)

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_COLUMNS = "id, external_id, short_code, last_reference_id, created_at, updated_at"

_FIND_OR_CREATE_SQL = text(f"""
    INSERT INTO organizations (external_id, short_code, last_reference_id)
    VALUES (:external_id, :short_code, :initial_counter)
    ON CONFLICT (external_id) DO UPDATE
        SET updated_at = NOW()
    RETURNING {_COLUMNS}
""")

_GET_BY_ID_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM organizations WHERE id = :id
""")

_NEXT_REFERENCE_ID_SQL = text("""
    UPDATE organizations
    SET last_reference_id = last_reference_id + 1
    WHERE id = :id
    RETURNING last_reference_id
""")


def _row_to_organization(row: Any) -> Organization:
    return Organization(
        id=str(row.id),
        external_id=row.external_id,
        short_code=row.short_code,
        last_reference_id=row.last_reference_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class OrganizationRepository:
    """Concrete implementation of OrganizationRepositoryProtocol using raw SQL."""

    async def find_or_create_by_external_id(
        self, db: AsyncSession, external_id: str
    ) -> Organization:
        if not is_valid_external_id(external_id):
            raise OrganizationResolutionError(external_id, "invalid external id")
        try:
            result = await db.execute(
                _FIND_OR_CREATE_SQL,
                {
                    "external_id": external_id,
                    "short_code": derive_short_code(external_id),
                    "initial_counter": settings.REFERENCE_ID_START - 1,
                },
            )
        except DBAPIError as exc:
            raise OrganizationResolutionError(external_id, "database error") from exc
        row = result.fetchone()
        if row is None:
            raise OrganizationResolutionError(external_id)
        return _row_to_organization(row)

    async def get_by_id(
        self, db: AsyncSession, organization_id: str
    ) -> Organization | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": organization_id})
        row = result.fetchone()
        return _row_to_organization(row) if row else None

    async def next_reference_id(self, db: AsyncSession, organization_id: str) -> int:
        """Atomically increment and return the organization's reference counter.

        Runs inside a SAVEPOINT so a serialization failure leaves `db` usable. The
        allocator normally passes a session of its own whose transaction commits
        right after this call; each retry then starts a fresh snapshot.
        """
        try:
            async with db.begin_nested():
                result = await db.execute(_NEXT_REFERENCE_ID_SQL, {"id": organization_id})
                value = result.scalar_one_or_none()
        except DBAPIError as exc:
            if _sqlstate(exc) in _RETRYABLE_SQLSTATES:
                raise ReferenceAllocationConflictError(organization_id) from exc
            raise
        if value is None:
            raise OrganizationNotFoundError(organization_id)
        return int(value)
