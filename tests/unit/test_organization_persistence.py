"""Unit tests for OrganizationRepository using a mocked AsyncSession."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import DBAPIError

from src.so_common.errors import (
    OrganizationNotFoundError,
    OrganizationResolutionError,
    ReferenceAllocationConflictError,
)
from src.so_organization.domain.models import derive_short_code, is_valid_external_id
from src.so_organization.infrastructure.persistence import OrganizationRepository


class _PgError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(sqlstate)
        self.sqlstate = sqlstate


def _make_row(**kwargs: Any) -> MagicMock:
    row = MagicMock()
    row.id = kwargs.get("id", "5c1b7f0e-54b4-4c8e-9d0b-3f7e0c0e1a01")
    row.external_id = kwargs.get("external_id", "002851234")
    row.short_code = kwargs.get("short_code", "002851234")
    row.last_reference_id = kwargs.get("last_reference_id", 0)
    row.created_at = kwargs.get("created_at", datetime.now(UTC))
    row.updated_at = kwargs.get("updated_at", datetime.now(UTC))
    return row


def _db_with_savepoint() -> AsyncMock:
    @asynccontextmanager
    async def _savepoint() -> AsyncIterator[None]:
        yield

    db = AsyncMock()
    db.begin_nested = MagicMock(side_effect=lambda: _savepoint())
    return db


class TestShortCode:
    def test_derive_short_code_uppercases(self) -> None:
        assert derive_short_code("abcd") == "ABCD"

    @pytest.mark.parametrize("external_id", ["002851234", "GEM0363"])
    def test_valid_external_ids(self, external_id: str) -> None:
        assert is_valid_external_id(external_id)

    @pytest.mark.parametrize("external_id", ["", None, "has-dash", "with space", "x" * 33])
    def test_invalid_external_ids(self, external_id: str | None) -> None:
        assert not is_valid_external_id(external_id)


class TestFindOrCreate:
    async def test_returns_organization(self) -> None:
        db = AsyncMock()
        result_mock = MagicMock()
        result_mock.fetchone.return_value = _make_row(short_code="6666")
        db.execute.return_value = result_mock
        repo = OrganizationRepository()

        org = await repo.find_or_create_by_external_id(db, "002851234")

        assert org.external_id == "002851234"
        assert org.short_code == "6666"
        assert isinstance(org.id, str)
        db.execute.assert_awaited_once()

    async def test_new_organization_counter_starts_before_first_id(self) -> None:
        db = AsyncMock()
        result_mock = MagicMock()
        result_mock.fetchone.return_value = _make_row()
        db.execute.return_value = result_mock
        repo = OrganizationRepository()

        await repo.find_or_create_by_external_id(db, "abcd")

        params = db.execute.await_args.args[1]
        assert params["short_code"] == "ABCD"
        assert params["initial_counter"] == 0

    async def test_invalid_external_id_raises_without_query(self) -> None:
        db = AsyncMock()
        repo = OrganizationRepository()
        with pytest.raises(OrganizationResolutionError):
            await repo.find_or_create_by_external_id(db, "not valid")
        db.execute.assert_not_awaited()

    async def test_database_error_becomes_resolution_error(self) -> None:
        db = AsyncMock()
        db.execute.side_effect = DBAPIError("INSERT", {}, _PgError("23514"))
        repo = OrganizationRepository()
        with pytest.raises(OrganizationResolutionError):
            await repo.find_or_create_by_external_id(db, "002851234")


class TestGetById:
    async def test_not_found(self) -> None:
        db = AsyncMock()
        result_mock = MagicMock()
        result_mock.fetchone.return_value = None
        db.execute.return_value = result_mock
        repo = OrganizationRepository()
        assert await repo.get_by_id(db, "missing") is None


class TestNextReferenceId:
    async def test_returns_incremented_value(self) -> None:
        db = _db_with_savepoint()
        result_mock = MagicMock()
        result_mock.scalar_one_or_none.return_value = 42
        db.execute.return_value = result_mock
        repo = OrganizationRepository()

        assert await repo.next_reference_id(db, "org-1") == 42
        db.begin_nested.assert_called_once()
        sql = str(db.execute.await_args.args[0])
        assert "last_reference_id = last_reference_id + 1" in sql
        assert "RETURNING" in sql

    async def test_missing_organization(self) -> None:
        db = _db_with_savepoint()
        result_mock = MagicMock()
        result_mock.scalar_one_or_none.return_value = None
        db.execute.return_value = result_mock
        repo = OrganizationRepository()

        with pytest.raises(OrganizationNotFoundError):
            await repo.next_reference_id(db, "org-1")

    @pytest.mark.parametrize("sqlstate", ["40001", "40P01"])
    async def test_serialization_failure_is_conflict(self, sqlstate: str) -> None:
        db = _db_with_savepoint()
        db.execute.side_effect = DBAPIError("UPDATE", {}, _PgError(sqlstate))
        repo = OrganizationRepository()

        with pytest.raises(ReferenceAllocationConflictError):
            await repo.next_reference_id(db, "org-1")

    async def test_other_database_errors_propagate(self) -> None:
        db = _db_with_savepoint()
        db.execute.side_effect = DBAPIError("UPDATE", {}, _PgError("53300"))
        repo = OrganizationRepository()

        with pytest.raises(DBAPIError):
            await repo.next_reference_id(db, "org-1")
