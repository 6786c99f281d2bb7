# tests/integration/test_order_flow.py
"""Integration tests for the order flow: create → reference → totals → update → lookup.

Each test uses a fresh organization external id so reference counters start
from REFERENCE_ID_START (1) and never collide across runs.
"""

import asyncio
import re
import uuid
from datetime import UTC, datetime
from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.integration, pytest.mark.asyncio(loop_scope="session")]

ORDERS = "/api/v1/orders"


def _unique_org() -> str:
    return f"T{uuid.uuid4().hex[:12].upper()}"


def _order_body(org: str, items: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {
        "name": "Integration order",
        "target_organization": org,
        "items": items
        if items is not None
        else [{"name": "Permit", "price": "12.50", "price_currency": "EUR", "quantity": 2}],
    }


async def _create(client: AsyncClient, body: dict[str, Any]) -> dict[str, Any]:
    resp = await client.post(ORDERS, json=body)
    assert resp.status_code == 201, resp.text
    return dict(resp.json()["data"])


async def test_create_assigns_reference_and_totals(api_client: AsyncClient) -> None:
    org = _unique_org()
    data = await _create(
        api_client,
        _order_body(
            org,
            [
                {"name": "a", "price": "100.00", "price_currency": "EUR",
                 "taxes": [{"percentage": 21, "name": "VAT"}]},
                {"name": "b", "price": "50.00", "price_currency": "EUR",
                 "taxes": [{"percentage": "21", "name": "VAT"}]},
            ],
        ),
    )
    year = datetime.now(UTC).year
    assert data["reference"] == f"{org}-{year}-1"
    assert data["reference_id"] == 1
    assert data["price"] == "150.00"
    assert data["price_currency"] == "EUR"
    assert data["taxes"] == {"21": "31.50"}


async def test_references_increment_per_organization(api_client: AsyncClient) -> None:
    org_a, org_b = _unique_org(), _unique_org()
    a1 = await _create(api_client, _order_body(org_a))
    b1 = await _create(api_client, _order_body(org_b))
    a2 = await _create(api_client, _order_body(org_a))
    assert (a1["reference_id"], a2["reference_id"]) == (1, 2)
    assert b1["reference_id"] == 1


async def test_concurrent_creation_yields_distinct_ids(api_client: AsyncClient) -> None:
    org = _unique_org()
    # First order creates the organization row; the rest race on its counter
    await _create(api_client, _order_body(org))
    n = 10
    responses = await asyncio.gather(
        *(api_client.post(ORDERS, json=_order_body(org)) for _ in range(n))
    )
    assert all(r.status_code == 201 for r in responses)
    ids = sorted(r.json()["data"]["reference_id"] for r in responses)
    assert ids == list(range(2, n + 2))


async def test_update_recalculates_and_keeps_reference(api_client: AsyncClient) -> None:
    created = await _create(api_client, _order_body(_unique_org()))
    resp = await api_client.put(
        f"{ORDERS}/{created['id']}",
        json={
            "name": "Updated",
            "items": [{"name": "c", "price": "10", "price_currency": "EUR", "quantity": 3,
                       "taxes": [{"percentage": 9}]}],
        },
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["reference"] == created["reference"]
    assert data["reference_id"] == created["reference_id"]
    assert data["price"] == "30.00"
    assert data["taxes"] == {"9": "2.70"}


async def test_lookup_by_id_and_reference(api_client: AsyncClient) -> None:
    created = await _create(api_client, _order_body(_unique_org()))
    by_id = await api_client.get(f"{ORDERS}/{created['id']}")
    by_ref = await api_client.get(ORDERS, params={"reference": created["reference"]})
    assert by_id.json()["data"]["reference"] == created["reference"]
    assert by_ref.json()["data"]["id"] == created["id"]
    assert by_id.json()["data"]["items"][0]["price"] == "12.50"


async def test_currency_mismatch_is_rejected(api_client: AsyncClient) -> None:
    resp = await api_client.post(
        ORDERS,
        json=_order_body(
            _unique_org(),
            [
                {"name": "a", "price": "1.00", "price_currency": "EUR"},
                {"name": "b", "price": "1.00", "price_currency": "USD"},
            ],
        ),
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == 3001


async def test_invalid_amount_is_rejected(api_client: AsyncClient) -> None:
    resp = await api_client.post(
        ORDERS,
        json=_order_body(_unique_org(), [{"name": "a", "price": "abc", "price_currency": "EUR"}]),
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == 3002


async def test_invalid_target_organization(api_client: AsyncClient) -> None:
    resp = await api_client.post(ORDERS, json=_order_body("not-valid"))
    assert resp.status_code == 422
    assert resp.json()["code"] == 1001


async def test_unknown_order(api_client: AsyncClient) -> None:
    resp = await api_client.get(f"{ORDERS}/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["code"] == 2001
    assert re.match(r"^req_[0-9a-f]{12}$", resp.json()["request_id"])


async def test_rejected_create_does_not_consume_reference_id(api_client: AsyncClient) -> None:
    org = _unique_org()
    await _create(api_client, _order_body(org))
    rejected = await api_client.post(
        ORDERS,
        json=_order_body(
            org,
            [
                {"name": "a", "price": "1.00", "price_currency": "EUR"},
                {"name": "b", "price": "1.00", "price_currency": "USD"},
            ],
        ),
    )
    assert rejected.status_code == 422
    second = await _create(api_client, _order_body(org))
    assert second["reference_id"] == 2


async def test_out_of_range_amount_is_rejected(api_client: AsyncClient) -> None:
    resp = await api_client.post(
        ORDERS,
        json=_order_body(_unique_org(), [{"name": "a", "price": "1E+27", "price_currency": "EUR"}]),
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == 3002
