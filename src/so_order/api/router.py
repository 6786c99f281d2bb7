# src/so_order/api/router.py
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.so_common.database import get_db_session
from src.so_common.response import ApiResponse, success_response
from src.so_order.application.schemas import CreateOrderRequest, UpdateOrderRequest
from src.so_order.application.service import OrderApplicationService

router = APIRouter(prefix="/orders", tags=["orders"])

_service = OrderApplicationService()


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.post("", status_code=201)
async def create_order(
    body: CreateOrderRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_order(db, body)
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.put("/{order_id}")
async def update_order(
    order_id: UUID,
    body: UpdateOrderRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_order(db, str(order_id), body)
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.get("")
async def find_order_by_reference(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    reference: str = Query(..., min_length=1, description="Exact order reference"),
) -> ApiResponse:
    data = await _service.get_order_by_reference(db, reference)
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.get("/{order_id}")
async def get_order(
    order_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_order(db, str(order_id))
    return success_response(data.model_dump(mode="json"), _request_id(request))
