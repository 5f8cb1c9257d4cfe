"""Operator endpoints for inspecting code inventory."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from codepool_api.api.dependencies.redemption import get_inventory_service
from codepool_api.api.dependencies.security import require_admin_api_key
from codepool_api.core.errors import InvalidRequestError, NotFoundError, OutOfStockError
from codepool_api.models.code import CodeCategory
from codepool_api.services.redemption import CodeInventoryService, CodeRecord


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_api_key)],
)


class CodeRowResponse(BaseModel):
    id: int
    category: CodeCategory
    code: str
    usedAt: Optional[datetime]
    createdAt: Optional[datetime]


class UsedRecordResponse(BaseModel):
    id: int
    redeemedAt: Optional[datetime]
    playerUserId: Optional[int]
    jobId: Optional[str]


class CodeStatusResponse(BaseModel):
    found: bool
    used: bool
    codeRow: CodeRowResponse
    usedRecord: Optional[UsedRecordResponse] = None


class PeekResponse(BaseModel):
    id: int
    code: str
    category: CodeCategory


def parse_category(raw: str | None, *, required: bool) -> CodeCategory | None:
    if not raw:
        if required:
            raise InvalidRequestError(error="INVALID_CATEGORY", expected=CodeCategory.accepted())
        return None
    try:
        return CodeCategory(raw)
    except ValueError as error:
        raise InvalidRequestError(error="INVALID_CATEGORY", expected=CodeCategory.accepted()) from error


def _code_row(record: CodeRecord) -> CodeRowResponse:
    return CodeRowResponse(
        id=record.id,
        category=record.category,
        code=record.code,
        usedAt=record.used_at,
        createdAt=record.created_at,
    )


@router.get("/code-status", response_model=CodeStatusResponse, summary="Look up a code and its redemption")
async def code_status(
    code: Optional[str] = Query(None, description="Code value to look up"),
    category: Optional[str] = Query(None, description="Restrict the lookup to a category"),
    inventory: CodeInventoryService = Depends(get_inventory_service),
) -> CodeStatusResponse:
    parsed_category = parse_category(category, required=False)
    if not code:
        raise InvalidRequestError(error="INVALID_CODE", expected="code query param required")

    status = await inventory.lookup_by_code(code, parsed_category)
    if status is None:
        raise NotFoundError()

    used_record = None
    if status.redemption is not None:
        used_record = UsedRecordResponse(
            id=status.redemption.id,
            redeemedAt=status.redemption.redeemed_at,
            playerUserId=status.redemption.player_id,
            jobId=status.redemption.correlation_id,
        )
    return CodeStatusResponse(
        found=True,
        used=status.used,
        codeRow=_code_row(status.code),
        usedRecord=used_record,
    )


@router.get("/peek", response_model=PeekResponse, summary="Next code a redemption would receive")
async def peek_next_code(
    category: Optional[str] = Query(None, description="Category to peek"),
    inventory: CodeInventoryService = Depends(get_inventory_service),
) -> PeekResponse:
    parsed_category = parse_category(category, required=True)
    record = await inventory.peek_next_available(parsed_category)
    if record is None:
        raise OutOfStockError()
    return PeekResponse(id=record.id, code=record.code, category=record.category)
