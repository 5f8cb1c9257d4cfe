"""Player-facing redemption endpoint."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, StrictInt, ValidationError, field_validator

from codepool_api.api.dependencies.redemption import get_redemption_coordinator
from codepool_api.api.dependencies.security import require_redeem_api_key
from codepool_api.core.errors import (
    REDEEM_BODY_SHAPE,
    AlreadyRedeemedError,
    InvalidRequestError,
    OutOfStockError,
    StoreUnavailableError,
)
from codepool_api.core.settings import settings
from codepool_api.models.code import BIGINT_MAX, CodeCategory
from codepool_api.services.redemption import (
    Allocated,
    AlreadyRedeemed,
    OutOfStock,
    RedemptionCoordinator,
)


router = APIRouter(tags=["redemption"])


class RedeemRequest(BaseModel):
    category: CodeCategory = Field(..., description="Reward category to redeem from")
    playerUserId: StrictInt = Field(..., ge=0, le=BIGINT_MAX, description="Redeeming player identifier")
    jobId: Optional[str] = Field(None, description="Caller correlation id, truncated when stored")

    @field_validator("jobId", mode="before")
    @classmethod
    def _ignore_non_string_job_id(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value else None


class RedeemResponse(BaseModel):
    code: str
    alreadyRedeemed: Optional[bool] = None


async def parse_redeem_request(
    request: Request,
    _: None = Depends(require_redeem_api_key),
) -> RedeemRequest:
    """Read the body only once the caller is authenticated."""

    raw = await request.body()
    try:
        return RedeemRequest.model_validate_json(raw)
    except ValidationError as error:
        if any(item["type"] == "json_invalid" for item in error.errors()):
            raise InvalidRequestError(error="INVALID_JSON") from error
        raise InvalidRequestError(expected=REDEEM_BODY_SHAPE) from error


@router.post(
    "/redeem",
    response_model=RedeemResponse,
    response_model_exclude_none=True,
    summary="Redeem a code for a player",
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": RedeemRequest.model_json_schema()}},
        }
    },
)
async def redeem_code(
    payload: RedeemRequest = Depends(parse_redeem_request),
    coordinator: RedemptionCoordinator = Depends(get_redemption_coordinator),
) -> RedeemResponse:
    result = await coordinator.redeem(payload.category, payload.playerUserId, payload.jobId)

    if isinstance(result, Allocated):
        return RedeemResponse(code=result.code)
    if isinstance(result, AlreadyRedeemed):
        if settings.redeem_conflict_on_replay:
            raise AlreadyRedeemedError(code=result.code)
        return RedeemResponse(code=result.code, alreadyRedeemed=True)
    if isinstance(result, OutOfStock):
        raise OutOfStockError()
    raise StoreUnavailableError(result.cause)
