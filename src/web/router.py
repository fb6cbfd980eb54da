"""HTTP routes for push registration, price events and batch flushing."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.session import get_db_session
from src.services.push_service import PushBatchService
from src.taskiq_app.tasks import enqueue_price_submitted, flush_due_push_batches

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/push", tags=["push"])


class PushRegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    expo_push_token: str = Field(alias="expoPushToken", min_length=1)
    favorite_stores: list[str] = Field(default_factory=list, alias="favoriteStores")

    @field_validator("expo_push_token")
    @classmethod
    def _strip_token(cls, value: str) -> str:
        token = value.strip()
        if not token:
            raise ValueError("expoPushToken (string) is required")
        return token

    @field_validator("favorite_stores", mode="before")
    @classmethod
    def _parse_favorite_stores(cls, value: object) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item).strip() for item in value if str(item).strip()]


class PriceSubmittedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    store_name: str | None = Field(default=None, alias="storeName")


def _error_response(error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": error, "message": str(exc) or type(exc).__name__},
    )


@router.post("/register", response_model=None)
async def register_push(
    payload: PushRegisterRequest,
    session: AsyncSession = Depends(get_db_session),
) -> dict[str, object] | JSONResponse:
    """Register or update a device's push token and favorite stores."""

    try:
        await PushBatchService(session).register(
            payload.expo_push_token, payload.favorite_stores
        )
    except Exception as e:
        logger.exception("Push register failed")
        return _error_response("Failed to register push", e)
    return {"ok": True}


@router.post("/price-submitted", status_code=status.HTTP_202_ACCEPTED)
async def price_submitted(payload: PriceSubmittedRequest) -> dict[str, bool]:
    """Accept a price event and batch it in the background."""

    queued = await enqueue_price_submitted(payload.store_name)
    return {"queued": queued}


@router.post("/process-batches", response_model=None)
async def process_batches() -> dict[str, object] | JSONResponse:
    """Process due batches and send pushes. Called by an external cron."""

    try:
        result = await flush_due_push_batches()
    except Exception as e:
        logger.exception("Process batches failed")
        return _error_response("Failed to process batches", e)
    return {"sent": result["sent"], "errors": result["errors"]}
