"""Refresh trigger, status and cache-invalidation routes."""
from datetime import datetime
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tiktrack.config import get_settings
from tiktrack.db.engine import get_engine
from tiktrack.models.timestamps import utcnow
from tiktrack.provider.client import TikTokClient
from tiktrack.refresh.errors import FatalRefreshError
from tiktrack.refresh.invalidation import invalidate
from tiktrack.refresh.ledger import StatusLedger
from tiktrack.refresh.orchestrator import BatchRefresher
from tiktrack.refresh.staleness import is_refresh_due

router = APIRouter()


class RefreshStatusResponse(BaseModel):
    last_refresh_time: Optional[datetime]
    needs_refresh: bool
    refresh_count: int
    data_changed: bool


class RefreshResponse(BaseModel):
    refreshed_count: int
    attempted: int
    synthesized_count: int
    data_changed: bool
    last_refresh_time: Optional[datetime]
    rate_limited: bool
    ledger_write_failed: bool
    dominant_failure: Optional[str]


class InvalidateRequest(BaseModel):
    account_id: str


async def get_refresher(engine=Depends(get_engine)) -> AsyncGenerator[BatchRefresher, None]:
    """Dependency: a BatchRefresher with a provider client closed after the request."""
    async with TikTokClient() as client:
        yield BatchRefresher(provider=client, engine=engine)


@router.get("/status", response_model=RefreshStatusResponse)
def refresh_status(engine=Depends(get_engine)):
    """Return the last refresh time and whether a refresh is due."""
    snapshot = StatusLedger(engine).get_last_refresh()
    last = snapshot.last_refresh_time if snapshot else None
    return RefreshStatusResponse(
        last_refresh_time=last,
        needs_refresh=is_refresh_due(
            last, utcnow(), get_settings().refresh_threshold_hours
        ),
        refresh_count=snapshot.refresh_count if snapshot else 0,
        data_changed=snapshot.data_changed if snapshot else False,
    )


@router.post("", response_model=RefreshResponse)
async def trigger_refresh(refresher: BatchRefresher = Depends(get_refresher)):
    """
    Run one batch refresh over all tracked accounts.

    Responds 429 when the provider rate-limited every attempt, 500 on a
    fatal (configuration-class) failure, 200 otherwise.
    """
    try:
        outcome = await refresher.run()
    except FatalRefreshError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    body = RefreshResponse(**outcome.to_dict())
    return JSONResponse(status_code=outcome.http_status, content=jsonable_encoder(body))


@router.post("/invalidate")
def invalidate_account(request: InvalidateRequest, engine=Depends(get_engine)):
    """Drop one account's cached profile and analytics."""
    invalidate(engine, request.account_id)
    return {"success": True, "account_id": request.account_id}


@router.post("/bootstrap")
def bootstrap_ledger(engine=Depends(get_engine)):
    """Create the refresh status table if it is missing."""
    if not StatusLedger(engine).ensure_bootstrap():
        raise HTTPException(status_code=500, detail="Failed to set up refresh status table")
    return {"success": True}
