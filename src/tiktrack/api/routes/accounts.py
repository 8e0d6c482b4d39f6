"""Tracked-account management and cached profile reads."""
import json
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from tiktrack.db.engine import get_engine, get_session
from tiktrack.db.store import RecordStore
from tiktrack.models.profile import ProfileAnalytics, ProfileRecord, TrackedAccount

router = APIRouter()


class TrackRequest(BaseModel):
    account_id: str
    handle: str


@router.get("", response_model=List[TrackedAccount])
def list_accounts(session: Session = Depends(get_session)):
    return session.exec(select(TrackedAccount).order_by(TrackedAccount.account_id)).all()


@router.post("", response_model=TrackedAccount)
def track_account(request: TrackRequest, engine=Depends(get_engine)):
    """Start tracking an account. Its profile is fetched by the next batch."""
    handle = request.handle.lstrip("@")
    return RecordStore(engine).add_tracked_account(request.account_id, handle)


@router.delete("/{account_id}")
def untrack_account(account_id: str, engine=Depends(get_engine)):
    """Stop tracking an account and drop everything cached for it."""
    if not RecordStore(engine).remove_tracked_account(account_id):
        raise HTTPException(status_code=404, detail=f"Account {account_id} is not tracked")
    return {"success": True, "account_id": account_id}


@router.get("/{account_id}/profile")
def account_profile(account_id: str, session: Session = Depends(get_session)):
    """Return the cached profile record and analytics for one account."""
    profile = session.get(ProfileRecord, account_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No cached profile for {account_id}")
    analytics = session.get(ProfileAnalytics, account_id)
    return {
        "profile": profile.model_dump(),
        "analytics": _analytics_dict(analytics),
    }


def _analytics_dict(analytics):
    if analytics is None:
        return None
    data = analytics.model_dump(exclude={"top_hashtags_json"})
    data["top_hashtags"] = json.loads(analytics.top_hashtags_json or "[]")
    return data
