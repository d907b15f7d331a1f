from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..auth import get_current_user
from ..dashboard import dashboard_stats
from ..db import engine
from ..settings import load_settings


router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
def get_dashboard_stats(current_user=Depends(get_current_user)):
    with Session(engine) as session:
        reminder_days = load_settings(session).billing_reminder_days
        return dashboard_stats(session, reminder_days).model_dump()
