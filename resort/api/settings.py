from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..auth import require_role
from ..db import engine
from ..schemas import SettingsUpdate
from ..settings import load_settings, update_settings


router = APIRouter(prefix="/api/settings", tags=["settings"])


def _settings_out(row) -> dict:
    out = row.model_dump()
    # never echo the gateway secret back
    out["wabot_access_token"] = "********" if row.wabot_access_token else None
    return out


@router.get("")
def get_settings(current_user=Depends(require_role("admin"))):
    with Session(engine) as session:
        return _settings_out(load_settings(session))


@router.put("")
def put_settings(payload: SettingsUpdate, current_user=Depends(require_role("admin"))):
    with Session(engine) as session:
        return _settings_out(update_settings(session, payload.model_dump(exclude_unset=True)))
