from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlmodel import Session, select

from ..auth import get_current_user, require_any_role
from ..db import engine
from ..models import Visitor
from ..notifications import notify_visitor_decision
from ..schemas import VisitorCreate
from ..visitors import InvalidTransition, approve_visitor, register_visitor, reject_visitor


router = APIRouter(prefix="/api/visitors", tags=["visitors"])


@router.get("")
def list_visitors(status: Optional[str] = None, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        stmt = select(Visitor).order_by(Visitor.visit_date.desc())
        if status:
            stmt = stmt.where(Visitor.status == status)
        return [v.model_dump() for v in session.exec(stmt).all()]


@router.post("", status_code=201)
def create_visitor(payload: VisitorCreate, current_user=Depends(require_any_role("staff"))):
    with Session(engine) as session:
        return register_visitor(session, payload).model_dump()


@router.get("/{visitor_id}")
def get_visitor(visitor_id: int, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        visitor = session.get(Visitor, visitor_id)
        if not visitor:
            raise HTTPException(status_code=404, detail="Visitor not found")
        return visitor.model_dump()


def _apply_decision(decision, visitor_id: int, current_user, background_tasks: BackgroundTasks) -> dict:
    with Session(engine) as session:
        try:
            visitor = decision(session, visitor_id, actor_id=current_user.id)
        except LookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except InvalidTransition as e:
            raise HTTPException(status_code=400, detail=str(e))
        out = visitor.model_dump()
    # the status change is committed; delivery is best effort
    background_tasks.add_task(notify_visitor_decision, visitor_id)
    return out


@router.post("/{visitor_id}/approve")
def api_approve_visitor(
    visitor_id: int,
    background_tasks: BackgroundTasks,
    current_user=Depends(require_any_role("staff")),
):
    return _apply_decision(approve_visitor, visitor_id, current_user, background_tasks)


@router.post("/{visitor_id}/reject")
def api_reject_visitor(
    visitor_id: int,
    background_tasks: BackgroundTasks,
    current_user=Depends(require_any_role("staff")),
):
    return _apply_decision(reject_visitor, visitor_id, current_user, background_tasks)
