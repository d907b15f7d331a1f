from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlmodel import Session, select

from ..auth import get_current_user, require_any_role, require_role
from ..db import engine
from ..models import NextOfKin, Resident
from ..occupancy import get_active_occupancy
from ..residents import create_resident, delete_resident, update_resident
from ..schemas import NextOfKinCreate, ResidentCreate, ResidentUpdate


router = APIRouter(prefix="/api/residents", tags=["residents"])


def _ic_taken(session: Session, ic_number: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Resident.id).where(Resident.ic_number == ic_number)
    if exclude_id is not None:
        stmt = stmt.where(Resident.id != exclude_id)
    return session.exec(stmt).first() is not None


def _resident_out(session: Session, resident: Resident) -> dict:
    out = resident.model_dump()
    occ = get_active_occupancy(session, resident.id)
    out["active_occupancy"] = occ.model_dump() if occ else None
    return out


@router.get("")
def list_residents(
    search: Optional[str] = None,
    room_id: Optional[int] = None,
    current_user=Depends(get_current_user),
):
    with Session(engine) as session:
        stmt = select(Resident).order_by(Resident.full_name)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(Resident.full_name.ilike(pattern), Resident.ic_number.ilike(pattern))
            )
        if room_id is not None:
            stmt = stmt.where(Resident.room_id == room_id)
        return [r.model_dump() for r in session.exec(stmt).all()]


@router.post("", status_code=201)
def api_create_resident(payload: ResidentCreate, current_user=Depends(require_any_role("staff"))):
    with Session(engine) as session:
        if _ic_taken(session, payload.ic_number):
            raise HTTPException(status_code=400, detail="Resident with this IC number already exists")
        try:
            resident = create_resident(session, payload)
        except LookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return _resident_out(session, resident)


@router.get("/{resident_id}")
def get_resident(resident_id: int, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        resident = session.get(Resident, resident_id)
        if not resident:
            raise HTTPException(status_code=404, detail="Resident not found")
        return _resident_out(session, resident)


@router.put("/{resident_id}")
def api_update_resident(
    resident_id: int, payload: ResidentUpdate, current_user=Depends(require_any_role("staff"))
):
    changes = payload.model_dump(exclude_unset=True)
    with Session(engine) as session:
        if changes.get("ic_number") and _ic_taken(session, changes["ic_number"], exclude_id=resident_id):
            raise HTTPException(status_code=400, detail="Resident with this IC number already exists")
        try:
            resident = update_resident(session, resident_id, changes)
        except LookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return _resident_out(session, resident)


@router.delete("/{resident_id}")
def api_delete_resident(resident_id: int, current_user=Depends(require_role("admin"))):
    with Session(engine) as session:
        try:
            delete_resident(session, resident_id)
        except LookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"message": "Resident deleted successfully"}


@router.get("/{resident_id}/next-of-kin")
def list_next_of_kin(resident_id: int, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        if not session.get(Resident, resident_id):
            raise HTTPException(status_code=404, detail="Resident not found")
        rows = session.exec(select(NextOfKin).where(NextOfKin.resident_id == resident_id)).all()
        return [r.model_dump() for r in rows]


@router.post("/{resident_id}/next-of-kin", status_code=201)
def add_next_of_kin(
    resident_id: int, payload: NextOfKinCreate, current_user=Depends(require_any_role("staff"))
):
    with Session(engine) as session:
        if not session.get(Resident, resident_id):
            raise HTTPException(status_code=404, detail="Resident not found")
        kin = NextOfKin(resident_id=resident_id, **payload.model_dump())
        session.add(kin)
        session.commit()
        session.refresh(kin)
        return kin.model_dump()
