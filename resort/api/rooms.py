from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from ..auth import get_current_user, require_any_role, require_role
from ..db import engine
from ..models import Occupancy, Room, RoomStatus
from ..occupancy import list_active_for_room, recompute_room_status
from ..schemas import RoomCreate, RoomUpdate


router = APIRouter(prefix="/api/rooms", tags=["rooms"])


def _unit_taken(session: Session, unit_number: str) -> bool:
    return session.exec(select(Room).where(Room.unit_number == unit_number)).first() is not None


@router.get("")
def list_rooms(status: Optional[str] = None, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        stmt = select(Room).order_by(Room.unit_number)
        if status:
            stmt = stmt.where(Room.status == status)
        return [r.model_dump() for r in session.exec(stmt).all()]


@router.post("", status_code=201)
def create_room(payload: RoomCreate, current_user=Depends(require_any_role("staff"))):
    with Session(engine) as session:
        if _unit_taken(session, payload.unit_number):
            raise HTTPException(status_code=400, detail="Unit number already exists")
        room = Room(**payload.model_dump())
        session.add(room)
        session.commit()
        session.refresh(room)
        return room.model_dump()


@router.get("/{room_id}")
def get_room(room_id: int, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        room = session.get(Room, room_id)
        if not room:
            raise HTTPException(status_code=404, detail="Room not found")
        out = room.model_dump()
        out["occupancies"] = [o.model_dump() for o in list_active_for_room(session, room_id)]
        return out


@router.put("/{room_id}")
def update_room(room_id: int, payload: RoomUpdate, current_user=Depends(require_any_role("staff"))):
    with Session(engine) as session:
        room = session.get(Room, room_id)
        if not room:
            raise HTTPException(status_code=404, detail="Room not found")
        changes = payload.model_dump(exclude_unset=True)
        clear_flag = changes.get("status") == RoomStatus.vacant.value
        if clear_flag:
            changes.pop("status")
        elif changes.get("status") and list_active_for_room(session, room_id):
            raise HTTPException(status_code=400, detail="Room is occupied")
        new_unit = changes.get("unit_number")
        if new_unit and new_unit != room.unit_number and _unit_taken(session, new_unit):
            raise HTTPException(status_code=400, detail="Unit number already exists")
        for key, value in changes.items():
            setattr(room, key, value)
        room.updated_at = datetime.utcnow()
        session.add(room)
        session.flush()
        if clear_flag:
            # back to whatever the ledger says
            recompute_room_status(session, room_id)
        session.commit()
        session.refresh(room)
        return room.model_dump()


@router.delete("/{room_id}")
def delete_room(room_id: int, current_user=Depends(require_role("admin"))):
    with Session(engine) as session:
        room = session.get(Room, room_id)
        if not room:
            raise HTTPException(status_code=404, detail="Room not found")
        history = session.exec(select(Occupancy).where(Occupancy.room_id == room_id)).first()
        if history:
            raise HTTPException(status_code=400, detail="Room has occupancy history")
        session.delete(room)
        session.commit()
        return {"deleted": True}


@router.get("/{room_id}/occupancy")
def room_occupancy(room_id: int, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        if not session.get(Room, room_id):
            raise HTTPException(status_code=404, detail="Room not found")
        active = list_active_for_room(session, room_id)
        return {
            "room_id": room_id,
            "active_occupancy_count": len(active),
            "occupancies": [o.model_dump() for o in active],
        }
