import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from .models import Billing, NextOfKin, Occupancy, Resident, Room, Visitor
from .occupancy import (
    activate_occupancy,
    deactivate_occupancy,
    default_term,
    get_active_occupancy,
    recompute_room_status,
)
from .schemas import NextOfKinCreate, ResidentCreate

logger = logging.getLogger(__name__)


def _require_room(session: Session, room_id: int) -> Room:
    room = session.get(Room, room_id)
    if room is None:
        raise LookupError(f"Room {room_id} not found")
    return room


def create_resident(
    session: Session,
    data: ResidentCreate,
    next_of_kin: Optional[List[NextOfKinCreate]] = None,
    today: Optional[date] = None,
) -> Resident:
    fields = data.model_dump(exclude={"room_id", "next_of_kin"})
    if data.room_id is not None:
        _require_room(session, data.room_id)

    resident = Resident(**fields)
    session.add(resident)
    session.flush()

    for kin in next_of_kin if next_of_kin is not None else data.next_of_kin:
        session.add(NextOfKin(resident_id=resident.id, **kin.model_dump()))

    if data.room_id is not None:
        start, end = default_term(today)
        activate_occupancy(session, resident.id, data.room_id, start, end)

    session.commit()
    session.refresh(resident)
    logger.info("created resident %s room=%s", resident.id, resident.room_id)
    return resident


def update_resident(
    session: Session, resident_id: int, changes: Dict[str, Any], today: Optional[date] = None
) -> Resident:
    """Apply ``changes`` and reconcile the room assignment.

    ``changes`` holds only the fields the caller sent. ``room_id`` absent
    means leave the assignment alone; ``room_id`` None means move out.
    """
    resident = session.get(Resident, resident_id)
    if resident is None:
        raise LookupError(f"Resident {resident_id} not found")

    room_requested = "room_id" in changes
    new_room_id = changes.get("room_id")
    for key, value in changes.items():
        if key == "room_id":
            continue
        setattr(resident, key, value)
    resident.updated_at = datetime.utcnow()
    session.add(resident)
    session.flush()

    if room_requested:
        current = get_active_occupancy(session, resident_id)
        old_room_id = current.room_id if current else None

        if new_room_id is None:
            if current is not None:
                deactivate_occupancy(session, resident_id)
        elif new_room_id != old_room_id:
            _require_room(session, new_room_id)
            if current is not None:
                deactivate_occupancy(session, resident_id)
            start, end = default_term(today)
            activate_occupancy(session, resident_id, new_room_id, start, end)

    session.commit()
    session.refresh(resident)
    return resident


def delete_resident(session: Session, resident_id: int) -> None:
    resident = session.get(Resident, resident_id)
    if resident is None:
        raise LookupError(f"Resident {resident_id} not found")

    # children first; billings reference both resident and occupancy
    session.exec(delete(Billing).where(Billing.resident_id == resident_id))
    session.exec(delete(NextOfKin).where(NextOfKin.resident_id == resident_id))
    session.flush()

    occupancies = session.exec(select(Occupancy).where(Occupancy.resident_id == resident_id)).all()
    for occ in occupancies:
        room_id = occ.room_id
        session.delete(occ)
        session.flush()
        recompute_room_status(session, room_id)

    visitors = session.exec(select(Visitor).where(Visitor.resident_id == resident_id)).all()
    for v in visitors:
        v.resident_id = None
        session.add(v)

    resident.room_id = None
    session.add(resident)
    session.flush()
    session.delete(resident)
    session.commit()
    logger.info("deleted resident %s", resident_id)
