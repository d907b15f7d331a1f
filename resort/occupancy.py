"""Occupancy ledger.

The occupancy table is the source of truth for who lives where. ``Room.status``
is a cache of it: ``occupied`` while at least one active row points at the
room, ``vacant`` otherwise.

None of these functions commit. Callers run a whole lifecycle operation in
one session and commit once, so a failure part way through leaves the ledger
as it was.
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from .dates import add_months
from .models import Occupancy, Resident, Room, RoomStatus

logger = logging.getLogger(__name__)

DEFAULT_TERM_MONTHS = 12


def default_term(today: Optional[date] = None):
    start = today or date.today()
    return start, add_months(start, DEFAULT_TERM_MONTHS)


def get_active_occupancy(session: Session, resident_id: int) -> Optional[Occupancy]:
    return session.exec(
        select(Occupancy)
        .where(Occupancy.resident_id == resident_id, Occupancy.active == True)  # noqa: E712
        .order_by(Occupancy.id.desc())
    ).first()


def list_active_for_room(session: Session, room_id: int) -> List[Occupancy]:
    return list(
        session.exec(
            select(Occupancy).where(
                Occupancy.room_id == room_id, Occupancy.active == True  # noqa: E712
            )
        ).all()
    )


def count_active_for_room(session: Session, room_id: int) -> int:
    return session.exec(
        select(func.count(Occupancy.id)).where(
            Occupancy.room_id == room_id, Occupancy.active == True  # noqa: E712
        )
    ).one()


def recompute_room_status(session: Session, room_id: int) -> Optional[str]:
    room = session.get(Room, room_id)
    if room is None:
        return None
    count = count_active_for_room(session, room_id)
    status = RoomStatus.occupied.value if count > 0 else RoomStatus.vacant.value
    if room.status != status:
        room.status = status
        room.updated_at = datetime.utcnow()
        session.add(room)
        session.flush()
    return status


def _deactivate(session: Session, rows: List[Occupancy]) -> set:
    rooms = set()
    for occ in rows:
        occ.active = False
        occ.updated_at = datetime.utcnow()
        session.add(occ)
        rooms.add(occ.room_id)
    session.flush()
    return rooms


def deactivate_occupancy(session: Session, resident_id: int) -> List[Occupancy]:
    rows = list(
        session.exec(
            select(Occupancy).where(
                Occupancy.resident_id == resident_id, Occupancy.active == True  # noqa: E712
            )
        ).all()
    )
    if not rows:
        return []
    vacated = _deactivate(session, rows)

    resident = session.get(Resident, resident_id)
    if resident is not None and resident.room_id is not None:
        resident.room_id = None
        session.add(resident)
        session.flush()

    for room_id in vacated:
        recompute_room_status(session, room_id)
    logger.info("deactivated occupancy for resident %s in rooms %s", resident_id, sorted(vacated))
    return rows


def activate_occupancy(
    session: Session,
    resident_id: int,
    room_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Occupancy:
    """Make ``room_id`` the resident's only active occupancy.

    Both rows are selected FOR UPDATE so two assignments touching the same
    room or resident serialize on databases that support row locks.
    Raises LookupError if the resident or room does not exist.
    """
    resident = session.exec(
        select(Resident).where(Resident.id == resident_id).with_for_update()
    ).first()
    if resident is None:
        raise LookupError(f"Resident {resident_id} not found")
    room = session.exec(select(Room).where(Room.id == room_id).with_for_update()).first()
    if room is None:
        raise LookupError(f"Room {room_id} not found")

    if start_date is None:
        start_date, default_end = default_term()
        end_date = end_date or default_end
    elif end_date is None:
        end_date = add_months(start_date, DEFAULT_TERM_MONTHS)

    # previous home of this resident
    affected = deactivate_occupancy(session, resident_id)
    affected_rooms = {occ.room_id for occ in affected}

    # whoever is still active in the target room is displaced
    displaced = list_active_for_room(session, room_id)
    if displaced:
        _deactivate(session, displaced)
        for occ in displaced:
            other = session.get(Resident, occ.resident_id)
            if other is not None and other.room_id == room_id:
                other.room_id = None
                session.add(other)
        logger.warning(
            "room %s had %d active occupancies before assigning resident %s",
            room_id,
            len(displaced),
            resident_id,
        )

    occ = Occupancy(
        resident_id=resident_id,
        room_id=room_id,
        start_date=start_date,
        end_date=end_date,
        active=True,
    )
    session.add(occ)
    resident.room_id = room_id
    resident.updated_at = datetime.utcnow()
    session.add(resident)
    session.flush()

    for other_room in affected_rooms - {room_id}:
        recompute_room_status(session, other_room)
    recompute_room_status(session, room_id)
    return occ
