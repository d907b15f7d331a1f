from datetime import date
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import func
from sqlmodel import Session, select

from .billing import upcoming_billings
from .models import Resident, Room, RoomStatus, Visitor, VisitorStatus


class DashboardStats(BaseModel):
    resident_count: int
    room_count: int
    occupied_rooms: int
    occupancy_rate: int  # whole percent
    pending_renewals: int
    visitor_requests: int


def _count(session: Session, stmt) -> int:
    return session.exec(stmt).one()


def dashboard_stats(session: Session, reminder_days: int, today: Optional[date] = None) -> DashboardStats:
    rooms = _count(session, select(func.count(Room.id)))
    occupied = _count(
        session, select(func.count(Room.id)).where(Room.status == RoomStatus.occupied.value)
    )
    return DashboardStats(
        resident_count=_count(session, select(func.count(Resident.id))),
        room_count=rooms,
        occupied_rooms=occupied,
        occupancy_rate=round(occupied * 100 / rooms) if rooms else 0,
        pending_renewals=len(upcoming_billings(session, reminder_days, today=today)),
        visitor_requests=_count(
            session,
            select(func.count(Visitor.id)).where(Visitor.status == VisitorStatus.pending.value),
        ),
    )
