import json
import logging
import secrets
from datetime import date, datetime
from typing import Optional, Tuple

from sqlmodel import Session, select

from .models import AuditLog, Visitor, VisitorStatus
from .schemas import PublicVisitorRegistration, VisitorCreate

logger = logging.getLogger(__name__)

# verification outcomes
VALID = "valid"
INVALID = "invalid"
NOT_APPROVED = "not_approved"
EXPIRED = "expired"


class InvalidTransition(ValueError):
    pass


def new_qr_token() -> str:
    # 256 bits, URL safe so it can sit in a verification link
    return secrets.token_urlsafe(32)


def register_visitor(session: Session, data: VisitorCreate) -> Visitor:
    visitor = Visitor(**data.model_dump(), status=VisitorStatus.pending.value)
    session.add(visitor)
    session.commit()
    session.refresh(visitor)
    return visitor


def register_public_visitor(session: Session, data: PublicVisitorRegistration) -> Visitor:
    purpose = data.other_purpose.strip() if data.purpose == "Other" else data.purpose
    visitor = Visitor(
        full_name=data.full_name,
        email=data.email,
        phone=data.phone,
        resident_name=data.resident_name,
        room_number=data.room_number,
        visit_date=data.visit_date,
        visit_time=data.visit_time,
        vehicle_number=data.vehicle_number,
        number_of_visitors=data.number_of_visitors,
        purpose=purpose,
        status=VisitorStatus.pending.value,
    )
    session.add(visitor)
    session.commit()
    session.refresh(visitor)
    return visitor


def _decide(session: Session, visitor_id: int, actor_id: Optional[int], status: VisitorStatus) -> Visitor:
    visitor = session.get(Visitor, visitor_id)
    if visitor is None:
        raise LookupError(f"Visitor {visitor_id} not found")
    if visitor.status != VisitorStatus.pending.value:
        raise InvalidTransition(f"Visitor is already {visitor.status}")

    before = json.dumps({"status": visitor.status})
    now = datetime.utcnow()
    visitor.status = status.value
    visitor.approved_by_id = actor_id
    visitor.approved_at = now
    visitor.updated_at = now
    if status == VisitorStatus.approved:
        visitor.qr_code = new_qr_token()
    session.add(visitor)
    session.add(
        AuditLog(
            actor_id=actor_id,
            action=f"visitor_{status.value}",
            before=before,
            after=json.dumps({"visitor_id": visitor_id, "status": visitor.status}),
        )
    )
    session.commit()
    session.refresh(visitor)
    logger.info("visitor %s %s by user %s", visitor_id, status.value, actor_id)
    return visitor


def approve_visitor(session: Session, visitor_id: int, actor_id: Optional[int] = None) -> Visitor:
    return _decide(session, visitor_id, actor_id, VisitorStatus.approved)


def reject_visitor(session: Session, visitor_id: int, actor_id: Optional[int] = None) -> Visitor:
    return _decide(session, visitor_id, actor_id, VisitorStatus.rejected)


def verify_visitor_token(
    session: Session, token: str, today: Optional[date] = None
) -> Tuple[str, Optional[Visitor]]:
    """Classify a scanned token as valid, invalid, not_approved or expired."""
    visitor = session.exec(select(Visitor).where(Visitor.qr_code == token)).first()
    if visitor is None:
        return INVALID, None
    if visitor.status != VisitorStatus.approved.value:
        return NOT_APPROVED, visitor
    today = today or date.today()
    if visitor.visit_date < today:
        return EXPIRED, visitor
    return VALID, visitor
