import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from .dates import clamp_day
from .models import Billing, BillingStatus, Occupancy, Resident, Room
from .occupancy import get_active_occupancy
from .schemas import GenerationResults
from .settings import BillingRunConfig

logger = logging.getLogger(__name__)


def effective_billing_day(billing_date: int, year: int, month: int) -> int:
    # billing days past the end of a short month fall on its last day
    return clamp_day(year, month, billing_date).day


def due_date_for(billing_date: int, today: date) -> date:
    return clamp_day(today.year, today.month, billing_date)


def is_billing_day(billing_date: int, today: date) -> bool:
    return effective_billing_day(billing_date, today.year, today.month) == today.day


def billing_exists(session: Session, resident_id: int, due_date: date) -> bool:
    existing = session.exec(
        select(Billing).where(Billing.resident_id == resident_id, Billing.due_date == due_date)
    ).first()
    return existing is not None


def _build_billing(
    resident: Resident,
    occupancy: Occupancy,
    room: Room,
    due_date: date,
    today: date,
    config: BillingRunConfig,
) -> Billing:
    return Billing(
        resident_id=resident.id,
        occupancy_id=occupancy.id,
        amount=room.monthly_rate,
        due_date=due_date,
        status=BillingStatus.new_invoice.value,
        description=f"Monthly rent for {room.unit_number} - {today.strftime('%B %Y')}",
        billing_account=config.billing_account,
    )


def generate_monthly_billings(
    session: Session, config: BillingRunConfig, today: Optional[date] = None
) -> GenerationResults:
    """Create this month's invoice for every resident whose billing day is today.

    Safe to run repeatedly: a resident that already has a billing for the
    computed due date is counted as skipped. Each invoice is committed on its
    own so one bad resident does not abort the batch.
    """
    results = GenerationResults()
    if not config.enabled:
        logger.info("billing generation disabled; nothing to do")
        return results

    today = today or date.today()
    resident_ids = session.exec(select(Resident.id).order_by(Resident.id)).all()

    for resident_id in resident_ids:
        resident = session.get(Resident, resident_id)
        if resident is None:
            continue
        label = f"Resident {resident.id} ({resident.full_name})"
        try:
            if not is_billing_day(resident.billing_date, today):
                continue

            occ = get_active_occupancy(session, resident.id)
            room = session.get(Room, occ.room_id) if occ else None
            if occ is None or room is None:
                results.skipped += 1
                continue

            due_date = due_date_for(resident.billing_date, today)
            if billing_exists(session, resident.id, due_date):
                results.skipped += 1
                continue

            session.add(_build_billing(resident, occ, room, due_date, today, config))
            session.commit()
            results.generated += 1
        except Exception as e:
            session.rollback()
            results.errors.append(f"{label}: {e}")
            logger.exception("error generating billing for resident %s", resident_id)

    logger.info(
        "billing generation for %s: %d generated, %d skipped, %d errors",
        today.isoformat(),
        results.generated,
        results.skipped,
        len(results.errors),
    )
    return results


def upcoming_billings(session: Session, days: int, today: Optional[date] = None) -> List[Billing]:
    today = today or date.today()
    until = today + timedelta(days=days)
    return list(
        session.exec(
            select(Billing)
            .where(
                Billing.due_date >= today,
                Billing.due_date <= until,
                Billing.status != BillingStatus.paid.value,
            )
            .order_by(Billing.due_date)
        ).all()
    )


def mark_paid(session: Session, billing: Billing, invoice_file: Optional[str] = None) -> Billing:
    """Settle a billing. A receipt reference is mandatory."""
    invoice_file = invoice_file or billing.invoice_file
    if not invoice_file:
        raise ValueError("A receipt file is required to mark a billing as paid")
    billing.invoice_file = invoice_file
    billing.status = BillingStatus.paid.value
    billing.updated_at = datetime.utcnow()
    session.add(billing)
    return billing


def apply_billing_update(session: Session, billing: Billing, changes: Dict[str, Any]) -> Billing:
    """Apply a partial update; raises ValueError on a rule violation.

    A billing may only end up ``paid`` while it carries a receipt, whether
    the status or the receipt is what changed.
    """
    changes = dict(changes)
    new_due = changes.get("due_date")
    if new_due is not None and new_due != billing.due_date:
        if billing_exists(session, billing.resident_id, new_due):
            raise ValueError("Billing already exists for this due date")

    new_status = changes.pop("status", None)
    for key, value in changes.items():
        setattr(billing, key, value)
    if new_status == BillingStatus.paid.value:
        mark_paid(session, billing)
    elif new_status is not None:
        billing.status = new_status
    if billing.status == BillingStatus.paid.value and not billing.invoice_file:
        raise ValueError("A paid billing must keep its receipt file")

    billing.updated_at = datetime.utcnow()
    session.add(billing)
    return billing
