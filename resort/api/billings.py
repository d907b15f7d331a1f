from __future__ import annotations

import json
import os
import shutil
import time
import uuid
from datetime import date
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from sqlmodel import Session, select

from ..auth import get_current_user, require_any_role, require_staff_or_cron
from ..billing import (
    apply_billing_update,
    billing_exists,
    generate_monthly_billings,
    mark_paid,
    upcoming_billings,
)
from ..db import engine
from ..models import AuditLog, Billing, BillingStatus, Resident
from ..notifications import GatewayError, NotificationError, send_billing_reminder
from ..schemas import BillingCreate, BillingUpdate
from ..settings import billing_run_config, load_settings


router = APIRouter(prefix="/api/billings", tags=["billings"])

RECEIPT_URL_PREFIX = "/uploads/"


def _upload_dir() -> Path:
    return Path(os.getenv("UPLOAD_DIR", "./data/uploads")).resolve()


def _receipt_path(invoice_file: str) -> Optional[Path]:
    # only files below the upload dir are served
    if not invoice_file.startswith(RECEIPT_URL_PREFIX):
        return None
    root = _upload_dir()
    path = (root / invoice_file[len(RECEIPT_URL_PREFIX):]).resolve()
    if root not in path.parents or not path.is_file():
        return None
    return path


def _get_billing(session: Session, billing_id: int) -> Billing:
    billing = session.get(Billing, billing_id)
    if not billing:
        raise HTTPException(status_code=404, detail="Billing not found")
    return billing


@router.post("/generate")
def api_generate_billings(current_user=Depends(require_staff_or_cron)):
    today = date.today()
    with Session(engine) as session:
        config = billing_run_config(load_settings(session))
        results = generate_monthly_billings(session, config, today=today)
    if not config.enabled:
        message = "Billing generation is disabled in settings"
    else:
        message = (
            f"Billing generation completed: {results.generated} generated, "
            f"{results.skipped} skipped"
        )
    return {"message": message, "results": results.model_dump(), "date": today.isoformat()}


@router.get("")
def list_billings(
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    resident_id: Optional[int] = None,
    current_user=Depends(get_current_user),
):
    with Session(engine) as session:
        stmt = select(Billing).order_by(Billing.due_date.desc())
        if status:
            stmt = stmt.where(Billing.status == status)
        if date_from:
            stmt = stmt.where(Billing.due_date >= date_from)
        if date_to:
            stmt = stmt.where(Billing.due_date <= date_to)
        if resident_id is not None:
            stmt = stmt.where(Billing.resident_id == resident_id)
        return [b.model_dump() for b in session.exec(stmt).all()]


@router.post("", status_code=201)
def create_billing(payload: BillingCreate, current_user=Depends(require_any_role("staff"))):
    if payload.status == BillingStatus.paid.value:
        raise HTTPException(status_code=400, detail="A receipt file is required to mark a billing as paid")
    with Session(engine) as session:
        if not session.get(Resident, payload.resident_id):
            raise HTTPException(status_code=404, detail="Resident not found")
        if billing_exists(session, payload.resident_id, payload.due_date):
            raise HTTPException(status_code=400, detail="Billing already exists for this due date")
        billing = Billing(**payload.model_dump())
        session.add(billing)
        session.commit()
        session.refresh(billing)
        return billing.model_dump()


@router.get("/upcoming")
def get_upcoming_billings_default(current_user=Depends(get_current_user)):
    """Unpaid billings inside the configured reminder window."""
    with Session(engine) as session:
        days = load_settings(session).billing_reminder_days
        return {"days": days, "billings": [b.model_dump() for b in upcoming_billings(session, days)]}


@router.get("/upcoming/{days}")
def get_upcoming_billings(days: int, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        return [b.model_dump() for b in upcoming_billings(session, days)]


@router.get("/{billing_id}")
def get_billing(billing_id: int, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        return _get_billing(session, billing_id).model_dump()


@router.put("/{billing_id}")
def update_billing(
    billing_id: int, payload: BillingUpdate, current_user=Depends(require_any_role("staff"))
):
    with Session(engine) as session:
        billing = _get_billing(session, billing_id)
        try:
            apply_billing_update(session, billing, payload.model_dump(exclude_unset=True))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        session.commit()
        session.refresh(billing)
        return billing.model_dump()


@router.post("/{billing_id}/mark-paid")
def api_mark_paid(
    billing_id: int,
    receipt: UploadFile = File(...),
    current_user=Depends(require_any_role("staff")),
):
    if receipt.content_type != "application/pdf":
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")
    with Session(engine) as session:
        billing = _get_billing(session, billing_id)

        dest_dir = _upload_dir() / "receipts"
        dest_dir.mkdir(parents=True, exist_ok=True)
        filename = f"receipt-{billing_id}-{int(time.time())}-{uuid.uuid4().hex[:8]}.pdf"
        dest_path = dest_dir / filename
        with open(dest_path, "wb") as out_f:
            shutil.copyfileobj(receipt.file, out_f)
        receipt.file.close()

        before = json.dumps({"status": billing.status})
        try:
            mark_paid(session, billing, invoice_file=f"{RECEIPT_URL_PREFIX}receipts/{filename}")
            session.add(
                AuditLog(
                    actor_id=current_user.id,
                    action="billing_paid",
                    before=before,
                    after=json.dumps({"billing_id": billing_id, "status": billing.status}),
                )
            )
            session.commit()
        except Exception:
            # nothing references the file after a failed commit
            dest_path.unlink(missing_ok=True)
            raise
        session.refresh(billing)
        return billing.model_dump()


@router.get("/{billing_id}/receipt")
def get_receipt(billing_id: int, current_user=Depends(get_current_user)):
    with Session(engine) as session:
        billing = _get_billing(session, billing_id)
        invoice_file = billing.invoice_file
    if not invoice_file:
        raise HTTPException(status_code=404, detail="Receipt not found")
    if invoice_file.startswith(("http://", "https://")):
        return RedirectResponse(invoice_file)
    path = _receipt_path(invoice_file)
    if path is None:
        raise HTTPException(status_code=404, detail="Receipt file not found")
    return FileResponse(
        path,
        media_type="application/pdf",
        filename=f"receipt-{billing_id}.pdf",
        content_disposition_type="inline",
    )


@router.post("/{billing_id}/send-reminder")
def api_send_reminder(billing_id: int, current_user=Depends(require_any_role("staff"))):
    with Session(engine) as session:
        billing = _get_billing(session, billing_id)
        if billing.status == BillingStatus.paid.value:
            raise HTTPException(status_code=400, detail="Billing is already paid")
        try:
            resident = send_billing_reminder(session, billing)
        except GatewayError as e:
            raise HTTPException(status_code=502, detail=str(e))
        except NotificationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        session.add(
            AuditLog(
                actor_id=current_user.id,
                action="billing_reminder",
                after=json.dumps({"billing_id": billing_id, "resident_id": resident.id}),
            )
        )
        session.commit()
        return {
            "message": "Payment reminder sent successfully",
            "billing_id": billing_id,
            "recipient_name": resident.full_name,
            "recipient_phone": resident.phone,
        }
