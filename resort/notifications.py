"""WhatsApp notifications through the Wabot gateway.

Notifications are best effort: ``notify_visitor_decision`` runs as a
background task after the visitor's status has been committed and never
raises.
"""
import logging
import os
import re
from typing import Dict, Optional

import httpx
from pydantic import BaseModel
from sqlmodel import Session

from .db import engine
from .models import AppSettings, Billing, Resident, Visitor, VisitorStatus
from .settings import load_settings

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://app.wabot.my/api"
REQUEST_TIMEOUT = 10.0

VISITOR_APPROVED_TEMPLATE = (
    "Hello {name}, your visit to {property} on {visit_date} {visit_time} has been approved. "
    "Your visitor pass code is {token}. Show it at the entrance or open {verify_url}"
)
VISITOR_REJECTED_TEMPLATE = (
    "Hello {name}, we are unable to approve your visit to {property} on {visit_date}. "
    "Please contact us at {contact_phone} for assistance."
)
BILLING_REMINDER_TEMPLATE = (
    "Hello {name}, this is a reminder from {property} that your payment of {amount} "
    "for {description} is due on {due_date}. Please contact us at {contact_phone} for any questions."
)


class NotificationError(Exception):
    pass


class GatewayError(NotificationError):
    """The gateway was reached but refused or failed the request."""


class WabotCredentials(BaseModel):
    api_base_url: str = DEFAULT_API_BASE_URL
    instance_id: Optional[str] = None
    access_token: Optional[str] = None


def credentials_from_settings(row: AppSettings) -> WabotCredentials:
    # settings row wins, environment is the fallback
    return WabotCredentials(
        api_base_url=row.wabot_api_base_url
        or os.getenv("WABOT_API_BASE_URL", DEFAULT_API_BASE_URL),
        instance_id=row.wabot_instance_id or os.getenv("WABOT_INSTANCE_ID"),
        access_token=row.wabot_access_token or os.getenv("WABOT_ACCESS_TOKEN"),
    )


def format_phone_number(phone: str) -> str:
    formatted = re.sub(r"[\s-]", "", phone)
    if formatted.startswith("+"):
        return formatted[1:]
    if formatted.startswith("60"):
        return formatted
    if formatted.startswith("0"):
        # local Malaysian number
        return "60" + formatted[1:]
    return formatted


def render_template(template: str, variables: Dict[str, Optional[str]]) -> str:
    message = template
    for key, value in variables.items():
        message = message.replace("{" + key + "}", str(value) if value is not None else "")
    return message


def send_whatsapp_message(phone: str, message: str, credentials: WabotCredentials) -> None:
    if not credentials.instance_id or not credentials.access_token:
        raise NotificationError("Wabot credentials not configured")

    url = f"{credentials.api_base_url.rstrip('/')}/send-message"
    resp = httpx.post(
        url,
        json={
            "instance_id": credentials.instance_id,
            "phone": format_phone_number(phone),
            "message": message,
        },
        headers={"Authorization": f"Bearer {credentials.access_token}"},
        timeout=REQUEST_TIMEOUT,
    )
    if resp.status_code >= 400:
        raise GatewayError(f"Wabot API returned status {resp.status_code}: {resp.text[:200]}")


def visitor_message(visitor: Visitor, row: AppSettings) -> str:
    base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
    variables = {
        "name": visitor.full_name,
        "property": row.property_name,
        "visit_date": visitor.visit_date.isoformat() if visitor.visit_date else "",
        "visit_time": visitor.visit_time,
        "contact_phone": row.contact_phone,
        "token": visitor.qr_code,
        "verify_url": f"{base_url}/api/public/visitors/verify/{visitor.qr_code}",
    }
    if visitor.status == VisitorStatus.approved.value:
        return render_template(VISITOR_APPROVED_TEMPLATE, variables)
    return render_template(VISITOR_REJECTED_TEMPLATE, variables)


def notify_visitor_decision(visitor_id: int) -> None:
    try:
        with Session(engine) as session:
            row = load_settings(session)
            if not (row.wabot_enabled and row.visitor_approval_notification):
                return
            visitor = session.get(Visitor, visitor_id)
            if visitor is None or not visitor.phone:
                return
            phone = f"{visitor.country_code or ''}{visitor.phone}"
            if visitor.phone.startswith("+") or visitor.phone.startswith("0"):
                phone = visitor.phone
            message = visitor_message(visitor, row)
            credentials = credentials_from_settings(row)
        send_whatsapp_message(phone, message, credentials)
        logger.info("sent visitor %s notification", visitor_id)
    except Exception:
        logger.exception("failed to notify visitor %s", visitor_id)


def send_billing_reminder(session: Session, billing: Billing) -> Resident:
    """Send a payment reminder for ``billing`` to its resident over WhatsApp.

    Unlike visitor notifications this runs inside the request, so failures
    surface to the caller as NotificationError.
    """
    row = load_settings(session)
    if not row.wabot_enabled:
        raise NotificationError("WhatsApp notifications are disabled")
    resident = session.get(Resident, billing.resident_id)
    if resident is None or not resident.phone:
        raise NotificationError("Resident has no phone number on file")

    message = render_template(
        BILLING_REMINDER_TEMPLATE,
        {
            "name": resident.full_name,
            "property": row.property_name,
            "amount": str(billing.amount),
            "description": billing.description or "your billing",
            "due_date": billing.due_date.isoformat(),
            "contact_phone": row.contact_phone,
        },
    )
    send_whatsapp_message(resident.phone, message, credentials_from_settings(row))
    logger.info("sent reminder for billing %s to resident %s", billing.id, resident.id)
    return resident
