from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel
from sqlmodel import Session, select

from .models import AppSettings


class BillingRunConfig(BaseModel):
    """Snapshot of the settings the billing generator needs for one run."""

    enabled: bool = True
    billing_account: str = "sukha_golden"


def load_settings(session: Session) -> AppSettings:
    # single-row table; create defaults on first access
    row = session.exec(select(AppSettings).order_by(AppSettings.id)).first()
    if row is None:
        row = AppSettings()
        session.add(row)
        session.commit()
        session.refresh(row)
    return row


def billing_run_config(row: AppSettings) -> BillingRunConfig:
    return BillingRunConfig(
        enabled=row.billing_generation_enabled,
        billing_account=row.default_billing_account,
    )


def update_settings(session: Session, changes: Dict[str, Any]) -> AppSettings:
    row = load_settings(session)
    for key, value in changes.items():
        setattr(row, key, value)
    row.updated_at = datetime.utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)
    return row
