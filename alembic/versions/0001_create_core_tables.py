"""create core tables

Revision ID: 0001_create_core_tables
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_core_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("username", sa.String(length=128), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "room",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("unit_number", sa.String(length=64), nullable=False, unique=True),
        sa.Column("floor_number", sa.Integer, nullable=False),
        sa.Column("room_type", sa.String(length=32), nullable=False),
        sa.Column("number_of_beds", sa.Integer, nullable=False),
        sa.Column("monthly_rate", sa.Integer, nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )

    op.create_table(
        "resident",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("ic_number", sa.String(length=64), nullable=False, unique=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column("emergency_contact", sa.String(length=255), nullable=True),
        sa.Column("room_id", sa.Integer, sa.ForeignKey("room.id"), nullable=True),
        sa.Column("billing_date", sa.Integer, nullable=False, server_default="1"),
        sa.Column("classification", sa.String(length=64), nullable=True),
        sa.Column("sales_referral", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_resident_room_id", "resident", ["room_id"])

    op.create_table(
        "nextofkin",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("resident_id", sa.Integer, sa.ForeignKey("resident.id"), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("relationship", sa.String(length=64), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("address", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_nextofkin_resident_id", "nextofkin", ["resident_id"])

    op.create_table(
        "occupancy",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("room_id", sa.Integer, sa.ForeignKey("room.id"), nullable=False),
        sa.Column("resident_id", sa.Integer, sa.ForeignKey("resident.id"), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_occupancy_room_id", "occupancy", ["room_id"])
    op.create_index("ix_occupancy_resident_id", "occupancy", ["resident_id"])
    op.create_index("ix_occupancy_active", "occupancy", ["active"])

    op.create_table(
        "billing",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("resident_id", sa.Integer, sa.ForeignKey("resident.id"), nullable=False),
        sa.Column("occupancy_id", sa.Integer, sa.ForeignKey("occupancy.id"), nullable=True),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("due_date", sa.Date, nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("billing_account", sa.String(length=64), nullable=True),
        sa.Column("invoice_file", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_billing_resident_id", "billing", ["resident_id"])
    op.create_index("ix_billing_due_date", "billing", ["due_date"])

    op.create_table(
        "visitor",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("resident_id", sa.Integer, sa.ForeignKey("resident.id"), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("country_code", sa.String(length=8), nullable=False),
        sa.Column("purpose", sa.String(length=255), nullable=True),
        sa.Column("visit_date", sa.Date, nullable=False),
        sa.Column("visit_time", sa.String(length=16), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("approved_by_id", sa.Integer, sa.ForeignKey("user.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime, nullable=True),
        sa.Column("qr_code", sa.String(length=128), nullable=True, unique=True),
        sa.Column("resident_name", sa.String(length=255), nullable=True),
        sa.Column("room_number", sa.String(length=64), nullable=True),
        sa.Column("vehicle_number", sa.String(length=32), nullable=True),
        sa.Column("number_of_visitors", sa.Integer, nullable=True),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )

    op.create_table(
        "appsettings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("property_name", sa.String(length=255), nullable=False),
        sa.Column("contact_phone", sa.String(length=32), nullable=True),
        sa.Column("billing_generation_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("billing_reminder_days", sa.Integer, nullable=False, server_default="7"),
        sa.Column("default_billing_account", sa.String(length=64), nullable=False),
        sa.Column("visitor_approval_notification", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("wabot_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("wabot_api_base_url", sa.String(length=255), nullable=True),
        sa.Column("wabot_instance_id", sa.String(length=128), nullable=True),
        sa.Column("wabot_access_token", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )

    op.create_table(
        "auditlog",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("actor_id", sa.Integer, sa.ForeignKey("user.id"), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("before", sa.Text, nullable=True),
        sa.Column("after", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_auditlog_actor_id", "auditlog", ["actor_id"])


def downgrade() -> None:
    op.drop_index("ix_auditlog_actor_id", table_name="auditlog")
    op.drop_table("auditlog")
    op.drop_table("appsettings")
    op.drop_table("visitor")
    op.drop_index("ix_billing_due_date", table_name="billing")
    op.drop_index("ix_billing_resident_id", table_name="billing")
    op.drop_table("billing")
    op.drop_index("ix_occupancy_active", table_name="occupancy")
    op.drop_index("ix_occupancy_resident_id", table_name="occupancy")
    op.drop_index("ix_occupancy_room_id", table_name="occupancy")
    op.drop_table("occupancy")
    op.drop_index("ix_nextofkin_resident_id", table_name="nextofkin")
    op.drop_table("nextofkin")
    op.drop_index("ix_resident_room_id", table_name="resident")
    op.drop_table("resident")
    op.drop_table("room")
    op.drop_table("user")
