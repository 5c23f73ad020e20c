"""Fleet compliance core tables

Revision ID: 20261001_000001
Revises: 
Create Date: 2026-10-01 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261001_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _status_columns() -> list:
    return [
        sa.Column("status", sa.String(), nullable=False, server_default="red"),
        sa.Column("status_reason", sa.String(), nullable=True),
        sa.Column("status_updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "fleet",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("required_documents", sa.JSON(), nullable=True),
        sa.Column("expiring_soon_days", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_fleet_owner_id", "fleet", ["owner_id"])

    op.create_table(
        "driver",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("fleet_id", sa.String(), sa.ForeignKey("fleet.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("license_number", sa.String(), nullable=True),
        sa.Column("license_state", sa.String(), nullable=True),
        *_status_columns(),
        *_timestamps(),
    )
    op.create_index("ix_driver_fleet_id", "driver", ["fleet_id"])

    op.create_table(
        "vehicle",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("fleet_id", sa.String(), sa.ForeignKey("fleet.id"), nullable=False),
        sa.Column("unit_number", sa.String(), nullable=False),
        sa.Column("make", sa.String(), nullable=True),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("vin", sa.String(), nullable=True),
        sa.Column("plate_number", sa.String(), nullable=True),
        sa.Column("plate_state", sa.String(), nullable=True),
        *_status_columns(),
        *_timestamps(),
    )
    op.create_index("ix_vehicle_fleet_id", "vehicle", ["fleet_id"])
    op.create_index("ix_vehicle_vin", "vehicle", ["vin"])

    op.create_table(
        "document",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("fleet_id", sa.String(), sa.ForeignKey("fleet.id"), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("doc_type", sa.String(), nullable=False),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="red"),
        sa.Column("processing_status", sa.String(), nullable=True),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ai_confidence", sa.Float(), nullable=True),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("file_name", sa.String(), nullable=True),
        sa.Column("mime_type", sa.String(), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("uploaded_by", sa.String(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_document_fleet_id", "document", ["fleet_id"])
    op.create_index("ix_document_entity_id", "document", ["entity_id"])

    op.create_table(
        "documentextraction",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "document_id",
            sa.String(),
            sa.ForeignKey("document.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("doc_type", sa.String(), nullable=False),
        sa.Column("extracted_fields", sa.JSON(), nullable=True),
        sa.Column("raw_text", sa.Text(), nullable=True),
        sa.Column("confidence", sa.JSON(), nullable=True),
        sa.Column("warnings", sa.JSON(), nullable=True),
        sa.Column("reviewed_by", sa.String(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_documentextraction_document_id", "documentextraction", ["document_id"], unique=True)

    op.create_table(
        "alert",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("fleet_id", sa.String(), sa.ForeignKey("fleet.id"), nullable=False),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("to_address", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("document_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="queued"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("message_id", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_alert_fleet_document_created", "alert", ["fleet_id", "document_id", "created_at"])
    op.create_index("ix_alert_status_created", "alert", ["status", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_alert_status_created", table_name="alert")
    op.drop_index("ix_alert_fleet_document_created", table_name="alert")
    op.drop_table("alert")
    op.drop_index("ix_documentextraction_document_id", table_name="documentextraction")
    op.drop_table("documentextraction")
    op.drop_index("ix_document_entity_id", table_name="document")
    op.drop_index("ix_document_fleet_id", table_name="document")
    op.drop_table("document")
    op.drop_index("ix_vehicle_vin", table_name="vehicle")
    op.drop_index("ix_vehicle_fleet_id", table_name="vehicle")
    op.drop_table("vehicle")
    op.drop_index("ix_driver_fleet_id", table_name="driver")
    op.drop_table("driver")
    op.drop_index("ix_fleet_owner_id", table_name="fleet")
    op.drop_table("fleet")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
