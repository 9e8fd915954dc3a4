"""Initial schema: clients, containers, cargo items, assignments, payments, activity log.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18

Run with:
    cd backend && alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Parties ──────────────────────────────────────────────

    op.create_table(
        "clients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255)),
        sa.Column("client_type", sa.String(20), server_default="individual"),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(100)),
        sa.Column("address", sa.Text()),
        sa.Column("country", sa.String(100)),
        sa.Column("status", sa.String(20), server_default="active"),
        sa.Column("notes", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_clients_code", "clients", ["code"])
    op.create_index("ix_clients_name", "clients", ["name"])
    op.create_index("ix_clients_status", "clients", ["status"])

    # ── Containers ───────────────────────────────────────────

    op.create_table(
        "containers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("container_number", sa.String(50), nullable=False, unique=True),
        sa.Column("file_number", sa.String(50), nullable=False, unique=True),
        sa.Column("container_type", sa.String(20), server_default="20ft"),
        sa.Column("destination_port", sa.String(100), nullable=False),
        sa.Column("destination_city", sa.String(100)),
        sa.Column("destination_country", sa.String(100), nullable=False),
        sa.Column("shipping_mode", sa.String(30), server_default="without_customs"),
        sa.Column("capacity_weight_kg", sa.Float(), server_default="0"),
        sa.Column("capacity_volume_m3", sa.Float(), server_default="0"),
        sa.Column("used_weight_kg", sa.Float(), server_default="0"),
        sa.Column("used_volume_m3", sa.Float(), server_default="0"),
        sa.Column("cost_transport", sa.Float(), server_default="0"),
        sa.Column("cost_customs", sa.Float(), server_default="0"),
        sa.Column("cost_handling", sa.Float(), server_default="0"),
        sa.Column("carrier", sa.String(255)),
        sa.Column("tracking_number", sa.String(100)),
        sa.Column("seal_number", sa.String(50)),
        sa.Column("planned_departure", sa.Date()),
        sa.Column("departed_at", sa.DateTime()),
        sa.Column("arrived_at", sa.DateTime()),
        sa.Column("closed_at", sa.DateTime()),
        sa.Column("reopened_at", sa.DateTime()),
        sa.Column("status", sa.String(30), server_default="ouvert"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text()),
        sa.Column("is_deleted", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('ouvert', 'en_preparation', 'en_transit', 'arrive', 'cloture')",
            name="ck_containers_status",
        ),
    )
    op.create_index("ix_containers_container_number", "containers", ["container_number"])
    op.create_index("ix_containers_destination_country", "containers", ["destination_country"])
    op.create_index("ix_containers_status", "containers", ["status"])

    # ── Cargo items ──────────────────────────────────────────

    op.create_table(
        "cargo_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("barcode", sa.String(100), nullable=False, unique=True),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("container_id", sa.String(36), sa.ForeignKey("containers.id")),
        sa.Column("assigned_at", sa.DateTime()),
        sa.Column("position_in_container", sa.String(50)),
        sa.Column("item_type", sa.String(20), server_default="parcel"),
        sa.Column("designation", sa.Text(), nullable=False),
        sa.Column("package_count", sa.Integer(), server_default="1"),
        sa.Column("weight_kg", sa.Float()),
        sa.Column("volume_m3", sa.Float()),
        sa.Column("declared_value", sa.Float()),
        sa.Column("cost_transport", sa.Float(), server_default="0"),
        sa.Column("cost_handling", sa.Float(), server_default="0"),
        sa.Column("cost_insurance", sa.Float(), server_default="0"),
        sa.Column("cost_storage", sa.Float(), server_default="0"),
        sa.Column("cost_total", sa.Float(), server_default="0"),
        sa.Column("invoiced", sa.Boolean(), server_default="false"),
        sa.Column("status", sa.String(30), server_default="pending"),
        sa.Column("scan_history", sa.JSON()),
        sa.Column("notes", sa.Text()),
        sa.Column("received_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("is_deleted", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("weight_kg IS NULL OR weight_kg >= 0", name="ck_cargo_items_weight"),
        sa.CheckConstraint("volume_m3 IS NULL OR volume_m3 >= 0", name="ck_cargo_items_volume"),
    )
    op.create_index("ix_cargo_items_barcode", "cargo_items", ["barcode"])
    op.create_index("ix_cargo_items_client_id", "cargo_items", ["client_id"])
    op.create_index("ix_cargo_items_container_id", "cargo_items", ["container_id"])
    op.create_index("ix_cargo_items_status", "cargo_items", ["status"])

    op.create_table(
        "container_assignments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cargo_item_id", sa.String(36), sa.ForeignKey("cargo_items.id"), nullable=False),
        sa.Column("container_id", sa.String(36), sa.ForeignKey("containers.id"), nullable=False),
        sa.Column("assigned_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("released_at", sa.DateTime()),
        sa.Column("assigned_by", sa.String(36)),
        sa.Column("released_by", sa.String(36)),
    )
    op.create_index("ix_container_assignments_cargo_item_id", "container_assignments", ["cargo_item_id"])
    op.create_index("ix_container_assignments_container_id", "container_assignments", ["container_id"])

    # ── Financials ───────────────────────────────────────────

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("receipt_number", sa.String(50), nullable=False, unique=True),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("cargo_item_id", sa.String(36), sa.ForeignKey("cargo_items.id")),
        sa.Column("container_id", sa.String(36), sa.ForeignKey("containers.id")),
        sa.Column("amount_due", sa.Float(), nullable=False),
        sa.Column("amount_paid", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), server_default="EUR"),
        sa.Column("payment_method", sa.String(30), server_default="cash"),
        sa.Column("reference", sa.String(100)),
        sa.Column("paid_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("status", sa.String(30), server_default="valid"),
        sa.Column("cancelled_at", sa.DateTime()),
        sa.Column("cancelled_by", sa.String(36)),
        sa.Column("cancel_reason", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("recorded_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("amount_paid >= 0 AND amount_due >= 0", name="ck_payments_amounts"),
    )
    op.create_index("ix_payments_receipt_number", "payments", ["receipt_number"])
    op.create_index("ix_payments_client_id", "payments", ["client_id"])
    op.create_index("ix_payments_cargo_item_id", "payments", ["cargo_item_id"])
    op.create_index("ix_payments_container_id", "payments", ["container_id"])
    op.create_index("ix_payments_paid_at", "payments", ["paid_at"])
    op.create_index("ix_payments_status", "payments", ["status"])

    # ── Audit ────────────────────────────────────────────────

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("actor_id", sa.String(36)),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_actor_id", "activity_logs", ["actor_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("payments")
    op.drop_table("container_assignments")
    op.drop_table("cargo_items")
    op.drop_table("containers")
    op.drop_table("clients")
