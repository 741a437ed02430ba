"""stock adjustment ledger schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    user_role_enum = sa.Enum("ADMIN", "STOCK_MANAGER", "STOREKEEPER", name="userrole")
    adjustment_type_enum = sa.Enum("INCREASE", "DECREASE", name="adjustmenttype")
    adjustment_status_enum = sa.Enum(
        "DRAFT",
        "PENDING",
        "APPROVED",
        "REJECTED",
        "REVERSED",
        name="adjustmentstatus",
    )
    movement_kind_enum = sa.Enum("APPLY", "REVERSE", name="movementkind")

    bind = op.get_bind()
    user_role_enum.create(bind, checkfirst=True)
    adjustment_type_enum.create(bind, checkfirst=True)
    adjustment_status_enum.create(bind, checkfirst=True)
    movement_kind_enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("full_name", sa.String(length=120), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_role"), "users", ["role"], unique=False)
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("reorder_level", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        sa.CheckConstraint("unit_cost >= 0", name="ck_products_unit_cost_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_products_id"), "products", ["id"], unique=False)
    op.create_index(op.f("ix_products_name"), "products", ["name"], unique=False)
    op.create_index(op.f("ix_products_sku"), "products", ["sku"], unique=True)

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("adjustment_no", sa.String(length=40), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("adjustment_type", adjustment_type_enum, nullable=False),
        sa.Column("reason", sa.String(length=120), nullable=False),
        sa.Column("status", adjustment_status_enum, nullable=False),
        sa.Column("allow_negative", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(length=120), nullable=False),
        sa.Column("approved_by", sa.String(length=120), nullable=True),
        sa.Column("approved_date", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.String(length=255), nullable=True),
        sa.Column("reversed_by", sa.String(length=120), nullable=True),
        sa.Column("reversed_date", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stock_adjustments_adjustment_no"), "stock_adjustments", ["adjustment_no"], unique=True)
    op.create_index(
        op.f("ix_stock_adjustments_adjustment_type"),
        "stock_adjustments",
        ["adjustment_type"],
        unique=False,
    )
    op.create_index(op.f("ix_stock_adjustments_created_at"), "stock_adjustments", ["created_at"], unique=False)
    op.create_index(op.f("ix_stock_adjustments_date"), "stock_adjustments", ["date"], unique=False)
    op.create_index(op.f("ix_stock_adjustments_reason"), "stock_adjustments", ["reason"], unique=False)
    op.create_index(op.f("ix_stock_adjustments_status"), "stock_adjustments", ["status"], unique=False)

    op.create_table(
        "stock_adjustment_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("adjustment_id", sa.String(length=32), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("current_stock", sa.Integer(), nullable=False),
        sa.Column("adjustment_quantity", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("total_cost", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("item_reason", sa.String(length=255), nullable=True),
        sa.CheckConstraint("adjustment_quantity > 0", name="ck_adjustment_items_quantity_positive"),
        sa.ForeignKeyConstraint(["adjustment_id"], ["stock_adjustments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("adjustment_id", "sku", name="uq_adjustment_items_adjustment_sku"),
    )
    op.create_index(
        op.f("ix_stock_adjustment_items_adjustment_id"),
        "stock_adjustment_items",
        ["adjustment_id"],
        unique=False,
    )
    op.create_index(op.f("ix_stock_adjustment_items_id"), "stock_adjustment_items", ["id"], unique=False)
    op.create_index(op.f("ix_stock_adjustment_items_sku"), "stock_adjustment_items", ["sku"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("adjustment_id", sa.String(length=32), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("kind", movement_kind_enum, nullable=False),
        sa.Column("requested_delta", sa.Integer(), nullable=False),
        sa.Column("applied_delta", sa.Integer(), nullable=False),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["adjustment_id"], ["stock_adjustments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stock_movements_adjustment_id"), "stock_movements", ["adjustment_id"], unique=False)
    op.create_index(op.f("ix_stock_movements_created_at"), "stock_movements", ["created_at"], unique=False)
    op.create_index(op.f("ix_stock_movements_id"), "stock_movements", ["id"], unique=False)
    op.create_index(op.f("ix_stock_movements_kind"), "stock_movements", ["kind"], unique=False)
    op.create_index(op.f("ix_stock_movements_sku"), "stock_movements", ["sku"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("actor_name", sa.String(length=120), nullable=True),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=60), nullable=True),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_logs_created_at"), "audit_logs", ["created_at"], unique=False)
    op.create_index(op.f("ix_audit_logs_entity_id"), "audit_logs", ["entity_id"], unique=False)
    op.create_index(op.f("ix_audit_logs_entity_type"), "audit_logs", ["entity_type"], unique=False)
    op.create_index(op.f("ix_audit_logs_event_type"), "audit_logs", ["event_type"], unique=False)
    op.create_index(op.f("ix_audit_logs_id"), "audit_logs", ["id"], unique=False)


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("stock_movements")
    op.drop_table("stock_adjustment_items")
    op.drop_table("stock_adjustments")
    op.drop_table("products")
    op.drop_table("users")

    bind = op.get_bind()
    sa.Enum(name="movementkind").drop(bind, checkfirst=True)
    sa.Enum(name="adjustmentstatus").drop(bind, checkfirst=True)
    sa.Enum(name="adjustmenttype").drop(bind, checkfirst=True)
    sa.Enum(name="userrole").drop(bind, checkfirst=True)
