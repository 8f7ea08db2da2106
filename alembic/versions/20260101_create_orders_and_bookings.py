# alembic/versions/20260101_create_orders_and_bookings.py
from alembic import op
import sqlalchemy as sa

# --- revision identifiers ---
revision = "20260101_create_orders_and_bookings"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(bind, name: str) -> bool:
    insp = sa.inspect(bind)
    return name in insp.get_table_names()


def _payment_refund_columns():
    return [
        sa.Column("payment_method", sa.String(length=20)),
        sa.Column("payment_transaction_id", sa.String()),
        sa.Column("payment_intent_id", sa.String()),
        sa.Column("payment_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_paid_at", sa.DateTime(timezone=True)),
        sa.Column("refund_status", sa.String(length=20), nullable=False, server_default="none"),
        sa.Column("refund_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("refund_id", sa.String()),
        sa.Column("refund_reason", sa.String()),
        sa.Column("refund_failure_reason", sa.String()),
        sa.Column("refund_processed_at", sa.DateTime(timezone=True)),
    ]


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("order_number", sa.String(), nullable=False),
            sa.Column("items", sa.JSON(), nullable=False),
            sa.Column("shipping_address", sa.JSON()),
            sa.Column("total_amount_cents", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("status_before_cancel", sa.String(length=20)),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True)),
            sa.Column("cancelled_at", sa.DateTime(timezone=True)),
            *_payment_refund_columns(),
            sa.CheckConstraint("total_amount_cents >= 0", name="ck_order_total_non_negative"),
        )
        op.create_index("ix_orders_id", "orders", ["id"])
        op.create_index("ix_orders_user_id", "orders", ["user_id"])
        op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
        op.create_index("ix_order_user_status", "orders", ["user_id", "status"])

    if not _has_table(bind, "bookings"):
        op.create_table(
            "bookings",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("campground_id", sa.Integer(), nullable=False),
            sa.Column("days", sa.Integer(), nullable=False),
            sa.Column("total_price_cents", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="confirmed"),
            sa.Column("status_before_cancel", sa.String(length=20)),
            sa.Column("check_in_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("check_out_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("cancelled_at", sa.DateTime(timezone=True)),
            sa.Column("expired_at", sa.DateTime(timezone=True)),
            *_payment_refund_columns(),
            sa.CheckConstraint("days > 0", name="ck_booking_days_positive"),
            sa.CheckConstraint("total_price_cents >= 0", name="ck_booking_total_non_negative"),
        )
        op.create_index("ix_bookings_id", "bookings", ["id"])
        op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
        op.create_index("ix_bookings_campground_id", "bookings", ["campground_id"])
        op.create_index("ix_booking_user_status", "bookings", ["user_id", "status"])
        op.create_index("ix_booking_status_checkout", "bookings", ["status", "check_out_date"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("orders")
