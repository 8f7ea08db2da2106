# alembic/versions/20261019_add_refund_claimed_at.py
from alembic import op
import sqlalchemy as sa

# --- revision identifiers ---
revision = "20261019_add_refund_claimed_at"
down_revision = "20260101_create_orders_and_bookings"
branch_labels = None
depends_on = None


def _has_column(bind, table: str, column: str) -> bool:
    insp = sa.inspect(bind)
    return column in {c["name"] for c in insp.get_columns(table)}


def upgrade() -> None:
    bind = op.get_bind()
    for table in ("orders", "bookings"):
        if not _has_column(bind, table, "refund_claimed_at"):
            with op.batch_alter_table(table) as batch:
                batch.add_column(sa.Column("refund_claimed_at", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    for table in ("bookings", "orders"):
        with op.batch_alter_table(table) as batch:
            batch.drop_column("refund_claimed_at")
