"""Rename tax columns to discount and record the payment split

Revision ID: 20261010_discount_payment
Revises: 20261001_initial
Create Date: 2026-10-10

Existing bills keep their amounts. They were all taken in cash, so the whole
total is recorded as split_cash_cents.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261010_discount_payment"
down_revision = "20261001_initial"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("bills", schema=None) as batch_op:
        batch_op.alter_column("tax_rate_bps", new_column_name="discount_rate_bps")
        batch_op.alter_column("tax_cents", new_column_name="discount_cents")
        batch_op.add_column(sa.Column("payment_mode", sa.String(16), nullable=False, server_default="cash"))
        batch_op.add_column(sa.Column("split_cash_cents", sa.Integer(), nullable=False, server_default="0"))
        batch_op.add_column(sa.Column("split_online_cents", sa.Integer(), nullable=False, server_default="0"))

    op.execute("UPDATE bills SET split_cash_cents = total_cents, split_online_cents = 0")
    op.execute("UPDATE settings SET key = 'discount_rate_bps' WHERE key = 'tax_rate_bps'")

    with op.batch_alter_table("bills", schema=None) as batch_op:
        batch_op.create_check_constraint(
            "ck_bills_discount_rate", "discount_rate_bps BETWEEN 0 AND 10000"
        )


def downgrade():
    with op.batch_alter_table("bills", schema=None) as batch_op:
        batch_op.drop_constraint("ck_bills_discount_rate", type_="check")
        batch_op.drop_column("split_online_cents")
        batch_op.drop_column("split_cash_cents")
        batch_op.drop_column("payment_mode")
        batch_op.alter_column("discount_cents", new_column_name="tax_cents")
        batch_op.alter_column("discount_rate_bps", new_column_name="tax_rate_bps")

    op.execute("UPDATE settings SET key = 'tax_rate_bps' WHERE key = 'discount_rate_bps'")
