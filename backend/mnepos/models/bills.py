from __future__ import annotations

from ..extensions import db
from mnepos.time_utils import to_utc_z, utcnow

PAYMENT_MODES = ("cash", "online", "split")


class Bill(db.Model):
    """
    Finalized sale. Written once together with its items, never updated.

    All money columns are integer cents:
    - discount_cents = round_half_up(subtotal_cents * discount_rate_bps / 10000)
    - total_cents = subtotal_cents - discount_cents
    - split_cash_cents + split_online_cents = total_cents
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.CheckConstraint("discount_rate_bps BETWEEN 0 AND 10000", name="ck_bills_discount_rate"),
        db.Index("idx_bills_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-facing number, e.g. "MNE-000123"
    bill_no = db.Column(db.String(32), nullable=False, unique=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_mode = db.Column(db.String(16), nullable=False, default="cash")
    split_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    split_online_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    items = db.relationship(
        "BillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BillItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_no": self.bill_no,
            "subtotal_cents": self.subtotal_cents,
            "discount_rate_bps": self.discount_rate_bps,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_mode": self.payment_mode,
            "split_cash_cents": self.split_cash_cents,
            "split_online_cents": self.split_online_cents,
            "created_at": to_utc_z(self.created_at),
        }


class BillItem(db.Model):
    """Frozen product line on a bill."""
    __tablename__ = "bill_items"
    __table_args__ = (
        db.CheckConstraint("qty >= 1", name="ck_bill_items_qty"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(
        db.Integer,
        db.ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Snapshot of the product at sale time (no FK: catalog edits must not touch history)
    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    qty = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    bill = db.relationship("Bill", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "qty": self.qty,
            "line_total_cents": self.line_total_cents,
        }
