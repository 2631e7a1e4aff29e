"""
Billing Service - the single write path for new sales.

Every derived number (line totals, subtotal, discount, total, split amounts
for cash/online) is recomputed here from raw inputs. Client-computed totals
are ignored. Money is integer cents end to end; there is no float on the
write path.

A bill is written as one transaction:
    BEGIN IMMEDIATE -> allocate bill number -> insert header -> insert items -> COMMIT
so either the bill and all of its items exist, or nothing does.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Bill, BillItem
from ..models.bills import PAYMENT_MODES
from ..validation import (
    MAX_DISCOUNT_BPS,
    MAX_PRICE_CENTS,
    MAX_SQLITE_INTEGER,
    ConflictError,
    ValidationError,
    clamp,
    floor_int,
    positive_id,
    strict_int,
)
from mnepos.time_utils import parse_calendar_date, utcnow
from . import sequence_service, settings_service
from .concurrency import begin_immediate, run_with_retry

MAX_PAGE_SIZE = 200


@dataclass(frozen=True)
class NormalizedItem:
    product_id: int
    product_name: str
    unit_price_cents: int
    qty: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.qty


@dataclass(frozen=True)
class BillTotals:
    subtotal_cents: int
    discount_rate_bps: int
    discount_cents: int
    total_cents: int


@dataclass(frozen=True)
class Payment:
    mode: str
    split_cash_cents: int
    split_online_cents: int


# =============================================================================
# Normalization
# =============================================================================

def normalize_quantity(value: Any, *, max_quantity: int) -> int:
    """
    Lenient quantity policy: clamp, never reject.

    Non-numeric -> 1, fractional -> floored, then clamped to [1, max_quantity].
    """
    qty = floor_int(value)
    if qty is None:
        return 1
    return clamp(qty, 1, max_quantity)


def normalize_price(value: Any) -> int:
    """Non-negative integer cents; fractional input is floored."""
    price = floor_int(value)
    if price is None:
        return 0
    return clamp(price, 0, MAX_PRICE_CENTS)


def normalize_items(raw_items: Iterable[Any], *, max_quantity: int = 1000) -> list[NormalizedItem]:
    """
    Drop lines without a positive product id or a non-blank name; normalize
    the rest. Claimed line totals are ignored.
    """
    items: list[NormalizedItem] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        product_id = positive_id(raw.get("product_id"))
        name = raw.get("product_name", raw.get("name"))
        name = name.strip() if isinstance(name, str) else ""
        if product_id is None or not name:
            continue
        items.append(
            NormalizedItem(
                product_id=product_id,
                product_name=name,
                unit_price_cents=normalize_price(raw.get("unit_price_cents")),
                qty=normalize_quantity(raw.get("qty", raw.get("quantity")), max_quantity=max_quantity),
            )
        )
    return items


def normalize_discount_rate(value: Any) -> int:
    """
    None -> stored default. Non-numeric -> ValidationError.
    Otherwise floored and clamped to [0, 10000].
    """
    if value is None or value == "":
        return settings_service.get_default_discount_rate_bps()
    rate = floor_int(value)
    if rate is None:
        raise ValidationError("discount_rate_bps must be a number")
    return clamp(rate, 0, MAX_DISCOUNT_BPS)


# =============================================================================
# Totals
# =============================================================================

def compute_discount(subtotal_cents: int, discount_rate_bps: int) -> int:
    """round(subtotal * rate / 10000), half away from zero, integer-only."""
    return (subtotal_cents * discount_rate_bps + 5000) // 10000


def compute_totals(items: Iterable[NormalizedItem], discount_rate_bps: int) -> BillTotals:
    subtotal = sum(item.line_total_cents for item in items)
    discount = compute_discount(subtotal, discount_rate_bps)
    return BillTotals(
        subtotal_cents=subtotal,
        discount_rate_bps=discount_rate_bps,
        discount_cents=discount,
        total_cents=subtotal - discount,
    )


def reconcile_payment(mode: Any, total_cents: int, split_cash: Any = None, split_online: Any = None) -> Payment:
    """
    cash/online: the whole total goes to that channel.
    split: the two claimed amounts must add up to the total exactly.
    """
    mode = (mode or "cash")
    if not isinstance(mode, str) or mode.strip().lower() not in PAYMENT_MODES:
        raise ValidationError(f"payment_mode must be one of: {', '.join(PAYMENT_MODES)}")
    mode = mode.strip().lower()

    if mode == "cash":
        return Payment(mode, total_cents, 0)
    if mode == "online":
        return Payment(mode, 0, total_cents)

    cash = max(floor_int(split_cash) or 0, 0)
    online = max(floor_int(split_online) or 0, 0)
    if cash + online != total_cents:
        raise ValidationError(
            f"Split amounts ({cash} + {online} = {cash + online}) must equal bill total {total_cents}"
        )
    return Payment(mode, cash, online)


# =============================================================================
# Write path
# =============================================================================

def create_bill(payload: dict) -> Bill:
    """
    Validate, normalize and persist one bill with its items.

    Raises ValidationError before touching the database when there are no
    usable items or the split does not match. Returns the committed Bill;
    bill.bill_no is the external number.
    """
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Bill has no items")

    items = normalize_items(raw_items, max_quantity=current_app.config["MAX_LINE_QUANTITY"])
    if not items:
        raise ValidationError("Bill has no valid items")

    rate = normalize_discount_rate(payload.get("discount_rate_bps"))
    totals = compute_totals(items, rate)
    payment = reconcile_payment(
        payload.get("payment_mode"),
        totals.total_cents,
        payload.get("split_cash_cents"),
        payload.get("split_online_cents"),
    )

    def _op() -> Bill:
        try:
            begin_immediate()
            seq = sequence_service.allocate_next()
            bill = Bill(
                bill_no=sequence_service.format_bill_number(seq),
                subtotal_cents=totals.subtotal_cents,
                discount_rate_bps=totals.discount_rate_bps,
                discount_cents=totals.discount_cents,
                total_cents=totals.total_cents,
                payment_mode=payment.mode,
                split_cash_cents=payment.split_cash_cents,
                split_online_cents=payment.split_online_cents,
                created_at=utcnow(),
            )
            bill.items = [
                BillItem(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    unit_price_cents=item.unit_price_cents,
                    qty=item.qty,
                    line_total_cents=item.line_total_cents,
                )
                for item in items
            ]
            db.session.add(bill)
            db.session.commit()
            return bill
        except IntegrityError as exc:
            # A stale or corrupted counter; never retry with the same value.
            db.session.rollback()
            raise ConflictError("Bill number conflict, nothing was saved") from exc
        except Exception:
            db.session.rollback()
            raise

    bill = run_with_retry(_op)
    current_app.logger.debug("Created bill %s total=%s", bill.bill_no, bill.total_cents)
    return bill


# =============================================================================
# Read side
# =============================================================================

def _page_args(page: Any, limit: Any) -> tuple[int, int]:
    page = 1 if page in (None, "") else strict_int(page, field="page")
    limit = 10 if limit in (None, "") else strict_int(limit, field="limit")
    page, limit = max(page, 1), clamp(limit, 1, MAX_PAGE_SIZE)
    if (page - 1) * limit > MAX_SQLITE_INTEGER:
        raise ValidationError("page is out of range")
    return page, limit


def _filter_created(query, start: str | None, end: str | None):
    """Restrict to bills created on the inclusive UTC date range; swapped when reversed."""
    try:
        start_date = parse_calendar_date(start)
        end_date = parse_calendar_date(end)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if start_date and end_date and start_date > end_date:
        start_date, end_date = end_date, start_date

    if start_date:
        query = query.filter(Bill.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.filter(Bill.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
    return query


def list_bills(
    *,
    page: Any = None,
    limit: Any = None,
    bill_no: str | None = None,
    start: str | None = None,
    end: str | None = None,
) -> dict:
    """
    Page of bill summaries, newest first.

    start/end are inclusive calendar dates (YYYY-MM-DD, UTC), swapped when reversed.
    """
    page, limit = _page_args(page, limit)
    query = _filter_created(db.session.query(Bill), start, end)
    if bill_no and bill_no.strip():
        query = query.filter(Bill.bill_no.contains(bill_no.strip(), autoescape=True))

    total = query.count()
    rows = (
        query.order_by(Bill.created_at.desc(), Bill.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return {
        "rows": [bill.to_dict() for bill in rows],
        "total": total,
        "page": page,
        "limit": limit,
    }


def payment_summary(*, start: str | None = None, end: str | None = None) -> dict:
    """
    Bill count and money per payment mode, with the same date filters as list_bills.

    Every mode is present; modes without bills report zeros. cash_cents and
    online_cents are what each channel actually received.
    """
    query = _filter_created(
        db.session.query(
            Bill.payment_mode,
            func.count(Bill.id),
            func.coalesce(func.sum(Bill.total_cents), 0),
            func.coalesce(func.sum(Bill.split_cash_cents), 0),
            func.coalesce(func.sum(Bill.split_online_cents), 0),
        ),
        start,
        end,
    )
    summary = {
        mode: {"bill_count": 0, "total_cents": 0, "cash_cents": 0, "online_cents": 0}
        for mode in PAYMENT_MODES
    }
    for mode, count, total, cash, online in query.group_by(Bill.payment_mode).all():
        if mode not in summary:
            continue
        summary[mode] = {
            "bill_count": int(count),
            "total_cents": int(total),
            "cash_cents": int(cash),
            "online_cents": int(online),
        }
    return summary


def get_bill(bill_id: int) -> Bill | None:
    if positive_id(bill_id) is None:
        return None
    return db.session.get(Bill, bill_id)


def get_bill_items(bill_id: int) -> list[BillItem]:
    return (
        db.session.query(BillItem)
        .filter(BillItem.bill_id == bill_id)
        .order_by(BillItem.id)
        .all()
    )


def delete_bill(bill_id: int) -> bool:
    """Hard delete; items go with it through ON DELETE CASCADE. False if missing."""
    bill = get_bill(bill_id)
    if bill is None:
        return False
    bill_no = bill.bill_no
    db.session.delete(bill)
    db.session.commit()
    current_app.logger.info("Deleted bill %s", bill_no)
    return True


def build_receipt(bill_id: int) -> dict | None:
    """
    Finished receipt data for the printer / PDF renderer.

    The renderer only lays this out; it never recomputes amounts.
    """
    bill = get_bill(bill_id)
    if bill is None:
        return None
    return {
        "bill_no": bill.bill_no,
        "printed_at": bill.to_dict()["created_at"],
        "subtotal_cents": bill.subtotal_cents,
        "discount_rate_bps": bill.discount_rate_bps,
        "discount_cents": bill.discount_cents,
        "total_cents": bill.total_cents,
        "payment_mode": bill.payment_mode,
        "split_cash_cents": bill.split_cash_cents,
        "split_online_cents": bill.split_online_cents,
        "items": [
            {
                "name": item.product_name,
                "qty": item.qty,
                "unit_price_cents": item.unit_price_cents,
                "line_total_cents": item.line_total_cents,
            }
            for item in get_bill_items(bill.id)
        ],
    }
