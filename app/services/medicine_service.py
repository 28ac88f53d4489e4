# FILE: app/services/medicine_service.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.context import CallerContext
from app.core.exceptions import NotFoundError, ValidationError
from app.models.enums import StockFilter
from app.models.medicine import Medicine
from app.schemas.medicine import (
    InventoryStatsOut,
    MedicineCreate,
    MedicineUpdate,
    StockCheckOut,
)
from app.services.audit_logger import log_audit

logger = logging.getLogger(__name__)

ACTIVE = 1
MAX_PAGE_SIZE = 100


def _active_filter():
    return and_(Medicine.is_deleted.is_(False), Medicine.status == ACTIVE)


def get_medicine(db: Session, medicine_id: int) -> Medicine:
    m = db.get(Medicine, medicine_id)
    if not m or m.is_deleted:
        raise NotFoundError("Medicine", medicine_id)
    return m


def lock_medicine(db: Session, medicine_id: int) -> Optional[Medicine]:
    """Row lock (SELECT ... FOR UPDATE) for stock changes."""
    return (db.query(Medicine).filter(Medicine.id == medicine_id).with_for_update().first())


def apply_stock_delta(m: Medicine, delta: int) -> int:
    """
    Change stock in memory; refuses to go below zero.
    Caller holds the row lock and owns the transaction.
    """
    current = int(m.stock_quantity or 0)
    new_qty = current + int(delta)
    if new_qty < 0:
        raise ValidationError(
            f"Insufficient stock for {m.name}: available {current}, "
            f"requested {-int(delta)}",
            data={
                "medicine_id": m.id,
                "available": current,
                "requested": -int(delta),
            },
        )
    m.stock_quantity = new_qty
    return new_qty


def update_stock(
    db: Session,
    *,
    medicine_id: int,
    quantity: int,
    reason: str,
    ctx: CallerContext,
) -> Medicine:
    """
    Manual stock adjustment: positive quantity = inbound, negative = outbound.
    """
    if not quantity:
        raise ValidationError("Adjustment quantity must not be zero")
    if not (reason or "").strip():
        raise ValidationError("Adjustment reason is required")

    try:
        m = lock_medicine(db, medicine_id)
        if not m or m.is_deleted:
            raise NotFoundError("Medicine", medicine_id)

        before = int(m.stock_quantity or 0)
        after = apply_stock_delta(m, quantity)

        log_audit(
            db,
            ctx=ctx,
            action="STOCK_ADJUST",
            table_name="medicines",
            record_id=m.id,
            old_values={"stock_quantity": before},
            new_values={
                "stock_quantity": after,
                "quantity": quantity
            },
            remark=reason,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(m)
    logger.info("Stock adjusted medicine=%s %s -> %s (%s) by %s", m.id, before,
                after, reason, ctx.username)
    return m


def check_stock(db: Session, medicine_id: int, quantity: int) -> StockCheckOut:
    m = get_medicine(db, medicine_id)
    available = int(m.stock_quantity or 0)
    return StockCheckOut(
        medicine_id=m.id,
        quantity=quantity,
        available=available,
        sufficient=available >= quantity,
    )


def get_inventory_stats(db: Session) -> InventoryStatsOut:
    base = db.query(func.count(Medicine.id)).filter(Medicine.is_deleted.is_(False))

    total = base.scalar() or 0
    out_of_stock = base.filter(Medicine.stock_quantity <= 0).scalar() or 0
    low_stock = base.filter(
        Medicine.stock_quantity > 0,
        Medicine.min_stock.isnot(None),
        Medicine.stock_quantity <= Medicine.min_stock,
    ).scalar() or 0
    in_stock = base.filter(
        Medicine.stock_quantity > 0,
        or_(Medicine.min_stock.is_(None),
            Medicine.stock_quantity > Medicine.min_stock),
    ).scalar() or 0

    return InventoryStatsOut(
        total=total,
        in_stock=in_stock,
        low_stock=low_stock,
        out_of_stock=out_of_stock,
    )


def get_all_active(db: Session) -> List[Medicine]:
    return (db.query(Medicine).filter(_active_filter()).order_by(Medicine.name.asc()).all())


def _keyword_filter(keyword: str):
    like = f"%{keyword.strip().lower()}%"
    return or_(
        func.lower(Medicine.name).like(like),
        func.lower(Medicine.medicine_code).like(like),
        func.lower(func.coalesce(Medicine.generic_name, "")).like(like),
    )


def search_medicines(db: Session, keyword: Optional[str], limit: int = 50) -> List[Medicine]:
    q = db.query(Medicine).filter(_active_filter())
    if keyword and keyword.strip():
        q = q.filter(_keyword_filter(keyword))
    return q.order_by(Medicine.name.asc()).limit(limit).all()


def _paginate(q, page: int, size: int) -> Tuple[List[Medicine], int]:
    page = max(page, 1)
    size = min(max(size, 1), MAX_PAGE_SIZE)
    total = q.count()
    items = (q.order_by(Medicine.name.asc(), Medicine.id.asc()).offset((page - 1) * size).limit(size).all())
    return items, total


def search_medicines_for_doctor(
    db: Session,
    *,
    keyword: Optional[str] = None,
    category: Optional[str] = None,
    is_prescription: Optional[bool] = None,
    in_stock: Optional[bool] = None,
    page: int = 1,
    size: int = 20,
) -> Tuple[List[Medicine], int]:
    q = db.query(Medicine).filter(_active_filter())
    if keyword and keyword.strip():
        q = q.filter(_keyword_filter(keyword))
    if category:
        q = q.filter(Medicine.category == category)
    if is_prescription is not None:
        q = q.filter(Medicine.is_prescription.is_(is_prescription))
    if in_stock is True:
        q = q.filter(Medicine.stock_quantity > 0)
    elif in_stock is False:
        q = q.filter(Medicine.stock_quantity <= 0)
    return _paginate(q, page, size)


def search_medicines_for_pharmacist(
    db: Session,
    *,
    keyword: Optional[str] = None,
    category: Optional[str] = None,
    is_prescription: Optional[bool] = None,
    manufacturer: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    stock_status: Optional[StockFilter] = None,
    page: int = 1,
    size: int = 20,
) -> Tuple[List[Medicine], int]:
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationError("min_price must not exceed max_price")

    # pharmacists also see disabled (status=0) items
    q = db.query(Medicine).filter(Medicine.is_deleted.is_(False))
    if keyword and keyword.strip():
        q = q.filter(_keyword_filter(keyword))
    if category:
        q = q.filter(Medicine.category == category)
    if is_prescription is not None:
        q = q.filter(Medicine.is_prescription.is_(is_prescription))
    if manufacturer and manufacturer.strip():
        q = q.filter(
            func.lower(Medicine.manufacturer).like(f"%{manufacturer.strip().lower()}%"))
    if min_price is not None:
        q = q.filter(Medicine.retail_price >= min_price)
    if max_price is not None:
        q = q.filter(Medicine.retail_price <= max_price)
    if stock_status == StockFilter.LOW:
        q = q.filter(
            Medicine.stock_quantity > 0,
            Medicine.min_stock.isnot(None),
            Medicine.stock_quantity <= Medicine.min_stock,
        )
    elif stock_status == StockFilter.OUT:
        q = q.filter(Medicine.stock_quantity <= 0)
    return _paginate(q, page, size)


# ---------- Catalog maintenance ----------


def create_medicine(db: Session, data: MedicineCreate, ctx: CallerContext) -> Medicine:
    exists = (db.query(Medicine.id).filter(Medicine.medicine_code == data.medicine_code).first())
    if exists:
        raise ValidationError(f"Medicine code already exists: {data.medicine_code}")

    fields = data.model_dump()
    if fields.get("expiry_warning_days") is None:
        fields["expiry_warning_days"] = settings.MEDICINE_EXPIRY_WARNING_DAYS
    m = Medicine(**fields, status=ACTIVE, is_deleted=False)
    try:
        db.add(m)
        db.flush()
        log_audit(db,
                  ctx=ctx,
                  action="CREATE",
                  table_name="medicines",
                  record_id=m.id,
                  new_values=data.model_dump())
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"Medicine code already exists: {data.medicine_code}")
    except Exception:
        db.rollback()
        raise
    db.refresh(m)
    return m


def update_medicine(
    db: Session,
    medicine_id: int,
    data: MedicineUpdate,
    ctx: CallerContext,
) -> Medicine:
    """
    Catalog fields only; stock changes go through update_stock.
    Price changes never touch existing prescriptions (their lines keep
    the price snapshot).
    """
    changes = data.model_dump(exclude_unset=True)
    try:
        m = lock_medicine(db, medicine_id)
        if not m or m.is_deleted:
            raise NotFoundError("Medicine", medicine_id)
        old = {k: getattr(m, k) for k in changes}
        for k, v in changes.items():
            setattr(m, k, v)
        log_audit(db,
                  ctx=ctx,
                  action="UPDATE",
                  table_name="medicines",
                  record_id=m.id,
                  old_values=old,
                  new_values=changes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(m)
    return m


def delete_medicine(db: Session, medicine_id: int, ctx: CallerContext) -> None:
    try:
        m = lock_medicine(db, medicine_id)
        if not m or m.is_deleted:
            raise NotFoundError("Medicine", medicine_id)
        m.is_deleted = True
        m.status = 0
        log_audit(db, ctx=ctx, action="DELETE", table_name="medicines", record_id=m.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Medicine %s soft-deleted by %s", medicine_id, ctx.username)
