import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, select

from gearlocker.error import ApiError, Conflict, DuplicateKey, NotFound
from gearlocker.models import Checkout, EquipmentItem, utcnow
from gearlocker.schemas import (
    AvailabilityResult,
    Category,
    CheckoutStatus,
    Condition,
    EquipmentCreate,
    EquipmentRead,
    EquipmentUpdate,
)
from gearlocker.services.availability import available, available_expr, out_quantities_subquery, quantity_out

logger = logging.getLogger(__name__)

# columns that cannot be cleared by a partial update
_NOT_NULL = {"name", "category", "condition", "quantity_total", "requires_inspection"}


def to_read(item: EquipmentItem, quantity_available: int) -> EquipmentRead:
    return EquipmentRead(**item.model_dump(), quantity_available=quantity_available)


def get_item_or_404(session: Session, item_id: int) -> EquipmentItem:
    item = session.get(EquipmentItem, item_id)
    if not item:
        raise NotFound("Equipment not found")
    return item


def lock_item(session: Session, item_id: int) -> EquipmentItem:
    """Take the write lock on one equipment row for the rest of the transaction.

    Touching updated_at issues an UPDATE: PostgreSQL holds the row lock and
    SQLite holds the database write lock until commit/rollback, so every
    write that checks checkouts against this item runs one after another.
    """
    item = get_item_or_404(session, item_id)
    item.updated_at = utcnow()
    session.add(item)
    try:
        session.flush()
    except StaleDataError:
        # deleted by a transaction that held the lock first
        session.rollback()
        raise NotFound("Equipment not found")
    session.refresh(item)
    return item


def list_items(
    session: Session,
    *,
    category: Optional[Category] = None,
    condition: Optional[Condition] = None,
    only_available: bool = False,
    q: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[EquipmentRead], int]:
    out_sq = out_quantities_subquery()
    avail = available_expr(out_sq)

    conds = []
    if category is not None:
        conds.append(EquipmentItem.category == category.value)
    if condition is not None:
        conds.append(EquipmentItem.condition == condition.value)
    if q:
        conds.append(or_(
            EquipmentItem.name.contains(q, autoescape=True),
            EquipmentItem.item_number.contains(q, autoescape=True),
        ))
    if only_available:
        conds.append(avail > 0)

    count_stmt = (
        select(func.count())
        .select_from(EquipmentItem)
        .outerjoin(out_sq, out_sq.c.equipment_id == EquipmentItem.id)
    )
    if conds:
        count_stmt = count_stmt.where(*conds)
    total = session.exec(count_stmt).one()

    items_stmt = select(EquipmentItem, avail.label("quantity_available")).outerjoin(
        out_sq, out_sq.c.equipment_id == EquipmentItem.id
    )
    if conds:
        items_stmt = items_stmt.where(*conds)
    items_stmt = items_stmt.order_by(EquipmentItem.name.asc(), EquipmentItem.id.asc())

    rows = session.exec(items_stmt.offset(offset).limit(limit)).all()
    return [to_read(item, int(qty)) for item, qty in rows], total


def get_item(session: Session, item_id: int) -> EquipmentRead:
    item = get_item_or_404(session, item_id)
    return to_read(item, available(session, item))


def create_item(session: Session, data: EquipmentCreate) -> EquipmentRead:
    existing = session.exec(
        select(EquipmentItem).where(EquipmentItem.item_number == data.item_number)
    ).first()
    if existing:
        raise DuplicateKey(f"Item number already exists: {data.item_number}")

    fields = data.model_dump(exclude_none=True)
    fields["category"] = data.category.value
    fields["condition"] = data.condition.value
    item = EquipmentItem(**fields)
    session.add(item)

    # unique constraint still guards concurrent creates
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateKey(f"Item number already exists: {data.item_number}")

    session.refresh(item)
    logger.info("created equipment %s (%s) qty=%s", item.id, item.item_number, item.quantity_total)
    return to_read(item, item.quantity_total)


def update_item(session: Session, item_id: int, data: EquipmentUpdate) -> EquipmentRead:
    changes = {
        k: v for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k not in _NOT_NULL
    }
    for key in ("category", "condition"):
        if key in changes:
            changes[key] = changes[key].value

    try:
        item = lock_item(session, item_id)

        checked_out = quantity_out(session, item.id)
        if "quantity_total" in changes and changes["quantity_total"] < checked_out:
            raise Conflict(
                f"quantity_total cannot drop below the {checked_out} unit(s) currently checked out"
            )

        for key, value in changes.items():
            setattr(item, key, value)

        session.add(item)
        session.commit()
    except ApiError:
        session.rollback()
        raise

    session.refresh(item)
    return to_read(item, item.quantity_total - checked_out)


def checkout_counts(session: Session, item_id: int) -> tuple[int, int]:
    """(open, total) checkout records for one item."""
    open_count = session.exec(
        select(func.count())
        .select_from(Checkout)
        .where(Checkout.equipment_id == item_id)
        .where(Checkout.status == CheckoutStatus.OUT.value)
    ).one()
    total = session.exec(
        select(func.count()).select_from(Checkout).where(Checkout.equipment_id == item_id)
    ).one()
    return open_count, total


def delete_item(session: Session, item_id: int) -> None:
    try:
        item = lock_item(session, item_id)

        open_count, history_count = checkout_counts(session, item.id)
        if open_count:
            raise Conflict(f"Equipment has {open_count} open checkout(s)")
        if history_count:
            raise Conflict("Equipment has checkout history; set its condition to Retired instead")

        item_number = item.item_number
        session.delete(item)
        session.commit()
    except ApiError:
        session.rollback()
        raise

    logger.info("deleted equipment %s (%s)", item_id, item_number)


def check_availability(session: Session, sku: str, quantity: int) -> AvailabilityResult:
    item = session.exec(select(EquipmentItem).where(EquipmentItem.item_number == sku)).first()
    if not item:
        raise NotFound(f"No equipment with item number {sku}")

    qty_available = available(session, item)
    can_fulfill = qty_available >= quantity
    return AvailabilityResult(
        sku=item.item_number,
        name=item.name,
        requested=quantity,
        available=qty_available,
        can_fulfill=can_fulfill,
        status="Available" if can_fulfill else "Insufficient Stock",
        condition=item.condition,
        location=item.location,
        requires_inspection=item.requires_inspection,
    )
