"""Checkout ledger and the OUT -> RETURNED lifecycle.

Records are appended in state OUT and transition exactly once to RETURNED.
Availability is never written anywhere; it is recomputed from the OUT rows
(see services.availability) while the parent equipment row is locked.
"""
import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from gearlocker.error import ApiError, BadRequest, Conflict, InsufficientStock, InvalidState, NotFound
from gearlocker.models import Checkout, EquipmentItem, utcnow
from gearlocker.schemas import (
    CheckoutCreate,
    CheckoutRead,
    CheckoutReturn,
    CheckoutStats,
    CheckoutStatus,
    Condition,
    DisplayStatus,
)
from gearlocker.services.availability import available
from gearlocker.services.catalog import get_item_or_404, lock_item

logger = logging.getLogger(__name__)

DEFAULT_DUE_SOON_DAYS = 2

# List filters. "active" is the UI name for every OUT record, overdue and
# due-soon ones included; it is not the same set as DisplayStatus.active.
STATUS_FILTERS = {
    "out": CheckoutStatus.OUT.value,
    "active": CheckoutStatus.OUT.value,
    "returned": CheckoutStatus.RETURNED.value,
    "overdue": "overdue",
    "all": "all",
}


def display_status(
    checkout: Checkout, today: date, due_soon_days: int = DEFAULT_DUE_SOON_DAYS
) -> tuple[DisplayStatus, Optional[int]]:
    """Derive the read-time status and days until due (None once returned).

    Exactly one label per record: "active" here means OUT with more than
    `due_soon_days` left, so due-soon and overdue records are not "active".
    """
    if checkout.status == CheckoutStatus.RETURNED.value:
        return DisplayStatus.returned, None

    days = (checkout.expected_return_date - today).days
    if days < 0:
        return DisplayStatus.overdue, days
    if days <= due_soon_days:
        return DisplayStatus.due_soon, days
    return DisplayStatus.active, days


def to_read(
    checkout: Checkout,
    item_name: Optional[str],
    item_number: Optional[str],
    today: date,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> CheckoutRead:
    status, days = display_status(checkout, today, due_soon_days)
    return CheckoutRead(
        **checkout.model_dump(),
        item_name=item_name,
        item_number=item_number,
        display_status=status,
        days_until_due=days,
    )


def project_return_condition(item: EquipmentItem, checkout: Checkout) -> None:
    # item.condition always reflects the most recent return (last write wins)
    item.condition = checkout.condition_in
    item.updated_at = utcnow()


def record_checkout(
    session: Session,
    data: CheckoutCreate,
    *,
    today: Optional[date] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> CheckoutRead:
    today = today or date.today()
    try:
        item = lock_item(session, data.equipment_id)

        if item.condition == Condition.RETIRED.value:
            raise Conflict(f"{item.name} is retired and cannot be checked out")

        qty_available = available(session, item)
        if data.quantity_checked_out > qty_available:
            logger.info(
                "rejected checkout of %s x%s for %s: %s available",
                item.item_number, data.quantity_checked_out, data.checked_out_by, qty_available,
            )
            raise InsufficientStock(data.quantity_checked_out, qty_available)

        checkout = Checkout(
            equipment_id=item.id,
            checked_out_by=data.checked_out_by,
            checked_out_by_adult=data.checked_out_by_adult,
            event_trip_name=data.event_trip_name,
            expected_return_date=data.expected_return_date,
            quantity_checked_out=data.quantity_checked_out,
            condition_out=data.condition_out.value if data.condition_out else item.condition,
            status=CheckoutStatus.OUT.value,
        )
        session.add(checkout)
        session.commit()
    except ApiError:
        session.rollback()
        raise

    session.refresh(checkout)
    session.refresh(item)
    logger.info(
        "checkout %s: %s x%s to %s, due %s",
        checkout.id, item.item_number, checkout.quantity_checked_out,
        checkout.checked_out_by, checkout.expected_return_date,
    )
    return to_read(checkout, item.name, item.item_number, today, due_soon_days)


def record_return(
    session: Session,
    checkout_id: int,
    data: CheckoutReturn,
    *,
    today: Optional[date] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> CheckoutRead:
    today = today or date.today()
    try:
        checkout = session.get(Checkout, checkout_id)
        if not checkout:
            raise NotFound("Checkout not found")

        item = lock_item(session, checkout.equipment_id)
        session.refresh(checkout)
        if checkout.status != CheckoutStatus.OUT.value:
            raise InvalidState("Checkout already returned")

        checkout.status = CheckoutStatus.RETURNED.value
        checkout.actual_return_date = utcnow()
        checkout.condition_in = data.condition_in.value
        checkout.return_notes = data.return_notes
        project_return_condition(item, checkout)

        session.add(checkout)
        session.add(item)
        session.commit()
    except ApiError:
        session.rollback()
        raise

    session.refresh(checkout)
    session.refresh(item)
    logger.info(
        "return %s: %s x%s back in %s condition",
        checkout.id, item.item_number, checkout.quantity_checked_out, checkout.condition_in,
    )
    return to_read(checkout, item.name, item.item_number, today, due_soon_days)


def get_checkout(
    session: Session,
    checkout_id: int,
    *,
    today: Optional[date] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> CheckoutRead:
    checkout = session.get(Checkout, checkout_id)
    if not checkout:
        raise NotFound("Checkout not found")
    item = session.get(EquipmentItem, checkout.equipment_id)
    return to_read(
        checkout,
        item.name if item else None,
        item.item_number if item else None,
        today or date.today(),
        due_soon_days,
    )


def extend_checkout(
    session: Session,
    checkout_id: int,
    expected_return_date: date,
    *,
    today: Optional[date] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> CheckoutRead:
    """Move the due date of an OUT checkout; RETURNED records are frozen."""
    try:
        checkout = session.get(Checkout, checkout_id)
        if not checkout:
            raise NotFound("Checkout not found")

        # same lock as record_return, so a return cannot land between check and write
        lock_item(session, checkout.equipment_id)
        session.refresh(checkout)
        if checkout.status != CheckoutStatus.OUT.value:
            raise InvalidState("Returned checkouts cannot be changed")

        checkout.expected_return_date = expected_return_date
        session.add(checkout)
        session.commit()
    except ApiError:
        session.rollback()
        raise

    return get_checkout(session, checkout_id, today=today, due_soon_days=due_soon_days)


def parse_status_filter(raw: Optional[str]) -> str:
    key = (raw or "all").strip().lower()
    if key not in STATUS_FILTERS:
        raise BadRequest(f"Unsupported status filter: {raw} (OUT / RETURNED / overdue / all)")
    return STATUS_FILTERS[key]


def list_checkouts(
    session: Session,
    status: Optional[str] = None,
    *,
    limit: int = 50,
    offset: int = 0,
    today: Optional[date] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> tuple[list[CheckoutRead], int]:
    today = today or date.today()
    wanted = parse_status_filter(status)

    conds = []
    if wanted == "overdue":
        conds.append(Checkout.status == CheckoutStatus.OUT.value)
        conds.append(Checkout.expected_return_date < today)
    elif wanted != "all":
        conds.append(Checkout.status == wanted)

    count_stmt = select(func.count()).select_from(Checkout)
    if conds:
        count_stmt = count_stmt.where(*conds)
    total = session.exec(count_stmt).one()

    stmt = select(Checkout, EquipmentItem.name, EquipmentItem.item_number).join(
        EquipmentItem, EquipmentItem.id == Checkout.equipment_id
    )
    if conds:
        stmt = stmt.where(*conds)

    # open lists read soonest-due first, everything else newest first
    if wanted in (CheckoutStatus.OUT.value, "overdue"):
        stmt = stmt.order_by(Checkout.expected_return_date.asc(), Checkout.id.asc())
    else:
        stmt = stmt.order_by(Checkout.checkout_date.desc(), Checkout.id.desc())

    rows = session.exec(stmt.offset(offset).limit(limit)).all()
    items = [to_read(co, name, number, today, due_soon_days) for co, name, number in rows]
    return items, total


def item_history(
    session: Session,
    item_id: int,
    *,
    today: Optional[date] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> list[CheckoutRead]:
    item = get_item_or_404(session, item_id)
    today = today or date.today()
    stmt = (
        select(Checkout)
        .where(Checkout.equipment_id == item.id)
        .order_by(Checkout.checkout_date.desc(), Checkout.id.desc())
    )
    return [
        to_read(co, item.name, item.item_number, today, due_soon_days)
        for co in session.exec(stmt).all()
    ]


def checkout_stats(
    session: Session,
    *,
    today: Optional[date] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> CheckoutStats:
    """Dashboard counts.

    `active` counts every OUT record that is not overdue, due-soon ones
    included, so `due_soon` is a subset of it. `overdue` and `returned` are
    disjoint from `active`.
    """
    today = today or date.today()
    is_out = Checkout.status == CheckoutStatus.OUT.value

    def count(*conds) -> int:
        return session.exec(select(func.count()).select_from(Checkout).where(*conds)).one()

    return CheckoutStats(
        active=count(is_out, Checkout.expected_return_date >= today),
        due_soon=count(
            is_out,
            Checkout.expected_return_date >= today,
            Checkout.expected_return_date <= today + timedelta(days=due_soon_days),
        ),
        overdue=count(is_out, Checkout.expected_return_date < today),
        returned=count(Checkout.status == CheckoutStatus.RETURNED.value),
    )
