"""Derived availability: quantity_total minus what is currently OUT.

Nothing here is stored; every figure comes from an aggregate over the
checkouts table at read time.
"""
from sqlalchemy import func
from sqlmodel import Session, select

from gearlocker.models import Checkout, EquipmentItem
from gearlocker.schemas import CheckoutStatus


def quantity_out(session: Session, equipment_id: int) -> int:
    stmt = (
        select(func.coalesce(func.sum(Checkout.quantity_checked_out), 0))
        .where(Checkout.equipment_id == equipment_id)
        .where(Checkout.status == CheckoutStatus.OUT.value)
    )
    return int(session.exec(stmt).one())


def available(session: Session, item: EquipmentItem) -> int:
    return item.quantity_total - quantity_out(session, item.id)


def out_quantities_subquery():
    """Per-item OUT quantity, for joining onto catalog queries."""
    return (
        select(
            Checkout.equipment_id.label("equipment_id"),
            func.sum(Checkout.quantity_checked_out).label("out_qty"),
        )
        .where(Checkout.status == CheckoutStatus.OUT.value)
        .group_by(Checkout.equipment_id)
        .subquery()
    )


def available_expr(out_sq):
    return EquipmentItem.quantity_total - func.coalesce(out_sq.c.out_qty, 0)
