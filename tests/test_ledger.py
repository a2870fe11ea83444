import threading
from datetime import date, timedelta

import pytest
from sqlmodel import Session, select

from gearlocker.error import ApiError, Conflict, InsufficientStock, InvalidState, NotFound
from gearlocker.models import Checkout
from gearlocker.schemas import (
    CheckoutCreate,
    CheckoutReturn,
    Condition,
    DisplayStatus,
    EquipmentCreate,
    EquipmentUpdate,
)
from gearlocker.services import catalog, ledger
from gearlocker.services.availability import available, quantity_out

TODAY = date(2026, 5, 10)


def _new_item(session, quantity=5, item_number="BAG-001"):
    return catalog.create_item(session, EquipmentCreate(
        name="20F Sleeping Bag",
        item_number=item_number,
        category="Sleeping Gear",
        quantity_total=quantity,
    ))


def _checkout(session, item_id, qty, due=TODAY + timedelta(days=5)):
    return ledger.record_checkout(session, CheckoutCreate(
        equipment_id=item_id,
        checked_out_by="Jordan Lee",
        quantity_checked_out=qty,
        expected_return_date=due,
    ), today=TODAY)


def _available(session, item_id):
    return available(session, catalog.get_item_or_404(session, item_id))


def test_availability_tracks_open_checkouts(session):
    item = _new_item(session, quantity=6)
    a = _checkout(session, item.id, 2)
    b = _checkout(session, item.id, 3)
    assert quantity_out(session, item.id) == 5
    assert _available(session, item.id) == 1

    ledger.record_return(session, a.id, CheckoutReturn(condition_in=Condition.GOOD), today=TODAY)
    assert _available(session, item.id) == 3

    c = _checkout(session, item.id, 3)
    assert _available(session, item.id) == 0

    for co in (b, c):
        ledger.record_return(session, co.id, CheckoutReturn(condition_in=Condition.GOOD), today=TODAY)
    assert _available(session, item.id) == 6
    assert catalog.get_item(session, item.id).quantity_total == 6


def test_insufficient_stock_names_shortfall(session):
    item = _new_item(session, quantity=4)
    _checkout(session, item.id, 3)

    with pytest.raises(InsufficientStock) as exc:
        _checkout(session, item.id, 3)
    assert exc.value.available == 1
    assert exc.value.shortfall == 2
    assert "short by 2" in exc.value.message

    # the rejected request left nothing behind
    assert len(session.exec(select(Checkout)).all()) == 1
    assert _available(session, item.id) == 1


def test_return_is_single_shot(session):
    item = _new_item(session, quantity=2)
    co = _checkout(session, item.id, 2)

    ledger.record_return(session, co.id, CheckoutReturn(condition_in=Condition.POOR), today=TODAY)
    with pytest.raises(InvalidState):
        ledger.record_return(session, co.id, CheckoutReturn(condition_in=Condition.GOOD), today=TODAY)

    assert _available(session, item.id) == 2
    assert catalog.get_item(session, item.id).condition == Condition.POOR


def test_return_missing_checkout(session):
    with pytest.raises(NotFound):
        ledger.record_return(session, 99, CheckoutReturn(condition_in=Condition.GOOD))


def test_latest_return_sets_item_condition(session):
    item = _new_item(session, quantity=3)
    first = _checkout(session, item.id, 1)
    second = _checkout(session, item.id, 1)

    ledger.record_return(session, second.id, CheckoutReturn(condition_in=Condition.DAMAGED), today=TODAY)
    ledger.record_return(session, first.id, CheckoutReturn(condition_in=Condition.FAIR), today=TODAY)

    assert catalog.get_item(session, item.id).condition == Condition.FAIR


def test_delete_rules(session):
    unused = _new_item(session, item_number="BAG-002")
    catalog.delete_item(session, unused.id)
    with pytest.raises(NotFound):
        catalog.get_item(session, unused.id)

    used = _new_item(session, item_number="BAG-003")
    co = _checkout(session, used.id, 1)
    with pytest.raises(Conflict):
        catalog.delete_item(session, used.id)

    ledger.record_return(session, co.id, CheckoutReturn(condition_in=Condition.GOOD), today=TODAY)
    with pytest.raises(Conflict):
        catalog.delete_item(session, used.id)


def test_display_status():
    out = Checkout(
        equipment_id=1, checked_out_by="x", quantity_checked_out=1,
        condition_out="Good", expected_return_date=TODAY - timedelta(days=1),
    )
    assert ledger.display_status(out, TODAY) == (DisplayStatus.overdue, -1)

    out.expected_return_date = TODAY
    assert ledger.display_status(out, TODAY) == (DisplayStatus.due_soon, 0)

    out.expected_return_date = TODAY + timedelta(days=2)
    assert ledger.display_status(out, TODAY) == (DisplayStatus.due_soon, 2)

    out.expected_return_date = TODAY + timedelta(days=3)
    assert ledger.display_status(out, TODAY) == (DisplayStatus.active, 3)
    assert ledger.display_status(out, TODAY, due_soon_days=5)[0] == DisplayStatus.due_soon

    returned = Checkout(
        equipment_id=1, checked_out_by="x", quantity_checked_out=1,
        condition_out="Good", expected_return_date=TODAY - timedelta(days=30),
        status="RETURNED", condition_in="Good",
    )
    assert ledger.display_status(returned, TODAY) == (DisplayStatus.returned, None)


def test_overdue_listing_uses_given_day(session):
    item = _new_item(session, quantity=3)
    yesterday = _checkout(session, item.id, 1, due=TODAY - timedelta(days=1))
    _checkout(session, item.id, 1, due=TODAY + timedelta(days=9))

    items, total = ledger.list_checkouts(session, "overdue", today=TODAY)
    assert total == 1
    assert items[0].id == yesterday.id
    assert items[0].display_status == DisplayStatus.overdue

    stats = ledger.checkout_stats(session, today=TODAY)
    assert (stats.active, stats.overdue, stats.due_soon, stats.returned) == (1, 1, 0, 0)


def _start_in_other_session(engine, action, results):
    """Run `action(session)` on a second connection; give it time to hit the lock."""
    def run():
        with Session(engine) as other:
            try:
                action(other)
                results.append("ok")
            except ApiError as exc:
                results.append(exc.code)

    worker = threading.Thread(target=run)
    worker.start()
    worker.join(timeout=0.5)
    return worker


def test_concurrent_checkouts_of_last_unit(file_engine):
    with Session(file_engine) as session:
        item = _new_item(session, quantity=1)

    results = []
    gate = threading.Barrier(8)

    def grab():
        with Session(file_engine) as other:
            gate.wait()
            try:
                _checkout(other, item.id, 1)
                results.append("ok")
            except InsufficientStock:
                results.append("rejected")

    threads = [threading.Thread(target=grab) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["ok"] + ["rejected"] * 7
    with Session(file_engine) as session:
        assert quantity_out(session, item.id) == 1
        assert _available(session, item.id) == 0


def test_quantity_edit_blocks_checkout_until_commit(file_engine, monkeypatch):
    results, waiting = [], []
    real_quantity_out = catalog.quantity_out

    with Session(file_engine) as session:
        item = _new_item(session, quantity=5)

        def checkout_meanwhile(s, equipment_id):
            worker = _start_in_other_session(file_engine, lambda other: _checkout(other, item.id, 3), results)
            waiting.append(worker)
            return real_quantity_out(s, equipment_id)

        monkeypatch.setattr(catalog, "quantity_out", checkout_meanwhile)
        catalog.update_item(session, item.id, EquipmentUpdate(quantity_total=1))
        blocked = waiting[0].is_alive()
        waiting[0].join()

        assert blocked
        assert results == ["INSUFFICIENT_STOCK"]
        updated = catalog.get_item(session, item.id)
        assert updated.quantity_total == 1
        assert updated.quantity_available == 1


def test_delete_blocks_checkout_until_commit(file_engine, monkeypatch):
    results, waiting = [], []
    real_counts = catalog.checkout_counts

    with Session(file_engine) as session:
        item = _new_item(session, quantity=2)

        def checkout_meanwhile(s, item_id):
            worker = _start_in_other_session(file_engine, lambda other: _checkout(other, item.id, 1), results)
            waiting.append(worker)
            return real_counts(s, item_id)

        monkeypatch.setattr(catalog, "checkout_counts", checkout_meanwhile)
        catalog.delete_item(session, item.id)
        blocked = waiting[0].is_alive()
        waiting[0].join()

        assert blocked
        assert results == ["NOT_FOUND"]
        assert session.exec(select(Checkout)).all() == []


def test_due_date_edit_blocks_return_until_commit(file_engine, monkeypatch):
    results, waiting = [], []
    real_lock = ledger.lock_item
    new_due = TODAY + timedelta(days=21)

    with Session(file_engine) as session:
        item = _new_item(session, quantity=1)
        co = _checkout(session, item.id, 1)

        def lock_then_return(s, equipment_id):
            locked = real_lock(s, equipment_id)
            if not waiting:
                waiting.append(_start_in_other_session(
                    file_engine,
                    lambda other: ledger.record_return(other, co.id, CheckoutReturn(condition_in=Condition.GOOD)),
                    results,
                ))
            return locked

        monkeypatch.setattr(ledger, "lock_item", lock_then_return)
        ledger.extend_checkout(session, co.id, new_due, today=TODAY)
        blocked = waiting[0].is_alive()
        waiting[0].join()

        assert blocked
        assert results == ["ok"]
        final = ledger.get_checkout(session, co.id, today=TODAY)
        assert final.status == "RETURNED"
        assert final.expected_return_date == new_due
