from concurrent.futures import ThreadPoolExecutor
from datetime import date

from models import db
from models.booking import STATUS_CANCELLED, Booking
from models.closed_slot import ClosedSlot
from services.slot_store import SlotStore
from tests.conftest import PHONE, make_booking

DAY = date(2026, 3, 12)


def test_second_insert_for_same_slot_is_a_conflict(app, clock):
    store = SlotStore(clock=clock)

    first = store.create_booking("Dana", PHONE, DAY, "14:00")
    second = store.create_booking("Noa", "+972521111111", DAY, "14:00")

    assert first.created
    assert first.booking.created_at == clock.now
    assert second.conflict
    assert Booking.query.filter_by(booking_date=DAY, booking_time="14:00").count() == 1


def test_cancelled_booking_frees_the_slot(app, clock):
    store = SlotStore(clock=clock)
    booking = store.create_booking("Dana", PHONE, DAY, "14:00").booking

    assert store.cancel(booking.id)
    assert not store.is_slot_taken(DAY, "14:00")
    assert store.create_booking("Noa", "+972521111111", DAY, "14:00").created


def test_cancel_is_conditional(app, clock):
    store = SlotStore(clock=clock)
    booking = store.create_booking("Dana", PHONE, DAY, "14:00").booking

    assert store.cancel(booking.id) is True
    assert store.cancel(booking.id) is False
    assert store.cancel(9999) is False

    row = db.session.get(Booking, booking.id)
    assert row.status == STATUS_CANCELLED
    assert row.cancelled_at == clock.now


def test_is_slot_taken(app):
    store = SlotStore()
    make_booking(DAY, "10:00")
    make_booking(DAY, "11:00", status=STATUS_CANCELLED)

    assert store.is_slot_taken(DAY, "10:00")
    assert not store.is_slot_taken(DAY, "11:00")
    assert not store.is_slot_taken(date(2026, 3, 13), "10:00")


def test_is_slot_closed_for_time_and_whole_day(app):
    store = SlotStore()
    db.session.add(ClosedSlot(closed_date=DAY, closed_time="12:00"))
    db.session.add(ClosedSlot(closed_date=date(2026, 3, 13), closed_time=None, reason="Holiday"))
    db.session.commit()

    assert store.is_slot_closed(DAY, "12:00")
    assert not store.is_slot_closed(DAY, "12:30")
    assert store.is_slot_closed(date(2026, 3, 13), "09:00")


def test_active_bookings_ordered_by_date_then_time(app):
    store = SlotStore()
    make_booking(date(2026, 3, 14), "09:00")
    make_booking(DAY, "16:00")
    make_booking(DAY, "10:00")
    make_booking(DAY, "12:00", status=STATUS_CANCELLED)
    make_booking(DAY, "11:00", phone="+972521111111")

    rows = store.active_bookings_for(PHONE)
    assert [(b.booking_date, b.booking_time) for b in rows] == [
        (DAY, "10:00"),
        (DAY, "16:00"),
        (date(2026, 3, 14), "09:00"),
    ]


def test_day_overview_hides_customers(app):
    store = SlotStore()
    make_booking(DAY, "15:00")
    make_booking(DAY, "09:30")
    db.session.add(ClosedSlot(closed_date=DAY, closed_time="12:00"))
    db.session.commit()

    overview = store.day_overview(DAY)
    assert overview == {
        "date": "2026-03-12",
        "taken_times": ["09:30", "15:00"],
        "closed_times": ["12:00"],
        "day_closed": False,
    }


def test_concurrent_inserts_for_one_slot_have_one_winner(file_app, clock):
    store = SlotStore(clock=clock)

    def attempt(i):
        with file_app.app_context():
            return store.create_booking(f"Customer {i}", f"+97254000000{i}", DAY, "14:00").created

    with ThreadPoolExecutor(max_workers=5) as pool:
        results = list(pool.map(attempt, range(5)))

    assert results.count(True) == 1
    with file_app.app_context():
        assert Booking.query.filter_by(booking_date=DAY, booking_time="14:00").count() == 1
