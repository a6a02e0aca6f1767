from datetime import date, datetime, time, timedelta

import pytest

from tableplanner import waitlist
from tableplanner.domain import CustomerView, WaitlistEntryView
from tableplanner.errors import InvalidRequest, InvalidState, NotFound
from tableplanner.locks import TableLocks
from tableplanner.models import WaitlistEntry
from tableplanner.reservation_service import ReservationService

DAY = date(2030, 6, 14)
T0 = datetime(2030, 6, 14, 12, 0)
NOON = T0


def entry(id, priority=0, created_at=T0, **kwargs):
    kwargs.setdefault("party_size", 2)
    kwargs.setdefault("expires_at", waitlist.default_expiry(DAY))
    return WaitlistEntryView(
        id=id, customer_id=1, date=DAY, created_at=created_at, priority=priority, **kwargs
    )


def test_equal_priority_orders_by_arrival():
    a = entry(1, priority=5, created_at=T0)
    b = entry(2, priority=5, created_at=T0 + timedelta(seconds=1))
    assert waitlist.ordered([b, a]) == [a, b]


def test_priority_then_arrival_then_id():
    low = entry(1, priority=1)
    high_late = entry(2, priority=7, created_at=T0 + timedelta(minutes=5))
    high_early = entry(3, priority=7)
    same_moment = entry(4, priority=7)
    assert [e.id for e in waitlist.ordered([low, high_late, same_moment, high_early])] == [3, 4, 2, 1]


def test_compute_priority():
    vip = CustomerView(id=1, is_vip=True)
    regular = CustomerView(id=2)
    assert waitlist.compute_priority(2, regular) == 0
    assert waitlist.compute_priority(8, regular) == 2
    assert waitlist.compute_priority(8, vip) == 7
    assert waitlist.compute_priority(8, vip, override=1) == 1


def test_default_expiry_is_end_of_day():
    expiry = waitlist.default_expiry(DAY)
    assert expiry.date() == DAY
    assert expiry > datetime(2030, 6, 14, 23, 59)


def test_eligibility_rules():
    base = entry(1, party_size=4, preferred_time=time(19, 0), area_id=2)

    assert waitlist.is_eligible(base, 4, DAY, "19:30", NOON, area_id=2)
    assert not waitlist.is_eligible(base, 2, DAY, "19:30", NOON, area_id=2)
    assert not waitlist.is_eligible(base, 4, DAY + timedelta(days=1), "19:30", NOON, area_id=2)
    assert not waitlist.is_eligible(base, 4, DAY, "19:30", NOON, area_id=1)
    # Hour distance within tolerance
    assert waitlist.is_eligible(base, 4, DAY, "21:45", NOON, area_id=2)
    assert not waitlist.is_eligible(base, 4, DAY, "22:00", NOON, area_id=2)
    assert waitlist.is_eligible(base, 4, DAY, "22:00", NOON, area_id=2, hour_tolerance=3)


def test_entry_without_preferences_matches_any_slot():
    anywhere = entry(1)
    assert waitlist.is_eligible(anywhere, 2, DAY, "11:00", NOON, area_id=7)
    assert waitlist.is_eligible(anywhere, 2, DAY, "23:00", NOON)


def test_next_eligible_skips_expired_and_non_waiting():
    expired = entry(1, priority=9, expires_at=NOON - timedelta(seconds=1))
    offered = entry(2, priority=8, status="offered")
    too_big = entry(3, priority=7, party_size=6)
    fits = entry(4, priority=1)

    head = waitlist.next_eligible([expired, offered, too_big, fits], 4, DAY, "19:00", NOON)
    assert head.id == 4
    assert waitlist.next_eligible([expired, offered, too_big], 4, DAY, "19:00", NOON) is None


def test_expire_only_touches_waiting_entries():
    overdue = entry(1, expires_at=NOON - timedelta(seconds=1))
    assert waitlist.overdue([overdue, entry(2)], NOON) == [overdue]

    expired = waitlist.expire(overdue)
    assert expired.status == "expired"
    assert waitlist.expire(expired) == expired
    accepted = entry(3, status="accepted")
    assert waitlist.expire(accepted).status == "accepted"


def test_offer_transitions():
    offered = waitlist.offer(entry(1), table_id=9, now=NOON)
    assert offered.status == "offered"
    assert offered.offered_table_id == 9
    assert offered.offered_at == NOON

    assert waitlist.accept(offered).status == "accepted"
    assert waitlist.decline(offered).status == "declined"


def test_invalid_transitions():
    with pytest.raises(InvalidState):
        waitlist.offer(entry(1, status="offered"), 9, NOON)
    with pytest.raises(InvalidState):
        waitlist.offer(entry(1, expires_at=NOON - timedelta(seconds=1)), 9, NOON)
    with pytest.raises(InvalidState):
        waitlist.accept(entry(1))
    with pytest.raises(InvalidState):
        waitlist.decline(entry(1, status="expired"))


def test_status_counts():
    counts = waitlist.status_counts([entry(1), entry(2), entry(3, status="offered")])
    assert counts["waiting"] == 2
    assert counts["offered"] == 1
    assert counts["expired"] == 0
    assert counts["total"] == 3


# Stored waitlist

def test_enqueue_computes_priority(service, floor):
    queued = service.enqueue_waitlist(floor.vip.id, date(2030, 6, 14), 8, preferred_time="19:00")
    assert queued.priority == 7
    assert queued.status == "waiting"
    assert queued.preferred_time == time(19, 0)
    assert queued.expires_at == waitlist.default_expiry(date(2030, 6, 14))

    regular = service.enqueue_waitlist(floor.regular.id, date(2030, 6, 14), 3)
    assert regular.priority == 0


def test_enqueue_validation(service, floor):
    with pytest.raises(NotFound):
        service.enqueue_waitlist(999, DAY, 2)
    with pytest.raises(NotFound):
        service.enqueue_waitlist(floor.regular.id, DAY, 2, area_id=999)
    with pytest.raises(InvalidRequest):
        service.enqueue_waitlist(floor.regular.id, DAY, 0)
    with pytest.raises(InvalidRequest):
        service.enqueue_waitlist(floor.regular.id, DAY, 2, preferred_time="25:00")
    with pytest.raises(InvalidRequest):
        service.enqueue_waitlist(floor.regular.id, DAY - timedelta(days=1), 2)


def test_expire_sweep_is_idempotent(service, floor, clock):
    stale = service.store.add_waitlist_entry(
        customer_id=floor.regular.id,
        day=DAY,
        party_size=2,
        priority=0,
        created_at=clock() - timedelta(hours=2),
        expires_at=clock() - timedelta(seconds=1),
    )
    fresh = service.enqueue_waitlist(floor.vip.id, DAY, 2)
    service.store.commit()

    assert service.expire_waitlist() == 1
    assert service.expire_waitlist() == 0
    assert service.store.get_waitlist_entry(stale.id).status == "expired"
    assert service.store.get_waitlist_entry(fresh.id).status == "waiting"

    offered = service.offer_next_for_table(floor.t4.id, DAY, "19:00")
    assert offered.id == fresh.id


def test_expire_sweep_keeps_entries_changed_meanwhile(service, floor, clock, db, monkeypatch):
    stale = service.store.add_waitlist_entry(
        customer_id=floor.regular.id,
        day=DAY,
        party_size=2,
        priority=0,
        created_at=clock() - timedelta(hours=2),
        expires_at=clock() - timedelta(seconds=1),
    )
    service.store.commit()

    read = service.store.waitlist_entries
    calls = []

    def read_then_offer_elsewhere(*args, **kwargs):
        entries = read(*args, **kwargs)
        if not calls:
            # Another request offers the entry right after the first read
            db.execute(
                WaitlistEntry.__table__.update()
                .where(WaitlistEntry.id == stale.id)
                .values(status="offered", offered_table_id=floor.t2.id)
            )
            db.commit()
        calls.append(kwargs)
        return entries

    monkeypatch.setattr(service.store, "waitlist_entries", read_then_offer_elsewhere)

    assert service.expire_waitlist() == 0
    assert calls[-1]["fresh"] is True
    assert service.store.get_waitlist_entry(stale.id, fresh=True).status == "offered"


def test_expire_sweep_holds_the_day_lock(service, floor, clock, monkeypatch):
    service.store.add_waitlist_entry(
        customer_id=floor.regular.id,
        day=DAY,
        party_size=2,
        priority=0,
        created_at=clock() - timedelta(hours=2),
        expires_at=clock() - timedelta(seconds=1),
    )
    service.store.commit()

    save = service.store.save_waitlist_entry
    held = []

    def save_and_check(view):
        held.append(service.locks.waitlist_lock(DAY).locked())
        return save(view)

    monkeypatch.setattr(service.store, "save_waitlist_entry", save_and_check)

    assert service.expire_waitlist() == 1
    assert held == [True]


def test_offer_next_follows_queue_order(service, floor, clock):
    first = service.enqueue_waitlist(floor.regular.id, DAY, 2)
    clock.advance(seconds=1)
    second = service.enqueue_waitlist(floor.regular.id, DAY, 2)
    clock.advance(seconds=1)
    big = service.enqueue_waitlist(floor.vip.id, DAY, 6)

    # T4 cannot seat six, so the VIP party is skipped
    assert service.offer_next_for_table(floor.t4.id, DAY, "19:00").id == first.id
    assert service.offer_next_for_table(floor.t2.id, DAY, "19:00").id == second.id
    assert service.offer_next_for_table(floor.t2.id, DAY, "19:00") is None
    assert service.offer_next_for_table(floor.m6.id, DAY, "19:00").id == big.id


def test_accept_and_decline(service, floor):
    queued = service.enqueue_waitlist(floor.regular.id, DAY, 2)
    other = service.enqueue_waitlist(floor.vip.id, DAY, 2)

    with pytest.raises(InvalidState):
        service.accept_offer(queued.id)

    service.offer(queued.id, floor.t2.id)
    assert service.accept_offer(queued.id).status == "accepted"
    with pytest.raises(InvalidState):
        service.offer(queued.id, floor.t2.id)

    service.offer(other.id, floor.t4.id)
    assert service.decline_offer(other.id).status == "declined"

    stats = service.waitlist_stats(DAY)
    assert stats["accepted"] == 1
    assert stats["declined"] == 1
    assert stats["total"] == 2


def test_offer_notifies_customer(db, floor, clock):
    sent = []
    service = ReservationService(
        db, locks=TableLocks(), clock=clock, notifier=lambda customer, e, table: sent.append((customer.id, e.id, table.id))
    )
    queued = service.enqueue_waitlist(floor.regular.id, DAY, 2)

    service.offer_next_for_table(floor.t2.id, DAY, "19:00")

    assert sent == [(floor.regular.id, queued.id, floor.t2.id)]


def test_failing_notifier_does_not_undo_offer(db, floor, clock):
    def broken(*args):
        raise RuntimeError("mail server down")

    service = ReservationService(db, locks=TableLocks(), clock=clock, notifier=broken)
    queued = service.enqueue_waitlist(floor.regular.id, DAY, 2)

    offered = service.offer_next_for_table(floor.t2.id, DAY, "19:00")

    assert offered.id == queued.id
    assert service.store.get_waitlist_entry(queued.id, fresh=True).status == "offered"
