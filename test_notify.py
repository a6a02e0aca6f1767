import smtplib
from datetime import date, datetime

from tableplanner import notify
from tableplanner.domain import CustomerView, TableView, WaitlistEntryView

CUSTOMER = CustomerView(id=1, name="Asha Raman", email="asha@example.com")
TABLE = TableView(id=3, area_id=1, capacity=4, number="T4", area_name="Terrace")
ENTRY = WaitlistEntryView(
    id=7,
    customer_id=1,
    date=date(2030, 6, 14),
    party_size=3,
    created_at=datetime(2030, 6, 14, 12, 0),
    expires_at=datetime(2030, 6, 14, 23, 59),
    status="offered",
)


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def sendmail(self, sender, recipients, message):
        FakeSMTP.sent.append((sender, recipients, message))


class BrokenSMTP(FakeSMTP):
    def __init__(self, host, port, timeout=None):
        raise ConnectionRefusedError("no mail server")


def test_offer_body_mentions_table_and_party():
    body = notify.waitlist_offer_body(CUSTOMER, ENTRY, TABLE)
    assert "Asha Raman" in body
    assert "party of 3" in body
    assert "T4 (Terrace)" in body


def test_send_waitlist_offer(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)

    assert notify.send_waitlist_offer(CUSTOMER, ENTRY, TABLE) is True
    assert FakeSMTP.sent[0][1] == ["asha@example.com"]


def test_no_address_means_nothing_sent(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)

    assert notify.send_waitlist_offer(CustomerView(id=2, name="Tom"), ENTRY, TABLE) is False
    assert FakeSMTP.sent == []


def test_delivery_failure_is_swallowed(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", BrokenSMTP)
    assert notify.send_waitlist_offer(CUSTOMER, ENTRY, TABLE) is False


def test_fire_and_forget_runs_in_background():
    seen = []
    thread = notify.fire_and_forget(seen.append, "sent")
    thread.join(timeout=5)
    assert seen == ["sent"]
    assert thread.daemon
