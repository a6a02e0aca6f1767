from __future__ import annotations
import logging
import os
import smtplib
import threading
from email.mime.text import MIMEText
from email.utils import formataddr

from .domain import CustomerView, TableView, WaitlistEntryView

logger = logging.getLogger(__name__)

SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
SMTP_PORT = int(os.getenv("SMTP_PORT", "25"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_FROM = os.getenv("SMTP_FROM", "no-reply@tableplanner.local")
SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "Table Planner")


def _send_mail(to: str, subject: str, body: str) -> bool:
    try:
        msg = MIMEText(body)
        msg["Subject"] = subject
        msg["From"] = formataddr((SMTP_FROM_NAME, SMTP_FROM))
        msg["To"] = to
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10) as s:
            if SMTP_USER and SMTP_PASS:
                s.starttls()
                s.login(SMTP_USER, SMTP_PASS)
            s.sendmail(SMTP_FROM, [to], msg.as_string())
        return True
    except (OSError, smtplib.SMTPException) as e:
        logger.warning("Could not deliver mail to %s: %s", to, e)
        return False


def waitlist_offer_body(customer: CustomerView, entry: WaitlistEntryView, table: TableView) -> str:
    return (
        f"Hello {customer.name or 'there'},\n\n"
        f"A table has opened up for your party of {entry.party_size} "
        f"on {entry.date.isoformat()}.\n"
        f"Table: {table.number or table.id} ({table.area_name})\n\n"
        f"Please reply soon to confirm; the offer is held for a limited time.\n"
    )


def send_waitlist_offer(customer: CustomerView, entry: WaitlistEntryView, table: TableView) -> bool:
    """Best-effort: email the customer that a table is on offer.
    Never raises; returns False if there is no address or sending fails.
    """
    to = (customer.email or "").strip()
    if not to:
        return False
    return _send_mail(to, "A table is available for you", waitlist_offer_body(customer, entry, table))


def fire_and_forget(send, *args) -> threading.Thread:
    """Run a sender on a daemon thread so delivery never blocks the caller"""
    thread = threading.Thread(target=send, args=args, daemon=True)
    thread.start()
    return thread
