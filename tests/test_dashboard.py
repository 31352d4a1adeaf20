from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

from resort.dashboard import DashboardAggregator
from resort.database import Database
from resort.ledger import BookingLedger
from resort.models import DashboardSummary
from resort.notifications import NotificationOutbox


TODAY = date(2030, 6, 1)


def _build(tmp_path: Path):
    database = Database(tmp_path / "resort.sqlite3")
    database.initialize()
    ledger = BookingLedger(database, NotificationOutbox(database), today=lambda: TODAY)
    return database, ledger, DashboardAggregator(database)


def test_empty_ledger_reports_zeros(tmp_path: Path) -> None:
    _, _, dashboard = _build(tmp_path)

    assert dashboard.summary() == DashboardSummary()


def test_revenue_counts_only_accepted_bookings(tmp_path: Path) -> None:
    database, ledger, dashboard = _build(tmp_path)
    user = database.create_user("Maria Santos", "maria@example.com", "correct-horse-battery")
    checkin = TODAY + timedelta(days=1)

    accepted = ledger.submit(user.id, "native-cottage", checkin, checkin + timedelta(days=2), 2)
    declined = ledger.submit(user.id, "premium-room", checkin, checkin + timedelta(days=1), 4)
    ledger.submit(user.id, "tent-site", checkin, checkin + timedelta(days=1), 1)
    ledger.accept(accepted.id)
    ledger.decline(declined.id)

    assert dashboard.counts() == {"total": 3, "accepted": 1, "declined": 1, "pending": 1}
    assert dashboard.total_revenue() == 3000
    assert dashboard.total_guests() == 7

    summary = dashboard.summary()
    assert summary.total_bookings == 3
    assert summary.pending_bookings == 1
    assert summary.total_revenue == 3000
