"""Read-only reporting over the booking ledger."""

from __future__ import annotations

from typing import Dict

from .database import Database
from .models import BookingStatus, DashboardSummary


class DashboardAggregator:
    """Recomputes administrative counters from the database on every call."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def counts(self) -> Dict[str, int]:
        by_status = self._database.count_bookings_by_status()
        return {
            "total": sum(by_status.values()),
            "accepted": by_status[BookingStatus.ACCEPTED],
            "declined": by_status[BookingStatus.DECLINED],
            "pending": by_status[BookingStatus.PENDING],
        }

    def total_guests(self) -> int:
        return self._database.sum_guests()

    def total_revenue(self) -> int:
        """Sum of ``total_price`` over accepted bookings only."""

        return self._database.sum_total_price(BookingStatus.ACCEPTED)

    def summary(self) -> DashboardSummary:
        counts = self.counts()
        return DashboardSummary(
            total_bookings=counts["total"],
            accepted_bookings=counts["accepted"],
            declined_bookings=counts["declined"],
            pending_bookings=counts["pending"],
            total_guests=self.total_guests(),
            total_revenue=self.total_revenue(),
        )


__all__ = ["DashboardAggregator"]
