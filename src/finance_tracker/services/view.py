import asyncio
from datetime import datetime
from typing import Any

from finance_tracker.domain.projection import (
    ALL_CATEGORIES,
    compute_totals,
    filter_transactions,
    weekly_histogram,
)
from finance_tracker.logger import get_logger
from finance_tracker.models import DayBucket, Totals, Transaction
from finance_tracker.sync.session import SyncSession

logger = get_logger(__name__)


class TransactionView:
    """
    Derived view of local state: filtered rows, totals and the weekly histogram.

    Recomputed whenever the session commits or a filter changes. Search input
    only takes effect after ``debounce_seconds`` without further typing;
    the category filter applies at once.
    """

    def __init__(self, session: SyncSession, debounce_seconds: float = 0.3) -> None:
        self.session = session
        self.debounce_seconds = debounce_seconds
        self.category = ALL_CATEGORIES
        self.search = ""
        self.search_input = ""
        self.rows: list[Transaction] = []
        self.totals = Totals(income=0.0, expense=0.0, balance=0.0)
        self.weekly: list[DayBucket] = []
        self.categories: list[str] = []
        self._debounce: asyncio.TimerHandle | None = None
        session.subscribe(self._on_change)
        self.recompute()

    def _on_change(self, transactions: list[Transaction]) -> None:
        self.recompute(transactions)

    def recompute(self, transactions: list[Transaction] | None = None, now: datetime | None = None) -> None:
        if transactions is None:
            transactions = self.session.transactions
        self.totals = compute_totals(transactions)
        self.weekly = weekly_histogram(transactions, now=now)
        self.categories = sorted({txn.category for txn in transactions})
        self.rows = filter_transactions(transactions, category=self.category, search=self.search)

    def set_category(self, category: str | None) -> None:
        self.category = category or ALL_CATEGORIES
        self.recompute()

    def set_search(self, text: str | None) -> None:
        self.search_input = text or ""
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.apply_search()
            return
        self._debounce = loop.call_later(self.debounce_seconds, self.apply_search)

    def apply_search(self) -> None:
        """Apply the pending search text now."""
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        self.search = self.search_input.strip().lower()
        self.recompute()

    @property
    def search_pending(self) -> bool:
        return self._debounce is not None and not self._debounce.cancelled()

    def snapshot(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "search": self.search,
            "search_pending": self.search_pending,
            "categories": self.categories,
            "totals": self.totals.model_dump(),
            "weekly": [bucket.model_dump() for bucket in self.weekly],
            "transactions": [txn.model_dump(mode="json", by_alias=True) for txn in self.rows],
        }
