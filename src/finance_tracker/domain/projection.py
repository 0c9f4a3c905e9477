from collections.abc import Iterable
from datetime import date, datetime, timedelta

from finance_tracker.models import DEFAULT_CATEGORY, DayBucket, Totals, Transaction, TransactionType

ALL_CATEGORIES = "all"
_EPOCH = datetime(1970, 1, 1)


def compute_totals(transactions: Iterable[Transaction]) -> Totals:
    income = 0.0
    expense = 0.0
    for txn in transactions:
        if txn.type is TransactionType.INCOME:
            income += abs(txn.amount)
        else:
            expense += abs(txn.amount)
    return Totals(income=income, expense=expense, balance=income - expense)


def day_label(value: date) -> str:
    return f"{value.day} {value:%b}"


def weekly_histogram(transactions: Iterable[Transaction], now: datetime | None = None) -> list[DayBucket]:
    """Income/expense sums for the last seven calendar days, oldest first."""
    now = now or datetime.now()
    today = now.date()
    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    buckets = {day: DayBucket(label=day_label(day), day=day.isoformat()) for day in days}

    for txn in transactions:
        bucket = buckets.get((txn.date or now).date())
        if bucket is None:
            continue
        if txn.type is TransactionType.INCOME:
            bucket.income += abs(txn.amount)
        else:
            bucket.expense += abs(txn.amount)
    return [buckets[day] for day in days]


def _sort_key(txn: Transaction) -> datetime:
    return txn.date or _EPOCH


def matches_search(txn: Transaction, query: str) -> bool:
    if not query:
        return True
    haystacks = (txn.description, txn.category, txn.ref)
    return any(query in (value or "").lower() for value in haystacks)


def filter_transactions(
    transactions: Iterable[Transaction],
    category: str | None = ALL_CATEGORIES,
    search: str | None = "",
) -> list[Transaction]:
    """Category filter (exact), then case-insensitive search; newest first."""
    query = (search or "").strip().lower()
    wanted = category or ALL_CATEGORIES
    selected = [
        txn for txn in transactions
        if (wanted == ALL_CATEGORIES or (txn.category or DEFAULT_CATEGORY) == wanted)
        and matches_search(txn, query)
    ]
    selected.sort(key=_sort_key, reverse=True)
    return selected
