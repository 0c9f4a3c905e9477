import re

from rapidfuzz import fuzz, process

from finance_tracker.domain.dates import WEEKDAYS
from finance_tracker.models import ParsedCandidate, TransactionType

from .base import TextParser

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "food": ("food", "lunch", "dinner", "breakfast", "coffee", "restaurant", "pizza", "snacks", "cafe"),
    "groceries": ("groceries", "grocery", "supermarket", "vegetables", "milk", "fruits"),
    "salary": ("salary", "paycheck", "payroll", "wages", "bonus"),
    "transport": ("transport", "uber", "taxi", "cab", "bus", "train", "metro", "fuel", "petrol", "parking"),
    "entertainment": ("entertainment", "movie", "movies", "cinema", "netflix", "concert"),
    "bills": ("bills", "bill", "rent", "electricity", "water", "internet", "phone", "recharge"),
    "shopping": ("shopping", "amazon", "clothes", "shoes", "mall"),
}
INCOME_CATEGORIES = frozenset({"salary"})

_KEYWORDS = {keyword: category for category, words in CATEGORY_KEYWORDS.items() for keyword in words}
_KEYWORD_LIST = list(_KEYWORDS)

_DATE_PHRASE = re.compile(
    r"\b(?:today|yesterday"
    r"|\d+\s+(?:day|week|month|year)s?\s+ago"
    r"|last\s+(?:" + "|".join(WEEKDAYS) + r")"
    r"|\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}"
    r"|\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})\b",
    re.IGNORECASE,
)
_TYPE_PREFIX = re.compile(r"^(income|expense)\b[\s:,\-]*", re.IGNORECASE)
_ENTRY = re.compile(
    r"([a-z][a-z\s&']*?)\s*(?:rs\.?|inr|usd|eur|₹|\$|€)?\s*(\d+(?:,\d{3})*(?:\.\d{1,2})?)",
    re.IGNORECASE,
)
_LEADING_JOINER = re.compile(r"^(?:and|&)\s+", re.IGNORECASE)
_TRAILING_CURRENCY = re.compile(r"\s+(?:rs|inr|usd|eur)$", re.IGNORECASE)


def guess_category(description: str, threshold: float = 88.0) -> str | None:
    for token in re.findall(r"[a-z]+", description.lower()):
        if len(token) < 3:
            continue
        match = process.extractOne(token, _KEYWORD_LIST, scorer=fuzz.ratio, score_cutoff=threshold)
        if match:
            return _KEYWORDS[match[0]]
    return None


def _clean_description(raw: str) -> str:
    text = " ".join(raw.split())
    text = _LEADING_JOINER.sub("", text)
    text = _TRAILING_CURRENCY.sub("", text)
    return text.strip(" &'")


class HeuristicParser(TextParser):
    """
    Line-oriented regex extraction of ``<description> <amount>`` pairs.

    A line may start with ``income``/``expense`` to set the type and may carry
    one date phrase ("yesterday", "3 days ago", "12-08-2025") that applies to
    every entry on that line.
    """

    def __init__(self, category_threshold: float = 88.0):
        self.category_threshold = category_threshold

    def parse(self, text: str) -> list[ParsedCandidate]:
        candidates: list[ParsedCandidate] = []
        for line in (text or "").splitlines():
            candidates.extend(self._parse_line(line.strip()))
        return candidates

    def _parse_line(self, line: str) -> list[ParsedCandidate]:
        if not line:
            return []

        explicit_type: TransactionType | None = None
        prefix = _TYPE_PREFIX.match(line)
        if prefix:
            explicit_type = TransactionType(prefix.group(1).lower())
            line = line[prefix.end():]

        date_text = None
        date_match = _DATE_PHRASE.search(line)
        if date_match:
            date_text = date_match.group(0)
            line = f"{line[:date_match.start()]} {line[date_match.end():]}"

        found: list[ParsedCandidate] = []
        for match in _ENTRY.finditer(line):
            description = _clean_description(match.group(1))
            if not description:
                continue
            category = guess_category(description, self.category_threshold)
            if explicit_type is not None:
                txn_type = explicit_type
            elif category in INCOME_CATEGORIES:
                txn_type = TransactionType.INCOME
            else:
                txn_type = TransactionType.EXPENSE
            found.append(ParsedCandidate(
                description=description,
                amount=float(match.group(2).replace(",", "")),
                type=txn_type,
                date_text=date_text,
                category=category,
            ))
        return found
