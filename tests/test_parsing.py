from datetime import datetime

from finance_tracker.domain.transactions import normalize_candidates
from finance_tracker.models import ParsedCandidate, TransactionType
from finance_tracker.parsing.heuristic import HeuristicParser, guess_category

NOW = datetime(2024, 3, 20, 12, 0)


def test_guess_category_tolerates_typos() -> None:
    assert guess_category("coffee") == "food"
    assert guess_category("cofee with friends") == "food"
    assert guess_category("uber to airport") == "transport"
    assert guess_category("xyzzy") is None


def test_parses_multiple_entries_with_shared_date() -> None:
    parser = HeuristicParser()

    candidates = parser.parse("coffee 50 and lunch 200 yesterday")

    assert [(c.description, c.amount) for c in candidates] == [("coffee", 50.0), ("lunch", 200.0)]
    assert all(c.date_text == "yesterday" for c in candidates)
    assert all(c.category == "food" for c in candidates)
    assert all(c.type is TransactionType.EXPENSE for c in candidates)


def test_income_from_prefix_or_category() -> None:
    parser = HeuristicParser()

    prefixed = parser.parse("income freelance gig 1,500.50")
    salary = parser.parse("salary 50000")

    assert prefixed[0].type is TransactionType.INCOME
    assert prefixed[0].amount == 1500.5
    assert prefixed[0].description == "freelance gig"
    assert salary[0].type is TransactionType.INCOME
    assert salary[0].category == "salary"


def test_each_line_is_parsed_separately() -> None:
    parser = HeuristicParser()

    candidates = parser.parse("rent 900 2024-03-01\nbus 3 last monday\n\nnothing here")

    assert [(c.description, c.date_text) for c in candidates] == [("rent", "2024-03-01"), ("bus", "last monday")]
    assert candidates[0].category == "bills"


def test_text_without_amounts_yields_nothing() -> None:
    assert HeuristicParser().parse("just a note") == []
    assert HeuristicParser().parse("") == []


def test_normalize_candidates_fills_defaults() -> None:
    drafts = normalize_candidates(
        [
            ParsedCandidate(description="coffee", amount=50, date_text="yesterday", category="food"),
            ParsedCandidate(description="mystery"),
            ParsedCandidate(description="   ", amount=10),
            ParsedCandidate(description="receipt", amount=12, date=datetime(2024, 1, 2)),
        ],
        now=NOW,
    )

    assert [d.description for d in drafts] == ["coffee", "mystery", "receipt"]
    assert drafts[0].date == datetime(2024, 3, 19, 12, 0)
    assert drafts[1].amount == 0
    assert drafts[1].category == "general"
    assert drafts[1].date == NOW
    assert drafts[2].date == datetime(2024, 1, 2)
