from unittest.mock import patch

import pytest

from finance_tracker.manager import ParserService
from finance_tracker.models import ParsedCandidate


@pytest.fixture
def mock_parsers():
    with patch("finance_tracker.manager.HeuristicParser") as mock_heuristic, \
         patch("finance_tracker.manager.LLMParser") as mock_llm, \
         patch.dict("os.environ", {"OPENAI_API_KEY": "fake-key"}):
        yield mock_heuristic, mock_llm


def test_manager_orchestration_priority(mock_parsers):
    mock_heuristic_cls, mock_llm_cls = mock_parsers
    heuristic = mock_heuristic_cls.return_value
    llm = mock_llm_cls.return_value

    service = ParserService()

    # Case 1: heuristics find something, LLM never asked
    heuristic.parse.return_value = [ParsedCandidate(description="coffee", amount=5)]
    result = service.parse("coffee 5")
    assert result[0].description == "coffee"
    llm.parse.assert_not_called()

    # Case 2: heuristics find nothing, LLM fallback
    heuristic.parse.return_value = []
    llm.parse.return_value = [ParsedCandidate(description="Dinner with Sam", amount=40)]
    result = service.parse("had dinner with sam, forty bucks")
    assert result[0].description == "Dinner with Sam"
    llm.parse.assert_called_once()

    # Case 3: nobody finds anything
    llm.parse.return_value = []
    assert service.parse("hello") == []


def test_llm_disabled_without_api_key():
    with patch.dict("os.environ", {}, clear=True), \
         patch("finance_tracker.manager.LLMParser") as mock_llm:
        service = ParserService()

    assert service.llm is None
    assert len(service.parsers) == 1
    mock_llm.assert_not_called()
    assert service.parse("bus 3")[0].category == "transport"
