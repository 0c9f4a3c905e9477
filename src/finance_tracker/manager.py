import os

from finance_tracker.logger import get_logger
from finance_tracker.models import ParsedCandidate
from finance_tracker.parsing.base import TextParser
from finance_tracker.parsing.heuristic import HeuristicParser
from finance_tracker.parsing.llm import LLMParser

logger = get_logger(__name__)


class ParserService:
    def __init__(self, category_threshold: float = 88.0):
        self.parsers: list[TextParser] = []

        # 1. Regex heuristics (fast, offline)
        self.heuristic = HeuristicParser(category_threshold=category_threshold)
        self.parsers.append(self.heuristic)

        # 2. LLM fallback, only with an API key
        api_key = os.getenv("OPENAI_API_KEY")
        if api_key:
            model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
            base_url = os.getenv("OPENAI_BASE_URL")
            self.llm: LLMParser | None = LLMParser(api_key=api_key, model=model, base_url=base_url)
            self.parsers.append(self.llm)
            logger.info(f"LLM parser enabled: model={model}, base_url={base_url or 'default'}")
        else:
            self.llm = None
            logger.info("OPENAI_API_KEY not set. LLM parser disabled.")

    def parse(self, text: str) -> list[ParsedCandidate]:
        for parser in self.parsers:
            parser_name = parser.__class__.__name__
            candidates = parser.parse(text)
            if candidates:
                logger.debug(f"{parser_name} found {len(candidates)} candidate(s).")
                return candidates
            logger.debug(f"{parser_name} found nothing.")

        logger.debug(f"No parser matched: '{text[:50]}...'")
        return []
