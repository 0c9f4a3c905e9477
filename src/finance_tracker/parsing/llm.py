import json
import os

from openai import OpenAI
from pydantic import ValidationError

from finance_tracker.logger import get_logger
from finance_tracker.models import ParsedCandidate

from .base import TextParser
from .heuristic import CATEGORY_KEYWORDS

logger = get_logger(__name__)

_INSTRUCTIONS = "You extract personal finance transactions from text. Reply with JSON only."

_PROMPT = """
Extract every income or expense transaction mentioned in the text below.
Return a JSON array. Each element must have:
  "description": short text,
  "amount": positive number,
  "type": "income" or "expense",
  "dateText": the date words used in the text (e.g. "yesterday", "12-08-2025") or null,
  "category": one of {categories} or null.
Return [] when there are none.

Text:
{text}
"""


class LLMParser(TextParser):
    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        categories: tuple[str, ...] = tuple(CATEGORY_KEYWORDS),
    ):
        self.client = OpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url or os.getenv("OPENAI_BASE_URL") or None,
        )
        self.model = model
        self.categories = categories

    def parse(self, text: str) -> list[ParsedCandidate]:
        if not text or not text.strip():
            return []
        try:
            response = self.client.responses.create(
                model=self.model,
                instructions=_INSTRUCTIONS,
                input=_PROMPT.format(categories=", ".join(self.categories), text=text.strip()),
                temperature=0.0,
            )
            raw = self._extract_output_text(response)
            if raw is None:
                return []
            return self._decode(raw)
        except Exception as e:
            logger.error(f"LLM Error: {e}")
            return []

    @staticmethod
    def _extract_output_text(response: object) -> str | None:
        output_text = getattr(response, "output_text", None)
        if output_text:
            return output_text

        parts: list[str] = []
        for item in getattr(response, "output", None) or []:
            for block in getattr(item, "content", None) or []:
                if getattr(block, "type", None) in {"output_text", "text"} and getattr(block, "text", None):
                    parts.append(block.text)
        return "".join(parts) or None

    @staticmethod
    def _decode(raw: str) -> list[ParsedCandidate]:
        cleaned = raw.strip()
        if cleaned.startswith("```"):
            cleaned = cleaned.strip("`")
            cleaned = cleaned.removeprefix("json").strip()
        try:
            items = json.loads(cleaned)
        except ValueError:
            logger.warning("[PARSE] LLM reply was not JSON: %r", raw[:200])
            return []
        if not isinstance(items, list):
            return []

        candidates: list[ParsedCandidate] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            item = dict(item)
            if str(item.get("type", "")).lower() not in {"income", "expense"}:
                item["type"] = "expense"
            else:
                item["type"] = str(item["type"]).lower()
            try:
                candidates.append(ParsedCandidate.model_validate(item))
            except ValidationError:
                logger.debug("[PARSE] Skipping malformed LLM item: %r", item)
        return candidates
