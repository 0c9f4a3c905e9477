import asyncio
from datetime import datetime
from time import perf_counter

from finance_tracker.domain.transactions import normalize_candidates
from finance_tracker.errors import TextExtractionError
from finance_tracker.integration.ocr import OcrClient
from finance_tracker.logger import get_logger
from finance_tracker.manager import ParserService
from finance_tracker.models import Transaction, TransactionDraft
from finance_tracker.sync.mutations import OptimisticMutations

logger = get_logger(__name__)


class TextIngestor:
    """Turns free text or receipt images into transaction drafts, and adds them."""

    def __init__(self, parser: ParserService, ocr: OcrClient | None = None) -> None:
        self.parser = parser
        self.ocr = ocr

    async def parse_text(self, text: str, now: datetime | None = None) -> list[TransactionDraft]:
        if not text or not text.strip():
            return []
        started = perf_counter()
        # Parsers may block on network (LLM); keep them off the event loop.
        candidates = await asyncio.to_thread(self.parser.parse, text)
        drafts = normalize_candidates(candidates, now=now)
        logger.info(
            "[PARSE] %d candidate(s), %d draft(s) in %.1f ms.",
            len(candidates),
            len(drafts),
            (perf_counter() - started) * 1000,
        )
        return drafts

    async def parse_image(
        self,
        content: bytes,
        content_type: str = "application/octet-stream",
        now: datetime | None = None,
    ) -> tuple[str, list[TransactionDraft]]:
        if self.ocr is None or not self.ocr.configured:
            raise TextExtractionError("Receipt scanning is not configured (OCR_URL)")
        if not content:
            raise TextExtractionError("Empty upload")

        text = await self.ocr.extract_text(content, content_type)
        if text is None:
            raise TextExtractionError("Text extraction failed")
        logger.info("[PARSE] Extracted %d character(s) from a %d byte image.", len(text), len(content))
        return text, await self.parse_text(text, now=now)

    async def add_all(
        self,
        drafts: list[TransactionDraft],
        mutations: OptimisticMutations,
    ) -> list[Transaction]:
        added = [await mutations.create(draft) for draft in drafts]
        logger.info("[PARSE] Added %d parsed transaction(s).", len(added))
        return added
