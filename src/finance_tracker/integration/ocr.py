import os

import httpx

from finance_tracker.logger import get_logger

logger = get_logger(__name__)


class OcrClient:
    """Thin client for the external text-extraction service. The service answers ``{"text": "..."}``."""

    def __init__(
        self,
        url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self.url = url or os.getenv("OCR_URL")
        self.token = token or os.getenv("OCR_TOKEN")
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def extract_text(self, content: bytes, content_type: str = "application/octet-stream") -> str | None:
        if not self.url:
            logger.error("OCR_URL not set; cannot extract text.")
            return None

        headers = {"Content-Type": content_type, "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self._get_client().post(self.url, content=content, headers=headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error extracting text from image: %s", exc)
            return None

        text = data.get("text") if isinstance(data, dict) else None
        return text if isinstance(text, str) else None
