import httpx
import pytest

from finance_tracker.integration.ocr import OcrClient


@pytest.mark.anyio
async def test_extract_text_posts_raw_bytes() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"text": "coffee 50"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    ocr = OcrClient(url="https://ocr.example.com/extract", token="tok", client=client)

    assert await ocr.extract_text(b"\x89PNG", "image/png") == "coffee 50"
    assert seen[0].content == b"\x89PNG"
    assert seen[0].headers["Content-Type"] == "image/png"
    assert seen[0].headers["Authorization"] == "Bearer tok"
    await ocr.aclose()


@pytest.mark.anyio
async def test_extract_text_failures_return_none(monkeypatch: pytest.MonkeyPatch) -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    ocr = OcrClient(url="https://ocr.example.com/extract", client=client)
    assert await ocr.extract_text(b"data") is None

    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=["nope"])))
    ocr = OcrClient(url="https://ocr.example.com/extract", client=client)
    assert await ocr.extract_text(b"data") is None

    monkeypatch.delenv("OCR_URL", raising=False)
    unconfigured = OcrClient()
    assert not unconfigured.configured
    assert await unconfigured.extract_text(b"data") is None
