import asyncio
import os
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from finance_tracker.domain.transactions import remote_payload
from finance_tracker.errors import ClientDataError, RemoteError, TransientError
from finance_tracker.logger import get_logger
from finance_tracker.models import Transaction

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0

# 4xx responses that say "not now" rather than "never".
TRANSIENT_CLIENT_STATUSES = frozenset({401, 403, 408, 425, 429})


def classify_status(status_code: int) -> type[RemoteError]:
    if 400 <= status_code < 500 and status_code not in TRANSIENT_CLIENT_STATUSES:
        return ClientDataError
    return TransientError


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return str(body)[:200]


class RemoteStore:
    """
    Client for the remote transaction store's REST API.

    Failures are translated into ``ClientDataError`` (the request itself is bad)
    or ``TransientError`` (try again later) so callers can decide whether to drop
    or keep a queued operation.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or os.getenv("API_BASE_URL") or "").rstrip("/") or None
        self.token = token or os.getenv("API_TOKEN")
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT_SECONDS
        self.headers = self._build_headers()
        self._client = client
        self._client_lock = asyncio.Lock()

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def refresh(self, base_url: str | None = None, token: str | None = None) -> None:
        base_value = base_url if base_url is not None else os.getenv("API_BASE_URL")
        self.base_url = (base_value or "").rstrip("/") or None
        self.token = token if token is not None else os.getenv("API_TOKEN")
        self.headers = self._build_headers()

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient(timeout=self.timeout)
                self._client = client
            return client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self.base_url:
            raise TransientError("Remote store is not configured (API_BASE_URL unset)")

        client = await self._get_client()
        try:
            response = await client.request(
                method,
                f"{self.base_url}{path}",
                headers=self.headers,
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            error_cls = classify_status(status)
            detail = _error_detail(exc.response)
            logger.warning("[REMOTE] %s %s -> %s (%s): %s", method, path, status, error_cls.__name__, detail)
            raise error_cls(f"{method} {path} failed with {status}: {detail}", status) from exc
        except httpx.TransportError as exc:
            logger.warning("[REMOTE] %s %s failed: %s", method, path, exc)
            raise TransientError(f"{method} {path} failed: {exc}") from exc
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ClientDataError("Remote store returned a non-JSON body", response.status_code) from exc

    async def current_user(self) -> dict[str, Any] | None:
        response = await self._request("GET", "/user")
        data = self._json(response)
        return data if isinstance(data, dict) and data else None

    async def list_transactions(self, user: str) -> list[Transaction]:
        response = await self._request("GET", f"/api/transactions/{quote(user, safe='@')}")
        data = self._json(response)
        if not isinstance(data, list):
            return []

        transactions: list[Transaction] = []
        for doc in data:
            try:
                txn = Transaction.model_validate(doc)
            except ValidationError:
                logger.warning("[REMOTE] Skipping malformed transaction document: %r", doc)
                continue
            if not txn.id:
                logger.warning("[REMOTE] Skipping transaction document without an id: %r", doc)
                continue
            transactions.append(txn)
        return transactions

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        response = await self._request("POST", "/api/transactions", json=remote_payload(transaction))
        data = self._json(response)
        try:
            confirmed = Transaction.model_validate(data)
        except ValidationError as exc:
            raise ClientDataError("Remote store confirmation is not a transaction", response.status_code) from exc
        if not confirmed.id:
            raise ClientDataError("Remote store confirmation has no id", response.status_code)
        return confirmed

    async def update_transaction(self, transaction_id: str, patch: dict[str, Any]) -> None:
        await self._request("PUT", f"/api/transactions/{quote(transaction_id)}", json=patch)

    async def delete_transaction(self, transaction_id: str) -> None:
        await self._request("DELETE", f"/api/transactions/{quote(transaction_id)}")
