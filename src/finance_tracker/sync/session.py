from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from finance_tracker.domain.transactions import find_index, overlay_pending
from finance_tracker.errors import ClientDataError, PersistenceError, TransientError
from finance_tracker.logger import get_logger
from finance_tracker.models import Transaction
from finance_tracker.sync.cache import SETTINGS_KEY, TRANSACTIONS_KEY, DurableCache
from finance_tracker.sync.connectivity import Connectivity
from finance_tracker.sync.notifier import Notifier
from finance_tracker.sync.queue import PendingQueue

if TYPE_CHECKING:
    from finance_tracker.integration.remote import RemoteStore

logger = get_logger(__name__)

StateListener = Callable[[list[Transaction]], None]

REFRESH_ATTEMPTS = 2


class SyncSession:
    """
    Context shared by the mutation facade, the reconciler and the realtime merger.

    Owns local state, the pending queue, the cache handle and the user context.
    Every change to local state happens while holding ``lock`` and ends with
    ``commit``, so each read-modify-persist step is atomic with respect to the
    other writers.
    """

    def __init__(
        self,
        cache: DurableCache,
        *,
        notifier: Notifier | None = None,
        connectivity: Connectivity | None = None,
        user: str | None = None,
    ) -> None:
        self.cache = cache
        self.notifier = notifier or Notifier()
        self.connectivity = connectivity or Connectivity()
        self.queue = PendingQueue(cache, self.notifier)
        self.user = user
        self.lock = asyncio.Lock()
        self.syncing = False
        self.channel_connected = False
        self.generation = 0  # bumped on every commit
        self._transactions: list[Transaction] = []
        self._listeners: list[StateListener] = []

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    def find(self, ref: str) -> Transaction | None:
        index = find_index(self._transactions, ref)
        return self._transactions[index] if index >= 0 else None

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def load(self) -> None:
        raw = await self.cache.get(TRANSACTIONS_KEY)
        loaded: list[Transaction] = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                loaded.append(Transaction.model_validate(entry))
            except ValidationError:
                logger.warning("[SESSION] Skipping malformed cached transaction: %r", entry)
        self._transactions = self._unique(loaded)
        await self.queue.load()

        settings = await self.cache.get(SETTINGS_KEY)
        if not self.user and isinstance(settings, dict) and settings.get("user"):
            self.user = str(settings["user"])
        logger.info(
            "[SESSION] Loaded %d cached transaction(s), %d pending operation(s), user=%s.",
            len(self._transactions),
            len(self.queue),
            self.user or "<none>",
        )
        self._notify()

    async def set_user(self, user: str | None) -> None:
        self.user = user or None
        try:
            await self.cache.set(SETTINGS_KEY, {"user": self.user})
        except PersistenceError as exc:
            self.notifier.warn(f"Settings could not be saved: {exc}")

    async def commit(self, transactions: list[Transaction]) -> None:
        """Replace local state and write it through to the cache. Caller holds ``lock``."""
        self.generation += 1
        self._transactions = self._unique(transactions)
        self._notify()
        payload: list[dict[str, Any]] = [txn.model_dump(mode="json") for txn in self._transactions]
        try:
            await self.cache.set(TRANSACTIONS_KEY, payload)
        except PersistenceError as exc:
            self.notifier.warn(f"Local changes could not be saved to disk: {exc}")

    async def refresh(self, remote: RemoteStore) -> bool:
        """
        Reload from the remote store, keeping unconfirmed local work on top.

        The listing is fetched without holding ``lock``. If local state was
        committed while it was in flight (a confirmed create, a push event) the
        listing may predate that change, so it is fetched again. When state keeps
        moving the current local state is kept and a later refresh catches up.
        """
        if not self.user:
            return False
        for attempt in range(1, REFRESH_ATTEMPTS + 1):
            generation = self.generation
            try:
                fetched = await remote.list_transactions(self.user)
            except (TransientError, ClientDataError) as exc:
                logger.warning("[SESSION] Refresh failed: %s", exc)
                self.notifier.warn("Offline or server error - showing cached data.")
                return False

            async with self.lock:
                if self.generation == generation:
                    await self.commit(overlay_pending(fetched, self._transactions, self.queue.snapshot()))
                    logger.info("[SESSION] Refreshed %d transaction(s) from the remote store.", len(fetched))
                    return True
            logger.info("[SESSION] Local state changed during refresh (attempt %d/%d).", attempt, REFRESH_ATTEMPTS)

        logger.warning("[SESSION] Refresh skipped; keeping local state until the next refresh.")
        return False

    def _unique(self, transactions: list[Transaction]) -> list[Transaction]:
        seen: set[str] = set()
        unique: list[Transaction] = []
        for txn in transactions:
            if txn.ref in seen:
                logger.warning("[SESSION] Dropping duplicate record for id %s.", txn.ref)
                continue
            seen.add(txn.ref)
            unique.append(txn)
        return unique

    def _notify(self) -> None:
        snapshot = self.transactions
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("[SESSION] State listener failed.")
