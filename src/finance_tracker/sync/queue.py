from pydantic import ValidationError

from finance_tracker.errors import PersistenceError
from finance_tracker.logger import get_logger
from finance_tracker.models import PendingOperation
from finance_tracker.sync.cache import QUEUE_KEY, DurableCache
from finance_tracker.sync.notifier import Notifier

logger = get_logger(__name__)


class PendingQueue:
    """
    Ordered, durable list of mutations the remote store has not confirmed yet.

    Strict FIFO with no reordering or deduplication. Every mutating call writes
    the full queue to the cache before returning. If that write fails the
    in-memory queue stays authoritative and a warning is surfaced.
    """

    def __init__(self, cache: DurableCache, notifier: Notifier, key: str = QUEUE_KEY) -> None:
        self._cache = cache
        self._notifier = notifier
        self._key = key
        self._ops: list[PendingOperation] = []

    def __len__(self) -> int:
        return len(self._ops)

    async def load(self) -> list[PendingOperation]:
        raw = await self._cache.get(self._key)
        ops: list[PendingOperation] = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                ops.append(PendingOperation.model_validate(entry))
            except ValidationError:
                logger.warning("[QUEUE] Skipping malformed queued operation: %r", entry)
        self._ops = ops
        if ops:
            logger.info("[QUEUE] Restored %d pending operation(s).", len(ops))
        return self.snapshot()

    async def _persist(self) -> None:
        try:
            await self._cache.set(self._key, [op.model_dump(mode="json") for op in self._ops])
        except PersistenceError as exc:
            self._notifier.warn(f"Pending changes could not be saved to disk: {exc}")

    async def append(self, op: PendingOperation) -> None:
        self._ops.append(op)
        logger.debug("[QUEUE] Enqueued %s for %s (depth %d).", op.kind.value, op.target, len(self._ops))
        await self._persist()

    def peek_front(self) -> PendingOperation | None:
        return self._ops[0] if self._ops else None

    async def pop_front(self) -> PendingOperation | None:
        if not self._ops:
            return None
        op = self._ops.pop(0)
        await self._persist()
        return op

    def snapshot(self) -> list[PendingOperation]:
        return list(self._ops)

    async def confirm_front(self, server_id: str) -> PendingOperation | None:
        """Pop a confirmed create and point later operations at its server id in one write."""
        if not self._ops:
            return None
        op = self._ops.pop(0)
        for index, queued in enumerate(self._ops):
            if queued.target == op.target:
                self._ops[index] = queued.model_copy(update={"target": server_id})
        logger.debug("[QUEUE] Confirmed %s as %s.", op.target, server_id)
        await self._persist()
        return op
