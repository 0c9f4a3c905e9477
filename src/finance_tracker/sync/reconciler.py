import asyncio
from dataclasses import dataclass
from time import perf_counter

from pydantic import ValidationError

from finance_tracker.domain.transactions import apply_patch, confirm_created, find_index, is_temp_id
from finance_tracker.errors import ClientDataError, TransientError
from finance_tracker.integration.remote import RemoteStore
from finance_tracker.logger import get_logger
from finance_tracker.models import OperationKind, PendingOperation, Transaction
from finance_tracker.sync.session import SyncSession

logger = get_logger(__name__)


@dataclass
class FlushReport:
    status: str  # "completed" | "halted" | "skipped"
    synced: int = 0
    dropped: int = 0
    remaining: int = 0
    reason: str | None = None


class Reconciler:
    """
    Drains the pending queue against the remote store, one operation at a time.

    A client/data error drops the operation (with a warning) and moves on; a
    transient error stops the pass and leaves the rest queued for the next
    trigger. Only one pass runs at a time.
    """

    def __init__(self, session: SyncSession, remote: RemoteStore) -> None:
        self.session = session
        self.remote = remote
        self._tasks: set[asyncio.Task] = set()

    def _skip_reason(self) -> str | None:
        if not self.session.user:
            return "no user"
        if not self.session.connectivity.online:
            return "offline"
        if self.session.syncing:
            return "already syncing"
        return None

    async def flush(self) -> FlushReport:
        queue = self.session.queue
        reason = self._skip_reason()
        if reason:
            logger.debug("[SYNC] Flush skipped: %s.", reason)
            return FlushReport(status="skipped", remaining=len(queue), reason=reason)

        # No await between the guard check and setting the flag.
        self.session.syncing = True
        report = FlushReport(status="completed")
        started = perf_counter()
        try:
            while (op := queue.peek_front()) is not None:
                try:
                    await self._replay(op)
                except ClientDataError as exc:
                    await queue.pop_front()
                    report.dropped += 1
                    logger.warning("[SYNC] Dropping %s for %s: %s", op.kind.value, op.target, exc)
                    self.session.notifier.warn(f"Dropped invalid queued {op.kind.value}: {exc}")
                    continue
                except TransientError as exc:
                    report.status = "halted"
                    report.reason = str(exc)
                    logger.info(
                        "[SYNC] Halting on %s for %s (%s); %d operation(s) stay queued.",
                        op.kind.value,
                        op.target,
                        exc,
                        len(queue),
                    )
                    break
                report.synced += 1
        finally:
            self.session.syncing = False

        report.remaining = len(queue)
        logger.info(
            "[SYNC] Flush %s in %.1f ms: synced=%d dropped=%d remaining=%d",
            report.status,
            (perf_counter() - started) * 1000,
            report.synced,
            report.dropped,
            report.remaining,
        )
        return report

    async def _replay(self, op: PendingOperation) -> None:
        if op.kind is OperationKind.CREATE:
            await self._replay_create(op)
        elif op.kind is OperationKind.UPDATE:
            await self._replay_update(op)
        elif op.kind is OperationKind.DELETE:
            await self._replay_delete(op)

    async def _replay_create(self, op: PendingOperation) -> None:
        try:
            local = Transaction.model_validate(op.payload or {})
        except ValidationError as exc:
            raise ClientDataError(f"queued create for {op.target} has a malformed payload") from exc
        confirmed = await self.remote.create_transaction(local)

        session = self.session
        async with session.lock:
            await session.commit(confirm_created(session.transactions, op.target, confirmed))
            await session.queue.confirm_front(confirmed.id or "")
        logger.debug("[SYNC] Confirmed %s as %s.", op.target, confirmed.id)

    async def _replay_update(self, op: PendingOperation) -> None:
        if is_temp_id(op.target):
            raise ClientDataError(f"edit targets {op.target}, which was never confirmed")
        patch = op.payload or {}
        await self.remote.update_transaction(op.target, patch)

        session = self.session
        async with session.lock:
            transactions = session.transactions
            index = find_index(transactions, op.target)
            if index >= 0:
                transactions[index] = apply_patch(transactions[index], patch)
            await session.commit(transactions)
            await session.queue.pop_front()

    async def _replay_delete(self, op: PendingOperation) -> None:
        if not is_temp_id(op.target):
            await self.remote.delete_transaction(op.target)
        else:
            logger.info("[SYNC] %s was never confirmed; nothing to delete remotely.", op.target)

        session = self.session
        async with session.lock:
            transactions = [txn for txn in session.transactions if txn.ref != op.target]
            await session.commit(transactions)
            await session.queue.pop_front()

    def request_flush(self) -> asyncio.Task | None:
        """Start a flush in the background unless a guard says it would be skipped."""
        reason = self._skip_reason()
        if reason:
            logger.debug("[SYNC] Flush not scheduled: %s.", reason)
            return None
        task = asyncio.create_task(self._background_flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _background_flush(self) -> None:
        try:
            await self.flush()
        except Exception:
            logger.exception("[SYNC] Background flush failed unexpectedly.")
            self.session.notifier.error("Sync failed unexpectedly; will retry on the next trigger.")

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run_periodic(self, interval: float) -> None:
        logger.info("[SYNC] Periodic flush every %.1f s.", interval)
        while True:
            await asyncio.sleep(interval)
            if len(self.session.queue):
                self.request_flush()
