from typing import Any

from finance_tracker.domain.transactions import PushEvent, parse_push_event
from finance_tracker.logger import get_logger
from finance_tracker.models import Transaction
from finance_tracker.sync.session import SyncSession

logger = get_logger(__name__)


class RealtimeMerger:
    """
    Folds server push events into local state.

    Merges are idempotent and keyed on server id. The pending queue is never
    touched, so a merge can land between two steps of a running flush.
    """

    def __init__(self, session: SyncSession) -> None:
        self.session = session

    async def handle_message(self, message: Any) -> bool:
        event = parse_push_event(message)
        if event is None:
            logger.warning("[REALTIME] Ignoring unrecognized message: %r", message)
            return False
        return await self.apply(event)

    async def apply(self, event: PushEvent) -> bool:
        """Merge one event. Returns True when local state changed."""
        if event.kind == "created" and event.transaction is not None:
            return await self.created(event.transaction)
        if event.kind == "updated" and event.transaction is not None:
            return await self.updated(event.transaction)
        if event.kind == "deleted" and event.transaction_id:
            return await self.deleted(event.transaction_id)
        return False

    async def created(self, txn: Transaction) -> bool:
        session = self.session
        async with session.lock:
            transactions = session.transactions
            changed = not any(existing.id == txn.id for existing in transactions)
            if changed:
                transactions.append(txn)
            await session.commit(transactions)
        logger.debug("[REALTIME] created %s (%s).", txn.id, "inserted" if changed else "already known")
        return changed

    async def updated(self, txn: Transaction) -> bool:
        session = self.session
        async with session.lock:
            transactions = session.transactions
            changed = False
            for index, existing in enumerate(transactions):
                if existing.id == txn.id:
                    transactions[index] = txn
                    changed = True
                    break
            await session.commit(transactions)
        logger.debug("[REALTIME] updated %s (%s).", txn.id, "replaced" if changed else "unknown")
        return changed

    async def deleted(self, transaction_id: str) -> bool:
        session = self.session
        async with session.lock:
            transactions = session.transactions
            remaining = [txn for txn in transactions if txn.id != transaction_id]
            changed = len(remaining) != len(transactions)
            await session.commit(remaining)
        logger.debug("[REALTIME] deleted %s (%s).", transaction_id, "removed" if changed else "unknown")
        return changed
