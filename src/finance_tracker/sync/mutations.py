from datetime import datetime
from typing import Any

from pydantic import ValidationError

from finance_tracker.domain.transactions import apply_patch, find_index, new_temp_id
from finance_tracker.errors import InvalidTransactionError, TransactionNotFoundError
from finance_tracker.logger import get_logger
from finance_tracker.models import (
    DEFAULT_CATEGORY,
    OperationKind,
    PendingOperation,
    Transaction,
    TransactionDraft,
    TransactionPatch,
)
from finance_tracker.sync.reconciler import Reconciler
from finance_tracker.sync.session import SyncSession

logger = get_logger(__name__)


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


class OptimisticMutations:
    """
    The only way callers change transactions.

    Each call applies the change to local state, persists it, queues it for the
    remote store and kicks off a background flush when online. Only invalid input
    raises; whatever happens remotely shows up later as state changes or notices.
    """

    def __init__(self, session: SyncSession, reconciler: Reconciler) -> None:
        self.session = session
        self.reconciler = reconciler

    def _trigger_flush(self) -> None:
        if self.session.connectivity.online:
            self.reconciler.request_flush()

    def _unused_temp_id(self) -> str:
        temp_id = new_temp_id()
        while self.session.find(temp_id) is not None:
            temp_id = new_temp_id()
        return temp_id

    async def create(self, draft: TransactionDraft | dict[str, Any]) -> Transaction:
        try:
            if not isinstance(draft, TransactionDraft):
                draft = TransactionDraft.model_validate(draft)
        except ValidationError as exc:
            raise InvalidTransactionError(_validation_message(exc)) from exc

        owner = draft.user or self.session.user
        if not owner:
            raise InvalidTransactionError("user: an owner is required when no user is signed in")

        record = Transaction(
            temp_id=self._unused_temp_id(),
            user=owner,
            description=draft.description,
            amount=draft.amount,
            type=draft.type,
            date=draft.date or datetime.now(),
            category=draft.category or DEFAULT_CATEGORY,
        )

        session = self.session
        async with session.lock:
            await session.commit([*session.transactions, record])
            await session.queue.append(PendingOperation(
                kind=OperationKind.CREATE,
                target=record.ref,
                payload=record.model_dump(mode="json"),
            ))
        logger.info("[MUTATE] Created %s locally: '%s' %.2f.", record.ref, record.description, record.amount)
        self._trigger_flush()
        return record

    async def update(self, ref: str, patch: TransactionPatch | dict[str, Any]) -> Transaction:
        """Apply ``patch`` locally and queue it. Returns the record as it was before."""
        try:
            if not isinstance(patch, TransactionPatch):
                patch = TransactionPatch.model_validate(patch)
        except ValidationError as exc:
            raise InvalidTransactionError(_validation_message(exc)) from exc
        changes = patch.changes()
        if not changes:
            raise InvalidTransactionError("patch: no fields to update")

        session = self.session
        async with session.lock:
            transactions = session.transactions
            index = find_index(transactions, ref)
            if index < 0:
                raise TransactionNotFoundError(ref)
            previous = transactions[index]
            transactions[index] = apply_patch(previous, changes)
            await session.commit(transactions)
            await session.queue.append(PendingOperation(
                kind=OperationKind.UPDATE,
                target=previous.ref,
                payload=changes,
            ))
        logger.info("[MUTATE] Updated %s locally: %s.", previous.ref, ", ".join(sorted(changes)))
        self._trigger_flush()
        return previous

    async def delete(self, ref: str) -> Transaction:
        """Remove locally and queue the delete. Returns the removed record."""
        session = self.session
        async with session.lock:
            transactions = session.transactions
            index = find_index(transactions, ref)
            if index < 0:
                raise TransactionNotFoundError(ref)
            removed = transactions.pop(index)
            await session.commit(transactions)
            await session.queue.append(PendingOperation(kind=OperationKind.DELETE, target=removed.ref))
        logger.info("[MUTATE] Deleted %s locally.", removed.ref)
        self._trigger_flush()
        return removed
