from __future__ import annotations

import secrets
import string
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from finance_tracker.domain.dates import interpret_date
from finance_tracker.models import (
    DEFAULT_CATEGORY,
    OperationKind,
    ParsedCandidate,
    PendingOperation,
    Transaction,
    TransactionDraft,
)

TEMP_ID_PREFIX = "temp-"
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def new_temp_id() -> str:
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(5))
    return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}-{suffix}"


def is_temp_id(ref: str | None) -> bool:
    return bool(ref) and str(ref).startswith(TEMP_ID_PREFIX)


def find_index(transactions: list[Transaction], ref: str) -> int:
    for index, txn in enumerate(transactions):
        if ref and txn.ref == ref:
            return index
    return -1


def apply_patch(txn: Transaction, patch: dict[str, Any]) -> Transaction:
    merged = txn.model_dump()
    merged.update(patch)
    return Transaction.model_validate(merged)


def remote_payload(txn: Transaction) -> dict[str, Any]:
    """Body sent to the remote store when creating a record."""
    return txn.model_dump(mode="json", exclude={"id", "temp_id"})


def adopt_server_record(local: Transaction | None, server: Transaction) -> Transaction:
    """
    Combine a locally created record with the server's confirmation.

    Fields the server sent win; fields it left out (the store may not keep
    ``category``, for instance) keep their local value. The temporary id is retired.
    """
    if local is None:
        return server.model_copy(update={"temp_id": None})
    server_fields = {name: getattr(server, name) for name in server.model_fields_set}
    server_fields["temp_id"] = None
    return local.model_copy(update=server_fields)


def confirm_created(
    transactions: list[Transaction],
    temp_id: str,
    server: Transaction,
) -> list[Transaction]:
    """
    Swap the temp-id record for the confirmed one, in place.

    A push event may already have inserted the server record; both entries
    collapse into one at the position of the first. When the temp record was
    deleted locally in the meantime nothing is re-added.
    """
    local = next((t for t in transactions if t.temp_id == temp_id), None)
    confirmed = adopt_server_record(local, server)

    result: list[Transaction] = []
    placed = False
    for txn in transactions:
        if txn.temp_id == temp_id or (server.id and txn.id == server.id):
            if not placed and (local is not None or txn.id == server.id):
                result.append(confirmed)
                placed = True
            continue
        result.append(txn)
    return result


def overlay_pending(
    remote: list[Transaction],
    local: list[Transaction],
    pending: Iterable[PendingOperation],
) -> list[Transaction]:
    """Re-apply unconfirmed local work on top of a fresh server listing."""
    result = list(remote)
    local_by_ref = {txn.ref: txn for txn in local}
    for op in pending:
        if op.kind is OperationKind.CREATE:
            txn = local_by_ref.get(op.target)
            if txn is not None and find_index(result, op.target) < 0:
                result.append(txn)
        elif op.kind is OperationKind.UPDATE:
            index = find_index(result, op.target)
            if index >= 0 and op.payload:
                result[index] = apply_patch(result[index], op.payload)
        elif op.kind is OperationKind.DELETE:
            index = find_index(result, op.target)
            if index >= 0:
                del result[index]
    return result


def normalize_candidates(
    candidates: Iterable[ParsedCandidate],
    now: datetime | None = None,
) -> list[TransactionDraft]:
    now = now or datetime.now()
    drafts: list[TransactionDraft] = []
    for candidate in candidates:
        if candidate.date_text:
            date_value = interpret_date(candidate.date_text, now=now)
        else:
            date_value = candidate.date or now
        try:
            drafts.append(TransactionDraft(
                description=candidate.description,
                amount=candidate.amount or 0.0,
                type=candidate.type,
                date=date_value,
                category=candidate.category or DEFAULT_CATEGORY,
            ))
        except ValidationError:
            continue
    return drafts


PUSH_EVENT_KINDS = ("created", "updated", "deleted")


@dataclass(frozen=True)
class PushEvent:
    kind: str
    transaction: Transaction | None = None
    transaction_id: str | None = None


def parse_push_event(message: Any) -> PushEvent | None:
    """
    Decode ``{"event": "transaction:created", "data": {...}}``.

    Deletions carry ``{"id": ...}`` (or a bare id) as data. Returns ``None`` for
    anything that is not a well-formed transaction event.
    """
    if not isinstance(message, dict):
        return None
    event = str(message.get("event") or message.get("type") or "")
    kind = event.split(":", 1)[1] if event.startswith("transaction:") else event
    if kind not in PUSH_EVENT_KINDS:
        return None

    data = message.get("data")
    if kind == "deleted":
        if isinstance(data, dict):
            raw_id = data.get("id") or data.get("_id")
        else:
            raw_id = data
        if raw_id is None or not str(raw_id).strip():
            return None
        return PushEvent(kind=kind, transaction_id=str(raw_id))

    if not isinstance(data, dict):
        return None
    try:
        txn = Transaction.model_validate(data)
    except ValidationError:
        return None
    if not txn.id:
        return None
    return PushEvent(kind=kind, transaction=txn, transaction_id=txn.id)
