import pytest

from finance_tracker.domain.transactions import parse_push_event
from finance_tracker.models import OperationKind, PendingOperation, Transaction
from finance_tracker.sync.realtime import RealtimeMerger
from finance_tracker.sync.session import SyncSession


def _doc(server_id: str, description: str = "coffee", amount: float = 50) -> dict:
    return {
        "_id": server_id,
        "user": "alice@example.com",
        "description": description,
        "amount": amount,
        "type": "expense",
        "date": "2024-03-19T10:00:00Z",
        "category": "food",
    }


def test_parse_push_event_shapes() -> None:
    created = parse_push_event({"event": "transaction:created", "data": _doc("srv-1")})
    assert created.kind == "created"
    assert created.transaction.id == "srv-1"

    deleted = parse_push_event({"event": "transaction:deleted", "data": {"id": "srv-2"}})
    assert deleted.kind == "deleted"
    assert deleted.transaction_id == "srv-2"

    bare = parse_push_event({"type": "deleted", "data": "srv-3"})
    assert bare.transaction_id == "srv-3"

    assert parse_push_event({"event": "transaction:exploded", "data": {}}) is None
    assert parse_push_event({"event": "transaction:created", "data": {"description": "no id"}}) is None
    assert parse_push_event("transaction:created") is None


@pytest.mark.anyio
async def test_created_is_idempotent(session: SyncSession) -> None:
    merger = RealtimeMerger(session)
    message = {"event": "transaction:created", "data": _doc("srv-1")}

    assert await merger.handle_message(message) is True
    assert await merger.handle_message(message) is False

    assert [txn.id for txn in session.transactions] == ["srv-1"]


@pytest.mark.anyio
async def test_updated_replaces_by_id(session: SyncSession) -> None:
    merger = RealtimeMerger(session)
    await merger.handle_message({"event": "transaction:created", "data": _doc("srv-1")})

    changed = await merger.handle_message(
        {"event": "transaction:updated", "data": _doc("srv-1", description="flat white", amount=65)}
    )

    assert changed is True
    txn = session.find("srv-1")
    assert txn.description == "flat white"
    assert txn.amount == 65


@pytest.mark.anyio
async def test_update_for_unknown_id_is_a_no_op(session: SyncSession) -> None:
    merger = RealtimeMerger(session)

    assert await merger.handle_message({"event": "transaction:updated", "data": _doc("srv-9")}) is False
    assert session.transactions == []


@pytest.mark.anyio
async def test_deleted_removes_and_tolerates_unknown(session: SyncSession) -> None:
    merger = RealtimeMerger(session)
    await merger.handle_message({"event": "transaction:created", "data": _doc("srv-1")})

    assert await merger.handle_message({"event": "transaction:deleted", "data": {"id": "srv-1"}}) is True
    assert await merger.handle_message({"event": "transaction:deleted", "data": {"id": "srv-1"}}) is False
    assert session.transactions == []


@pytest.mark.anyio
async def test_merges_never_touch_the_queue(session: SyncSession) -> None:
    await session.queue.append(PendingOperation(kind=OperationKind.DELETE, target="srv-1"))
    merger = RealtimeMerger(session)

    await merger.handle_message({"event": "transaction:created", "data": _doc("srv-2")})
    await merger.handle_message({"event": "transaction:deleted", "data": {"id": "srv-1"}})

    assert [op.target for op in session.queue.snapshot()] == ["srv-1"]


@pytest.mark.anyio
async def test_unrecognized_message_is_ignored(session: SyncSession) -> None:
    async with session.lock:
        await session.commit([Transaction(id="srv-1", description="rent", amount=900)])
    merger = RealtimeMerger(session)

    assert await merger.handle_message({"hello": "world"}) is False
    assert [txn.id for txn in session.transactions] == ["srv-1"]
