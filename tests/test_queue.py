import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from finance_tracker.errors import PersistenceError
from finance_tracker.models import OperationKind, PendingOperation
from finance_tracker.sync.cache import QUEUE_KEY, DurableCache
from finance_tracker.sync.notifier import Notifier
from finance_tracker.sync.queue import PendingQueue


def _op(kind: OperationKind, target: str, payload: dict | None = None) -> PendingOperation:
    return PendingOperation(kind=kind, target=target, payload=payload)


@pytest.mark.anyio
async def test_cache_round_trips_json(tmp_path: Path) -> None:
    cache = DurableCache(str(tmp_path))
    await cache.set("ft_settings_v1", {"user": "a@example.com"})

    assert await cache.get("ft_settings_v1") == {"user": "a@example.com"}
    assert await DurableCache(str(tmp_path)).get("ft_settings_v1") == {"user": "a@example.com"}
    assert await cache.get("missing") is None


@pytest.mark.anyio
async def test_cache_treats_corrupt_file_as_absent(tmp_path: Path) -> None:
    (tmp_path / "ft_transactions_v1.json").write_text("{not json", encoding="utf-8")
    cache = DurableCache(str(tmp_path))

    assert await cache.get("ft_transactions_v1") is None


@pytest.mark.anyio
async def test_cache_write_failure_raises_persistence_error(tmp_path: Path) -> None:
    cache = DurableCache(str(tmp_path))
    with patch("finance_tracker.sync.cache.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(PersistenceError):
            await cache.set("ft_settings_v1", {"user": "x"})
    assert not [name for name in os.listdir(tmp_path) if name.endswith(".tmp")]


def test_cache_rejects_unsafe_keys(tmp_path: Path) -> None:
    cache = DurableCache(str(tmp_path))
    with pytest.raises(ValueError):
        cache._path("../escape")


@pytest.mark.anyio
async def test_queue_is_fifo_and_durable(tmp_path: Path) -> None:
    cache = DurableCache(str(tmp_path))
    queue = PendingQueue(cache, Notifier())
    await queue.append(_op(OperationKind.CREATE, "temp-1", {"description": "a", "amount": 1}))
    await queue.append(_op(OperationKind.UPDATE, "srv-1", {"amount": 2}))
    await queue.append(_op(OperationKind.DELETE, "srv-2"))

    restored = PendingQueue(cache, Notifier())
    ops = await restored.load()

    assert [(op.kind, op.target) for op in ops] == [
        (OperationKind.CREATE, "temp-1"),
        (OperationKind.UPDATE, "srv-1"),
        (OperationKind.DELETE, "srv-2"),
    ]
    assert restored.peek_front().target == "temp-1"
    popped = await restored.pop_front()
    assert popped.target == "temp-1"
    assert len(restored) == 2

    on_disk = json.loads((tmp_path / f"{QUEUE_KEY}.json").read_text(encoding="utf-8"))
    assert [entry["target"] for entry in on_disk] == ["srv-1", "srv-2"]


@pytest.mark.anyio
async def test_queue_keeps_duplicates(tmp_path: Path) -> None:
    queue = PendingQueue(DurableCache(str(tmp_path)), Notifier())
    await queue.append(_op(OperationKind.UPDATE, "srv-1", {"amount": 2}))
    await queue.append(_op(OperationKind.UPDATE, "srv-1", {"amount": 2}))

    assert len(queue) == 2


@pytest.mark.anyio
async def test_queue_skips_malformed_entries(tmp_path: Path) -> None:
    (tmp_path / f"{QUEUE_KEY}.json").write_text(
        json.dumps([{"kind": "explode", "target": "x"}, {"kind": "delete", "target": "srv-9"}]),
        encoding="utf-8",
    )
    queue = PendingQueue(DurableCache(str(tmp_path)), Notifier())

    ops = await queue.load()

    assert [op.target for op in ops] == ["srv-9"]


@pytest.mark.anyio
async def test_confirm_front_retargets_in_one_write(tmp_path: Path) -> None:
    cache = DurableCache(str(tmp_path))
    queue = PendingQueue(cache, Notifier())
    await queue.append(_op(OperationKind.CREATE, "temp-1", {"description": "coffee"}))
    await queue.append(_op(OperationKind.UPDATE, "temp-1", {"amount": 5}))
    await queue.append(_op(OperationKind.DELETE, "temp-1"))
    await queue.append(_op(OperationKind.DELETE, "srv-3"))

    with patch.object(cache, "set", wraps=cache.set) as writes:
        confirmed = await queue.confirm_front("srv-1")

    assert confirmed.kind is OperationKind.CREATE
    assert writes.await_count == 1
    assert [op.target for op in queue.snapshot()] == ["srv-1", "srv-1", "srv-3"]
    on_disk = json.loads((tmp_path / f"{QUEUE_KEY}.json").read_text(encoding="utf-8"))
    assert [entry["target"] for entry in on_disk] == ["srv-1", "srv-1", "srv-3"]
    assert await PendingQueue(cache, Notifier()).confirm_front("srv-9") is None


@pytest.mark.anyio
async def test_queue_persistence_failure_keeps_memory_and_warns(tmp_path: Path) -> None:
    notifier = Notifier()
    cache = DurableCache(str(tmp_path))
    queue = PendingQueue(cache, notifier)

    with patch.object(cache, "set", side_effect=PersistenceError("disk full")):
        await queue.append(_op(OperationKind.DELETE, "srv-1"))

    assert len(queue) == 1
    assert notifier.recent()[-1].level == "warning"
