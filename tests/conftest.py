from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from finance_tracker.integration.remote import RemoteStore
from finance_tracker.sync.cache import DurableCache
from finance_tracker.sync.mutations import OptimisticMutations
from finance_tracker.sync.reconciler import Reconciler
from finance_tracker.sync.session import SyncSession

USER = "alice@example.com"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def session(tmp_path: Path) -> SyncSession:
    return SyncSession(DurableCache(str(tmp_path)), user=USER)


@pytest.fixture
def remote() -> AsyncMock:
    return AsyncMock(spec=RemoteStore)


@pytest.fixture
def reconciler(session: SyncSession, remote: AsyncMock) -> Reconciler:
    return Reconciler(session, remote)


@pytest.fixture
def mutations(session: SyncSession, reconciler: Reconciler) -> OptimisticMutations:
    return OptimisticMutations(session, reconciler)
