from dataclasses import asdict
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from finance_tracker.api.dependencies import get_reconciler, get_remote, get_session
from finance_tracker.api.schemas import ConnectivityRequest, SessionRequest
from finance_tracker.integration.remote import RemoteStore
from finance_tracker.logger import get_logger
from finance_tracker.sync.reconciler import Reconciler
from finance_tracker.sync.session import SyncSession

logger = get_logger(__name__)

router = APIRouter()


def _status(session: SyncSession) -> dict[str, Any]:
    return {
        "user": session.user,
        "online": session.connectivity.online,
        "syncing": session.syncing,
        "channel_connected": session.channel_connected,
        "pending": len(session.queue),
        "transactions": len(session.transactions),
    }


@router.get("/api/sync/status")
async def sync_status(session: Annotated[SyncSession, Depends(get_session)]) -> dict[str, Any]:
    status = _status(session)
    status["queue"] = [op.model_dump(mode="json") for op in session.queue.snapshot()]
    return status


@router.post("/api/sync/flush")
async def sync_flush(reconciler: Annotated[Reconciler, Depends(get_reconciler)]) -> dict[str, Any]:
    report = await reconciler.flush()
    return asdict(report)


@router.post("/api/sync/refresh")
async def sync_refresh(
    session: Annotated[SyncSession, Depends(get_session)],
    remote: Annotated[RemoteStore, Depends(get_remote)],
) -> dict[str, Any]:
    refreshed = await session.refresh(remote)
    return {"refreshed": refreshed, **_status(session)}


@router.post("/api/connectivity")
async def set_connectivity(
    request: ConnectivityRequest,
    session: Annotated[SyncSession, Depends(get_session)],
) -> dict[str, Any]:
    came_online = session.connectivity.set_online(request.online)
    return {"came_online": came_online, **_status(session)}


@router.post("/api/session")
async def set_session_user(
    request: SessionRequest,
    session: Annotated[SyncSession, Depends(get_session)],
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
) -> dict[str, Any]:
    user = (request.user or "").strip() or None
    await session.set_user(user)
    logger.info("[SESSION] User set to %s.", user or "<none>")
    if user:
        reconciler.request_flush()
    return _status(session)


@router.get("/api/notifications")
async def notifications(
    session: Annotated[SyncSession, Depends(get_session)],
    drain: bool = False,
) -> dict[str, Any]:
    notices = session.notifier.drain() if drain else session.notifier.recent()
    return {
        "notifications": [
            {"level": notice.level, "message": notice.message, "created_at": notice.created_at.isoformat()}
            for notice in notices
        ]
    }
