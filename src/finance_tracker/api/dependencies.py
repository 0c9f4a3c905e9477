from fastapi import HTTPException, Request

from finance_tracker.integration.remote import RemoteStore
from finance_tracker.services.ingest import TextIngestor
from finance_tracker.services.view import TransactionView
from finance_tracker.sync.mutations import OptimisticMutations
from finance_tracker.sync.realtime import RealtimeMerger
from finance_tracker.sync.reconciler import Reconciler
from finance_tracker.sync.session import SyncSession


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return value


def get_session(request: Request) -> SyncSession:
    return _state(request, "session")


def get_mutations(request: Request) -> OptimisticMutations:
    return _state(request, "mutations")


def get_reconciler(request: Request) -> Reconciler:
    return _state(request, "reconciler")


def get_merger(request: Request) -> RealtimeMerger:
    return _state(request, "merger")


def get_view(request: Request) -> TransactionView:
    return _state(request, "view")


def get_ingestor(request: Request) -> TextIngestor:
    return _state(request, "ingestor")


def get_remote(request: Request) -> RemoteStore:
    remote = getattr(request.app.state, "remote", None)
    if remote is None:
        raise HTTPException(status_code=500, detail="Remote store not configured")
    return remote
