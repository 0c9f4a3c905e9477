from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from finance_tracker.api.dependencies import get_mutations, get_session, get_view
from finance_tracker.api.schemas import ViewFiltersRequest, dump_transaction
from finance_tracker.domain.projection import ALL_CATEGORIES, compute_totals, filter_transactions, weekly_histogram
from finance_tracker.errors import InvalidTransactionError, TransactionNotFoundError
from finance_tracker.logger import get_logger
from finance_tracker.models import TransactionDraft, TransactionPatch
from finance_tracker.services.view import TransactionView
from finance_tracker.sync.mutations import OptimisticMutations
from finance_tracker.sync.session import SyncSession

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/transactions")
async def list_transactions(
    session: Annotated[SyncSession, Depends(get_session)],
    category: str = ALL_CATEGORIES,
    search: str = "",
) -> dict[str, Any]:
    rows = filter_transactions(session.transactions, category=category, search=search)
    return {
        "transactions": [dump_transaction(txn) for txn in rows],
        "count": len(rows),
        "pending": len(session.queue),
    }


@router.post("/api/transactions", status_code=201)
async def create_transaction(
    draft: TransactionDraft,
    mutations: Annotated[OptimisticMutations, Depends(get_mutations)],
) -> dict[str, Any]:
    try:
        created = await mutations.create(draft)
    except InvalidTransactionError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return dump_transaction(created)


@router.patch("/api/transactions/{ref}")
async def update_transaction(
    ref: str,
    patch: TransactionPatch,
    mutations: Annotated[OptimisticMutations, Depends(get_mutations)],
) -> dict[str, Any]:
    try:
        previous = await mutations.update(ref, patch)
    except InvalidTransactionError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except TransactionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"previous": dump_transaction(previous)}


@router.delete("/api/transactions/{ref}")
async def delete_transaction(
    ref: str,
    mutations: Annotated[OptimisticMutations, Depends(get_mutations)],
) -> dict[str, Any]:
    try:
        removed = await mutations.delete(ref)
    except TransactionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"removed": dump_transaction(removed)}


@router.get("/api/summary")
async def summary(session: Annotated[SyncSession, Depends(get_session)]) -> dict[str, Any]:
    transactions = session.transactions
    return {
        "totals": compute_totals(transactions).model_dump(),
        "weekly": [bucket.model_dump() for bucket in weekly_histogram(transactions)],
    }


@router.get("/api/view")
async def get_view_state(view: Annotated[TransactionView, Depends(get_view)]) -> dict[str, Any]:
    return view.snapshot()


@router.put("/api/view")
async def set_view_filters(
    filters: ViewFiltersRequest,
    view: Annotated[TransactionView, Depends(get_view)],
) -> dict[str, Any]:
    if filters.category is not None:
        view.set_category(filters.category)
    if filters.search is not None:
        view.set_search(filters.search)
        if filters.immediate:
            view.apply_search()
    return view.snapshot()
