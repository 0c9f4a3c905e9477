from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request

from finance_tracker.api.dependencies import get_ingestor, get_mutations
from finance_tracker.api.schemas import CommitRequest, ParseRequest, dump_transaction
from finance_tracker.errors import InvalidTransactionError, TextExtractionError
from finance_tracker.logger import get_logger
from finance_tracker.models import TransactionDraft
from finance_tracker.services.ingest import TextIngestor
from finance_tracker.sync.mutations import OptimisticMutations

logger = get_logger(__name__)

router = APIRouter()


async def _respond(
    drafts: list[TransactionDraft],
    add: bool,
    ingestor: TextIngestor,
    mutations: OptimisticMutations,
) -> dict[str, Any]:
    result: dict[str, Any] = {"drafts": [draft.model_dump(mode="json") for draft in drafts]}
    if add:
        try:
            added = await ingestor.add_all(drafts, mutations)
        except InvalidTransactionError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        result["added"] = [dump_transaction(txn) for txn in added]
    return result


@router.post("/api/parse")
async def parse_text(
    request: ParseRequest,
    ingestor: Annotated[TextIngestor, Depends(get_ingestor)],
    mutations: Annotated[OptimisticMutations, Depends(get_mutations)],
) -> dict[str, Any]:
    drafts = await ingestor.parse_text(request.text)
    return await _respond(drafts, request.add, ingestor, mutations)


@router.post("/api/parse/receipt")
async def parse_receipt(
    request: Request,
    ingestor: Annotated[TextIngestor, Depends(get_ingestor)],
    mutations: Annotated[OptimisticMutations, Depends(get_mutations)],
    add: bool = False,
) -> dict[str, Any]:
    content = await request.body()
    if not content:
        raise HTTPException(status_code=400, detail="Empty upload")
    content_type = request.headers.get("content-type", "application/octet-stream")
    try:
        text, drafts = await ingestor.parse_image(content, content_type)
    except TextExtractionError as exc:
        logger.warning("[PARSE] Receipt rejected: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    result = await _respond(drafts, add, ingestor, mutations)
    result["text"] = text
    return result


@router.post("/api/parse/commit", status_code=201)
async def commit_drafts(
    request: CommitRequest,
    ingestor: Annotated[TextIngestor, Depends(get_ingestor)],
    mutations: Annotated[OptimisticMutations, Depends(get_mutations)],
) -> dict[str, Any]:
    return await _respond(request.drafts, True, ingestor, mutations)
