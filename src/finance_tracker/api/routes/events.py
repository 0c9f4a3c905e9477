from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request

from finance_tracker.api.dependencies import get_merger
from finance_tracker.domain.transactions import parse_push_event
from finance_tracker.logger import get_logger
from finance_tracker.sync.realtime import RealtimeMerger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/webhook/events")
async def push_event(
    request: Request,
    merger: Annotated[RealtimeMerger, Depends(get_merger)],
) -> dict[str, str]:
    try:
        payload = await request.json()
    except ValueError as exc:
        logger.warning("[WEBHOOK] Received invalid JSON payload.")
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc

    event = parse_push_event(payload)
    if event is None:
        logger.warning("[WEBHOOK] Unrecognized event payload.")
        return {"status": "ignored", "reason": "unrecognized event"}

    logger.info("[WEBHOOK] transaction:%s received.", event.kind)
    changed = await merger.apply(event)
    return {"status": "applied" if changed else "unchanged", "event": event.kind}
