from typing import Any

from pydantic import BaseModel

from finance_tracker.models import Transaction, TransactionDraft


class ConnectivityRequest(BaseModel):
    online: bool


class SessionRequest(BaseModel):
    user: str | None = None


class ViewFiltersRequest(BaseModel):
    category: str | None = None
    search: str | None = None
    immediate: bool = False


class ParseRequest(BaseModel):
    text: str
    add: bool = False


class CommitRequest(BaseModel):
    drafts: list[TransactionDraft]


def dump_transaction(txn: Transaction) -> dict[str, Any]:
    return txn.model_dump(mode="json", by_alias=True)
