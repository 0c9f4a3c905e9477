from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

DEFAULT_CATEGORY = "general"

NonEmptyText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def to_local_naive(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is not None:
        try:
            return value.astimezone().replace(tzinfo=None)
        except OverflowError as exc:
            # Shifting to local time can leave the supported year range.
            raise ValueError(f"date {value.isoformat()} is out of range") from exc
    return value


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Transaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")  # server id
    temp_id: str | None = Field(default=None, alias="_tempId")
    user: str | None = None
    description: str
    amount: float = 0.0
    type: TransactionType = TransactionType.EXPENSE
    date: datetime | None = None
    category: str = DEFAULT_CATEGORY

    @field_validator("id", "temp_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return value or DEFAULT_CATEGORY

    @field_validator("date")
    @classmethod
    def _naive_date(cls, value: datetime | None) -> datetime | None:
        return to_local_naive(value)

    @property
    def ref(self) -> str:
        """The identifier that is authoritative right now: server id once confirmed."""
        return self.id or self.temp_id or ""


class TransactionDraft(BaseModel):
    user: str | None = None
    description: NonEmptyText
    amount: float
    type: TransactionType = TransactionType.EXPENSE
    date: datetime | None = None
    category: str | None = None

    @field_validator("date")
    @classmethod
    def _naive_date(cls, value: datetime | None) -> datetime | None:
        return to_local_naive(value)


class TransactionPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: NonEmptyText | None = None
    amount: float | None = None
    type: TransactionType | None = None
    date: datetime | None = None
    category: NonEmptyText | None = None

    @field_validator("date")
    @classmethod
    def _naive_date(cls, value: datetime | None) -> datetime | None:
        return to_local_naive(value)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


class OperationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class PendingOperation(BaseModel):
    kind: OperationKind
    target: str  # temp id for create, server id for update/delete
    payload: dict[str, Any] | None = None
    enqueued_at: datetime = Field(default_factory=datetime.now)


class ParsedCandidate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: str = ""
    amount: float | None = None
    type: TransactionType = TransactionType.EXPENSE
    date_text: str | None = Field(default=None, alias="dateText")
    date: datetime | None = None
    category: str | None = None


class Totals(BaseModel):
    income: float
    expense: float
    balance: float


class DayBucket(BaseModel):
    label: str
    day: str  # ISO date
    income: float = 0.0
    expense: float = 0.0
