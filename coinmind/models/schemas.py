from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    FiniteFloat,
    Field,
    StrictBool,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

Category = Literal[
    "Food & Dining",
    "Groceries",
    "Transportation",
    "Shopping",
    "Entertainment",
    "Bills & Utilities",
    "Housing",
    "Healthcare",
    "Education",
    "Travel",
    "Personal Care",
    "Salary",
    "Investment",
    "Gifts & Donations",
    "Other",
]
CATEGORIES: tuple[str, ...] = Category.__args__

IntentLabel = Literal[
    "balance_inquiry",
    "spending_analysis",
    "income_analysis",
    "transaction_list",
    "category_breakdown",
    "vendor_analysis",
    "financial_advice",
    "transaction_entry",
    "general_financial",
    "unknown",
    "non_financial",
]
INTENT_LABELS: tuple[str, ...] = IntentLabel.__args__

TransactionType = Literal["income", "expense"]

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%d-%m-%Y",
    "%m-%d-%Y",
    "%b %d, %Y",
    "%d %b %Y",
)


def coerce_date(value) -> datetime | None:
    """Best-effort date parsing; anything unreadable becomes None."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMode(str, Enum):
    DEFAULT = "default"
    CSV_IMPORT = "csv_import"
    CSV_IMPORT_CONFIRM = "csv_import_confirm"

    @classmethod
    def from_type(cls, value: str | None) -> "ChatMode":
        """Unknown or missing request types route to the default path."""
        try:
            return cls(value)
        except ValueError:
            return cls.DEFAULT


class FileMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    size_bytes: int = Field(alias="size")
    mime_type: str = Field(default="", alias="type")
    last_modified: int = Field(alias="lastModified")

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.last_modified / 1000, tz=timezone.utc)


class IncomingMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    mode: ChatMode = ChatMode.DEFAULT
    file_info: FileMeta | None = None
    previous_file: FileMeta | None = None


class ExtractedTransaction(BaseModel):
    description: str | None = None
    amount: FiniteFloat | None = None
    currency: str | None = None
    category: Category = "Other"
    type: TransactionType | None = None
    date: datetime | None = None
    vendor: str | None = None

    @field_validator("description", "vendor", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def _iso_currency(cls, v):
        # Only a well-formed ISO 4217 code survives; the caller supplies the default.
        if not isinstance(v, str):
            return None
        code = v.strip().upper()
        return code if len(code) == 3 and code.isalpha() else None

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, v):
        if isinstance(v, str):
            for name in CATEGORIES:
                if name.lower() == v.strip().lower():
                    return name
        return "Other"

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v in ("income", "expense") else None
        return None

    @field_validator("date", mode="before")
    @classmethod
    def _lenient_date(cls, v):
        return coerce_date(v)

    @model_validator(mode="after")
    def _align_sign(self):
        if self.amount is None:
            return self
        if self.type is None:
            self.type = "income" if self.amount > 0 else "expense"
        elif self.type == "expense" and self.amount > 0:
            self.amount = -self.amount
        elif self.type == "income" and self.amount < 0:
            self.amount = -self.amount
        return self

    @property
    def is_actionable(self) -> bool:
        return self.amount is not None and bool(self.description)


class NormalizedTransaction(ExtractedTransaction, CamelModel):
    id: int | None = None
    user_id: str | None = None
    description: str
    amount: FiniteFloat
    type: TransactionType
    original_amount: FiniteFloat
    original_currency: str
    converted_amount: FiniteFloat
    converted_currency: str
    conversion_rate: FiniteFloat = 1.0
    created_at: datetime = Field(default_factory=datetime.now)


class IntentClassification(CamelModel):
    is_financial: StrictBool
    intent: IntentLabel

    @classmethod
    def unknown(cls) -> "IntentClassification":
        return cls(is_financial=False, intent="unknown")


class DuplicateAnalysis(BaseModel):
    is_duplicate: bool
    explanation: str = ""


class ImportBatchResult(CamelModel):
    imported_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.imported_count + self.failed_count


class FinancialSnapshot(BaseModel):
    income: float = 0.0
    expenses: float = 0.0
    balance: float = 0.0
    transaction_count: int = 0
    currency: str = "USD"

    @classmethod
    def from_transactions(
        cls, transactions: list[NormalizedTransaction], currency: str
    ) -> "FinancialSnapshot":
        income = sum(t.converted_amount for t in transactions if t.converted_amount > 0)
        expenses = abs(
            sum(t.converted_amount for t in transactions if t.converted_amount < 0)
        )
        return cls(
            income=income,
            expenses=expenses,
            balance=income - expenses,
            transaction_count=len(transactions),
            currency=currency,
        )

    def with_transaction(self, txn: NormalizedTransaction) -> "FinancialSnapshot":
        income, expenses = self.income, self.expenses
        if txn.converted_amount > 0:
            income += txn.converted_amount
        else:
            expenses += abs(txn.converted_amount)
        return self.model_copy(
            update={
                "income": income,
                "expenses": expenses,
                "balance": income - expenses,
                "transaction_count": self.transaction_count + 1,
            }
        )


class Profile(CamelModel):
    user_id: str
    default_currency: str = "USD"


# ── HTTP payloads ─────────────────────────────────────────────────────────


class ChatRequest(CamelModel):
    message: str | None = None
    type: str | None = None
    file_info: FileMeta | None = None
    previous_file: FileMeta | None = None

    def to_incoming(self) -> IncomingMessage:
        return IncomingMessage(
            text=self.message or "",
            mode=ChatMode.from_type(self.type),
            file_info=self.file_info,
            previous_file=self.previous_file,
        )


class ChatReply(CamelModel):
    message: str
    type: str | None = None
    transaction_added: bool | None = None
    requires_confirmation: bool | None = None
    is_duplicate: bool | None = None
    suggestions: list[str] | None = None
    file_info: FileMeta | None = None
    import_result: ImportBatchResult | None = None


class ChatResponse(BaseModel):
    success: bool = True
    data: ChatReply


class ProfileUpdateRequest(CamelModel):
    default_currency: str = Field(min_length=3, max_length=3)
