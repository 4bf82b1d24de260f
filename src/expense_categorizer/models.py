import datetime as dt
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class Transaction(BaseModel):
    id: str
    amount: Decimal = Decimal("0")
    description: str = ""
    notes: str = ""
    category_id: Optional[str] = None
    date: Optional[dt.date] = None
    active: bool = True


class DateRange(BaseModel):
    start: dt.date
    end: dt.date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("date_range start must not be after end")
        return self

    def contains(self, value: dt.date | None) -> bool:
        return value is not None and self.start <= value <= self.end


class TransactionFilter(BaseModel):
    category_id: Optional[str] = None
    date_range: Optional[DateRange] = None
    limit: Optional[int] = Field(default=None, ge=0)
    newest_first: bool = False


class Suggestion(BaseModel):
    transaction_id: Optional[str] = None
    current_category_id: Optional[str] = None
    suggested_category_id: str
    suggested_category_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    score: float = Field(ge=0.0)
    matched_keywords: list[str] = []
    matched_script_patterns: list[str] = []
    reasoning: str


class BulkRunOptions(BaseModel):
    min_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    dry_run: bool = False
    category_filter: Optional[str] = None
    date_range: Optional[DateRange] = None
    limit: Optional[int] = Field(default=None, ge=0)
    order: Literal["encounter", "confidence"] = "encounter"


WriteStatus = Literal["updated", "failed", "timeout", "cancelled"]


class WriteOutcome(BaseModel):
    transaction_id: str
    category_id: str
    status: WriteStatus
    error: Optional[str] = None


class BulkRunResult(BaseModel):
    processed_count: int = 0
    high_confidence_count: int = 0
    average_confidence: float = 0.0
    suggestions: list[Suggestion] = []
    dry_run: bool = True
    updated_count: int = 0
    failed_count: int = 0
    failures: list[WriteOutcome] = []
    cancelled: bool = False


class ReportRow(BaseModel):
    transaction_id: str
    description: str
    amount: Decimal
    current_category: Optional[str] = None
    suggested_category: str
    confidence: float
    is_correct: bool
    reasoning: str
