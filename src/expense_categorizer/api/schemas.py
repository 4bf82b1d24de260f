from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from expense_categorizer.models import DateRange


class BulkApplyRequest(BaseModel):
    min_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    category_filter: Optional[str] = None
    date_range: Optional[DateRange] = None
    max_updates: int = Field(default=500, ge=1)


class SingleCategorizeRequest(BaseModel):
    expense_id: Optional[str] = None
    description: Optional[str] = None
    notes: str = ""
    amount: Decimal = Decimal("0")
