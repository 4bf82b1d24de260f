from collections import Counter
from typing import Any

from pydantic import ValidationError

from expense_categorizer.core.errors import ScanError, StoreError
from expense_categorizer.domain.categories import CategoryDirectory
from expense_categorizer.integration.store import ExpenseStore
from expense_categorizer.logger import get_logger
from expense_categorizer.models import DateRange, ReportRow, TransactionFilter

logger = get_logger(__name__)


def parse_date_range(raw: str | None) -> DateRange | None:
    """Parse ``{"start": "2024-01-01", "end": "2024-01-31"}``; empty input means no range."""
    if not raw:
        return None
    try:
        return DateRange.model_validate_json(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid date_range: {exc.errors()[0]['msg']}") from exc


async def category_distribution(store: ExpenseStore, directory: CategoryDirectory) -> list[dict[str, Any]]:
    try:
        transactions = await store.list_active_transactions(TransactionFilter())
    except StoreError as exc:
        raise ScanError(f"Failed to compute category distribution: {exc}") from exc

    counts = Counter(
        directory.name_for(tx.category_id) or "Uncategorized" for tx in transactions
    )
    distribution = [{"name": name, "count": count} for name, count in counts.items()]
    distribution.sort(key=lambda item: item["count"], reverse=True)
    logger.debug("[CATEGORIES] Distribution over %d active expenses.", len(transactions))
    return distribution


def build_report_statistics(rows: list[ReportRow]) -> dict[str, Any]:
    total = len(rows)
    correct = sum(1 for row in rows if row.is_correct)
    return {
        "total_analyzed": total,
        "accuracy": round(correct / total * 100, 1) if total else 0.0,
        "correctly_classified": correct,
        "needs_recategorization": total - correct,
        "average_confidence": round(sum(row.confidence for row in rows) / total, 3) if total else 0.0,
    }


def confidence_level(confidence: float) -> str:
    if confidence >= 0.9:
        return "Excellent (very reliable)"
    if confidence >= 0.8:
        return "High (reliable)"
    if confidence >= 0.7:
        return "Good (generally reliable)"
    if confidence >= 0.6:
        return "Medium (review recommended)"
    if confidence >= 0.4:
        return "Low (manual review needed)"
    return "Very low (likely incorrect)"
