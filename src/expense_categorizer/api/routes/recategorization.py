from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from expense_categorizer.api.dependencies import (
    get_engine,
    get_recategorizer,
    get_report_generator,
    get_store,
)
from expense_categorizer.api.schemas import BulkApplyRequest, SingleCategorizeRequest
from expense_categorizer.core import settings
from expense_categorizer.integration.store import ExpenseStore
from expense_categorizer.logger import get_logger
from expense_categorizer.manager import CategorizationEngine
from expense_categorizer.models import BulkRunOptions
from expense_categorizer.services.recategorization import BulkRecategorizer
from expense_categorizer.services.reporting import ReportGenerator
from expense_categorizer.services.store_data import (
    build_report_statistics,
    category_distribution,
    parse_date_range,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/recategorization", tags=["recategorization"])

ALTERNATIVES_LIMIT = 3


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/analyze")
async def analyze_expenses(
    engine: Annotated[CategorizationEngine, Depends(get_engine)],
    recategorizer: Annotated[BulkRecategorizer, Depends(get_recategorizer)],
    limit: Annotated[int, Query(ge=1)] = 100,
    category_filter: Optional[str] = None,
    min_confidence: Annotated[float, Query(ge=0.0, le=1.0)] = 0.5,
    date_range: Optional[str] = None,
) -> dict[str, Any]:
    try:
        parsed_range = parse_date_range(date_range)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    result = await recategorizer.run(BulkRunOptions(
        min_confidence=min_confidence,
        dry_run=True,
        category_filter=category_filter,
        date_range=parsed_range,
        limit=limit,
    ))
    distribution = await category_distribution(recategorizer.store, engine.directory)

    return {
        **result.model_dump(mode="json"),
        "category_distribution": distribution,
        "analyzed_at": _now(),
    }


@router.post("/bulk-apply")
async def bulk_apply(
    req: BulkApplyRequest,
    recategorizer: Annotated[BulkRecategorizer, Depends(get_recategorizer)],
) -> dict[str, Any]:
    # Checked before the engine touches the store.
    if req.min_confidence < settings.BULK_APPLY_MIN_CONFIDENCE:
        raise HTTPException(
            status_code=400,
            detail=f"Minimum confidence for bulk apply is {settings.BULK_APPLY_MIN_CONFIDENCE}",
        )

    await recategorizer.engine.initialize()
    result = await recategorizer.run(BulkRunOptions(
        min_confidence=req.min_confidence,
        dry_run=False,
        category_filter=req.category_filter,
        date_range=req.date_range,
        limit=req.max_updates,
    ))
    logger.info("[APPLY] Bulk apply finished: %s updated, %s failed.", result.updated_count, result.failed_count)

    return {
        **result.model_dump(mode="json"),
        "applied_at": _now(),
        "message": f"Successfully recategorized {result.updated_count} expenses",
    }


@router.post("/single")
async def categorize_single(
    req: SingleCategorizeRequest,
    engine: Annotated[CategorizationEngine, Depends(get_engine)],
    store: Annotated[ExpenseStore, Depends(get_store)],
) -> dict[str, Any]:
    if not req.expense_id and not req.description:
        raise HTTPException(status_code=400, detail="Either expense_id or description is required")

    current_category_id = None
    if req.expense_id:
        expense = await store.get_transaction(req.expense_id)
        if expense is None:
            raise HTTPException(status_code=404, detail="Expense not found")
        description, notes, amount = expense.description, expense.notes, expense.amount
        current_category_id = expense.category_id
    else:
        description, notes, amount = req.description or "", req.notes, req.amount

    suggestion = engine.classify(description, notes, amount)

    applied = False
    if (
        req.expense_id
        and suggestion.confidence >= settings.SINGLE_AUTO_APPLY_THRESHOLD
        and suggestion.suggested_category_id != current_category_id
    ):
        applied = await store.update_transaction_category(req.expense_id, suggestion.suggested_category_id)
        if applied:
            logger.info(
                "[APPLY] Expense %s -> %s (%.1f%%)",
                req.expense_id,
                suggestion.suggested_category_name,
                suggestion.confidence * 100,
            )

    return {
        "expense_id": req.expense_id,
        "suggestion": suggestion.model_dump(mode="json"),
        "applied": applied,
        "applied_at": _now() if applied else None,
    }


@router.get("/suggestions/{expense_id}")
async def get_suggestions(
    expense_id: str,
    engine: Annotated[CategorizationEngine, Depends(get_engine)],
    store: Annotated[ExpenseStore, Depends(get_store)],
    include_alternatives: bool = False,
) -> dict[str, Any]:
    expense = await store.get_transaction(expense_id)
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")

    ranked = engine.rank(expense.description, expense.notes, expense.amount)
    suggestion = ranked[0] if ranked else engine.classifier.fallback()

    response: dict[str, Any] = {
        "expense": {
            "id": expense.id,
            "description": expense.description,
            "amount": str(expense.amount),
            "current_category": engine.directory.name_for(expense.category_id),
            "current_category_id": expense.category_id,
        },
        "suggestion": suggestion.model_dump(mode="json"),
        "needs_update": suggestion.suggested_category_id != expense.category_id,
        "suggested_at": _now(),
    }
    if include_alternatives:
        response["alternatives"] = [
            alt.model_dump(mode="json") for alt in ranked[1 : 1 + ALTERNATIVES_LIMIT]
        ]
    return response


@router.get("/report")
async def get_report(
    engine: Annotated[CategorizationEngine, Depends(get_engine)],
    reports: Annotated[ReportGenerator, Depends(get_report_generator)],
    limit: Annotated[int, Query(ge=1)] = 50,
    category: Optional[str] = None,
    accuracy_only: bool = False,
) -> dict[str, Any]:
    rows = await reports.report(limit=limit)

    filtered = rows
    if category:
        filtered = [row for row in filtered if category in (row.current_category, row.suggested_category)]
    if accuracy_only:
        filtered = [row for row in filtered if not row.is_correct]

    return {
        "report": [row.model_dump(mode="json") for row in filtered],
        "statistics": build_report_statistics(rows),
        "generated_at": _now(),
    }


@router.post("/refresh")
async def refresh_engine(
    engine: Annotated[CategorizationEngine, Depends(get_engine)],
) -> dict[str, Any]:
    return await engine.refresh()


@router.get("/categories")
async def get_categories(
    engine: Annotated[CategorizationEngine, Depends(get_engine)],
) -> list[str]:
    return list(engine.directory)
