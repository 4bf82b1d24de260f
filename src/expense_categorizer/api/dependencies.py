from fastapi import HTTPException, Request

from expense_categorizer.integration.store import ExpenseStore
from expense_categorizer.manager import CategorizationEngine
from expense_categorizer.services.recategorization import BulkRecategorizer
from expense_categorizer.services.reporting import ReportGenerator


async def get_engine(request: Request) -> CategorizationEngine:
    engine = getattr(request.app.state, "engine", None)
    if not engine:
        raise HTTPException(status_code=500, detail="Engine not configured")
    # No-op after the first successful call.
    await engine.initialize()
    return engine


def get_store(request: Request) -> ExpenseStore:
    store = getattr(request.app.state, "store", None)
    if not store:
        raise HTTPException(status_code=500, detail="Store not configured")
    return store


def get_recategorizer(request: Request) -> BulkRecategorizer:
    recategorizer = getattr(request.app.state, "recategorizer", None)
    if not recategorizer:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return recategorizer


def get_report_generator(request: Request) -> ReportGenerator:
    reports = getattr(request.app.state, "reports", None)
    if not reports:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return reports
