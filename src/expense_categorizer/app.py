from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from expense_categorizer.api.routes import recategorization
from expense_categorizer.core import settings
from expense_categorizer.core.errors import CategorizerError, StoreError
from expense_categorizer.integration.store import ExpenseStore, InMemoryExpenseStore
from expense_categorizer.integration.supabase import SupabaseExpenseStore
from expense_categorizer.logger import get_logger, setup_logging
from expense_categorizer.manager import CategorizationEngine
from expense_categorizer.services.recategorization import BulkRecategorizer
from expense_categorizer.services.reporting import ReportGenerator

logger = get_logger(__name__)


def build_store() -> ExpenseStore:
    supabase = SupabaseExpenseStore()
    if supabase.configured:
        logger.info("[STORE] Using Supabase store at %s.", supabase.base_url)
        return supabase

    if settings.SEED_FILE:
        try:
            return InMemoryExpenseStore.from_file(settings.SEED_FILE)
        except StoreError as exc:
            logger.warning("[STORE] %s. Starting with an empty in-memory store.", exc)
    else:
        logger.warning(
            "SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY not set and no SEED_FILE given. "
            "Using an empty in-memory store."
        )
    return InMemoryExpenseStore()


async def _handle_categorizer_error(request: Request, exc: CategorizerError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=exc.http_status, content={"detail": str(exc)})


def create_app(store: ExpenseStore | None = None, engine: CategorizationEngine | None = None) -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        active_store = store or (engine.store if engine else build_store())
        active_engine = engine or CategorizationEngine(active_store)

        app.state.store = active_store
        app.state.engine = active_engine
        app.state.recategorizer = BulkRecategorizer(active_engine, active_store)
        app.state.reports = ReportGenerator(active_engine, active_store)

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")
        await active_store.aclose()

    app = FastAPI(title="Expense Categorizer", lifespan=lifespan)
    app.add_exception_handler(CategorizerError, _handle_categorizer_error)
    app.include_router(recategorization.router)

    return app
