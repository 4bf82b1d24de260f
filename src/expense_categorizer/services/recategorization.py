import asyncio
from time import perf_counter

from expense_categorizer.core import settings
from expense_categorizer.core.errors import ScanError, StoreError, UnknownCategoryError
from expense_categorizer.integration.store import ExpenseStore
from expense_categorizer.logger import get_logger
from expense_categorizer.manager import CategorizationEngine
from expense_categorizer.models import (
    BulkRunOptions,
    BulkRunResult,
    Suggestion,
    Transaction,
    TransactionFilter,
    WriteOutcome,
)

logger = get_logger(__name__)

PROGRESS_LOG_EVERY = 100


class BulkRecategorizer:
    """Scans a slice of the store, collects confident divergences and optionally applies them.

    Applying is best effort: every write is independent, a failed or timed-out
    write is logged and reported, the rest of the batch carries on, and
    nothing is rolled back.
    """

    def __init__(
        self,
        engine: CategorizationEngine,
        store: ExpenseStore | None = None,
        *,
        suggestion_cap: int | None = None,
        write_concurrency: int | None = None,
        write_timeout: float | None = None,
    ) -> None:
        self.engine = engine
        self.store = store or engine.store
        self.suggestion_cap = suggestion_cap or settings.BULK_SUGGESTION_CAP
        self.write_concurrency = write_concurrency or settings.BULK_WRITE_CONCURRENCY
        self.write_timeout = write_timeout or settings.BULK_WRITE_TIMEOUT

    def _build_filter(self, options: BulkRunOptions) -> TransactionFilter:
        category_id = None
        if options.category_filter:
            category_id = self.engine.directory.id_for(options.category_filter)
            if category_id is None:
                raise UnknownCategoryError(options.category_filter)
        return TransactionFilter(
            category_id=category_id,
            date_range=options.date_range,
            limit=options.limit,
        )

    async def _scan(self, filters: TransactionFilter) -> list[Transaction]:
        try:
            return await self.store.list_active_transactions(filters)
        except StoreError as exc:
            raise ScanError(f"Failed to list transactions for recategorization: {exc}") from exc

    async def _collect_suggestions(
        self,
        transactions: list[Transaction],
        min_confidence: float,
        cancel_event: asyncio.Event | None,
    ) -> tuple[list[Suggestion], int, bool]:
        kept: list[Suggestion] = []
        processed = 0
        cancelled = False

        for idx, transaction in enumerate(transactions):
            if idx % settings.STREAM_YIELD_EVERY == 0:
                await asyncio.sleep(0)
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break

            suggestion = self.engine.classify(transaction.description, transaction.notes, transaction.amount)
            processed += 1

            if (
                suggestion.confidence >= min_confidence
                and suggestion.suggested_category_id != transaction.category_id
            ):
                kept.append(suggestion.model_copy(update={
                    "transaction_id": transaction.id,
                    "current_category_id": transaction.category_id,
                }))

            if processed % PROGRESS_LOG_EVERY == 0:
                logger.info("[BULK] Processed: %s/%s", processed, len(transactions))

        return kept, processed, cancelled

    async def _apply_one(
        self,
        suggestion: Suggestion,
        semaphore: asyncio.Semaphore,
        cancel_event: asyncio.Event | None,
    ) -> WriteOutcome:
        transaction_id = str(suggestion.transaction_id)
        category_id = suggestion.suggested_category_id

        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                return WriteOutcome(transaction_id=transaction_id, category_id=category_id, status="cancelled")
            try:
                success = await asyncio.wait_for(
                    self.store.update_transaction_category(transaction_id, category_id),
                    timeout=self.write_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "[APPLY] Update of expense %s timed out after %.1fs.", transaction_id, self.write_timeout
                )
                return WriteOutcome(
                    transaction_id=transaction_id,
                    category_id=category_id,
                    status="timeout",
                    error=f"timed out after {self.write_timeout}s",
                )
            except Exception as exc:
                logger.warning("[APPLY] Failed to update expense %s: %s", transaction_id, exc)
                return WriteOutcome(
                    transaction_id=transaction_id, category_id=category_id, status="failed", error=str(exc)
                )

        if not success:
            logger.warning("[APPLY] Store rejected update of expense %s.", transaction_id)
            return WriteOutcome(
                transaction_id=transaction_id, category_id=category_id, status="failed", error="store rejected update"
            )

        logger.debug(
            "[APPLY] Expense %s -> %s (%.1f%%)",
            transaction_id,
            suggestion.suggested_category_name,
            suggestion.confidence * 100,
        )
        return WriteOutcome(transaction_id=transaction_id, category_id=category_id, status="updated")

    async def apply(
        self,
        suggestions: list[Suggestion],
        cancel_event: asyncio.Event | None = None,
    ) -> list[WriteOutcome]:
        semaphore = asyncio.Semaphore(self.write_concurrency)
        return list(await asyncio.gather(
            *(self._apply_one(suggestion, semaphore, cancel_event) for suggestion in suggestions)
        ))

    async def run(
        self,
        options: BulkRunOptions,
        cancel_event: asyncio.Event | None = None,
    ) -> BulkRunResult:
        logger.info(
            "[BULK] Starting bulk recategorization (min confidence: %s, dry run: %s).",
            options.min_confidence,
            options.dry_run,
        )
        started = perf_counter()

        filters = self._build_filter(options)
        transactions = await self._scan(filters)
        logger.info("[BULK] Processing %s expenses...", len(transactions))

        kept, processed, cancelled = await self._collect_suggestions(
            transactions, options.min_confidence, cancel_event
        )
        average = sum(s.confidence for s in kept) / len(kept) if kept else 0.0

        logger.info(
            "[BULK] Analysis: processed=%s, high confidence=%s, average confidence=%.3f",
            processed,
            len(kept),
            average,
        )

        result = BulkRunResult(
            processed_count=processed,
            high_confidence_count=len(kept),
            average_confidence=average,
            suggestions=self._cap(kept, options),
            dry_run=options.dry_run,
            cancelled=cancelled,
        )

        if options.dry_run or not kept or cancelled:
            logger.info("[BULK] Finished in %.2fs without writing.", perf_counter() - started)
            return result

        logger.info("[APPLY] Applying %s recategorizations...", len(kept))
        outcomes = await self.apply(kept, cancel_event)
        failures = [outcome for outcome in outcomes if outcome.status != "updated"]
        result.updated_count = len(outcomes) - len(failures)
        result.failed_count = len(failures)
        result.failures = failures
        result.cancelled = any(outcome.status == "cancelled" for outcome in outcomes)

        logger.info(
            "[APPLY] Updated %s expenses, %s failed, in %.2fs.",
            result.updated_count,
            result.failed_count,
            perf_counter() - started,
        )
        return result

    def _cap(self, suggestions: list[Suggestion], options: BulkRunOptions) -> list[Suggestion]:
        # Encounter order by default; confidence order only when asked for.
        if options.order == "confidence":
            suggestions = sorted(suggestions, key=lambda s: s.confidence, reverse=True)
        return suggestions[: self.suggestion_cap]
