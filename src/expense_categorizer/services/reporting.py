from expense_categorizer.core.errors import ScanError, StoreError
from expense_categorizer.integration.store import ExpenseStore
from expense_categorizer.logger import get_logger
from expense_categorizer.manager import CategorizationEngine
from expense_categorizer.models import ReportRow, Transaction, TransactionFilter

logger = get_logger(__name__)

DEFAULT_REPORT_LIMIT = 20


class ReportGenerator:
    def __init__(self, engine: CategorizationEngine, store: ExpenseStore | None = None) -> None:
        self.engine = engine
        self.store = store or engine.store

    async def _load(self, transaction_id: str | None, limit: int) -> list[Transaction]:
        try:
            if transaction_id is not None:
                transaction = await self.store.get_transaction(str(transaction_id))
                return [transaction] if transaction and transaction.active else []
            return await self.store.list_active_transactions(
                TransactionFilter(limit=limit, newest_first=True)
            )
        except StoreError as exc:
            raise ScanError(f"Failed to load transactions for report: {exc}") from exc

    async def report(self, transaction_id: str | None = None, limit: int = DEFAULT_REPORT_LIMIT) -> list[ReportRow]:
        """Re-classify one transaction or the newest ``limit`` and compare with the stored category."""
        transactions = await self._load(transaction_id, limit)
        directory = self.engine.directory

        rows = []
        for transaction in transactions:
            suggestion = self.engine.classify(transaction.description, transaction.notes, transaction.amount)
            current = directory.name_for(transaction.category_id)
            rows.append(ReportRow(
                transaction_id=transaction.id,
                description=transaction.description,
                amount=transaction.amount,
                current_category=current,
                suggested_category=suggestion.suggested_category_name,
                confidence=suggestion.confidence,
                is_correct=suggestion.suggested_category_name == current,
                reasoning=suggestion.reasoning,
            ))

        logger.debug("[REPORT] Classified %d transactions for report.", len(rows))
        return rows
