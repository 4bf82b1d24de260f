import asyncio
import json
import os
from abc import ABC, abstractmethod
from typing import Any

from expense_categorizer.core.errors import StoreError
from expense_categorizer.logger import get_logger
from expense_categorizer.models import Category, Transaction, TransactionFilter

logger = get_logger(__name__)


class ExpenseStore(ABC):
    """Read/write contract the engine needs from the transaction store.

    Read methods raise ``StoreError`` when the store cannot answer.
    ``update_transaction_category`` reports failure by returning False.
    """

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def list_active_transactions(self, filters: TransactionFilter) -> list[Transaction]:
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        pass

    @abstractmethod
    async def update_transaction_category(self, transaction_id: str, category_id: str) -> bool:
        pass

    async def aclose(self) -> None:
        return None


class InMemoryExpenseStore(ExpenseStore):
    """Dict-backed store. Transactions keep insertion order as creation order."""

    def __init__(
        self,
        categories: list[Category] | None = None,
        transactions: list[Transaction] | None = None,
    ):
        self.categories: dict[str, Category] = {c.id: c for c in categories or []}
        self.transactions: dict[str, Transaction] = {t.id: t for t in transactions or []}
        self._lock = asyncio.Lock()

    @classmethod
    def from_file(cls, path: str) -> "InMemoryExpenseStore":
        if not os.path.exists(path):
            raise StoreError(f"Seed file not found: {path}")
        with open(path, encoding="utf-8") as handle:
            data: dict[str, Any] = json.load(handle)
        store = cls(
            categories=[Category.model_validate(c) for c in data.get("categories", [])],
            transactions=[Transaction.model_validate(t) for t in data.get("transactions", [])],
        )
        logger.info(
            "[STORE] Seeded in-memory store from %s: %d categories, %d transactions.",
            path,
            len(store.categories),
            len(store.transactions),
        )
        return store

    def snapshot(self) -> dict[str, str | None]:
        return {tx_id: tx.category_id for tx_id, tx in self.transactions.items()}

    async def list_categories(self) -> list[Category]:
        return list(self.categories.values())

    async def list_active_transactions(self, filters: TransactionFilter) -> list[Transaction]:
        selected = [
            tx
            for tx in self.transactions.values()
            if tx.active
            and (filters.category_id is None or tx.category_id == filters.category_id)
            and (filters.date_range is None or filters.date_range.contains(tx.date))
        ]
        if filters.newest_first:
            selected.reverse()
        if filters.limit is not None:
            selected = selected[: filters.limit]
        return [tx.model_copy() for tx in selected]

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        tx = self.transactions.get(str(transaction_id))
        return tx.model_copy() if tx else None

    async def update_transaction_category(self, transaction_id: str, category_id: str) -> bool:
        async with self._lock:
            tx = self.transactions.get(str(transaction_id))
            if tx is None or category_id not in self.categories:
                logger.error("Error updating transaction %s: not found or unknown category %s", transaction_id, category_id)
                return False
            self.transactions[tx.id] = tx.model_copy(update={"category_id": category_id})
            return True
