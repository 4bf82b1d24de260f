import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from expense_categorizer.classifiers.rules import RuleBasedClassifier
from expense_categorizer.core import settings
from expense_categorizer.core.errors import (
    EngineNotInitializedError,
    InitializationError,
    StoreError,
)
from expense_categorizer.domain.categories import CategoryDirectory
from expense_categorizer.domain.history import HistoricalSimilarityIndex
from expense_categorizer.domain.rules import RuleCatalog, load_rule_catalog
from expense_categorizer.domain.tokenizer import Tokenizer
from expense_categorizer.integration.store import ExpenseStore
from expense_categorizer.logger import get_logger
from expense_categorizer.models import Suggestion, TransactionFilter

logger = get_logger(__name__)


@dataclass(frozen=True)
class EngineState:
    directory: CategoryDirectory
    history: HistoricalSimilarityIndex
    classifier: RuleBasedClassifier


class CategorizationEngine:
    """Owns the rule catalog, the category directory and the history index.

    ``initialize`` builds everything once; concurrent callers wait on the same
    lock and the second one finds the work done. The history index is never
    updated implicitly: recategorizations applied later only reach similarity
    scoring after an explicit ``refresh``.
    """

    def __init__(
        self,
        store: ExpenseStore,
        catalog: RuleCatalog | None = None,
        history_sample_size: int | None = None,
    ):
        self.store = store
        self.catalog = catalog or load_rule_catalog(settings.RULES_PATH)
        self.tokenizer = Tokenizer(self.catalog.script_ranges)
        self.history_sample_size = (
            history_sample_size if history_sample_size is not None else settings.HISTORY_SAMPLE_SIZE
        )
        self._state: EngineState | None = None
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> EngineState:
        if self._state is None:
            raise EngineNotInitializedError("Categorization engine is not initialized")
        return self._state

    @property
    def directory(self) -> CategoryDirectory:
        return self.state.directory

    @property
    def classifier(self) -> RuleBasedClassifier:
        return self.state.classifier

    async def _build_state(self) -> EngineState:
        try:
            categories = await self.store.list_categories()
        except StoreError as exc:
            raise InitializationError(f"Could not load categories: {exc}") from exc

        directory = CategoryDirectory(categories)

        try:
            history_sample = await self.store.list_active_transactions(
                TransactionFilter(limit=self.history_sample_size, newest_first=True)
            )
        except StoreError as exc:
            raise InitializationError(f"Could not load expense history: {exc}") from exc

        history = HistoricalSimilarityIndex.build(history_sample, directory.names_by_id, self.tokenizer)
        # Raises ConfigurationError when the fallback category is missing.
        classifier = RuleBasedClassifier(self.catalog, directory, history)

        skipped = [e.category_name for e in self.catalog.all_entries() if e.category_name not in directory]
        if skipped:
            logger.warning("[INIT] Rules without a matching category are skipped: %s", ", ".join(skipped))

        logger.info(
            "[INIT] Categorization engine ready: %d categories, %d active rules, %d history samples.",
            len(directory),
            len(classifier.active_entries),
            history.sample_count,
        )
        return EngineState(directory=directory, history=history, classifier=classifier)

    async def initialize(self) -> None:
        if self._state is not None:
            return
        async with self._init_lock:
            if self._state is not None:
                return
            logger.info("[INIT] Initializing categorization engine...")
            self._state = await self._build_state()

    async def refresh(self) -> dict[str, Any]:
        """Rebuild the category directory and the history index from the store."""
        async with self._init_lock:
            logger.info("[INIT] Refreshing categorization engine...")
            self._state = await self._build_state()
        return self.stats()

    def classify(self, description: str, notes: str = "", amount: Decimal = Decimal("0")) -> Suggestion:
        return self.classifier.classify(description, notes, amount)

    def rank(self, description: str, notes: str = "", amount: Decimal = Decimal("0")) -> list[Suggestion]:
        return self.classifier.rank(description, notes, amount)

    def stats(self) -> dict[str, Any]:
        state = self.state
        return {
            "catalog_version": self.catalog.version,
            "categories_loaded": len(state.directory),
            "rule_entries": len(self.catalog),
            "active_rules": len(state.classifier.active_entries),
            "history_categories": len(state.history.categories()),
            "history_samples": state.history.sample_count,
        }
