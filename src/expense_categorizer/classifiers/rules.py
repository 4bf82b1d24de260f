from decimal import Decimal, InvalidOperation

from expense_categorizer.core.errors import ConfigurationError
from expense_categorizer.domain.categories import CategoryDirectory
from expense_categorizer.domain.history import HistoricalSimilarityIndex
from expense_categorizer.domain.rules import RuleCatalog, RuleEntry
from expense_categorizer.models import Suggestion

from .base import Classifier

KEYWORD_WEIGHT = 1.0
SCRIPT_PATTERN_WEIGHT = 1.2
HISTORY_WEIGHT = 0.5

# confidence = min(score * base_confidence / CONFIDENCE_DAMPING, CONFIDENCE_CEILING).
# Bulk-apply thresholds (0.7, 0.8) are calibrated against this shape.
CONFIDENCE_DAMPING = 2.0
CONFIDENCE_CEILING = 0.95

FALLBACK_CONFIDENCE = 0.1
FALLBACK_REASONING = "No clear pattern matched, categorized as miscellaneous"
REASONING_KEYWORD_LIMIT = 3


def build_reasoning(keywords: list[str], script_patterns: list[str], score: float) -> str:
    reasons = []
    if keywords:
        reasons.append(f"Matched keywords: {', '.join(keywords[:REASONING_KEYWORD_LIMIT])}")
    if script_patterns:
        reasons.append(f"Matched script patterns: {', '.join(script_patterns)}")
    reasons.append(f"Confidence score: {score:.2f}")
    return "; ".join(reasons)


def _to_amount(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


class RuleBasedClassifier(Classifier):
    """Scores every active rule entry against a transaction and keeps the most confident.

    Rules whose category is missing from ``directory`` are skipped. Ties on
    confidence keep catalog order.
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        directory: CategoryDirectory,
        history: HistoricalSimilarityIndex | None = None,
    ):
        fallback_id = directory.id_for(catalog.fallback_category)
        if fallback_id is None:
            raise ConfigurationError(
                f"Fallback category '{catalog.fallback_category}' does not exist in the category store"
            )
        self.catalog = catalog
        self.directory = directory
        self.history = history
        self.fallback_category_id = fallback_id
        self.active_entries: tuple[RuleEntry, ...] = tuple(
            entry for entry in catalog.all_entries() if entry.category_name in directory
        )

    def _score_entry(self, entry: RuleEntry, text: str, description: str, amount: Decimal) -> Suggestion | None:
        matched_keywords = [keyword for keyword in entry.keywords if keyword in text]
        matched_patterns = [pattern for pattern in entry.script_patterns if pattern in text]

        historical = 0.0
        if self.history is not None:
            historical = self.history.similarity(description, entry.category_name)

        score = (
            len(matched_keywords) * KEYWORD_WEIGHT
            + len(matched_patterns) * SCRIPT_PATTERN_WEIGHT
            + historical * HISTORY_WEIGHT
        )

        if amount > 0:
            has_text_signal = score > 0
            if has_text_signal or not self.catalog.amount_requires_text_match:
                score += entry.amount_weight(amount)

        if score <= 0:
            return None

        confidence = min(score * entry.base_confidence / CONFIDENCE_DAMPING, CONFIDENCE_CEILING)
        return Suggestion(
            suggested_category_id=self.directory[entry.category_name],
            suggested_category_name=entry.category_name,
            confidence=confidence,
            score=score,
            matched_keywords=matched_keywords,
            matched_script_patterns=matched_patterns,
            reasoning=build_reasoning(matched_keywords, matched_patterns, score),
        )

    def rank(self, description: str, notes: str = "", amount: Decimal = Decimal("0")) -> list[Suggestion]:
        description = description or ""
        text = f"{description} {notes or ''}".lower()
        value = _to_amount(amount)

        results = []
        for entry in self.active_entries:
            suggestion = self._score_entry(entry, text, description, value)
            if suggestion is not None:
                results.append(suggestion)

        # sorted() is stable: equal confidences stay in catalog order.
        return sorted(results, key=lambda s: s.confidence, reverse=True)

    def fallback(self) -> Suggestion:
        return Suggestion(
            suggested_category_id=self.fallback_category_id,
            suggested_category_name=self.catalog.fallback_category,
            confidence=FALLBACK_CONFIDENCE,
            score=0.0,
            reasoning=FALLBACK_REASONING,
        )

    def classify(self, description: str, notes: str = "", amount: Decimal = Decimal("0")) -> Suggestion:
        ranked = self.rank(description, notes, amount)
        if ranked:
            return ranked[0]
        return self.fallback()
