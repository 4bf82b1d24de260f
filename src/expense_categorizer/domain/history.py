from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from expense_categorizer.domain.tokenizer import Tokenizer
from expense_categorizer.models import Transaction


def jaccard(left: frozenset[str], right: frozenset[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


@dataclass
class LearningIndex:
    sample_descriptions: list[str] = field(default_factory=list)
    sample_amounts: list[Decimal] = field(default_factory=list)
    word_frequency: Counter[str] = field(default_factory=Counter)


class HistoricalSimilarityIndex:
    """Per-category corpus of past descriptions, built once and read-only afterwards.

    ``similarity`` returns the best Jaccard score between a candidate
    description and any historical description of a category. An inverted
    token index limits the scan to descriptions that share at least one token
    with the candidate; descriptions sharing none score 0 anyway.
    """

    def __init__(self, tokenizer: Tokenizer):
        self.tokenizer = tokenizer
        self._corpora: dict[str, LearningIndex] = {}
        self._token_sets: dict[str, list[frozenset[str]]] = {}
        self._postings: dict[str, dict[str, list[int]]] = {}
        self.sample_count = 0

    @classmethod
    def build(
        cls,
        transactions: Iterable[Transaction],
        category_names: Mapping[str, str],
        tokenizer: Tokenizer,
    ) -> "HistoricalSimilarityIndex":
        """Build from transactions; ``category_names`` maps category id to name."""
        index = cls(tokenizer)
        corpora: dict[str, LearningIndex] = defaultdict(LearningIndex)
        token_sets: dict[str, list[frozenset[str]]] = defaultdict(list)
        postings: dict[str, dict[str, list[int]]] = defaultdict(lambda: defaultdict(list))

        for transaction in transactions:
            if not transaction.active or transaction.category_id is None:
                continue
            category_name = category_names.get(transaction.category_id)
            if category_name is None:
                continue

            corpus = corpora[category_name]
            tokens = list(tokenizer.tokens(transaction.description))
            token_set = frozenset(tokens)

            position = len(corpus.sample_descriptions)
            corpus.sample_descriptions.append(transaction.description)
            corpus.sample_amounts.append(transaction.amount)
            corpus.word_frequency.update(tokens)
            token_sets[category_name].append(token_set)
            # Registered even when the description has no tokens.
            category_postings = postings[category_name]
            for token in token_set:
                category_postings[token].append(position)
            index.sample_count += 1

        index._corpora = dict(corpora)
        index._token_sets = dict(token_sets)
        index._postings = {name: dict(tokens) for name, tokens in postings.items()}
        return index

    def corpus(self, category_name: str) -> LearningIndex | None:
        return self._corpora.get(category_name)

    def categories(self) -> list[str]:
        return list(self._corpora)

    def similarity(self, description: str, category_name: str) -> float:
        token_sets = self._token_sets.get(category_name)
        if not token_sets:
            return 0.0

        candidate = self.tokenizer.token_set(description)
        postings = self._postings.get(category_name, {})
        positions: set[int] = set()
        for token in candidate:
            positions.update(postings.get(token, ()))

        best = 0.0
        for position in positions:
            best = max(best, jaccard(candidate, token_sets[position]))
        return best
