from decimal import Decimal

import pytest

from expense_categorizer.domain.history import HistoricalSimilarityIndex, jaccard
from expense_categorizer.domain.tokenizer import Tokenizer
from expense_categorizer.models import Transaction

NAMES = {"c1": "Utilities", "c2": "Food & Dining"}


def _tx(tx_id, description, category_id, active=True):
    return Transaction(id=tx_id, description=description, amount=Decimal("100"), category_id=category_id, active=active)


@pytest.fixture
def index():
    return HistoricalSimilarityIndex.build(
        [
            _tx("1", "WAPDA electricity bill", "c1"),
            _tx("2", "sui gas bill", "c1"),
            _tx("3", "chai and biscuits", "c2"),
            _tx("4", "old electricity bill", "c2", active=False),
            _tx("5", "electricity bill", "c9"),
            _tx("6", "electricity bill", None),
        ],
        NAMES,
        Tokenizer(),
    )


def test_jaccard():
    assert jaccard(frozenset(), frozenset()) == 0.0
    assert jaccard(frozenset({"a", "b"}), frozenset({"b", "c"})) == pytest.approx(1 / 3)


def test_build_skips_inactive_and_unknown_categories(index):
    assert index.sample_count == 3
    assert sorted(index.categories()) == ["Food & Dining", "Utilities"]
    utilities = index.corpus("Utilities")
    assert utilities.sample_descriptions == ["WAPDA electricity bill", "sui gas bill"]
    assert utilities.sample_amounts == [Decimal("100"), Decimal("100")]
    assert utilities.word_frequency["bill"] == 2


def test_similarity_is_best_match(index):
    assert index.similarity("electricity bill", "Utilities") == pytest.approx(2 / 3)
    assert index.similarity("WAPDA electricity bill", "Utilities") == pytest.approx(1.0)
    assert index.similarity("electricity bill", "Food & Dining") == 0.0


def test_similarity_unknown_category_or_no_tokens(index):
    assert index.similarity("electricity bill", "Travel") == 0.0
    assert index.similarity("", "Utilities") == 0.0
    assert index.similarity("a b", "Utilities") == 0.0


def test_category_with_only_tokenless_samples():
    index = HistoricalSimilarityIndex.build([_tx("1", "BP 12", "c1"), _tx("2", "", "c1")], NAMES, Tokenizer())
    assert index.sample_count == 2
    assert index.similarity("WAPDA electricity", "Utilities") == 0.0
