from datetime import date
from decimal import Decimal

import pytest

from expense_categorizer.domain.rules import RuleCatalog, load_rule_catalog
from expense_categorizer.integration.store import InMemoryExpenseStore
from expense_categorizer.manager import CategorizationEngine
from expense_categorizer.models import Category, Transaction

CATEGORY_NAMES = [
    "Office Supplies",
    "Technology",
    "Maintenance & Repairs",
    "Utilities",
    "Transportation",
    "Marketing",
    "Food & Dining",
    "Professional Services",
    "Salaries",
    "Employee Benefits",
    "Travel",
    "Miscellaneous",
]
CATEGORY_IDS = {name: f"c{idx}" for idx, name in enumerate(CATEGORY_NAMES, start=1)}


def make_categories() -> list[Category]:
    return [Category(id=CATEGORY_IDS[name], name=name) for name in CATEGORY_NAMES]


def make_transactions() -> list[Transaction]:
    rows = [
        ("t1", "BP MUHAMMAD QURESH ELECTRICITY", "MONTHLY ELECTRICITY BILL", "8000", "Miscellaneous"),
        ("t2", "BP SOBIA PARVEEN SALARY", "STAFF MONTHLY SALARY", "25000", "Salaries"),
        ("t3", "PETROL FOR VEHICLE", "", "3000", "Transportation"),
        ("t4", "CHAI AND SNACKS", "", "500", "Miscellaneous"),
        ("t5", "UNKNOWN EXPENSE ITEM", "NO CLEAR DESCRIPTION", "1000", "Miscellaneous"),
        ("t6", "CEMENT BORI", "", "2000", "Maintenance & Repairs"),
        ("t7", "PTCL INTERNET CHARGES", "", "4500", "Technology"),
        ("t8", "CCTV CAMERA INSTALLATION", "", "15000", "Professional Services"),
        ("t9", "LAWYER FEE", "LEGAL NOTICE", "20000", "Professional Services"),
        ("t10", "EOBI CONTRIBUTION", "", "12000", "Employee Benefits"),
        ("t11", "TRALI RENT", "", "800", "Transportation"),
        ("t12", "BANNER PRINTING", "", "3000", "Marketing"),
    ]
    return [
        Transaction(
            id=tx_id,
            description=description,
            notes=notes,
            amount=Decimal(amount),
            category_id=CATEGORY_IDS[category],
            date=date(2024, 1, idx),
        )
        for idx, (tx_id, description, notes, amount, category) in enumerate(rows, start=1)
    ]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(scope="session")
def catalog() -> RuleCatalog:
    return load_rule_catalog()


@pytest.fixture
def store() -> InMemoryExpenseStore:
    return InMemoryExpenseStore(categories=make_categories(), transactions=make_transactions())


@pytest.fixture
def empty_store() -> InMemoryExpenseStore:
    return InMemoryExpenseStore(categories=make_categories())


@pytest.fixture
def engine(store: InMemoryExpenseStore, catalog: RuleCatalog) -> CategorizationEngine:
    return CategorizationEngine(store, catalog=catalog)


@pytest.fixture
def rules_only_engine(empty_store: InMemoryExpenseStore, catalog: RuleCatalog) -> CategorizationEngine:
    """Engine without history, so scores come from the rule catalog alone."""
    return CategorizationEngine(empty_store, catalog=catalog)
