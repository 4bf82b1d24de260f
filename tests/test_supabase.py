from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from expense_categorizer.core.errors import StoreError
from expense_categorizer.integration.supabase import SupabaseExpenseStore
from expense_categorizer.models import DateRange, TransactionFilter


def _json_response(payload: Any) -> MagicMock:
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = payload
    return response


@pytest.fixture
def supabase() -> SupabaseExpenseStore:
    return SupabaseExpenseStore(base_url="http://supabase.test/", api_key="service-key")


@pytest.mark.anyio
async def test_list_categories(supabase: SupabaseExpenseStore) -> None:
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.is_closed = False
        mock_client_cls.return_value = mock_client
        mock_client.get = AsyncMock(return_value=_json_response([
            {"id": 1, "name": "Utilities"},
            {"id": 2, "name": "Miscellaneous"},
        ]))

        categories = await supabase.list_categories()

        assert [(c.id, c.name) for c in categories] == [("1", "Utilities"), ("2", "Miscellaneous")]
        args, kwargs = mock_client.get.call_args
        assert args[0] == "http://supabase.test/rest/v1/categories"
        assert kwargs["headers"]["apikey"] == "service-key"
        assert kwargs["headers"]["Authorization"] == "Bearer service-key"


@pytest.mark.anyio
async def test_list_active_transactions_pushes_filters_down(supabase: SupabaseExpenseStore) -> None:
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.is_closed = False
        mock_client_cls.return_value = mock_client
        mock_client.get = AsyncMock(return_value=_json_response([{
            "id": "e1",
            "amount": "8000.00",
            "description": "BP MUHAMMAD QURESH ELECTRICITY",
            "notes": None,
            "category_id": 7,
            "expense_date": "2024-01-05",
            "is_active": True,
        }]))

        transactions = await supabase.list_active_transactions(TransactionFilter(
            category_id="7",
            date_range=DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31)),
            limit=10,
            newest_first=True,
        ))

        (tx,) = transactions
        assert tx.id == "e1"
        assert tx.amount == Decimal("8000.00")
        assert tx.notes == ""
        assert tx.category_id == "7"
        assert tx.date == date(2024, 1, 5)

        params = mock_client.get.call_args.kwargs["params"]
        assert ("is_active", "eq.true") in params
        assert ("order", "created_at.desc") in params
        assert ("category_id", "eq.7") in params
        assert ("expense_date", "gte.2024-01-01") in params
        assert ("expense_date", "lte.2024-01-31") in params
        assert ("limit", "10") in params


@pytest.mark.anyio
async def test_get_transaction_missing(supabase: SupabaseExpenseStore) -> None:
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.is_closed = False
        mock_client_cls.return_value = mock_client
        mock_client.get = AsyncMock(return_value=_json_response([]))

        assert await supabase.get_transaction("nope") is None


@pytest.mark.anyio
async def test_read_failure_raises_store_error(supabase: SupabaseExpenseStore) -> None:
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.is_closed = False
        mock_client_cls.return_value = mock_client
        mock_client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(StoreError):
            await supabase.list_categories()


@pytest.mark.anyio
async def test_update_category(supabase: SupabaseExpenseStore) -> None:
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.is_closed = False
        mock_client_cls.return_value = mock_client
        mock_client.patch = AsyncMock(return_value=_json_response([{"id": "e1", "category_id": "4"}]))

        assert await supabase.update_transaction_category("e1", "4") is True
        kwargs = mock_client.patch.call_args.kwargs
        assert kwargs["params"] == {"id": "eq.e1"}
        assert kwargs["json"] == {"category_id": "4"}
        assert kwargs["headers"]["Prefer"] == "return=representation"

        failing = MagicMock()
        failing.raise_for_status.side_effect = httpx.HTTPStatusError(
            "boom", request=MagicMock(), response=MagicMock()
        )
        mock_client.patch = AsyncMock(return_value=failing)
        assert await supabase.update_transaction_category("e1", "4") is False


@pytest.mark.anyio
async def test_unconfigured_store(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    store = SupabaseExpenseStore()
    assert store.configured is False
    with pytest.raises(StoreError):
        await store.list_categories()
    assert await store.update_transaction_category("e1", "4") is False


@pytest.mark.anyio
async def test_update_matching_no_row_is_a_failure(supabase: SupabaseExpenseStore) -> None:
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.is_closed = False
        mock_client_cls.return_value = mock_client
        mock_client.patch = AsyncMock(return_value=_json_response([]))

        assert await supabase.update_transaction_category("does-not-exist", "4") is False
