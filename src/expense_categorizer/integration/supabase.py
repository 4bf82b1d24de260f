import asyncio
import os
from typing import Any

import httpx
from pydantic import ValidationError

from expense_categorizer.core.errors import StoreError
from expense_categorizer.logger import get_logger
from expense_categorizer.models import Category, Transaction, TransactionFilter

from .store import ExpenseStore

logger = get_logger(__name__)

EXPENSE_COLUMNS = "id,amount,description,notes,category_id,expense_date,is_active"


def _parse_transaction(row: dict[str, Any]) -> Transaction:
    return Transaction(
        id=str(row["id"]),
        amount=row.get("amount") or 0,
        description=row.get("description") or "",
        notes=row.get("notes") or "",
        category_id=str(row["category_id"]) if row.get("category_id") is not None else None,
        date=row.get("expense_date"),
        active=bool(row.get("is_active", True)),
    )


class SupabaseExpenseStore(ExpenseStore):
    """Store backed by the Supabase PostgREST API (``categories`` and ``expenses`` tables)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = (base_url or os.getenv("SUPABASE_URL") or "").rstrip("/") or None
        self.api_key = api_key or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        self.headers = {
            "apikey": self.api_key or "",
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self.timeout = timeout
        self._client = client
        self._client_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient(timeout=self.timeout)
                self._client = client
            return client

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _select(self, table: str, params: list[tuple[str, str]]) -> list[dict[str, Any]]:
        if not self.configured:
            raise StoreError("Supabase credentials missing (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)")

        client = await self._get_client()
        try:
            response = await client.get(self._url(table), headers=self.headers, params=params)
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("[STORE] Error reading %s: %s", table, exc)
            raise StoreError(f"Failed to read {table}: {exc}") from exc

        if not isinstance(rows, list):
            raise StoreError(f"Unexpected response shape from {table}")
        return rows

    async def list_categories(self) -> list[Category]:
        rows = await self._select("categories", [("select", "id,name"), ("order", "name.asc")])
        return [Category(id=str(row["id"]), name=row["name"]) for row in rows]

    async def list_active_transactions(self, filters: TransactionFilter) -> list[Transaction]:
        params: list[tuple[str, str]] = [
            ("select", EXPENSE_COLUMNS),
            ("is_active", "eq.true"),
            ("order", "created_at.desc" if filters.newest_first else "created_at.asc"),
        ]
        if filters.category_id is not None:
            params.append(("category_id", f"eq.{filters.category_id}"))
        if filters.date_range is not None:
            params.append(("expense_date", f"gte.{filters.date_range.start.isoformat()}"))
            params.append(("expense_date", f"lte.{filters.date_range.end.isoformat()}"))
        if filters.limit is not None:
            params.append(("limit", str(filters.limit)))

        rows = await self._select("expenses", params)
        try:
            return [_parse_transaction(row) for row in rows]
        except (KeyError, ValidationError) as exc:
            raise StoreError(f"Malformed expense row: {exc}") from exc

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        rows = await self._select(
            "expenses",
            [("select", EXPENSE_COLUMNS), ("id", f"eq.{transaction_id}"), ("limit", "1")],
        )
        if not rows:
            return None
        try:
            return _parse_transaction(rows[0])
        except (KeyError, ValidationError) as exc:
            raise StoreError(f"Malformed expense row: {exc}") from exc

    async def update_transaction_category(self, transaction_id: str, category_id: str) -> bool:
        if not self.configured:
            return False

        client = await self._get_client()
        try:
            response = await client.patch(
                self._url("expenses"),
                headers={**self.headers, "Prefer": "return=representation"},
                params={"id": f"eq.{transaction_id}"},
                json={"category_id": category_id},
            )
            response.raise_for_status()
            updated = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error updating expense %s: %s", transaction_id, exc)
            return False

        # PostgREST answers 2xx with an empty list when the id filter matched nothing.
        if not updated:
            logger.error("Error updating expense %s: no matching row", transaction_id)
            return False
        return True
