from supabase import create_async_client, AsyncClient
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.core.errors import UpstreamError
from app.core.logger import logger

# (column, operator, value)
Filter = Tuple[str, str, Any]

FILTER_OPS = {"eq", "neq", "lt", "gt", "gte", "lte", "in"}

UNIQUE_VIOLATION = "23505"


class DuplicateRowError(UpstreamError):
    """Insert rejected by a unique constraint."""

    kind = "duplicate_row"


def serialize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError(f"Refusing to store naive datetime {value!r}")
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def serialize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {k: serialize_value(v) for k, v in row.items()}


class DBService:
    """
    Row store over the Supabase async client.
    Every collection is a PostgREST table with an `id` primary key.
    """

    def __init__(self, url: str, key: str):
        self._url = url
        self._key = key
        self._client: Optional[AsyncClient] = None

    async def get_client(self) -> AsyncClient:
        if not self._client:
            if not (self._url and self._key):
                logger.error("❌ Supabase credentials missing (SUPABASE_URL / SUPABASE_KEY)")
                raise UpstreamError("Store is not configured", reason="store_unavailable")
            try:
                self._client = await create_async_client(self._url, self._key)
                logger.info("✅ Supabase Async client initialized")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Supabase Async: {e}")
                raise UpstreamError(f"Store connection failed: {e}", reason="store_unavailable") from e
        return self._client

    async def insert(self, collection: str, row: Dict[str, Any]) -> Dict[str, Any]:
        client = await self.get_client()
        try:
            response = await client.table(collection).insert(serialize_row(row)).execute()
        except Exception as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION:
                raise DuplicateRowError(f"Duplicate row in {collection}", reason="duplicate_row") from e
            logger.error(f"❌ DB Error (insert {collection}): {e}")
            raise UpstreamError(f"Store insert into {collection} failed", reason="store_error") from e

        if not response.data:
            raise UpstreamError(f"Store insert into {collection} returned no row", reason="store_error")
        return response.data[0]

    async def update(self, collection: str, row_id: Any, patch: Dict[str, Any]) -> Dict[str, Any]:
        client = await self.get_client()
        try:
            response = await client.table(collection).update(serialize_row(patch)).eq("id", row_id).execute()
        except Exception as e:
            logger.error(f"❌ DB Error (update {collection}#{row_id}): {e}")
            raise UpstreamError(f"Store update of {collection} failed", reason="store_error") from e

        return response.data[0] if response.data else {}

    async def select(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        client = await self.get_client()
        query = client.table(collection).select("*")

        for column, op, value in filters:
            if op not in FILTER_OPS:
                raise ValueError(f"Unsupported filter operator: {op}")
            if op == "in":
                query = query.in_(column, [serialize_value(v) for v in value])
            else:
                query = getattr(query, op)(column, serialize_value(value))

        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)

        try:
            response = await query.execute()
        except Exception as e:
            logger.error(f"❌ DB Error (select {collection}): {e}")
            raise UpstreamError(f"Store query on {collection} failed", reason="store_error") from e
        return response.data or []

    async def select_one(self, collection: str, filters: Sequence[Filter] = ()) -> Optional[Dict[str, Any]]:
        rows = await self.select(collection, filters, limit=1)
        return rows[0] if rows else None
