import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

from app.core.errors import UpstreamError
from app.models.db_models import AppointmentStatus
from app.services.db_service import DBService, DuplicateRowError, serialize_row, serialize_value


class PostgrestError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


def mock_db(data=None, error=None):
    """Supabase query builder: every builder call returns the same query object."""
    query = MagicMock()
    for method in ("select", "insert", "update", "eq", "neq", "lt", "gt", "gte", "lte", "in_", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute = AsyncMock(return_value=MagicMock(data=data), side_effect=error)

    client = MagicMock()
    client.table.return_value = query

    db = DBService("https://example.supabase.co", "service-key")
    db._client = client
    return db, client, query


def test_serialize_value():
    local = datetime(2025, 6, 4, 10, 0, tzinfo=ZoneInfo("America/Toronto"))
    assert serialize_value(local) == "2025-06-04T14:00:00+00:00"
    assert serialize_value(AppointmentStatus.BOOKED) == "booked"
    assert serialize_row({"a": 1, "b": None}) == {"a": 1, "b": None}

    with pytest.raises(ValueError):
        serialize_value(datetime(2025, 6, 4, 10, 0))


@pytest.mark.asyncio
async def test_select_builds_filters():
    db, client, query = mock_db(data=[{"id": 1}])
    start = datetime(2025, 6, 4, 14, 0, tzinfo=timezone.utc)

    rows = await db.select(
        "appointments",
        [("tenant_id", "eq", "t1"), ("start_time", "gte", start), ("id", "in", [1, 2])],
        order_by="start_time",
        limit=5,
    )

    assert rows == [{"id": 1}]
    client.table.assert_called_once_with("appointments")
    query.eq.assert_called_once_with("tenant_id", "t1")
    query.gte.assert_called_once_with("start_time", "2025-06-04T14:00:00+00:00")
    query.in_.assert_called_once_with("id", [1, 2])
    query.order.assert_called_once_with("start_time", desc=False)
    query.limit.assert_called_once_with(5)


@pytest.mark.asyncio
async def test_select_rejects_unknown_operator():
    db, _, _ = mock_db(data=[])
    with pytest.raises(ValueError):
        await db.select("appointments", [("tenant_id", "like", "t%")])


@pytest.mark.asyncio
async def test_select_one_empty():
    db, _, query = mock_db(data=[])
    assert await db.select_one("tenants", [("id", "eq", "t1")]) is None
    query.limit.assert_called_once_with(1)


@pytest.mark.asyncio
async def test_insert_returns_row():
    db, _, query = mock_db(data=[{"id": 9, "tenant_id": "t1"}])
    row = await db.insert("calls", {"tenant_id": "t1"})
    assert row["id"] == 9
    query.insert.assert_called_once_with({"tenant_id": "t1"})


@pytest.mark.asyncio
async def test_insert_unique_violation():
    db, _, _ = mock_db(error=PostgrestError("duplicate key", code="23505"))
    with pytest.raises(DuplicateRowError):
        await db.insert("idempotency_records", {"idempotency_key": "k"})


@pytest.mark.asyncio
async def test_insert_failure_is_upstream_error():
    db, _, _ = mock_db(error=PostgrestError("connection reset", code="08006"))
    with pytest.raises(UpstreamError) as exc:
        await db.insert("calls", {"tenant_id": "t1"})
    assert not isinstance(exc.value, DuplicateRowError)


@pytest.mark.asyncio
async def test_unconfigured_store():
    db = DBService("", "")
    with pytest.raises(UpstreamError) as exc:
        await db.select("tenants")
    assert exc.value.reason == "store_unavailable"
