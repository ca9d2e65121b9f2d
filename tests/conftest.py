import copy
import itertools
from datetime import datetime
from typing import Optional

import pytest

from app.core.config import settings
from app.core.container import wire
from app.core.errors import UpstreamError
from app.models.retell_models import CallRecord
from app.services.conflict_checker import overlaps
from app.services.db_service import DuplicateRowError, FILTER_OPS

UNIQUE_KEYS = {
    "idempotency_records": ("tenant_id", "operation_name", "idempotency_key"),
}


def _matches(row, column, op, value):
    current = row.get(column)
    if op == "eq":
        return current == value
    if op == "neq":
        return current != value
    if op == "in":
        return current in value
    if current is None:
        return False
    if op == "lt":
        return current < value
    if op == "gt":
        return current > value
    if op == "lte":
        return current <= value
    if op == "gte":
        return current >= value
    raise AssertionError(op)


class FakeStore:
    """In-memory stand-in for DBService with the same query surface."""

    def __init__(self):
        self.tables = {}
        self._ids = itertools.count(1)
        self.fail_inserts_into = set()

    def rows(self, collection):
        return self.tables.setdefault(collection, [])

    async def insert(self, collection, row):
        if collection in self.fail_inserts_into:
            raise UpstreamError(f"insert into {collection} failed", reason="store_error")
        unique = UNIQUE_KEYS.get(collection)
        if unique:
            for existing in self.rows(collection):
                if all(existing.get(k) == row.get(k) for k in unique):
                    raise DuplicateRowError("duplicate", reason="duplicate_row")
        stored = dict(copy.deepcopy(row), id=row.get("id") or next(self._ids))
        self.rows(collection).append(stored)
        return dict(stored)

    async def update(self, collection, row_id, patch):
        for row in self.rows(collection):
            if row["id"] == row_id:
                row.update(patch)
                return dict(row)
        return {}

    async def select(self, collection, filters=(), order_by=None, descending=False, limit=None):
        for _, op, _ in filters:
            assert op in FILTER_OPS
        result = [dict(r) for r in self.rows(collection)
                  if all(_matches(r, c, op, v) for c, op, v in filters)]
        if order_by:
            result.sort(key=lambda r: r[order_by], reverse=descending)
        if limit is not None:
            result = result[:limit]
        return result

    async def select_one(self, collection, filters=()):
        rows = await self.select(collection, filters, limit=1)
        return rows[0] if rows else None


class FakeCalendar:
    """Google Calendar stand-in; keeps events per tenant and logs every call."""

    def __init__(self):
        self.events = {}
        self.calls = []
        self._ids = itertools.count(1)
        self.fail_delete = False
        self.fail_insert = False

    def add_event(self, tenant_id, start: datetime, end: datetime, cancelled=False, event_id=None):
        event_id = event_id or f"ext_{next(self._ids)}"
        self.events[event_id] = {"tenant_id": tenant_id, "start": start, "end": end, "cancelled": cancelled}
        return event_id

    def _overlapping(self, tenant_id, time_min, time_max):
        for event_id, e in self.events.items():
            if e["tenant_id"] == tenant_id and overlaps(e["start"], e["end"], time_min, time_max):
                yield event_id, e

    async def list_events(self, tenant_id, time_min, time_max):
        self.calls.append("list_events")
        return [{"id": i, "start": e["start"], "end": e["end"], "cancelled": e["cancelled"]}
                for i, e in self._overlapping(tenant_id, time_min, time_max)]

    async def free_busy(self, tenant_id, time_min, time_max):
        self.calls.append("free_busy")
        return [(e["start"], e["end"]) for _, e in self._overlapping(tenant_id, time_min, time_max)
                if not e["cancelled"]]

    async def insert_event(self, tenant_id, summary, description, start, end, timezone):
        self.calls.append("insert_event")
        if self.fail_insert:
            raise UpstreamError("calendar insert failed", reason="calendar_error")
        event_id = self.add_event(tenant_id, start, end)
        self.events[event_id].update(summary=summary, description=description, timezone=timezone)
        return event_id

    async def delete_event(self, tenant_id, event_id):
        self.calls.append("delete_event")
        if self.fail_delete:
            raise UpstreamError("calendar delete failed", reason="calendar_error")
        self.events.pop(event_id, None)


class FakeNotifier:
    def __init__(self):
        self.sent = []

    async def send(self, to, subject, html_body, from_email=None):
        self.sent.append({"to": to, "subject": subject, "html": html_body})
        return f"msg_{len(self.sent)}"


class FakeCallClient:
    def __init__(self, record: Optional[CallRecord] = None):
        self.record = record
        self.fetched = []

    async def fetch_call(self, call_id):
        self.fetched.append(call_id)
        if self.record is None:
            raise UpstreamError("call not found", reason="call_platform_error")
        return self.record


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def call_client():
    return FakeCallClient(CallRecord(
        call_id="call_123",
        transcript="Hi, I need to cancel my appointment tomorrow.",
        summary="Caller wants to cancel.",
        from_number="+15550001111",
        recording_url="https://example.com/rec.wav",
    ))


@pytest.fixture
def container(store, calendar, notifier, call_client):
    return wire(store, calendar, notifier, call_client, settings)
