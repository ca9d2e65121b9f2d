import httplib2
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch
from googleapiclient.errors import HttpError
from zoneinfo import ZoneInfo

from app.core.errors import UpstreamError
from app.services.calendar_service import CalendarService

START = datetime(2025, 6, 4, 13, 0, tzinfo=timezone.utc)
END = datetime(2025, 6, 4, 21, 0, tzinfo=timezone.utc)


def http_error(status):
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "boom"}}')


@pytest.fixture
def connected(store):
    store.rows("calendar_credentials").append({
        "id": 1, "tenant_id": "t1", "refresh_token": "1//refresh", "calendar_id": "clinic@group.calendar.google.com",
    })
    return CalendarService(store, client_id="cid", client_secret="secret")


@pytest.mark.asyncio
@patch("app.services.calendar_service.build")
async def test_free_busy(mock_build, connected):
    service = MagicMock()
    mock_build.return_value = service
    service.freebusy.return_value.query.return_value.execute.return_value = {
        "calendars": {"clinic@group.calendar.google.com": {"busy": [
            {"start": "2025-06-04T14:00:00Z", "end": "2025-06-04T14:30:00Z"},
        ]}}
    }

    blocks = await connected.free_busy("t1", START, END)

    assert blocks == [(
        datetime(2025, 6, 4, 14, 0, tzinfo=timezone.utc),
        datetime(2025, 6, 4, 14, 30, tzinfo=timezone.utc),
    )]
    body = service.freebusy.return_value.query.call_args.kwargs["body"]
    assert body["items"] == [{"id": "clinic@group.calendar.google.com"}]


@pytest.mark.asyncio
@patch("app.services.calendar_service.build")
async def test_list_events_pages_and_flags_cancelled(mock_build, connected):
    service = MagicMock()
    mock_build.return_value = service
    service.events.return_value.list.return_value.execute.side_effect = [
        {"items": [{"id": "a", "start": {"dateTime": "2025-06-04T10:00:00-04:00"},
                    "end": {"dateTime": "2025-06-04T10:30:00-04:00"}}],
         "nextPageToken": "p2"},
        {"items": [{"id": "b", "status": "cancelled", "start": {"dateTime": "2025-06-04T11:00:00-04:00"},
                    "end": {"dateTime": "2025-06-04T11:30:00-04:00"}}]},
    ]

    events = await connected.list_events("t1", START, END)

    assert [e["id"] for e in events] == ["a", "b"]
    assert [e["cancelled"] for e in events] == [False, True]
    assert events[0]["start"] == datetime(2025, 6, 4, 14, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
@patch("app.services.calendar_service.build")
async def test_insert_event_returns_id(mock_build, connected):
    service = MagicMock()
    mock_build.return_value = service
    service.events.return_value.insert.return_value.execute.return_value = {"id": "evt_1", "htmlLink": "https://x"}

    event_id = await connected.insert_event("t1", "Appointment", "desc", START, END, "America/Toronto")

    assert event_id == "evt_1"
    body = service.events.return_value.insert.call_args.kwargs["body"]
    assert body["start"] == {"dateTime": START.isoformat(), "timeZone": "America/Toronto"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 410])
@patch("app.services.calendar_service.build")
async def test_delete_of_missing_event_succeeds(mock_build, status, connected):
    service = MagicMock()
    mock_build.return_value = service
    service.events.return_value.delete.return_value.execute.side_effect = http_error(status)

    await connected.delete_event("t1", "evt_1")


@pytest.mark.asyncio
@patch("app.services.calendar_service.build")
async def test_other_http_errors_are_upstream(mock_build, connected):
    service = MagicMock()
    mock_build.return_value = service
    service.events.return_value.delete.return_value.execute.side_effect = http_error(500)

    with pytest.raises(UpstreamError) as exc:
        await connected.delete_event("t1", "evt_1")
    assert exc.value.reason == "calendar_error"


@pytest.mark.asyncio
@patch("app.services.calendar_service.build")
async def test_tenant_without_calendar(mock_build, store):
    service = CalendarService(store)

    with pytest.raises(UpstreamError) as exc:
        await service.free_busy("t1", START, END)
    assert exc.value.reason == "calendar_not_connected"
    mock_build.assert_not_called()


@pytest.mark.asyncio
@patch("app.services.calendar_service.build")
async def test_all_day_event_starts_at_local_midnight(mock_build, connected):
    service = MagicMock()
    mock_build.return_value = service
    service.events.return_value.list.return_value.execute.return_value = {
        "timeZone": "Pacific/Auckland",
        "items": [{"id": "holiday", "start": {"date": "2025-06-04"}, "end": {"date": "2025-06-05"}}],
    }

    [event] = await connected.list_events("t1", START, END)

    auckland = ZoneInfo("Pacific/Auckland")
    assert event["start"] == datetime(2025, 6, 4, tzinfo=auckland)
    assert event["end"] == datetime(2025, 6, 5, tzinfo=auckland)
    # Midnight in Auckland is noon the previous day in UTC
    assert event["start"].astimezone(timezone.utc) == datetime(2025, 6, 3, 12, 0, tzinfo=timezone.utc)
