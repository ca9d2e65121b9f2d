import json
import asyncio
import datetime
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.core.errors import UpstreamError
from app.core.logger import logger

SCOPES = ['https://www.googleapis.com/auth/calendar']
TOKEN_URI = 'https://oauth2.googleapis.com/token'
CREDENTIALS_COLLECTION = 'calendar_credentials'
DEFAULT_CALENDAR_ID = 'primary'
UTC = datetime.timezone.utc

Interval = Tuple[datetime.datetime, datetime.datetime]


def _parse_google_time(value: Dict[str, str], zone: Optional[str] = None) -> Optional[datetime.datetime]:
    raw = value.get('dateTime') or value.get('date')
    if not raw:
        return None
    try:
        dt = datetime.datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        return None
    # All-day events carry a bare date, midnight in the calendar's zone
    if dt.tzinfo is None:
        zone = value.get('timeZone') or zone
        tz = UTC
        if zone:
            try:
                tz = ZoneInfo(zone)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning(f"⚠️ Unknown calendar timezone {zone}, reading all-day event as UTC")
        dt = dt.replace(tzinfo=tz)
    return dt


class CalendarService:
    """
    Google Calendar capability, scoped per tenant by the refresh token stored
    in `calendar_credentials`. A service-account JSON in settings is used for
    tenants that never went through OAuth.
    """

    def __init__(self, store, client_id: str = "", client_secret: str = "", service_account_json: str = ""):
        self.store = store
        self.client_id = client_id
        self.client_secret = client_secret
        self.service_account_json = service_account_json

    async def _resolve(self, tenant_id: str):
        row = await self.store.select_one(CREDENTIALS_COLLECTION, [('tenant_id', 'eq', tenant_id)])
        calendar_id = (row or {}).get('calendar_id') or DEFAULT_CALENDAR_ID

        if row and row.get('refresh_token'):
            creds = Credentials(
                token=None,
                refresh_token=row['refresh_token'],
                client_id=self.client_id,
                client_secret=self.client_secret,
                token_uri=TOKEN_URI,
                scopes=SCOPES,
            )
        elif self.service_account_json:
            logger.info(f"🔑 No OAuth credential for tenant {tenant_id}, using service account")
            creds = service_account.Credentials.from_service_account_info(
                json.loads(self.service_account_json), scopes=SCOPES
            )
        else:
            logger.warning(f"⚠️ Tenant {tenant_id} has no calendar connected")
            raise UpstreamError("Calendar is not connected for this tenant", reason="calendar_not_connected")

        service = build('calendar', 'v3', credentials=creds, cache_discovery=False)
        return service, calendar_id

    async def _call(self, tenant_id: str, action: str, fn):
        service, calendar_id = await self._resolve(tenant_id)
        try:
            return await asyncio.to_thread(fn, service, calendar_id)
        except HttpError as error:
            logger.error(f'❌ Google API Error ({action}): {error}')
            raise UpstreamError(f"Calendar {action} failed", reason="calendar_error") from error
        except UpstreamError:
            raise
        except Exception as e:
            logger.error(f"❌ Calendar {action} failed: {e}")
            raise UpstreamError(f"Calendar {action} failed", reason="calendar_error") from e

    async def list_events(self, tenant_id: str, time_min: datetime.datetime, time_max: datetime.datetime) -> List[dict]:
        """
        Events overlapping [time_min, time_max] as dicts with `id`, `start`,
        `end` (aware datetimes) and `cancelled`.
        """
        def _list(service, calendar_id):
            events = []
            zone = None
            page_token = None
            while True:
                result = service.events().list(
                    calendarId=calendar_id,
                    timeMin=time_min.isoformat(),
                    timeMax=time_max.isoformat(),
                    singleEvents=True,
                    showDeleted=False,
                    orderBy='startTime',
                    pageToken=page_token,
                ).execute()
                events.extend(result.get('items', []))
                zone = zone or result.get('timeZone')
                page_token = result.get('nextPageToken')
                if not page_token:
                    return events, zone

        items, zone = await self._call(tenant_id, "list", _list)

        events = []
        for item in items:
            start = _parse_google_time(item.get('start', {}), zone)
            end = _parse_google_time(item.get('end', {}), zone)
            if start is None or end is None:
                continue
            events.append({
                'id': item.get('id'),
                'start': start,
                'end': end,
                'cancelled': item.get('status') == 'cancelled',
            })
        return events

    async def free_busy(self, tenant_id: str, time_min: datetime.datetime, time_max: datetime.datetime) -> List[Interval]:
        def _query(service, calendar_id):
            resp = service.freebusy().query(body={
                'timeMin': time_min.isoformat(),
                'timeMax': time_max.isoformat(),
                'items': [{'id': calendar_id}],
            }).execute()
            entry = resp.get('calendars', {}).get(calendar_id, {})
            if entry.get('errors'):
                raise UpstreamError(f"Free/busy lookup failed: {entry['errors']}", reason="calendar_error")
            return entry.get('busy', [])

        busy = await self._call(tenant_id, "freebusy", _query)
        blocks = []
        for block in busy:
            start = _parse_google_time({'dateTime': block.get('start')})
            end = _parse_google_time({'dateTime': block.get('end')})
            if start and end:
                blocks.append((start, end))
        return blocks

    async def insert_event(
        self,
        tenant_id: str,
        summary: str,
        description: str,
        start: datetime.datetime,
        end: datetime.datetime,
        timezone: str,
    ) -> str:
        event_body = {
            'summary': summary,
            'description': description,
            'start': {'dateTime': start.isoformat(), 'timeZone': timezone},
            'end': {'dateTime': end.isoformat(), 'timeZone': timezone},
        }

        def _insert(service, calendar_id):
            logger.info(f'✏️ Creating calendar event in {calendar_id}')
            return service.events().insert(calendarId=calendar_id, body=event_body).execute()

        event = await self._call(tenant_id, "insert", _insert)
        event_id = event.get('id')
        if not event_id:
            raise UpstreamError("Calendar insert returned no event id", reason="calendar_error")
        logger.info(f"📅 Event created: {event.get('htmlLink')} (ID: {event_id})")
        return event_id

    async def delete_event(self, tenant_id: str, event_id: str) -> None:
        def _delete(service, calendar_id):
            try:
                service.events().delete(calendarId=calendar_id, eventId=event_id).execute()
            except HttpError as error:
                # Already deleted on the calendar side
                if error.resp.status in (404, 410):
                    logger.warning(f"⚠️ Calendar event {event_id} already gone ({error.resp.status})")
                    return
                raise

        await self._call(tenant_id, "delete", _delete)
        logger.info(f"🗑️ Deleted calendar event {event_id}")
