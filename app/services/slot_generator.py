from datetime import date as date_type, datetime, timedelta, timezone as dt_timezone
from typing import List, Optional, Union

from app.core.errors import ValidationError
from app.core.logger import logger
from app.models.db_models import Slot
from app.services import business_rules
from app.services.conflict_checker import overlaps

UTC = dt_timezone.utc


def parse_date(value: Union[str, date_type]) -> date_type:
    if isinstance(value, date_type):
        return value
    try:
        return date_type.fromisoformat(value.strip())
    except (ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid date: {value!r}, expected YYYY-MM-DD", reason="invalid_date") from e


class SlotGenerator:
    """
    Enumerates bookable slots for one local day. The result is a snapshot:
    nothing is reserved, and booking re-checks every conflict.
    """

    def __init__(self, store, calendar, conflict_checker):
        self.store = store
        self.calendar = calendar
        self.conflicts = conflict_checker

    async def generate_slots(
        self,
        tenant_id: str,
        day: Union[str, date_type],
        duration_minutes: int,
        timezone: Optional[str] = None,
    ) -> List[Slot]:
        if duration_minutes is None or duration_minutes <= 0:
            raise ValidationError("duration_minutes must be positive", reason="invalid_duration")

        day = parse_date(day)
        rules = await business_rules.load_rules(self.store, tenant_id, timezone)
        tz = business_rules.get_zone(rules.timezone)
        out_tz = business_rules.get_zone(timezone) if timezone else tz

        if not rules.allow_weekends and day.weekday() >= 5:
            logger.info(f"📅 {day} is a weekend and tenant {tenant_id} is closed")
            return []

        midnight = datetime.combine(day, datetime.min.time(), tzinfo=tz)
        day_start = (midnight + timedelta(hours=rules.start_hour)).astimezone(UTC)
        day_end = (midnight + timedelta(hours=rules.end_hour)).astimezone(UTC)

        events = await self.calendar.list_events(tenant_id, day_start, day_end)
        busy = [(e["start"].astimezone(UTC), e["end"].astimezone(UTC)) for e in events if not e.get("cancelled")]
        busy.extend(await self.conflicts.booked_intervals(tenant_id, day_start, day_end))

        duration = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=rules.step_minutes)
        slots = []

        # Step in UTC so DST transitions do not skew the grid
        candidate = day_start
        while candidate + duration <= day_end:
            local_start = candidate.astimezone(tz)
            local_end = (candidate + duration).astimezone(tz)

            if business_rules.validate(local_start, local_end, rules) is None:
                if not any(overlaps(candidate, candidate + duration, b_start, b_end) for b_start, b_end in busy):
                    slots.append(Slot(start_time=local_start.astimezone(out_tz), end_time=local_end.astimezone(out_tz)))

            candidate += step

        logger.info(f"🗓️ {len(slots)} free slot(s) for tenant {tenant_id} on {day} ({duration_minutes} min)")
        return slots
