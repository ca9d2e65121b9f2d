from datetime import datetime, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.logger import logger
from app.models.db_models import BusinessRules

# Rejection reasons, in the order they are checked
INVALID_TIMESTAMPS = "invalid_timestamps"
END_BEFORE_START = "end_before_start"
WEEKEND_CLOSED = "weekend_closed"
OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
OVERLAPS_LUNCH = "overlaps_lunch"

RULES_COLLECTION = "business_rules"


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise ValidationError(f"Unknown timezone: {name}", reason="invalid_timezone") from e


def default_rules(timezone: str) -> BusinessRules:
    """Mon-Fri 09:00-17:00, lunch 12:00-13:00, 15 minute steps."""
    return BusinessRules(timezone=timezone)


def parse_timestamp(value: Union[str, datetime, None], timezone: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp. Naive values are read as wall-clock time in
    `timezone`. Returns None when the value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=get_zone(timezone))
    return dt


def _hour_of_day(dt: datetime) -> float:
    return dt.hour + dt.minute / 60 + dt.second / 3600


def validate(start: Optional[datetime], end: Optional[datetime], rules: BusinessRules) -> Optional[str]:
    """
    Check a candidate interval against the rules.
    Returns None when the interval is bookable, otherwise the first failing reason.
    """
    if not isinstance(start, datetime) or not isinstance(end, datetime):
        return INVALID_TIMESTAMPS
    if start.tzinfo is None or end.tzinfo is None:
        return INVALID_TIMESTAMPS

    if end <= start:
        return END_BEFORE_START

    tz = get_zone(rules.timezone)
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)

    if not rules.allow_weekends and local_start.weekday() >= 5:
        return WEEKEND_CLOSED

    if local_end.date() != local_start.date():
        return OUTSIDE_BUSINESS_HOURS
    if _hour_of_day(local_start) < rules.start_hour or _hour_of_day(local_end) > rules.end_hour:
        return OUTSIDE_BUSINESS_HOURS

    if rules.has_lunch:
        day = datetime.combine(local_start.date(), datetime.min.time(), tzinfo=tz)
        lunch_start = day + timedelta(hours=rules.lunch_start_hour)
        lunch_end = day + timedelta(hours=rules.lunch_end_hour)
        if lunch_start < local_end and lunch_end > local_start:
            return OVERLAPS_LUNCH

    return None


async def load_rules(store, tenant_id: str, timezone: Optional[str] = None) -> BusinessRules:
    """
    Tenant's rules from the store, or the defaults when none are configured.
    `timezone` only applies when the tenant has no stored zone; a caller
    cannot move a configured tenant's business hours.
    """
    row = await store.select_one(RULES_COLLECTION, [("tenant_id", "eq", tenant_id)])
    if not row:
        zone = timezone or settings.DEFAULT_TIMEZONE
        get_zone(zone)
        return default_rules(zone)

    fields = {k: v for k, v in row.items() if k in BusinessRules.model_fields and v is not None}
    fields.setdefault("timezone", timezone or settings.DEFAULT_TIMEZONE)
    # A null lunch column means no lunch break
    if "lunch_start_hour" in row and row["lunch_start_hour"] is None:
        fields["lunch_start_hour"] = None
        fields["lunch_end_hour"] = None

    rules = BusinessRules(**fields)
    get_zone(rules.timezone)
    logger.debug(f"📋 Loaded business rules for tenant {tenant_id}: {rules}")
    return rules
