from datetime import datetime, timedelta
from typing import List, Optional, Union

from app.core.errors import NotFoundError, UpstreamError, ValidationError
from app.core.logger import logger
from app.models.db_models import Appointment, AppointmentStatus, BusinessRules, CustomerInfo
from app.models.tool_models import (
    BookAppointmentResponse,
    CancelAppointmentResponse,
    RescheduleAppointmentResponse,
)
from app.services import business_rules
from app.services.conflict_checker import APPOINTMENTS_COLLECTION
from app.services.slot_generator import parse_date

MAX_FIND_LIMIT = 50

Timestamp = Union[str, datetime]


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    return phone.replace(" ", "").strip() or None


class AppointmentService:
    """
    Book / cancel / reschedule / find.

    Mutations are best-effort writes across two systems: the calendar event is
    always created before the store row that references it, and nothing is
    rolled back when the second write fails. Retries are safe only through
    the idempotency key.
    """

    def __init__(self, store, calendar, conflict_checker, ledger):
        self.store = store
        self.calendar = calendar
        self.conflicts = conflict_checker
        self.ledger = ledger

    async def _load(self, tenant_id: str, appointment_id: int) -> Appointment:
        row = await self.store.select_one(APPOINTMENTS_COLLECTION, [
            ("id", "eq", appointment_id),
            ("tenant_id", "eq", tenant_id),
        ])
        if not row:
            raise NotFoundError(f"Appointment {appointment_id} not found", reason="appointment_not_found")
        return Appointment.model_validate(row)

    def _parse_interval(self, start: Timestamp, end: Timestamp, rules: BusinessRules, input_zone: Optional[str] = None):
        # Naive input is wall time in the caller's zone
        zone = input_zone or rules.timezone
        start_dt = business_rules.parse_timestamp(start, zone)
        end_dt = business_rules.parse_timestamp(end, zone)
        reason = business_rules.validate(start_dt, end_dt, rules)
        if reason:
            raise ValidationError(f"Requested time is not bookable: {reason}", reason=reason)
        return start_dt, end_dt

    def _event_description(self, appointment: Appointment) -> str:
        lines = ["Booked by the AI receptionist"]
        if appointment.customer_name:
            lines.append(f"Name: {appointment.customer_name}")
        if appointment.customer_phone:
            lines.append(f"Phone: {appointment.customer_phone}")
        if appointment.customer_email:
            lines.append(f"Email: {appointment.customer_email}")
        if appointment.notes:
            lines.append(f"Notes: {appointment.notes}")
        return "\n".join(lines)

    def _event_summary(self, appointment: Appointment) -> str:
        if appointment.customer_name:
            return f"{appointment.title} - {appointment.customer_name}"
        return appointment.title

    async def _create_booked(self, appointment: Appointment) -> Appointment:
        """Calendar event first, then the store row referencing it."""
        event_id = await self.calendar.insert_event(
            appointment.tenant_id,
            summary=self._event_summary(appointment),
            description=self._event_description(appointment),
            start=appointment.start_time,
            end=appointment.end_time,
            timezone=appointment.timezone,
        )
        appointment = appointment.model_copy(update={"external_event_id": event_id})

        try:
            row = await self.store.insert(APPOINTMENTS_COLLECTION, appointment.to_row())
        except UpstreamError:
            # No compensating delete: needs manual reconciliation
            logger.error(
                f"❌ ORPHANED calendar event {event_id} for tenant {appointment.tenant_id} "
                f"({appointment.start_time.isoformat()}): store insert failed"
            )
            raise
        return Appointment.model_validate(row)

    async def book(
        self,
        tenant_id: str,
        start_time: Timestamp,
        end_time: Timestamp,
        timezone: Optional[str] = None,
        customer: Optional[CustomerInfo] = None,
        title: Optional[str] = None,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> BookAppointmentResponse:
        recorded = await self.ledger.get_recorded(tenant_id, "book", idempotency_key)
        if recorded is not None:
            return BookAppointmentResponse.model_validate(recorded)
        if not idempotency_key:
            logger.warning(f"⚠️ book called without idempotency key for tenant {tenant_id}")

        logger.info(f"📥 Booking request for tenant {tenant_id}: {start_time} - {end_time}")
        rules = await business_rules.load_rules(self.store, tenant_id, timezone)
        start_dt, end_dt = self._parse_interval(start_time, end_time, rules, timezone)

        await self.conflicts.check(tenant_id, start_dt, end_dt)

        customer = customer or CustomerInfo()
        tz = business_rules.get_zone(rules.timezone)
        appointment = await self._create_booked(Appointment(
            tenant_id=tenant_id,
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=normalize_phone(customer.phone),
            start_time=start_dt.astimezone(tz),
            end_time=end_dt.astimezone(tz),
            timezone=rules.timezone,
            title=title or "Appointment",
            notes=notes,
        ))
        logger.info(f"✅ Appointment {appointment.id} booked (event {appointment.external_event_id})")
        out_tz = business_rules.get_zone(timezone) if timezone else tz

        response = BookAppointmentResponse(
            appointment_id=appointment.id,
            external_event_id=appointment.external_event_id,
            start_time=start_dt.astimezone(out_tz).isoformat(),
            end_time=end_dt.astimezone(out_tz).isoformat(),
        )
        await self.ledger.record(tenant_id, "book", idempotency_key, response.model_dump())
        return response

    async def cancel(self, tenant_id: str, appointment_id: int, idempotency_key: Optional[str] = None) -> CancelAppointmentResponse:
        recorded = await self.ledger.get_recorded(tenant_id, "cancel", idempotency_key)
        if recorded is not None:
            return CancelAppointmentResponse.model_validate(recorded)
        if not idempotency_key:
            logger.warning(f"⚠️ cancel called without idempotency key for tenant {tenant_id}")

        appointment = await self._load(tenant_id, appointment_id)
        if not appointment.is_active:
            raise ValidationError(
                f"Appointment {appointment_id} is already {appointment.status.value}",
                reason="appointment_not_active",
            )

        # A failed delete leaves the row booked
        if appointment.external_event_id:
            await self.calendar.delete_event(tenant_id, appointment.external_event_id)

        await self.store.update(APPOINTMENTS_COLLECTION, appointment.id, {"status": AppointmentStatus.CANCELLED.value})
        logger.info(f"🗑️ Appointment {appointment.id} cancelled")

        response = CancelAppointmentResponse(cancelled_appointment_id=appointment.id)
        await self.ledger.record(tenant_id, "cancel", idempotency_key, response.model_dump())
        return response

    async def reschedule(
        self,
        tenant_id: str,
        appointment_id: int,
        new_start_time: Timestamp,
        new_end_time: Timestamp,
        timezone: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> RescheduleAppointmentResponse:
        recorded = await self.ledger.get_recorded(tenant_id, "reschedule", idempotency_key)
        if recorded is not None:
            return RescheduleAppointmentResponse.model_validate(recorded)
        if not idempotency_key:
            logger.warning(f"⚠️ reschedule called without idempotency key for tenant {tenant_id}")

        old = await self._load(tenant_id, appointment_id)
        if not old.is_active:
            raise ValidationError(
                f"Appointment {appointment_id} is already {old.status.value}",
                reason="appointment_not_active",
            )

        rules = await business_rules.load_rules(self.store, tenant_id, old.timezone)
        start_dt, end_dt = self._parse_interval(new_start_time, new_end_time, rules, timezone)

        await self.conflicts.check(
            tenant_id, start_dt, end_dt,
            excluding=old.id,
            ignore=(old.start_time, old.end_time) if old.external_event_id else None,
        )

        # Only now is the old booking given up
        if old.external_event_id:
            await self.calendar.delete_event(tenant_id, old.external_event_id)

        tz = business_rules.get_zone(rules.timezone)
        replacement = Appointment(
            tenant_id=tenant_id,
            customer_name=old.customer_name,
            customer_email=old.customer_email,
            customer_phone=old.customer_phone,
            start_time=start_dt.astimezone(tz),
            end_time=end_dt.astimezone(tz),
            timezone=rules.timezone,
            title=old.title,
            notes=old.notes,
            previous_appointment_id=old.id,
        )
        try:
            new = await self._create_booked(replacement)
        except UpstreamError:
            logger.error(
                f"❌ Reschedule of appointment {old.id} lost its calendar event "
                f"{old.external_event_id} and the replacement could not be created"
            )
            raise

        await self.store.update(APPOINTMENTS_COLLECTION, old.id, {"status": AppointmentStatus.RESCHEDULED.value})
        logger.info(f"🔄 Appointment {old.id} rescheduled to {new.id}")

        response = RescheduleAppointmentResponse(
            old_appointment_id=old.id,
            new_appointment_id=new.id,
            new_external_event_id=new.external_event_id,
        )
        await self.ledger.record(tenant_id, "reschedule", idempotency_key, response.model_dump())
        return response

    async def find(
        self,
        tenant_id: str,
        customer_phone: Optional[str] = None,
        customer_email: Optional[str] = None,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        limit: int = 10,
    ) -> List[Appointment]:
        phone = normalize_phone(customer_phone)
        email = customer_email.strip() if customer_email else None
        if not phone and not email:
            raise ValidationError("customer_phone or customer_email is required", reason="missing_customer")

        filters = [
            ("tenant_id", "eq", tenant_id),
            ("status", "eq", AppointmentStatus.BOOKED.value),
        ]
        if phone:
            filters.append(("customer_phone", "eq", phone))
        if email:
            filters.append(("customer_email", "eq", email))

        if from_date or to_date:
            rules = await business_rules.load_rules(self.store, tenant_id)
            tz = business_rules.get_zone(rules.timezone)
            if from_date:
                start = datetime.combine(parse_date(from_date), datetime.min.time(), tzinfo=tz)
                filters.append(("start_time", "gte", start))
            if to_date:
                end = datetime.combine(parse_date(to_date) + timedelta(days=1), datetime.min.time(), tzinfo=tz)
                filters.append(("start_time", "lt", end))

        rows = await self.store.select(
            APPOINTMENTS_COLLECTION,
            filters,
            order_by="start_time",
            limit=max(1, min(limit, MAX_FIND_LIMIT)),
        )
        return [Appointment.model_validate(r) for r in rows]
