from dataclasses import dataclass

from app.core.config import Settings
from app.services.appointment_service import AppointmentService
from app.services.calendar_service import CalendarService
from app.services.call_ingestion import CallIngestion
from app.services.call_platform import RetellClient
from app.services.conflict_checker import ConflictChecker
from app.services.db_service import DBService
from app.services.idempotency import IdempotencyLedger
from app.services.notification_service import EmailNotifier
from app.services.oauth_service import GoogleOAuthService
from app.services.slot_generator import SlotGenerator


@dataclass
class Container:
    """Capability handles built once per process and passed to the routers."""

    store: object
    calendar: object
    notifier: object
    call_client: object
    conflicts: ConflictChecker
    slots: SlotGenerator
    appointments: AppointmentService
    ledger: IdempotencyLedger
    ingestion: CallIngestion
    oauth: GoogleOAuthService


def wire(store, calendar, notifier, call_client, settings: Settings) -> Container:
    conflicts = ConflictChecker(store, calendar)
    ledger = IdempotencyLedger(store)
    return Container(
        store=store,
        calendar=calendar,
        notifier=notifier,
        call_client=call_client,
        conflicts=conflicts,
        slots=SlotGenerator(store, calendar, conflicts),
        appointments=AppointmentService(store, calendar, conflicts, ledger),
        ledger=ledger,
        ingestion=CallIngestion(store, notifier, call_client),
        oauth=GoogleOAuthService(
            store,
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
            secret_key=settings.SECRET_KEY,
        ),
    )


def build_container(settings: Settings) -> Container:
    store = DBService(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    calendar = CalendarService(
        store,
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        service_account_json=settings.GOOGLE_CREDENTIALS_JSON,
    )
    notifier = EmailNotifier(settings.RESEND_API_KEY, settings.FROM_EMAIL)
    call_client = RetellClient(
        settings.RETELL_API_KEY,
        base_url=settings.RETELL_BASE_URL,
        timeout=settings.CALL_FETCH_TIMEOUT_SECONDS,
    )
    return wire(store, calendar, notifier, call_client, settings)
