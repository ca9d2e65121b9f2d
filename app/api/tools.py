from fastapi import APIRouter, Depends

from app.core.container import Container
from app.core.logger import logger
from app.core.security import TenantContext, get_container, require_tool_token
from app.models.db_models import CustomerInfo
from app.models.tool_models import (
    BookAppointmentRequest,
    BookAppointmentResponse,
    CancelAppointmentRequest,
    CancelAppointmentResponse,
    CheckAvailabilityRequest,
    CheckAvailabilityResponse,
    FindAppointmentRequest,
    RescheduleAppointmentRequest,
    RescheduleAppointmentResponse,
    SlotOut,
)
from app.tools.definitions import ALL_TOOLS

router = APIRouter(prefix="/tools")


@router.get("/definitions")
async def tool_definitions():
    return {"tools": ALL_TOOLS}


@router.post("/check-availability", response_model=CheckAvailabilityResponse)
async def check_availability(
    req: CheckAvailabilityRequest,
    tenant: TenantContext = Depends(require_tool_token),
    container: Container = Depends(get_container),
):
    logger.info(f"🔔 check-availability for tenant {tenant.tenant_id}: {req.date} ({req.duration_minutes} min)")
    slots = await container.slots.generate_slots(tenant.tenant_id, req.date, req.duration_minutes, req.timezone)
    return CheckAvailabilityResponse(slots=[
        SlotOut(start_time=s.start_time.isoformat(), end_time=s.end_time.isoformat()) for s in slots
    ])


@router.post("/book-appointment", response_model=BookAppointmentResponse)
async def book_appointment(
    req: BookAppointmentRequest,
    tenant: TenantContext = Depends(require_tool_token),
    container: Container = Depends(get_container),
):
    logger.info(f"🔔 book-appointment for tenant {tenant.tenant_id}")
    return await container.appointments.book(
        tenant.tenant_id,
        req.start_time,
        req.end_time,
        timezone=req.timezone,
        customer=CustomerInfo(name=req.customer_name, email=req.customer_email, phone=req.customer_phone),
        title=req.title,
        notes=req.notes,
        idempotency_key=req.idempotency_key,
    )


@router.post("/cancel-appointment", response_model=CancelAppointmentResponse)
async def cancel_appointment(
    req: CancelAppointmentRequest,
    tenant: TenantContext = Depends(require_tool_token),
    container: Container = Depends(get_container),
):
    logger.info(f"🔔 cancel-appointment {req.appointment_id} for tenant {tenant.tenant_id}")
    return await container.appointments.cancel(tenant.tenant_id, req.appointment_id, req.idempotency_key)


@router.post("/reschedule-appointment", response_model=RescheduleAppointmentResponse)
async def reschedule_appointment(
    req: RescheduleAppointmentRequest,
    tenant: TenantContext = Depends(require_tool_token),
    container: Container = Depends(get_container),
):
    logger.info(f"🔔 reschedule-appointment {req.appointment_id} for tenant {tenant.tenant_id}")
    return await container.appointments.reschedule(
        tenant.tenant_id,
        req.appointment_id,
        req.new_start_time,
        req.new_end_time,
        timezone=req.timezone,
        idempotency_key=req.idempotency_key,
    )


@router.post("/find-appointment")
async def find_appointment(
    req: FindAppointmentRequest,
    tenant: TenantContext = Depends(require_tool_token),
    container: Container = Depends(get_container),
):
    matches = await container.appointments.find(
        tenant.tenant_id,
        customer_phone=req.customer_phone,
        customer_email=req.customer_email,
        from_date=req.from_date,
        to_date=req.to_date,
        limit=req.limit,
    )
    return {"matches": [m.model_dump(mode="json") for m in matches]}
