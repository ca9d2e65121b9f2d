from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError as PydanticValidationError
from typing import Any, Dict, Optional

from app.core.container import Container
from app.core.logger import logger
from app.core.security import get_container, verify_webhook_token
from app.models.retell_models import CALL_ANALYZED, RetellWebhookPayload

router = APIRouter()


@router.get("/webhook")
async def webhook_ping():
    # Retell verifies the endpoint with a plain GET
    return PlainTextResponse("ok")


@router.post("/webhook", dependencies=[Depends(verify_webhook_token)])
async def retell_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    tenant_id: Optional[str] = Query(None),
    container: Container = Depends(get_container),
) -> Dict[str, Any]:
    """
    Acknowledge Retell immediately; the call fetch, logging and email run
    after the response has been sent.
    """
    try:
        payload = RetellWebhookPayload.model_validate(await request.json())
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"⚠️ Unparsable webhook body: {e}")
        return JSONResponse(status_code=400, content={"ok": False, "error": "Invalid JSON body"})

    if payload.event != CALL_ANALYZED:
        return {"ok": True, "skipped": True, "reason": f"Ignoring event {payload.event}"}

    logger.info(f"📞 RETELL EVENT: {payload.event} for tenant {tenant_id}")

    if not tenant_id:
        return JSONResponse(status_code=400, content={"ok": False, "error": "Missing tenant_id"})

    call_id = payload.resolve_call_id()
    if not call_id:
        return JSONResponse(status_code=400, content={"ok": False, "error": "Missing call_id"})

    background_tasks.add_task(container.ingestion.handle_call_analyzed, tenant_id, call_id)
    return {"ok": True, "accepted": True}
