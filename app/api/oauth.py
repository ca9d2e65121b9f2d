from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from typing import Optional

from app.core.container import Container
from app.core.security import TenantContext, get_container, require_tool_token

router = APIRouter(prefix="/oauth/google")


@router.get("/start")
async def google_oauth_start(
    tenant: TenantContext = Depends(require_tool_token),
    container: Container = Depends(get_container),
):
    return RedirectResponse(container.oauth.authorization_url(tenant.tenant_id))


@router.get("/callback")
async def google_oauth_callback(
    code: str = Query(...),
    state: str = Query(...),
    calendar_id: Optional[str] = Query(None),
    container: Container = Depends(get_container),
):
    tenant_id = await container.oauth.complete(code, state, calendar_id)
    return {"ok": True, "tenant_id": tenant_id, "connected": True}
