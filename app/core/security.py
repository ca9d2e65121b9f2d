import hmac
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Query, Request

from app.core.config import settings
from app.core.container import Container
from app.core.errors import AuthError
from app.core.logger import logger

TOOL_TOKENS_COLLECTION = "tool_tokens"


@dataclass(frozen=True)
class TenantContext:
    """Who a tool call acts for; produced once by token authentication."""
    tenant_id: str


def get_container(request: Request) -> Container:
    return request.app.state.container


async def require_tool_token(
    token: Optional[str] = Query(None),
    container: Container = Depends(get_container),
) -> TenantContext:
    """
    Resolve the per-tenant access token passed as `?token=`.
    Missing, unknown and deactivated tokens are all rejected the same way.
    """
    if not token:
        raise AuthError("Missing access token", reason="missing_token")

    row = await container.store.select_one(TOOL_TOKENS_COLLECTION, [("token", "eq", token)])
    if not row or not row.get("is_active", False):
        logger.warning("⛔ Rejected tool call with invalid or inactive token")
        raise AuthError("Invalid or inactive access token", reason="invalid_token")

    return TenantContext(tenant_id=str(row["tenant_id"]))


def verify_webhook_token(token: Optional[str] = Query(None)) -> None:
    expected = settings.WEBHOOK_TOKEN
    if not expected or not token or not hmac.compare_digest(token, expected):
        raise AuthError("Unauthorized", reason="invalid_token")
