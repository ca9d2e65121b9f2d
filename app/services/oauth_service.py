import asyncio
import hashlib
import hmac
import time
from typing import Optional
from urllib.parse import urlencode

import requests

from app.core.errors import AuthError, UpstreamError
from app.core.logger import logger
from app.services.calendar_service import CREDENTIALS_COLLECTION, SCOPES, TOKEN_URI

AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
STATE_TTL_SECONDS = 600


class GoogleOAuthService:
    """
    Connects a tenant's Google Calendar: consent redirect, code exchange,
    and storage of the long-lived refresh token.
    """

    def __init__(self, store, client_id: str, client_secret: str, redirect_uri: str, secret_key: str):
        self.store = store
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.secret_key = secret_key

    def _sign(self, payload: str) -> str:
        return hmac.new(self.secret_key.encode(), payload.encode(), hashlib.sha256).hexdigest()

    def make_state(self, tenant_id: str) -> str:
        payload = f"{tenant_id}.{int(time.time())}"
        return f"{payload}.{self._sign(payload)}"

    def read_state(self, state: str) -> str:
        """Tenant id carried by a signed, unexpired state. Raises AuthError otherwise."""
        payload, _, signature = (state or "").rpartition(".")
        if not payload or not hmac.compare_digest(signature, self._sign(payload)):
            raise AuthError("Invalid OAuth state", reason="invalid_state")

        tenant_id, _, issued = payload.rpartition(".")
        try:
            age = time.time() - int(issued)
        except ValueError as e:
            raise AuthError("Invalid OAuth state", reason="invalid_state") from e
        if not tenant_id or age < 0 or age > STATE_TTL_SECONDS:
            logger.warning(f"⚠️ Expired OAuth state for tenant {tenant_id}")
            raise AuthError("OAuth state expired, start the connection again", reason="expired_state")
        return tenant_id

    def authorization_url(self, tenant_id: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            # Forces a refresh token even when the user consented before
            "prompt": "consent",
            "state": self.make_state(tenant_id),
        }
        return f"{AUTH_URI}?{urlencode(params)}"

    def _exchange(self, code: str) -> dict:
        response = requests.post(TOKEN_URI, data={
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }, timeout=10)
        response.raise_for_status()
        return response.json()

    async def complete(self, code: str, state: str, calendar_id: Optional[str] = None) -> str:
        """Exchange the code and store the refresh token. Returns the tenant id."""
        tenant_id = self.read_state(state)

        try:
            tokens = await asyncio.to_thread(self._exchange, code)
        except requests.RequestException as e:
            logger.error(f"❌ Google token exchange failed for tenant {tenant_id}: {e}")
            raise UpstreamError("Google token exchange failed", reason="oauth_error") from e

        refresh_token = tokens.get("refresh_token")
        if not refresh_token:
            logger.error(f"❌ No refresh token in Google response for tenant {tenant_id}")
            raise UpstreamError("Google did not return a refresh token", reason="oauth_error")

        patch = {"refresh_token": refresh_token}
        if calendar_id:
            patch["calendar_id"] = calendar_id

        existing = await self.store.select_one(CREDENTIALS_COLLECTION, [("tenant_id", "eq", tenant_id)])
        if existing:
            await self.store.update(CREDENTIALS_COLLECTION, existing["id"], patch)
        else:
            await self.store.insert(CREDENTIALS_COLLECTION, {"tenant_id": tenant_id, **patch})

        logger.info(f"🔑 Google Calendar connected for tenant {tenant_id}")
        return tenant_id
