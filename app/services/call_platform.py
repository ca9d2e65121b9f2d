import asyncio
import requests

from app.core.errors import UpstreamError
from app.core.logger import logger
from app.models.retell_models import CallRecord


class RetellClient:
    """Fetches finished call records from Retell."""

    def __init__(self, api_key: str, base_url: str = "https://api.retellai.com", timeout: float = 10.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, call_id: str) -> dict:
        response = requests.get(
            f"{self.base_url}/v2/get-call/{call_id}",
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def fetch_call(self, call_id: str) -> CallRecord:
        if not self.api_key:
            raise UpstreamError("RETELL_API_KEY missing", reason="call_platform_unavailable")

        try:
            logger.info(f"📞 Fetching call {call_id} from Retell")
            data = await asyncio.to_thread(self._get, call_id)
        except requests.RequestException as e:
            logger.error(f"❌ Retell fetch failed for {call_id}: {e}")
            raise UpstreamError(f"Call fetch failed: {e}", reason="call_platform_error") from e

        analysis = data.get("call_analysis") or {}
        return CallRecord(
            call_id=data.get("call_id") or call_id,
            transcript=data.get("transcript") or "",
            summary=analysis.get("call_summary") or data.get("summary") or "",
            from_number=data.get("from_number") or "",
            recording_url=data.get("recording_url"),
        )
