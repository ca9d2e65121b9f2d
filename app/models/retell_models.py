from pydantic import BaseModel, ConfigDict
from typing import Optional, Dict, Any

CALL_ANALYZED = "call_analyzed"


class RetellWebhookPayload(BaseModel):
    """
    Body of a Retell webhook. Retell sends either a top-level `call_id`
    or a nested `call` object depending on the event version.
    """
    model_config = ConfigDict(extra="allow")

    event: Optional[str] = None
    call_id: Optional[str] = None
    call: Optional[Dict[str, Any]] = None

    def resolve_call_id(self) -> Optional[str]:
        if self.call_id:
            return self.call_id
        if self.call:
            return self.call.get("call_id") or self.call.get("id")
        return None


class CallRecord(BaseModel):
    call_id: str
    transcript: str = ""
    summary: str = ""
    from_number: str = ""
    recording_url: Optional[str] = None
