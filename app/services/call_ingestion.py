import html

from app.core.errors import NotFoundError
from app.core.logger import logger
from app.models.retell_models import CallRecord

TENANTS_COLLECTION = "tenants"
CALLS_COLLECTION = "calls"

# Checked in order, first hit wins
ACTION_RULES = [
    ("cancel", ("cancel",)),
    ("reschedule", ("resched",)),
    ("book", ("book", "schedule")),
]

EMAIL_TEMPLATE = """
<h2>AI Call Summary</h2>
<p><b>Client:</b> {client}</p>
<p><b>Action:</b> {action}</p>
<p><b>From:</b> {from_number}</p>
{recording}
<h3>Summary</h3>
<p>{summary}</p>
<h3>Transcript</h3>
<pre style="white-space:pre-wrap;">{transcript}</pre>
"""


def classify_action(summary: str, transcript: str) -> str:
    """Keyword heuristic over the call summary and transcript."""
    text = f"{summary or ''} {transcript or ''}".lower()
    for action, keywords in ACTION_RULES:
        if any(k in text for k in keywords):
            return action
    return "unknown"


def render_summary_email(tenant_name: str, action: str, call: CallRecord) -> str:
    recording = ""
    if call.recording_url:
        url = html.escape(call.recording_url, quote=True)
        recording = f'<p><b>Recording:</b> <a href="{url}">{url}</a></p>'
    return EMAIL_TEMPLATE.format(
        client=html.escape(tenant_name or ""),
        action=html.escape(action),
        from_number=html.escape(call.from_number or ""),
        recording=recording,
        summary=html.escape(call.summary or "(none)"),
        transcript=html.escape(call.transcript or "(none)"),
    )


class CallIngestion:
    def __init__(self, store, notifier, call_client):
        self.store = store
        self.notifier = notifier
        self.call_client = call_client

    async def ingest(self, tenant_id: str, call_id: str) -> str:
        """Fetch, classify, log and email one analyzed call. Returns the action."""
        tenant = await self.store.select_one(TENANTS_COLLECTION, [("id", "eq", tenant_id)])
        if not tenant:
            raise NotFoundError(f"Unknown tenant {tenant_id}", reason="tenant_not_found")

        call = await self.call_client.fetch_call(call_id)
        action = classify_action(call.summary, call.transcript)
        logger.info(f"🏷️ Call {call_id} classified as '{action}'")

        await self.store.insert(CALLS_COLLECTION, {
            "tenant_id": tenant_id,
            "call_id": call.call_id,
            "action": action,
            "summary": call.summary,
            "transcript": call.transcript,
            "from_number": call.from_number,
            "recording_url": call.recording_url,
        })

        message_id = await self.notifier.send(
            to=tenant.get("email"),
            subject=f"AI Call: {action.upper()}",
            html_body=render_summary_email(tenant.get("name"), action, call),
        )
        logger.info(f"✅ Call {call_id} logged and summary emailed (message {message_id})")
        return action

    async def handle_call_analyzed(self, tenant_id: str, call_id: str) -> None:
        """
        Runs after the webhook has been acknowledged. Nobody is waiting on
        the result, so failures end up in the error log only.
        """
        try:
            await self.ingest(tenant_id, call_id)
        except Exception:
            logger.exception(f"❌ ASYNC WEBHOOK ERROR for tenant {tenant_id}, call {call_id}")
