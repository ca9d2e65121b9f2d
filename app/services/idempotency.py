from typing import Any, Dict, Optional

from app.core.logger import logger
from app.services.db_service import DuplicateRowError

LEDGER_COLLECTION = "idempotency_records"


class IdempotencyLedger:
    """
    Remembers the response of a mutating tool call under
    (tenant, operation, caller key) so a retried call replays it.
    Records are written once and never updated.
    """

    def __init__(self, store):
        self.store = store

    async def get_recorded(self, tenant_id: str, operation: str, key: Optional[str]) -> Optional[Dict[str, Any]]:
        if not key:
            return None
        row = await self.store.select_one(LEDGER_COLLECTION, [
            ("tenant_id", "eq", tenant_id),
            ("operation_name", "eq", operation),
            ("idempotency_key", "eq", key),
        ])
        if row:
            logger.info(f"🔁 Replaying recorded {operation} response for key {key}")
            return row["response"]
        return None

    async def record(self, tenant_id: str, operation: str, key: Optional[str], response: Dict[str, Any]) -> None:
        if not key:
            return
        try:
            await self.store.insert(LEDGER_COLLECTION, {
                "tenant_id": tenant_id,
                "operation_name": operation,
                "idempotency_key": key,
                "response": response,
            })
        except DuplicateRowError:
            # A concurrent call with the same key recorded first; our side effects already happened
            logger.warning(f"⚠️ Idempotency key {key} for {operation} was recorded concurrently")
