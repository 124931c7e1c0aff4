"""Best-effort notarization of swap events."""
import logging
from typing import Any, Optional

from app.domain.common.types import utcnow
from app.infra.retry import RetryPolicy
from app.infra.vendors.ledger_client import LedgerClient

logger = logging.getLogger(__name__)


class LedgerRecorder:
    """Blockchain sink: records events through the relay, never raises."""

    def __init__(self, client: Optional[LedgerClient], policy: RetryPolicy, enabled: bool = True):
        self.client = client
        self.policy = policy
        self.enabled = enabled and client is not None

    async def record(self, event_type: str, data: dict[str, Any]) -> Optional[str]:
        """Returns the ledger transaction id, or None when disabled or failed."""
        if not self.enabled:
            logger.debug("Ledger disabled; not recording %s", event_type)
            return None
        payload = {"type": event_type, "recorded_at": utcnow().isoformat(), "data": data}
        try:
            transaction_id = await self.policy.run(
                lambda: self.client.record_transaction(payload),
                description=f"ledger {event_type}",
            )
        except Exception as e:
            logger.warning("Ledger record %s dropped: %s", event_type, e)
            return None
        logger.info("Ledger recorded %s: %s", event_type, transaction_id)
        return transaction_id
