"""Notarization relay client (append-only blockchain audit log)."""
import logging
from typing import Any, Optional

import httpx

from app.settings import settings

logger = logging.getLogger(__name__)


class LedgerClient:
    """Client for the notarization relay service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.ledger_api_url).rstrip("/")
        self.api_token = api_token if api_token is not None else settings.ledger_api_token
        self.timeout = timeout or settings.ledger_api_timeout_seconds
        self._transport = transport

    async def record_transaction(self, payload: dict[str, Any]) -> str:
        """
        Append one record to the ledger.

        Returns:
            str: the ledger transaction id

        Raises:
            httpx.HTTPError: relay unreachable or rejected the record
            ValueError: relay answered without a transaction id
        """
        headers = {"Authorization": f"Bearer {self.api_token}"} if self.api_token else {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(f"{self.base_url}/transactions", json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        transaction_id = data.get("transaction_id")
        if not transaction_id:
            raise ValueError("ledger response carried no transaction_id")
        logger.debug("Ledger recorded %s as %s", payload.get("type"), transaction_id)
        return transaction_id
