"""Payment / escrow gateway client.

The gateway is a critical collaborator: every failure is raised as
IntegrationError so the surrounding transaction rolls back. No retries.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from app.domain.common.errors import IntegrationError
from app.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class CashOfferValidation:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


class PaymentGateway:
    """Payment gateway interface."""

    async def validate_cash_offer(
        self, user_id: str, amount: float, currency: str, payment_method_id: str
    ) -> CashOfferValidation:
        raise NotImplementedError

    async def create_escrow(
        self,
        payer_id: str,
        payee_id: str,
        amount: float,
        currency: str,
        payment_method_id: str,
        reference: str,
    ) -> str:
        """Hold funds; returns the escrow id."""
        raise NotImplementedError

    async def release_escrow(self, escrow_id: str) -> None:
        raise NotImplementedError

    async def refund_escrow(self, escrow_id: str, reason: str) -> None:
        raise NotImplementedError


class PaymentGatewayClient(PaymentGateway):
    """HTTP client for the payment service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.payment_api_url).rstrip("/")
        self.api_token = api_token if api_token is not None else settings.payment_api_token
        self.timeout = timeout or settings.payment_api_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}"} if self.api_token else {}

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=self._headers())
                response.raise_for_status()
                return response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            logger.error("Payment gateway %s returned %s", path, e.response.status_code)
            raise IntegrationError("payment", f"{path} returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Payment gateway %s unreachable at %s: %s", path, url, e)
            raise IntegrationError("payment", f"{path} failed: {e}") from e

    async def validate_cash_offer(
        self, user_id: str, amount: float, currency: str, payment_method_id: str
    ) -> CashOfferValidation:
        data = await self._post(
            "/payments/validate-offer",
            {
                "user_id": user_id,
                "amount": amount,
                "currency": currency,
                "payment_method_id": payment_method_id,
            },
        )
        return CashOfferValidation(
            is_valid=bool(data.get("is_valid", False)),
            errors=list(data.get("errors") or []),
        )

    async def create_escrow(
        self,
        payer_id: str,
        payee_id: str,
        amount: float,
        currency: str,
        payment_method_id: str,
        reference: str,
    ) -> str:
        data = await self._post(
            "/escrows",
            {
                "payer_id": payer_id,
                "payee_id": payee_id,
                "amount": amount,
                "currency": currency,
                "payment_method_id": payment_method_id,
                "reference": reference,
            },
        )
        escrow_id = data.get("escrow_id")
        if not escrow_id:
            raise IntegrationError("payment", "escrow response carried no escrow_id")
        logger.info("Escrow %s created for %s (%s %s)", escrow_id, reference, amount, currency)
        return escrow_id

    async def release_escrow(self, escrow_id: str) -> None:
        await self._post(f"/escrows/{escrow_id}/release", {})

    async def refund_escrow(self, escrow_id: str, reason: str) -> None:
        await self._post(f"/escrows/{escrow_id}/refund", {"reason": reason})
        logger.info("Escrow %s refunded: %s", escrow_id, reason)
