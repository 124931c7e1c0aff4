"""Background job tasks: the periodic auction/expiry sweep."""
import asyncio
import logging
from typing import Optional

from app.domain.auctions.models import SweepReport
from app.infra.db.session import get_db
from app.infra.messaging.redis_bus import redis_bus
from app.infra.retry import RetryPolicy
from app.infra.vendors.ledger_client import LedgerClient
from app.infra.vendors.payment_client import PaymentGatewayClient
from app.services.container import build_swap_services
from app.services.ledger_service import LedgerRecorder
from app.services.notification_service import SwapNotifier
from app.settings import settings

logger = logging.getLogger(__name__)


async def run_sweep_once() -> Optional[SweepReport]:
    """One sweep pass on a fresh session."""
    policy = RetryPolicy.from_settings(settings)
    report = None
    async for db in get_db():
        services = build_swap_services(
            db,
            payment=PaymentGatewayClient(),
            notifier=SwapNotifier(db, redis_bus, policy),
            ledger=LedgerRecorder(
                LedgerClient() if settings.ledger_enabled else None, policy, enabled=settings.ledger_enabled
            ),
            settings=settings,
        )
        report = await services.auctions.run_sweep()
    return report


async def sweep_loop(interval_seconds: Optional[float] = None):
    """Run the sweep forever; one failing pass never stops the loop."""
    interval = interval_seconds or settings.auction_sweep_interval_seconds
    logger.info("Auction sweep started (every %ss)", interval)
    while True:
        try:
            await run_sweep_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Auction sweep pass failed: %s", e, exc_info=True)
        await asyncio.sleep(interval)
