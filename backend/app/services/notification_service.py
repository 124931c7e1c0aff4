"""
Notification delivery for swap events: in-app inbox row plus realtime publish.

Notifications are fire-and-forget. ``SwapNotifier`` runs every delivery through
the sink ``RetryPolicy`` and logs (never raises) when delivery finally fails,
so a notification problem can never undo a committed swap operation.
"""
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.proposals.models import Proposal
from app.infra.db.repositories.notification_repo import NotificationRepository
from app.infra.messaging.redis_bus import RedisBus, user_channel
from app.infra.retry import RetryPolicy

logger = logging.getLogger(__name__)


class NotificationType:
    PROPOSAL_RECEIVED = "proposal_received"
    PROPOSAL_CANCELLED = "proposal_cancelled"
    PROPOSAL_ACCEPTED = "proposal_accepted"
    PROPOSAL_REJECTED = "proposal_rejected"
    AUCTION_ENDED = "auction_ended"
    AUCTION_CONVERTED = "auction_converted"
    SWAP_EXPIRED = "swap_expired"


async def deliver_notification(
    session: AsyncSession,
    bus: Optional[RedisBus],
    user_id: str,
    type: str,
    title: str,
    message: str,
    *,
    data: Optional[dict[str, Any]] = None,
):
    """
    Create the inbox entry (committed on its own) and publish it on the user's channel.

    Args:
        session: DB session; must not have an open business transaction.
        bus: Realtime publisher; None skips the publish.
        user_id: Recipient user id.
        type: Notification type (see NotificationType).
        title: Title for the inbox.
        message: Body for the inbox.
        data: Ids for deep links (swap_id, proposal_id, ...), stored and published.

    Returns:
        The created NotificationModel.
    """
    repo = NotificationRepository(session)
    try:
        notif = await repo.create(user_id=user_id, type=type, title=title, message=message, data=data)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    if bus is not None:
        payload = {
            "id": notif.id,
            "type": notif.type,
            "title": notif.title,
            "message": notif.message,
            "read": notif.read,
            "timestamp": int(notif.created_at.timestamp() * 1000),
            **(data or {}),
        }
        try:
            await bus.publish(user_channel(user_id), {"type": "notification.new", "payload": payload})
        except Exception as e:
            # Inbox row is committed; the client picks it up on next poll
            logger.warning("Realtime publish failed for user %s: %s", user_id, e)
    return notif


class SwapNotifier:
    """Notification sink for targeting, proposal and auction events."""

    def __init__(self, session: Optional[AsyncSession], bus: Optional[RedisBus], policy: RetryPolicy):
        self.session = session
        self.bus = bus
        self.policy = policy

    async def notify(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Deliver with retries. Returns False (after logging) when every attempt failed."""
        async def _send():
            await deliver_notification(self.session, self.bus, user_id, type, title, message, data=data)

        try:
            await self.policy.run(_send, description=f"notification {type} for user {user_id}")
            return True
        except Exception as e:
            logger.warning("Dropping %s notification for user %s: %s", type, user_id, e)
            return False

    async def proposal_received(self, owner_id: str, proposal: Proposal) -> bool:
        kind = "cash offer" if proposal.cash_amount is not None else "swap proposal"
        return await self.notify(
            owner_id,
            NotificationType.PROPOSAL_RECEIVED,
            "New proposal",
            f"You received a new {kind} for your swap",
            {"swap_id": proposal.target_swap_id, "proposal_id": proposal.id},
        )

    async def proposal_cancelled(self, owner_id: str, proposal: Proposal, reason: str) -> bool:
        return await self.notify(
            owner_id,
            NotificationType.PROPOSAL_CANCELLED,
            "Proposal withdrawn",
            f"A proposal for your swap was withdrawn ({reason})",
            {"swap_id": proposal.target_swap_id, "proposal_id": proposal.id, "reason": reason},
        )

    async def proposal_accepted(self, proposer_id: str, proposal: Proposal) -> bool:
        return await self.notify(
            proposer_id,
            NotificationType.PROPOSAL_ACCEPTED,
            "Proposal accepted",
            "Your proposal was accepted",
            {"swap_id": proposal.target_swap_id, "proposal_id": proposal.id},
        )

    async def proposal_rejected(self, proposer_id: str, proposal: Proposal, reason: Optional[str]) -> bool:
        message = "Your proposal was declined"
        if reason:
            message = f"{message}: {reason}"
        return await self.notify(
            proposer_id,
            NotificationType.PROPOSAL_REJECTED,
            "Proposal declined",
            message,
            {"swap_id": proposal.target_swap_id, "proposal_id": proposal.id, "reason": reason},
        )

    async def auction_ended(self, owner_id: str, swap_id: str, proposal_count: int) -> bool:
        return await self.notify(
            owner_id,
            NotificationType.AUCTION_ENDED,
            "Auction ended",
            f"Your auction ended with {proposal_count} proposal(s); pick a winner",
            {"swap_id": swap_id, "proposal_count": proposal_count},
        )

    async def auction_converted(self, owner_id: str, swap_id: str) -> bool:
        return await self.notify(
            owner_id,
            NotificationType.AUCTION_CONVERTED,
            "Auction closed without proposals",
            "Your swap now accepts the first matching proposal",
            {"swap_id": swap_id},
        )

    async def swap_expired(self, owner_id: str, swap_id: str) -> bool:
        return await self.notify(
            owner_id,
            NotificationType.SWAP_EXPIRED,
            "Swap expired",
            "Your swap expired because the booking date has passed",
            {"swap_id": swap_id},
        )
