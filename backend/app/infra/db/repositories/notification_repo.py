"""In-app inbox repository."""
from typing import Any, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.types import generate_id, utcnow
from app.infra.db.models.notification import NotificationModel


class NotificationRepository:
    """Inbox rows for swap events. Callers own the transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> NotificationModel:
        model = NotificationModel(
            id=generate_id(),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data,
            read=False,
            created_at=utcnow(),
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 50,
        type: Optional[str] = None,
        unread_only: bool = False,
        swap_id: Optional[str] = None,
    ) -> List[NotificationModel]:
        """Newest first. ``swap_id`` matches the id carried in the notification data."""
        q = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if type is not None:
            q = q.where(NotificationModel.type == type)
        if unread_only:
            q = q.where(NotificationModel.read.is_(False))
        rows = (await self.session.execute(q.order_by(NotificationModel.created_at.desc()))).scalars().all()
        if swap_id is not None:
            # swap_id lives inside the JSON data column
            rows = [m for m in rows if (m.data or {}).get("swap_id") == swap_id]
        return list(rows[:limit])

    async def count_unread(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(NotificationModel).where(
                NotificationModel.user_id == user_id,
                NotificationModel.read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        """False when the notification does not exist or belongs to someone else."""
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.id == notification_id, NotificationModel.user_id == user_id)
            .values(read=True)
        )
        return result.rowcount > 0

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.user_id == user_id, NotificationModel.read.is_(False))
            .values(read=True)
        )
        return result.rowcount
