"""Notification inbox routes (proposal and auction events for the caller)."""
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db
from app.domain.common.errors import NotFoundError
from app.domain.common.types import require_uuid
from app.domain.users.models import User
from app.infra.db.models.notification import NotificationModel
from app.infra.db.repositories.notification_repo import NotificationRepository
from app.infra.db.session import atomic

router = APIRouter()


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    read: bool
    data: Optional[dict] = None
    timestamp: int  # ms since epoch

    @classmethod
    def from_model(cls, m: NotificationModel) -> "NotificationResponse":
        return cls(
            id=m.id,
            type=m.type,
            title=m.title,
            message=m.message,
            read=m.read,
            data=m.data,
            timestamp=int(m.created_at.timestamp() * 1000) if m.created_at else 0,
        )


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = 50,
    type: Optional[str] = None,
    unread_only: bool = False,
    swap_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Caller's inbox, newest first; filter by type, unread state or swap."""
    if limit < 1 or limit > 100:
        limit = 50
    repo = NotificationRepository(db)
    models = await repo.list_by_user(
        current_user.id,
        limit=limit,
        type=type,
        unread_only=unread_only,
        swap_id=require_uuid(swap_id, "swap_id") if swap_id else None,
    )
    return [NotificationResponse.from_model(m) for m in models]


@router.get("/unread-count")
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"unread": await NotificationRepository(db).count_unread(current_user.id)}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    async with atomic(db):
        updated = await NotificationRepository(db).mark_read(notification_id, current_user.id)
        if not updated:
            raise NotFoundError("Notification", notification_id)
    return {"ok": True}


@router.post("/read-all")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    async with atomic(db):
        count = await NotificationRepository(db).mark_all_read(current_user.id)
    return {"ok": True, "marked": count}
