"""Account repository implementation."""
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.users.models import User
from app.domain.users.services import UserRepository
from app.infra.db.models.user import UserModel


class UserRepositoryImpl(UserRepository):
    """Account repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User) -> User:
        model = UserModel.from_entity(user)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get_by_id(self, user_id: str) -> Optional[User]:
        model = await self.session.get(UserModel, user_id)
        return model.to_entity() if model else None

    async def get_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup."""
        result = await self.session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.strip().lower())
        )
        model = result.scalars().first()
        return model.to_entity() if model else None
