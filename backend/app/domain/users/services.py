"""User domain services."""
from typing import Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.errors import AuthenticationError, ConflictError
from app.domain.users.models import User
from app.infra.db.session import atomic


class UserRepository(Protocol):
    """User repository protocol."""

    async def create(self, user: User) -> User:
        ...

    async def get_by_id(self, user_id: str) -> Optional[User]:
        ...

    async def get_by_email(self, email: str) -> Optional[User]:
        ...


class UserService:
    """User service."""

    def __init__(self, user_repo: UserRepository, db: AsyncSession):
        self.user_repo = user_repo
        self.db = db

    async def create_user(self, email: str, password_hash: str, display_name: Optional[str] = None) -> User:
        """Create a new user; emails are unique."""
        async with atomic(self.db):
            if await self.user_repo.get_by_email(email):
                raise ConflictError("Email already registered", code="EMAIL_TAKEN")
            return await self.user_repo.create(User.create(email, password_hash, display_name))

    async def authenticate(self, email: str, password: str, verify: Callable[[str, str], bool]) -> User:
        """Return the active user whose password matches, else AuthenticationError."""
        user = await self.user_repo.get_by_email(email)
        if user is None or not user.is_active or not verify(password, user.password_hash):
            raise AuthenticationError("Incorrect email or password", code="INVALID_CREDENTIALS")
        return user
