"""User domain models."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from app.domain.common.types import generate_id, utcnow


class User(BaseModel):
    """User domain model."""

    id: str
    email: EmailStr
    password_hash: str
    display_name: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(cls, email: EmailStr, password_hash: str, display_name: Optional[str] = None) -> "User":
        """Create a new user."""
        now = utcnow()
        return cls(
            id=generate_id(),
            email=email,
            password_hash=password_hash,
            display_name=display_name,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
