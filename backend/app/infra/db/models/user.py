"""Account database model (swap owners and proposers)."""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime

from app.infra.db.base import Base


class UserModel(Base):
    """Marketplace account; bookings, swaps and proposals reference it by id."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    # Stored lower-cased; lookups are case-insensitive
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_entity(self):
        from app.domain.users.models import User
        return User(
            id=self.id,
            email=self.email,
            password_hash=self.password_hash,
            display_name=self.display_name,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity) -> "UserModel":
        return cls(
            id=entity.id,
            email=str(entity.email).strip().lower(),
            password_hash=entity.password_hash,
            display_name=entity.display_name,
            is_active=entity.is_active,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
