"""Common domain types."""
import re
from datetime import datetime, timezone
from uuid import uuid4

from app.domain.common.errors import ValidationError

# RFC 4122: version nibble 1-5, variant bits 10xx
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_id() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


def is_valid_uuid(value: str) -> bool:
    return bool(value) and UUID_PATTERN.match(value) is not None


def require_uuid(value: str, field: str = "id") -> str:
    """Return value unchanged, or raise ValidationError when it is not an RFC 4122 UUID."""
    if not isinstance(value, str) or not is_valid_uuid(value):
        raise ValidationError(f"{field} must be a valid UUID", code="INVALID_UUID")
    return value


def utcnow() -> datetime:
    """Naive UTC now, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
