"""API dependencies."""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.users.models import User
from app.domain.users.services import UserRepository
from app.infra.db.repositories.user_repo import UserRepositoryImpl
from app.infra.db.session import get_db
from app.infra.messaging.redis_bus import RedisBus, redis_bus
from app.infra.retry import RetryPolicy
from app.infra.security.jwt import decode_token
from app.infra.vendors.ledger_client import LedgerClient
from app.infra.vendors.payment_client import PaymentGateway, PaymentGatewayClient
from app.services.container import SwapServices, build_swap_services
from app.services.ledger_service import LedgerRecorder
from app.services.notification_service import SwapNotifier
from app.settings import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None:
        raise credentials_exception

    user_id: Optional[str] = payload.get("sub")
    token_type: Optional[str] = payload.get("type")
    if user_id is None or token_type != "access":
        raise credentials_exception

    user_repo: UserRepository = UserRepositoryImpl(db)
    user = await user_repo.get_by_id(user_id)
    if user is None or not user.is_active:
        raise credentials_exception

    return user


def get_redis_bus() -> Optional[RedisBus]:
    return redis_bus


def get_payment_gateway() -> PaymentGateway:
    return PaymentGatewayClient()


def get_notifier(
    db: AsyncSession = Depends(get_db),
    bus: Optional[RedisBus] = Depends(get_redis_bus),
) -> SwapNotifier:
    return SwapNotifier(db, bus, RetryPolicy.from_settings(settings))


def get_ledger() -> LedgerRecorder:
    return LedgerRecorder(
        LedgerClient() if settings.ledger_enabled else None,
        RetryPolicy.from_settings(settings),
        enabled=settings.ledger_enabled,
    )


def get_services(
    db: AsyncSession = Depends(get_db),
    payment: PaymentGateway = Depends(get_payment_gateway),
    notifier: SwapNotifier = Depends(get_notifier),
    ledger: LedgerRecorder = Depends(get_ledger),
) -> SwapServices:
    """Request-scoped services sharing the request's session."""
    return build_swap_services(db, payment=payment, notifier=notifier, ledger=ledger, settings=settings)

