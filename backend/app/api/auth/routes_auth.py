"""Authentication routes."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db
from app.domain.users.models import User
from app.domain.users.services import UserService
from app.infra.db.repositories.user_repo import UserRepositoryImpl
from app.infra.security.jwt import create_access_token
from app.infra.security.password import get_password_hash, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()


class SignupRequest(BaseModel):
    """Signup request model."""
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(min_length=8, max_length=72)
    display_name: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: str
    email: str
    display_name: Optional[str]


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """Sign up a new user and return an access token."""
    user_service = UserService(UserRepositoryImpl(db), db)
    user = await user_service.create_user(
        email=request.email,
        password_hash=get_password_hash(request.password),
        display_name=request.display_name,
    )
    logger.info("User %s signed up", user.id)
    return TokenResponse(access_token=create_access_token(user.id))


@router.post("/login", response_model=TokenResponse)
async def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """OAuth2 password flow: username is the email."""
    user_service = UserService(UserRepositoryImpl(db), db)
    user = await user_service.authenticate(form.username, form.password, verify_password)
    return TokenResponse(access_token=create_access_token(user.id))


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return UserResponse(id=current_user.id, email=current_user.email, display_name=current_user.display_name)
