from datetime import timedelta
from typing import Any
import traceback

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.api.deps import get_current_profile
from orbit.core.config import settings
from orbit.core.logger import get_logger
from orbit.core.security import create_access_token
from orbit.db.session import get_db
from orbit.models import Profile as ProfileModel
from orbit.schemas import Profile, ProfileCreate, Token
from orbit.crud.profile import authenticate_profile, create_profile, get_profile_by_email

logger = get_logger("orbit.auth")

router = APIRouter()


def _rejected_login(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _unexpected_failure(action: str, who: str, e: Exception) -> HTTPException:
    logger.error(f"{action} error: {who}, error={str(e)}\n{traceback.format_exc()}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"An unexpected error occurred during {action.lower()}",
    )


@router.post("/auth/login", response_model=Token)
async def login_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Exchange an email and password for a bearer token.
    The form's `username` field carries the email.
    """
    email = form_data.username
    try:
        profile = await authenticate_profile(db, email=email, password=form_data.password)
    except Exception as e:
        raise _unexpected_failure("Login", f"email={email}", e)

    if not profile:
        logger.warning(f"Login rejected, bad credentials: email={email}")
        raise _rejected_login("Incorrect email or password")
    if not profile.is_active:
        logger.warning(f"Login rejected, inactive profile: profile_id={profile.id}")
        raise _rejected_login("Account is not active")

    token = create_access_token(
        subject=profile.id,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    logger.info(f"Login: profile_id={profile.id}, role={profile.role}")
    return {"access_token": token, "token_type": "bearer"}


@router.post("/auth/register", response_model=Profile, status_code=status.HTTP_201_CREATED)
async def register_profile(
    profile_in: ProfileCreate,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Register a citizen profile. Officers are only created by seeding.
    """
    if await get_profile_by_email(db, email=profile_in.email):
        logger.warning(f"Registration rejected, email taken: email={profile_in.email}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    try:
        profile = await create_profile(db, obj_in=profile_in)
    except Exception as e:
        await db.rollback()
        raise _unexpected_failure("Registration", f"email={profile_in.email}", e)

    logger.info(f"Citizen registered: profile_id={profile.id}")
    return profile


@router.get("/auth/me", response_model=Profile)
async def read_profile_me(
    current_profile: ProfileModel = Depends(get_current_profile),
) -> Any:
    return current_profile
