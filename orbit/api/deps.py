from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.core.security import decode_access_token
from orbit.crud.profile import get_profile
from orbit.db.session import get_db
from orbit.models import Profile
from orbit.schemas import TokenPayload

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_profile(
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> Profile:
    """
    Resolve the bearer token to an active profile.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    try:
        token_data = TokenPayload(**decode_access_token(token))
    except (JWTError, ValidationError):
        raise credentials_exception
    if token_data.sub is None:
        raise credentials_exception

    profile = await get_profile(db, id=token_data.sub)
    if not profile or not profile.is_active:
        raise credentials_exception
    return profile


async def get_current_officer(
    current_profile: Profile = Depends(get_current_profile),
) -> Profile:
    """
    Only officers may verify incidents or write dispatch notes.
    """
    if not current_profile.is_officer:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Officer role required",
        )
    return current_profile


async def get_optional_profile(
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> Optional[Profile]:
    """
    Like get_current_profile, but anonymous or invalid credentials yield None.
    """
    if not token:
        return None
    try:
        return await get_current_profile(db, token=token)
    except HTTPException:
        return None
