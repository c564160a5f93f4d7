from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.core.security import get_password_hash, verify_password
from orbit.models import Profile, ProfileRole
from orbit.schemas import ProfileCreate


async def get_profile(db: AsyncSession, id: UUID) -> Optional[Profile]:
    """
    Get a profile by ID.
    """
    result = await db.execute(select(Profile).filter(Profile.id == id))
    return result.scalars().first()


async def get_profile_by_email(db: AsyncSession, email: str) -> Optional[Profile]:
    """
    Get a profile by email.
    """
    result = await db.execute(select(Profile).filter(Profile.email == email))
    return result.scalars().first()


async def create_profile(
    db: AsyncSession, obj_in: ProfileCreate, role: ProfileRole = ProfileRole.CITIZEN
) -> Profile:
    """
    Create a new profile with the given role.
    """
    db_obj = Profile(
        email=obj_in.email,
        hashed_password=get_password_hash(obj_in.password),
        full_name=obj_in.full_name,
        role=role.value,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def authenticate_profile(db: AsyncSession, email: str, password: str) -> Optional[Profile]:
    """
    Authenticate a profile by email and password.
    """
    profile = await get_profile_by_email(db, email=email)
    if not profile:
        return None
    if not verify_password(password, profile.hashed_password):
        return None
    return profile
