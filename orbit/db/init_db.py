from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from orbit.core.config import settings
from orbit.core.logger import get_logger
from orbit.core.security import get_password_hash
from orbit.db.base_class import Base
from orbit.models import Incident, Profile, ProfileRole  # noqa: F401 (registers tables)

logger = get_logger("orbit.db")


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables initialized")


async def create_initial_data(session: AsyncSession) -> None:
    """Create the first officer profile when FIRST_OFFICER_* settings are present."""
    if not settings.FIRST_OFFICER_EMAIL or not settings.FIRST_OFFICER_PASSWORD:
        return

    result = await session.execute(
        select(Profile).filter(Profile.email == settings.FIRST_OFFICER_EMAIL)
    )
    officer = result.scalars().first()

    if not officer:
        officer = Profile(
            email=settings.FIRST_OFFICER_EMAIL,
            hashed_password=get_password_hash(settings.FIRST_OFFICER_PASSWORD),
            full_name="Duty Officer",
            role=ProfileRole.OFFICER.value,
            is_active=True,
        )
        session.add(officer)
        await session.commit()
        logger.info(f"Officer profile created: email={settings.FIRST_OFFICER_EMAIL}")

    logger.info("Initial data created")
