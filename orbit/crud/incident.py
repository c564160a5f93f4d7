from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.core.geo import Point
from orbit.models import Incident, IncidentStatus, IncidentType
from orbit.schemas import IncidentCreate


async def get_incident(db: AsyncSession, id: UUID) -> Optional[Incident]:
    """
    Get an incident by ID.
    """
    result = await db.execute(select(Incident).filter(Incident.id == id))
    return result.scalars().first()


async def get_incidents(
    db: AsyncSession,
    type: Optional[IncidentType] = None,
    since: Optional[datetime] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[Incident]:
    """
    Get incidents newest first, optionally filtered by type and creation time.
    With no limit every matching row is returned.
    """
    query = select(Incident)
    if type:
        query = query.filter(Incident.type == type)
    if since is not None:
        query = query.filter(Incident.created_at > since)

    query = query.order_by(Incident.created_at.desc()).offset(skip)
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


async def create_incident(db: AsyncSession, obj_in: IncidentCreate) -> Incident:
    """
    Create a new incident. Status always starts as pending.
    """
    db_obj = Incident(
        type=obj_in.type,
        description=obj_in.description,
        severity=obj_in.severity,
        media_url=obj_in.media_url,
        location=Point(lng=obj_in.lng, lat=obj_in.lat),
        status=IncidentStatus.PENDING,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def update_incident_status(
    db: AsyncSession, id: UUID, status: IncidentStatus
) -> Optional[Incident]:
    """
    Set the status of an incident. Returns None when no incident matches.
    Raises StatusTransitionError for a verified -> pending move.
    """
    db_obj = await get_incident(db, id=id)
    if db_obj is None:
        return None
    db_obj.transition_to(status)
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def update_incident_notes(
    db: AsyncSession, id: UUID, notes: str
) -> Optional[Incident]:
    """
    Overwrite the internal notes of an incident. Returns None when no incident matches.
    """
    db_obj = await get_incident(db, id=id)
    if db_obj is None:
        return None
    db_obj.internal_notes = notes
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj
