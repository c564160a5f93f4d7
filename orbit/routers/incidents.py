from typing import Any, List, Optional
from uuid import UUID
import traceback

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.api.deps import get_current_officer, get_optional_profile
from orbit.core.logger import get_logger
from orbit.db.base_class import utcnow
from orbit.db.session import get_db
from orbit.models import IncidentType, Profile, StatusTransitionError
from orbit.schemas import (
    IncidentCreate,
    IncidentDetail,
    IncidentNotesUpdate,
    IncidentStatusUpdate,
    serialize_incident,
)
from orbit.crud.incident import (
    create_incident,
    get_incident,
    get_incidents,
    update_incident_notes,
    update_incident_status,
)
from orbit.services.feed import FeedFilters
from orbit.services.feed_manager import ChangeEvent, feed_manager

logger = get_logger("orbit.incidents")

router = APIRouter()


async def _persistence_failure(db: AsyncSession, action: str, e: Exception) -> HTTPException:
    await db.rollback()
    logger.error(f"{action} failed: error={str(e)}\n{traceback.format_exc()}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e),
    )


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Incident not found",
    )


@router.post("/incidents", response_model=IncidentDetail, status_code=status.HTTP_201_CREATED)
async def create_new_incident(
    incident_in: IncidentCreate,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Submit a new incident report. The stored status is always pending.
    """
    try:
        incident = await create_incident(db, obj_in=incident_in)
    except SQLAlchemyError as e:
        raise await _persistence_failure(db, "Incident creation", e)

    logger.info(
        f"Incident reported: id={incident.id}, type={incident.type.value}, severity={incident.severity.value}"
    )
    result = serialize_incident(incident)
    await feed_manager.broadcast_change(ChangeEvent.INSERT, result)
    return result


@router.get("/incidents", response_model=List[IncidentDetail])
async def read_incidents(
    type: Optional[IncidentType] = None,
    hours: Optional[float] = None,
    skip: int = 0,
    limit: int = 500,
    current_profile: Optional[Profile] = Depends(get_optional_profile),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Retrieve incidents newest first, optionally within the last `hours`.
    Internal notes are only shown to officers.
    """
    since = FeedFilters(hours=hours).since() if hours is not None else None
    incidents = await get_incidents(db, type=type, since=since, skip=skip, limit=limit)
    include_notes = bool(current_profile and current_profile.is_officer)
    return [serialize_incident(incident, include_notes) for incident in incidents]


@router.get("/incidents/{incident_id}", response_model=IncidentDetail)
async def read_incident(
    incident_id: UUID,
    current_profile: Optional[Profile] = Depends(get_optional_profile),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Get incident by ID.
    """
    incident = await get_incident(db, id=incident_id)
    if not incident:
        raise _not_found()
    return serialize_incident(incident, bool(current_profile and current_profile.is_officer))


@router.patch("/incidents/{incident_id}/status", response_model=IncidentDetail)
async def change_incident_status(
    incident_id: UUID,
    status_in: IncidentStatusUpdate,
    current_officer: Profile = Depends(get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Verify an incident. Officers only; verified incidents cannot be reverted.
    """
    try:
        incident = await update_incident_status(db, id=incident_id, status=status_in.status)
    except StatusTransitionError as e:
        logger.warning(f"Status transition rejected: id={incident_id}, officer={current_officer.id}, reason={e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SQLAlchemyError as e:
        raise await _persistence_failure(db, "Status update", e)

    if incident is None:
        raise _not_found()

    logger.info(f"Incident status set: id={incident.id}, status={incident.status.value}, officer={current_officer.id}")
    result = serialize_incident(incident, include_notes=True)
    await feed_manager.broadcast_change(ChangeEvent.UPDATE, serialize_incident(incident))
    return result


@router.patch("/incidents/{incident_id}/notes", response_model=IncidentDetail)
async def change_incident_notes(
    incident_id: UUID,
    notes_in: IncidentNotesUpdate,
    current_officer: Profile = Depends(get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Overwrite the dispatcher notes of an incident. Officers only.
    """
    try:
        incident = await update_incident_notes(db, id=incident_id, notes=notes_in.notes)
    except SQLAlchemyError as e:
        raise await _persistence_failure(db, "Notes update", e)

    if incident is None:
        raise _not_found()

    logger.info(f"Incident notes updated: id={incident.id}, officer={current_officer.id}")
    result = serialize_incident(incident, include_notes=True)
    await feed_manager.broadcast_change(ChangeEvent.UPDATE, serialize_incident(incident))
    return result
