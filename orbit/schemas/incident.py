from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field
from datetime import datetime

from orbit.core.geo import Point
from orbit.models.incident import IncidentSeverity, IncidentStatus, IncidentType


# Properties to receive on incident creation. Any client-sent status is ignored.
class IncidentCreate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    type: IncidentType
    description: str = Field(..., min_length=1)
    severity: IncidentSeverity
    media_url: Optional[str] = None


class IncidentStatusUpdate(BaseModel):
    status: IncidentStatus


class IncidentNotesUpdate(BaseModel):
    notes: str


# Properties to return to client
class Incident(BaseModel):
    id: UUID
    type: IncidentType
    description: str
    severity: IncidentSeverity
    media_url: Optional[str] = None
    location: Point
    location_text: str
    status: IncidentStatus
    created_at: datetime

    class Config:
        from_attributes = True


# Officer view of an incident, internal notes included
class IncidentDetail(Incident):
    internal_notes: Optional[str] = None

    class Config:
        from_attributes = True


def serialize_incident(obj, include_notes: bool = False) -> IncidentDetail:
    """Build the response model for an incident, hiding notes from non-officers."""
    detail = IncidentDetail.model_validate(obj)
    if not include_notes:
        detail.internal_notes = None
    return detail
