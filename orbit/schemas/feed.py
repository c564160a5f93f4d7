from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel

from orbit.models.incident import IncidentStatus, IncidentType
from orbit.schemas.incident import IncidentDetail


class FeedItem(IncidentDetail):
    priority: float
    distance_km: float


class Marker(BaseModel):
    incident_id: UUID
    lng: float
    lat: float
    status: IncidentStatus
    color: str


class MarkerDiff(BaseModel):
    added: List[Marker] = []
    removed: List[UUID] = []
    recolored: List[Marker] = []


# Messages a feed socket client may send
class FeedViewMessage(BaseModel):
    type: str = "view"
    lat: float
    lng: float
    radius_km: Optional[float] = None


class FeedFiltersMessage(BaseModel):
    type: str = "filters"
    incident_type: Optional[IncidentType] = None
    hours: Optional[float] = None
