from orbit.schemas.profile import Profile, ProfileCreate, Token, TokenPayload
from orbit.schemas.incident import (
    Incident,
    IncidentCreate,
    IncidentDetail,
    IncidentNotesUpdate,
    IncidentStatusUpdate,
    serialize_incident,
)
from orbit.schemas.feed import FeedItem, Marker, MarkerDiff, FeedViewMessage, FeedFiltersMessage
