from orbit.models.incident import (
    Incident,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    StatusTransitionError,
)
from orbit.models.profile import Profile, ProfileRole
