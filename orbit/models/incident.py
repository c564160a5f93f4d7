from sqlalchemy import Column, String, Enum, Text, Float, Uuid
from sqlalchemy.orm import composite
import enum
import uuid

from orbit.core.geo import Point
from orbit.db.base_class import Base


class IncidentStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"


class IncidentType(str, enum.Enum):
    ACCIDENT = "ACCIDENT"
    FIRE = "FIRE"
    MEDICAL = "MEDICAL"
    INFRASTRUCTURE = "INFRASTRUCTURE"


class IncidentSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StatusTransitionError(ValueError):
    """Raised when a status change would move an incident backwards."""


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Incident(Base):
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(Enum(IncidentType, name="incident_type", values_callable=_enum_values), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(
        Enum(IncidentSeverity, name="incident_severity", values_callable=_enum_values),
        nullable=False,
    )
    media_url = Column(String(1024), nullable=True)
    location_lng = Column(Float, nullable=False)
    location_lat = Column(Float, nullable=False)
    location = composite(Point, location_lng, location_lat)

    status = Column(
        Enum(IncidentStatus, name="incident_status", values_callable=_enum_values),
        default=IncidentStatus.PENDING,
        nullable=False,
    )
    internal_notes = Column(Text, nullable=True)

    @property
    def location_text(self) -> str:
        return self.location.to_wkt()

    def transition_to(self, status: IncidentStatus) -> None:
        """Apply a status change; verified incidents never go back to pending."""
        if self.status == IncidentStatus.VERIFIED and status != IncidentStatus.VERIFIED:
            raise StatusTransitionError(
                f"Cannot move incident {self.id} from {self.status.value} to {status.value}"
            )
        self.status = status
