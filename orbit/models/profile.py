from sqlalchemy import Boolean, Column, String, Uuid
import enum
import uuid

from orbit.db.base_class import Base


class ProfileRole(str, enum.Enum):
    CITIZEN = "citizen"
    OFFICER = "officer"


class Profile(Base):
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    # Plain role string, checked against ProfileRole values
    role = Column(String(32), default=ProfileRole.CITIZEN.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def is_officer(self) -> bool:
        return self.role == ProfileRole.OFFICER.value
