from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import as_declarative, declared_attr


def utcnow() -> datetime:
    # Naive UTC, matching the timezone-less DateTime columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


@as_declarative()
class Base:
    __name__: str
    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower() + "s"
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
