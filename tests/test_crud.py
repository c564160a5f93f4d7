from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from orbit.core.config import settings
from orbit.crud.incident import (
    create_incident,
    get_incident,
    get_incidents,
    update_incident_notes,
    update_incident_status,
)
from orbit.crud.profile import authenticate_profile, get_profile_by_email
from orbit.db.base_class import utcnow
from orbit.db.init_db import create_initial_data, init_db
from orbit.core.geo import Point
from orbit.models import Incident, IncidentSeverity, IncidentStatus, IncidentType, StatusTransitionError
from orbit.routers.feed import make_loader
from orbit.schemas import IncidentCreate
from orbit.services.feed import FeedFilters


def report(**overrides):
    data = {
        "type": "MEDICAL",
        "severity": "medium",
        "lat": 25.61,
        "lng": 85.13,
        "description": "Person collapsed at the bus stand",
    }
    data.update(overrides)
    return IncidentCreate(**data)


@pytest.mark.asyncio
async def test_create_incident_stores_typed_location(db):
    incident = await create_incident(db, report())
    assert incident.status == IncidentStatus.PENDING
    assert incident.location == Point(lng=85.13, lat=25.61)
    assert incident.location_lng == 85.13
    assert incident.location_text == "POINT(85.13 25.61)"
    assert incident.created_at is not None


@pytest.mark.asyncio
async def test_get_incidents_applies_type_and_time_window(db):
    recent = await create_incident(db, report())
    await create_incident(db, report(type="FIRE"))
    stale = await create_incident(db, report())
    stale.created_at = utcnow() - timedelta(hours=30)
    await db.commit()

    since = utcnow() - timedelta(hours=24)
    medical = await get_incidents(db, type=IncidentType.MEDICAL, since=since)
    assert [i.id for i in medical] == [recent.id]

    everything = await get_incidents(db)
    assert len(everything) == 3
    assert everything[-1].id == stale.id


@pytest.mark.asyncio
async def test_status_updates_are_one_way(db):
    incident = await create_incident(db, report())

    verified = await update_incident_status(db, incident.id, IncidentStatus.VERIFIED)
    assert verified.status == IncidentStatus.VERIFIED

    with pytest.raises(StatusTransitionError):
        await update_incident_status(db, incident.id, IncidentStatus.PENDING)

    stored = await get_incident(db, incident.id)
    assert stored.status == IncidentStatus.VERIFIED


@pytest.mark.asyncio
async def test_updates_on_missing_incident_return_none(db):
    import uuid

    assert await update_incident_status(db, uuid.uuid4(), IncidentStatus.VERIFIED) is None
    assert await update_incident_notes(db, uuid.uuid4(), "n/a") is None


@pytest.mark.asyncio
async def test_notes_do_not_touch_status(db):
    incident = await create_incident(db, report())
    updated = await update_incident_notes(db, incident.id, "Ambulance 12 assigned")
    assert updated.internal_notes == "Ambulance 12 assigned"
    assert updated.status == IncidentStatus.PENDING


@pytest.mark.asyncio
async def test_init_db_seeds_a_single_officer(db_engine, db, monkeypatch):
    await init_db(db_engine)
    monkeypatch.setattr(settings, "FIRST_OFFICER_EMAIL", "chief@orbit-dispatch.org")
    monkeypatch.setattr(settings, "FIRST_OFFICER_PASSWORD", "Chief12345")

    await create_initial_data(db)
    await create_initial_data(db)

    officer = await get_profile_by_email(db, "chief@orbit-dispatch.org")
    assert officer.is_officer
    assert await authenticate_profile(db, "chief@orbit-dispatch.org", "Chief12345") is not None
    assert await authenticate_profile(db, "chief@orbit-dispatch.org", "wrong") is None


@pytest.mark.asyncio
async def test_time_window_is_not_capped_by_row_count(db_engine, db):
    now = utcnow()
    old_high = Incident(
        type=IncidentType.FIRE,
        severity=IncidentSeverity.HIGH,
        description="Transformer fire",
        location=Point(lng=85.1, lat=25.6),
        created_at=now - timedelta(hours=2),
    )
    db.add(old_high)
    db.add_all(
        Incident(
            type=IncidentType.INFRASTRUCTURE,
            severity=IncidentSeverity.LOW,
            description=f"Streetlight out #{n}",
            location=Point(lng=85.1, lat=25.6),
            created_at=now - timedelta(minutes=1),
        )
        for n in range(500)
    )
    await db.commit()

    rows = await get_incidents(db, since=now - timedelta(hours=24))
    assert len(rows) == 501
    assert old_high.id in {row.id for row in rows}
    assert len(await get_incidents(db, limit=10)) == 10

    load = make_loader(async_sessionmaker(db_engine, expire_on_commit=False), include_notes=False)
    feed_rows = await load(FeedFilters(hours=24))
    assert old_high.id in {row.id for row in feed_rows}
