import asyncio
import uuid
from datetime import datetime, timedelta

import pytest

from orbit.core.geo import Point
from orbit.models import IncidentSeverity, IncidentStatus, IncidentType
from orbit.schemas import IncidentDetail
from orbit.services.feed import (
    FeedComposer,
    FeedFilters,
    FeedView,
    MarkerRegistry,
    priority_score,
    rank_incidents,
)

NOW = datetime(2026, 10, 19, 9, 0, 0)
ORIGIN = Point(lng=0, lat=0)


def make_incident(severity="medium", status="pending", lng=0.0, lat=0.0, created_at=NOW, **extra):
    return IncidentDetail(
        id=extra.pop("id", uuid.uuid4()),
        type=extra.pop("type", IncidentType.ACCIDENT),
        description="Two-vehicle collision",
        severity=severity,
        location=Point(lng=lng, lat=lat),
        location_text=Point(lng=lng, lat=lat).to_wkt(),
        status=status,
        created_at=created_at,
        **extra,
    )


def test_priority_is_severity_weight_plus_recency():
    epoch = datetime(1970, 1, 1)
    assert priority_score(IncidentSeverity.HIGH, epoch) == 1000
    assert priority_score(IncidentSeverity.MEDIUM, epoch) == 500
    assert priority_score(IncidentSeverity.LOW, epoch) == 100
    # 10,000,000 ms after the epoch adds exactly one point
    assert priority_score("low", epoch + timedelta(milliseconds=10_000_000)) == 101


def test_higher_severity_ranks_first_within_the_window():
    old_high = make_incident("high", created_at=NOW - timedelta(hours=23))
    new_medium = make_incident("medium", created_at=NOW)
    new_low = make_incident("low", created_at=NOW + timedelta(hours=1))

    ranked = rank_incidents([new_low, new_medium, old_high])
    assert [i.id for i in ranked] == [old_high.id, new_medium.id, new_low.id]


def test_newer_incident_wins_within_a_severity_tier():
    older = make_incident("high", created_at=NOW - timedelta(minutes=30))
    newer = make_incident("high", created_at=NOW)
    assert [i.id for i in rank_incidents([older, newer])] == [newer.id, older.id]


def test_ranking_is_stable_for_equal_scores():
    first = make_incident("low")
    second = make_incident("low")
    assert [i.id for i in rank_incidents([first, second])] == [first.id, second.id]
    assert [i.id for i in rank_incidents([second, first])] == [second.id, first.id]


def test_filters_window_is_relative_to_now():
    assert FeedFilters(hours=24).since(NOW) == NOW - timedelta(hours=24)


def test_reconcile_adds_only_incidents_inside_radius():
    registry = MarkerRegistry()
    near = make_incident(lng=0.5)
    far = make_incident(lng=1.0)

    diff = registry.reconcile([near, far], ORIGIN, 55.5)
    assert [m.incident_id for m in diff.added] == [near.id]
    assert diff.removed == [] and diff.recolored == []
    assert near.id in registry and far.id not in registry
    assert diff.added[0].color == "#ffc107"


def test_reconcile_is_idempotent():
    registry = MarkerRegistry()
    incidents = [make_incident(lng=0.1), make_incident(lat=0.1, status="verified")]

    first = registry.reconcile(incidents, ORIGIN, 15)
    assert len(first.added) == 2

    second = registry.reconcile(incidents, ORIGIN, 15)
    assert second.added == [] and second.removed == [] and second.recolored == []
    assert len(registry) == 2


def test_reconcile_removes_markers_that_leave_the_radius():
    registry = MarkerRegistry()
    incident = make_incident(lng=0.1)
    registry.reconcile([incident], ORIGIN, 15)

    diff = registry.reconcile([incident], Point(lng=1, lat=1), 15)
    assert diff.removed == [incident.id]
    assert len(registry) == 0

    diff = registry.reconcile([incident], ORIGIN, 15)
    assert [m.incident_id for m in diff.added] == [incident.id]


def test_reconcile_removes_markers_of_incidents_no_longer_listed():
    registry = MarkerRegistry()
    kept, dropped = make_incident(), make_incident()
    registry.reconcile([kept, dropped], ORIGIN, 15)

    diff = registry.reconcile([kept], ORIGIN, 15)
    assert diff.removed == [dropped.id]
    assert diff.added == []


def test_reconcile_recolors_on_status_change():
    registry = MarkerRegistry()
    incident_id = uuid.uuid4()
    registry.reconcile([make_incident(id=incident_id)], ORIGIN, 15)

    diff = registry.reconcile([make_incident(id=incident_id, status="verified")], ORIGIN, 15)
    assert diff.added == [] and diff.removed == []
    assert len(diff.recolored) == 1
    assert diff.recolored[0].color == "#ff3131"
    assert diff.recolored[0].status == IncidentStatus.VERIFIED


@pytest.mark.asyncio
async def test_composer_reloads_ranks_and_follows_the_view():
    store = [
        make_incident("low", lng=0.05),
        make_incident("high", lng=0.05, created_at=NOW - timedelta(hours=2)),
        make_incident("medium", lng=2.0),
    ]
    seen_filters = []

    async def loader(filters):
        seen_filters.append(filters)
        return list(store)

    composer = FeedComposer(
        loader=loader,
        filters=FeedFilters(incident_type=IncidentType.ACCIDENT, hours=24),
        view=FeedView(center=ORIGIN, radius_km=15),
    )
    diff = await composer.reload()
    assert len(diff.added) == 2
    visible = composer.visible()
    assert [item.severity for item in visible] == [IncidentSeverity.HIGH, IncidentSeverity.LOW]
    assert visible[0].distance_km == pytest.approx(0.05 * 111)
    assert seen_filters[0].incident_type == IncidentType.ACCIDENT

    diff = composer.set_view(Point(lng=2.0, lat=0))
    assert len(diff.removed) == 2
    assert [m.incident_id for m in diff.added] == [store[2].id]
    assert composer.view.radius_km == 15

    diff = composer.set_view(Point(lng=2.0, lat=0), radius_km=1000)
    assert len(diff.added) == 2

    store.append(make_incident("high", lng=2.0, created_at=NOW))
    diff = await composer.reload()
    assert [m.incident_id for m in diff.added] == [store[3].id]
    assert composer.visible()[0].id == store[3].id


@pytest.mark.asyncio
async def test_slow_reload_cannot_overwrite_newer_filters():
    store = [
        make_incident(type=IncidentType.FIRE),
        make_incident(type=IncidentType.MEDICAL),
    ]
    release_fire_load = asyncio.Event()

    async def loader(filters):
        if filters.incident_type == IncidentType.FIRE:
            await release_fire_load.wait()
        return [i for i in store if i.type == filters.incident_type]

    composer = FeedComposer(
        loader=loader,
        filters=FeedFilters(incident_type=IncidentType.FIRE),
        view=FeedView(center=ORIGIN, radius_km=15),
    )
    change_reload = asyncio.create_task(composer.reload())
    await asyncio.sleep(0)
    switch_filters = asyncio.create_task(composer.set_filters(FeedFilters(incident_type=IncidentType.MEDICAL)))
    await asyncio.sleep(0)

    release_fire_load.set()
    await asyncio.gather(change_reload, switch_filters)

    assert composer.filters.incident_type == IncidentType.MEDICAL
    assert [i.type for i in composer.incidents] == [IncidentType.MEDICAL]
    assert list(composer.registry.markers) == [store[1].id]
