"""
Incident feed: priority scoring, radius filtering and marker reconciliation.

A FeedComposer owns one subscriber's view of the feed. It reloads the
incident set through an async loader, ranks it, and keeps a MarkerRegistry
in sync with the current view center and radius.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from orbit.core.geo import Point, planar_distance_km, within_radius
from orbit.db.base_class import utcnow
from orbit.models import IncidentSeverity, IncidentStatus, IncidentType
from orbit.schemas import FeedItem, IncidentDetail, Marker, MarkerDiff

SEVERITY_WEIGHTS = {
    IncidentSeverity.HIGH: 1000,
    IncidentSeverity.MEDIUM: 500,
    IncidentSeverity.LOW: 100,
}

# Epoch milliseconds are divided by this to form the recency tie-breaker
RECENCY_DIVISOR = 10_000_000

STATUS_COLORS = {
    IncidentStatus.VERIFIED: "#ff3131",
    IncidentStatus.PENDING: "#ffc107",
}


def epoch_millis(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp() * 1000


def priority_score(severity: IncidentSeverity, created_at: datetime) -> float:
    return SEVERITY_WEIGHTS[IncidentSeverity(severity)] + epoch_millis(created_at) / RECENCY_DIVISOR


def rank_incidents(incidents: Iterable[IncidentDetail]) -> List[IncidentDetail]:
    """Sort by descending priority. Equal scores keep their input order."""
    return sorted(
        incidents,
        key=lambda incident: priority_score(incident.severity, incident.created_at),
        reverse=True,
    )


def marker_color(status: IncidentStatus) -> str:
    return STATUS_COLORS[IncidentStatus(status)]


@dataclass
class FeedFilters:
    incident_type: Optional[IncidentType] = None
    hours: float = 24

    def since(self, now: Optional[datetime] = None) -> datetime:
        return (now or utcnow()) - timedelta(hours=self.hours)


@dataclass
class FeedView:
    center: Point
    radius_km: float


class MarkerRegistry:
    """
    The set of markers currently placed on a map view.

    reconcile() brings the set in line with an incident list, a view center
    and a radius, and reports only what changed.
    """

    def __init__(self):
        self.markers: Dict = {}

    def __len__(self) -> int:
        return len(self.markers)

    def __contains__(self, incident_id) -> bool:
        return incident_id in self.markers

    def reconcile(
        self, incidents: Iterable[IncidentDetail], center: Point, radius_km: float
    ) -> MarkerDiff:
        diff = MarkerDiff()
        visible = {}
        for incident in incidents:
            if within_radius(incident.location, center, radius_km):
                visible[incident.id] = incident

        for incident_id in list(self.markers):
            if incident_id not in visible:
                del self.markers[incident_id]
                diff.removed.append(incident_id)

        for incident_id, incident in visible.items():
            marker = self.markers.get(incident_id)
            if marker is None:
                marker = Marker(
                    incident_id=incident_id,
                    lng=incident.location.lng,
                    lat=incident.location.lat,
                    status=incident.status,
                    color=marker_color(incident.status),
                )
                self.markers[incident_id] = marker
                diff.added.append(marker)
            elif marker.status != incident.status:
                marker.status = incident.status
                marker.color = marker_color(incident.status)
                diff.recolored.append(marker)
        return diff


IncidentLoader = Callable[[FeedFilters], Awaitable[List[IncidentDetail]]]


@dataclass
class FeedComposer:
    loader: IncidentLoader
    filters: FeedFilters
    view: FeedView
    incidents: List[IncidentDetail] = field(default_factory=list)
    registry: MarkerRegistry = field(default_factory=MarkerRegistry)
    # Held for the whole load so a slow reload cannot land after a newer one
    _reloading: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def reload(self) -> MarkerDiff:
        """Re-query, re-rank and reconcile markers."""
        async with self._reloading:
            return await self._load()

    async def _load(self) -> MarkerDiff:
        self.incidents = rank_incidents(await self.loader(self.filters))
        return self.registry.reconcile(self.incidents, self.view.center, self.view.radius_km)

    def set_view(self, center: Point, radius_km: Optional[float] = None) -> MarkerDiff:
        self.view = FeedView(
            center=center,
            radius_km=self.view.radius_km if radius_km is None else radius_km,
        )
        return self.registry.reconcile(self.incidents, self.view.center, self.view.radius_km)

    async def set_filters(self, filters: FeedFilters) -> MarkerDiff:
        async with self._reloading:
            self.filters = filters
            return await self._load()

    def visible(self) -> List[FeedItem]:
        """Ranked incidents inside the current radius."""
        return visible_items(self.incidents, self.view.center, self.view.radius_km)


def visible_items(
    ranked: Iterable[IncidentDetail], center: Point, radius_km: float
) -> List[FeedItem]:
    items = []
    for incident in ranked:
        if within_radius(incident.location, center, radius_km):
            items.append(
                FeedItem(
                    **incident.model_dump(),
                    priority=priority_score(incident.severity, incident.created_at),
                    distance_km=planar_distance_km(incident.location, center),
                )
            )
    return items
