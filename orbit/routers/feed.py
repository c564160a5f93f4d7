import asyncio
import contextlib
import json
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from orbit.api.deps import get_current_profile, get_optional_profile
from orbit.core.config import settings
from orbit.core.geo import Point
from orbit.core.logger import get_logger
from orbit.crud.incident import get_incidents
from orbit.db.session import get_session_factory
from orbit.models import IncidentType, Profile
from orbit.schemas import FeedFiltersMessage, FeedItem, FeedViewMessage, serialize_incident
from orbit.services.feed import FeedComposer, FeedFilters, FeedView
from orbit.services.feed_manager import feed_manager

logger = get_logger("orbit.feed")

router = APIRouter()


def make_loader(session_factory: async_sessionmaker, include_notes: bool):
    """
    Build the loader a FeedComposer uses; each load runs in its own session.
    """
    async def load(filters: FeedFilters):
        async with session_factory() as db:
            incidents = await get_incidents(db, type=filters.incident_type, since=filters.since())
            return [serialize_incident(incident, include_notes) for incident in incidents]
    return load


def build_composer(
    session_factory: async_sessionmaker,
    include_notes: bool,
    type: Optional[IncidentType],
    hours: Optional[float],
    lat: Optional[float],
    lng: Optional[float],
    radius_km: Optional[float],
) -> FeedComposer:
    return FeedComposer(
        loader=make_loader(session_factory, include_notes),
        filters=FeedFilters(
            incident_type=type,
            hours=settings.FEED_DEFAULT_HOURS if hours is None else hours,
        ),
        view=FeedView(
            center=Point(
                lng=settings.FEED_DEFAULT_LNG if lng is None else lng,
                lat=settings.FEED_DEFAULT_LAT if lat is None else lat,
            ),
            radius_km=settings.FEED_DEFAULT_RADIUS_KM if radius_km is None else radius_km,
        ),
    )


@router.get("/feed", response_model=List[FeedItem])
async def read_feed(
    type: Optional[IncidentType] = None,
    hours: Optional[float] = Query(None, gt=0),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: Optional[float] = Query(None, ge=0),
    current_profile: Optional[Profile] = Depends(get_optional_profile),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> Any:
    """
    Ranked incidents within `radius_km` of the given center and the last `hours`.
    """
    composer = build_composer(
        session_factory,
        bool(current_profile and current_profile.is_officer),
        type, hours, lat, lng, radius_km,
    )
    await composer.reload()
    return composer.visible()


async def _is_officer(session_factory: async_sessionmaker, token: Optional[str]) -> bool:
    if not token:
        return False
    async with session_factory() as db:
        try:
            profile = await get_current_profile(db, token=token)
        except HTTPException:
            return False
    return profile.is_officer


def _feed_message(message_type: str, composer: FeedComposer, diff, **extra) -> dict:
    data = {"incidents": composer.visible(), "markers": diff}
    data.update(extra)
    return {"type": message_type, "data": data}


async def _pump_changes(websocket: WebSocket, composer: FeedComposer, queue: asyncio.Queue):
    """
    Reload the subscriber's feed for every queued change notification.
    """
    try:
        while True:
            message = await queue.get()
            # Changes that piled up during a reload are covered by one reload
            while not queue.empty():
                message = queue.get_nowait()
            try:
                diff = await composer.reload()
            except SQLAlchemyError as e:
                logger.error(f"Feed reload failed: error={str(e)}")
                continue
            await feed_manager.send_message(
                websocket,
                _feed_message("feed_update", composer, diff, event=message.get("event")),
            )
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.info(f"Feed pump stopped: {e!r}")


async def _stop_pump(pump: asyncio.Task):
    pump.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await pump


@router.websocket("/ws/feed")
async def feed_websocket(
    websocket: WebSocket,
    type: Optional[IncidentType] = None,
    hours: Optional[float] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: Optional[float] = None,
    token: Optional[str] = None,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Live incident feed. Sends a snapshot, then a feed_update after every
    incident change. Clients send "view" messages on pan/zoom/radius changes
    and "filters" messages to change the type or time window.
    """
    include_notes = await _is_officer(session_factory, token)
    composer = build_composer(session_factory, include_notes, type, hours, lat, lng, radius_km)

    await websocket.accept()
    queue = feed_manager.connect(websocket)
    pump = None
    try:
        diff = await composer.reload()
        await feed_manager.send_message(websocket, _feed_message("snapshot", composer, diff))
        pump = asyncio.create_task(_pump_changes(websocket, composer, queue))

        while True:
            try:
                data = json.loads(await websocket.receive_text())
            except ValueError:
                data = None
            if not isinstance(data, dict):
                await feed_manager.send_message(
                    websocket, {"type": "error", "data": {"error": "Invalid message"}}
                )
                continue

            try:
                if data.get("type") == "view":
                    view = FeedViewMessage(**data)
                    diff = composer.set_view(Point(lng=view.lng, lat=view.lat), view.radius_km)
                    await feed_manager.send_message(websocket, _feed_message("markers", composer, diff))
                elif data.get("type") == "filters":
                    filters = FeedFiltersMessage(**data)
                    diff = await composer.set_filters(
                        FeedFilters(
                            incident_type=filters.incident_type,
                            hours=settings.FEED_DEFAULT_HOURS if filters.hours is None else filters.hours,
                        )
                    )
                    await feed_manager.send_message(websocket, _feed_message("feed_update", composer, diff))
                else:
                    await feed_manager.send_message(
                        websocket, {"type": "error", "data": {"error": "Unknown message type"}}
                    )
            except ValidationError as e:
                await feed_manager.send_message(
                    websocket, {"type": "error", "data": {"error": "Invalid message", "detail": e.errors(include_url=False, include_context=False)}}
                )

    except WebSocketDisconnect:
        pass

    finally:
        feed_manager.disconnect(websocket)
        if pump is not None:
            await _stop_pump(pump)
