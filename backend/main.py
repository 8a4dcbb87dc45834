"""FastAPI entry point - thin layer over the presence session."""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.config import AppConfig
from core.models import CampusTopology, Coordinate, IconType, MemberPresence, ProfileError, UserProfile
from data import SAMPLE_CAMPUS, buildings_geojson, create_sample_members, parse_members, parse_topology, read_source
from markers import ClusterDetail, MapViewport, MarkerHandle, MemberDetail
from presence import RegistrationError
from services.geolocation import HttpLocationProvider, LocationBusy, LocationService, LocationUnavailable
from services.session import LocateOutcome, PresenceSession
from services.storage import JsonFileStore, LocalState, MemoryStore

logging.basicConfig(level=logging.WARNING, format="%(name)s | %(message)s")
logging.getLogger("services.session").setLevel(logging.INFO)
logging.getLogger("data.loader").setLevel(logging.INFO)

VIEWPORTS = ("preview", "full")


def config_from_env() -> AppConfig:
    store = os.environ.get("WHEREABOUTS_STORE")
    return AppConfig(
        topology_source=os.environ.get("WHEREABOUTS_TOPOLOGY"),
        members_source=os.environ.get("WHEREABOUTS_MEMBERS"),
        store_path=Path(store) if store else None,
        position_source=os.environ.get("WHEREABOUTS_POSITION"),
        host=os.environ.get("WHEREABOUTS_HOST", "127.0.0.1"),
        port=int(os.environ.get("WHEREABOUTS_PORT", "8000")),
    )


def build_session(
    config: AppConfig,
    topology: CampusTopology = SAMPLE_CAMPUS,
    members: list[MemberPresence] | None = None,
) -> PresenceSession:
    store = JsonFileStore(config.store_path) if config.store_path is not None else MemoryStore()
    provider = HttpLocationProvider(config.position_source) if config.position_source else None
    session = PresenceSession(
        topology,
        members if members is not None else create_sample_members(),
        LocalState(store),
        LocationService(provider, config),
        config,
    )
    for name in VIEWPORTS:
        session.attach_viewport(name, MapViewport(name=name, zoom=config.default_zoom, center=config.default_center))
    return session


async def load_session(config: AppConfig) -> PresenceSession:
    """Read topology and member documents once. Unset sources fall back to the sample campus."""
    topology = SAMPLE_CAMPUS
    members = None
    if config.topology_source:
        topology = parse_topology(await read_source(config.topology_source))
    if config.members_source:
        members = parse_members(await read_source(config.members_source))
    return build_session(config, topology, members)


# --- module-level state, initialised at import time ---
config: AppConfig = config_from_env()
session: PresenceSession = build_session(config)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    global session
    if config.topology_source or config.members_source:
        session = await load_session(config)
    yield


app = FastAPI(title="Whereabouts API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LocationUnavailable)
async def location_unavailable(_: Request, exc: LocationUnavailable) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc) or "location unavailable"})


@app.exception_handler(LocationBusy)
async def location_busy(_: Request, exc: LocationBusy) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(RegistrationError)
async def registration_error(_: Request, exc: RegistrationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ProfileError)
async def profile_error(_: Request, exc: ProfileError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def _viewport(name: str) -> MapViewport:
    try:
        return session.viewport(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"unknown viewport {name!r}") from None


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class CoordinateModel(BaseModel):
    lat: float
    lng: float


class LocateResponse(BaseModel):
    point: CoordinateModel
    building_id: str | None
    building_name: str | None
    floors: list[str]
    manual_entry: bool
    nearest_building_id: str | None = None
    nearest_distance_m: float | None = None


class FloorRequest(BaseModel):
    label: str


class RankedRoomResponse(BaseModel):
    id: str
    name: str
    usage: str
    distance_m: float


class RoomRequest(BaseModel):
    room_id: str


class SelectionResponse(BaseModel):
    building_id: str | None
    floor_label: str | None
    room_id: str | None


class ManualRequest(BaseModel):
    location_name: str


class ProfileRequest(BaseModel):
    id: str
    username: str
    group: str = ""
    icon_url: str | None = None
    icon_type: IconType = IconType.DEFAULT
    icon_data: str | None = "person"


class ClusterResponse(BaseModel):
    key: str
    granularity: str
    building_id: str
    floor_label: str | None
    room_id: str | None
    coordinates: CoordinateModel
    member_ids: list[str]


class ZoomRequest(BaseModel):
    zoom: float


class ToggleStatus(BaseModel):
    enabled: bool


class GroupFilterRequest(BaseModel):
    group: str | None = None


class GroupFilterResponse(BaseModel):
    group: str
    groups: list[str]


class MarkerResponse(BaseModel):
    id: int
    kind: str
    coordinates: CoordinateModel
    color: str
    border_color: str
    opacity: float
    label: str | None
    icon_url: str | None
    member_ids: list[str]


class ViewportResponse(BaseModel):
    name: str
    zoom: float
    center: CoordinateModel | None
    layers: dict[str, bool]
    markers: list[MarkerResponse]


def _coord(c: Coordinate) -> CoordinateModel:
    return CoordinateModel(lat=c.lat, lng=c.lng)


def _locate_response(outcome: LocateOutcome) -> LocateResponse:
    building = outcome.building
    response = LocateResponse(
        point=_coord(outcome.point),
        building_id=building.id if building else None,
        building_name=building.name if building else None,
        floors=[f.label for f in building.floors] if building else [],
        manual_entry=outcome.needs_manual_entry,
    )
    if outcome.nearest is not None:
        nearest, distance_m = outcome.nearest
        response.nearest_building_id = nearest.id
        response.nearest_distance_m = distance_m
    return response


def _marker_response(handle: MarkerHandle) -> MarkerResponse:
    spec = handle.element.spec
    return MarkerResponse(
        id=handle.id,
        kind=spec.kind.value,
        coordinates=_coord(handle.coordinate),
        color=spec.color,
        border_color=spec.border_color,
        opacity=spec.opacity,
        label=spec.label,
        icon_url=spec.icon_url,
        member_ids=[m.id for m in spec.group.members] if spec.group else [],
    )


def _viewport_response(viewport: MapViewport) -> ViewportResponse:
    return ViewportResponse(
        name=viewport.name,
        zoom=viewport.zoom,
        center=_coord(viewport.center) if viewport.center else None,
        layers=dict(viewport.layers),
        markers=[_marker_response(h) for h in viewport.markers],
    )


# ---------------------------------------------------------------------------
# Campus and location
# ---------------------------------------------------------------------------


@app.get("/campus")
def get_campus() -> CampusTopology:
    return session.topology


@app.get("/campus/geojson")
def get_campus_geojson() -> dict[str, Any]:
    return buildings_geojson(session.topology)


@app.post("/locate")
def post_locate(point: CoordinateModel) -> LocateResponse:
    """Resolve a position to a building, or hint the nearest one for manual entry."""
    return _locate_response(session.locate(Coordinate(lat=point.lat, lng=point.lng)))


@app.post("/location/acquire")
async def acquire_location() -> LocateResponse:
    coordinate = await session.acquire_location()
    return _locate_response(session.locate(coordinate))


@app.post("/selection/floor")
def select_floor(body: FloorRequest) -> list[RankedRoomResponse]:
    return [
        RankedRoomResponse(id=r.room.id, name=r.room.name, usage=r.room.usage, distance_m=r.distance_m)
        for r in session.select_floor(body.label)
    ]


@app.post("/selection/room")
def select_room(body: RoomRequest) -> SelectionResponse:
    session.select_room(body.room_id)
    return SelectionResponse(
        building_id=session.selected_building.id if session.selected_building else None,
        floor_label=session.selected_floor.label if session.selected_floor else None,
        room_id=session.selected_room.id if session.selected_room else None,
    )


# ---------------------------------------------------------------------------
# Presence and profile
# ---------------------------------------------------------------------------


@app.post("/presence/register")
def register_presence() -> dict[str, Any]:
    return session.register().to_dict()


@app.post("/presence/manual")
def register_manual_presence(body: ManualRequest) -> dict[str, Any]:
    return session.register_manual(body.location_name).to_dict()


@app.get("/presence")
def get_presence() -> dict[str, Any] | None:
    record = session.current_record()
    return record.to_dict() if record is not None else None


@app.get("/profile")
def get_profile() -> dict[str, Any]:
    if session.profile is None:
        raise HTTPException(status_code=404, detail="no profile saved")
    return session.profile.to_dict()


@app.put("/profile")
def put_profile(body: ProfileRequest) -> dict[str, Any]:
    created_at = session.profile.created_at if session.profile is not None else datetime.now(UTC)
    profile = UserProfile(
        id=body.id,
        username=body.username,
        group=body.group,
        icon_type=body.icon_type,
        icon_data=body.icon_data,
        created_at=created_at,
    )
    if body.icon_url:
        profile.icon_url = body.icon_url
    return session.save_profile(profile).to_dict()


# ---------------------------------------------------------------------------
# Members and viewports
# ---------------------------------------------------------------------------


@app.get("/members/clusters")
def get_clusters(zoom: float, group: str | None = None) -> list[ClusterResponse]:
    return [
        ClusterResponse(
            key=g.key,
            granularity=g.granularity.value,
            building_id=g.building_id,
            floor_label=g.floor_label,
            room_id=g.room_id,
            coordinates=_coord(g.coordinates),
            member_ids=[m.id for m in g.members],
        )
        for g in session.clusters(zoom, group)
    ]


@app.post("/viewports/{name}/zoom")
def zoom_viewport(name: str, body: ZoomRequest) -> ViewportResponse:
    viewport = _viewport(name)
    viewport.set_zoom(body.zoom)
    return _viewport_response(viewport)


@app.post("/viewports/{name}/members/toggle")
def toggle_members(name: str) -> ToggleStatus:
    _viewport(name)
    return ToggleStatus(enabled=session.toggle_members())


@app.post("/viewports/{name}/buildings/toggle")
def toggle_buildings(name: str) -> ToggleStatus:
    _viewport(name)
    return ToggleStatus(enabled=session.toggle_buildings())


@app.post("/group-filter")
def set_group_filter(body: GroupFilterRequest) -> GroupFilterResponse:
    session.set_group_filter(body.group)
    return GroupFilterResponse(group=session.group_filter, groups=session.groups)


@app.get("/viewports/{name}/markers")
def get_markers(name: str) -> ViewportResponse:
    return _viewport_response(_viewport(name))


@app.post("/viewports/{name}/markers/{handle_id}/click")
def click_marker(name: str, handle_id: int) -> MemberDetail | ClusterDetail | None:
    handle = _viewport(name).marker(handle_id)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"no marker {handle_id} on {name!r}")
    session.popups.close()
    handle.click()
    return session.popups.current


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    uvicorn.run(app, host=config.host, port=config.port, log_level="info")


if __name__ == "__main__":
    run()
