"""Tests for local state, geolocation acquisition and the presence session."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.config import AppConfig
from core.models import Coordinate, ProfileError, UserProfile
from data.sample_campus import SAMPLE_CAMPUS, create_sample_members
from markers.viewport import BUILDING_LAYERS, MapViewport
from presence import MarkerKind, RegistrationError
from services.geolocation import (
    HttpLocationProvider,
    LocationBusy,
    LocationService,
    LocationUnavailable,
    StaticLocationProvider,
)
from services.session import PresenceSession
from services.storage import LOCATION_KEY, USER_KEY, JsonFileStore, LocalState, MemoryStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
DESK = Coordinate(lat=35.17085, lng=136.88125)
PARKING = Coordinate(lat=35.1600, lng=136.8700)
PROFILE = UserProfile(id="1234567", username="Mori", group="開発部", created_at=NOW)


class SlowProvider:
    def __init__(self, delay_s: float, coordinate: Coordinate = DESK) -> None:
        self.delay_s = delay_s
        self.coordinate = coordinate
        self.calls = 0

    async def current_position(self) -> Coordinate:
        self.calls += 1
        await asyncio.sleep(self.delay_s)
        return self.coordinate


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


def test_json_file_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "state" / "whereabouts.json"
    JsonFileStore(path).set(USER_KEY, '{"id": "1"}')

    reopened = JsonFileStore(path)
    assert reopened.get(USER_KEY) == '{"id": "1"}'
    reopened.delete(USER_KEY)
    assert JsonFileStore(path).get(USER_KEY) is None
    assert json.loads(path.read_text(encoding="utf-8")) == {}


def test_corrupt_entries_are_treated_as_absent(caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryStore()
    store.set(USER_KEY, "{not json")
    store.set(LOCATION_KEY, "[1, 2]")
    state = LocalState(store)

    with caplog.at_level("WARNING", logger="services.storage"):
        assert state.load_profile() is None
        assert state.load_record() is None
    assert len(caplog.records) == 2


@pytest.mark.parametrize("content", ["{truncated", "[1, 2]"])
def test_unreadable_store_file_reads_as_empty(tmp_path: Path, content: str, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "whereabouts.json"
    path.write_text(content, encoding="utf-8")
    store = JsonFileStore(path)

    with caplog.at_level("WARNING", logger="services.storage"):
        session, _, _ = build_session(store)
    assert session.profile is None
    assert "whereabouts.json" in caplog.text

    session.save_profile(PROFILE)
    assert LocalState(JsonFileStore(path)).load_profile() == PROFILE


def test_naive_stored_timestamps_are_read_as_utc() -> None:
    store = MemoryStore()
    store.set(USER_KEY, json.dumps({**PROFILE.to_dict(), "createdAt": "2026-10-18T12:00:00"}))
    store.set(
        LOCATION_KEY,
        json.dumps({"userId": "1234567", "username": "Mori", "isManual": True, "timestamp": "2026-10-18T12:00:00"}),
    )
    state = LocalState(store)

    record = state.load_record()
    profile = state.load_profile()
    assert record is not None
    assert profile is not None
    assert record.timestamp == NOW
    assert record.timestamp.tzinfo is UTC
    assert profile.created_at == NOW


def test_profile_round_trip() -> None:
    state = LocalState(MemoryStore())
    state.save_profile(PROFILE)
    assert state.load_profile() == PROFILE


@pytest.mark.parametrize(
    ("user_id", "username"),
    [("123456", "Mori"), ("12345678", "Mori"), ("12a4567", "Mori"), ("1234567", "   "), ("1234567", "x" * 21)],
)
def test_invalid_profiles_are_rejected(user_id: str, username: str) -> None:
    with pytest.raises(ProfileError):
        UserProfile(id=user_id, username=username, group="").validate()


# ---------------------------------------------------------------------------
# Geolocation
# ---------------------------------------------------------------------------


def test_acquire_times_out_and_clears_busy() -> None:
    service = LocationService(SlowProvider(delay_s=1.0), AppConfig(location_timeout_s=0.01))

    with pytest.raises(LocationUnavailable):
        asyncio.run(service.acquire())
    assert not service.busy
    assert service.last_fix is None


def test_recent_fix_is_reused() -> None:
    provider = SlowProvider(delay_s=0)
    clock = FakeClock()
    service = LocationService(provider, AppConfig(location_max_age_s=300), clock=clock)

    assert asyncio.run(service.acquire()) == DESK
    clock.now += 299
    assert asyncio.run(service.acquire()) == DESK
    assert provider.calls == 1

    clock.now += 2
    asyncio.run(service.acquire())
    assert provider.calls == 2


def test_second_request_while_pending_is_rejected() -> None:
    service = LocationService(SlowProvider(delay_s=0.05))

    async def both() -> list[Coordinate | BaseException]:
        return await asyncio.gather(service.acquire(), service.acquire(), return_exceptions=True)

    first, second = asyncio.run(both())
    assert first == DESK
    assert isinstance(second, LocationBusy)
    assert not service.busy


def test_denied_or_missing_provider_is_unavailable() -> None:
    with pytest.raises(LocationUnavailable):
        asyncio.run(LocationService(StaticLocationProvider()).acquire())
    with pytest.raises(LocationUnavailable):
        asyncio.run(LocationService(None).acquire())


async def acquire_over_http(handler: Callable[[web.Request], Awaitable[web.Response]]) -> Coordinate:
    app = web.Application()
    app.router.add_get("/position", handler)
    async with TestServer(app) as server:
        service = LocationService(HttpLocationProvider(str(server.make_url("/position"))))
        return await service.acquire()


def test_http_provider_reads_position() -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.json_response({"lat": 35.17085, "lng": 136.88125})

    assert asyncio.run(acquire_over_http(handler)) == DESK


@pytest.mark.parametrize(
    "make_response",
    [
        lambda: web.Response(text="<html>oops</html>", content_type="text/html"),
        lambda: web.json_response({"latitude": 35.17}),
        lambda: web.Response(status=503, text="upstream down"),
    ],
    ids=["not-json", "missing-fields", "server-error"],
)
def test_http_provider_failures_are_unavailable(make_response: Callable[[], web.Response]) -> None:
    async def handler(_: web.Request) -> web.Response:
        return make_response()

    with pytest.raises(LocationUnavailable):
        asyncio.run(acquire_over_http(handler))


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def build_session(
    store: MemoryStore | JsonFileStore | None = None,
    position: Coordinate | None = DESK,
) -> tuple[PresenceSession, MapViewport, MapViewport]:
    state = LocalState(store if store is not None else MemoryStore())
    session = PresenceSession(
        SAMPLE_CAMPUS,
        create_sample_members(NOW),
        state,
        LocationService(StaticLocationProvider(position)),
        clock=lambda: NOW,
    )
    preview = MapViewport(name="preview")
    full = MapViewport(name="full", zoom=18)
    session.attach_viewport("preview", preview)
    session.attach_viewport("full", full)
    return session, preview, full


def test_register_then_restore_reconstructs_room(tmp_path: Path) -> None:
    store = JsonFileStore(tmp_path / "whereabouts.json")
    session, _, _ = build_session(store)
    session.save_profile(PROFILE)

    asyncio.run(session.acquire_location())
    outcome = session.locate()
    assert outcome.building is not None
    assert outcome.building.id == "bldg-main"

    ranked = session.select_floor("2F")
    assert [r.room.id for r in ranked] == ["m-201", "m-202"]
    session.select_room("m-201")
    record = session.register()

    restarted, preview, full = build_session(JsonFileStore(tmp_path / "whereabouts.json"))
    assert restarted.profile == PROFILE
    stored = restarted.current_record()
    assert stored is not None
    assert SAMPLE_CAMPUS.resolve(stored.building_id, stored.floor_label, stored.room_id) == SAMPLE_CAMPUS.resolve(
        record.building_id, record.floor_label, record.room_id
    )
    for viewport in (preview, full):
        assert len(viewport.markers_of(MarkerKind.PERSONAL_GPS)) == 1
        assert len(viewport.markers_of(MarkerKind.PERSONAL_REGISTERED)) == 1

    assert restarted.current_location == DESK
    restored = restarted.locate()
    assert restored.building is not None
    assert restored.building.id == "bldg-main"
    assert [r.room.id for r in restarted.select_floor("2F")] == ["m-201", "m-202"]


def test_acquire_failure_leaves_state_untouched() -> None:
    session, preview, _ = build_session(position=None)
    with pytest.raises(LocationUnavailable):
        asyncio.run(session.acquire_location())
    assert session.current_location is None
    assert preview.markers_of(MarkerKind.PERSONAL_GPS) == []


def test_locate_outside_campus_hints_nearest_building() -> None:
    session, _, _ = build_session()
    outcome = session.locate(PARKING)
    assert outcome.needs_manual_entry
    assert outcome.nearest is not None
    assert outcome.nearest[0].id == "bldg-main"


def test_register_requires_profile_and_selection() -> None:
    session, _, _ = build_session()
    with pytest.raises(RegistrationError):
        session.register()
    session.save_profile(PROFILE)
    with pytest.raises(RegistrationError):
        session.register()
    with pytest.raises(RegistrationError):
        session.register_manual("   ")


def test_manual_registration_stores_no_coordinates() -> None:
    session, preview, _ = build_session()
    session.save_profile(PROFILE)
    asyncio.run(session.acquire_location())

    record = session.register_manual("Client office")
    assert record.is_manual
    assert record.coordinates is None
    assert record.manual_location_name == "Client office"
    (registered,) = preview.markers_of(MarkerKind.PERSONAL_REGISTERED)
    assert registered.coordinate == DESK


def test_toggles_apply_to_every_viewport() -> None:
    session, preview, full = build_session()
    assert preview.markers_of(MarkerKind.MEMBER, MarkerKind.CLUSTER)

    assert session.toggle_members() is False
    assert preview.markers_of(MarkerKind.MEMBER, MarkerKind.CLUSTER) == []
    assert full.markers_of(MarkerKind.MEMBER, MarkerKind.CLUSTER) == []

    assert session.toggle_buildings() is False
    for viewport in (preview, full):
        assert not any(viewport.layers[layer] for layer in BUILDING_LAYERS)


def test_zoom_and_filter_rebuild_member_layer() -> None:
    session, preview, full = build_session()
    assert len(full.markers_of(MarkerKind.MEMBER)) == 5

    preview.set_zoom(10)
    assert len(preview.markers_of(MarkerKind.CLUSTER)) == 2

    session.set_group_filter("開発部")
    assert len(full.markers_of(MarkerKind.MEMBER)) == 2
    assert len(preview.markers_of(MarkerKind.MEMBER, MarkerKind.CLUSTER)) == 2
    assert session.groups == ["企画部", "営業部", "開発部"]


def test_reattaching_a_viewport_keeps_one_zoom_subscription(monkeypatch: pytest.MonkeyPatch) -> None:
    session, _, _ = build_session()
    old = session.viewport("full")
    viewport = MapViewport(name="full", zoom=18)
    for _ in range(3):
        session.attach_viewport("full", viewport)

    calls: list[str] = []
    refresh = session.markers.refresh_member_layer

    def counting_refresh(name: str, *args: object) -> object:
        calls.append(name)
        return refresh(name, *args)

    monkeypatch.setattr(session.markers, "refresh_member_layer", counting_refresh)

    viewport.set_zoom(10)
    assert calls == ["full"]

    old.set_zoom(12)
    assert calls == ["full"]


def test_detached_viewport_stops_tracking_zoom() -> None:
    session, preview, _ = build_session()
    session.detach_viewport("preview")

    preview.set_zoom(10)
    assert preview.markers == []
    with pytest.raises(KeyError):
        session.viewport("preview")
    session.detach_viewport("preview")
