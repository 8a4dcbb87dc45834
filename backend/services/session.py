"""PresenceSession - the explicit application context.

Holds everything the UI used to keep as loose globals: the current user, the
last position fix, the building/floor/room being selected, and the display
toggles. Components below it stay pure functions over what the session
passes in.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from core.config import DEFAULT, AppConfig
from core.models import (
    Building,
    CampusTopology,
    ClusterGroup,
    Coordinate,
    Floor,
    MemberPresence,
    PresenceRecord,
    Room,
    UserProfile,
)
from locating import RankedRoom, locate, nearest_building, rank
from markers.lifecycle import MarkerLifecycleManager
from markers.popups import PopupBoard
from markers.viewport import BUILDING_LAYERS, MapViewport
from presence.clusterer import ALL_GROUPS, cluster
from presence.presentation import MarkerIdentity
from presence.registration import RegistrationError, manual_record, registered_coordinate, room_record
from services.geolocation import LocationService
from services.storage import LocalState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocateOutcome:
    point: Coordinate
    building: Building | None
    nearest: tuple[Building, float] | None = None

    @property
    def needs_manual_entry(self) -> bool:
        return self.building is None


class PresenceSession:
    def __init__(
        self,
        topology: CampusTopology,
        members: Sequence[MemberPresence],
        state: LocalState,
        location_service: LocationService,
        config: AppConfig = DEFAULT,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.topology = topology
        self.members = list(members)
        self.state = state
        self.location_service = location_service
        self.config = config
        self._clock = clock

        self.popups = PopupBoard(topology)
        self.markers = MarkerLifecycleManager(self.popups, config)
        self._viewports: dict[str, MapViewport] = {}
        self._zoom_listeners: dict[str, Callable[[float], None]] = {}

        self.profile: UserProfile | None = state.load_profile()
        self.current_location: Coordinate | None = None
        self.selected_building: Building | None = None
        self.selected_floor: Floor | None = None
        self.selected_room: Room | None = None
        self.ranked_rooms: list[RankedRoom] = []

        self.show_buildings = True
        self.show_members = True
        self.group_filter = ALL_GROUPS

    # ------------------------------------------------------------------
    # Viewports
    # ------------------------------------------------------------------

    @property
    def identity(self) -> MarkerIdentity:
        if self.profile is None:
            return MarkerIdentity()
        return MarkerIdentity(username=self.profile.username, icon_url=self.profile.icon_url)

    def attach_viewport(self, name: str, viewport: MapViewport) -> None:
        """Register a viewport and bring it up to the current display state.

        Re-attaching under a name already in use detaches the previous
        viewport first, so each name holds exactly one zoom subscription.
        """
        self.detach_viewport(name)
        self.markers.attach(name, viewport)
        self._viewports[name] = viewport

        def on_zoom(zoom: float) -> None:
            self._on_zoom(name, zoom)

        viewport.on_zoom_change(on_zoom)
        self._zoom_listeners[name] = on_zoom
        for layer in BUILDING_LAYERS:
            viewport.set_layer_visibility(layer, self.show_buildings)
        self.restore_personal_markers(name)
        if self.show_members:
            self.refresh_members(name)

    def detach_viewport(self, name: str) -> None:
        viewport = self._viewports.pop(name, None)
        if viewport is None:
            return
        listener = self._zoom_listeners.pop(name, None)
        if listener is not None:
            viewport.off_zoom_change(listener)
        self.markers.detach(name)

    def viewport(self, name: str) -> MapViewport:
        try:
            return self._viewports[name]
        except KeyError:
            raise KeyError(f"no viewport attached as {name!r}") from None

    def restore_personal_markers(self, name: str) -> None:
        """Redraw the stored registration. A room record also seeds the current location if none is known."""
        record = self.state.load_record()
        if record is not None and not record.is_manual and self.current_location is None:
            self.current_location = record.coordinates
        self.markers.restore(name, record, self.topology, self.identity)

    def _on_zoom(self, name: str, zoom: float) -> None:
        if self.show_members:
            logger.debug("Viewport %s zoomed to %.1f", name, zoom)
            self.refresh_members(name)

    # ------------------------------------------------------------------
    # Location and selection
    # ------------------------------------------------------------------

    async def acquire_location(self) -> Coordinate:
        """Get a fix and centre every viewport on it. Failures leave the session unchanged."""
        coordinate = await self.location_service.acquire()
        self.current_location = coordinate
        for name, viewport in self._viewports.items():
            self.markers.show_personal_gps(name, coordinate, self.identity)
            viewport.fly_to(coordinate, self.config.focus_zoom)
        return coordinate

    def locate(self, point: Coordinate | None = None) -> LocateOutcome:
        point = point or self.current_location
        if point is None:
            raise RegistrationError("no position to locate")
        self.current_location = point
        building = locate(point, self.topology.buildings)
        self.selected_building = building
        self.selected_floor = None
        self.selected_room = None
        self.ranked_rooms = []
        if building is not None:
            return LocateOutcome(point=point, building=building)
        logger.info("No building contains %s, manual entry needed", point)
        return LocateOutcome(point=point, building=None, nearest=nearest_building(point, self.topology.buildings))

    def select_floor(self, label: str) -> list[RankedRoom]:
        if self.selected_building is None:
            raise RegistrationError("no building selected")
        if self.current_location is None:
            raise RegistrationError("no current location")
        floor = self.selected_building.floor(label)
        if floor is None:
            raise RegistrationError(f"building {self.selected_building.id} has no floor {label!r}")
        self.selected_floor = floor
        self.selected_room = None
        self.ranked_rooms = rank(self.current_location, floor, self.config.room_radius_m)
        return self.ranked_rooms

    def select_room(self, room_id: str) -> Room:
        if self.selected_floor is None:
            raise RegistrationError("no floor selected")
        room = self.selected_floor.room(room_id)
        if room is None:
            raise RegistrationError(f"floor {self.selected_floor.label} has no room {room_id!r}")
        self.selected_room = room
        return room

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self) -> PresenceRecord:
        record = room_record(
            self.profile,
            self.selected_building,
            self.selected_floor,
            self.selected_room,
            self.current_location,
            now=self._clock(),
        )
        self._store(record)
        return record

    def register_manual(self, location_name: str) -> PresenceRecord:
        record = manual_record(self.profile, location_name, now=self._clock())
        self._store(record)
        return record

    def _store(self, record: PresenceRecord) -> None:
        self.state.save_record(record)
        coordinate = registered_coordinate(record, self.topology, self.current_location)
        for name in self._viewports:
            if coordinate is None:
                self.markers.remove_personal_registered(name)
            else:
                self.markers.show_personal_registered(name, coordinate, self.identity)
        logger.info("Registered presence for %s (manual=%s)", record.user_id, record.is_manual)

    def current_record(self) -> PresenceRecord | None:
        return self.state.load_record()

    def save_profile(self, profile: UserProfile) -> UserProfile:
        profile.validate()
        profile.username = profile.username.strip()
        self.state.save_profile(profile)
        self.profile = profile
        self._redraw_personal_markers()
        return profile

    def _redraw_personal_markers(self) -> None:
        for name in self._viewports:
            gps = self.markers.gps_handle(name)
            if gps is not None:
                self.markers.show_personal_gps(name, gps.coordinate, self.identity)
            registered = self.markers.registered_handle(name)
            if registered is not None:
                self.markers.show_personal_registered(name, registered.coordinate, self.identity)

    # ------------------------------------------------------------------
    # Display toggles and the member layer
    # ------------------------------------------------------------------

    def toggle_buildings(self) -> bool:
        self.show_buildings = not self.show_buildings
        for viewport in self._viewports.values():
            for layer in BUILDING_LAYERS:
                viewport.set_layer_visibility(layer, self.show_buildings)
        return self.show_buildings

    def toggle_members(self) -> bool:
        self.show_members = not self.show_members
        for name in self._viewports:
            if self.show_members:
                self.refresh_members(name)
            else:
                self.markers.clear_member_layer(name)
        return self.show_members

    def set_group_filter(self, group: str | None) -> None:
        self.group_filter = group or ALL_GROUPS
        if self.show_members:
            for name in self._viewports:
                self.refresh_members(name)

    def refresh_members(self, name: str) -> None:
        viewport = self.viewport(name)
        groups = self.clusters(viewport.get_zoom())
        self.markers.refresh_member_layer(name, groups, self._clock())

    def clusters(self, zoom: float, group_filter: str | None = None) -> list[ClusterGroup]:
        return cluster(self.members, zoom, group_filter or self.group_filter, self.config)

    @property
    def groups(self) -> list[str]:
        """Every group name seen in the member snapshot, for the filter picker."""
        return sorted({g for m in self.members for g in m.groups})
