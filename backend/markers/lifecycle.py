"""MarkerLifecycleManager - keeps rendered markers in step with logical marker state.

Each attached viewport owns three marker slots: the personal GPS pin, the
personal registered pin and the member layer (pins and clusters). Every
operation removes what a slot currently holds before drawing anew, so a
viewport never carries duplicate or orphaned markers.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from core.config import DEFAULT, AppConfig
from core.models import CampusTopology, ClusterGroup, Coordinate, PresenceRecord
from markers.popups import PopupPresenter
from markers.viewport import MarkerElement, MarkerHandle, Viewport
from presence.presentation import MarkerIdentity, MarkerKind, MarkerSpec, marker_specs, personal_spec
from presence.registration import registered_coordinate

logger = logging.getLogger(__name__)


@dataclass
class _Slots:
    viewport: Viewport
    gps: MarkerHandle | None = None
    registered: MarkerHandle | None = None
    members: list[MarkerHandle] = field(default_factory=list)


class MarkerLifecycleManager:
    """Owns every marker the application draws, across all attached viewports."""

    def __init__(self, popups: PopupPresenter, config: AppConfig = DEFAULT) -> None:
        self.popups = popups
        self.config = config
        self._slots: dict[str, _Slots] = {}

    # --- Viewports ---

    def attach(self, name: str, viewport: Viewport) -> None:
        if name in self._slots:
            self.detach(name)
        self._slots[name] = _Slots(viewport=viewport)

    def detach(self, name: str) -> None:
        slots = self._slots.pop(name, None)
        if slots is None:
            return
        for handle in [slots.gps, slots.registered, *slots.members]:
            if handle is not None:
                slots.viewport.remove_marker(handle)

    @property
    def viewport_names(self) -> list[str]:
        return list(self._slots)

    def _get(self, name: str) -> _Slots:
        try:
            return self._slots[name]
        except KeyError:
            raise KeyError(f"no viewport attached as {name!r}") from None

    # --- Personal markers ---

    def show_personal_gps(self, name: str, coordinate: Coordinate, identity: MarkerIdentity) -> MarkerHandle:
        self.remove_personal_gps(name)
        slots = self._get(name)
        slots.gps = self._draw(slots, personal_spec(MarkerKind.PERSONAL_GPS, coordinate, identity))
        return slots.gps

    def show_personal_registered(self, name: str, coordinate: Coordinate, identity: MarkerIdentity) -> MarkerHandle:
        self.remove_personal_registered(name)
        slots = self._get(name)
        slots.registered = self._draw(slots, personal_spec(MarkerKind.PERSONAL_REGISTERED, coordinate, identity))
        return slots.registered

    def remove_personal_gps(self, name: str) -> None:
        slots = self._get(name)
        if slots.gps is not None:
            slots.viewport.remove_marker(slots.gps)
            slots.gps = None

    def remove_personal_registered(self, name: str) -> None:
        slots = self._get(name)
        if slots.registered is not None:
            slots.viewport.remove_marker(slots.registered)
            slots.registered = None

    # --- Member layer ---

    def refresh_member_layer(
        self,
        name: str,
        groups: Sequence[ClusterGroup],
        now: datetime | None = None,
    ) -> list[MarkerHandle]:
        """Full rebuild: drop every member/cluster marker, then draw one per group."""
        self.clear_member_layer(name)
        slots = self._get(name)
        for spec in marker_specs(groups, now or datetime.now(UTC), self.config):
            slots.members.append(self._draw(slots, spec))
        logger.debug("Viewport %s: drew %d member markers", name, len(slots.members))
        return list(slots.members)

    def clear_member_layer(self, name: str) -> None:
        slots = self._get(name)
        for handle in slots.members:
            slots.viewport.remove_marker(handle)
        slots.members = []

    # --- Restoration ---

    def restore(
        self,
        name: str,
        record: PresenceRecord | None,
        topology: CampusTopology,
        identity: MarkerIdentity,
    ) -> None:
        """Rebuild personal markers from a stored presence record without a new fix.

        The GPS pin comes back for non-manual records that carry coordinates.
        The registered pin comes back at the room centre when the record still
        resolves against the topology; otherwise it is silently left off.
        """
        if record is None:
            return
        if not record.is_manual and record.coordinates is not None:
            self.show_personal_gps(name, record.coordinates, identity)
        if record.is_manual:
            return
        coordinate = registered_coordinate(record, topology)
        if coordinate is None:
            logger.info("Viewport %s: stored presence no longer resolves, registered marker not shown", name)
            return
        self.show_personal_registered(name, coordinate, identity)

    # --- Introspection ---

    def gps_handle(self, name: str) -> MarkerHandle | None:
        return self._get(name).gps

    def registered_handle(self, name: str) -> MarkerHandle | None:
        return self._get(name).registered

    # --- Drawing ---

    def _draw(self, slots: _Slots, spec: MarkerSpec) -> MarkerHandle:
        element = MarkerElement(spec=spec, on_click=self._click_action(spec))
        return slots.viewport.add_marker(element, spec.coordinate)

    def _click_action(self, spec: MarkerSpec) -> Callable[[], None] | None:
        group = spec.group
        match spec.kind:
            case MarkerKind.MEMBER if group is not None:
                member = group.members[0]
                return lambda: self.popups.show_member(member)
            case MarkerKind.CLUSTER if group is not None:
                return lambda: self.popups.show_cluster(group)
            case _:
                return None
