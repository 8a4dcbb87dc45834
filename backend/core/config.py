"""Centralised application tunables.

Every magic number that controls location resolution, clustering and
marker presentation lives here. Create a custom ``AppConfig`` to tweak
values for testing::

    cfg = AppConfig(room_radius_m=20.0)
    session = PresenceSession(topology, members, store, config=cfg)
"""

from dataclasses import dataclass, field
from pathlib import Path

from core.models import Coordinate


@dataclass(frozen=True)
class AppConfig:
    """All tunables, grouped by category."""

    # --- Room ranking ---
    room_radius_m: float = 50.0

    # --- Clustering zoom thresholds ---
    building_cluster_max_zoom: float = 12.0  # below this, cluster per building
    individual_pin_min_zoom: float = 16.0  # at or above this, no clustering

    # --- Staleness fading ---
    fresh_age_hours: float = 1.0
    stale_age_hours: float = 24.0
    fresh_opacity: float = 1.0
    aging_opacity: float = 0.6
    stale_opacity: float = 0.3

    # --- Pin layout ---
    display_offset_scale_deg: float = 0.00001  # degrees per display-offset unit
    cluster_label_cap: int = 99

    # --- Geolocation ---
    location_timeout_s: float = 10.0
    location_max_age_s: float = 300.0

    # --- Map defaults ---
    default_center: Coordinate = field(default_factory=lambda: Coordinate(lat=35.170915, lng=136.881537))
    default_zoom: float = 14.0
    focus_zoom: float = 16.0  # zoom used when centring on the user's fix

    # --- Sources ---
    # None means "use the bundled sample campus"
    topology_source: str | None = None
    members_source: str | None = None
    store_path: Path | None = None
    position_source: str | None = None  # URL answering {"lat", "lng"}; None means no provider

    # --- Server ---
    host: str = "127.0.0.1"
    port: int = 8000


DEFAULT = AppConfig()
