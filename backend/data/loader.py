"""Topology and member-presence documents: reading, fetching and parsing."""

import json
import logging
from pathlib import Path
from typing import Any

import aiohttp

from core.models import (
    Building,
    CampusTopology,
    Coordinate,
    DisplayOffset,
    Floor,
    MemberLocation,
    MemberPresence,
    MemberStatus,
    Room,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

BUILDING_COLORS: list[str] = [
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#96CEB4",
    "#FFEAA7",
    "#DDA0DD",
    "#98D8C8",
    "#F7DC6F",
    "#BB8FCE",
    "#85C1E9",
]


class DocumentError(ValueError):
    """A topology document is missing required structure."""


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def load_document(path: str | Path) -> dict[str, Any]:
    with Path(path).open(encoding="utf-8") as f:
        data: dict[str, Any] = json.load(f)
    return data


async def fetch_document(url: str) -> dict[str, Any]:
    """GET a JSON object. HTTP errors propagate as ``aiohttp.ClientResponseError``."""
    async with aiohttp.ClientSession() as session, session.get(url) as response:
        response.raise_for_status()
        try:
            data = await response.json(content_type=None)
        except ValueError as exc:
            raise DocumentError(f"{url} did not return JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DocumentError(f"{url} returned {type(data).__name__}, expected an object")
    return data


async def read_source(source: str) -> dict[str, Any]:
    """Fetch ``source`` over HTTP when it looks like a URL, otherwise read it from disk."""
    if source.startswith(("http://", "https://")):
        return await fetch_document(source)
    return load_document(source)


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------


def parse_topology(doc: dict[str, Any]) -> CampusTopology:
    """Build the static topology. Structural problems raise ``DocumentError``."""
    try:
        buildings = [_parse_building(b) for b in doc["buildings"]]
    except (KeyError, TypeError, ValueError) as exc:
        raise DocumentError(f"malformed building topology: {exc!r}") from exc
    logger.info("Loaded %d buildings", len(buildings))
    return CampusTopology(buildings=buildings)


def _parse_building(raw: dict[str, Any]) -> Building:
    return Building(
        id=str(raw["id"]),
        name=str(raw.get("name_ja") or raw["id"]),
        polygon=_parse_polygon(raw.get("polygon", [])),
        floors=[
            Floor(label=str(f["label"]), rooms=[_parse_room(r) for r in f.get("rooms", [])])
            for f in raw.get("floors", [])
        ],
    )


def _parse_room(raw: dict[str, Any]) -> Room:
    return Room(
        id=str(raw["id"]),
        name=str(raw.get("name_ja") or raw["id"]),
        usage=str(raw.get("usage") or ""),
        polygon=_parse_polygon(raw.get("polygon", [])),
    )


def _parse_polygon(raw: list[dict[str, Any]]) -> list[Coordinate]:
    return [_parse_coordinate(p) for p in raw]


def _parse_coordinate(raw: dict[str, Any]) -> Coordinate:
    return Coordinate(lat=float(raw["lat"]), lng=float(raw["lng"]))


def buildings_geojson(topology: CampusTopology) -> dict[str, Any]:
    """FeatureCollection of building outlines for the map's building layers."""
    features: list[dict[str, Any]] = []
    for index, building in enumerate(topology.buildings):
        features.append(
            {
                "type": "Feature",
                "properties": {
                    "id": building.id,
                    "name": building.name,
                    "color": BUILDING_COLORS[index % len(BUILDING_COLORS)],
                },
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[p.lng, p.lat] for p in building.polygon]],
                },
            }
        )
    return {"type": "FeatureCollection", "features": features}


# ---------------------------------------------------------------------------
# Member presence
# ---------------------------------------------------------------------------


def parse_members(doc: dict[str, Any]) -> list[MemberPresence]:
    """Parse a member snapshot leniently.

    Records without an id or username are dropped. Records whose location
    cannot be read are kept with ``location=None`` so downstream consumers
    can decide what to do with them.
    """
    members: list[MemberPresence] = []
    dropped = 0
    no_location = 0
    for raw in doc.get("members", []):
        if not isinstance(raw, dict) or not raw.get("id") or not raw.get("username"):
            dropped += 1
            continue
        location = _parse_member_location(raw.get("location"))
        if location is None:
            no_location += 1
        groups = raw.get("groups") or []
        members.append(
            MemberPresence(
                id=str(raw["id"]),
                username=str(raw["username"]),
                status=MemberStatus.parse(raw.get("status")),
                groups=frozenset(str(g) for g in groups) if isinstance(groups, list) else frozenset(),
                location=location,
                icon_url=raw.get("iconUrl") or None,
                note=raw.get("note") or None,
            )
        )
    if dropped or no_location:
        logger.warning("Member snapshot: dropped %d records, %d without a usable location", dropped, no_location)
    return members


def _parse_member_location(raw: Any) -> MemberLocation | None:
    if not isinstance(raw, dict):
        return None
    try:
        offset = raw.get("display_offset") or {}
        return MemberLocation(
            coordinates=_parse_coordinate(raw["coordinates"]),
            building_id=str(raw["building_id"]),
            floor_label=_optional_str(raw.get("floor_label")),
            room_id=_optional_str(raw.get("room_id")),
            timestamp=parse_timestamp(str(raw["timestamp"])),
            display_offset=DisplayOffset(x=float(offset.get("x", 0.0)), y=float(offset.get("y", 0.0))),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.debug("Unreadable member location %r: %s", raw, exc)
        return None


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)
