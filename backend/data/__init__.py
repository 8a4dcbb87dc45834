"""Sample data, fixtures and document loading."""

from data.loader import (
    BUILDING_COLORS,
    DocumentError,
    buildings_geojson,
    parse_members,
    parse_topology,
    read_source,
)
from data.sample_campus import SAMPLE_CAMPUS, create_sample_campus, create_sample_members

__all__ = [
    "BUILDING_COLORS",
    "SAMPLE_CAMPUS",
    "DocumentError",
    "buildings_geojson",
    "create_sample_campus",
    "create_sample_members",
    "parse_members",
    "parse_topology",
    "read_source",
]
