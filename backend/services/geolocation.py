"""Acquiring the user's position with a timeout, a cached fix and a busy guard."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import aiohttp

from core.config import DEFAULT, AppConfig
from core.models import Coordinate

logger = logging.getLogger(__name__)


class LocationUnavailable(Exception):
    """No fix could be obtained: denied, timed out, or no provider."""


class LocationBusy(Exception):
    """A location request is already in flight."""


class LocationProvider(Protocol):
    async def current_position(self) -> Coordinate: ...


@dataclass
class StaticLocationProvider:
    """Always answers with a fixed position. ``None`` behaves like a denied permission."""

    coordinate: Coordinate | None = None

    async def current_position(self) -> Coordinate:
        if self.coordinate is None:
            raise LocationUnavailable("position permission denied")
        return self.coordinate


@dataclass
class HttpLocationProvider:
    """Reads ``{"lat": ..., "lng": ...}`` from a positioning endpoint."""

    url: str

    async def current_position(self) -> Coordinate:
        async with aiohttp.ClientSession() as session, session.get(self.url) as response:
            response.raise_for_status()
            try:
                data = await response.json(content_type=None)
            except ValueError as exc:
                raise LocationUnavailable(f"position response is not JSON: {exc}") from exc
        try:
            return Coordinate(lat=float(data["lat"]), lng=float(data["lng"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise LocationUnavailable(f"malformed position response: {exc}") from exc


class LocationService:
    """One request at a time. A fix younger than ``max_age_s`` is reused without asking the provider."""

    def __init__(
        self,
        provider: LocationProvider | None,
        config: AppConfig = DEFAULT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.timeout_s = config.location_timeout_s
        self.max_age_s = config.location_max_age_s
        self._clock = clock
        self._busy = False
        self._cached: tuple[Coordinate, float] | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def last_fix(self) -> Coordinate | None:
        return self._cached[0] if self._cached is not None else None

    async def acquire(self) -> Coordinate:
        if self._busy:
            raise LocationBusy("location request already pending")
        if self._cached is not None:
            coordinate, taken_at = self._cached
            if self._clock() - taken_at <= self.max_age_s:
                logger.debug("Reusing cached fix %s", coordinate)
                return coordinate
        if self.provider is None:
            raise LocationUnavailable("no location provider configured")

        self._busy = True
        try:
            coordinate = await asyncio.wait_for(self.provider.current_position(), timeout=self.timeout_s)
        except TimeoutError as exc:
            logger.info("Location request timed out after %.1f s", self.timeout_s)
            raise LocationUnavailable("location request timed out") from exc
        except (OSError, aiohttp.ClientError) as exc:
            logger.info("Location provider failed: %s", exc)
            raise LocationUnavailable(str(exc)) from exc
        finally:
            self._busy = False

        self._cached = (coordinate, self._clock())
        return coordinate
