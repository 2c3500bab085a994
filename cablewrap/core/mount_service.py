"""Mount collaborators: position samples in, slew/home commands out.

AlpacaMount talks to an ASCOM Alpaca telescope through alpyca; its calls are
blocking HTTP, so they run in a worker thread. SimulatedMount keeps an
in-memory sample for development without hardware.
"""
import asyncio
import logging
import threading
import time
from dataclasses import replace
from typing import List, Optional, Tuple

from alpaca.telescope import Telescope

from cablewrap.config import (
    ALPACA_ADDRESS,
    ALPACA_DEVICE_NUMBER,
    HOME_TIMEOUT_SEC,
    MOUNT_POLL_SEC,
    SIMULATE_HARDWARE,
    SLEW_TIMEOUT_SEC,
)
from cablewrap.core.errors import NotConnectedError
from cablewrap.models.mount import PositionSample

logger = logging.getLogger(__name__)


class AlpacaMount:
    """ASCOM Alpaca telescope as sample source and motion command target."""

    def __init__(
        self,
        address: str = ALPACA_ADDRESS,
        device_number: int = ALPACA_DEVICE_NUMBER,
        slew_timeout_sec: float = SLEW_TIMEOUT_SEC,
        home_timeout_sec: float = HOME_TIMEOUT_SEC,
    ) -> None:
        self._telescope = Telescope(address, device_number)
        self._slew_timeout = slew_timeout_sec
        self._home_timeout = home_timeout_sec
        logger.info("Alpaca mount at %s, device %d", address, device_number)

    def _read_blocking(self) -> PositionSample:
        t = self._telescope
        try:
            if not t.Connected:
                return PositionSample.disconnected()
            return PositionSample(
                connected=True,
                slewing=bool(t.Slewing),
                tracking_enabled=bool(t.Tracking),
                at_home=bool(t.AtHome),
                ra_hours=float(t.RightAscension),
                dec_degrees=float(t.Declination),
                lst_hours=float(t.SiderealTime),
                site_lat_degrees=float(t.SiteLatitude),
                site_lon_degrees=float(t.SiteLongitude),
                raw_azimuth_degrees=float(t.Azimuth),
            )
        except Exception as e:
            raise NotConnectedError(f"Alpaca read failed: {e}") from e

    async def read_sample(self) -> PositionSample:
        return await asyncio.to_thread(self._read_blocking)

    async def _wait_until(self, predicate, timeout: float, what: str) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if await asyncio.to_thread(predicate):
                return True
            await asyncio.sleep(MOUNT_POLL_SEC)
        logger.error("%s timed out after %.0fs", what, timeout)
        return False

    async def slew_to(self, ra_hours: float, dec_degrees: float) -> bool:
        """Slew and wait for the mount to report it has stopped slewing."""
        logger.info("Slew to RA %.3fh Dec %+.2f°", ra_hours, dec_degrees)
        t = self._telescope
        try:
            await asyncio.to_thread(t.SlewToCoordinatesAsync, ra_hours, dec_degrees)
        except Exception as e:
            logger.error("Slew command rejected: %s", e)
            return False
        return await self._wait_until(lambda: not t.Slewing, self._slew_timeout, "Slew")

    async def go_home(self) -> bool:
        """Send the mount home and wait until it reports AtHome."""
        logger.info("Homing mount")
        t = self._telescope
        try:
            await asyncio.to_thread(t.FindHome)
        except Exception as e:
            logger.error("Home command rejected: %s", e)
            return False
        return await self._wait_until(lambda: bool(t.AtHome), self._home_timeout, "Home")


class SimulatedMount:
    """In-memory mount. Commands move it instantly after an optional delay."""

    HOME_POSITION: Tuple[float, float] = (0.0, 90.0)

    def __init__(self, sample: Optional[PositionSample] = None, command_delay_sec: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._sample = sample or PositionSample(connected=True, site_lat_degrees=45.0)
        self._command_delay = command_delay_sec
        self.commands: List[Tuple[str, float, float]] = []

    def get_sample(self) -> PositionSample:
        with self._lock:
            return self._sample

    def set_sample(self, **fields) -> PositionSample:
        """For development: overwrite fields of the simulated sample."""
        with self._lock:
            self._sample = replace(self._sample, **fields)
            return self._sample

    async def read_sample(self) -> PositionSample:
        return self.get_sample()

    async def slew_to(self, ra_hours: float, dec_degrees: float) -> bool:
        self.commands.append(("slew", ra_hours, dec_degrees))
        self.set_sample(slewing=True, at_home=False)
        await asyncio.sleep(self._command_delay)
        self.set_sample(slewing=False, ra_hours=ra_hours % 24.0, dec_degrees=dec_degrees)
        return True

    async def go_home(self) -> bool:
        self.commands.append(("home",) + self.HOME_POSITION)
        await asyncio.sleep(self._command_delay)
        ra, dec = self.HOME_POSITION
        self.set_sample(slewing=False, tracking_enabled=False, at_home=True, ra_hours=ra, dec_degrees=dec)
        return True


def create_mount():
    """Simulated mount when CABLEWRAP_SIMULATE_HARDWARE is set, else Alpaca."""
    if SIMULATE_HARDWARE:
        logger.info("Using simulated mount (CABLEWRAP_SIMULATE_HARDWARE=1)")
        return SimulatedMount()
    return AlpacaMount()
