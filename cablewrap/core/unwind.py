"""Auto-unwind: drive the axis backwards in bounded steps, then home and zero.

Steps walk the azimuth back along a high altitude circle, which encloses the
zenith, so every step is a real rotation of the azimuth axis. Targets are
converted to RA/Dec for the mount with the sidereal time of a fresh sample.

The maneuver owns the accumulator while it runs: suppression stops the motion
classifier from adding its own deltas for the slews commanded here, and the
remaining rotation is mirrored into the total by hand after each confirmed step.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from cablewrap.config import (
    UNWIND_ALTITUDE_DEG,
    UNWIND_MAX_STEPS,
    UNWIND_MIN_REMAINING_DEG,
    UNWIND_STEP_DEG,
    UNWIND_STEP_DELAY_SEC,
)
from cablewrap.core.accumulator import RotationAccumulator
from cablewrap.core.azimuth import (
    altaz_to_radec,
    estimate_azimuth,
    normalize_degrees,
    site_is_configured,
)
from cablewrap.core.errors import ManeuverCommandFailure, ManeuverIncomplete
from cablewrap.models.mount import PositionSample

logger = logging.getLogger(__name__)


class UnwindPhase(str, Enum):
    IDLE = "idle"
    SAFE_POSITIONING = "safe_positioning"
    STEPPING = "stepping"
    HOMING = "homing"
    COMMITTING = "committing"
    CANCELLED = "cancelled"
    FAILED = "failed"


class UnwindOutcome(str, Enum):
    COMPLETED = "completed"
    ALREADY_UNWOUND = "already_unwound"
    CANCELLED = "cancelled"
    BUSY = "busy"


@dataclass
class UnwindResult:
    outcome: UnwindOutcome
    steps: int = 0
    start_degrees: float = 0.0
    remaining_degrees: float = 0.0


class UnwindManeuver:
    """Cancellable multi-step unwind. At most one run in flight."""

    def __init__(
        self,
        accumulator: RotationAccumulator,
        mount,
        *,
        step_degrees: float = UNWIND_STEP_DEG,
        min_remaining_degrees: float = UNWIND_MIN_REMAINING_DEG,
        max_steps: int = UNWIND_MAX_STEPS,
        step_delay_sec: float = UNWIND_STEP_DELAY_SEC,
        altitude_degrees: float = UNWIND_ALTITUDE_DEG,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._acc = accumulator
        self._mount = mount
        self._step_degrees = step_degrees
        self._min_remaining = min_remaining_degrees
        self._max_steps = max_steps
        self._step_delay = step_delay_sec
        self._altitude = altitude_degrees
        self._sleep = sleep
        self._in_flight = False
        self.phase = UnwindPhase.IDLE

    @property
    def in_progress(self) -> bool:
        return self._in_flight

    async def run(self, cancel: Optional[asyncio.Event] = None) -> UnwindResult:
        """Unwind to zero. Raises UnwindError subclasses on command failure."""
        with self._acc.lock:
            if self._in_flight:
                logger.info("Unwind already in progress; ignoring request")
                return UnwindResult(UnwindOutcome.BUSY, remaining_degrees=self._acc.total_degrees)
            start = self._acc.total_degrees
            if abs(start) < self._min_remaining:
                logger.info("Cable wrap near zero (%+.1f°); nothing to unwind", start)
                self._acc.reset(f"Unwind skipped: already near zero ({start:+.1f}°)")
                self.phase = UnwindPhase.IDLE
                return UnwindResult(UnwindOutcome.ALREADY_UNWOUND, start_degrees=start)
            self._in_flight = True
            self._acc.suppressed = True
        cancel = cancel or asyncio.Event()
        try:
            return await self._unwind(start, cancel)
        finally:
            with self._acc.lock:
                self._acc.suppressed = False
                self._in_flight = False

    async def _command(self, action: Awaitable[bool], what: str, remaining: float) -> None:
        try:
            ok = await action
        except Exception as e:
            raise self._failure(f"{what} failed: {e}", remaining) from e
        if not ok:
            raise self._failure(f"{what} failed", remaining)

    def _failure(self, message: str, remaining: float) -> ManeuverCommandFailure:
        self.phase = UnwindPhase.FAILED
        logger.error("Auto-unwind aborted at %+.1f°: %s", remaining, message)
        self._acc.append_history(remaining, f"Auto-unwind failed: {message}")
        self._acc.persist()
        return ManeuverCommandFailure(message, remaining)

    async def _read_position(self, remaining: float) -> PositionSample:
        try:
            sample = await self._mount.read_sample()
        except Exception as e:
            raise self._failure(f"Reading mount position failed: {e}", remaining) from e
        if not sample.connected:
            raise self._failure("Mount not connected", remaining)
        if not site_is_configured(sample.site_lat_degrees, sample.site_lon_degrees):
            raise self._failure("Site location not set; cannot plan unwind slews", remaining)
        return sample

    def _target(self, sample: PositionSample, azimuth: float):
        return altaz_to_radec(self._altitude, azimuth, sample.lst_hours, sample.site_lat_degrees)

    async def _unwind(self, start: float, cancel: asyncio.Event) -> UnwindResult:
        logger.info("Starting auto-unwind from %+.1f°", start)
        remaining = start

        self.phase = UnwindPhase.SAFE_POSITIONING
        sample = await self._read_position(remaining)
        azimuth = estimate_azimuth(
            sample.ra_hours,
            sample.dec_degrees,
            sample.lst_hours,
            sample.site_lat_degrees,
            sample.site_lon_degrees,
            sample.raw_azimuth_degrees,
        )
        ra, dec = self._target(sample, azimuth)
        logger.info("Safe position: alt %.0f° az %.1f°", self._altitude, azimuth)
        await self._command(self._mount.slew_to(ra, dec), "Safe positioning slew", remaining)

        self.phase = UnwindPhase.STEPPING
        steps = 0
        while abs(remaining) >= self._min_remaining and steps < self._max_steps:
            if cancel.is_set():
                self.phase = UnwindPhase.CANCELLED
                logger.info("Auto-unwind cancelled at %+.1f° after %d steps", remaining, steps)
                self._acc.append_history(remaining, f"Auto-unwind cancelled at {remaining:+.1f}°")
                self._acc.persist()
                return UnwindResult(UnwindOutcome.CANCELLED, steps, start, remaining)
            step = min(self._step_degrees, abs(remaining))
            # positive total = wound by increasing azimuth
            azimuth = normalize_degrees(azimuth - math.copysign(step, remaining))
            sample = await self._read_position(remaining)
            ra, dec = self._target(sample, azimuth)
            await self._command(self._mount.slew_to(ra, dec), f"Unwind step {steps + 1}", remaining)
            remaining -= math.copysign(step, remaining)
            steps += 1
            self._acc.drive_to(remaining)
            logger.info("Unwind step %d: %+.1f° remaining", steps, remaining)
            await self._sleep(self._step_delay)

        if abs(remaining) >= self._min_remaining:
            self.phase = UnwindPhase.FAILED
            message = f"step budget ({self._max_steps}) exhausted with {remaining:+.1f}° remaining"
            logger.error("Auto-unwind incomplete: %s", message)
            self._acc.append_history(remaining, f"Auto-unwind incomplete: {message}")
            self._acc.persist()
            raise ManeuverIncomplete(message, remaining)

        self.phase = UnwindPhase.HOMING
        await self._command(self._mount.go_home(), "Homing", remaining)

        self.phase = UnwindPhase.COMMITTING
        self._acc.reset(
            f"Auto-unwind complete ({start:+.1f}° unwound in {steps} steps)", by_maneuver=True
        )
        self.phase = UnwindPhase.IDLE
        logger.info("Auto-unwind complete after %d steps", steps)
        return UnwindResult(UnwindOutcome.COMPLETED, steps, start, 0.0)
