"""Classify mount samples into motion phases and feed rotation deltas to the accumulator.

Each phase measures rotation its own way:

- slewing: the committed delta is post-slew azimuth minus pre-slew azimuth.
  Per-tick deltas are summed only as a diagnostic because the azimuth rate
  blows up near the zenith and the mount reports waypoint spikes.
- tracking: azimuth sampled every few seconds; jumps above a small cap are
  re-solves, not sidereal drift, and are rejected.
- stopped: one catch-up delta on entry, then the home-arrival snap.
"""
import logging
import time
from typing import Callable, Optional

from cablewrap.config import (
    AMBIGUOUS_SLEW_DEG,
    CATCH_UP_MIN_DEG,
    DIRECTION_CONFIRM_HOURS,
    HOME_SETTLE_SEC,
    SLEW_SPIKE_CAP_DEG,
    TRACKING_SAMPLE_INTERVAL_SEC,
    TRACKING_SPIKE_CAP_DEG,
)
from cablewrap.core.accumulator import RotationAccumulator
from cablewrap.core.azimuth import estimate_azimuth, fold_degrees, fold_hours
from cablewrap.core.errors import SensorArtifact
from cablewrap.models.mount import (
    Disconnected,
    MotionPhase,
    PositionSample,
    Slewing,
    Stopped,
    Tracking,
)

logger = logging.getLogger(__name__)


def resolve_slew_delta(before_az: float, after_az: float, direction_sign: Optional[int]) -> float:
    """Signed azimuth change over a whole slew.

    A folded delta near +/-180 could be either way round; a confirmed direction
    picks the representation with the matching sign.
    """
    delta = fold_degrees(after_az - before_az)
    if direction_sign and abs(delta) > AMBIGUOUS_SLEW_DEG and delta * direction_sign < 0:
        delta += 360.0 * direction_sign
    return delta


class MotionClassifier:
    """State machine over Disconnected / Slewing / Tracking / Stopped.

    Not reentrant: process() runs under the accumulator lock, one sample at a time.
    """

    def __init__(
        self,
        accumulator: RotationAccumulator,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._acc = accumulator
        self._clock = clock
        self.phase: MotionPhase = Disconnected()
        self.last_sample: Optional[PositionSample] = None
        self.rejected_count = 0

    @property
    def _state(self):
        return self._acc.state

    def process(self, sample: PositionSample) -> MotionPhase:
        """Classify one sample, apply whatever delta its phase yields, return the new phase."""
        with self._acc.lock:
            self.last_sample = sample
            now = self._clock()
            if not sample.connected:
                self._enter_disconnected()
                return self.phase

            azimuth = estimate_azimuth(
                sample.ra_hours,
                sample.dec_degrees,
                sample.lst_hours,
                sample.site_lat_degrees,
                sample.site_lon_degrees,
                sample.raw_azimuth_degrees,
            )
            if sample.slewing:
                self._on_slewing(sample, azimuth)
                return self.phase

            if isinstance(self.phase, Slewing):
                self._commit_slew(self.phase, azimuth)
            if sample.tracking_enabled:
                self._on_tracking(azimuth, now)
            else:
                self._on_stopped(sample, azimuth, now)
            return self.phase

    def _apply(self, degrees: float) -> None:
        self._acc.apply_delta(degrees)

    def _reject(self, phase: str, delta: float, cap: float) -> None:
        self.rejected_count += 1
        logger.warning("Sensor artifact: %s", SensorArtifact(phase, delta, cap))

    def _enter_disconnected(self) -> None:
        if isinstance(self.phase, Slewing):
            logger.warning(
                "Disconnected mid-slew; discarding uncommitted slew (%+.1f° by ticks)",
                self.phase.tick_degrees,
            )
        if not isinstance(self.phase, Disconnected):
            logger.info("Mount disconnected; clearing baselines")
        self.phase = Disconnected()
        self._state.clear_baselines()

    def _on_slewing(self, sample: PositionSample, azimuth: float) -> None:
        phase = self.phase
        state = self._state
        if not isinstance(phase, Slewing):
            baseline = state.last_known_azimuth if state.last_known_azimuth is not None else azimuth
            phase = Slewing(
                pre_slew_ra=sample.ra_hours,
                pre_slew_total=state.total_degrees,
                az_baseline=baseline,
                last_tick_azimuth=baseline,
            )
            self.phase = phase
            logger.info(
                "Slew started at RA %.3fh, az %.1f°, total %.1f°",
                sample.ra_hours,
                baseline,
                state.total_degrees,
            )
        state.last_known_ra = sample.ra_hours

        if phase.direction_sign is None:
            ra_delta = fold_hours(sample.ra_hours - phase.pre_slew_ra)
            if abs(ra_delta) >= DIRECTION_CONFIRM_HOURS:
                # RA decreasing = clockwise (northern hemisphere convention)
                phase.direction_sign = 1 if ra_delta < 0 else -1
                logger.debug("Slew direction confirmed: %+d", phase.direction_sign)

        tick = fold_degrees(azimuth - phase.last_tick_azimuth)
        if abs(tick) > SLEW_SPIKE_CAP_DEG:
            phase.rejected_ticks += 1
            logger.debug("Slew tick %+.1f° over %.1f° cap ignored", tick, SLEW_SPIKE_CAP_DEG)
        else:
            phase.tick_degrees += tick
        phase.last_tick_azimuth = azimuth

    def _commit_slew(self, phase: Slewing, azimuth: float) -> None:
        delta = resolve_slew_delta(phase.az_baseline, azimuth, phase.direction_sign)
        logger.info(
            "Slew finished: committing %+.1f° (ticks %+.1f°, %d rejected)",
            delta,
            phase.tick_degrees,
            phase.rejected_ticks,
        )
        self._apply(delta)
        self._state.last_known_ra = None
        self._state.last_known_azimuth = azimuth

    def _on_tracking(self, azimuth: float, now: float) -> None:
        state = self._state
        state.last_known_ra = None
        if not isinstance(self.phase, Tracking):
            logger.info("Tracking")
            self.phase = Tracking(last_sample_at=now)
            if state.last_known_azimuth is None:
                state.last_known_azimuth = azimuth
            return
        if now - self.phase.last_sample_at < TRACKING_SAMPLE_INTERVAL_SEC:
            return
        self.phase.last_sample_at = now
        if state.last_known_azimuth is None:
            state.last_known_azimuth = azimuth
            return
        delta = fold_degrees(azimuth - state.last_known_azimuth)
        state.last_known_azimuth = azimuth
        if abs(delta) > TRACKING_SPIKE_CAP_DEG:
            self._reject("tracking", delta, TRACKING_SPIKE_CAP_DEG)
            return
        self._apply(delta)

    def _on_stopped(self, sample: PositionSample, azimuth: float, now: float) -> None:
        state = self._state
        phase = self.phase
        if not isinstance(phase, Stopped):
            logger.info("Stopped")
            phase = Stopped()
            self.phase = phase
            if state.last_known_azimuth is not None:
                delta = fold_degrees(azimuth - state.last_known_azimuth)
                if abs(delta) > SLEW_SPIKE_CAP_DEG:
                    self._reject("stop catch-up", delta, SLEW_SPIKE_CAP_DEG)
                elif abs(delta) >= CATCH_UP_MIN_DEG:
                    logger.info("Stop catch-up: %+.2f°", delta)
                    self._apply(delta)
            state.last_known_azimuth = azimuth
        state.last_known_ra = None

        if not sample.at_home:
            phase.at_home = False
            phase.home_arrival_time = None
            phase.snapped = False
            return
        if not phase.at_home:
            phase.at_home = True
            phase.home_arrival_time = now
            logger.info("At home; waiting %.0fs to settle before snapping", HOME_SETTLE_SEC)
            return
        if phase.snapped or self._acc.suppressed:
            return
        if now - phase.home_arrival_time >= HOME_SETTLE_SEC:
            phase.snapped = True
            self._acc.snap()

    def restart(self) -> None:
        """Drop baselines and phase data after the unwind maneuver moved the axis itself."""
        with self._acc.lock:
            self.phase = Stopped()
            self._state.clear_baselines()
