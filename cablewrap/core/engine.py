"""Cable wrap engine: one owned instance wiring classifier, accumulator, maneuver, and store.

Display and automation consumers get the engine handed to them; there is no
module-level instance.
"""
import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from cablewrap.config import POLL_INTERVAL_SEC, SAVE_INTERVAL_SEC
from cablewrap.core.accumulator import RotationAccumulator
from cablewrap.core.errors import NotConnectedError
from cablewrap.core.motion_classifier import MotionClassifier
from cablewrap.core.state_store import (
    clamp_threshold,
    load_settings,
    load_state,
    save_settings,
    save_state,
)
from cablewrap.core.unwind import UnwindManeuver, UnwindOutcome, UnwindResult
from cablewrap.models.mount import (
    Disconnected,
    MotionPhase,
    PositionSample,
    Slewing,
    Tracking,
    TrackingStatus,
)
from cablewrap.models.rotation import ThresholdCheck, WrapSnapshot

logger = logging.getLogger(__name__)


class CableWrapEngine:
    """Tracks cumulative rotation from mount samples and unwinds on request."""

    def __init__(
        self,
        mount,
        *,
        state_path: Optional[Path] = None,
        settings_path: Optional[Path] = None,
        clock: Callable[[], float] = time.monotonic,
        poll_interval_sec: float = POLL_INTERVAL_SEC,
        save_interval_sec: float = SAVE_INTERVAL_SEC,
        notify: Optional[Callable[[str], None]] = None,
        maneuver_options: Optional[dict] = None,
    ) -> None:
        self._mount = mount
        self._state_path = state_path
        self._settings_path = settings_path
        self._clock = clock
        self._poll_interval = poll_interval_sec
        self._save_interval = save_interval_sec

        state = load_state(state_path)
        settings = load_settings(settings_path)
        acc_kwargs = {"notify": notify} if notify is not None else {}
        self.accumulator = RotationAccumulator(
            state, settings, on_change=self.save_state, **acc_kwargs
        )
        self.accumulator.prune_history()
        self.classifier = MotionClassifier(self.accumulator, clock=clock)
        self.maneuver = UnwindManeuver(self.accumulator, mount, **(maneuver_options or {}))
        self._last_save = clock()
        logger.info(
            "Cable wrap engine started. Resuming from %.1f° total rotation.",
            state.total_degrees,
        )

    @property
    def mount(self):
        return self._mount

    @property
    def phase(self) -> MotionPhase:
        return self.classifier.phase

    @property
    def last_sample(self) -> Optional[PositionSample]:
        return self.classifier.last_sample

    # Sample path

    def process_sample(self, sample: PositionSample) -> MotionPhase:
        """Process one sample; errors are logged and never escape."""
        with self.accumulator.lock:
            try:
                self.classifier.process(sample)
            except Exception:
                logger.exception("Error while processing sample")
            if self._clock() - self._last_save >= self._save_interval:
                self.save_state()
            return self.classifier.phase

    async def poll_once(self) -> MotionPhase:
        try:
            sample = await self._mount.read_sample()
        except NotConnectedError as e:
            logger.debug("Mount unavailable: %s", e)
            sample = PositionSample.disconnected()
        except Exception as e:
            logger.warning("Mount read failed: %s", e)
            sample = PositionSample.disconnected()
        return self.process_sample(sample)

    async def run(self, stop: asyncio.Event) -> None:
        """Poll the mount until stop is set, then flush state."""
        logger.info("Sample loop started (interval %.1fs)", self._poll_interval)
        while not stop.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
        self.save_state()
        logger.info("Sample loop stopped at %.1f°", self.accumulator.total_degrees)

    # Persistence

    def save_state(self) -> bool:
        with self.accumulator.lock:
            self._last_save = self._clock()
            return save_state(self.accumulator.state, self._state_path)

    # Queries

    @property
    def status(self) -> TrackingStatus:
        phase = self.classifier.phase
        if self.maneuver.in_progress:
            return TrackingStatus.UNWINDING
        if isinstance(phase, Disconnected):
            return TrackingStatus.NOT_CONNECTED
        if self.accumulator.state.alert_fired:
            return TrackingStatus.WARNING
        if isinstance(phase, Slewing):
            return TrackingStatus.SLEWING
        if isinstance(phase, Tracking):
            return TrackingStatus.TRACKING
        return TrackingStatus.STOPPED

    def snapshot(self) -> WrapSnapshot:
        with self.accumulator.lock:
            state = self.accumulator.state
            settings = self.accumulator.settings
            return WrapSnapshot(
                total_degrees=state.total_degrees,
                wrap_count=state.total_degrees / 360.0,
                status=self.status.value,
                phase=self.classifier.phase.name,
                warning_threshold_rotations=settings.warning_threshold_rotations,
                warning_threshold_degrees=settings.warning_threshold_degrees,
                alert_fired=state.alert_fired,
                is_maneuver_in_progress=self.maneuver.in_progress,
                unwind_phase=self.maneuver.phase.value,
                zero_set_at=state.zero_set_at,
                history=list(state.history),
            )

    def check_threshold(self) -> ThresholdCheck:
        """Gate for automation: within threshold, plus the margin left in degrees."""
        with self.accumulator.lock:
            total = self.accumulator.total_degrees
            threshold = self.accumulator.threshold_degrees
            rotations = self.accumulator.settings.warning_threshold_rotations
        margin = threshold - abs(total)
        within = margin > 0
        if within:
            message = f"Cable wrap OK ({total:+.1f}° / {threshold:.0f}° limit)"
        else:
            message = (
                f"Cable wrap check FAILED: accumulated rotation is {total:+.1f}° "
                f"({abs(total) / 360.0:.2f} wraps), which exceeds the {threshold:.0f}° "
                f"({rotations:.1f} wrap) threshold. Unwind the cable and reset the "
                "counter before continuing."
            )
            logger.error("%s", message)
        if isinstance(self.classifier.phase, Disconnected):
            message += " Mount not connected; using the last known rotation."
        return ThresholdCheck(
            within_threshold=within,
            margin_degrees=margin,
            total_degrees=total,
            threshold_degrees=threshold,
            message=message,
        )

    # Commands

    def reset(self) -> None:
        """Zero the accumulator after the cable was unwound by hand.

        Raises ManeuverInProgressError while the unwind maneuver owns the accumulator.
        """
        self.accumulator.reset()

    def set_threshold_rotations(self, rotations: float) -> float:
        """Clamp, apply, and persist the warning threshold. Returns the stored value."""
        value = clamp_threshold(rotations)
        with self.accumulator.lock:
            self.accumulator.settings.warning_threshold_rotations = value
            save_settings(self.accumulator.settings, self._settings_path)
            self.accumulator.check_threshold()
        logger.info("Warning threshold set to %.2f rotations", value)
        return value

    async def begin_unwind(self, cancel: Optional[asyncio.Event] = None) -> UnwindResult:
        """Run the unwind maneuver. UnwindError subclasses propagate to the caller."""
        if self.maneuver.in_progress:
            return await self.maneuver.run(cancel)
        try:
            result = await self.maneuver.run(cancel)
        finally:
            self.classifier.restart()
            self.save_state()
        if result.outcome is UnwindOutcome.CANCELLED:
            logger.info("Auto-unwind cancelled; %.1f° left on the counter", result.remaining_degrees)
        return result
