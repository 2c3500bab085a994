"""Signed rotation accumulator with crossing log, threshold alert, and home snap."""
import logging
import math
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from cablewrap.config import HISTORY_RETENTION_SEC, SNAP_EPSILON_DEG
from cablewrap.core.errors import ManeuverInProgressError
from cablewrap.models.rotation import RotationState, Settings, WrapEvent, utc_now

logger = logging.getLogger(__name__)


def _log_alert(message: str) -> None:
    logger.warning("%s", message)


class RotationAccumulator:
    """Owns total_degrees and everything derived from it.

    Only one writer at a time: sample processing holds ``lock`` for a whole
    sample, and the unwind maneuver sets ``suppressed`` so that apply_delta and
    snap become no-ops until it releases the accumulator.
    """

    def __init__(
        self,
        state: RotationState,
        settings: Settings,
        *,
        on_change: Optional[Callable[[], None]] = None,
        notify: Callable[[str], None] = _log_alert,
    ) -> None:
        self.state = state
        self.settings = settings
        self.lock = threading.RLock()
        self.suppressed = False
        self._on_change = on_change
        self._notify = notify

    @property
    def total_degrees(self) -> float:
        return self.state.total_degrees

    @property
    def threshold_degrees(self) -> float:
        return self.settings.warning_threshold_degrees

    def persist(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def apply_delta(self, degrees: float) -> bool:
        """Add degrees to the total, then check crossings and threshold.

        Returns False without touching the total while suppressed.
        """
        with self.lock:
            if self.suppressed:
                logger.debug("Delta %+.3f° skipped: accumulator suppressed", degrees)
                return False
            self.state.total_degrees += degrees
            self._check_crossing()
            self.check_threshold()
            return True

    def _check_crossing(self) -> None:
        state = self.state
        new_count = int(math.floor(abs(state.total_degrees) / 360.0))
        if new_count <= state.last_logged_wrap_count:
            return
        sign = "+" if state.total_degrees >= 0 else "-"
        for count in range(state.last_logged_wrap_count + 1, new_count + 1):
            self.append_history(state.total_degrees, f"Crossed {sign}{count * 360}°")
            logger.warning(
                "Wrap crossing #%d at %.1f°", count, state.total_degrees
            )
        state.last_logged_wrap_count = new_count
        self.persist()

    def check_threshold(self) -> None:
        """Fire the alert once when |total| first reaches the threshold."""
        state = self.state
        if abs(state.total_degrees) < self.threshold_degrees or state.alert_fired:
            return
        state.alert_fired = True
        wraps = abs(state.total_degrees) / 360.0
        self._notify(
            f"CABLE WRAP WARNING: the cable has rotated {wraps:.1f} times "
            f"({abs(state.total_degrees):.0f}°). Unwind the cable, then reset the counter."
        )
        self.persist()

    def append_history(self, cumulative_degrees: float, note: str) -> WrapEvent:
        """Append an event and drop entries older than the retention window."""
        with self.lock:
            history = self.state.history
            now = utc_now()
            if history and history[-1].timestamp > now:
                now = history[-1].timestamp
            event = WrapEvent(timestamp=now, cumulative_degrees=cumulative_degrees, note=note)
            history.append(event)
            self.prune_history(now)
            return event

    def prune_history(self, now: Optional[datetime] = None) -> None:
        with self.lock:
            history = self.state.history
            cutoff = (now or utc_now()) - timedelta(seconds=HISTORY_RETENTION_SEC)
            while history and history[0].timestamp < cutoff:
                history.pop(0)

    def snap(self, epsilon: float = SNAP_EPSILON_DEG) -> bool:
        """Round the total to the nearest whole rotation.

        Only valid at the home position, where the true wrap count is an integer.
        Returns True if the total changed.
        """
        with self.lock:
            if self.suppressed:
                return False
            state = self.state
            before = state.total_degrees
            snapped = round(before / 360.0) * 360.0
            correction = snapped - before
            if abs(correction) < epsilon:
                return False
            logger.info(
                "Home position: snapping %.1f° -> %.1f° (correcting %+.1f° of drift)",
                before,
                snapped,
                correction,
            )
            self.append_history(
                before, f"Home: drift corrected {correction:+.1f}° → snapped to {snapped:.0f}°"
            )
            state.total_degrees = snapped
            state.clear_baselines()
            state.last_logged_wrap_count = max(
                state.last_logged_wrap_count, int(math.floor(abs(snapped) / 360.0))
            )
            if abs(snapped) < self.threshold_degrees:
                state.alert_fired = False
            else:
                self.check_threshold()
            self.persist()
            return True

    def reset(
        self, note: str = "Manual reset: cable physically unwound", *, by_maneuver: bool = False
    ) -> None:
        """Zero the accumulator and clear crossings, alert, and baselines.

        Refused with ManeuverInProgressError while suppressed, unless the caller
        is the maneuver that holds the suppression.
        """
        with self.lock:
            if self.suppressed and not by_maneuver:
                raise ManeuverInProgressError("Reset refused: auto-unwind in progress")
            state = self.state
            logger.info("Reset at %.1f° (%s)", state.total_degrees, note)
            self.append_history(state.total_degrees, note)
            state.total_degrees = 0.0
            state.zero_set_at = utc_now()
            state.last_logged_wrap_count = 0
            state.alert_fired = False
            state.clear_baselines()
            self.persist()

    def drive_to(self, degrees: float) -> None:
        """Set the total directly; used by the unwind maneuver while it holds suppression."""
        with self.lock:
            self.state.total_degrees = degrees
