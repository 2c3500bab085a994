"""Persisted rotation state, wrap history events, and user settings."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from cablewrap.config import DEFAULT_THRESHOLD_ROTATIONS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WrapEvent:
    """One line in the wrap history: a crossing, reset, snap, or unwind note."""
    timestamp: datetime
    cumulative_degrees: float
    note: str


@dataclass
class RotationState:
    """Accumulator record written to disk and restored on startup.

    total_degrees is signed: positive = cable winding, negative = unwinding.
    last_known_ra (hours) is the baseline while slewing; last_known_azimuth
    (degrees) is the baseline while tracking or stopped. None = no baseline.
    """
    total_degrees: float = 0.0
    last_known_ra: Optional[float] = None
    last_known_azimuth: Optional[float] = None
    last_logged_wrap_count: int = 0
    alert_fired: bool = False
    zero_set_at: datetime = field(default_factory=utc_now)
    history: List[WrapEvent] = field(default_factory=list)

    def clear_baselines(self) -> None:
        self.last_known_ra = None
        self.last_known_azimuth = None


@dataclass
class Settings:
    """User settings; stored separately so a state reset keeps them."""
    warning_threshold_rotations: float = DEFAULT_THRESHOLD_ROTATIONS

    @property
    def warning_threshold_degrees(self) -> float:
        return self.warning_threshold_rotations * 360.0


@dataclass
class WrapSnapshot:
    """Read-only view of the engine for display and automation consumers."""
    total_degrees: float
    wrap_count: float
    status: str
    phase: str
    warning_threshold_rotations: float
    warning_threshold_degrees: float
    alert_fired: bool
    is_maneuver_in_progress: bool
    unwind_phase: str
    zero_set_at: datetime
    history: List[WrapEvent]


@dataclass
class ThresholdCheck:
    """Answer for an automation gate: is the rotation within threshold?"""
    within_threshold: bool
    margin_degrees: float  # threshold - |total|; negative once breached
    total_degrees: float
    threshold_degrees: float
    message: str
