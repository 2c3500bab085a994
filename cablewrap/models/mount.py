"""Mount position samples and the motion phases they are classified into."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


@dataclass(frozen=True)
class PositionSample:
    """One report from the mount. RA/LST in hours, everything else in degrees."""
    connected: bool
    slewing: bool = False
    tracking_enabled: bool = False
    at_home: bool = False
    ra_hours: float = 0.0
    dec_degrees: float = 0.0
    lst_hours: float = 0.0
    site_lat_degrees: float = 0.0
    site_lon_degrees: float = 0.0
    raw_azimuth_degrees: float = 0.0

    @classmethod
    def disconnected(cls) -> "PositionSample":
        return cls(connected=False)


@dataclass
class Disconnected:
    name = "disconnected"


@dataclass
class Slewing:
    """Slew in progress.

    az_baseline is the azimuth before the slew; the committed delta is measured
    from it. tick_degrees sums the accepted per-tick deltas and is diagnostic only.
    direction_sign: +1 = RA decreasing (clockwise), -1 = RA increasing, None = unconfirmed.
    """
    pre_slew_ra: float
    pre_slew_total: float
    az_baseline: float
    last_tick_azimuth: float
    direction_sign: Optional[int] = None
    tick_degrees: float = 0.0
    rejected_ticks: int = 0
    name = "slewing"


@dataclass
class Tracking:
    last_sample_at: float
    name = "tracking"


@dataclass
class Stopped:
    at_home: bool = False
    home_arrival_time: Optional[float] = None
    snapped: bool = False  # drift corrector already ran for this arrival
    name = "stopped"


MotionPhase = Union[Disconnected, Slewing, Tracking, Stopped]


class TrackingStatus(str, Enum):
    """Coloured status shown to display consumers."""
    NOT_CONNECTED = "not_connected"
    STOPPED = "stopped"
    TRACKING = "tracking"
    SLEWING = "slewing"
    WARNING = "warning"
    UNWINDING = "unwinding"
