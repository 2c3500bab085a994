"""Data models for rotation state, mount samples, and motion phases."""
from cablewrap.models.mount import (
    Disconnected,
    MotionPhase,
    PositionSample,
    Slewing,
    Stopped,
    Tracking,
    TrackingStatus,
)
from cablewrap.models.rotation import (
    RotationState,
    Settings,
    ThresholdCheck,
    WrapEvent,
    WrapSnapshot,
)

__all__ = [
    "Disconnected",
    "MotionPhase",
    "PositionSample",
    "RotationState",
    "Settings",
    "Slewing",
    "Stopped",
    "ThresholdCheck",
    "Tracking",
    "TrackingStatus",
    "WrapEvent",
    "WrapSnapshot",
]
