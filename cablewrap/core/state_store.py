"""Persist and load rotation state and settings (JSON).

Missing or unreadable files fall back to defaults; failed writes are logged and
skipped so the tracking loop never stops on I/O.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from cablewrap.config import (
    SETTINGS_PATH,
    STATE_PATH,
    THRESHOLD_MAX_ROTATIONS,
    THRESHOLD_MIN_ROTATIONS,
    ensure_data_dir,
)
from cablewrap.core.errors import PersistenceError
from cablewrap.models.rotation import RotationState, Settings, WrapEvent

logger = logging.getLogger(__name__)


def clamp_threshold(rotations: float) -> float:
    return max(THRESHOLD_MIN_ROTATIONS, min(THRESHOLD_MAX_ROTATIONS, float(rotations)))


def _parse_time(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


def _read_json(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.error("Could not read %s, using defaults: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.error("Could not read %s, using defaults: not a JSON object", path)
        return None
    return data


def _write_json(path: Path, data: dict) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(path)
    except OSError as e:
        raise PersistenceError(f"Could not write {path}: {e}") from e


def state_to_dict(state: RotationState) -> dict:
    return {
        "total_degrees": state.total_degrees,
        "last_known_ra": state.last_known_ra,
        "last_known_azimuth": state.last_known_azimuth,
        "last_logged_wrap_count": state.last_logged_wrap_count,
        "alert_fired": state.alert_fired,
        "zero_set_at": state.zero_set_at.isoformat(),
        "history": [
            {
                "timestamp": e.timestamp.isoformat(),
                "cumulative_degrees": e.cumulative_degrees,
                "note": e.note,
            }
            for e in state.history
        ],
    }


def state_from_dict(data: dict) -> RotationState:
    """Build state from a JSON dict. Malformed history entries are skipped."""
    state = RotationState(
        total_degrees=float(data.get("total_degrees", 0.0)),
        last_known_ra=_optional_float(data.get("last_known_ra")),
        last_known_azimuth=_optional_float(data.get("last_known_azimuth")),
        last_logged_wrap_count=int(data.get("last_logged_wrap_count", 0)),
        alert_fired=bool(data.get("alert_fired", False)),
    )
    if data.get("zero_set_at"):
        state.zero_set_at = _parse_time(data["zero_set_at"])
    for item in data.get("history", []):
        try:
            state.history.append(
                WrapEvent(
                    timestamp=_parse_time(item["timestamp"]),
                    cumulative_degrees=float(item["cumulative_degrees"]),
                    note=str(item["note"]),
                )
            )
        except (KeyError, TypeError, ValueError):
            continue
    state.history.sort(key=lambda e: e.timestamp)
    return state


def load_state(path: Optional[Path] = None) -> RotationState:
    """Load rotation state from disk, or a fresh state if missing/corrupt."""
    if path is None:
        ensure_data_dir()
        path = STATE_PATH
    data = _read_json(path)
    if data is None:
        return RotationState()
    try:
        return state_from_dict(data)
    except (TypeError, ValueError) as e:
        logger.error("Could not load state from %s, starting fresh: %s", path, e)
        return RotationState()


def save_state(state: RotationState, path: Optional[Path] = None) -> bool:
    """Write rotation state. Returns False (and logs) if the write failed."""
    try:
        _write_json(path or STATE_PATH, state_to_dict(state))
    except PersistenceError as e:
        logger.error("%s", e)
        return False
    return True


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from disk; threshold is clamped to the allowed range."""
    if path is None:
        ensure_data_dir()
        path = SETTINGS_PATH
    data = _read_json(path)
    if data is None:
        return Settings()
    try:
        return Settings(
            warning_threshold_rotations=clamp_threshold(
                data.get("warning_threshold_rotations", Settings().warning_threshold_rotations)
            )
        )
    except (TypeError, ValueError) as e:
        logger.error("Could not load settings from %s: %s", path, e)
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> bool:
    """Write settings. Returns False (and logs) if the write failed."""
    try:
        _write_json(
            path or SETTINGS_PATH,
            {"warning_threshold_rotations": settings.warning_threshold_rotations},
        )
    except PersistenceError as e:
        logger.error("%s", e)
        return False
    return True
