"""Rotation snapshot, history, manual reset, and the automation threshold gate."""
from fastapi import APIRouter, Depends, HTTPException

from cablewrap.api.state import AppState, get_state
from cablewrap.core.errors import ManeuverInProgressError
from cablewrap.models.rotation import WrapEvent

router = APIRouter()


def _event_to_dict(e: WrapEvent) -> dict:
    return {
        "timestamp": e.timestamp.isoformat(),
        "cumulative_degrees": e.cumulative_degrees,
        "note": e.note,
    }


@router.get("/")
def get_rotation(state: AppState = Depends(get_state)):
    """Return total rotation, wrap count, status, threshold, and history."""
    s = state.engine.snapshot()
    return {
        "total_degrees": round(s.total_degrees, 3),
        "wrap_count": round(s.wrap_count, 4),
        "status": s.status,
        "phase": s.phase,
        "warning_threshold_rotations": s.warning_threshold_rotations,
        "warning_threshold_degrees": s.warning_threshold_degrees,
        "alert_fired": s.alert_fired,
        "is_maneuver_in_progress": s.is_maneuver_in_progress,
        "unwind_phase": s.unwind_phase,
        "zero_set_at": s.zero_set_at.isoformat(),
        "history": [_event_to_dict(e) for e in s.history],
    }


@router.get("/history")
def get_history(state: AppState = Depends(get_state)):
    """Return the last hour of crossings, resets, snaps, and unwind notes."""
    return [_event_to_dict(e) for e in state.engine.snapshot().history]


@router.post("/reset")
def reset(state: AppState = Depends(get_state)):
    """Zero the counter after the cable has been unwound by hand."""
    try:
        state.engine.reset()
    except ManeuverInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "total_degrees": state.engine.accumulator.total_degrees}


@router.get("/check")
def check_threshold(state: AppState = Depends(get_state)):
    """Gate for automation: is the rotation within threshold, and by how much."""
    c = state.engine.check_threshold()
    return {
        "within_threshold": c.within_threshold,
        "margin_degrees": round(c.margin_degrees, 3),
        "total_degrees": round(c.total_degrees, 3),
        "threshold_degrees": c.threshold_degrees,
        "message": c.message,
    }
