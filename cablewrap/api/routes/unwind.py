"""Auto-unwind: start, cancel, and progress."""
from fastapi import APIRouter, Depends

from cablewrap.api.state import AppState, get_state

router = APIRouter()


@router.get("/")
def get_unwind(state: AppState = Depends(get_state)):
    """Return whether an unwind is running, its phase, and the last outcome."""
    result = state.last_unwind_result
    return {
        "in_progress": state.engine.maneuver.in_progress,
        "phase": state.engine.maneuver.phase.value,
        "last_result": None
        if result is None
        else {
            "outcome": result.outcome.value,
            "steps": result.steps,
            "start_degrees": result.start_degrees,
            "remaining_degrees": result.remaining_degrees,
        },
        "last_error": state.last_unwind_error,
    }


@router.post("/")
async def start_unwind(state: AppState = Depends(get_state)):
    """Start the auto-unwind in the background. No-op if one is already running."""
    if not state.start_unwind():
        return {"ok": False, "reason": "already_running"}
    return {"ok": True}


@router.post("/cancel")
async def cancel_unwind(state: AppState = Depends(get_state)):
    """Ask the running unwind to stop before its next step."""
    if not state.cancel_unwind():
        return {"ok": False, "reason": "not_running"}
    return {"ok": True}
