"""Warning threshold setting."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cablewrap.api.state import AppState, get_state
from cablewrap.config import THRESHOLD_MAX_ROTATIONS, THRESHOLD_MIN_ROTATIONS

router = APIRouter()


class ThresholdBody(BaseModel):
    rotations: float


def _settings_to_dict(state: AppState) -> dict:
    settings = state.engine.accumulator.settings
    return {
        "warning_threshold_rotations": settings.warning_threshold_rotations,
        "warning_threshold_degrees": settings.warning_threshold_degrees,
        "min_rotations": THRESHOLD_MIN_ROTATIONS,
        "max_rotations": THRESHOLD_MAX_ROTATIONS,
    }


@router.get("/")
def get_settings(state: AppState = Depends(get_state)):
    """Return the warning threshold and its allowed range."""
    return _settings_to_dict(state)


@router.put("/threshold")
def put_threshold(body: ThresholdBody, state: AppState = Depends(get_state)):
    """Set the warning threshold in rotations; clamped to the allowed range and saved."""
    state.engine.set_threshold_rotations(body.rotations)
    return _settings_to_dict(state)
