"""Mount sample inspection and simulated-mount control."""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cablewrap.api.state import AppState, get_state
from cablewrap.core.mount_service import SimulatedMount

router = APIRouter()


class SimulateBody(BaseModel):
    connected: Optional[bool] = None
    slewing: Optional[bool] = None
    tracking_enabled: Optional[bool] = None
    at_home: Optional[bool] = None
    ra_hours: Optional[float] = None
    dec_degrees: Optional[float] = None
    lst_hours: Optional[float] = None
    site_lat_degrees: Optional[float] = None
    site_lon_degrees: Optional[float] = None
    raw_azimuth_degrees: Optional[float] = None


@router.get("/sample")
def get_sample(state: AppState = Depends(get_state)):
    """Return the last sample the engine processed."""
    sample = state.engine.last_sample
    return {"sample": asdict(sample) if sample is not None else None, "phase": state.engine.phase.name}


@router.post("/simulate")
def simulate(body: SimulateBody, state: AppState = Depends(get_state)):
    """For development: update the simulated mount's next sample."""
    if not isinstance(state.mount, SimulatedMount):
        return {"ok": False, "reason": "not_simulated"}
    fields = {k: v for k, v in body.model_dump().items() if v is not None}
    sample = state.mount.set_sample(**fields)
    return {"ok": True, "sample": asdict(sample)}
