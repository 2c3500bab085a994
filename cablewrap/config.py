"""Configuration: env, data paths, classifier tuning, unwind tuning, mount connection."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Base paths (project root = parent of cablewrap package)
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from project root so CABLEWRAP_* overrides are set
load_dotenv(BASE_DIR / ".env")

DATA_DIR = Path(os.getenv("CABLEWRAP_DATA_DIR", str(BASE_DIR / "data")))
STATE_PATH = DATA_DIR / "state.json"
SETTINGS_PATH = DATA_DIR / "settings.json"

# API
API_HOST = os.getenv("CABLEWRAP_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("CABLEWRAP_API_PORT", "8000"))
LOG_LEVEL = os.getenv("CABLEWRAP_LOG_LEVEL", "INFO").upper()

# Sample loop
POLL_INTERVAL_SEC = float(os.getenv("CABLEWRAP_POLL_INTERVAL_SEC", "1.0"))
SAVE_INTERVAL_SEC = float(os.getenv("CABLEWRAP_SAVE_INTERVAL_SEC", "10.0"))

# Motion classifier
TRACKING_SAMPLE_INTERVAL_SEC = 5.0
TRACKING_SPIKE_CAP_DEG = 2.0  # larger jumps are re-solves, not sidereal drift
SLEW_SPIKE_CAP_DEG = 10.0  # per-tick waypoint artifacts during a slew
DIRECTION_CONFIRM_HOURS = float(os.getenv("CABLEWRAP_DIRECTION_CONFIRM_HOURS", "0.05"))  # ~0.75 deg
AMBIGUOUS_SLEW_DEG = 170.0
CATCH_UP_MIN_DEG = 0.5
HOME_SETTLE_SEC = 5.0
SITE_UNSET_EPSILON_DEG = 1e-6

# Accumulator / history
SNAP_EPSILON_DEG = 0.5
HISTORY_RETENTION_SEC = 3600.0
THRESHOLD_MIN_ROTATIONS = 0.5
THRESHOLD_MAX_ROTATIONS = 3.0
DEFAULT_THRESHOLD_ROTATIONS = 1.0

# Unwind maneuver
UNWIND_MIN_REMAINING_DEG = 10.0
UNWIND_STEP_DEG = 60.0
UNWIND_MAX_STEPS = 20
UNWIND_STEP_DELAY_SEC = float(os.getenv("CABLEWRAP_UNWIND_STEP_DELAY_SEC", "2.0"))
UNWIND_ALTITUDE_DEG = 65.0  # steps walk azimuth on this altitude circle around the zenith
SLEW_TIMEOUT_SEC = float(os.getenv("CABLEWRAP_SLEW_TIMEOUT_SEC", "120"))
HOME_TIMEOUT_SEC = float(os.getenv("CABLEWRAP_HOME_TIMEOUT_SEC", "180"))
MOUNT_POLL_SEC = 0.5

# Mount (ASCOM Alpaca telescope)
ALPACA_ADDRESS = os.getenv("CABLEWRAP_ALPACA_ADDRESS", "127.0.0.1:11111")
ALPACA_DEVICE_NUMBER = int(os.getenv("CABLEWRAP_ALPACA_DEVICE_NUMBER", "0"))

# Hardware simulation (for development without a mount)
SIMULATE_HARDWARE = os.getenv("CABLEWRAP_SIMULATE_HARDWARE", "0").lower() in ("1", "true", "yes")


def ensure_data_dir() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
