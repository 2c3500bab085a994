"""FastAPI app, CORS, route registration, and the background sample loop."""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cablewrap.config import LOG_LEVEL, POLL_INTERVAL_SEC, ensure_data_dir

# Configure logging in the worker process (so engine INFO logs are visible under uvicorn --reload)
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(levelname)s: %(name)s: %(message)s",
)

from cablewrap.api.state import AppState, get_state

# Import routes after state to avoid circular imports
from cablewrap.api.routes import mount, rotation, settings, unwind

__all__ = ["app", "AppState", "get_state"]

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_data_dir()
    state = getattr(app.state, "cablewrap", None)
    if state is None:
        state = AppState()
        app.state.cablewrap = state

    stop = asyncio.Event()
    sample_task = asyncio.create_task(state.engine.run(stop))
    logger.info("Sample loop task started (interval %.1fs)", POLL_INTERVAL_SEC)

    yield

    await state.shutdown()
    stop.set()
    await sample_task


app = FastAPI(
    title="Cable Wrap Monitor API",
    description="Cumulative mount rotation tracking, alerts, and auto-unwind",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rotation.router, prefix="/api/rotation", tags=["rotation"])
app.include_router(settings.router, prefix="/api/settings", tags=["settings"])
app.include_router(unwind.router, prefix="/api/unwind", tags=["unwind"])
app.include_router(mount.router, prefix="/api/mount", tags=["mount"])
