"""Shared application state (attached to the FastAPI app, injected into routes)."""
import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import Request

from cablewrap.core.engine import CableWrapEngine
from cablewrap.core.errors import UnwindError
from cablewrap.core.mount_service import create_mount
from cablewrap.core.unwind import UnwindResult

logger = logging.getLogger(__name__)


class AppState:
    def __init__(
        self,
        mount=None,
        *,
        state_path: Optional[Path] = None,
        settings_path: Optional[Path] = None,
        engine: Optional[CableWrapEngine] = None,
    ) -> None:
        self.mount = mount if mount is not None else create_mount()
        self.engine = engine or CableWrapEngine(
            self.mount, state_path=state_path, settings_path=settings_path
        )
        self._unwind_task: Optional[asyncio.Task] = None
        self._unwind_cancel: Optional[asyncio.Event] = None
        self.last_unwind_result: Optional[UnwindResult] = None
        self.last_unwind_error: Optional[str] = None

    @property
    def unwind_running(self) -> bool:
        return self._unwind_task is not None and not self._unwind_task.done()

    def start_unwind(self) -> bool:
        """Start the unwind maneuver as a background task. False if one is already running."""
        if self.unwind_running or self.engine.maneuver.in_progress:
            return False
        self._unwind_cancel = asyncio.Event()
        self.last_unwind_error = None
        self._unwind_task = asyncio.create_task(self._run_unwind(self._unwind_cancel))
        return True

    async def _run_unwind(self, cancel: asyncio.Event) -> None:
        try:
            self.last_unwind_result = await self.engine.begin_unwind(cancel)
        except UnwindError as e:
            self.last_unwind_result = None
            self.last_unwind_error = str(e)
            logger.error("Auto-unwind failed: %s", e)
        except Exception as e:
            self.last_unwind_result = None
            self.last_unwind_error = str(e)
            logger.exception("Auto-unwind crashed")

    def cancel_unwind(self) -> bool:
        """Request cooperative cancellation; takes effect before the next step.

        Call from the event loop thread; asyncio.Event is not thread-safe.
        """
        if not self.unwind_running or self._unwind_cancel is None:
            return False
        self._unwind_cancel.set()
        return True

    async def shutdown(self, timeout: float = 10.0) -> None:
        if self.unwind_running:
            self.cancel_unwind()
            try:
                await asyncio.wait_for(asyncio.shield(self._unwind_task), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Auto-unwind did not stop within %.0fs; cancelling task", timeout)
                self._unwind_task.cancel()


def get_state(request: Request) -> AppState:
    return request.app.state.cablewrap
