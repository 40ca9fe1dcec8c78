import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class TickHandle:
    """Cancellation token for one periodic callback."""

    def __init__(self):
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class SocketIOTickScheduler:
    """Runs periodic callbacks as Socket.IO background tasks.

    Each callback fires under the shared service lock, after re-checking its
    handle, so a handle cancelled by a command never fires again even if the
    worker was already sleeping.
    """

    def __init__(self, socketio, lock, interval: float = 1.0):
        self._socketio = socketio
        self._lock = lock
        self.interval = interval

    def every(self, callback: Callable[[], None]) -> TickHandle:
        handle = TickHandle()
        self._socketio.start_background_task(self._worker, handle, callback)
        return handle

    def _worker(self, handle: TickHandle, callback: Callable[[], None]) -> None:
        while not handle.cancelled:
            self._socketio.sleep(self.interval)
            with self._lock:
                if handle.cancelled:
                    break
                try:
                    callback()
                except Exception:
                    logger.exception("[tick-error] callback raised; tick source stopped")
                    handle.cancel()
                    break
