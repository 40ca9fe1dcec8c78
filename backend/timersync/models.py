import logging
import math
import time
from typing import Any, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_STYLING = {
    'backgroundColor': '#1f2937',
    'textColor': '#ffffff',
    'fontSize': 'text-6xl',
    'viewMode': 'normal',
}

# Older clients send `timerView` instead of `viewMode`
STYLING_ALIASES = {'timerView': 'viewMode'}


def merge_styling(current: Dict[str, str], partial: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Return `current` with every non-empty field of `partial` applied."""
    merged = dict(current)
    for key, value in (partial or {}).items():
        key = STYLING_ALIASES.get(key, key)
        if key in merged and value:
            merged[key] = value
    return merged


class Timer:
    """A countdown shared between one owning controller and its viewers.

    The entity only knows about state. Every mutation ends by calling
    `on_change(timer)`; the broadcaster subscribes to that hook, so the
    transitions can be exercised without any live channel.

    Ticks come from `scheduler.every(callback)`, which returns a cancellable
    handle. A timer holds at most one handle, and only while `running`.
    """

    def __init__(self, timer_id: str, name: str, duration: int, owner_controller_id: str,
                 max_viewers: int = 4, styling: Optional[Dict[str, Any]] = None,
                 scheduler=None, clock: Callable[[], float] = time.time,
                 on_change: Optional[Callable[['Timer'], None]] = None):
        self.id = timer_id
        self.name = name
        self.duration = duration
        self.original_duration = duration
        self.remaining = duration
        self.running = False
        self.start_epoch: Optional[float] = None
        self.message = ''
        self.styling = merge_styling(DEFAULT_STYLING, styling)
        self.flashing = False
        self._owner_controller_id = owner_controller_id
        self.max_viewers = max_viewers
        self.connected_viewers: Set[str] = set()
        self.on_change = on_change
        self._scheduler = scheduler
        self._clock = clock
        self._tick_handle = None

    @property
    def owner_controller_id(self) -> str:
        return self._owner_controller_id

    @property
    def viewer_count(self) -> int:
        return len(self.connected_viewers)

    def is_owned_by(self, controller_id: str) -> bool:
        return self._owner_controller_id == controller_id

    # ---- countdown transitions ----

    def start(self) -> bool:
        if self.running or self.remaining <= 0:
            logger.info(f"[timer-start-skip] timer={self.id} running={self.running} remaining={self.remaining}")
            return False
        self.running = True
        self.start_epoch = self._clock()
        self._cancel_tick()
        if self._scheduler is not None:
            self._tick_handle = self._scheduler.every(self.tick)
        self._changed()
        return True

    def pause(self) -> bool:
        if not self.running:
            return False
        self._cancel_tick()
        self.remaining = self.duration - self._elapsed()
        # The pause point becomes the new baseline for the next start
        self.duration = abs(self.remaining)
        self.running = False
        self.start_epoch = None
        self._changed()
        return True

    def reset(self) -> None:
        self._stop()
        self.duration = self.original_duration
        self.remaining = self.original_duration
        self._changed()

    def set_duration(self, duration: int) -> None:
        self._stop()
        self.duration = duration
        self.original_duration = duration
        self.remaining = duration
        self._changed()

    def adjust_time(self, seconds: int) -> None:
        new_duration = max(0, self.duration + seconds)
        if not self.running:
            self.set_duration(new_duration)
            return
        elapsed = self._elapsed()
        self.duration = new_duration
        self.remaining = max(0, new_duration - elapsed)
        if self.remaining <= 0:
            # Stop in place; duration keeps the clamped value
            self._stop()
        self._changed()

    def tick(self) -> None:
        """Periodic recompute while running.

        Reaching zero does not stop the countdown; `remaining` keeps going
        negative until the owner pauses or resets.
        """
        if not self.running:
            return
        self._refresh()
        self._changed()

    # ---- presentation ----

    def update_message(self, message: str) -> None:
        self.message = message
        self._changed()

    def clear_message(self) -> None:
        self.message = ''
        self._changed()

    def update_styling(self, styling: Optional[Dict[str, Any]]) -> None:
        self.styling = merge_styling(self.styling, styling)
        self._changed()

    def toggle_flash(self, flashing: bool) -> None:
        self.flashing = bool(flashing)
        self._changed()

    # ---- viewers ----

    def set_max_viewers(self, max_viewers: int) -> None:
        # Never drop below the viewers already admitted
        if max_viewers < self.viewer_count:
            logger.info(f"[timer-capacity-clamp] timer={self.id} requested={max_viewers} connected={self.viewer_count}")
        self.max_viewers = max(max_viewers, self.viewer_count)

    def add_viewer(self, session_id: str) -> bool:
        if session_id in self.connected_viewers:
            return True
        if self.viewer_count >= self.max_viewers:
            return False
        self.connected_viewers.add(session_id)
        self._changed()
        return True

    def remove_viewer(self, session_id: str) -> None:
        self.connected_viewers.discard(session_id)
        self._changed()

    def evict_viewer(self, session_id: str) -> None:
        """Drop a viewer without notifying anyone."""
        self.connected_viewers.discard(session_id)

    # ---- lifecycle ----

    def cancel_tick(self) -> None:
        """Cancel the tick source; used before the timer is discarded."""
        self._cancel_tick()

    def snapshot(self) -> Dict[str, Any]:
        self._refresh()
        return {
            'id': self.id,
            'name': self.name,
            'duration': self.duration,
            'originalDuration': self.original_duration,
            'remaining': self.remaining,
            'running': self.running,
            'startEpoch': self.start_epoch,
            'message': self.message,
            'styling': dict(self.styling),
            'flashing': self.flashing,
            'maxViewers': self.max_viewers,
            'connectedCount': self.viewer_count,
        }

    def summary(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'duration': self.duration,
            'connectedCount': self.viewer_count,
        }

    # ---- internals ----

    def _elapsed(self) -> int:
        if self.start_epoch is None:
            return 0
        return math.floor(self._clock() - self.start_epoch)

    def _refresh(self) -> None:
        if self.running and self.start_epoch is not None:
            self.remaining = self.duration - self._elapsed()

    def _stop(self) -> None:
        self._cancel_tick()
        self.running = False
        self.start_epoch = None

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
