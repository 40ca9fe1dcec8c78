import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from timersync.models import Timer
from .broadcast import Broadcaster
from .registry import ControllerIndex, TimerRegistry

logger = logging.getLogger(__name__)


def generate_timer_id() -> str:
    return uuid.uuid4().hex[:16]


class TimerService:
    """Holds the registry, the controller index and the fan-out for one app.

    Built once by `create_app` and reached through
    `current_app.extensions['timersync']`. Callers hold `lock` while they
    use it; the tick scheduler takes the same lock before each tick.
    """

    def __init__(self, broadcaster: Broadcaster, scheduler, clock: Callable[[], float] = time.time,
                 lock=None, default_max_viewers: int = 4, default_max_timers: int = 3,
                 id_factory: Callable[[], str] = generate_timer_id):
        self.registry = TimerRegistry()
        self.index = ControllerIndex()
        self.broadcaster = broadcaster
        self.scheduler = scheduler
        self.clock = clock
        self.lock = lock if lock is not None else threading.RLock()
        self.default_max_viewers = default_max_viewers
        self.default_max_timers = default_max_timers
        self._id_factory = id_factory
        self.broadcaster.on_evict = self.forget_session

    def quota_reached(self, controller_id: str, max_timers: Optional[int] = None) -> bool:
        limit = self.default_max_timers if max_timers is None else max_timers
        return self.index.owned_count(controller_id) >= limit

    def create_timer(self, name: str, duration: int, controller_id: str,
                     max_viewers: Optional[int] = None,
                     styling: Optional[Dict[str, Any]] = None) -> Timer:
        timer_id = self._id_factory()
        while timer_id in self.registry:
            timer_id = self._id_factory()
        timer = Timer(
            timer_id,
            name,
            duration,
            controller_id,
            max_viewers=self.default_max_viewers if max_viewers is None else max_viewers,
            styling=styling,
            scheduler=self.scheduler,
            clock=self.clock,
            on_change=self.broadcaster.push,
        )
        self.registry.create(timer)
        self.index.register_ownership(controller_id, timer_id)
        logger.info(f"[timer-created] timer={timer_id} controller={controller_id} duration={duration}s")
        return timer

    def delete_timer(self, timer: Timer) -> None:
        self.broadcaster.notify_deleted(timer)
        self.registry.delete(timer.id)
        self.index.release_ownership(timer.owner_controller_id, timer.id)
        logger.info(f"[timer-deleted] timer={timer.id} controller={timer.owner_controller_id}")

    def join(self, timer: Timer, session_id: str, controller_id: str, view_only: bool = False) -> bool:
        """Admit `session_id` as a viewer of `timer`.

        On success the session is re-pointed at `timer` (leaving any timer it
        watched before) and tracked under `controller_id`, whether or not
        that controller owns the timer. On rejection the requester and the
        owner's tracked sessions are told about the capacity limit.
        """
        if not timer.add_viewer(session_id):
            self.broadcaster.notify_full(
                timer, session_id, self.index.sessions_for(timer.owner_controller_id), view_only=view_only
            )
            return False
        previous_id = self.registry.session_timer(session_id)
        if previous_id is not None and previous_id != timer.id:
            previous = self.registry.lookup(previous_id)
            if previous is not None:
                previous.remove_viewer(session_id)
        self.registry.bind_session(session_id, timer.id)
        self.index.track_session(controller_id, session_id)
        return True

    def attach_owner_session(self, timer: Timer, session_id: str) -> None:
        """Let the creating session watch its new timer."""
        self.join(timer, session_id, timer.owner_controller_id)

    def disconnect(self, session_id: str) -> None:
        timer_id = self.registry.unbind_session(session_id)
        if timer_id is not None:
            timer = self.registry.lookup(timer_id)
            if timer is not None:
                timer.remove_viewer(session_id)
        self.index.untrack_session(session_id)

    def forget_session(self, session_id: str) -> None:
        """Drop every record of a session whose channel is gone."""
        self.registry.unbind_session(session_id)
        self.index.untrack_session(session_id)

    def summaries(self, controller_id: str) -> List[dict]:
        return self.index.list_owned_summaries(controller_id, self.registry)

    def stats(self) -> Dict[str, int]:
        return {
            'timers': len(self.registry),
            'connectedDevices': self.registry.session_count,
        }
