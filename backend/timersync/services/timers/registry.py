import logging
from typing import Dict, List, Optional

from timersync.models import Timer

logger = logging.getLogger(__name__)


class TimerRegistry:
    """Process-wide timer store plus the session -> timer mapping."""

    def __init__(self):
        self._timers: Dict[str, Timer] = {}
        self._session_to_timer: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, timer_id) -> bool:
        return timer_id in self._timers

    def create(self, timer: Timer) -> Timer:
        self._timers[timer.id] = timer
        return timer

    def lookup(self, timer_id) -> Optional[Timer]:
        if not timer_id or not isinstance(timer_id, str):
            return None
        return self._timers.get(timer_id)

    def delete(self, timer_id) -> Optional[Timer]:
        timer = self._timers.get(timer_id)
        if timer is None:
            return None
        # Cancel first so no tick can fire against a removed timer
        timer.cancel_tick()
        del self._timers[timer_id]
        for session_id in [s for s, t in self._session_to_timer.items() if t == timer_id]:
            del self._session_to_timer[session_id]
        return timer

    def bind_session(self, session_id: str, timer_id: str) -> None:
        self._session_to_timer[session_id] = timer_id

    def unbind_session(self, session_id: str) -> Optional[str]:
        return self._session_to_timer.pop(session_id, None)

    def session_timer(self, session_id: str) -> Optional[str]:
        return self._session_to_timer.get(session_id)

    @property
    def session_count(self) -> int:
        return len(self._session_to_timer)


class ControllerIndex:
    """Controller -> owned timers, and controller -> sessions acting for it.

    Owned timers drive tenant-scoped listing. Tracked sessions are only ever
    used to deliver capacity notifications.
    """

    def __init__(self):
        # dicts used as insertion-ordered sets
        self._owned: Dict[str, Dict[str, None]] = {}
        self._sessions: Dict[str, Dict[str, None]] = {}

    def register_ownership(self, controller_id: str, timer_id: str) -> None:
        self._owned.setdefault(controller_id, {})[timer_id] = None

    def release_ownership(self, controller_id: str, timer_id: str) -> None:
        owned = self._owned.get(controller_id)
        if owned is not None:
            owned.pop(timer_id, None)

    def owned_count(self, controller_id: str) -> int:
        return len(self._owned.get(controller_id, {}))

    def owned_timer_ids(self, controller_id: str) -> List[str]:
        return list(self._owned.get(controller_id, {}))

    def list_owned_summaries(self, controller_id: str, registry: TimerRegistry) -> List[dict]:
        summaries = []
        for timer_id in self.owned_timer_ids(controller_id):
            timer = registry.lookup(timer_id)
            if timer is None or not timer.is_owned_by(controller_id):
                continue
            summaries.append(timer.summary())
        return summaries

    def track_session(self, controller_id: str, session_id: str) -> None:
        self._sessions.setdefault(controller_id, {})[session_id] = None

    def untrack_session(self, session_id: str, controller_id: Optional[str] = None) -> None:
        """Forget `session_id` under one controller, or under all of them."""
        targets = [controller_id] if controller_id is not None else list(self._sessions)
        for cid in targets:
            sessions = self._sessions.get(cid)
            if sessions is None or session_id not in sessions:
                continue
            del sessions[session_id]
            if not sessions:
                del self._sessions[cid]
                logger.debug(f"[controller-idle] controller={cid} has no tracked sessions")

    def sessions_for(self, controller_id: str) -> List[str]:
        return list(self._sessions.get(controller_id, {}))
