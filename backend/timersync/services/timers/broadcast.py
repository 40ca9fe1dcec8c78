import logging
from typing import Any, Callable, Dict, Iterable, Optional

from timersync.models import Timer

logger = logging.getLogger(__name__)

EmitFn = Callable[[str, Dict[str, Any], str], None]
AliveFn = Callable[[str], bool]


class Broadcaster:
    """Pushes timer state to sessions.

    `emit(event, payload, session_id)` delivers one message and
    `is_alive(session_id)` says whether the session's channel still
    resolves. Both are plain callables so the fan-out can run against a fake
    transport in tests.
    """

    def __init__(self, emit: EmitFn, is_alive: AliveFn):
        self._emit = emit
        self._is_alive = is_alive
        # Called with each session dropped for a dead channel
        self.on_evict: Optional[Callable[[str], None]] = None

    @classmethod
    def for_socketio(cls, socketio, namespace: str = '/') -> 'Broadcaster':
        def emit(event, payload, session_id):
            socketio.emit(event, payload, to=session_id, namespace=namespace)

        def is_alive(session_id):
            server = socketio.server
            return server is not None and server.manager.is_connected(session_id, namespace)

        return cls(emit, is_alive)

    def send(self, event: str, payload: Dict[str, Any], session_id: str) -> bool:
        if not self._is_alive(session_id):
            return False
        self._emit(event, payload, session_id)
        return True

    def push(self, timer: Timer) -> None:
        """Fan a fresh snapshot out to every connected viewer.

        Sessions whose channel no longer resolves are evicted before the
        snapshot is taken, so survivors see the corrected viewer count.
        """
        for session_id in list(timer.connected_viewers):
            if not self._is_alive(session_id):
                timer.evict_viewer(session_id)
                logger.info(f"[viewer-evict] timer={timer.id} session={session_id} channel gone")
                if self.on_evict is not None:
                    self.on_evict(session_id)
        snapshot = timer.snapshot()
        for session_id in list(timer.connected_viewers):
            self._emit('timer-update', snapshot, session_id)

    def notify_full(self, timer: Timer, session_id: str, owner_sessions: Iterable[str],
                    view_only: bool = False) -> None:
        self.send('timer-full', {
            'timerId': timer.id,
            'failedSessionId': session_id,
            'viewOnly': view_only,
        }, session_id)
        payload = {
            'timerId': timer.id,
            'type': 'viewers',
            'message': (
                f"You've reached the maximum number of viewers ({timer.max_viewers}) for your plan. "
                "Upgrade to allow more viewers."
            ),
        }
        for owner_session in list(owner_sessions):
            self.send('limit-exceeded', payload, owner_session)
        logger.info(f"[timer-full] timer={timer.id} session={session_id} capacity={timer.max_viewers}")

    def notify_deleted(self, timer: Timer) -> None:
        for session_id in list(timer.connected_viewers):
            self.send('timer-deleted', {'timerId': timer.id}, session_id)
