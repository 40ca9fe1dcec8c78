"""Timer domain services: registry, controller index, fan-out and ticks.

Socket handlers and HTTP routes import from here; nothing in this package
touches request context, so ticks can run from background tasks.
"""

from .broadcast import Broadcaster
from .registry import ControllerIndex, TimerRegistry
from .scheduler import SocketIOTickScheduler, TickHandle
from .service import TimerService, generate_timer_id

__all__ = [
    'Broadcaster',
    'ControllerIndex',
    'SocketIOTickScheduler',
    'TickHandle',
    'TimerRegistry',
    'TimerService',
    'generate_timer_id',
]
