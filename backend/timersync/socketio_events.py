from typing import Any, Callable, Dict, Optional

from flask import current_app, request
from flask_socketio import emit

from timersync import socketio
from timersync.models import Timer
from timersync.services.timers import TimerService


def _service() -> TimerService:
    return current_app.extensions['timersync']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _controller_id(data: Dict[str, Any], event: str) -> Optional[str]:
    controller_id = data.get('controllerId')
    if not controller_id or not isinstance(controller_id, str):
        current_app.logger.debug(f"[drop] event={event} sid={_get_sid()} missing controllerId")
        return None
    return controller_id


def _int_field(data: Dict[str, Any], *names: str) -> Optional[int]:
    """First present field among `names` as an int; None when all absent.

    Raises ValueError/TypeError for values that are not numbers.
    """
    for name in names:
        value = data.get(name)
        if value is not None:
            if isinstance(value, bool):
                raise TypeError(f'{name} must be a number')
            return int(value)
    return None


def _emit_timer_list(service: TimerService, controller_id: str) -> None:
    emit('timer-list', service.summaries(controller_id))


# ---- lifecycle ----

def handle_connect(auth=None):
    current_app.logger.debug(f"[connect] sid={_get_sid()}")


def handle_disconnect(*_args):
    service = _service()
    with service.lock:
        service.disconnect(_get_sid())
    current_app.logger.debug(f"[disconnect] sid={_get_sid()}")


# ---- tenant-scoped commands ----

def handle_create_timer(data=None):
    data = _payload(data)
    controller_id = _controller_id(data, 'create-timer')
    if not controller_id:
        return
    try:
        duration = _int_field(data, 'duration') or 0
        max_viewers = _int_field(data, 'maxViewers', 'maxConnectionsAllowed')
        max_timers = _int_field(data, 'maxTimersAllowed')
    except (TypeError, ValueError) as exc:
        current_app.logger.info(f"[drop] event=create-timer controller={controller_id} bad input: {exc}")
        return
    styling = data.get('styling') if isinstance(data.get('styling'), dict) else None

    service = _service()
    with service.lock:
        if service.quota_reached(controller_id, max_timers):
            limit = service.default_max_timers if max_timers is None else max_timers
            emit('limit-exceeded', {
                'type': 'timers',
                'message': (
                    f"You've reached the maximum number of timers ({limit}) for your plan. "
                    "Upgrade to create more timers."
                ),
            })
            current_app.logger.info(f"[limit-timers] controller={controller_id} limit={limit}")
            return
        timer = service.create_timer(
            data.get('name') or '', duration, controller_id, max_viewers=max_viewers, styling=styling
        )
        service.attach_owner_session(timer, _get_sid())
        _emit_timer_list(service, controller_id)
        emit('timer-created', timer.snapshot())


def handle_get_timers(data=None):
    data = _payload(data)
    controller_id = _controller_id(data, 'get-timers')
    if not controller_id:
        return
    service = _service()
    with service.lock:
        _emit_timer_list(service, controller_id)


def _join(data, view_only: bool) -> None:
    event = 'view-timer' if view_only else 'join-timer'
    data = _payload(data)
    controller_id = _controller_id(data, event)
    if not controller_id:
        return
    try:
        max_viewers = _int_field(data, 'maxViewers', 'maxConnectionsAllowed')
    except (TypeError, ValueError) as exc:
        current_app.logger.info(f"[drop] event={event} controller={controller_id} bad input: {exc}")
        return
    timer_id = data.get('timerId')
    sid = _get_sid()

    service = _service()
    with service.lock:
        timer = service.registry.lookup(timer_id)
        if timer is None:
            emit('timer-not-found', {'timerId': timer_id})
            return
        if max_viewers is not None:
            timer.set_max_viewers(max_viewers)
        if not service.join(timer, sid, controller_id, view_only=view_only):
            return
        emit('timer-joined', timer.snapshot())
        current_app.logger.info(f"[{event}] timer={timer.id} sid={sid} controller={controller_id}")
        if not view_only and timer.is_owned_by(controller_id):
            _emit_timer_list(service, controller_id)


def handle_join_timer(data=None):
    _join(data, view_only=False)


def handle_view_timer(data=None):
    _join(data, view_only=True)


# ---- owner-only commands ----

def _run_owner_command(data, event: str, apply: Callable[[Timer, Dict[str, Any]], None]) -> None:
    """Apply `apply` to the caller's timer, then refresh the caller's list.

    Unknown timers and ownership mismatches are dropped without a reply.
    """
    data = _payload(data)
    controller_id = _controller_id(data, event)
    if not controller_id:
        return
    service = _service()
    with service.lock:
        timer = service.registry.lookup(data.get('timerId'))
        if timer is None or not timer.is_owned_by(controller_id):
            current_app.logger.debug(
                f"[drop] event={event} timer={data.get('timerId')} controller={controller_id} not owned"
            )
            return
        try:
            apply(timer, data)
        except (TypeError, ValueError) as exc:
            current_app.logger.info(f"[drop] event={event} timer={timer.id} bad input: {exc}")
            return
        current_app.logger.info(f"[{event}] timer={timer.id} controller={controller_id}")
        _emit_timer_list(service, controller_id)


def handle_delete_timer(data=None):
    _run_owner_command(data, 'delete-timer', lambda timer, _: _service().delete_timer(timer))


def handle_set_timer(data=None):
    def apply(timer, payload):
        duration = _int_field(payload, 'duration')
        if duration is None:
            raise ValueError('duration is required')
        timer.set_duration(duration)
    _run_owner_command(data, 'set-timer', apply)


def handle_start_timer(data=None):
    _run_owner_command(data, 'start-timer', lambda timer, _: timer.start())


def handle_pause_timer(data=None):
    _run_owner_command(data, 'pause-timer', lambda timer, _: timer.pause())


def handle_reset_timer(data=None):
    _run_owner_command(data, 'reset-timer', lambda timer, _: timer.reset())


def handle_adjust_timer(data=None):
    def apply(timer, payload):
        seconds = _int_field(payload, 'seconds')
        if seconds is None:
            raise ValueError('seconds is required')
        timer.adjust_time(seconds)
    _run_owner_command(data, 'adjust-timer', apply)


def handle_update_message(data=None):
    _run_owner_command(
        data, 'update-message', lambda timer, payload: timer.update_message(str(payload.get('message') or ''))
    )


def handle_clear_message(data=None):
    _run_owner_command(data, 'clear-message', lambda timer, _: timer.clear_message())


def handle_update_styling(data=None):
    def apply(timer, payload):
        styling = payload.get('styling')
        timer.update_styling(styling if isinstance(styling, dict) else None)
    _run_owner_command(data, 'update-styling', apply)


def handle_toggle_flash(data=None):
    def apply(timer, payload):
        flashing = payload.get('isFlashing')
        if not isinstance(flashing, bool):
            raise TypeError('isFlashing must be a boolean')
        timer.toggle_flash(flashing)
    _run_owner_command(data, 'toggle-flash', apply)


HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'create-timer': handle_create_timer,
    'join-timer': handle_join_timer,
    'view-timer': handle_view_timer,
    'get-timers': handle_get_timers,
    'delete-timer': handle_delete_timer,
    'set-timer': handle_set_timer,
    'start-timer': handle_start_timer,
    'pause-timer': handle_pause_timer,
    'reset-timer': handle_reset_timer,
    'adjust-timer': handle_adjust_timer,
    'update-message': handle_update_message,
    'clear-message': handle_clear_message,
    'update-styling': handle_update_styling,
    'toggle-flash': handle_toggle_flash,
}


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register every Socket.IO command handler on `namespace`."""
    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace=namespace)
