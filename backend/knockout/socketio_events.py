from flask_socketio import join_room, leave_room, emit
from knockout import socketio


def game_room(game_id) -> str:
    return f"game:{game_id}"


def notify_game(game_id) -> None:
    """Tell clients watching a game that its state changed."""
    socketio.emit('state_update', {'game_id': game_id}, to=game_room(game_id), namespace='/ws')


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _game_id(data):
    game_id = (data or {}).get('game_id')
    try:
        return int(game_id)
    except (TypeError, ValueError):
        return None


def handle_join_game(data):
    game_id = _game_id(data)
    if game_id is None:
        emit('error', {'message': 'game_id is required'})
        return
    room = game_room(game_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_game(data):
    game_id = _game_id(data)
    if game_id is None:
        emit('error', {'message': 'game_id is required'})
        return
    room = game_room(game_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = (
        ('connect', handle_connect),
        ('join_game', handle_join_game),
        ('leave_game', handle_leave_game),
        ('ping', handle_ping),
    )
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers:
            socketio.on_event(event, handler, namespace=namespace)
