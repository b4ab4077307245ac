from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from quizsync import socketio, engine
from quizsync.services.session.errors import SessionError
from typing import Dict, Any, Tuple
import logging

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'

# sid -> {'game_id': int, 'player_id': str | None}
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
# (game_id, player_id) -> live subscribed sockets of that player
_player_sockets: Dict[Tuple[int, str], int] = {}


def room_for(game_id) -> str:
    return f"session:{game_id}"


def broadcast_snapshot(game_id, snapshot) -> None:
    """Store listener: push the full session document to everyone subscribed.

    A failed emit is only logged; the next committed change carries the
    complete state again.
    """
    try:
        if snapshot is None:
            socketio.emit('session_deleted', {'gameId': game_id}, to=room_for(game_id), namespace=NAMESPACE)
        else:
            socketio.emit('session_snapshot', snapshot, to=room_for(game_id), namespace=NAMESPACE)
    except Exception:
        logger.warning(f"[emit-failed] game={game_id}", exc_info=True)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _parse_game_id(data):
    try:
        return int((data or {}).get('game_id'))
    except (TypeError, ValueError):
        return None


def _track(ctx) -> None:
    if ctx and ctx.get('player_id'):
        key = (ctx['game_id'], ctx['player_id'])
        _player_sockets[key] = _player_sockets.get(key, 0) + 1


def _untrack(ctx) -> bool:
    """Forget one socket of the player in ``ctx``; True once none is left."""
    if not ctx or not ctx.get('player_id'):
        return False
    key = (ctx['game_id'], ctx['player_id'])
    left = max(0, _player_sockets.get(key, 0) - 1)
    if left:
        _player_sockets[key] = left
        return False
    _player_sockets.pop(key, None)
    return True


def _mark_gone(ctx, tag: str) -> None:
    try:
        engine.presence.set_presence(ctx['game_id'], ctx['player_id'], False)
    except SessionError as exc:
        # kicked or already removed players have no presence to update
        current_app.logger.info(f"[{tag}] game={ctx['game_id']} player={ctx['player_id']} {exc.kind}")


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if _untrack(ctx):
        _mark_gone(ctx, 'disconnect')


def handle_subscribe(data):
    game_id = _parse_game_id(data)
    if game_id is None:
        emit('error', {'message': 'game_id is required'})
        return
    player_id = (data or {}).get('player_id')
    snapshot = engine.store.snapshot(game_id)
    if snapshot is None:
        emit('error', {'message': f'Session {game_id} not found', 'code': 'not_found'})
        return
    join_room(room_for(game_id))
    ctx = {'game_id': game_id, 'player_id': str(player_id) if player_id else None}
    previous = _sid_to_ctx.get(_get_sid())
    if previous != ctx:
        if _untrack(previous):
            _mark_gone(previous, 'resubscribe')
        _track(ctx)
    _sid_to_ctx[_get_sid()] = ctx
    emit('subscribed', {'room': room_for(game_id)})
    if player_id:
        try:
            engine.presence.set_presence(game_id, str(player_id), True)
        except SessionError as exc:
            emit('error', exc.to_dict())
    # Snapshot after any presence write, so the subscriber starts from the latest state
    emit('session_snapshot', engine.store.snapshot(game_id))


def handle_unsubscribe(data):
    game_id = _parse_game_id(data)
    if game_id is None:
        emit('error', {'message': 'game_id is required'})
        return
    leave_room(room_for(game_id))
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('game_id') == game_id:
        _sid_to_ctx.pop(_get_sid(), None)
        if _untrack(ctx):
            _mark_gone(ctx, 'unsubscribe')
    emit('unsubscribed', {'room': room_for(game_id)})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    # a new app starts with an empty session store
    _sid_to_ctx.clear()
    _player_sockets.clear()

    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('subscribe', handle_subscribe, namespace=NAMESPACE)
    socketio.on_event('unsubscribe', handle_unsubscribe, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('subscribe', handle_subscribe, namespace='/')
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
