"""Authoritative in-process session store.

Every write goes through ``mutate``: the change is applied to a copy,
the changed paths are checked against the writer's ownership, and only
then committed. Subscribers receive the complete session document after
each committed change, never a diff. Delivery runs after the store lock
is released, under a per-game lock; a snapshot older than one already
delivered for that game is dropped.

Ownership:

* the host writes session-level fields, adds and removes player records,
  writes a player's moderation fields, and may reset a player's score and
  answers to zero;
* a player writes only its own subtree (score up, answers appended,
  presence), and creates its own record on join;
* nothing ever changes a player's nickname or avatar after join.
"""
import copy
import logging
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from .errors import InvalidTransition, KickedPlayer, NotFound, PermissionDenied
from .state import Session

logger = logging.getLogger(__name__)

HOST = 'host'
PLAYER = 'player'

MODERATION_FIELDS = {'isKicked', 'kickReason', 'kickedAt', 'isConnected', 'isMuted', 'warnings', 'moderation'}
PLAYER_FIELDS = {'score', 'answers', 'isConnected', 'lastActivity'}
RESETTABLE_FIELDS = {'score': 0, 'answers': []}


@dataclass(frozen=True)
class Actor:
    kind: str
    id: str

    @classmethod
    def host(cls, host_id):
        return cls(HOST, str(host_id))

    @classmethod
    def player(cls, player_id):
        return cls(PLAYER, str(player_id))

    @property
    def is_host(self):
        return self.kind == HOST


def diff_paths(before: Dict[str, Any], after: Dict[str, Any], prefix=()):
    """Yield the paths whose values differ. Lists are compared whole."""
    for key in set(before) | set(after):
        path = prefix + (key,)
        if key not in before or key not in after:
            yield path
            continue
        old, new = before[key], after[key]
        if isinstance(old, dict) and isinstance(new, dict):
            yield from diff_paths(old, new, path)
        elif old != new:
            yield path


class SessionStore:

    def __init__(self):
        self._lock = RLock()
        self._sessions: Dict[Any, Session] = {}
        self._subscribers: Dict[Any, List[Callable]] = {}
        self._listeners: List[Callable] = []
        # per game: commit counter, last delivered commit, delivery lock
        self._versions: Dict[Any, int] = {}
        self._delivered: Dict[Any, int] = {}
        self._delivery_locks: Dict[Any, RLock] = {}

    # ---- reads ----

    def exists(self, game_id) -> bool:
        with self._lock:
            return game_id in self._sessions

    def get(self, game_id) -> Session:
        with self._lock:
            session = self._sessions.get(game_id)
            if session is None:
                raise NotFound(f'Session {game_id} not found')
            return copy.deepcopy(session)

    def snapshot(self, game_id) -> Optional[Dict[str, Any]]:
        with self._lock:
            session = self._sessions.get(game_id)
            return session.to_dict() if session is not None else None

    # ---- subscriptions ----

    def subscribe(self, game_id, callback: Callable[[Optional[dict]], None]) -> Callable[[], None]:
        """Register ``callback`` for every snapshot of ``game_id``.

        The current snapshot (or None) is delivered immediately. Returns a
        function that cancels the subscription.
        """
        with self._delivery_lock(game_id):
            with self._lock:
                self._subscribers.setdefault(game_id, []).append(callback)
                current = self.snapshot(game_id)
            self._deliver(callback, current)

        def unsubscribe():
            with self._lock:
                bucket = self._subscribers.get(game_id, [])
                if callback in bucket:
                    bucket.remove(callback)
                if not bucket:
                    self._subscribers.pop(game_id, None)

        return unsubscribe

    def add_listener(self, callback: Callable[[Any, Optional[dict]], None]) -> None:
        """Listen to snapshots of every session: ``callback(game_id, snapshot)``."""
        with self._lock:
            self._listeners.append(callback)

    def _delivery_lock(self, game_id) -> RLock:
        with self._lock:
            return self._delivery_locks.setdefault(game_id, RLock())

    def _deliver(self, callback, *args):
        try:
            callback(*copy.deepcopy(args))
        except Exception:
            logger.exception('[store-subscriber] callback %r failed', callback)

    def _notify(self, game_id, version: int, snapshot):
        # Never called with self._lock held: a slow subscriber only holds up its own game
        with self._delivery_lock(game_id):
            if version <= self._delivered.get(game_id, 0):
                logger.debug('[store-stale] game=%s version=%d superseded', game_id, version)
                return
            self._delivered[game_id] = version
            with self._lock:
                subscribers = list(self._subscribers.get(game_id, []))
                listeners = list(self._listeners)
            for callback in subscribers:
                self._deliver(callback, snapshot)
            for listener in listeners:
                self._deliver(listener, game_id, snapshot)

    # ---- writes ----

    def _commit(self, game_id, session: Optional[Session]):
        """Store ``session`` (None deletes) and return its version and snapshot. Lock held."""
        if session is None:
            del self._sessions[game_id]
        else:
            self._sessions[game_id] = session
        version = self._versions.get(game_id, 0) + 1
        self._versions[game_id] = version
        return version, session.to_dict() if session is not None else None

    def create(self, session: Session, actor: Actor) -> Dict[str, Any]:
        if not actor.is_host or actor.id != str(session.host_id):
            raise PermissionDenied('Only the host may create the session')
        with self._lock:
            if session.game_id in self._sessions:
                raise InvalidTransition(f'Session {session.game_id} already exists')
            version, snapshot = self._commit(session.game_id, copy.deepcopy(session))
            logger.info('[store-create] game=%s host=%s', session.game_id, session.host_id)
        self._notify(session.game_id, version, snapshot)
        return snapshot

    def replace(self, game_id, actor: Actor, session: Session) -> Dict[str, Any]:
        with self._lock:
            current = self._require(game_id)
            self._check_host(actor, current)
            version, snapshot = self._commit(game_id, copy.deepcopy(session))
        self._notify(game_id, version, snapshot)
        return snapshot

    def delete(self, game_id, actor: Actor) -> None:
        with self._lock:
            current = self._require(game_id)
            self._check_host(actor, current)
            version, _ = self._commit(game_id, None)
            logger.info('[store-delete] game=%s', game_id)
        self._notify(game_id, version, None)

    def mutate(self, game_id, actor: Actor, fn: Callable[[Session], Any]):
        """Apply ``fn`` to a working copy and commit it if ``actor`` owns every change.

        ``fn`` may raise to abort; nothing is written in that case. Returns
        whatever ``fn`` returns.
        """
        with self._lock:
            current = self._require(game_id)
            if actor.is_host:
                self._check_host(actor, current)
            else:
                player = current.players.get(actor.id)
                if player is not None and player.is_kicked:
                    raise KickedPlayer(f'Player {actor.id} was removed from the game')
            working = copy.deepcopy(current)
            result = fn(working)
            before = current.to_dict()
            after = working.to_dict()
            changed = list(diff_paths(before, after))
            if not changed:
                return result
            for path in changed:
                self._authorize(actor, path, before, after)
            version, snapshot = self._commit(game_id, working)
        self._notify(game_id, version, snapshot)
        return result

    def _require(self, game_id) -> Session:
        session = self._sessions.get(game_id)
        if session is None:
            raise NotFound(f'Session {game_id} not found')
        return session

    def _check_host(self, actor: Actor, session: Session) -> None:
        if not actor.is_host or actor.id != str(session.host_id):
            raise PermissionDenied('Only the host may control the session')

    def _authorize(self, actor: Actor, path, before, after) -> None:
        if path[0] != 'players':
            if not actor.is_host:
                raise PermissionDenied(f'Field {path[0]} is host-owned')
            return
        if len(path) < 2:
            raise PermissionDenied('Players mapping cannot be replaced')
        pid = path[1]
        old_player = before['players'].get(pid)
        new_player = after['players'].get(pid)

        if len(path) == 2:
            if actor.is_host:
                return
            # a player may only create its own record
            if pid == actor.id and old_player is None and new_player is not None:
                return
            raise PermissionDenied(f'Player {actor.id} cannot add or remove player {pid}')

        field = path[2]
        if field in ('id', 'nickname', 'avatar', 'joinedAt'):
            raise PermissionDenied(f'Field {field} is fixed at join time')

        if actor.is_host:
            if field in MODERATION_FIELDS:
                return
            if field in RESETTABLE_FIELDS and new_player[field] == RESETTABLE_FIELDS[field]:
                return
            raise PermissionDenied(f'Host cannot write {field} of player {pid}')

        if pid != actor.id:
            raise PermissionDenied(f'Player {actor.id} cannot write player {pid}')
        if field not in PLAYER_FIELDS:
            raise PermissionDenied(f'Field {field} is host-owned')
        if field == 'score' and new_player['score'] < old_player['score']:
            raise PermissionDenied('Score never decreases')
        if field == 'answers':
            old_answers = old_player['answers']
            if new_player['answers'][:len(old_answers)] != old_answers:
                raise PermissionDenied('Recorded answers are immutable')
