"""Presence and moderation.

A kick has two phases: the host flags the player at once (the player's
client leaves as soon as it sees ``isKicked``), and after a short grace
delay the record is removed so standings no longer include it:

    active -> kicked_pending_removal -> removed
"""
import logging
from typing import Optional

from .errors import InvalidTransition, KickedPlayer, NotFound, ValidationFailed
from .state import (
    FINISHED,
    MOD_KICKED_PENDING,
    MOD_REMOVED,
    RESTARTING,
    Player,
)
from .store import Actor

logger = logging.getLogger(__name__)


def moderation_state(session, player_id: str) -> Optional[str]:
    player = session.players.get(player_id)
    if player is not None:
        return player.moderation
    if player_id in session.removed_players:
        return MOD_REMOVED
    return None


def normalize_nickname(nickname, max_length: int = 20) -> str:
    if not isinstance(nickname, str):
        return ''
    return nickname.strip()[:max_length]


class Presence:

    def __init__(self, engine):
        self.engine = engine

    @property
    def store(self):
        return self.engine.store

    def join(self, game_id, player_id, nickname, avatar: str = '') -> dict:
        """Add ``player_id`` to the session, or reconnect it if it is already there."""
        player_id = str(player_id or '').strip()
        if not player_id:
            raise ValidationFailed('player_id is required')
        name = normalize_nickname(nickname, self.engine.settings.max_nickname_length)
        now = self.engine.clock()

        def apply(session):
            if session.status in (FINISHED, RESTARTING):
                raise InvalidTransition(f'Cannot join a {session.status} session')
            if player_id == session.host_id:
                raise ValidationFailed('The host cannot join as a player')
            if player_id in session.removed_players:
                raise KickedPlayer(f'Player {player_id} was removed from the game')
            existing = session.players.get(player_id)
            if existing is not None:
                existing.is_connected = True
                existing.last_activity = now
                return False
            if not name:
                raise ValidationFailed('nickname is required')
            session.players[player_id] = Player(
                id=player_id,
                nickname=name,
                avatar=str(avatar or ''),
                joined_at=now,
                last_activity=now,
            )
            return True

        created = self.store.mutate(game_id, Actor.player(player_id), apply)
        logger.info('[join] game=%s player=%s new=%s', game_id, player_id, created)
        return self.store.snapshot(game_id)['players'][player_id]

    def set_presence(self, game_id, player_id, is_connected: bool) -> None:
        now = self.engine.clock()

        def apply(session):
            player = session.players.get(player_id)
            if player is None:
                raise NotFound(f'Player {player_id} not found')
            player.is_connected = bool(is_connected)
            player.last_activity = now

        self.store.mutate(game_id, Actor.player(player_id), apply)
        logger.info('[presence] game=%s player=%s connected=%s', game_id, player_id, bool(is_connected))

    def kick(self, game_id, host_id, player_id, reason: Optional[str] = None) -> dict:
        reason = (reason or '').strip() or self.engine.settings.default_kick_reason
        now = self.engine.clock()

        def apply(session):
            player = session.players.get(player_id)
            if player is None:
                raise NotFound(f'Player {player_id} not found')
            if player.is_kicked:
                return False
            player.is_kicked = True
            player.kick_reason = reason
            player.kicked_at = now
            player.is_connected = False
            player.moderation = MOD_KICKED_PENDING
            return True

        flagged = self.store.mutate(game_id, Actor.host(host_id), apply)
        if flagged:
            logger.info('[kick] game=%s player=%s reason=%s', game_id, player_id, reason)
            self.engine.schedule(self.engine.settings.kick_grace_sec, ('kick', game_id, player_id),
                                 self.complete_kick, game_id, host_id, player_id)
        return self.store.snapshot(game_id)['players'][player_id]

    def complete_kick(self, game_id, host_id, player_id) -> bool:
        """Second phase: drop the flagged record. No-op unless the player is pending removal."""

        def apply(session):
            player = session.players.get(player_id)
            if player is None or player.moderation != MOD_KICKED_PENDING:
                return False
            del session.players[player_id]
            if player_id not in session.removed_players:
                session.removed_players.append(player_id)
            return True

        removed = self.store.mutate(game_id, Actor.host(host_id), apply)
        if removed:
            logger.info('[kick-removed] game=%s player=%s', game_id, player_id)
        return removed

    def warn(self, game_id, host_id, player_id) -> int:

        def apply(session):
            player = session.players.get(player_id)
            if player is None:
                raise NotFound(f'Player {player_id} not found')
            player.warnings += 1
            return player.warnings

        warnings = self.store.mutate(game_id, Actor.host(host_id), apply)
        logger.info('[warn] game=%s player=%s warnings=%d', game_id, player_id, warnings)
        return warnings

    def set_muted(self, game_id, host_id, player_id, muted: bool) -> None:

        def apply(session):
            player = session.players.get(player_id)
            if player is None:
                raise NotFound(f'Player {player_id} not found')
            player.is_muted = bool(muted)

        self.store.mutate(game_id, Actor.host(host_id), apply)
        logger.info('[mute] game=%s player=%s muted=%s', game_id, player_id, bool(muted))
