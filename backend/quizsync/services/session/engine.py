"""Session lifecycle: the host's commands and the players' answers.

Host commands follow

    waiting -> active <-> paused -> finished
    (any but restarting) -> restarting -> waiting   (full restart)

and every change is written through the store as the host or as the
answering player, so ownership is checked on each write.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .countdown import elapsed, now_ms, resume_anchor
from .errors import AnswerWindowClosed, DuplicateSubmission, InvalidTransition, NotFound
from .presence import Presence
from .ranking import podium, rank_players
from .scoring import calculate_score
from .state import (
    ACTIVE,
    FINISHED,
    PAUSED,
    RESTARTING,
    WAITING,
    PlayerAnswer,
    Session,
)
from .store import Actor, SessionStore
from .validator import canonical_answer, check_answer
from .views import build_view

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameDefinition:
    """What the engine needs from the game definition: its code and questions."""
    id: Any
    code: str
    questions: tuple


@dataclass(frozen=True)
class EngineSettings:
    min_players: int = 1
    kick_grace_sec: float = 2.0
    full_restart_grace_sec: float = 2.0
    max_nickname_length: int = 20
    default_kick_reason: str = 'Rule violation'

    @classmethod
    def from_config(cls, config):
        return cls(
            min_players=int(config.get('MIN_PLAYERS', 1)),
            kick_grace_sec=float(config.get('KICK_GRACE_SEC', 2)),
            full_restart_grace_sec=float(config.get('FULL_RESTART_GRACE_SEC', 2)),
            max_nickname_length=int(config.get('MAX_NICKNAME_LENGTH', 20)),
            default_kick_reason=config.get('DEFAULT_KICK_REASON', 'Rule violation'),
        )


def _no_schedule(delay, key, fn, *args):
    return False


class SessionEngine:
    """Host/player API over one session store.

    Usable standalone (pass a store, a definition loader and a clock) or as
    a Flask extension through ``init_app``.
    """

    def __init__(self, store: Optional[SessionStore] = None,
                 definition_loader: Optional[Callable[[Any], GameDefinition]] = None,
                 clock: Callable[[], int] = now_ms,
                 schedule: Callable = _no_schedule,
                 settings: Optional[EngineSettings] = None):
        self.store = store or SessionStore()
        self.definition_loader = definition_loader
        self.clock = clock
        self.schedule = schedule
        self.settings = settings or EngineSettings()
        self.presence = Presence(self)
        self._definitions = {}

    def init_app(self, app) -> None:
        from functools import partial
        from quizsync.models import load_game_definition
        from .scheduler import schedule_grace

        self.store = SessionStore()
        self.definition_loader = load_game_definition
        self.clock = now_ms
        self.schedule = partial(schedule_grace, app)
        self.settings = EngineSettings.from_config(app.config)
        self.presence = Presence(self)
        self._definitions = {}
        app.extensions['quizsync'] = self

    # ---- game definitions ----

    def definition(self, game_id, refresh: bool = False) -> GameDefinition:
        if refresh or game_id not in self._definitions:
            if self.definition_loader is None:
                raise NotFound(f'Game {game_id} not found')
            definition = self.definition_loader(game_id)
            if definition is None:
                raise NotFound(f'Game {game_id} not found')
            self._definitions[game_id] = definition
        return self._definitions[game_id]

    def questions(self, game_id) -> tuple:
        return self.definition(game_id).questions

    def current_question(self, session: Session):
        questions = self.questions(session.game_id)
        if 0 <= session.current_question_index < len(questions):
            return questions[session.current_question_index]
        return None

    # ---- reads ----

    def get_snapshot(self, game_id) -> dict:
        snapshot = self.store.snapshot(game_id)
        if snapshot is None:
            raise NotFound(f'Session {game_id} not found')
        return snapshot

    def subscribe(self, game_id, callback) -> Callable[[], None]:
        return self.store.subscribe(game_id, callback)

    def leaderboard(self, game_id) -> list:
        return rank_players(self.store.get(game_id).players.values())

    def podium(self, game_id) -> list:
        return podium(self.store.get(game_id).players.values())

    def view(self, game_id, player_id: Optional[str] = None, now: Optional[int] = None) -> dict:
        return build_view(self.get_snapshot(game_id), self.questions(game_id), player_id,
                          self.clock() if now is None else now)

    # ---- lifecycle ----

    def create_session(self, game_id, host_id) -> dict:
        definition = self.definition(game_id, refresh=True)
        if not host_id:
            raise InvalidTransition('host_id is required')
        session = Session(game_id=game_id, host_id=str(host_id), code=definition.code,
                          created_at=self.clock())
        snapshot = self.store.create(session, Actor.host(host_id))
        logger.info('[create] game=%s host=%s questions=%d', game_id, host_id, len(definition.questions))
        return snapshot

    def _host_mutate(self, game_id, host_id, fn):
        return self.store.mutate(game_id, Actor.host(host_id), fn)

    @staticmethod
    def _require(session: Session, *statuses, action: str):
        if session.status not in statuses:
            raise InvalidTransition(f'Cannot {action} a {session.status} session')

    def start(self, game_id, host_id) -> dict:
        questions = self.questions(game_id)
        now = self.clock()

        def apply(session):
            self._require(session, WAITING, action='start')
            ready = [p for p in session.players.values()
                     if p.is_connected and not p.is_kicked and p.id != session.host_id]
            if len(ready) < max(1, self.settings.min_players):
                raise InvalidTransition(
                    f'At least {max(1, self.settings.min_players)} connected player(s) required to start')
            if not questions:
                raise InvalidTransition('The game has no questions')
            session.status = ACTIVE
            session.current_question_index = 0
            session.question_start_time = now
            session.paused_at = None
            session.show_results = False
            session.show_leaderboard = False
            session.finished_at = None
            return len(ready)

        players = self._host_mutate(game_id, host_id, apply)
        logger.info('[start] game=%s players=%d', game_id, players)
        return self.get_snapshot(game_id)

    def advance(self, game_id, host_id, index: Optional[int] = None) -> dict:
        total = len(self.questions(game_id))
        now = self.clock()

        def apply(session):
            self._require(session, ACTIVE, PAUSED, action='advance')
            target = session.current_question_index + 1 if index is None else index
            if isinstance(target, bool) or not isinstance(target, int) or not 0 <= target <= total:
                raise InvalidTransition(f'Question index {target!r} out of range')
            session.show_results = False
            session.show_leaderboard = False
            session.paused_at = None
            if target >= total:
                session.status = FINISHED
                session.current_question_index = max(0, total - 1)
                session.question_start_time = None
                session.finished_at = now
                return None
            session.status = ACTIVE
            session.current_question_index = target
            session.question_start_time = now
            return target

        moved_to = self._host_mutate(game_id, host_id, apply)
        if moved_to is None:
            logger.info('[finish] game=%s no questions left', game_id)
        else:
            logger.info('[advance] game=%s question=%d/%d', game_id, moved_to + 1, total)
        return self.get_snapshot(game_id)

    def pause(self, game_id, host_id) -> dict:
        now = self.clock()

        def apply(session):
            self._require(session, ACTIVE, action='pause')
            session.status = PAUSED
            session.paused_at = now

        self._host_mutate(game_id, host_id, apply)
        logger.info('[pause] game=%s', game_id)
        return self.get_snapshot(game_id)

    def resume(self, game_id, host_id) -> dict:
        now = self.clock()

        def apply(session):
            self._require(session, PAUSED, action='resume')
            session.question_start_time = resume_anchor(session.question_start_time, session.paused_at, now)
            session.paused_at = None
            session.status = ACTIVE
            session.show_results = False

        self._host_mutate(game_id, host_id, apply)
        logger.info('[resume] game=%s', game_id)
        return self.get_snapshot(game_id)

    def reveal_results(self, game_id, host_id) -> dict:
        now = self.clock()

        def apply(session):
            self._require(session, ACTIVE, PAUSED, action='reveal results of')
            if session.status == ACTIVE:
                session.paused_at = now
            session.status = PAUSED
            session.show_results = True
            session.show_leaderboard = False

        self._host_mutate(game_id, host_id, apply)
        logger.info('[results] game=%s', game_id)
        return self.get_snapshot(game_id)

    def reveal_leaderboard(self, game_id, host_id) -> dict:

        def apply(session):
            self._require(session, ACTIVE, PAUSED, action='reveal the leaderboard of')
            session.show_leaderboard = True
            session.show_results = False

        self._host_mutate(game_id, host_id, apply)
        logger.info('[leaderboard] game=%s', game_id)
        return self.get_snapshot(game_id)

    def end(self, game_id, host_id) -> dict:
        now = self.clock()

        def apply(session):
            self._require(session, ACTIVE, PAUSED, action='end')
            session.status = FINISHED
            session.show_results = False
            session.show_leaderboard = False
            session.paused_at = None
            session.finished_at = now

        self._host_mutate(game_id, host_id, apply)
        logger.info('[end] game=%s', game_id)
        return self.get_snapshot(game_id)

    def restart(self, game_id, host_id) -> dict:
        """Soft restart: back to waiting with every player kept at zero."""

        def apply(session):
            self._require(session, WAITING, ACTIVE, PAUSED, FINISHED, action='restart')
            session.status = WAITING
            session.current_question_index = 0
            session.question_start_time = None
            session.paused_at = None
            session.show_results = False
            session.show_leaderboard = False
            session.finished_at = None
            for player in session.players.values():
                player.score = 0
                player.answers = []
            return len(session.players)

        kept = self._host_mutate(game_id, host_id, apply)
        self.definition(game_id, refresh=True)
        logger.info('[restart] game=%s players_kept=%d', game_id, kept)
        return self.get_snapshot(game_id)

    def full_restart(self, game_id, host_id) -> dict:
        """Hard restart, phase one: signal every client, then wipe after the grace delay."""

        def apply(session):
            self._require(session, WAITING, ACTIVE, PAUSED, FINISHED, action='fully restart')
            session.status = RESTARTING
            session.restart_signal = True
            session.show_results = False
            session.show_leaderboard = False

        self._host_mutate(game_id, host_id, apply)
        logger.info('[full-restart] game=%s grace=%ss', game_id, self.settings.full_restart_grace_sec)
        self.schedule(self.settings.full_restart_grace_sec, ('full_restart', game_id),
                      self.complete_full_restart, game_id, host_id)
        return self.get_snapshot(game_id)

    def complete_full_restart(self, game_id, host_id) -> Optional[dict]:
        """Hard restart, phase two: replace the session with a fresh empty one."""
        current = self.store.get(game_id)
        if current.status != RESTARTING:
            logger.info('[full-restart-skip] game=%s status=%s', game_id, current.status)
            return None
        definition = self.definition(game_id, refresh=True)
        fresh = Session(game_id=game_id, host_id=current.host_id, code=definition.code,
                        created_at=self.clock())
        snapshot = self.store.replace(game_id, Actor.host(host_id), fresh)
        logger.info('[full-restart-done] game=%s dropped_players=%d', game_id, len(current.players))
        return snapshot

    # ---- answers ----

    def submit_answer(self, game_id, player_id, answer) -> dict:
        """Record ``player_id``'s answer to the current question and add its points.

        Rejected (nothing written) when the question is not open, when the
        player is unknown or kicked, or when this question was already
        answered.
        """
        questions: List = list(self.questions(game_id))
        now = self.clock()

        def apply(session):
            if session.status != ACTIVE or session.show_results:
                raise AnswerWindowClosed('Answers are not being accepted right now')
            player = session.players.get(player_id)
            if player is None:
                raise NotFound(f'Player {player_id} not found')
            if not 0 <= session.current_question_index < len(questions):
                raise AnswerWindowClosed('No question is open')
            question = questions[session.current_question_index]
            if player.has_answered(question.id):
                raise DuplicateSubmission(f'Question {question.id} was already answered')
            is_correct = check_answer(question, answer)
            spent = elapsed(now, session.question_start_time, question.time_limit_ms)
            points = calculate_score(is_correct, spent, question.points, question.time_limit)
            recorded = PlayerAnswer(
                question_id=question.id,
                answer=canonical_answer(question, answer),
                time_spent=spent,
                is_correct=is_correct,
                points=points,
                submitted_at=now,
            )
            player.answers.append(recorded)
            player.score += points
            player.last_activity = now
            return recorded

        recorded = self.store.mutate(game_id, Actor.player(player_id), apply)
        logger.info('[answer] game=%s player=%s question=%s correct=%s points=%d',
                    game_id, player_id, recorded.question_id, recorded.is_correct, recorded.points)
        return recorded.to_dict()
