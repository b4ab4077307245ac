"""Session document: the record every client subscribes to.

Objects here are plain mutable dataclasses owned by the store. Callers
outside the store only ever see deep copies or the JSON form produced by
``to_dict``, which mirrors the wire document (camelCase keys).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

WAITING = 'waiting'
ACTIVE = 'active'
PAUSED = 'paused'
FINISHED = 'finished'
RESTARTING = 'restarting'
STATUSES = (WAITING, ACTIVE, PAUSED, FINISHED, RESTARTING)

# Kick sub-machine
MOD_ACTIVE = 'active'
MOD_KICKED_PENDING = 'kicked_pending_removal'
MOD_REMOVED = 'removed'


@dataclass(frozen=True)
class PlayerAnswer:
    question_id: str
    answer: Any
    time_spent: int  # ms
    is_correct: bool
    points: int
    submitted_at: int  # epoch ms

    def to_dict(self):
        return {
            'questionId': self.question_id,
            'answer': self.answer,
            'timeSpent': self.time_spent,
            'isCorrect': self.is_correct,
            'points': self.points,
            'submittedAt': self.submitted_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            question_id=data['questionId'],
            answer=data.get('answer'),
            time_spent=int(data.get('timeSpent', 0)),
            is_correct=bool(data.get('isCorrect')),
            points=int(data.get('points', 0)),
            submitted_at=int(data.get('submittedAt', 0)),
        )


@dataclass
class Player:
    id: str
    nickname: str
    avatar: str = ''
    score: int = 0
    answers: List[PlayerAnswer] = field(default_factory=list)
    is_connected: bool = True
    is_muted: bool = False
    warnings: int = 0
    is_kicked: bool = False
    kick_reason: Optional[str] = None
    kicked_at: Optional[int] = None
    moderation: str = MOD_ACTIVE
    joined_at: Optional[int] = None
    last_activity: Optional[int] = None

    def answer_for(self, question_id: str) -> Optional[PlayerAnswer]:
        return next((a for a in self.answers if a.question_id == question_id), None)

    def has_answered(self, question_id: str) -> bool:
        return self.answer_for(question_id) is not None

    def to_dict(self):
        return {
            'id': self.id,
            'nickname': self.nickname,
            'avatar': self.avatar,
            'score': self.score,
            'answers': [a.to_dict() for a in self.answers],
            'isConnected': self.is_connected,
            'isMuted': self.is_muted,
            'warnings': self.warnings,
            'isKicked': self.is_kicked,
            'kickReason': self.kick_reason,
            'kickedAt': self.kicked_at,
            'moderation': self.moderation,
            'joinedAt': self.joined_at,
            'lastActivity': self.last_activity,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            nickname=data.get('nickname', ''),
            avatar=data.get('avatar', ''),
            score=int(data.get('score', 0)),
            answers=[PlayerAnswer.from_dict(a) for a in data.get('answers') or []],
            is_connected=bool(data.get('isConnected', True)),
            is_muted=bool(data.get('isMuted', False)),
            warnings=int(data.get('warnings', 0)),
            is_kicked=bool(data.get('isKicked', False)),
            kick_reason=data.get('kickReason'),
            kicked_at=data.get('kickedAt'),
            moderation=data.get('moderation', MOD_ACTIVE),
            joined_at=data.get('joinedAt'),
            last_activity=data.get('lastActivity'),
        )


@dataclass
class Session:
    game_id: Any
    host_id: str
    code: str = ''
    status: str = WAITING
    current_question_index: int = 0
    question_start_time: Optional[int] = None
    paused_at: Optional[int] = None
    show_results: bool = False
    show_leaderboard: bool = False
    restart_signal: bool = False
    created_at: Optional[int] = None
    finished_at: Optional[int] = None
    players: Dict[str, Player] = field(default_factory=dict)
    # ids removed by a kick; they cannot join again until a full restart
    removed_players: List[str] = field(default_factory=list)

    def get_player(self, player_id: str) -> Optional[Player]:
        return self.players.get(player_id)

    def to_dict(self):
        return {
            'gameId': self.game_id,
            'hostId': self.host_id,
            'code': self.code,
            'status': self.status,
            'currentQuestionIndex': self.current_question_index,
            'questionStartTime': self.question_start_time,
            'pausedAt': self.paused_at,
            'showResults': self.show_results,
            'showLeaderboard': self.show_leaderboard,
            'restartSignal': self.restart_signal,
            'createdAt': self.created_at,
            'finishedAt': self.finished_at,
            'players': {pid: p.to_dict() for pid, p in self.players.items()},
            'removedPlayers': list(self.removed_players),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            game_id=data['gameId'],
            host_id=data.get('hostId', ''),
            code=data.get('code', ''),
            status=data.get('status', WAITING),
            current_question_index=int(data.get('currentQuestionIndex', 0)),
            question_start_time=data.get('questionStartTime'),
            paused_at=data.get('pausedAt'),
            show_results=bool(data.get('showResults', False)),
            show_leaderboard=bool(data.get('showLeaderboard', False)),
            restart_signal=bool(data.get('restartSignal', False)),
            created_at=data.get('createdAt'),
            finished_at=data.get('finishedAt'),
            players={pid: Player.from_dict(p) for pid, p in (data.get('players') or {}).items()},
            removed_players=list(data.get('removedPlayers') or []),
        )
