"""Standings and podium, derived from a player set on every snapshot."""
from dataclasses import dataclass
from itertools import groupby
from typing import List

PODIUM_SLOTS = 3


@dataclass(frozen=True)
class Standing:
    position: int
    player_id: str
    nickname: str
    avatar: str
    score: int

    def to_dict(self):
        return {
            'position': self.position,
            'playerId': self.player_id,
            'nickname': self.nickname,
            'avatar': self.avatar,
            'score': self.score,
        }


@dataclass(frozen=True)
class PodiumSlot:
    position: int
    score: int
    members: tuple  # Standing, nickname order

    @property
    def display_position(self) -> str:
        if len(self.members) == 1:
            return str(self.position)
        return f'{self.position}-{self.position + len(self.members) - 1}'

    @property
    def is_shared(self) -> bool:
        return len(self.members) > 1

    def to_dict(self):
        return {
            'position': self.position,
            'displayPosition': self.display_position,
            'score': self.score,
            'shared': self.is_shared,
            'players': [m.to_dict() for m in self.members],
        }


@dataclass(frozen=True)
class RevealStep:
    kind: str  # 'slot' or 'finale'
    slot: PodiumSlot = None

    def to_dict(self):
        return {'kind': self.kind, 'slot': self.slot.to_dict() if self.slot else None}


def eligible(players) -> list:
    """Players that count for standings: connected and not kicked."""
    return [p for p in players if p.is_connected and not p.is_kicked]


def rank_players(players) -> List[Standing]:
    """Order by score (desc) then nickname, ignoring case; tied scores share a position.

    Positions follow competition ranking: scores [50, 50, 30] rank 1, 1, 3.
    """
    ordered = sorted(eligible(players), key=lambda p: (-p.score, p.nickname.casefold(), p.nickname, p.id))
    standings = []
    position = 0
    previous_score = None
    for index, player in enumerate(ordered, start=1):
        if player.score != previous_score:
            position = index
            previous_score = player.score
        standings.append(Standing(
            position=position,
            player_id=player.id,
            nickname=player.nickname,
            avatar=player.avatar,
            score=player.score,
        ))
    return standings


def podium(players, slots: int = PODIUM_SLOTS) -> List[PodiumSlot]:
    """Top ``slots`` distinct score groups. A tied group is never split."""
    groups = []
    for score, members in groupby(rank_players(players), key=lambda s: s.score):
        members = tuple(members)
        groups.append(PodiumSlot(position=members[0].position, score=score, members=members))
        if len(groups) == slots:
            break
    return groups


def reveal_sequence(slots: List[PodiumSlot]) -> List[RevealStep]:
    """Ceremony order: lowest shown place first up to first place, then everyone together."""
    if not slots:
        return []
    steps = [RevealStep('slot', slot) for slot in reversed(slots)]
    steps.append(RevealStep('finale'))
    return steps
