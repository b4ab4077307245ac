from quizsync.services.session.ranking import podium, rank_players, reveal_sequence
from quizsync.services.session.state import Player


def _player(pid, nickname, score, **kwargs):
    return Player(id=pid, nickname=nickname, score=score, **kwargs)


def test_ties_share_a_position_and_skip_the_next():
    players = [_player('b', 'Bob', 50), _player('a', 'Alice', 50), _player('z', 'Zoe', 30)]
    standings = rank_players(players)
    assert [(s.nickname, s.position) for s in standings] == [('Alice', 1), ('Bob', 1), ('Zoe', 3)]


def test_ranking_ignores_disconnected_and_kicked_players():
    players = [
        _player('a', 'Alice', 10),
        _player('b', 'Bob', 90, is_connected=False),
        _player('c', 'Cid', 80, is_kicked=True),
    ]
    standings = rank_players(players)
    assert [s.player_id for s in standings] == ['a']
    assert standings[0].position == 1


def test_standing_serializes_camel_case():
    standing = rank_players([_player('a', 'Alice', 7, avatar='cat')])[0]
    assert standing.to_dict() == {'position': 1, 'playerId': 'a', 'nickname': 'Alice', 'avatar': 'cat', 'score': 7}


def test_podium_groups_ties_without_splitting_them():
    players = [
        _player('a', 'Ann', 100),
        _player('b', 'Ben', 100),
        _player('c', 'Cat', 80),
        _player('d', 'Dan', 60),
        _player('e', 'Eve', 60),
        _player('f', 'Fay', 10),
    ]
    slots = podium(players)
    assert [slot.score for slot in slots] == [100, 80, 60]
    assert [slot.display_position for slot in slots] == ['1-2', '3', '4-5']
    assert [m.nickname for m in slots[2].members] == ['Dan', 'Eve']
    assert slots[0].is_shared and not slots[1].is_shared
    # Fay falls outside the three score groups
    assert all(m.nickname != 'Fay' for slot in slots for m in slot.members)


def test_podium_with_fewer_players_than_slots():
    slots = podium([_player('a', 'Ann', 5)])
    assert len(slots) == 1
    assert slots[0].to_dict()['players'][0]['nickname'] == 'Ann'
    assert podium([]) == []


def test_reveal_goes_from_lowest_place_to_first_then_finale():
    players = [_player('a', 'Ann', 30), _player('b', 'Ben', 20), _player('c', 'Cat', 10)]
    steps = reveal_sequence(podium(players))
    assert [step.kind for step in steps] == ['slot', 'slot', 'slot', 'finale']
    assert [step.slot.position for step in steps[:3]] == [3, 2, 1]
    assert steps[-1].to_dict() == {'kind': 'finale', 'slot': None}
    assert reveal_sequence([]) == []


def test_nickname_tie_break_ignores_case():
    players = [_player('b', 'Bob', 40), _player('a', 'alice', 40), _player('c', 'Cid', 40)]
    assert [s.nickname for s in rank_players(players)] == ['alice', 'Bob', 'Cid']
