import threading
import time

import pytest

from quizsync.services.session.errors import InvalidTransition, KickedPlayer, NotFound, PermissionDenied
from quizsync.services.session.state import ACTIVE, Player, PlayerAnswer, Session
from quizsync.services.session.store import Actor, SessionStore, diff_paths

HOST = Actor.host('host')


@pytest.fixture()
def store():
    store = SessionStore()
    session = Session(game_id=7, host_id='host', code='XYZ789')
    session.players['alice'] = Player(id='alice', nickname='Alice', score=10)
    session.players['bob'] = Player(id='bob', nickname='Bob', score=20)
    store.create(session, HOST)
    return store


def _set(attr, value, pid=None):
    def apply(session):
        target = session.players[pid] if pid else session
        setattr(target, attr, value)
    return apply


def test_diff_paths_descends_into_dicts_only():
    before = {'a': 1, 'p': {'x': {'s': 1, 'l': [1]}}}
    after = {'a': 1, 'p': {'x': {'s': 2, 'l': [1, 2]}, 'y': {}}}
    assert set(diff_paths(before, after)) == {('p', 'x', 's'), ('p', 'x', 'l'), ('p', 'y')}


def test_create_requires_the_host_and_a_free_slot(store):
    with pytest.raises(PermissionDenied):
        store.create(Session(game_id=8, host_id='host'), Actor.player('host'))
    with pytest.raises(InvalidTransition):
        store.create(Session(game_id=7, host_id='host'), HOST)


def test_get_returns_a_detached_copy(store):
    session = store.get(7)
    session.status = ACTIVE
    assert store.get(7).status != ACTIVE
    with pytest.raises(NotFound):
        store.get(99)


def test_host_writes_session_fields(store):
    store.mutate(7, HOST, _set('status', ACTIVE))
    assert store.snapshot(7)['status'] == ACTIVE


def test_other_hosts_and_players_cannot_write_session_fields(store):
    with pytest.raises(PermissionDenied):
        store.mutate(7, Actor.host('intruder'), _set('status', ACTIVE))
    with pytest.raises(PermissionDenied):
        store.mutate(7, Actor.player('alice'), _set('status', ACTIVE))
    assert store.snapshot(7)['status'] == 'waiting'


def test_player_writes_only_its_own_record(store):
    store.mutate(7, Actor.player('alice'), _set('score', 15, 'alice'))
    with pytest.raises(PermissionDenied):
        store.mutate(7, Actor.player('alice'), _set('score', 99, 'bob'))
    assert store.snapshot(7)['players']['bob']['score'] == 20


def test_player_score_never_decreases(store):
    with pytest.raises(PermissionDenied):
        store.mutate(7, Actor.player('alice'), _set('score', 5, 'alice'))


def test_recorded_answers_are_append_only(store):
    first = PlayerAnswer('q1', [0], 100, True, 100, 1)

    def append(session):
        session.players['alice'].answers.append(first)

    def rewrite(session):
        session.players['alice'].answers[0] = PlayerAnswer('q1', [1], 100, False, 0, 1)

    store.mutate(7, Actor.player('alice'), append)
    with pytest.raises(PermissionDenied):
        store.mutate(7, Actor.player('alice'), rewrite)


def test_nobody_renames_a_player(store):
    with pytest.raises(PermissionDenied):
        store.mutate(7, Actor.player('alice'), _set('nickname', 'Al', 'alice'))
    with pytest.raises(PermissionDenied):
        store.mutate(7, HOST, _set('avatar', 'owl', 'alice'))


def test_host_moderates_and_resets_but_does_not_award_points(store):
    store.mutate(7, HOST, _set('is_muted', True, 'alice'))
    store.mutate(7, HOST, _set('score', 0, 'bob'))
    with pytest.raises(PermissionDenied):
        store.mutate(7, HOST, _set('score', 500, 'alice'))
    players = store.snapshot(7)['players']
    assert players['alice']['isMuted'] is True
    assert players['alice']['score'] == 10
    assert players['bob']['score'] == 0


def test_player_may_create_only_its_own_record(store):
    def add(pid):
        def apply(session):
            session.players[pid] = Player(id=pid, nickname=pid.title())
        return apply

    store.mutate(7, Actor.player('carol'), add('carol'))
    with pytest.raises(PermissionDenied):
        store.mutate(7, Actor.player('carol'), add('dave'))
    assert set(store.snapshot(7)['players']) == {'alice', 'bob', 'carol'}


def test_kicked_player_cannot_write(store):
    store.mutate(7, HOST, _set('is_kicked', True, 'alice'))
    with pytest.raises(KickedPlayer):
        store.mutate(7, Actor.player('alice'), _set('is_connected', False, 'alice'))


def test_failed_mutation_writes_nothing(store):
    def apply(session):
        session.status = ACTIVE
        raise InvalidTransition('nope')

    seen = []
    store.subscribe(7, seen.append)
    with pytest.raises(InvalidTransition):
        store.mutate(7, HOST, apply)
    assert store.snapshot(7)['status'] == 'waiting'
    assert len(seen) == 1


def test_subscribers_get_current_state_then_every_commit_in_order(store):
    seen = []
    unsubscribe = store.subscribe(7, seen.append)
    for score in (11, 12, 13):
        store.mutate(7, Actor.player('alice'), _set('score', score, 'alice'))
    unsubscribe()
    store.mutate(7, Actor.player('alice'), _set('score', 14, 'alice'))
    assert [s['players']['alice']['score'] for s in seen] == [10, 11, 12, 13]


def test_noop_mutation_does_not_notify(store):
    seen = []
    store.subscribe(7, seen.append)
    store.mutate(7, HOST, lambda session: None)
    assert len(seen) == 1


def test_subscribing_to_a_missing_session_delivers_none():
    seen = []
    SessionStore().subscribe(3, seen.append)
    assert seen == [None]


def test_failing_subscriber_does_not_block_others(store):
    seen = []

    def broken(snapshot):
        raise RuntimeError('boom')

    store.subscribe(7, broken)
    store.subscribe(7, seen.append)
    store.mutate(7, HOST, _set('status', ACTIVE))
    assert seen[-1]['status'] == ACTIVE


def test_listeners_see_every_session_and_deletion(store):
    events = []
    store.add_listener(lambda game_id, snapshot: events.append((game_id, snapshot and snapshot['status'])))
    store.mutate(7, HOST, _set('status', ACTIVE))
    store.delete(7, HOST)
    assert events == [(7, ACTIVE), (7, None)]
    assert not store.exists(7)


def test_slow_subscriber_does_not_stall_other_sessions(store):
    store.create(Session(game_id=8, host_id='host'), HOST)
    entered, release = threading.Event(), threading.Event()

    def slow(snapshot):
        if snapshot and snapshot['status'] == ACTIVE:
            entered.set()
            release.wait(5)

    store.subscribe(7, slow)
    writer = threading.Thread(target=store.mutate, args=(7, HOST, _set('status', ACTIVE)))
    writer.start()
    try:
        assert entered.wait(5)
        other_done = threading.Event()

        def write_other():
            store.mutate(8, HOST, _set('status', ACTIVE))
            other_done.set()

        other = threading.Thread(target=write_other)
        other.start()
        assert other_done.wait(2)
        assert store.snapshot(8)['status'] == ACTIVE
    finally:
        release.set()
        writer.join(5)


def test_writes_commit_while_delivery_is_in_progress(store):
    entered, release = threading.Event(), threading.Event()
    seen = []

    def slow(snapshot):
        seen.append(snapshot['players']['alice']['score'])
        if snapshot['players']['alice']['score'] == 11:
            entered.set()
            release.wait(5)

    store.subscribe(7, slow)
    first = threading.Thread(target=store.mutate, args=(7, Actor.player('alice'), _set('score', 11, 'alice')))
    first.start()
    second = None
    try:
        assert entered.wait(5)
        second = threading.Thread(target=store.mutate, args=(7, Actor.player('alice'), _set('score', 12, 'alice')))
        second.start()
        deadline = time.time() + 2
        while store.snapshot(7)['players']['alice']['score'] != 12 and time.time() < deadline:
            time.sleep(0.01)
        assert store.snapshot(7)['players']['alice']['score'] == 12
    finally:
        release.set()
        first.join(5)
        if second is not None:
            second.join(5)
    # deliveries for one game keep commit order
    assert seen == [10, 11, 12]
