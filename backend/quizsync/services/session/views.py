"""Client-side view state, recomputed from scratch on every snapshot.

Snapshots may be coalesced, so nothing here assumes it saw the previous
change; ``detect_transitions`` only compares the two snapshots it is given.
"""
from typing import Any, Dict, List, Optional

from .countdown import session_remaining
from .ranking import podium, rank_players, reveal_sequence
from .state import ACTIVE, FINISHED, PAUSED, Session


def _current_question(session: Session, questions):
    if 0 <= session.current_question_index < len(questions):
        return questions[session.current_question_index]
    return None


def build_view(snapshot: Optional[Dict[str, Any]], questions, player_id: Optional[str], now: int) -> Dict[str, Any]:
    """Everything a host or player screen renders for one snapshot."""
    if snapshot is None:
        return {'exists': False}
    session = Session.from_dict(snapshot)
    question = _current_question(session, questions) if session.status in (ACTIVE, PAUSED) else None
    player = session.players.get(player_id) if player_id else None

    own_answer = player.answer_for(question.id) if (player and question) else None
    standings = rank_players(session.players.values())
    view = {
        'exists': True,
        'status': session.status,
        'questionIndex': session.current_question_index,
        'questionCount': len(questions),
        'question': question.to_dict(include_answers=session.show_results) if question else None,
        'timeRemainingMs': session_remaining(session, question, now),
        'showResults': session.show_results,
        'showLeaderboard': session.show_leaderboard,
        'restartSignal': session.restart_signal,
        'hasAnswered': own_answer is not None,
        'answer': own_answer.to_dict() if own_answer else None,
        'standings': [s.to_dict() for s in standings],
        'isKicked': bool(player and player.is_kicked),
        'kickReason': player.kick_reason if player else None,
        'score': player.score if player else None,
        'connectedPlayers': sum(1 for p in session.players.values() if p.is_connected and not p.is_kicked),
        'totalPlayers': len(session.players),
    }
    if player_id and player is None and player_id in session.removed_players:
        view['isKicked'] = True
    if session.status == FINISHED:
        slots = podium(session.players.values())
        view['podium'] = [slot.to_dict() for slot in slots]
        view['podiumReveal'] = [step.to_dict() for step in reveal_sequence(slots)]
    return view


def should_auto_submit(view: Dict[str, Any]) -> bool:
    """True once the countdown has run out on an open question not yet answered.

    The resulting empty submission races with any explicit one; the store
    accepts whichever lands first and rejects the other as a duplicate.
    """
    return (
        view.get('exists', False)
        and view.get('status') == ACTIVE
        and not view.get('showResults')
        and view.get('question') is not None
        and view.get('timeRemainingMs', 0) <= 0
        and not view.get('hasAnswered')
    )


def detect_transitions(previous: Optional[Dict[str, Any]], current: Optional[Dict[str, Any]]) -> List[str]:
    """Edges between two snapshots, e.g. to start a leaderboard animation."""
    if previous is None or current is None:
        return []
    edges = []
    if current.get('currentQuestionIndex') != previous.get('currentQuestionIndex') or (
        current.get('questionStartTime') != previous.get('questionStartTime')
        and current.get('status') == ACTIVE and previous.get('status') != PAUSED
    ):
        edges.append('question_changed')
    if current.get('showResults') and not previous.get('showResults'):
        edges.append('results_shown')
    if current.get('showLeaderboard') and not previous.get('showLeaderboard'):
        edges.append('leaderboard_shown')
    if current.get('status') != previous.get('status'):
        if current.get('status') == PAUSED:
            edges.append('paused')
        elif current.get('status') == ACTIVE and previous.get('status') == PAUSED:
            edges.append('resumed')
        elif current.get('status') == FINISHED:
            edges.append('finished')
    if current.get('restartSignal') and not previous.get('restartSignal'):
        edges.append('restart_signal')

    before = previous.get('players') or {}
    after = current.get('players') or {}
    if any(p.get('isKicked') and not before.get(pid, {}).get('isKicked') for pid, p in after.items()):
        edges.append('player_kicked')
    if set(after) - set(before):
        edges.append('player_joined')
    if set(before) - set(after):
        edges.append('player_left')
    return edges
