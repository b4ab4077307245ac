"""Countdown arithmetic.

Remaining time is always derived from the server anchor, never kept as a
decrementing counter, so a client that drifts or reconnects recovers the
right value on its next tick.
"""
import time

from .state import ACTIVE, PAUSED


def now_ms() -> int:
    return int(time.time() * 1000)


def remaining(now: int, anchor: int, limit_ms: int) -> int:
    """Milliseconds left of ``limit_ms`` counted from ``anchor``, clamped to [0, limit]."""
    if anchor is None:
        return 0
    left = limit_ms - (now - anchor)
    return int(max(0, min(limit_ms, left)))


def elapsed(now: int, anchor: int, limit_ms: int) -> int:
    """Milliseconds spent since ``anchor``, clamped to [0, limit]."""
    if anchor is None:
        return 0
    return int(max(0, min(limit_ms, now - anchor)))


def resume_anchor(anchor: int, paused_at: int, now: int) -> int:
    """Anchor that keeps the time elapsed before the pause when resuming at ``now``."""
    if anchor is None or paused_at is None:
        return now
    return now - max(0, paused_at - anchor)


def session_remaining(session, question, now: int) -> int:
    """Remaining time as every client should display it for ``session``."""
    if question is None or session.status not in (ACTIVE, PAUSED):
        return 0
    if session.status == PAUSED and session.paused_at is not None:
        now = session.paused_at
    return remaining(now, session.question_start_time, question.time_limit_ms)
