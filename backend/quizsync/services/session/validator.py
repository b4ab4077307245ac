"""Answer correctness, one rule per question type."""
from functools import singledispatch

from .errors import InvalidAnswer
from .questions import (
    FreeTextQuestion,
    MultiSelectQuestion,
    SingleChoiceQuestion,
    TrueFalseQuestion,
)


def _is_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def normalize_text(value: str) -> str:
    return value.strip().casefold()


def _single_index(candidate) -> int:
    if _is_index(candidate):
        return candidate
    if isinstance(candidate, (list, tuple)) and len(candidate) == 1 and _is_index(candidate[0]):
        return candidate[0]
    raise InvalidAnswer('Expected a single option index')


@singledispatch
def check_answer(question, candidate) -> bool:
    """Return whether ``candidate`` answers ``question`` correctly.

    ``None`` is the empty answer sent when the countdown runs out and is
    always incorrect. A candidate of the wrong shape raises InvalidAnswer.
    """
    raise TypeError(f'Unsupported question type: {type(question).__name__}')


@check_answer.register
def _(question: SingleChoiceQuestion, candidate) -> bool:
    if candidate is None:
        return False
    return _single_index(candidate) == question.correct_index


@check_answer.register
def _(question: TrueFalseQuestion, candidate) -> bool:
    if candidate is None:
        return False
    return _single_index(candidate) == question.correct_index


@check_answer.register
def _(question: MultiSelectQuestion, candidate) -> bool:
    if candidate is None:
        return False
    if _is_index(candidate):
        candidate = [candidate]
    if not isinstance(candidate, (list, tuple)) or not all(_is_index(c) for c in candidate):
        raise InvalidAnswer('Expected a list of option indices')
    selected = set(candidate)
    # no partial credit: subsets and supersets are both wrong
    return selected == set(question.correct_indices)


@check_answer.register
def _(question: FreeTextQuestion, candidate) -> bool:
    if candidate is None:
        return False
    if not isinstance(candidate, str):
        raise InvalidAnswer('Expected a text answer')
    given = normalize_text(candidate)
    if not given:
        return False
    return any(normalize_text(accepted) == given for accepted in question.accepted)


def canonical_answer(question, candidate):
    """Shape ``candidate`` the way it is stored on the player's record."""
    if candidate is None:
        return None
    if isinstance(question, FreeTextQuestion):
        return candidate.strip()
    if isinstance(question, MultiSelectQuestion):
        if _is_index(candidate):
            return [candidate]
        return sorted(set(candidate))
    return [_single_index(candidate)]
