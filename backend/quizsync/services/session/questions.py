"""Question variants, one per question type.

Questions belong to the game definition and are read-only to the session
engine. Each type carries its own candidate/correct-answer representation,
so the validator never has to guess what shape an answer has.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Tuple

from .errors import ValidationFailed

SINGLE_CHOICE = 'single_choice'
MULTI_SELECT = 'multi_select'
TRUE_FALSE = 'true_false'
FREE_TEXT = 'free_text'

# Names used by older clients for the same types
TYPE_ALIASES = {
    'multiple_choice': SINGLE_CHOICE,
    'single': SINGLE_CHOICE,
    'multiple': MULTI_SELECT,
    'multi_choice': MULTI_SELECT,
    'boolean': TRUE_FALSE,
    'text': FREE_TEXT,
}

TRUE_FALSE_OPTIONS = ('True', 'False')


@dataclass(frozen=True)
class BaseQuestion:
    id: str
    text: str
    points: int
    time_limit: int  # seconds

    @property
    def time_limit_ms(self) -> int:
        return int(self.time_limit * 1000)

    def _base_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'text': self.text,
            'points': self.points,
            'timeLimit': self.time_limit,
        }


@dataclass(frozen=True)
class SingleChoiceQuestion(BaseQuestion):
    options: Tuple[str, ...] = ()
    correct_index: int = 0
    type = SINGLE_CHOICE

    def to_dict(self, include_answers=True):
        d = self._base_dict()
        d['options'] = list(self.options)
        if include_answers:
            d['correctAnswers'] = [self.correct_index]
        return d


@dataclass(frozen=True)
class MultiSelectQuestion(BaseQuestion):
    options: Tuple[str, ...] = ()
    correct_indices: FrozenSet[int] = field(default_factory=frozenset)
    type = MULTI_SELECT

    def to_dict(self, include_answers=True):
        d = self._base_dict()
        d['options'] = list(self.options)
        if include_answers:
            d['correctAnswers'] = sorted(self.correct_indices)
        return d


@dataclass(frozen=True)
class TrueFalseQuestion(BaseQuestion):
    correct_index: int = 0
    type = TRUE_FALSE

    @property
    def options(self):
        return TRUE_FALSE_OPTIONS

    def to_dict(self, include_answers=True):
        d = self._base_dict()
        d['options'] = list(self.options)
        if include_answers:
            d['correctAnswers'] = [self.correct_index]
        return d


@dataclass(frozen=True)
class FreeTextQuestion(BaseQuestion):
    accepted: Tuple[str, ...] = ()
    type = FREE_TEXT

    def to_dict(self, include_answers=True):
        d = self._base_dict()
        if include_answers:
            d['correctAnswers'] = list(self.accepted)
        return d


def normalize_type(raw: str) -> str:
    value = (raw or '').strip().lower().replace('-', '_')
    value = TYPE_ALIASES.get(value, value)
    if value not in (SINGLE_CHOICE, MULTI_SELECT, TRUE_FALSE, FREE_TEXT):
        raise ValidationFailed(f'Unknown question type: {raw!r}')
    return value


def _index(value, n_options: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed(f'Correct answer must be an option index, got {value!r}')
    if not 0 <= value < n_options:
        raise ValidationFailed(f'Correct answer index {value} out of range')
    return value


def question_from_dict(data: Dict[str, Any]):
    """Build a question variant from its JSON form.

    Accepts both the camelCase wire names and snake_case.
    """
    qtype = normalize_type(data.get('type', ''))
    qid = str(data.get('id') or '').strip()
    if not qid:
        raise ValidationFailed('Question id is required')
    text = str(data.get('text') or data.get('question') or '')
    try:
        points = int(data.get('points', 100))
        time_limit = int(data.get('timeLimit', data.get('time_limit', 30)))
    except (TypeError, ValueError):
        raise ValidationFailed('points and timeLimit must be integers')
    if points < 0:
        raise ValidationFailed('points must be non-negative')
    if time_limit <= 0:
        raise ValidationFailed('timeLimit must be positive')

    correct = data.get('correctAnswers', data.get('correct_answers'))
    if correct is None:
        correct = []
    if not isinstance(correct, (list, tuple)):
        correct = [correct]
    options = tuple(str(o) for o in (data.get('options') or []))

    if qtype == FREE_TEXT:
        accepted = tuple(str(a) for a in correct if str(a).strip())
        if not accepted:
            raise ValidationFailed('Free-text question needs at least one accepted answer')
        return FreeTextQuestion(id=qid, text=text, points=points, time_limit=time_limit, accepted=accepted)

    if qtype == TRUE_FALSE:
        if len(correct) != 1:
            raise ValidationFailed('True/false question needs exactly one correct index')
        return TrueFalseQuestion(id=qid, text=text, points=points, time_limit=time_limit,
                                 correct_index=_index(correct[0], len(TRUE_FALSE_OPTIONS)))

    if len(options) < 2:
        raise ValidationFailed('Choice question needs at least two options')
    if qtype == SINGLE_CHOICE:
        if len(correct) != 1:
            raise ValidationFailed('Single-choice question needs exactly one correct index')
        return SingleChoiceQuestion(id=qid, text=text, points=points, time_limit=time_limit,
                                    options=options, correct_index=_index(correct[0], len(options)))

    indices = frozenset(_index(c, len(options)) for c in correct)
    if not indices:
        raise ValidationFailed('Multi-select question needs at least one correct index')
    return MultiSelectQuestion(id=qid, text=text, points=points, time_limit=time_limit,
                               options=options, correct_indices=indices)


def questions_from_list(items: List[Dict[str, Any]]) -> list:
    questions = [question_from_dict(item) for item in items or []]
    ids = [q.id for q in questions]
    if len(ids) != len(set(ids)):
        raise ValidationFailed('Question ids must be unique')
    return questions
