"""Quiz grading core: question model, authoring validation and the evaluator.

Nothing in this module touches the database or the HTTP layer. Quizzes
are handed in as `QuizSpec` values (built from stored rows with
`QuizSpec.from_questions`) and evaluation returns a frozen
`GradedSubmission` that the caller persists.

Correct answers are a tagged variant keyed by question kind: choice
questions carry an `IndexAnswer` (0-based position in `options`), short
answer questions carry a `TextAnswer` compared verbatim.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple, Union

from .errors import ValidationError


class QuestionKind(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"


CHOICE_KINDS = (QuestionKind.MULTIPLE_CHOICE, QuestionKind.TRUE_FALSE)
MIN_OPTIONS = {
    QuestionKind.MULTIPLE_CHOICE: 4,
    QuestionKind.TRUE_FALSE: 2,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def structurally_equal(left: Any, right: Any) -> bool:
    """Compare two JSON-like values by structure rather than identity.

    Booleans never equal numbers, numbers compare by value, lists compare
    element-wise and mappings compare key-by-key.
    """
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) or _is_number(right):
        return _is_number(left) and _is_number(right) and left == right
    if isinstance(left, str) or isinstance(right, str):
        return isinstance(left, str) and isinstance(right, str) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if set(left.keys()) != set(right.keys()):
            return False
        return all(structurally_equal(left[k], right[k]) for k in left)
    if isinstance(left, Sequence) and isinstance(right, Sequence):
        if len(left) != len(right):
            return False
        return all(structurally_equal(a, b) for a, b in zip(left, right))
    return False


@dataclass(frozen=True)
class IndexAnswer:
    """Correct answer of a choice question: a position in `options`."""

    index: int

    def matches(self, raw: Any, options: Tuple[str, ...]) -> bool:
        # an index that points past the options can never be answered correctly
        if not 0 <= self.index < len(options):
            return False
        return structurally_equal(raw, self.index)

    def to_json(self) -> int:
        return self.index


@dataclass(frozen=True)
class TextAnswer:
    """Correct answer of a short-answer question, matched exactly (case-sensitive)."""

    text: str

    def matches(self, raw: Any, options: Tuple[str, ...]) -> bool:
        return structurally_equal(raw, self.text)

    def to_json(self) -> str:
        return self.text


CorrectAnswer = Union[IndexAnswer, TextAnswer]


def _count_filled(options: Iterable[Any]) -> int:
    return sum(1 for o in options if isinstance(o, str) and o.strip())


def validate_question(data: Mapping, strict_index: bool = False) -> None:
    """Validate a raw question dictionary used at authoring time.

    Raises `ValidationError` describing the first violation found and
    returns `None` for a valid question. With `strict_index` enabled a
    choice question whose correct index falls outside `options` is also
    rejected; otherwise it is accepted and simply never scores.
    """
    if not isinstance(data, Mapping):
        raise ValidationError("question must be an object", field="questions")
    text = data.get("question_text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("question text is required", field="question_text")
    try:
        kind = QuestionKind(data.get("kind"))
    except ValueError:
        raise ValidationError(f"unsupported question kind: {data.get('kind')!r}", field="kind")
    options = data.get("options") or []
    if not isinstance(options, Sequence) or isinstance(options, str):
        raise ValidationError("options must be a list of strings", field="options")
    correct = data.get("correct_answer")
    if kind in CHOICE_KINDS:
        required = MIN_OPTIONS[kind]
        if _count_filled(options) < required:
            raise ValidationError(f"{kind.value} questions need at least {required} non-empty options", field="options")
        if not isinstance(correct, int) or isinstance(correct, bool):
            raise ValidationError("correct_answer must be an option index", field="correct_answer")
        if strict_index and not 0 <= correct < len(options):
            raise ValidationError("correct_answer index is out of range", field="correct_answer")
    else:
        if not isinstance(correct, str) or not correct.strip():
            raise ValidationError("short-answer questions need a non-empty correct_answer", field="correct_answer")
    points = data.get("points", 1)
    if points is None:
        points = 1
    if not isinstance(points, int) or isinstance(points, bool) or points < 1:
        raise ValidationError("points must be a positive integer", field="points")


def compute_total_points(questions: Iterable[Any]) -> int:
    """Sum question points, counting a missing or falsy value as 1.

    Accepts `QuestionSpec` objects or raw question dictionaries.
    """
    total = 0
    for q in questions:
        points = q.get("points") if isinstance(q, Mapping) else getattr(q, "points", None)
        total += points or 1
    return total


def percentage_of(score: int, total_points: int) -> int:
    """Return `score / total_points * 100` rounded half up, or 0 for an empty quiz."""
    if total_points <= 0:
        return 0
    # floor(x + 1/2) on exact integers
    return (score * 200 + total_points) // (2 * total_points)


@dataclass(frozen=True)
class QuestionSpec:
    """A single assessable question as seen by the evaluator."""

    id: str
    question_text: str
    kind: QuestionKind
    options: Tuple[str, ...]
    correct: CorrectAnswer
    points: int = 1

    @classmethod
    def from_dict(cls, data: Mapping) -> "QuestionSpec":
        """Build a question from its stored/authored dictionary form.

        The dictionary is expected to have passed `validate_question`
        (strict index checking is not required). A missing id is replaced
        by a fresh random one.
        """
        validate_question(data)
        kind = QuestionKind(data["kind"])
        correct: CorrectAnswer
        if kind in CHOICE_KINDS:
            correct = IndexAnswer(data["correct_answer"])
        else:
            correct = TextAnswer(data["correct_answer"])
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            question_text=data["question_text"].strip(),
            kind=kind,
            options=tuple(data.get("options") or ()),
            correct=correct,
            points=data.get("points") or 1,
        )

    def is_correct(self, raw: Any) -> bool:
        if raw is None:
            return False
        return self.correct.matches(raw, self.options)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question_text": self.question_text,
            "kind": self.kind.value,
            "options": list(self.options),
            "correct_answer": self.correct.to_json(),
            "points": self.points,
        }


@dataclass(frozen=True)
class QuizSpec:
    """Ordered questions plus the scoring configuration of one quiz."""

    questions: Tuple[QuestionSpec, ...] = ()
    passing_score: int = 60

    @classmethod
    def from_questions(cls, questions: Iterable[Mapping], passing_score: int = 60) -> "QuizSpec":
        return cls(questions=tuple(QuestionSpec.from_dict(q) for q in questions), passing_score=passing_score)

    @property
    def total_points(self) -> int:
        return compute_total_points(self.questions)


@dataclass(frozen=True)
class EvaluatedAnswer:
    """Outcome for one question, in the same position as the question."""

    question_ref: str
    answer: Any
    is_correct: bool
    points_earned: int

    @property
    def skipped(self) -> bool:
        return self.answer is None

    def to_dict(self) -> dict:
        return {
            "question_ref": self.question_ref,
            "answer": self.answer,
            "is_correct": self.is_correct,
            "points_earned": self.points_earned,
        }


@dataclass(frozen=True)
class GradedSubmission:
    """Immutable result of grading one attempt at a quiz."""

    answers: Tuple[EvaluatedAnswer, ...]
    score: int
    total_points: int
    percentage: int
    passed: bool
    submitted_at: datetime
    learner_id: Optional[int] = None
    quiz_id: Optional[int] = None
    course_id: Optional[int] = None
    attempt_number: int = 1
    time_spent_seconds: int = 0

    @property
    def skipped_count(self) -> int:
        return sum(1 for a in self.answers if a.skipped)

    def answers_as_dicts(self) -> List[dict]:
        return [a.to_dict() for a in self.answers]

    def summary(self) -> dict:
        """Caller-facing result; per-question detail is left out."""
        return {
            "score": self.score,
            "percentage": self.percentage,
            "passed": self.passed,
            "total_points": self.total_points,
            "submitted_at": self.submitted_at,
            "attempt_number": self.attempt_number,
        }


def ensure_answer_list(raw_answers: Any) -> Sequence:
    """Raise `ValidationError` unless `raw_answers` is an ordered list of answers."""
    if isinstance(raw_answers, (str, bytes, bytearray)) or isinstance(raw_answers, Mapping):
        raise ValidationError("answers must be an array", field="answers")
    if not isinstance(raw_answers, Sequence):
        raise ValidationError("answers must be an array", field="answers")
    return raw_answers


def _ensure_answer_sequence(raw_answers: Any, question_count: int) -> Sequence:
    ensure_answer_list(raw_answers)
    if len(raw_answers) > question_count:
        raise ValidationError(
            f"received {len(raw_answers)} answers for {question_count} questions", field="answers"
        )
    return raw_answers


def evaluate(
    quiz: QuizSpec,
    raw_answers: Any,
    *,
    learner_id: Optional[int] = None,
    quiz_id: Optional[int] = None,
    course_id: Optional[int] = None,
    attempt_number: int = 1,
    time_spent_seconds: int = 0,
    submitted_at: Optional[datetime] = None,
) -> GradedSubmission:
    """Grade `raw_answers` against `quiz` and return the submission.

    `raw_answers[i]` answers `quiz.questions[i]`; a shorter list or a
    `None` entry counts as a skipped question, which is never correct.
    The answer list is checked before any question is scored, so a
    malformed payload raises `ValidationError` without a partial result.
    """
    answers = _ensure_answer_sequence(raw_answers, len(quiz.questions))
    evaluated = []
    for i, question in enumerate(quiz.questions):
        raw = answers[i] if i < len(answers) else None
        ok = question.is_correct(raw)
        evaluated.append(EvaluatedAnswer(
            question_ref=question.id,
            answer=raw,
            is_correct=ok,
            points_earned=question.points if ok else 0,
        ))
    score = sum(a.points_earned for a in evaluated)
    total = quiz.total_points
    percentage = percentage_of(score, total)
    return GradedSubmission(
        answers=tuple(evaluated),
        score=score,
        total_points=total,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
        submitted_at=submitted_at or datetime.now(timezone.utc),
        learner_id=learner_id,
        quiz_id=quiz_id,
        course_id=course_id,
        attempt_number=attempt_number,
        time_spent_seconds=time_spent_seconds,
    )
