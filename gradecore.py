# gradecore.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import json
import logging
import math
import re


logger = logging.getLogger(__name__)

DEFAULT_PASSING_SCORE = 70


class QuestionType:
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    FILL_BLANK = "fill-blank"
    MATCHING = "matching"
    ESSAY = "essay"

    ALL = (MULTIPLE_CHOICE, TRUE_FALSE, FILL_BLANK, MATCHING, ESSAY)


# ====== Domain models ======

@dataclass(frozen=True)
class Question:
    """A quiz item. Used directly only for types this module does not know."""
    id: int
    type: str
    question_text: str = ""
    points: int = 1
    explanation: Optional[str] = None


@dataclass(frozen=True)
class MultipleChoiceQuestion(Question):
    type: str = field(default=QuestionType.MULTIPLE_CHOICE, init=False)
    options: List[str] = field(default_factory=list)
    correct_answer: int = 0
    allow_multiple: bool = False  # not graded: single-answer comparison only


@dataclass(frozen=True)
class TrueFalseQuestion(Question):
    type: str = field(default=QuestionType.TRUE_FALSE, init=False)
    correct_answer: bool = False


@dataclass(frozen=True)
class FillBlankQuestion(Question):
    type: str = field(default=QuestionType.FILL_BLANK, init=False)
    correct_answers: List[str] = field(default_factory=list)
    case_sensitive: bool = False


@dataclass(frozen=True)
class MatchingQuestion(Question):
    type: str = field(default=QuestionType.MATCHING, init=False)
    left_items: List[str] = field(default_factory=list)
    right_items: List[str] = field(default_factory=list)
    correct_matches: Dict[int, int] = field(default_factory=dict)  # left index -> right index


@dataclass(frozen=True)
class EssayQuestion(Question):
    type: str = field(default=QuestionType.ESSAY, init=False)
    max_words: Optional[int] = None  # advisory
    rubric: Optional[str] = None


@dataclass(frozen=True)
class Answer:
    question_id: int
    raw_answer: Any = None  # int | bool | str | None once decoded


@dataclass(frozen=True)
class QuestionResult:
    question_id: int
    is_correct: bool
    points_earned: int
    max_points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "isCorrect": self.is_correct,
            "pointsEarned": self.points_earned,
            "maxPoints": self.max_points,
        }


@dataclass(frozen=True)
class ScoringResult:
    score_percent: int
    total_questions: int
    correct_answers: int
    passed: bool
    per_question: Tuple[QuestionResult, ...]
    earned_points: int
    total_points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score_percent,
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "passed": self.passed,
            "earnedPoints": self.earned_points,
            "totalPoints": self.total_points,
            "detailedResults": [qr.to_dict() for qr in self.per_question],
        }


@dataclass
class Quiz:
    id: str
    title: str
    questions: List[Question]
    description: str = ""
    passing_score: int = DEFAULT_PASSING_SCORE
    time_limit: Optional[int] = None  # minutes
    allow_retries: bool = True
    shuffle_questions: bool = False
    show_correct_answers: bool = True


# ====== Decoding ======

def _is_int(value: Any) -> bool:
    # bool is a subclass of int; never let True pass as index 1
    return isinstance(value, int) and not isinstance(value, bool)


def _require(raw: Dict[str, Any], key: str, q_id: Any) -> Any:
    if key not in raw or raw[key] is None:
        raise ValueError(f"Question {q_id}: missing required field '{key}'")
    return raw[key]


def _int_field(raw: Dict[str, Any], key: str, q_id: Any, default: Any = None) -> Any:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not _is_int(value):
        raise ValueError(f"Question {q_id}: '{key}' must be an integer, got {value!r}")
    return value


def _str_list(raw: Dict[str, Any], key: str, q_id: Any) -> List[str]:
    value = _require(raw, key, q_id)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Question {q_id}: '{key}' must be a list of strings")
    return list(value)


def _parse_multiple_choice(raw: Dict[str, Any], common: Dict[str, Any]) -> Question:
    q_id = common["id"]
    _require(raw, "correctAnswer", q_id)
    return MultipleChoiceQuestion(
        options=_str_list(raw, "options", q_id),
        correct_answer=_int_field(raw, "correctAnswer", q_id),
        allow_multiple=bool(raw.get("allowMultiple", False)),
        **common,
    )


def _parse_true_false(raw: Dict[str, Any], common: Dict[str, Any]) -> Question:
    correct = _require(raw, "correctAnswer", common["id"])
    if not isinstance(correct, bool):
        raise ValueError(f"Question {common['id']}: 'correctAnswer' must be a boolean")
    return TrueFalseQuestion(correct_answer=correct, **common)


def _parse_fill_blank(raw: Dict[str, Any], common: Dict[str, Any]) -> Question:
    return FillBlankQuestion(
        correct_answers=_str_list(raw, "correctAnswers", common["id"]),
        case_sensitive=bool(raw.get("caseSensitive", False)),
        **common,
    )


def _parse_matching(raw: Dict[str, Any], common: Dict[str, Any]) -> Question:
    q_id = common["id"]
    matches_raw = _require(raw, "correctMatches", q_id)
    if not isinstance(matches_raw, dict):
        raise ValueError(f"Question {q_id}: 'correctMatches' must be an object")
    try:
        # JSON object keys always arrive as strings
        correct_matches = {int(k): int(v) for k, v in matches_raw.items()}
    except (TypeError, ValueError):
        raise ValueError(f"Question {q_id}: 'correctMatches' must map integer indices")
    return MatchingQuestion(
        left_items=_str_list(raw, "leftItems", q_id),
        right_items=_str_list(raw, "rightItems", q_id),
        correct_matches=correct_matches,
        **common,
    )


def _parse_essay(raw: Dict[str, Any], common: Dict[str, Any]) -> Question:
    rubric = raw.get("rubric")
    return EssayQuestion(
        max_words=_int_field(raw, "maxWords", common["id"]),
        rubric=str(rubric) if rubric is not None else None,
        **common,
    )


_PARSERS: Dict[str, Callable[[Dict[str, Any], Dict[str, Any]], Question]] = {
    QuestionType.MULTIPLE_CHOICE: _parse_multiple_choice,
    QuestionType.TRUE_FALSE: _parse_true_false,
    QuestionType.FILL_BLANK: _parse_fill_blank,
    QuestionType.MATCHING: _parse_matching,
    QuestionType.ESSAY: _parse_essay,
}


def parse_question(raw: Dict[str, Any]) -> Question:
    """Decode one camelCase question object into its Question variant.

    Unknown ``type`` values decode to a plain :class:`Question` so they can
    still be scored (always incorrect). A missing ``id`` or ``type``, or a
    missing variant field, raises ``ValueError``.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Question must be an object, got {type(raw).__name__}")
    if raw.get("id") is None:
        raise ValueError("Question is missing 'id'")
    q_id = _int_field(raw, "id", raw["id"])
    q_type = raw.get("type")
    if not isinstance(q_type, str):
        raise ValueError(f"Question {q_id}: missing or invalid 'type'")

    text = raw.get("question")
    if text is None:
        text = raw.get("questionText", "")
    if not isinstance(text, str):
        raise ValueError(f"Question {q_id}: question text must be a string")

    explanation = raw.get("explanation")
    common: Dict[str, Any] = {
        "id": q_id,
        "question_text": text,
        "points": _int_field(raw, "points", q_id, default=1),
        "explanation": str(explanation) if explanation is not None else None,
    }

    parser = _PARSERS.get(q_type)
    if parser is None:
        logger.warning("Question %s has unsupported type %r", q_id, q_type)
        return Question(type=q_type, **common)
    return parser(raw, common)


def decode_raw_answer(value: Any) -> Any:
    """Narrow a submitted value to int, bool, str or None (unanswered)."""
    if value is None or isinstance(value, (bool, str)) or _is_int(value):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    logger.debug("Discarding answer of unsupported shape %s", type(value).__name__)
    return None


def parse_answers(raw: Any) -> List[Answer]:
    """Decode ``[{"questionId": 1, "answer": ...}, ...]`` into Answers.

    ``rawAnswer`` is accepted as an alias for ``answer``.
    """
    if not isinstance(raw, list):
        raise ValueError("Answers must be a list")

    answers: List[Answer] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Answer #{idx} must be an object")
        q_id = item.get("questionId")
        if not _is_int(q_id):
            raise ValueError(f"Answer #{idx}: 'questionId' must be an integer")
        value = item["answer"] if "answer" in item else item.get("rawAnswer")
        answers.append(Answer(question_id=q_id, raw_answer=decode_raw_answer(value)))
    return answers


# ====== Loading & validation ======

def parse_quiz(raw: Dict[str, Any], default_passing_score: int = DEFAULT_PASSING_SCORE) -> Quiz:
    if not isinstance(raw, dict):
        raise ValueError("Quiz must be an object")
    questions_raw = raw.get("questions")
    if not isinstance(questions_raw, list):
        raise ValueError("Quiz 'questions' must be a list")

    passing_score = raw.get("passingScore")
    if passing_score is None:
        passing_score = default_passing_score
    elif not _is_int(passing_score):
        raise ValueError(f"Quiz 'passingScore' must be an integer, got {passing_score!r}")

    quiz = Quiz(
        id=str(raw.get("id", "")),
        title=raw.get("title", ""),
        description=raw.get("description") or "",
        questions=[parse_question(q) for q in questions_raw],
        passing_score=passing_score,
        time_limit=raw.get("timeLimit"),
        allow_retries=raw.get("allowRetries", True),
        shuffle_questions=raw.get("shuffleQuestions", False),
        show_correct_answers=raw.get("showCorrectAnswers", True),
    )
    validate_quiz(quiz)
    return quiz


def load_quiz(path: str | Path, default_passing_score: int = DEFAULT_PASSING_SCORE) -> Quiz:
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        raw = json.load(f)
    return parse_quiz(raw, default_passing_score)


def validate_quiz(quiz: Quiz) -> None:
    """Authoring checks for a loaded quiz. ``score`` never calls this."""
    if not isinstance(quiz.title, str) or not quiz.title.strip():
        raise ValueError("Quiz title cannot be empty")
    if not quiz.questions:
        raise ValueError("A quiz must have at least one question")

    ids = set()
    for q in quiz.questions:
        if q.id in ids:
            raise ValueError(f"Duplicate question id: {q.id}")
        ids.add(q.id)

        if not q.question_text.strip():
            raise ValueError(f"Question {q.id}: question text cannot be empty")
        if q.points < 0:
            raise ValueError(f"Question {q.id}: points cannot be negative")

        if isinstance(q, MultipleChoiceQuestion):
            if len(q.options) < 2:
                raise ValueError(f"Question {q.id}: needs at least two options")
            if not 0 <= q.correct_answer < len(q.options):
                raise ValueError(
                    f"Question {q.id}: correct answer index {q.correct_answer} "
                    f"out of range for {len(q.options)} options"
                )

        elif isinstance(q, FillBlankQuestion):
            if not q.correct_answers:
                raise ValueError(f"Question {q.id}: needs at least one accepted answer")

        elif isinstance(q, MatchingQuestion):
            for left, right in q.correct_matches.items():
                if not 0 <= left < len(q.left_items) or not 0 <= right < len(q.right_items):
                    raise ValueError(f"Question {q.id}: match {left}->{right} out of range")


# ====== Grading ======

def _check_multiple_choice(q: MultipleChoiceQuestion, raw: Any) -> bool:
    if _is_int(raw):
        return raw == q.correct_answer
    if isinstance(raw, str):
        if not 0 <= q.correct_answer < len(q.options):
            return False
        return raw == q.options[q.correct_answer]
    return False


def _check_true_false(q: TrueFalseQuestion, raw: Any) -> bool:
    return isinstance(raw, bool) and isinstance(q.correct_answer, bool) and raw == q.correct_answer


def _check_fill_blank(q: FillBlankQuestion, raw: Any) -> bool:
    if not isinstance(raw, str):
        return False
    submitted = raw.strip()
    if not q.case_sensitive:
        submitted = submitted.lower()
    for accepted in q.correct_answers:
        if not isinstance(accepted, str):
            continue
        expected = accepted.strip() if q.case_sensitive else accepted.strip().lower()
        if submitted == expected:
            return True
    return False


_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


def parse_matching_answer(raw: str) -> Dict[int, int]:
    """Parse ``"1-A, 2-B"`` into ``{0: 0, 1: 1}``.

    Left tokens are 1-based integers, right tokens are letters with A=0.
    Pairs that do not parse are skipped.
    """
    matches: Dict[int, int] = {}
    for pair in raw.split(","):
        left, sep, right = pair.partition("-")
        left, right = left.strip(), right.strip()
        if not sep or not left or not right:
            logger.debug("Skipping matching pair %r", pair)
            continue

        m = _LEADING_INT.match(left)
        if m is None:
            logger.debug("Skipping matching pair %r: bad left index", pair)
            continue
        left_index = int(m.group(1)) - 1
        right_index = ord(right[0]) - ord("A")
        if left_index < 0 or right_index < 0:
            logger.debug("Skipping matching pair %r: negative index", pair)
            continue

        matches[left_index] = right_index
    return matches


def _check_matching(q: MatchingQuestion, raw: Any) -> bool:
    if not isinstance(raw, str):
        return False
    try:
        user_matches = parse_matching_answer(raw)
        # All pairs, no more, no fewer
        return user_matches == dict(q.correct_matches)
    except (TypeError, ValueError, AttributeError):
        logger.debug("Malformed matching answer for question %s", q.id, exc_info=True)
        return False


def _check_essay(q: EssayQuestion, raw: Any) -> bool:
    # Placeholder until manual review exists: any content earns the points
    return isinstance(raw, str) and len(raw.strip()) > 0


_EVALUATORS: Dict[str, Tuple[type, Callable[[Any, Any], bool]]] = {
    QuestionType.MULTIPLE_CHOICE: (MultipleChoiceQuestion, _check_multiple_choice),
    QuestionType.TRUE_FALSE: (TrueFalseQuestion, _check_true_false),
    QuestionType.FILL_BLANK: (FillBlankQuestion, _check_fill_blank),
    QuestionType.MATCHING: (MatchingQuestion, _check_matching),
    QuestionType.ESSAY: (EssayQuestion, _check_essay),
}


def evaluate_answer(question: Question, raw_answer: Any) -> bool:
    """Return True if ``raw_answer`` is correct for ``question``.

    Never raises on a bad answer: wrong shapes, malformed matching strings
    and unknown question types are all simply incorrect.
    """
    entry = _EVALUATORS.get(question.type)
    if entry is None:
        logger.warning("Cannot grade question %s: unsupported type %r", question.id, question.type)
        return False

    variant, check = entry
    if not isinstance(question, variant):
        logger.warning(
            "Cannot grade question %s: %s is not a %s",
            question.id, type(question).__name__, variant.__name__,
        )
        return False
    return check(question, raw_answer)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score(
    questions: Iterable[Question],
    answers: Iterable[Answer],
    passing_score: int = DEFAULT_PASSING_SCORE,
) -> ScoringResult:
    """Grade ``answers`` against ``questions``; all-or-nothing per question.

    Answers are correlated by question id (the last one wins on duplicates);
    answers for unknown ids are ignored. A question with no answer, or a
    ``None`` answer, is incorrect and earns nothing.
    """
    answer_map: Dict[int, Answer] = {a.question_id: a for a in answers}

    per_question: List[QuestionResult] = []
    total_points = 0
    earned_points = 0
    correct_count = 0

    for q in questions:
        max_points = q.points if q.points is not None else 1
        total_points += max_points

        answer = answer_map.get(q.id)
        is_correct = False
        if answer is not None and answer.raw_answer is not None:
            is_correct = evaluate_answer(q, answer.raw_answer)

        gained = max_points if is_correct else 0
        if is_correct:
            earned_points += gained
            correct_count += 1

        logger.debug("Question %s (%s): correct=%s %s/%s", q.id, q.type, is_correct, gained, max_points)
        per_question.append(
            QuestionResult(
                question_id=q.id,
                is_correct=is_correct,
                points_earned=gained,
                max_points=max_points,
            )
        )

    percent = _round_half_up(earned_points / total_points * 100) if total_points > 0 else 0
    return ScoringResult(
        score_percent=percent,
        total_questions=len(per_question),
        correct_answers=correct_count,
        passed=percent >= passing_score,
        per_question=tuple(per_question),
        earned_points=earned_points,
        total_points=total_points,
    )


def grade_quiz(quiz: Quiz, answers: Iterable[Answer]) -> ScoringResult:
    return score(quiz.questions, answers, quiz.passing_score)
