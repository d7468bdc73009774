# grade_cli.py
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from gradecore import (
    DEFAULT_PASSING_SCORE,
    Answer,
    EssayQuestion,
    FillBlankQuestion,
    MatchingQuestion,
    MultipleChoiceQuestion,
    Question,
    Quiz,
    ScoringResult,
    TrueFalseQuestion,
    load_quiz,
    parse_answers,
    score,
)


def load_answers(path: str | Path) -> List[Answer]:
    """Answers file: a list of answers, or an object with an "answers" list."""
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        raw = json.load(f)
    if isinstance(raw, dict):
        raw = raw.get("answers")
    return parse_answers(raw)


def describe_correct_answer(q: Question) -> str:
    if isinstance(q, MultipleChoiceQuestion):
        if 0 <= q.correct_answer < len(q.options):
            return q.options[q.correct_answer]
        return f"option #{q.correct_answer}"
    if isinstance(q, TrueFalseQuestion):
        return "true" if q.correct_answer else "false"
    if isinstance(q, FillBlankQuestion):
        return " / ".join(q.correct_answers)
    if isinstance(q, MatchingQuestion):
        return ", ".join(
            f"{left + 1}-{chr(ord('A') + right)}"
            for left, right in sorted(q.correct_matches.items())
        )
    if isinstance(q, EssayQuestion):
        return "(manual review)"
    return "(unsupported question type)"


def print_report(quiz: Quiz, answers: List[Answer], result: ScoringResult) -> None:
    submitted: Dict[int, object] = {a.question_id: a.raw_answer for a in answers}

    print("=" * 60)
    print(f"Quiz: {quiz.title}")
    print(f"Score (points): {result.earned_points}/{result.total_points} "
          f"({result.score_percent}%)")
    print(f"Score (questions): {result.correct_answers}/{result.total_questions}")
    print(f"Result: {'PASSED' if result.passed else 'FAILED'}")
    print("=" * 60)

    for q, qr in zip(quiz.questions, result.per_question):
        ua = submitted.get(q.id)
        status = "OK" if qr.is_correct else "WRONG"
        print(f"Q{q.id} [{q.type}]: {status} [{qr.points_earned}/{qr.max_points}]")
        print(f"  Your answer: {'(no answer)' if ua is None else ua}")
        print(f"  Correct:     {describe_correct_answer(q)}")
        if q.explanation:
            print(f"  Why:         {q.explanation}")
        print()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Grade a set of answers against a quiz file.")
    parser.add_argument("quiz", help="quiz definition JSON file")
    parser.add_argument("answers", help="answers JSON file")
    parser.add_argument("--passing-score", type=int, default=None,
                        help="override the quiz's passing score (percent)")
    load_dotenv()

    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # usage errors are input errors, not a failed grade
        return 0 if e.code in (0, None) else 1

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())

    try:
        default_passing_score = int(os.getenv("DEFAULT_PASSING_SCORE", str(DEFAULT_PASSING_SCORE)))
    except ValueError:
        print("Error: DEFAULT_PASSING_SCORE must be an integer", file=sys.stderr)
        return 1

    try:
        quiz = load_quiz(args.quiz, default_passing_score)
        answers = load_answers(args.answers)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    passing_score = args.passing_score if args.passing_score is not None else quiz.passing_score
    result = score(quiz.questions, answers, passing_score)
    print_report(quiz, answers, result)
    return 0 if result.passed else 2


if __name__ == "__main__":
    raise SystemExit(main())
