# web_app.py
from __future__ import annotations
import os
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Any

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse

from gradecore import (
    DEFAULT_PASSING_SCORE,
    EssayQuestion,
    MatchingQuestion,
    MultipleChoiceQuestion,
    Question,
    Quiz,
    grade_quiz,
    load_quiz,
    parse_answers,
    parse_question,
    score,
)

from dotenv import load_dotenv
load_dotenv()

BASE_DIR = Path(__file__).parent
QUIZZES_DIR = Path(os.getenv("QUIZZES_DIR", str(BASE_DIR / "quizzes")))
PASSING_SCORE = int(os.getenv("DEFAULT_PASSING_SCORE", str(DEFAULT_PASSING_SCORE)))

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Quiz Grader")


def list_quizzes() -> List[Dict[str, Any]]:
    """Quiz files in QUIZZES_DIR, sorted by id. Broken files are skipped."""
    quizzes = []
    for quiz_path in sorted(QUIZZES_DIR.glob("*.json")):
        try:
            quiz = load_quiz(quiz_path, PASSING_SCORE)
        except (OSError, ValueError) as e:
            logger.warning("Skipping quiz file %s: %s", quiz_path.name, e)
            continue

        quizzes.append({
            "id": quiz_path.stem,
            "title": quiz.title,
            "description": quiz.description,
            "questionCount": len(quiz.questions),
            "passingScore": quiz.passing_score,
            "timeLimit": quiz.time_limit,
        })
    return quizzes


def load_quiz_by_id(quiz_id: str) -> Quiz:
    quiz_path = QUIZZES_DIR / f"{quiz_id}.json"
    if not quiz_path.is_file():
        raise HTTPException(status_code=404, detail=f"Quiz '{quiz_id}' not found")
    try:
        return load_quiz(quiz_path, PASSING_SCORE)
    except ValueError as e:
        logger.error("Quiz file %s is invalid: %s", quiz_path.name, e)
        raise HTTPException(status_code=500, detail=f"Quiz '{quiz_id}' is invalid")


def question_for_learner(q: Question) -> Dict[str, Any]:
    """What a learner sees of a question: no answer keys."""
    data: Dict[str, Any] = {
        "id": q.id,
        "type": q.type,
        "question": q.question_text,
        "points": q.points,
    }
    if isinstance(q, MultipleChoiceQuestion):
        data["options"] = q.options
        data["allowMultiple"] = q.allow_multiple
    elif isinstance(q, MatchingQuestion):
        data["leftItems"] = q.left_items
        data["rightItems"] = q.right_items
    elif isinstance(q, EssayQuestion):
        data["maxWords"] = q.max_words
    return data


async def read_json_object(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


@app.get("/api/quizzes")
def get_quizzes() -> List[Dict[str, Any]]:
    return list_quizzes()


@app.get("/api/quizzes/{quiz_id}")
def get_quiz(quiz_id: str) -> Dict[str, Any]:
    quiz = load_quiz_by_id(quiz_id)
    return {
        "id": quiz_id,
        "title": quiz.title,
        "description": quiz.description,
        "passingScore": quiz.passing_score,
        "timeLimit": quiz.time_limit,
        "allowRetries": quiz.allow_retries,
        "shuffleQuestions": quiz.shuffle_questions,
        "questions": [question_for_learner(q) for q in quiz.questions],
    }


@app.post("/api/quizzes/{quiz_id}/attempts")
async def submit_attempt(request: Request, quiz_id: str):
    """
    Grade a learner's answers against a stored quiz and return the attempt.
    Nothing is persisted; storing the attempt is up to the caller.
    """
    quiz = load_quiz_by_id(quiz_id)
    body = await read_json_object(request)

    try:
        answers = parse_answers(body.get("answers"))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    time_spent = body.get("timeSpent") or 0
    if not isinstance(time_spent, int) or isinstance(time_spent, bool) or time_spent < 0:
        raise HTTPException(status_code=400, detail="'timeSpent' must be a non-negative integer")

    result = grade_quiz(quiz, answers)
    submitted = {a.question_id: a.raw_answer for a in answers}

    processed = []
    for q, qr in zip(quiz.questions, result.per_question):
        entry = {
            "questionId": q.id,
            "type": q.type,
            "answer": submitted.get(q.id),
            "isCorrect": qr.is_correct,
            "pointsEarned": qr.points_earned,
        }
        if quiz.show_correct_answers and q.explanation:
            entry["explanation"] = q.explanation
        processed.append(entry)

    logger.info(
        "Graded attempt on quiz %s: %s%% (%s/%s correct, passed=%s)",
        quiz_id, result.score_percent, result.correct_answers, result.total_questions, result.passed,
    )

    return JSONResponse(
        status_code=201,
        content={
            "quizId": quiz_id,
            "score": result.score_percent,
            "totalQuestions": result.total_questions,
            "correctAnswers": result.correct_answers,
            "passed": result.passed,
            "timeSpent": time_spent,
            "completedAt": datetime.now(timezone.utc).isoformat(),
            "answers": processed,
        },
    )


@app.post("/api/grade")
async def grade_preview(request: Request) -> Dict[str, Any]:
    """Score an inline question set without touching stored quizzes."""
    body = await read_json_object(request)

    questions_raw = body.get("questions")
    if not isinstance(questions_raw, list):
        raise HTTPException(status_code=400, detail="'questions' must be a list")

    passing_score = body.get("passingScore")
    if passing_score is None:
        passing_score = PASSING_SCORE
    elif not isinstance(passing_score, int) or isinstance(passing_score, bool):
        raise HTTPException(status_code=400, detail="'passingScore' must be an integer")

    try:
        questions = [parse_question(q) for q in questions_raw]
        answers = parse_answers(body.get("answers", []))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return score(questions, answers, passing_score).to_dict()
