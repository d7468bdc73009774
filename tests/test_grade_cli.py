"""Tests for the command-line grader."""

import json
from pathlib import Path

import pytest

import grade_cli
from gradecore import EssayQuestion, MatchingQuestion, Question, TrueFalseQuestion

SAMPLE_QUIZ = Path(__file__).parent.parent / "quizzes" / "react-basics.json"


def write_answers(tmp_path, answers) -> Path:
    path = tmp_path / "answers.json"
    path.write_text(json.dumps(answers), encoding="utf-8")
    return path


def test_all_correct_passes(tmp_path, capsys) -> None:
    answers = write_answers(tmp_path, [
        {"questionId": 1, "answer": 0},
        {"questionId": 2, "answer": True},
        {"questionId": 3, "answer": " UseEffect "},
        {"questionId": 4, "answer": "1-B, 2-A"},
        {"questionId": 5, "answer": "When state transitions get complex."},
    ])
    assert grade_cli.main([str(SAMPLE_QUIZ), str(answers)]) == 0

    out = capsys.readouterr().out
    assert "Score (points): 10/10 (100%)" in out
    assert "Result: PASSED" in out


def test_partial_submission_fails(tmp_path, capsys) -> None:
    answers = write_answers(tmp_path, {"answers": [{"questionId": 1, "answer": 0}]})
    assert grade_cli.main([str(SAMPLE_QUIZ), str(answers)]) == 2

    out = capsys.readouterr().out
    assert "Score (points): 2/10 (20%)" in out
    assert "(no answer)" in out
    assert "Result: FAILED" in out


def test_passing_score_override(tmp_path) -> None:
    answers = write_answers(tmp_path, [{"questionId": 1, "answer": 0}])
    assert grade_cli.main([str(SAMPLE_QUIZ), str(answers), "--passing-score", "20"]) == 0


def test_missing_file_is_an_input_error(tmp_path, capsys) -> None:
    answers = write_answers(tmp_path, [])
    assert grade_cli.main([str(tmp_path / "nope.json"), str(answers)]) == 1
    assert "Error:" in capsys.readouterr().err


def test_broken_answers_file_is_an_input_error(tmp_path) -> None:
    path = tmp_path / "answers.json"
    path.write_text("{not json", encoding="utf-8")
    assert grade_cli.main([str(SAMPLE_QUIZ), str(path)]) == 1


@pytest.mark.parametrize("argv", [
    ["--passing-score", "abc"],
    [],
])
def test_usage_errors_exit_as_input_errors(tmp_path, argv) -> None:
    answers = write_answers(tmp_path, [])
    args = [str(SAMPLE_QUIZ), str(answers)] + argv if argv else [str(SAMPLE_QUIZ)]
    assert grade_cli.main(args) == 1


def test_default_passing_score_from_environment(tmp_path, monkeypatch) -> None:
    quiz = json.loads(SAMPLE_QUIZ.read_text(encoding="utf-8"))
    del quiz["passingScore"]
    quiz_path = tmp_path / "quiz.json"
    quiz_path.write_text(json.dumps(quiz), encoding="utf-8")
    answers = write_answers(tmp_path, [{"questionId": 1, "answer": 0}])

    monkeypatch.setenv("DEFAULT_PASSING_SCORE", "20")
    assert grade_cli.main([str(quiz_path), str(answers)]) == 0
    monkeypatch.setenv("DEFAULT_PASSING_SCORE", "21")
    assert grade_cli.main([str(quiz_path), str(answers)]) == 2


def test_bad_default_passing_score_is_an_input_error(tmp_path, monkeypatch) -> None:
    answers = write_answers(tmp_path, [])
    monkeypatch.setenv("DEFAULT_PASSING_SCORE", "high")
    assert grade_cli.main([str(SAMPLE_QUIZ), str(answers)]) == 1


@pytest.mark.parametrize("question,expected", [
    (TrueFalseQuestion(id=1, question_text="Q", correct_answer=False), "false"),
    (MatchingQuestion(id=2, question_text="Q", left_items=["a", "b"], right_items=["c", "d"],
                      correct_matches={1: 0, 0: 1}), "1-B, 2-A"),
    (EssayQuestion(id=3, question_text="Q"), "(manual review)"),
    (Question(id=4, type="hotspot", question_text="Q"), "(unsupported question type)"),
])
def test_describe_correct_answer(question, expected) -> None:
    assert grade_cli.describe_correct_answer(question) == expected
