"""
services/exam_service.py

제출된 답안 채점 로직 (서버 측).
순수 Python 함수로 구성 — 전역 상태 변경 없음.
답안은 제출 와이어 포맷 그대로 받는다: 문항별 보기 인덱스, 미응답은 -1.
"""

from typing import List, Optional

from quiz_proctor.models.question_model import Question
from quiz_proctor.models.session_state import UNANSWERED


def _answer_at(answers: List[int], index: int) -> int:
    return answers[index] if index < len(answers) else UNANSWERED


def calculate_score(
    questions: List[Question],
    answers: List[int],
) -> int:
    """
    맞힌 문항 수를 반환한다.

    정답 판정 기준: question.correct_choice == answers[i]
    미응답(-1)은 오답으로 처리. 정답 정보가 없는 문항은 채점 제외.

    Args:
        questions: 채점 대상 Question 리스트 (correct_choice 포함).
        answers:   문항별 선택 보기 인덱스 리스트.

    Returns:
        맞힌 문항 수. questions가 빈 리스트이면 0.
    """
    return sum(
        1
        for i, q in enumerate(questions)
        if q.correct_choice is not None and _answer_at(answers, i) == q.correct_choice
    )


def score_percent(score: int, total: int) -> float:
    """맞힌 수를 100점 만점으로 환산 (소수점 둘째 자리 반올림)."""
    if total <= 0:
        return 0.0
    return round(score / total * 100, 2)


def get_incorrect_indexes(
    questions: List[Question],
    answers: List[int],
) -> List[int]:
    """
    오답 문항 인덱스 리스트를 반환한다 (오답 노트용).

    오답 판정 기준:
    - 선택한 보기가 정답과 다른 경우
    - 아예 응답하지 않은 경우 (미응답 포함)
    - correct_choice가 None인 문항은 정답 정보가 없으므로 제외
    """
    incorrect: List[int] = []

    for i, q in enumerate(questions):
        if q.correct_choice is None:
            # 정답 정보 자체가 없는 문제는 채점 불가 → 제외
            continue
        if _answer_at(answers, i) != q.correct_choice:
            incorrect.append(i)

    return incorrect


def count_unanswered(answers: List[Optional[int]]) -> int:
    return sum(1 for a in answers if a is None or a == UNANSWERED)


def is_passed(score: int, total: int, pass_ratio: float = 0.6) -> bool:
    """
    합격 여부를 반환한다.

    Args:
        score:      calculate_score()가 반환한 맞힌 문항 수.
        total:      전체 문항 수.
        pass_ratio: 합격 기준 정답률 (기본값 60%).
    """
    if total <= 0:
        return False
    return score / total >= pass_ratio
