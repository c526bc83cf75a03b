"""
services/collaborators.py

외부 협력자 계약과 구현.
Public API:
  - QuestionSource / SubmissionSink      : 문제 소스, 제출 싱크 계약
  - HttpQuestionSource / HttpSubmissionSink : 퀴즈 백엔드 HTTP 어댑터 (httpx)
  - LocalQuestionSource / InMemorySubmissionSink : 인메모리 구현 (샘플 시험, 로컬 채점)

오류 변환:
- 문제 소스: 404 → QuestionSetNotFound, 연결 실패/그 외 비정상 응답 → QuestionSourceNetworkError
- 제출 싱크: 연결 실패/비정상 응답 → SubmissionTransportError
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError

from quiz_proctor.errors import (
    QuestionSetNotFound,
    QuestionSourceNetworkError,
    SubmissionTransportError,
)
from quiz_proctor.models.question_model import Question
from quiz_proctor.models.session_state import SubmissionPayload, SubmissionReceipt
from quiz_proctor.services.exam_service import (
    calculate_score,
    count_unanswered,
    get_incorrect_indexes,
    is_passed,
    score_percent,
)

logger = logging.getLogger(__name__)


class QuestionSource(ABC):
    """응시 식별자로 문제 목록을 가져오는 계약."""

    @abstractmethod
    async def get_question_set(self, attempt_id: str) -> List[Question]:
        """
        Raises:
            QuestionSetNotFound:        해당 시험 없음.
            QuestionSourceNetworkError: 연결 실패 또는 비정상 응답.
        """
        pass


class SubmissionSink(ABC):
    """제출 답안을 영구 기록하는 계약. 응시당 정확히 1회 호출 의도."""

    @abstractmethod
    async def submit(self, payload: SubmissionPayload) -> SubmissionReceipt:
        """실패 시 SubmissionTransportError."""
        pass


# ── HTTP 어댑터 ─────────────────────────────────────────────────────────────

def _parse_questions(raw: list) -> List[Question]:
    """유효하지 않은 문항은 건너뛴다. 전체 중단 없음."""
    questions: List[Question] = []
    for i, item in enumerate(raw):
        try:
            questions.append(Question.model_validate(item))
        except ValidationError as e:
            logger.warning(f"문항 {i} 검증 실패, 건너뜀: {e.errors()[0].get('msg', e)}")
    return questions


class HttpQuestionSource(QuestionSource):
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}
        self.transport = transport

    async def get_question_set(self, attempt_id: str) -> List[Question]:
        url = f"{self.base_url}/quiz/getQuizById/{attempt_id}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=self.headers, transport=self.transport
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"문제 소스 연결 실패: {e}")
            raise QuestionSourceNetworkError(f"문제 서버에 연결할 수 없습니다: {e}") from e

        if response.status_code == 404:
            raise QuestionSetNotFound(f"시험을 찾을 수 없습니다: {attempt_id}")
        if not response.is_success:
            logger.error(f"문제 소스 응답 오류: {response.status_code}")
            raise QuestionSourceNetworkError(f"문제 서버 응답 오류 ({response.status_code})")

        try:
            data = response.json()
        except ValueError as e:
            raise QuestionSourceNetworkError("문제 서버 응답을 해석할 수 없습니다.") from e

        raw = data.get("questions") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            # 문항 배열이 없는 응답은 빈 시험으로 본다 → 응시 불가 화면
            logger.warning(f"문항 배열 없는 응답: attempt={attempt_id}")
            return []

        questions = _parse_questions(raw)
        logger.info(f"문제 {len(questions)}개 로드 (attempt={attempt_id})")
        return questions


class HttpSubmissionSink(SubmissionSink):
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}
        self.transport = transport

    async def submit(self, payload: SubmissionPayload) -> SubmissionReceipt:
        url = f"{self.base_url}/quiz/quizzes/submit"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=self.headers, transport=self.transport
            ) as client:
                response = await client.post(url, json=payload.to_wire())
        except httpx.HTTPError as e:
            raise SubmissionTransportError(f"제출 서버에 연결할 수 없습니다: {e}") from e

        if not response.is_success:
            raise SubmissionTransportError(f"제출 서버 응답 오류 ({response.status_code})")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        total = len(payload.answers)
        score = data.get("score")
        if not isinstance(score, int) or isinstance(score, bool):
            return SubmissionReceipt(
                total=total,
                unanswered=count_unanswered(payload.answers),
                raw=data,
            )
        return SubmissionReceipt(
            score=score,
            total=total,
            percent=score_percent(score, total),
            passed=is_passed(score, total),
            unanswered=count_unanswered(payload.answers),
            raw=data,
        )


# ── 인메모리 구현 ──────────────────────────────────────────────────────────

class LocalQuestionSource(QuestionSource):
    """메모리에 보관한 시험 목록. {quiz_id: [Question, ...]}"""

    def __init__(self, quizzes: Optional[Dict[str, List[Question]]] = None):
        self.quizzes: Dict[str, List[Question]] = dict(quizzes or {})

    def add_quiz(self, quiz_id: str, questions: List[Question]) -> None:
        self.quizzes[quiz_id] = list(questions)

    def get_answer_key(self, quiz_id: str) -> Optional[List[Question]]:
        return self.quizzes.get(quiz_id)

    async def get_question_set(self, attempt_id: str) -> List[Question]:
        if attempt_id not in self.quizzes:
            raise QuestionSetNotFound(f"시험을 찾을 수 없습니다: {attempt_id}")
        return list(self.quizzes[attempt_id])


class InMemorySubmissionSink(SubmissionSink):
    """
    제출 내역을 메모리에 기록하고, 정답을 아는 시험이면 채점한다.
    """

    def __init__(self, answer_keys: Optional[LocalQuestionSource] = None):
        self.answer_keys = answer_keys
        self.submissions: List[SubmissionPayload] = []

    async def submit(self, payload: SubmissionPayload) -> SubmissionReceipt:
        self.submissions.append(payload)
        unanswered = count_unanswered(payload.answers)
        questions = self.answer_keys.get_answer_key(payload.attempt_id) if self.answer_keys else None
        if not questions:
            return SubmissionReceipt(total=len(payload.answers), unanswered=unanswered)

        score = calculate_score(questions, payload.answers)
        total = len(questions)
        logger.info(f"채점 완료: attempt={payload.attempt_id} score={score}/{total}")
        return SubmissionReceipt(
            score=score,
            total=total,
            percent=score_percent(score, total),
            passed=is_passed(score, total),
            incorrect_indexes=get_incorrect_indexes(questions, payload.answers),
            unanswered=unanswered,
            raw={"score": score},
        )
