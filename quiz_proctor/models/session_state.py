"""
models/session_state.py

응시(Attempt) 진행 상태를 담는 OMR 카드 모델과 제출 와이어 포맷.
Pydantic BaseModel 기반 — 직렬화/역직렬화 및 타입 안전성 확보.
상태 변경 규칙은 services/attempt_machine.py 가 전담한다. 여기에는 규칙 없음.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from quiz_proctor.models.question_model import Question

# 미응답 문항의 제출 인코딩 값
UNANSWERED = -1


class AttemptStatus(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptStatus.SUBMITTED, AttemptStatus.TERMINATED)


class EndReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"
    VIOLATION_LIMIT = "violation_limit"


class ViolationKind(str, Enum):
    TAB_SWITCH = "tab_switch"
    FULLSCREEN_EXIT = "fullscreen_exit"


class AttemptState(BaseModel):
    """
    사용자의 응시 세션 전체 상태를 표현하는 모델.

    Attributes:
        attempt_id:       응시(시험) 식별자.
        question_set:     로드된 문제 목록. 로드 후 변경 불가.
        answers:          문항별 선택한 보기 인덱스. None 이면 미응답.
        current_index:    현재 보고 있는 문제 인덱스 (0-based).
        time_remaining:   남은 시간 (초). 진행 중에는 감소만 한다.
        status:           loading | in_progress | submitted | terminated
        violation_count:  누적 부정행위 감지 횟수. 진행 중에는 증가만 한다.
        end_reason:       진행 종료 사유 (manual | timeout | violation_limit).
        started_at:       시험 시작 시각 (Unix timestamp).
        ended_at:         종료 전이 시각 (Unix timestamp).
        submission_error: 제출 싱크 실패 메시지. 성공 시 None.
        receipt:          제출 싱크 응답 (점수 등).
    """

    attempt_id: str
    question_set: List[Question] = Field(default_factory=list)
    answers: List[Optional[int]] = Field(default_factory=list)
    current_index: int = Field(default=0, ge=0)
    time_remaining: int = Field(default=0, ge=0)
    status: AttemptStatus = AttemptStatus.LOADING
    violation_count: int = Field(default=0, ge=0)
    end_reason: Optional[EndReason] = None
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    submission_error: Optional[str] = None
    receipt: Optional["SubmissionReceipt"] = None

    @property
    def termination_reason(self) -> Optional[EndReason]:
        """강제 종료(terminated) 상태일 때만 사유를 반환."""
        if self.status is AttemptStatus.TERMINATED:
            return self.end_reason
        return None

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a is not None)

    def mark_ended(self, status: AttemptStatus, reason: EndReason) -> None:
        self.status = status
        self.end_reason = reason
        self.ended_at = time.time()


class SubmissionPayload(BaseModel):
    """제출 싱크로 전송되는 와이어 포맷 (JSON 키는 camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    attempt_id: str
    answers: List[int]
    elapsed_seconds: int = Field(ge=0)
    termination_reason: EndReason

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class SubmissionReceipt(BaseModel):
    """
    제출 싱크 응답. 채점 결과가 없으면 score 이하 채점 항목은 None.

    Attributes:
        score:             맞힌 문항 수.
        total:             전체 문항 수.
        percent:           100점 만점 환산 점수.
        passed:            합격 여부.
        incorrect_indexes: 오답 문항 인덱스 (오답 노트용).
        unanswered:        미응답 문항 수.
        raw:               싱크 원본 응답.
    """

    score: Optional[int] = None
    total: Optional[int] = None
    percent: Optional[float] = None
    passed: Optional[bool] = None
    incorrect_indexes: List[int] = Field(default_factory=list)
    unanswered: Optional[int] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class ViolationWarning(BaseModel):
    """경고 채널로 방출되는 부정행위 경고."""

    kind: ViolationKind
    count: int
    limit: int


class Notice(BaseModel):
    """사용자 알림 (시간 종료, 강제 종료, 제출 실패 등)."""

    code: str
    message: str
    created_at: float = Field(default_factory=time.time)


AttemptState.model_rebuild()
