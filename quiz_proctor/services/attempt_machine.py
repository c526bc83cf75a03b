"""
services/attempt_machine.py

응시 상태 머신. 응시 상태의 유일한 변경 주체이자,
제출 여부와 사유(수동 / 시간 종료 / 위반 한도)의 유일한 결정자.

상태 전이:
    loading ──load()──▶ in_progress ──submit()──▶ submitted | terminated

동시성 모델:
- 단일 이벤트 루프 협력 스케줄링. 틱, 브라우저 신호, 사용자 입력이 모두
  이 클래스의 메서드로 들어온다.
- 각 핸들러는 상태를 읽고 커밋하기까지 await 가 없으므로 서로 원자적이다.
- 유일한 중단 지점은 제출 싱크 호출이며, 그 전에 종료 상태를 먼저 커밋한다.
  따라서 동시에 들어온 두 번째 submit() 은 status != in_progress 를 보고 무시된다.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from quiz_proctor.errors import (
    EmptyQuestionSet,
    InvalidAnswer,
    InvalidTransition,
    SubmissionTransportError,
)
from quiz_proctor.models.question_model import Question
from quiz_proctor.models.session_config import SessionConfig
from quiz_proctor.models.session_state import (
    UNANSWERED,
    AttemptState,
    AttemptStatus,
    EndReason,
    Notice,
    SubmissionPayload,
    SubmissionReceipt,
    ViolationKind,
    ViolationWarning,
)
from quiz_proctor.services.collaborators import SubmissionSink
from quiz_proctor.services.countdown import CountdownClock, format_remaining
from quiz_proctor.services.integrity_monitor import EnvironmentHost, IntegrityMonitor

logger = logging.getLogger(__name__)

_VIOLATION_LABELS = {
    ViolationKind.TAB_SWITCH: "탭 전환 감지",
    ViolationKind.FULLSCREEN_EXIT: "전체화면 이탈",
}


@dataclass
class SubmissionOutcome:
    """submit() 첫 호출자에게 돌려주는 결과. error 는 사용자 알림용 부가 채널."""

    payload: SubmissionPayload
    receipt: Optional[SubmissionReceipt] = None
    error: Optional[SubmissionTransportError] = None

    @property
    def delivered(self) -> bool:
        return self.error is None


class AttemptSession:
    """
    단일 응시 상태 머신.

    Args:
        attempt_id:  응시 식별자 (제출 페이로드에 포함).
        sink:        제출 싱크.
        config:      정책 값. None 이면 기본값.
        host:        감시 대상 환경. None 이면 감시기 없이 동작.
        on_warning:  위반 경고 채널 콜백 (kind, count, limit).
        on_notice:   사용자 알림 채널 콜백.
        start_clock: False 면 자동 틱을 돌리지 않는다 (tick() 을 외부에서 호출).
    """

    def __init__(
        self,
        attempt_id: str,
        sink: SubmissionSink,
        config: Optional[SessionConfig] = None,
        host: Optional[EnvironmentHost] = None,
        on_warning: Optional[Callable[[ViolationWarning], None]] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
        start_clock: bool = True,
    ):
        self.config = config or SessionConfig()
        self.sink = sink
        self.on_warning = on_warning
        self.on_notice = on_notice
        self.state = AttemptState(
            attempt_id=attempt_id,
            time_remaining=self.config.total_duration_seconds,
        )
        self.unavailable = False
        self.unavailable_reason: Optional[str] = None
        self._low_time_notified = False

        self.clock: Optional[CountdownClock] = None
        if start_clock:
            self.clock = CountdownClock(self.tick, self.config.tick_interval_seconds)

        self.monitor: Optional[IntegrityMonitor] = None
        if host is not None:
            self.monitor = IntegrityMonitor(
                host,
                self.report_violation,
                require_fullscreen=self.config.require_fullscreen,
                on_notice=self._notify,
            )

    # ── 조회 ───────────────────────────────────────────────────────────────

    @property
    def status(self) -> AttemptStatus:
        return self.state.status

    @property
    def in_progress(self) -> bool:
        return self.state.status is AttemptStatus.IN_PROGRESS

    @property
    def elapsed_seconds(self) -> int:
        return self.config.total_duration_seconds - self.state.time_remaining

    # ── 전이 ───────────────────────────────────────────────────────────────

    def mark_unavailable(self, reason: str) -> None:
        """응시 불가 화면 상태로 고정. Attempt 전이 집합 밖의 표시 상태."""
        self.unavailable = True
        self.unavailable_reason = reason
        logger.warning(f"응시 불가: attempt={self.state.attempt_id} ({reason})")

    async def load(self, question_set: Iterable[Question]) -> None:
        """
        문제 목록을 적재하고 시험을 시작한다.

        Raises:
            InvalidTransition: loading 상태가 아니거나 이미 응시 불가로 고정됨.
            EmptyQuestionSet:  문제 목록이 비어 있음 (응시 불가로 고정).
        """
        if self.unavailable or self.state.status is not AttemptStatus.LOADING:
            raise InvalidTransition(f"load() 는 loading 상태에서만 가능합니다 (현재: {self.state.status.value})")

        questions = list(question_set)
        if not questions:
            self.mark_unavailable("문제가 없습니다.")
            raise EmptyQuestionSet("문제 목록이 비어 있어 시험을 시작할 수 없습니다.")

        st = self.state
        st.question_set = questions
        st.answers = [None] * len(questions)
        st.current_index = 0
        st.time_remaining = self.config.total_duration_seconds
        st.started_at = time.time()
        st.status = AttemptStatus.IN_PROGRESS
        logger.info(
            f"시험 시작: attempt={st.attempt_id} 문항={len(questions)} "
            f"제한={format_remaining(st.time_remaining)} 위반한도={self.config.violation_limit}"
        )

        if self.clock:
            self.clock.start()
        if self.monitor:
            await self.monitor.arm()

    def select_answer(self, question_index: int, choice_index: Optional[int]) -> bool:
        """
        답안 기록 (기존 선택 덮어쓰기). choice_index=None 이면 선택 해제.
        진행 중이 아니면 조용히 무시하고 False 반환.
        """
        st = self.state
        if st.status is not AttemptStatus.IN_PROGRESS:
            logger.debug(f"종료 후 답안 입력 무시: q={question_index}")
            return False
        if not 0 <= question_index < len(st.question_set):
            raise InvalidAnswer(f"문제 인덱스 범위 초과: {question_index}")
        if choice_index is not None:
            n_choices = len(st.question_set[question_index].choices)
            if not 0 <= choice_index < n_choices:
                raise InvalidAnswer(f"보기 인덱스 범위 초과: {choice_index} (보기 {n_choices}개)")
        st.answers[question_index] = choice_index
        return True

    def navigate(self, direction: int) -> int:
        """현재 문제를 ±1 이동. 범위를 벗어나는 이동은 무시. 현재 인덱스 반환."""
        st = self.state
        if st.status is not AttemptStatus.IN_PROGRESS:
            return st.current_index
        step = (direction > 0) - (direction < 0)
        target = st.current_index + step
        if 0 <= target < len(st.question_set):
            st.current_index = target
        return st.current_index

    def jump_to(self, index: int) -> int:
        """문제 번호 그리드에서 바로 이동. 범위 밖이면 경계로 보정."""
        st = self.state
        if st.status is not AttemptStatus.IN_PROGRESS:
            return st.current_index
        st.current_index = max(0, min(index, len(st.question_set) - 1))
        return st.current_index

    async def tick(self) -> None:
        """1초 경과. 0 에 도달하면 시간 종료 제출을 정확히 1회 트리거."""
        st = self.state
        if st.status is not AttemptStatus.IN_PROGRESS:
            return
        if st.time_remaining > 0:
            st.time_remaining -= 1

        threshold = self.config.low_time_warning_seconds
        if (
            threshold
            and not self._low_time_notified
            and 0 < st.time_remaining <= threshold
        ):
            self._low_time_notified = True
            self._notify(Notice(
                code="low_time",
                message=f"남은 시간 {format_remaining(st.time_remaining)}",
            ))

        if st.time_remaining == 0:
            logger.info(f"시간 종료: attempt={st.attempt_id}")
            self._notify(Notice(
                code="timeout",
                message="시험 시간이 종료되었습니다. 답안을 자동 제출합니다.",
            ))
            await self.submit(EndReason.TIMEOUT)

    async def report_violation(self, kind: ViolationKind) -> None:
        """위반 1건 기록. 한도 도달 시 강제 종료 제출, 아니면 경고 방출."""
        st = self.state
        if st.status is not AttemptStatus.IN_PROGRESS:
            return
        kind = ViolationKind(kind)
        st.violation_count += 1
        count, limit = st.violation_count, self.config.violation_limit
        label = _VIOLATION_LABELS.get(kind, kind.value)
        logger.warning(f"위반 감지: attempt={st.attempt_id} {label} ({count}/{limit})")

        if count >= limit:
            self._notify(Notice(
                code="terminated",
                message=f"시험이 종료되었습니다: {label} ({count}/{limit})",
            ))
            await self.submit(EndReason.VIOLATION_LIMIT)
        elif self.on_warning:
            self.on_warning(ViolationWarning(kind=kind, count=count, limit=limit))

    async def submit(self, reason: EndReason = EndReason.MANUAL) -> Optional[SubmissionOutcome]:
        """
        답안 제출. 진행 중일 때 첫 호출만 유효하고 이후 호출은 None.

        종료 상태를 먼저 커밋하고 타이머/감시기를 정리한 뒤 싱크를 호출한다.
        싱크 실패는 SubmissionTransportError 로 변환해 결과에 담을 뿐,
        전이를 되돌리거나 예외로 던지지 않는다.
        전체화면 해제는 싱크 호출 뒤에 한다. 호스트가 응답하지 않아도 제출은 나간다.
        """
        st = self.state
        if st.status is not AttemptStatus.IN_PROGRESS:
            return None

        reason = EndReason(reason)
        final_status = (
            AttemptStatus.TERMINATED
            if reason is EndReason.VIOLATION_LIMIT
            else AttemptStatus.SUBMITTED
        )
        st.mark_ended(final_status, reason)
        payload = self.build_payload()
        self._teardown()
        logger.info(
            f"응시 종료: attempt={st.attempt_id} status={final_status.value} "
            f"reason={reason.value} 응답={st.answered_count}/{len(st.answers)}"
        )

        try:
            receipt = await self.sink.submit(payload)
        except Exception as e:
            error = e if isinstance(e, SubmissionTransportError) else SubmissionTransportError(str(e))
            st.submission_error = str(error)
            logger.error(f"제출 실패: attempt={st.attempt_id} - {error}")
            self._notify(Notice(
                code="submission_failed",
                message="답안이 서버에 전달되지 않았을 수 있습니다. 감독관에게 알려 주세요.",
            ))
            return SubmissionOutcome(payload=payload, error=error)
        else:
            st.receipt = receipt
            return SubmissionOutcome(payload=payload, receipt=receipt)
        finally:
            if self.monitor:
                await self.monitor.release_fullscreen()

    def discard(self) -> None:
        """화면 폐기. 어떤 상태에서든 타이머와 리스너를 정리한다."""
        self._teardown()

    # ── 직렬화 ─────────────────────────────────────────────────────────────

    def build_payload(self) -> SubmissionPayload:
        st = self.state
        return SubmissionPayload(
            attempt_id=st.attempt_id,
            answers=[UNANSWERED if a is None else a for a in st.answers],
            elapsed_seconds=self.elapsed_seconds,
            termination_reason=st.end_reason or EndReason.MANUAL,
        )

    def snapshot(self) -> dict:
        """클라이언트 전송용 상태 (정답 제외)."""
        st = self.state
        return {
            "attempt_id": st.attempt_id,
            "status": st.status.value,
            "unavailable": self.unavailable,
            "unavailable_reason": self.unavailable_reason,
            "total": len(st.question_set),
            "current_index": st.current_index,
            "answers": list(st.answers),
            "answered_count": st.answered_count,
            "time_remaining": st.time_remaining,
            "time_display": format_remaining(st.time_remaining),
            "violation_count": st.violation_count,
            "violation_limit": self.config.violation_limit,
            "end_reason": st.end_reason.value if st.end_reason else None,
            "termination_reason": st.termination_reason.value if st.termination_reason else None,
            "submission_error": st.submission_error,
            "score": st.receipt.score if st.receipt else None,
            "percent": st.receipt.percent if st.receipt else None,
            "passed": st.receipt.passed if st.receipt else None,
        }

    # ── 내부 ───────────────────────────────────────────────────────────────

    def _teardown(self) -> None:
        if self.clock:
            self.clock.stop()
        if self.monitor:
            self.monitor.disarm()

    def _notify(self, notice: Notice) -> None:
        if self.on_notice:
            self.on_notice(notice)
