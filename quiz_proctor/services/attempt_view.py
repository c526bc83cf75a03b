"""
services/attempt_view.py

응시 화면: 하나의 Attempt 를 독점 소유하는 단위.
문제 소스에서 문제를 받아 상태 머신을 시작하고, 경고/알림을 모아 두었다가
클라이언트가 폴링할 때 넘겨 준다. 화면을 버리면 discard() 로 타이머와
리스너를 모두 정리한다.
"""

import logging
from collections import deque
from typing import Deque, List, Optional

from quiz_proctor.errors import (
    EmptyQuestionSet,
    QuestionSetNotFound,
    QuestionSourceNetworkError,
)
from quiz_proctor.models.session_config import SessionConfig
from quiz_proctor.models.session_state import Notice, ViolationWarning
from quiz_proctor.services.attempt_machine import AttemptSession
from quiz_proctor.services.collaborators import QuestionSource, SubmissionSink
from quiz_proctor.services.integrity_monitor import (
    FULLSCREEN_CHANGE,
    VISIBILITY_CHANGE,
    BrowserSignalBridge,
)

logger = logging.getLogger(__name__)

_MAX_PENDING_MESSAGES = 100
KNOWN_SIGNALS = (VISIBILITY_CHANGE, FULLSCREEN_CHANGE)


class AttemptView:
    def __init__(
        self,
        attempt_id: str,
        source: QuestionSource,
        sink: SubmissionSink,
        config: Optional[SessionConfig] = None,
        host: Optional[BrowserSignalBridge] = None,
        start_clock: bool = True,
    ):
        self.attempt_id = attempt_id
        self.source = source
        self.host = host or BrowserSignalBridge()
        self.messages: Deque[dict] = deque(maxlen=_MAX_PENDING_MESSAGES)
        self.session = AttemptSession(
            attempt_id,
            sink,
            config=config,
            host=self.host,
            on_warning=self._push_warning,
            on_notice=self._push_notice,
            start_clock=start_clock,
        )

    @property
    def unavailable(self) -> bool:
        return self.session.unavailable

    async def open(self) -> None:
        """
        문제를 가져와 시험을 시작한다.

        Raises:
            QuestionSetNotFound, QuestionSourceNetworkError, EmptyQuestionSet:
                응시 불가 화면으로 고정된 뒤 그대로 전달된다.
        """
        try:
            questions = await self.source.get_question_set(self.attempt_id)
        except (QuestionSetNotFound, QuestionSourceNetworkError) as e:
            self.session.mark_unavailable(str(e))
            raise
        try:
            await self.session.load(questions)
        except EmptyQuestionSet:
            logger.info(f"빈 시험: attempt={self.attempt_id}")
            raise

    async def signal(self, signal: str, **payload) -> int:
        """브라우저 신호를 호스트로 전달. 알 수 없는 신호는 ValueError."""
        if signal not in KNOWN_SIGNALS:
            raise ValueError(f"알 수 없는 신호: {signal}")
        return await self.host.dispatch(signal, **payload)

    def drain_messages(self) -> List[dict]:
        """쌓인 경고/알림을 꺼내고 비운다."""
        items = list(self.messages)
        self.messages.clear()
        return items

    def drain_commands(self) -> List[str]:
        return self.host.drain_commands()

    def snapshot(self) -> dict:
        return self.session.snapshot()

    def discard(self) -> None:
        self.session.discard()
        logger.info(f"응시 화면 폐기: attempt={self.attempt_id} status={self.session.status.value}")

    # ── 채널 콜백 ───────────────────────────────────────────────────────────

    def _push_warning(self, warning: ViolationWarning) -> None:
        self.messages.append({"type": "warning", **warning.model_dump(mode="json")})

    def _push_notice(self, notice: Notice) -> None:
        self.messages.append({"type": "notice", **notice.model_dump(mode="json")})
