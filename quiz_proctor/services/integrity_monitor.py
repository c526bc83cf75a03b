"""
services/integrity_monitor.py

부정행위 감시기.
Public API:
  - EnvironmentHost        : 브라우저(호스트) 계약. 신호 리스너 등록, 전체화면 요청/해제
  - BrowserSignalBridge    : 브라우저가 API 로 보낸 신호를 리스너에 전달하는 인프로세스 호스트
  - IntegrityMonitor       : 신호 → reportViolation(kind) 변환, 전체화면 요구 관리

설계 원칙:
- 감시기는 arm/disarm 수명주기를 가진 객체. 모듈 전역 리스너 없음.
- 응시가 in_progress 일 때만 arm 상태. 종료 전이 즉시 disarm 후 전체화면 해제
  (해제로 인해 자연히 발생하는 fullscreenchange 는 위반으로 세지 않는다).
- 신호 디바운스 없음. 발생할 때마다 1회 위반.
- 전체화면 획득 실패는 경고만 하고 시험은 그대로 시작 (관대 정책).
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Optional

from quiz_proctor.errors import FullscreenAcquisitionFailed
from quiz_proctor.models.session_state import Notice, ViolationKind

logger = logging.getLogger(__name__)

# ── 신호 이름 (DOM 이벤트명과 동일) ─────────────────────────────────────────
VISIBILITY_CHANGE = "visibilitychange"
FULLSCREEN_CHANGE = "fullscreenchange"

SignalHandler = Callable[..., Awaitable[None]]


class EnvironmentHost(ABC):
    """감시 대상 환경(브라우저) 계약."""

    @abstractmethod
    def add_listener(self, signal: str, handler: SignalHandler) -> None:
        pass

    @abstractmethod
    def remove_listener(self, signal: str, handler: SignalHandler) -> None:
        pass

    @abstractmethod
    async def request_fullscreen(self) -> None:
        """전체화면 진입. 실패 시 FullscreenAcquisitionFailed."""
        pass

    @abstractmethod
    async def exit_fullscreen(self) -> None:
        pass


class BrowserSignalBridge(EnvironmentHost):
    """
    브라우저 → 서버 신호 중계 호스트.

    브라우저는 사용자 제스처 없이 전체화면에 들어갈 수 없으므로, 클라이언트가
    시작 전에 전체화면 가능 여부를 보고하고(fullscreen_available) 서버는
    그 값으로 획득 성공/실패를 판정한다. 서버가 내린 명령(전체화면 해제 등)은
    pending_commands 에 쌓여 클라이언트가 폴링으로 가져간다.
    """

    def __init__(self, fullscreen_available: bool = True):
        self.fullscreen_available = fullscreen_available
        self.is_fullscreen = False
        self.pending_commands: List[str] = []
        self._listeners: Dict[str, List[SignalHandler]] = defaultdict(list)

    def add_listener(self, signal: str, handler: SignalHandler) -> None:
        self._listeners[signal].append(handler)

    def remove_listener(self, signal: str, handler: SignalHandler) -> None:
        handlers = self._listeners.get(signal, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, signal: Optional[str] = None) -> int:
        if signal is not None:
            return len(self._listeners.get(signal, []))
        return sum(len(h) for h in self._listeners.values())

    async def dispatch(self, signal: str, **payload) -> int:
        """신호 1건을 등록된 리스너에 순서대로 전달. 전달한 리스너 수 반환."""
        if signal == FULLSCREEN_CHANGE and "fullscreen" in payload:
            self.is_fullscreen = bool(payload["fullscreen"])
        handlers = list(self._listeners.get(signal, []))
        for handler in handlers:
            await handler(**payload)
        return len(handlers)

    async def request_fullscreen(self) -> None:
        if self.is_fullscreen:
            return
        if not self.fullscreen_available:
            raise FullscreenAcquisitionFailed("브라우저가 전체화면을 허용하지 않았습니다.")
        self.is_fullscreen = True
        self.pending_commands.append("enter_fullscreen")

    async def exit_fullscreen(self) -> None:
        if not self.is_fullscreen:
            return
        self.pending_commands.append("exit_fullscreen")
        # 실제 브라우저처럼 해제 직후 fullscreenchange 가 뒤따른다
        await self.dispatch(FULLSCREEN_CHANGE, fullscreen=False)

    def drain_commands(self) -> List[str]:
        commands, self.pending_commands = self.pending_commands, []
        return commands


class IntegrityMonitor:
    """
    환경 신호를 위반 보고로 변환하는 감시기.

    Args:
        host:               감시 대상 EnvironmentHost.
        report:             위반 1건 보고 코루틴 (AttemptSession.report_violation).
        require_fullscreen: 전체화면 요구 여부.
        on_notice:          사용자 알림 콜백 (전체화면 획득 실패 경고용).
    """

    def __init__(
        self,
        host: EnvironmentHost,
        report: Callable[[ViolationKind], Awaitable[None]],
        require_fullscreen: bool = True,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ):
        self.host = host
        self.report = report
        self.require_fullscreen = require_fullscreen
        self.on_notice = on_notice
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    async def arm(self) -> None:
        """리스너 등록 후 전체화면 획득 시도. 획득 실패는 경고로만 처리."""
        if self._armed:
            return
        self._armed = True
        self.host.add_listener(VISIBILITY_CHANGE, self._on_visibility_change)
        if not self.require_fullscreen:
            logger.info("감시 시작 (전체화면 요구 없음)")
            return

        self.host.add_listener(FULLSCREEN_CHANGE, self._on_fullscreen_change)
        try:
            await self.host.request_fullscreen()
        except FullscreenAcquisitionFailed as e:
            self._warn_fullscreen_failed(str(e))
            return
        except Exception as e:
            self._warn_fullscreen_failed(f"전체화면 요청 오류: {e}")
            return

        if not self._armed:
            # 요청을 기다리는 사이 응시가 끝났다 → 방금 얻은 전체화면을 돌려준다
            logger.info("전체화면 진입 전에 감시가 해제됨, 전체화면 해제")
            await self.release_fullscreen()
            return
        logger.info("감시 시작 (전체화면 진입)")

    def disarm(self) -> None:
        """리스너 해제. 여러 번 호출해도 안전."""
        if not self._armed:
            return
        self._armed = False
        self.host.remove_listener(VISIBILITY_CHANGE, self._on_visibility_change)
        self.host.remove_listener(FULLSCREEN_CHANGE, self._on_fullscreen_change)
        logger.info("감시 해제")

    async def release_fullscreen(self) -> None:
        """종료 후 전체화면 해제 (best-effort). 반드시 disarm 이후에 호출."""
        if not self.require_fullscreen:
            return
        try:
            await self.host.exit_fullscreen()
        except Exception as e:
            logger.warning(f"전체화면 해제 실패 (무시): {e}")

    def _warn_fullscreen_failed(self, detail: str) -> None:
        logger.warning(f"전체화면 획득 실패, 시험은 계속 진행: {detail}")
        if self.on_notice:
            self.on_notice(Notice(
                code="fullscreen_failed",
                message="전체화면 모드로 전환하지 못했습니다. 전체화면 상태에서 응시해 주세요.",
            ))

    # ── 신호 핸들러 ─────────────────────────────────────────────────────────

    async def _on_visibility_change(self, hidden: bool = False, **_) -> None:
        if self._armed and hidden:
            await self.report(ViolationKind.TAB_SWITCH)

    async def _on_fullscreen_change(self, fullscreen: bool = True, **_) -> None:
        if self._armed and not fullscreen:
            await self.report(ViolationKind.FULLSCREEN_EXIT)
