"""
services/countdown.py

시험 카운트다운 시계.
asyncio 주기 태스크로 interval 마다 on_tick 코루틴을 호출한다.
종료 전이 또는 화면 폐기 시 stop() 으로 태스크를 확실히 취소해야
다음 응시로 타이머가 새지 않는다.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def format_remaining(seconds: int) -> str:
    """남은 초를 MM:SS 로 표시."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class CountdownClock:
    """
    주기 틱 발생기. 틱 자체는 상태를 갖지 않고, 남은 시간 감소와
    만료 판정은 on_tick 을 받은 상태 머신이 한다.
    """

    def __init__(self, on_tick: Callable[[], Awaitable[None]], interval: float = 1.0):
        self.on_tick = on_tick
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """실행 중인 이벤트 루프에 틱 태스크를 생성."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"카운트다운 시작 (간격 {self.interval}s)")

    def stop(self) -> None:
        """틱 태스크 취소. 여러 번 호출해도 안전."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        # 틱 콜백 안에서 자기 자신을 멈추는 경우(시간 만료 → 제출) 취소하지 않는다.
        # 현재 틱이 끝나면 _run 루프가 _task 변경을 보고 빠져나간다.
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()
        logger.info("카운트다운 정지")

    async def _run(self) -> None:
        me = asyncio.current_task()
        while self._task is me:
            await asyncio.sleep(self.interval)
            if self._task is not me:
                break
            try:
                await self.on_tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("틱 처리 중 오류")
