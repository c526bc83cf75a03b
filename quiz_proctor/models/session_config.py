"""
models/session_config.py

시험 정책 값 (제한 시간, 위반 허용 횟수, 전체화면 요구 여부).
리비전마다 하드코딩하지 않고 이 모델 하나로 주입한다.
"""

import os

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class SessionConfig(BaseModel):
    total_duration_seconds: int = Field(
        default=120,
        ge=1,
        description="시험 제한 시간 (초)"
    )
    violation_limit: int = Field(
        default=3,
        ge=1,
        description="이 횟수에 도달하면 강제 종료"
    )
    require_fullscreen: bool = Field(
        default=True,
        description="전체화면 요구 여부. False 면 전체화면 이탈을 위반으로 보지 않음"
    )
    tick_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="카운트다운 틱 간격 (초)"
    )
    low_time_warning_seconds: int = Field(
        default=30,
        ge=0,
        description="남은 시간이 이 값에 도달하면 1회 경고. 0 이면 비활성"
    )

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """환경 변수에서 정책 값을 읽는다. 없는 값은 기본값 사용."""
        data = {}
        if os.getenv("QUIZ_TOTAL_DURATION_SECONDS"):
            data["total_duration_seconds"] = int(os.environ["QUIZ_TOTAL_DURATION_SECONDS"])
        if os.getenv("QUIZ_VIOLATION_LIMIT"):
            data["violation_limit"] = int(os.environ["QUIZ_VIOLATION_LIMIT"])
        if os.getenv("QUIZ_TICK_INTERVAL_SECONDS"):
            data["tick_interval_seconds"] = float(os.environ["QUIZ_TICK_INTERVAL_SECONDS"])
        if os.getenv("QUIZ_LOW_TIME_WARNING_SECONDS"):
            data["low_time_warning_seconds"] = int(os.environ["QUIZ_LOW_TIME_WARNING_SECONDS"])
        data["require_fullscreen"] = _env_bool("QUIZ_REQUIRE_FULLSCREEN", True)
        return cls(**data)
