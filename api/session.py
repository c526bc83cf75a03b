"""
api/session.py — 멀티유저 인메모리 세션 (쿠키 기반)

각 사용자에게 UUID 세션 ID를 발급하고, 세션별로 독립된 상태를 유지.
세션은 최대 하나의 응시 화면(AttemptView)을 소유한다.
TTL(기본 1시간) 경과 시 자동 만료되며, 만료/초기화 시 소유한 응시를 폐기해
타이머와 리스너가 다음 응시로 새지 않게 한다.
"""

import logging
import threading
import time
import uuid
from typing import Any

from config import SESSION_TTL

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_timestamps: dict[str, float] = {}


def _new_state() -> dict[str, Any]:
    return {
        "attempt": None,
    }


def _discard_attempt(state: dict[str, Any]) -> None:
    view = state.get("attempt")
    if view is not None:
        view.discard()


def create_session() -> str:
    """새 세션을 생성하고 세션 ID를 반환."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    return sid


def get_session(sid: str) -> dict[str, Any] | None:
    """세션 ID로 세션 데이터를 가져옴. 만료되었거나 없으면 None."""
    with _lock:
        if sid not in _sessions:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            expired = _sessions.pop(sid)
            del _timestamps[sid]
        else:
            _timestamps[sid] = time.time()  # 접근 시 갱신
            return _sessions[sid]
    _discard_attempt(expired)
    return None


def get(sid: str, key: str, default=None):
    """세션에서 값 읽기."""
    session = get_session(sid)
    if session is None:
        return default
    return session.get(key, default)


def put(sid: str, key: str, value) -> None:
    """세션에 값 쓰기."""
    with _lock:
        if sid in _sessions:
            _sessions[sid][key] = value
            _timestamps[sid] = time.time()


def reset(sid: str) -> None:
    """세션 초기화. 소유한 응시는 폐기."""
    with _lock:
        old = _sessions.get(sid)
        if sid in _sessions:
            _sessions[sid] = _new_state()
            _timestamps[sid] = time.time()
    if old is not None:
        _discard_attempt(old)


def cleanup_expired() -> int:
    """만료된 세션을 정리. 제거된 수 반환."""
    now = time.time()
    removed = []
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        for sid in expired:
            removed.append(_sessions.pop(sid))
            del _timestamps[sid]
    for state in removed:
        _discard_attempt(state)
    return len(removed)


def clear_all() -> None:
    """모든 세션 폐기 (서버 종료 시)."""
    with _lock:
        states = list(_sessions.values())
        _sessions.clear()
        _timestamps.clear()
    for state in states:
        _discard_attempt(state)
    if states:
        logger.info(f"세션 {len(states)}개 폐기")
