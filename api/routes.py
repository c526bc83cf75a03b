"""
api/routes.py — FastAPI 엔드포인트

브라우저 클라이언트는 시작 전에 전체화면을 요청해 보고 그 결과를
fullscreen_available 로 알려 준다. 이후 visibilitychange / fullscreenchange
이벤트를 /api/attempt/signal 로 그대로 전달하고, 경고와 알림은
/api/attempt/notices, 서버 명령(전체화면 해제 등)은 /api/attempt/commands
를 폴링해서 가져간다.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

import api.session as session
from quiz_proctor.errors import (
    EmptyQuestionSet,
    InvalidAnswer,
    QuestionSetNotFound,
    QuestionSourceNetworkError,
)
from quiz_proctor.models.session_state import EndReason
from quiz_proctor.services.attempt_view import AttemptView
from quiz_proctor.services.integrity_monitor import BrowserSignalBridge

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartAttemptBody(BaseModel):
    quiz_id: str = Field(..., min_length=1)
    fullscreen_available: bool = True

class SelectAnswerBody(BaseModel):
    question_index: int
    choice_index: Optional[int] = None

class NavigateBody(BaseModel):
    direction: int = Field(..., ge=-1, le=1)

class JumpBody(BaseModel):
    index: int = 0

class SignalBody(BaseModel):
    type: str
    hidden: Optional[bool] = None
    fullscreen: Optional[bool] = None


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _sid(request: Request) -> str:
    return request.state.session_id


def _view(request: Request) -> AttemptView:
    view: AttemptView = session.get(_sid(request), "attempt")
    if view is None:
        raise HTTPException(status_code=404, detail="시험 세션이 없습니다.")
    return view


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.post("/api/attempts/start")
async def start_attempt(body: StartAttemptBody, request: Request):
    sid = _sid(request)
    previous: AttemptView = session.get(sid, "attempt")
    if previous is not None:
        previous.discard()

    app_state = request.app.state
    view = AttemptView(
        body.quiz_id,
        app_state.question_source,
        app_state.submission_sink,
        config=app_state.session_config,
        host=BrowserSignalBridge(fullscreen_available=body.fullscreen_available),
    )
    session.put(sid, "attempt", view)

    try:
        await view.open()
    except QuestionSetNotFound:
        raise HTTPException(status_code=404, detail="시험을 찾을 수 없습니다.")
    except QuestionSourceNetworkError:
        raise HTTPException(
            status_code=503,
            detail="문제 서버 오류가 발생했습니다. 잠시 후 다시 시도해 주세요.",
        )
    except EmptyQuestionSet:
        raise HTTPException(status_code=422, detail="출제된 문제가 없습니다.")
    return view.snapshot()


@router.get("/api/attempt/state")
async def get_attempt_state(request: Request):
    return _view(request).snapshot()


@router.get("/api/attempt/question/{index}")
async def get_question(index: int, request: Request):
    view = _view(request)
    questions = view.session.state.question_set
    if not questions or not (0 <= index < len(questions)):
        raise HTTPException(status_code=404, detail="문제를 찾을 수 없습니다.")

    d = questions[index].to_client_dict()
    d.update({
        "index": index,
        "total": len(questions),
        "saved_answer": view.session.state.answers[index],
    })
    return d


@router.post("/api/attempt/answer")
async def select_answer(body: SelectAnswerBody, request: Request):
    view = _view(request)
    try:
        accepted = view.session.select_answer(body.question_index, body.choice_index)
    except InvalidAnswer as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "accepted": accepted,
        "answered_count": view.session.state.answered_count,
        "status": view.session.status.value,
    }


@router.post("/api/attempt/navigate")
async def navigate(body: NavigateBody, request: Request):
    view = _view(request)
    return {"index": view.session.navigate(body.direction)}


@router.post("/api/attempt/jump")
async def jump(body: JumpBody, request: Request):
    view = _view(request)
    return {"index": view.session.jump_to(body.index)}


@router.post("/api/attempt/signal")
async def forward_signal(body: SignalBody, request: Request):
    view = _view(request)
    payload = body.model_dump(exclude={"type"}, exclude_none=True)
    try:
        dispatched = await view.signal(body.type, **payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "dispatched": dispatched,
        "status": view.session.status.value,
        "violation_count": view.session.state.violation_count,
    }


@router.post("/api/attempt/submit")
async def submit_attempt(request: Request):
    view = _view(request)
    outcome = await view.session.submit(EndReason.MANUAL)
    result = view.snapshot()
    if outcome is None:
        result["accepted"] = False
        return result

    result.update({
        "accepted": True,
        "delivered": outcome.delivered,
        "score": outcome.receipt.score if outcome.receipt else None,
    })
    return result


@router.get("/api/attempt/notices")
async def get_notices(request: Request):
    return {"messages": _view(request).drain_messages()}


@router.get("/api/attempt/commands")
async def get_commands(request: Request):
    return {"commands": _view(request).drain_commands()}


@router.post("/api/attempt/discard")
async def discard_attempt(request: Request):
    view = _view(request)
    view.discard()
    session.put(_sid(request), "attempt", None)
    return {"ok": True}


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(_sid(request))
    return {"ok": True}
