"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + static 파일 서빙
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from config import (
    HTTP_TIMEOUT_SECONDS,
    QUESTION_SOURCE_URL,
    SESSION_CLEANUP_INTERVAL,
    SESSION_TTL,
    STATIC_DIR,
    SUBMISSION_SINK_URL,
)
from api.routes import router
from api.sample_questions import SAMPLE_QUESTIONS, SAMPLE_QUIZ_ID
import api.session as session
from quiz_proctor.models.session_config import SessionConfig
from quiz_proctor.services.collaborators import (
    HttpQuestionSource,
    HttpSubmissionSink,
    InMemorySubmissionSink,
    LocalQuestionSource,
    QuestionSource,
    SubmissionSink,
)

SESSION_COOKIE = "quiz_session"

logger = logging.getLogger(__name__)


def _default_collaborators() -> tuple[QuestionSource, SubmissionSink]:
    """백엔드 URL 이 있으면 HTTP 어댑터, 없으면 샘플 시험 + 인메모리 채점."""
    if QUESTION_SOURCE_URL:
        logger.info(f"퀴즈 백엔드 사용: {QUESTION_SOURCE_URL}")
        return (
            HttpQuestionSource(QUESTION_SOURCE_URL, timeout=HTTP_TIMEOUT_SECONDS),
            HttpSubmissionSink(SUBMISSION_SINK_URL, timeout=HTTP_TIMEOUT_SECONDS),
        )
    local = LocalQuestionSource({SAMPLE_QUIZ_ID: SAMPLE_QUESTIONS})
    return local, InMemorySubmissionSink(answer_keys=local)


def create_app(
    source: Optional[QuestionSource] = None,
    sink: Optional[SubmissionSink] = None,
    config: Optional[SessionConfig] = None,
) -> FastAPI:
    if source is None or sink is None:
        default_source, default_sink = _default_collaborators()
        source = source or default_source
        sink = sink or default_sink

    # 만료 세션 주기적 정리 (5분마다)
    async def _cleanup_loop():
        while True:
            await asyncio.sleep(SESSION_CLEANUP_INTERVAL)
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(_cleanup_loop())
        try:
            yield
        finally:
            task.cancel()
            session.clear_all()

    app = FastAPI(title="Proctored Quiz", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.question_source = source
    app.state.submission_sink = sink
    app.state.session_config = config or SessionConfig.from_env()

    # CORS (모바일 브라우저 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=SESSION_TTL,
        )
        return response

    app.include_router(router)

    # static 파일 마운트
    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # 루트 → index.html
    @app.get("/")
    async def serve_index():
        index_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    return app
