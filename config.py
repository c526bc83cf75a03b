import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.path.join(BASE_DIR, "launch.log")

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# 퀴즈 백엔드 설정 (비어 있으면 내장 샘플 시험 + 인메모리 채점 사용)
QUESTION_SOURCE_URL = os.getenv("QUESTION_SOURCE_URL", "")
SUBMISSION_SINK_URL = os.getenv("SUBMISSION_SINK_URL", QUESTION_SOURCE_URL)
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# 세션 설정
SESSION_TTL = int(os.getenv("SESSION_TTL", "3600"))        # 1시간
SESSION_CLEANUP_INTERVAL = 300                             # 5분마다 만료 세션 정리

# 시험 정책 (QUIZ_TOTAL_DURATION_SECONDS, QUIZ_VIOLATION_LIMIT,
# QUIZ_REQUIRE_FULLSCREEN, QUIZ_TICK_INTERVAL_SECONDS, QUIZ_LOW_TIME_WARNING_SECONDS)
# 은 quiz_proctor.models.session_config.SessionConfig.from_env() 가 읽는다.
