"""
errors.py

시험 세션 컨트롤러의 예외 분류.
협력자(문제 소스, 제출 싱크, 브라우저 호스트)에서 발생한 오류는
상태 머신 경계에서 아래 예외로 변환된 뒤 경고 또는 상태 전이로 처리된다.
"""


class QuizProctorError(Exception):
    """모든 도메인 예외의 기반 클래스."""
    pass


# ── 시작 단계 (치명적: 응시 불가 화면) ──────────────────────────────────────

class EmptyQuestionSet(QuizProctorError):
    """문제 소스가 빈 문제 목록을 반환함."""
    pass


class QuestionSetNotFound(QuizProctorError):
    """요청한 시험이 존재하지 않음."""
    pass


class QuestionSourceNetworkError(QuizProctorError):
    """문제 소스에 연결할 수 없음."""
    pass


# ── 진행 단계 (비치명적: 경고만) ────────────────────────────────────────────

class SubmissionTransportError(QuizProctorError):
    """제출 싱크 호출 실패. 세션은 이미 종료 상태로 전이된 뒤이다."""
    pass


class FullscreenAcquisitionFailed(QuizProctorError):
    """전체화면 진입 실패. 시험 시작 자체는 막지 않는다."""
    pass


# ── 호출 오류 ───────────────────────────────────────────────────────────────

class InvalidTransition(QuizProctorError):
    """현재 상태에서 허용되지 않는 전이 요청."""
    pass


class InvalidAnswer(QuizProctorError, ValueError):
    """문제 또는 보기 인덱스가 범위를 벗어남."""
    pass
