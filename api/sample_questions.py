"""
api/sample_questions.py — 내장 샘플 시험

QUESTION_SOURCE_URL 이 설정되지 않았을 때 LocalQuestionSource 에 등록된다.
"""

from quiz_proctor.models.question_model import Question

SAMPLE_QUIZ_ID = "sample"

SAMPLE_QUESTIONS: list[Question] = [
    Question(
        prompt="대한민국의 수도는?",
        choices=["부산", "서울", "인천", "대전"],
        correct_choice=1,
    ),
    Question(
        prompt="HTTP 상태 코드 404 의 의미는?",
        choices=["서버 내부 오류", "권한 없음", "리소스를 찾을 수 없음", "요청 성공"],
        correct_choice=2,
    ),
    Question(
        prompt="Python 에서 불변(immutable) 자료형은?",
        choices=["list", "dict", "set", "tuple"],
        correct_choice=3,
    ),
    Question(
        prompt="1 바이트는 몇 비트인가?",
        choices=["4", "8", "16", "32"],
        correct_choice=1,
    ),
    Question(
        prompt="다음 중 브라우저 탭 전환을 감지할 때 쓰는 DOM 이벤트는?",
        choices=["visibilitychange", "resize", "scroll", "keydown"],
        correct_choice=0,
    ),
]
