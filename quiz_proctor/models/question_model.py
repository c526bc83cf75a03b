from typing import Optional, List
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

class Question(BaseModel):
    """
    객관식 시험 문제 모델 (불변 값 객체)
    Pydantic v2 적용
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prompt: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("prompt", "text"),
        description="발문/문제 내용 (원본 백엔드는 'text' 키 사용)"
    )
    choices: List[str] = Field(
        ...,
        description="보기 리스트. 순서가 곧 답안 인덱스이므로 집합이 아닌 순서열"
    )
    correct_choice: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("correct_choice", "correctAnswer"),
        description="정답 보기 인덱스 (서버 측 채점용, 클라이언트에 노출 금지)"
    )

    @model_validator(mode='before')
    @classmethod
    def normalize_correct_answer(cls, data):
        """
        출제 화면은 정답을 보기 문자열로 저장한다('correctAnswer': "Paris").
        보기 문자열이면 인덱스로, 빈 문자열이면 None 으로 바꾼다.
        """
        if not isinstance(data, dict):
            return data
        key = "correctAnswer" if "correctAnswer" in data else "correct_choice"
        value = data.get(key)
        if not isinstance(value, str):
            return data
        data = dict(data)
        choices = data.get("choices") or []
        if value == "":
            data[key] = None
        elif value in choices:
            data[key] = choices.index(value)
        elif value.strip().lstrip("-").isdigit():
            data[key] = int(value)
        return data

    @field_validator('choices')
    @classmethod
    def validate_choices_not_empty(cls, v: List[str]) -> List[str]:
        """
        검증 로직 1: 보기는 최소 1개 이상이어야 한다.
        """
        if not v:
            raise ValueError("보기(choices)는 최소 1개 이상의 항목이 필요합니다.")
        return v

    @model_validator(mode='after')
    def validate_correct_choice_in_range(self) -> 'Question':
        """
        검증 로직 2: 정답이 존재하는 경우, 반드시 보기 인덱스 범위 안에 있어야 한다.
        정답이 None인 경우는 허용한다 (클라이언트용 문제 세트).
        """
        if self.correct_choice is not None and not (0 <= self.correct_choice < len(self.choices)):
            raise ValueError(
                f"정답 인덱스({self.correct_choice})가 보기 범위(0~{len(self.choices) - 1})를 벗어났습니다."
            )
        return self

    def to_client_dict(self) -> dict:
        """정답을 제외한 클라이언트 전송용 dict."""
        return {"prompt": self.prompt, "choices": list(self.choices)}
