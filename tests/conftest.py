"""
Pytest Configuration for Quiz Proctor Tests
"""
import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quiz_proctor.models.question_model import Question
from quiz_proctor.models.session_config import SessionConfig
from quiz_proctor.models.session_state import SubmissionReceipt
from quiz_proctor.services.attempt_machine import AttemptSession


def build_questions(count, n_choices=4):
    return [
        Question(
            prompt=f"Question {i}",
            choices=[f"choice {i}-{c}" for c in range(n_choices)],
            correct_choice=i % n_choices,
        )
        for i in range(count)
    ]


@pytest.fixture
def questions():
    """Five four-choice questions"""
    return build_questions(5)


@pytest.fixture
def sink():
    """Submission sink whose submit() is an AsyncMock"""
    mock_sink = MagicMock()
    mock_sink.submit = AsyncMock(return_value=SubmissionReceipt(total=5))
    return mock_sink


@pytest.fixture
def warnings():
    return []


@pytest.fixture
def notices():
    return []


@pytest.fixture
def make_session(sink, warnings, notices):
    """Factory for sessions driven by manual tick() calls"""
    created = []

    def _make(host=None, **config_overrides):
        config = SessionConfig(**config_overrides)
        session = AttemptSession(
            "quiz-1",
            sink,
            config=config,
            host=host,
            on_warning=warnings.append,
            on_notice=notices.append,
            start_clock=False,
        )
        created.append(session)
        return session

    yield _make

    for session in created:
        session.discard()
