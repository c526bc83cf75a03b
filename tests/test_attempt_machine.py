"""
Tests for the attempt state machine.

Covers:
- load / unavailable handling
- answer selection and navigation bounds
- countdown expiry and violation-limit termination
- submit idempotence under concurrent triggers
- submission payload encoding and sink failure handling
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from quiz_proctor.errors import (
    EmptyQuestionSet,
    InvalidAnswer,
    InvalidTransition,
    SubmissionTransportError,
)
from quiz_proctor.models.session_state import (
    AttemptStatus,
    EndReason,
    SubmissionReceipt,
    ViolationKind,
)


class TestLoad:
    """Test loading a question set."""

    @pytest.mark.asyncio
    async def test_load_starts_attempt(self, make_session, questions):
        session = make_session()
        assert session.status is AttemptStatus.LOADING

        await session.load(questions)

        assert session.status is AttemptStatus.IN_PROGRESS
        assert session.state.answers == [None] * 5
        assert len(session.state.answers) == len(session.state.question_set)
        assert session.state.time_remaining == 120
        assert session.state.current_index == 0
        assert session.state.started_at is not None

    @pytest.mark.asyncio
    async def test_empty_question_set_marks_unavailable(self, make_session):
        session = make_session()

        with pytest.raises(EmptyQuestionSet):
            await session.load([])

        assert session.unavailable is True
        assert session.status is AttemptStatus.LOADING
        assert session.snapshot()["unavailable"] is True

    @pytest.mark.asyncio
    async def test_unavailable_is_permanent(self, make_session, questions):
        session = make_session()
        with pytest.raises(EmptyQuestionSet):
            await session.load([])

        with pytest.raises(InvalidTransition):
            await session.load(questions)
        assert session.status is AttemptStatus.LOADING

    @pytest.mark.asyncio
    async def test_load_twice_rejected(self, make_session, questions):
        session = make_session()
        await session.load(questions)

        with pytest.raises(InvalidTransition):
            await session.load(questions)


class TestAnswersAndNavigation:
    """Test answer selection and cursor movement."""

    @pytest.mark.asyncio
    async def test_select_answer_overwrites(self, make_session, questions):
        session = make_session()
        await session.load(questions)

        assert session.select_answer(0, 1) is True
        assert session.select_answer(0, 3) is True

        assert session.state.answers[0] == 3
        assert session.state.answered_count == 1

    @pytest.mark.asyncio
    async def test_select_none_clears_answer(self, make_session, questions):
        session = make_session()
        await session.load(questions)
        session.select_answer(2, 1)

        session.select_answer(2, None)

        assert session.state.answers[2] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question_index,choice_index", [(-1, 0), (5, 0), (0, 4), (0, -1)])
    async def test_select_out_of_range_raises(self, make_session, questions, question_index, choice_index):
        session = make_session()
        await session.load(questions)

        with pytest.raises(InvalidAnswer):
            session.select_answer(question_index, choice_index)
        assert session.state.answers == [None] * 5

    def test_select_before_load_ignored(self, make_session):
        session = make_session()
        assert session.select_answer(0, 0) is False

    @pytest.mark.asyncio
    async def test_navigate_clamps_at_bounds(self, make_session, questions):
        session = make_session()
        await session.load(questions)

        assert session.navigate(-1) == 0
        for _ in range(10):
            session.navigate(1)
        assert session.state.current_index == 4
        assert session.navigate(1) == 4
        assert session.navigate(-1) == 3

    @pytest.mark.asyncio
    async def test_jump_to_clamps(self, make_session, questions):
        session = make_session()
        await session.load(questions)

        assert session.jump_to(3) == 3
        assert session.jump_to(99) == 4
        assert session.jump_to(-5) == 0

    @pytest.mark.asyncio
    async def test_navigation_frozen_after_submit(self, make_session, questions):
        session = make_session()
        await session.load(questions)
        session.navigate(1)
        await session.submit()

        assert session.navigate(1) == 1
        assert session.jump_to(4) == 1


class TestCountdown:
    """Test tick() and timeout submission."""

    @pytest.mark.asyncio
    async def test_full_countdown_submits_once(self, make_session, questions, sink):
        session = make_session()
        await session.load(questions)

        for _ in range(120):
            await session.tick()

        assert sink.submit.await_count == 1
        payload = sink.submit.await_args.args[0]
        assert payload.termination_reason is EndReason.TIMEOUT
        assert session.status is AttemptStatus.SUBMITTED
        assert session.state.time_remaining == 0

    @pytest.mark.asyncio
    async def test_ticks_after_expiry_do_nothing(self, make_session, questions, sink):
        session = make_session(total_duration_seconds=3)
        await session.load(questions)

        for _ in range(10):
            await session.tick()

        assert sink.submit.await_count == 1
        assert session.state.time_remaining == 0

    @pytest.mark.asyncio
    async def test_timeout_scenario_all_unanswered(self, make_session, questions, sink):
        session = make_session(total_duration_seconds=5)
        await session.load(questions)

        for _ in range(5):
            await session.tick()

        sink.submit.assert_awaited_once()
        wire = sink.submit.await_args.args[0].to_wire()
        assert wire["terminationReason"] == "timeout"
        assert wire["answers"] == [-1, -1, -1, -1, -1]
        assert wire["elapsedSeconds"] == 5

    @pytest.mark.asyncio
    async def test_timeout_notice_precedes_sink_call(self, make_session, questions, sink, notices):
        events = []
        session = make_session(total_duration_seconds=1)
        session.on_notice = lambda n: events.append(f"notice:{n.code}")
        sink.submit.side_effect = lambda payload: events.append("sink") or SubmissionReceipt()
        await session.load(questions)

        await session.tick()

        assert events == ["notice:timeout", "sink"]

    @pytest.mark.asyncio
    async def test_low_time_notice_emitted_once(self, make_session, questions, notices):
        session = make_session(total_duration_seconds=10, low_time_warning_seconds=3)
        await session.load(questions)

        for _ in range(9):
            await session.tick()

        codes = [n.code for n in notices]
        assert codes.count("low_time") == 1
        assert session.state.time_remaining == 1

    @pytest.mark.asyncio
    async def test_low_time_notice_disabled(self, make_session, questions, notices):
        session = make_session(total_duration_seconds=5, low_time_warning_seconds=0)
        await session.load(questions)

        for _ in range(4):
            await session.tick()

        assert notices == []


class TestViolations:
    """Test violation counting and termination."""

    @pytest.mark.asyncio
    async def test_two_violations_warn(self, make_session, questions, sink, warnings):
        session = make_session()
        await session.load(questions)

        await session.report_violation(ViolationKind.TAB_SWITCH)
        await session.report_violation(ViolationKind.FULLSCREEN_EXIT)

        assert session.status is AttemptStatus.IN_PROGRESS
        assert [(w.kind, w.count, w.limit) for w in warnings] == [
            (ViolationKind.TAB_SWITCH, 1, 3),
            (ViolationKind.FULLSCREEN_EXIT, 2, 3),
        ]
        sink.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_third_violation_terminates(self, make_session, questions, sink, warnings, notices):
        session = make_session()
        await session.load(questions)

        for _ in range(3):
            await session.report_violation(ViolationKind.TAB_SWITCH)

        assert session.status is AttemptStatus.TERMINATED
        assert session.state.termination_reason is EndReason.VIOLATION_LIMIT
        assert len(warnings) == 2
        assert "terminated" in [n.code for n in notices]
        sink.submit.assert_awaited_once()
        assert sink.submit.await_args.args[0].termination_reason is EndReason.VIOLATION_LIMIT

    @pytest.mark.asyncio
    async def test_custom_violation_limit(self, make_session, questions):
        session = make_session(violation_limit=1)
        await session.load(questions)

        await session.report_violation("fullscreen_exit")

        assert session.status is AttemptStatus.TERMINATED

    @pytest.mark.asyncio
    async def test_violations_after_terminal_ignored(self, make_session, questions, sink, warnings):
        session = make_session()
        await session.load(questions)
        await session.submit()

        await session.report_violation(ViolationKind.TAB_SWITCH)

        assert session.state.violation_count == 0
        assert warnings == []
        assert sink.submit.await_count == 1


class TestSubmit:
    """Test submission semantics."""

    @pytest.mark.asyncio
    async def test_manual_submission_scenario(self, make_session, questions, sink):
        session = make_session()
        await session.load(questions)
        for index in (0, 1, 3):
            session.select_answer(index, 2)

        outcome = await session.submit(EndReason.MANUAL)

        assert outcome.delivered is True
        wire = sink.submit.await_args.args[0].to_wire()
        assert wire["answers"] == [2, 2, -1, 2, -1]
        assert wire["terminationReason"] == "manual"
        assert wire["attemptId"] == "quiz-1"
        assert session.status is AttemptStatus.SUBMITTED
        assert session.state.termination_reason is None
        assert session.state.end_reason is EndReason.MANUAL

    @pytest.mark.asyncio
    async def test_elapsed_seconds_in_payload(self, make_session, questions, sink):
        session = make_session()
        await session.load(questions)
        for _ in range(3):
            await session.tick()

        await session.submit()

        assert sink.submit.await_args.args[0].elapsed_seconds == 3

    @pytest.mark.asyncio
    async def test_select_after_submit_has_no_effect(self, make_session, questions):
        session = make_session()
        await session.load(questions)
        session.select_answer(0, 1)
        await session.submit()

        assert session.select_answer(0, 3) is False
        assert session.select_answer(1, 0) is False
        assert session.state.answers == [1, None, None, None, None]

    @pytest.mark.asyncio
    async def test_second_submit_is_noop(self, make_session, questions, sink):
        session = make_session()
        await session.load(questions)

        first = await session.submit()
        second = await session.submit(EndReason.TIMEOUT)

        assert first is not None
        assert second is None
        assert sink.submit.await_count == 1
        assert session.state.end_reason is EndReason.MANUAL

    @pytest.mark.asyncio
    async def test_submit_before_load_is_noop(self, make_session, sink):
        session = make_session()

        assert await session.submit() is None
        sink.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sink_failure_still_transitions(self, make_session, questions, sink, notices):
        sink.submit.side_effect = SubmissionTransportError("connection refused")
        session = make_session()
        await session.load(questions)

        outcome = await session.submit()

        assert session.status is AttemptStatus.SUBMITTED
        assert outcome.delivered is False
        assert isinstance(outcome.error, SubmissionTransportError)
        assert session.state.submission_error == "connection refused"
        assert "submission_failed" in [n.code for n in notices]

    @pytest.mark.asyncio
    async def test_unexpected_sink_error_converted(self, make_session, questions, sink):
        sink.submit.side_effect = RuntimeError("boom")
        session = make_session()
        await session.load(questions)
        await session.report_violation(ViolationKind.TAB_SWITCH)
        await session.report_violation(ViolationKind.TAB_SWITCH)

        await session.report_violation(ViolationKind.TAB_SWITCH)

        assert session.status is AttemptStatus.TERMINATED
        assert "boom" in session.state.submission_error

    @pytest.mark.asyncio
    async def test_receipt_recorded(self, make_session, questions, sink):
        sink.submit.return_value = SubmissionReceipt(score=4, total=5, percent=80.0, passed=True)
        session = make_session()
        await session.load(questions)

        await session.submit()

        assert session.state.receipt.score == 4
        assert session.snapshot()["score"] == 4
        assert session.snapshot()["percent"] == 80.0
        assert session.snapshot()["passed"] is True

    @pytest.mark.asyncio
    async def test_status_never_moves_backward(self, make_session, questions):
        order = [AttemptStatus.LOADING, AttemptStatus.IN_PROGRESS, AttemptStatus.SUBMITTED]
        seen = []
        session = make_session(total_duration_seconds=2)
        seen.append(session.status)
        await session.load(questions)
        seen.append(session.status)
        for _ in range(4):
            await session.tick()
            seen.append(session.status)
        session.select_answer(0, 0)
        await session.report_violation(ViolationKind.TAB_SWITCH)
        seen.append(session.status)

        ranks = [order.index(s) for s in seen]
        assert ranks == sorted(ranks)
        assert seen[-1] is AttemptStatus.SUBMITTED


class TestConcurrentSubmission:
    """Test submit idempotence when triggers race."""

    @pytest.mark.asyncio
    async def test_timeout_and_violation_limit_same_instant(self, make_session, questions, sink):
        async def slow_sink(payload):
            await asyncio.sleep(0)
            return SubmissionReceipt()

        sink.submit = AsyncMock(side_effect=slow_sink)
        session = make_session(total_duration_seconds=1, violation_limit=1)
        await session.load(questions)

        await asyncio.gather(
            session.tick(),
            session.report_violation(ViolationKind.TAB_SWITCH),
        )

        assert sink.submit.await_count == 1
        assert session.status.is_terminal

    @pytest.mark.asyncio
    async def test_concurrent_submit_calls(self, make_session, questions, sink):
        async def slow_sink(payload):
            await asyncio.sleep(0.01)
            return SubmissionReceipt()

        sink.submit = AsyncMock(side_effect=slow_sink)
        session = make_session()
        await session.load(questions)

        results = await asyncio.gather(
            session.submit(EndReason.MANUAL),
            session.submit(EndReason.TIMEOUT),
            session.submit(EndReason.VIOLATION_LIMIT),
        )

        assert sum(1 for r in results if r is not None) == 1
        assert sink.submit.await_count == 1
        assert session.status is AttemptStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_status_committed_before_sink_completes(self, make_session, questions, sink):
        gate = asyncio.Event()

        async def hanging_sink(payload):
            await gate.wait()
            return SubmissionReceipt()

        sink.submit = AsyncMock(side_effect=hanging_sink)
        session = make_session()
        await session.load(questions)

        task = asyncio.ensure_future(session.submit())
        await asyncio.sleep(0)

        assert session.status is AttemptStatus.SUBMITTED
        assert session.select_answer(0, 1) is False

        gate.set()
        outcome = await task
        assert outcome.delivered is True
