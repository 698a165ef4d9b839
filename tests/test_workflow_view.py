"""Tests for WorkflowView — loading, selection, guards and the submission state machine."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from rfq_workflow.exceptions import (
    FetchError,
    RequestAbortedError,
    SubmissionError,
    SubmissionInProgressError,
    ValidationError,
)
from rfq_workflow.models.enums import RfqStatus, SubmissionState
from rfq_workflow.modules.backend.base import BackendError, BackendUnavailableError
from rfq_workflow.modules.workflow.schemas import Rfq
from rfq_workflow.modules.workflow.view import WorkflowView
from tests.factories import RFQ_ID, make_bid, make_rfq, make_transition

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

BIDDING_CLOSED_TRANSITIONS = [
    make_transition("under_evaluation", label="Start Evaluation"),
    make_transition("cancelled", label="Cancel RFQ"),
    make_transition("awarded", label="Award RFQ"),
]


@pytest.fixture
def on_status_change():
    return MagicMock()


@pytest.fixture
def rfq():
    return Rfq.model_validate(make_rfq("bidding_closed"))


async def _open_view(mock_backend, rfq, on_status_change, transitions=None, bids=None):
    mock_backend.get_workflow_transitions.return_value = (
        BIDDING_CLOSED_TRANSITIONS if transitions is None else transitions
    )
    mock_backend.list_bids.return_value = bids or []
    view = WorkflowView(rfq, mock_backend, on_status_change=on_status_change)
    await view.open()
    return view


# ---------------------------------------------------------------------------
# Opening
# ---------------------------------------------------------------------------


class TestOpen:
    @pytest.mark.asyncio
    async def test_loads_catalog_and_bids(self, mock_backend, rfq, on_status_change):
        view = await _open_view(
            mock_backend, rfq, on_status_change, bids=[make_bid(1, 501, name="Acme")]
        )

        assert view.is_open
        assert [t.target_status for t in view.transitions] == [
            RfqStatus.UNDER_EVALUATION,
            RfqStatus.CANCELLED,
            RfqStatus.AWARDED,
        ]
        assert len(view.bids) == 1
        assert view.state == SubmissionState.IDLE
        assert view.fetch_errors == []

    @pytest.mark.asyncio
    async def test_loads_are_concurrent(self, mock_backend, rfq, on_status_change):
        both_started = asyncio.Event()
        started = []

        async def _wait_for_both(name):
            started.append(name)
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)

        async def transitions(rfq_id):
            await _wait_for_both("transitions")
            return BIDDING_CLOSED_TRANSITIONS

        async def bids(rfq_id, status):
            await _wait_for_both("bids")
            return []

        mock_backend.get_workflow_transitions.side_effect = transitions
        mock_backend.list_bids.side_effect = bids
        view = WorkflowView(rfq, mock_backend, on_status_change=on_status_change)

        await view.open()

        assert sorted(started) == ["bids", "transitions"]
        assert len(view.transitions) == 3

    @pytest.mark.asyncio
    async def test_catalog_failure_keeps_view_usable(self, mock_backend, rfq, on_status_change):
        mock_backend.get_workflow_transitions.side_effect = BackendUnavailableError("Backend unreachable")
        mock_backend.list_bids.return_value = [make_bid(1, 501)]
        view = WorkflowView(rfq, mock_backend, on_status_change=on_status_change)

        await view.open()

        assert view.is_open
        assert view.transitions == []
        assert len(view.bids) == 1
        assert len(view.fetch_errors) == 1
        assert isinstance(view.fetch_errors[0], FetchError)
        assert not view.can_submit

    @pytest.mark.asyncio
    async def test_unexpected_loader_error_becomes_fetch_error(self, mock_backend, rfq, on_status_change):
        mock_backend.get_workflow_transitions.return_value = BIDDING_CLOSED_TRANSITIONS
        mock_backend.list_bids.side_effect = RuntimeError("boom")
        view = WorkflowView(rfq, mock_backend, on_status_change=on_status_change)

        await view.open()

        assert len(view.transitions) == 3
        assert [e.code for e in view.fetch_errors] == ["FETCH_FAILED"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    async def test_terminal_rfq_never_enables_submit(self, mock_backend, on_status_change, status):
        terminal = Rfq.model_validate(make_rfq(status))
        view = await _open_view(mock_backend, terminal, on_status_change)

        assert view.transitions == []
        assert not view.can_submit
        with pytest.raises(ValidationError):
            view.select_target(RfqStatus.DRAFT)
        outcome = await view.submit()
        assert not outcome.succeeded
        mock_backend.transition_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reload_drops_selection_no_longer_offered(self, mock_backend, rfq, on_status_change):
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.UNDER_EVALUATION)

        mock_backend.get_workflow_transitions.return_value = [make_transition("cancelled")]
        await view.reload()

        assert view.selected_target is None
        assert view.state == SubmissionState.IDLE


# ---------------------------------------------------------------------------
# Selection and guards
# ---------------------------------------------------------------------------


class TestSelection:
    @pytest.mark.asyncio
    async def test_unguarded_target_is_ready(self, mock_backend, rfq, on_status_change):
        view = await _open_view(mock_backend, rfq, on_status_change)

        view.select_target(RfqStatus.UNDER_EVALUATION)

        assert view.state == SubmissionState.READY
        assert view.can_submit
        assert view.submit_label == "Change to Start Evaluation"

    @pytest.mark.asyncio
    async def test_cancel_pending_until_reason_entered(self, mock_backend, rfq, on_status_change):
        view = await _open_view(mock_backend, rfq, on_status_change)

        view.select_target(RfqStatus.CANCELLED)
        assert view.state == SubmissionState.GUARD_PENDING
        assert not view.can_submit

        view.set_metadata("cancellation_reason", "   ")
        assert not view.can_submit

        view.set_metadata("cancellation_reason", "Budget withdrawn")
        assert view.state == SubmissionState.READY
        assert view.can_submit

    @pytest.mark.asyncio
    async def test_switching_target_discards_metadata(self, mock_backend, rfq, on_status_change):
        view = await _open_view(
            mock_backend, rfq, on_status_change, bids=[make_bid(1, 501, name="Acme")]
        )
        view.select_target(RfqStatus.CANCELLED)
        view.set_metadata("cancellation_reason", "Budget withdrawn")

        view.select_target(RfqStatus.AWARDED)
        assert view.metadata == {}

        view.select_target(RfqStatus.CANCELLED)
        assert view.metadata == {}
        assert view.state == SubmissionState.GUARD_PENDING

    @pytest.mark.asyncio
    async def test_reselecting_same_target_keeps_metadata(self, mock_backend, rfq, on_status_change):
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.CANCELLED)
        view.set_metadata("cancellation_reason", "Budget withdrawn")

        view.select_target(RfqStatus.CANCELLED)

        assert view.metadata == {"cancellation_reason": "Budget withdrawn"}

    @pytest.mark.asyncio
    async def test_metadata_key_must_belong_to_target(self, mock_backend, rfq, on_status_change):
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.CANCELLED)

        with pytest.raises(ValidationError):
            view.set_metadata("awarded_supplier_id", "501")

    @pytest.mark.asyncio
    async def test_metadata_requires_selection(self, mock_backend, rfq, on_status_change):
        view = await _open_view(mock_backend, rfq, on_status_change)
        with pytest.raises(ValidationError):
            view.set_metadata("cancellation_reason", "x")

    @pytest.mark.asyncio
    async def test_clear_selection_returns_to_idle(self, mock_backend, rfq, on_status_change):
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.CANCELLED)
        view.set_metadata("cancellation_reason", "Budget withdrawn")

        view.select_target(None)

        assert view.selected_target is None
        assert view.metadata == {}
        assert view.state == SubmissionState.IDLE

    @pytest.mark.asyncio
    async def test_award_blocked_without_bids(self, mock_backend, rfq, on_status_change):
        """bidding_closed with no submitted bids: award shows a warning, never a form."""
        view = await _open_view(mock_backend, rfq, on_status_change, bids=[])

        view.select_target(RfqStatus.AWARDED)
        view.set_metadata("awarded_supplier_id", "501")

        snapshot = view.snapshot()
        assert snapshot.guard.blocked
        assert snapshot.guard.fields == []
        assert "No bids have been submitted yet" in snapshot.guard.warning
        assert not view.can_submit
        assert view.state == SubmissionState.GUARD_PENDING

        outcome = await view.submit()
        assert not outcome.succeeded
        assert isinstance(outcome.error, ValidationError)
        mock_backend.transition_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_award_form_lists_submitted_bids(self, mock_backend, rfq, on_status_change):
        view = await _open_view(
            mock_backend,
            rfq,
            on_status_change,
            bids=[make_bid(1, 501, name="Acme", total_amount="9800")],
        )
        view.select_target(RfqStatus.AWARDED)

        guard = view.snapshot().guard
        assert not guard.blocked
        assert [c.value for c in guard.fields[0].choices] == ["501"]
        assert guard.fields[0].choices[0].label == "Acme - $9,800"


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmit:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "   "])
    async def test_blank_cancellation_reason_never_calls_backend(
        self, mock_backend, rfq, on_status_change, reason
    ):
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.CANCELLED)
        view.set_metadata("cancellation_reason", reason)

        outcome = await view.submit()

        assert not outcome.succeeded
        assert isinstance(outcome.error, ValidationError)
        assert view.state == SubmissionState.GUARD_PENDING
        mock_backend.transition_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_supplier_never_calls_backend(self, mock_backend, rfq, on_status_change):
        view = await _open_view(
            mock_backend, rfq, on_status_change, bids=[make_bid(1, 501, name="Acme")]
        )
        view.select_target(RfqStatus.AWARDED)
        view.set_metadata("awarded_supplier_id", "777")

        outcome = await view.submit()

        assert not outcome.succeeded
        assert isinstance(outcome.error, ValidationError)
        mock_backend.transition_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_scenario_single_call(self, mock_backend, rfq, on_status_change):
        cancelled = make_rfq("cancelled", cancellation_reason="Budget withdrawn")
        mock_backend.transition_status.return_value = cancelled
        view = await _open_view(mock_backend, rfq, on_status_change)

        view.select_target(RfqStatus.CANCELLED)
        view.set_metadata("cancellation_reason", "Budget withdrawn")
        outcome = await view.submit()

        mock_backend.transition_status.assert_awaited_once_with(
            str(RFQ_ID), "cancelled", {"cancellation_reason": "Budget withdrawn"}
        )
        assert outcome.succeeded
        assert outcome.error is None

    @pytest.mark.asyncio
    async def test_success_replaces_rfq_and_notifies_once(self, mock_backend, rfq, on_status_change):
        updated = make_rfq(
            "under_evaluation",
            workflow_stats={"total_bids": 2, "total_suppliers": 3, "days_remaining": 0, "is_overdue": True},
        )
        mock_backend.transition_status.return_value = updated
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.UNDER_EVALUATION)

        outcome = await view.submit()

        on_status_change.assert_called_once()
        (notified,), _ = on_status_change.call_args
        assert notified == Rfq.model_validate(updated)
        assert view.rfq is outcome.rfq
        assert view.rfq.status == RfqStatus.UNDER_EVALUATION
        assert view.rfq.workflow_stats.is_overdue is True
        assert view.state == SubmissionState.IDLE
        assert view.selected_target is None
        assert view.metadata == {}
        assert not view.is_open

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self, mock_backend, rfq):
        received = []

        async def on_change(updated):
            received.append(updated.status)

        mock_backend.transition_status.return_value = make_rfq("under_evaluation")
        view = await _open_view(mock_backend, rfq, on_change)
        view.select_target(RfqStatus.UNDER_EVALUATION)

        await view.submit()

        assert received == [RfqStatus.UNDER_EVALUATION]

    @pytest.mark.asyncio
    async def test_rejection_preserves_selection_and_rfq(self, mock_backend, rfq, on_status_change):
        mock_backend.transition_status.side_effect = BackendError("Already awarded", status_code=422)
        view = await _open_view(
            mock_backend, rfq, on_status_change, bids=[make_bid(1, 501, name="Acme")]
        )
        view.select_target(RfqStatus.AWARDED)
        view.set_metadata("awarded_supplier_id", "501")

        outcome = await view.submit()

        assert not outcome.succeeded
        assert isinstance(outcome.error, SubmissionError)
        assert outcome.error.message == "Already awarded"
        assert view.error.message == "Already awarded"
        assert view.state == SubmissionState.FAILED
        assert view.rfq is rfq
        assert view.rfq.status == RfqStatus.BIDDING_CLOSED
        assert view.selected_target == RfqStatus.AWARDED
        assert view.metadata == {"awarded_supplier_id": "501"}
        assert view.is_open
        on_status_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_retry_after_failure_is_explicit(self, mock_backend, rfq, on_status_change):
        mock_backend.transition_status.side_effect = [
            BackendUnavailableError("Backend returned HTTP 503", status_code=503),
            make_rfq("under_evaluation"),
        ]
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.UNDER_EVALUATION)

        first = await view.submit()
        assert not first.succeeded
        assert mock_backend.transition_status.await_count == 1

        second = await view.submit()
        assert second.succeeded
        assert mock_backend.transition_status.await_count == 2

    @pytest.mark.asyncio
    async def test_reentrant_submit_is_refused(self, mock_backend, rfq, on_status_change):
        release = asyncio.Event()

        async def slow_transition(rfq_id, target_status, metadata):
            await release.wait()
            return make_rfq("under_evaluation")

        mock_backend.transition_status.side_effect = slow_transition
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.UNDER_EVALUATION)

        first = asyncio.create_task(view.submit())
        await asyncio.sleep(0)
        assert view.state == SubmissionState.SUBMITTING
        assert not view.can_submit

        second = await view.submit()
        assert not second.succeeded
        assert isinstance(second.error, SubmissionInProgressError)

        with pytest.raises(SubmissionInProgressError):
            view.select_target(RfqStatus.CANCELLED)

        release.set()
        result = await first

        assert result.succeeded
        assert mock_backend.transition_status.await_count == 1
        on_status_change.assert_called_once()

    @pytest.mark.asyncio
    async def test_reload_refused_while_submitting(self, mock_backend, rfq, on_status_change):
        release = asyncio.Event()

        async def rejected_transition(rfq_id, target_status, metadata):
            await release.wait()
            raise BackendError("Already awarded", status_code=422)

        mock_backend.transition_status.side_effect = rejected_transition
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.CANCELLED)
        view.set_metadata("cancellation_reason", "Budget withdrawn")

        first = asyncio.create_task(view.submit())
        await asyncio.sleep(0)
        mock_backend.get_workflow_transitions.return_value = [make_transition("under_evaluation")]

        with pytest.raises(SubmissionInProgressError):
            await view.reload()
        with pytest.raises(SubmissionInProgressError):
            await view.open()
        assert view.state == SubmissionState.SUBMITTING
        assert view.selected_target == RfqStatus.CANCELLED

        release.set()
        outcome = await first

        assert not outcome.succeeded
        assert outcome.error.message == "Already awarded"
        assert view.state == SubmissionState.FAILED
        assert view.selected_target == RfqStatus.CANCELLED
        assert view.metadata == {"cancellation_reason": "Budget withdrawn"}
        assert view.can_submit

    @pytest.mark.asyncio
    async def test_cancelled_request_moves_to_failed(self, mock_backend, rfq, on_status_change):
        async def hang(rfq_id, target_status, metadata):
            await asyncio.Event().wait()

        mock_backend.transition_status.side_effect = hang
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.UNDER_EVALUATION)

        task = asyncio.create_task(view.submit())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert view.state == SubmissionState.FAILED
        assert isinstance(view.error, RequestAbortedError)
        assert view.selected_target == RfqStatus.UNDER_EVALUATION
        assert view.rfq is rfq

    @pytest.mark.asyncio
    async def test_submit_on_closed_view_is_refused(self, mock_backend, rfq, on_status_change):
        view = await _open_view(mock_backend, rfq, on_status_change)
        view.select_target(RfqStatus.UNDER_EVALUATION)
        view.close()

        outcome = await view.submit()

        assert not outcome.succeeded
        mock_backend.transition_status.assert_not_awaited()
