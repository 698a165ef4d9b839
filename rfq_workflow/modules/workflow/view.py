"""Workflow view — one operator interaction with the lifecycle of one RFQ.

The view loads the transition catalog and the bid snapshot together, tracks
the selected target and its guard metadata, and runs the submission state
machine::

    idle -> selecting -> (guard_pending | ready) -> submitting -> (succeeded | failed)

The RFQ held by the view only changes on a successful transition, and then
as a whole-record replace with the backend's answer.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from rfq_workflow.exceptions import (
    FetchError,
    RequestAbortedError,
    SubmissionError,
    SubmissionInProgressError,
    ValidationError,
    WorkflowError,
)
from rfq_workflow.models.enums import RfqStatus, SubmissionState
from rfq_workflow.modules.backend.base import WorkflowBackendBase
from rfq_workflow.modules.workflow import guards
from rfq_workflow.modules.workflow.bids import BidSnapshotProvider
from rfq_workflow.modules.workflow.catalog import TransitionCatalogResolver
from rfq_workflow.modules.workflow.constants import (
    REQUEST_ABORTED,
    SUBMISSION_IN_PROGRESS,
    TRANSITION_FAILED,
)
from rfq_workflow.modules.workflow.schemas import (
    Bid,
    ErrorInfo,
    FieldDescriptorResponse,
    GuardResponse,
    Rfq,
    Transition,
    WorkflowViewResponse,
)
from rfq_workflow.modules.workflow.submitter import TransitionSubmitter

logger = logging.getLogger(__name__)

StatusChangeCallback = Callable[[Rfq], Awaitable[None] | None]


@dataclass(frozen=True)
class SubmissionOutcome:
    succeeded: bool
    rfq: Rfq
    error: WorkflowError | None = None


def _error_info(exc: WorkflowError) -> ErrorInfo:
    return ErrorInfo(code=exc.code, message=exc.message, details=exc.details)


class WorkflowView:
    def __init__(
        self,
        rfq: Rfq,
        backend: WorkflowBackendBase,
        on_status_change: StatusChangeCallback | None = None,
        view_id: str | None = None,
    ):
        self.view_id = view_id or str(uuid.uuid4())
        self.rfq = rfq
        self.on_status_change = on_status_change

        self.catalog = TransitionCatalogResolver(backend)
        self.bid_provider = BidSnapshotProvider(backend)
        self.submitter = TransitionSubmitter(backend)

        self.is_open = False
        self.transitions: list[Transition] = []
        self.bids: list[Bid] = []
        self.fetch_errors: list[FetchError] = []

        self.selected_target: RfqStatus | None = None
        self.metadata: dict[str, str] = {}
        self.state = SubmissionState.IDLE
        self.error: WorkflowError | None = None
        self._in_flight = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Open the view and load the catalog and bid snapshot concurrently."""
        if self._in_flight:
            raise SubmissionInProgressError(SUBMISSION_IN_PROGRESS)
        self.is_open = True
        self._reset_selection()
        await self._load()
        logger.info(
            "Opened workflow view %s for RFQ %s (%s): %d transitions, %d submitted bids",
            self.view_id, self.rfq.id, self.rfq.status.value,
            len(self.transitions), len(self.bids),
        )

    async def reload(self) -> None:
        """Re-fetch catalog and bids, keeping a selection that is still offered."""
        if self._in_flight:
            raise SubmissionInProgressError(SUBMISSION_IN_PROGRESS)
        await self._load()
        # A submit may have started while the loads were awaited
        if self._in_flight:
            return
        if self.selected_target is not None and self._find_transition(self.selected_target) is None:
            self._reset_selection()
        self._refresh_state()

    async def _load(self) -> None:
        transitions, bids = await asyncio.gather(
            self.catalog.list_transitions(self.rfq.id, self.rfq.status),
            self.bid_provider.list_submitted_bids(self.rfq.id),
            return_exceptions=True,
        )
        self.fetch_errors = []
        self.transitions = self._accept(transitions, "transitions")
        self.bids = self._accept(bids, "bids")

    def _accept(self, result, what: str) -> list:
        if isinstance(result, FetchError):
            self.fetch_errors.append(result)
            return []
        if isinstance(result, Exception):
            logger.error("Unexpected error loading %s for RFQ %s", what, self.rfq.id, exc_info=result)
            self.fetch_errors.append(FetchError(f"Failed to fetch {what}"))
            return []
        if isinstance(result, BaseException):
            raise result
        return result

    # ------------------------------------------------------------------
    # Selection and guard metadata
    # ------------------------------------------------------------------

    def select_target(self, target_status: RfqStatus | None) -> None:
        """Select the status to transition to. Switching targets discards metadata."""
        if self.state == SubmissionState.SUBMITTING:
            raise SubmissionInProgressError(SUBMISSION_IN_PROGRESS)
        if target_status is None:
            self.clear_selection()
            return
        if self._find_transition(target_status) is None:
            raise ValidationError(
                f"'{target_status.value}' is not an available transition for RFQ {self.rfq.id}"
            )

        if target_status != self.selected_target:
            self.metadata = {}
            self.error = None
        self.selected_target = target_status
        self.state = SubmissionState.SELECTING
        self._refresh_state()

    def set_metadata(self, key: str, value: str) -> None:
        if self.state == SubmissionState.SUBMITTING:
            raise SubmissionInProgressError(SUBMISSION_IN_PROGRESS)
        if self.selected_target is None:
            raise ValidationError("Select a target status before entering transition details")
        if key not in guards.field_keys(self.selected_target):
            raise ValidationError(
                f"'{key}' is not collected for a transition to '{self.selected_target.value}'"
            )
        self.metadata[key] = value
        self._refresh_state()

    def clear_selection(self) -> None:
        if self.state == SubmissionState.SUBMITTING:
            raise SubmissionInProgressError(SUBMISSION_IN_PROGRESS)
        self._reset_selection()

    def guard(self) -> guards.GuardEvaluation | None:
        if self.selected_target is None:
            return None
        return guards.evaluate(self.selected_target, self.metadata, self.bids)

    @property
    def can_submit(self) -> bool:
        if not self.is_open or self._in_flight or self.selected_target is None:
            return False
        if self._find_transition(self.selected_target) is None:
            return False
        evaluation = self.guard()
        return evaluation is not None and evaluation.satisfied

    @property
    def submit_label(self) -> str | None:
        if self.selected_target is None:
            return None
        transition = self._find_transition(self.selected_target)
        return f"Change to {transition.label}" if transition else None

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> SubmissionOutcome:
        """Submit the selected transition.

        Never raises for workflow failures; the outcome carries the error.
        Only a successful outcome replaces ``self.rfq``.
        """
        if self._in_flight:
            logger.warning("Refused re-entrant submit on workflow view %s", self.view_id)
            return SubmissionOutcome(False, self.rfq, SubmissionInProgressError(SUBMISSION_IN_PROGRESS))

        try:
            target = self._check_submittable()
        except ValidationError as exc:
            self.error = exc
            self._refresh_state()
            return SubmissionOutcome(False, self.rfq, exc)

        self._in_flight = True
        self.state = SubmissionState.SUBMITTING
        self.error = None
        try:
            updated = await self.submitter.submit(self.rfq.id, target, self.metadata)
        except SubmissionError as exc:
            return self._fail(exc)
        except asyncio.CancelledError:
            self._fail(RequestAbortedError(REQUEST_ABORTED))
            raise
        except Exception:
            logger.exception("Unexpected error submitting transition for RFQ %s", self.rfq.id)
            return self._fail(SubmissionError(TRANSITION_FAILED, status_code=500))
        finally:
            self._in_flight = False

        self.rfq = updated
        self.state = SubmissionState.SUCCEEDED
        await self._notify(updated)
        self.close()
        return SubmissionOutcome(True, updated)

    def _check_submittable(self) -> RfqStatus:
        if not self.is_open:
            raise ValidationError("The workflow view is closed")
        if self.selected_target is None:
            raise ValidationError("Select a target status")
        if self._find_transition(self.selected_target) is None:
            raise ValidationError(
                f"'{self.selected_target.value}' is no longer an available transition"
            )
        guards.validate(self.selected_target, self.metadata, self.bids)
        return self.selected_target

    def _fail(self, exc: SubmissionError) -> SubmissionOutcome:
        self.state = SubmissionState.FAILED
        self.error = exc
        return SubmissionOutcome(False, self.rfq, exc)

    async def _notify(self, rfq: Rfq) -> None:
        if self.on_status_change is None:
            return
        try:
            result = self.on_status_change(rfq)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("on_status_change callback failed for RFQ %s", rfq.id)

    def close(self) -> None:
        """Close the view; selection, metadata and the bid snapshot are discarded."""
        self.is_open = False
        self._reset_selection()
        self.transitions = []
        self.bids = []
        self.fetch_errors = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_transition(self, target_status: RfqStatus) -> Transition | None:
        return next((t for t in self.transitions if t.target_status == target_status), None)

    def _reset_selection(self) -> None:
        self.selected_target = None
        self.metadata = {}
        self.error = None
        self.state = SubmissionState.IDLE

    def _refresh_state(self) -> None:
        if self._in_flight:
            return
        if self.selected_target is None:
            self.state = SubmissionState.IDLE
            return
        self.state = SubmissionState.READY if self.can_submit else SubmissionState.GUARD_PENDING

    def snapshot(self) -> WorkflowViewResponse:
        evaluation = self.guard()
        guard = None
        if evaluation is not None:
            guard = GuardResponse(
                target_status=evaluation.target_status,
                fields=[
                    FieldDescriptorResponse(
                        key=fd.key,
                        kind=fd.kind,
                        label=fd.label,
                        placeholder=fd.placeholder,
                        choices=guards.choices(fd, self.bids),
                    )
                    for fd in evaluation.fields
                ] if not evaluation.blocked else [],
                blocked=evaluation.blocked,
                warning=evaluation.warning,
                satisfied=evaluation.satisfied,
                errors=evaluation.errors,
            )
        return WorkflowViewResponse(
            view_id=self.view_id,
            is_open=self.is_open,
            rfq=self.rfq,
            rfq_status_display=self.rfq.status_display,
            transitions=self.transitions,
            bids=self.bids,
            selected_target=self.selected_target,
            metadata=dict(self.metadata),
            state=self.state,
            can_submit=self.can_submit,
            submit_label=self.submit_label,
            guard=guard,
            error=_error_info(self.error) if self.error else None,
            fetch_errors=[_error_info(e) for e in self.fetch_errors],
        )
