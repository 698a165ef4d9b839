"""Transition submitter: one atomic request per transition, never retried."""

from __future__ import annotations

import logging
from collections.abc import Mapping

import pydantic

from rfq_workflow.exceptions import RequestAbortedError, StaleTransitionError, SubmissionError
from rfq_workflow.models.enums import RfqStatus
from rfq_workflow.modules.backend.base import (
    BackendAbortedError,
    BackendError,
    WorkflowBackendBase,
)
from rfq_workflow.modules.workflow.constants import REQUEST_ABORTED, TRANSITION_FAILED
from rfq_workflow.modules.workflow.schemas import Rfq

logger = logging.getLogger(__name__)


class TransitionSubmitter:
    def __init__(self, backend: WorkflowBackendBase):
        self.backend = backend

    async def submit(
        self,
        rfq_id: int | str,
        target_status: RfqStatus,
        metadata: Mapping[str, str],
    ) -> Rfq:
        """Send ``{target_status, metadata}`` and return the backend's RFQ record.

        Raises ``SubmissionError`` (or a subclass) on any failure.
        """
        try:
            raw = await self.backend.transition_status(
                str(rfq_id), target_status.value, dict(metadata)
            )
        except BackendAbortedError as exc:
            logger.warning("Transition of RFQ %s to %s aborted: %s", rfq_id, target_status.value, exc)
            raise RequestAbortedError(REQUEST_ABORTED) from exc
        except BackendError as exc:
            logger.warning(
                "Backend rejected transition of RFQ %s to %s (HTTP %s): %s",
                rfq_id, target_status.value, exc.status_code, exc.message,
            )
            message = exc.message or TRANSITION_FAILED
            if exc.status_code == 409:
                raise StaleTransitionError(message, details=exc.details) from exc
            status_code = exc.status_code if exc.status_code and exc.status_code >= 400 else None
            raise SubmissionError(message, details=exc.details, status_code=status_code) from exc

        try:
            rfq = Rfq.model_validate(raw)
        except pydantic.ValidationError as exc:
            logger.warning("Backend returned an unusable RFQ for %s: %s", rfq_id, exc)
            raise SubmissionError(TRANSITION_FAILED, status_code=502) from exc

        logger.info("RFQ %s transitioned to %s", rfq_id, rfq.status.value)
        return rfq
