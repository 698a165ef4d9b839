"""Transition catalog: which statuses the RFQ may move to next.

The list always comes from the backend because eligibility depends on rules
the caller cannot see (role, elapsed time, bid counts). Order is the
backend's presentation order and is never re-sorted here.
"""

from __future__ import annotations

import logging

import pydantic

from rfq_workflow.exceptions import FetchError
from rfq_workflow.models.enums import RfqStatus
from rfq_workflow.modules.backend.base import BackendError, WorkflowBackendBase
from rfq_workflow.modules.workflow.constants import FETCH_TRANSITIONS_FAILED, TERMINAL_STATUSES
from rfq_workflow.modules.workflow.schemas import Transition

logger = logging.getLogger(__name__)


class TransitionCatalogResolver:
    def __init__(self, backend: WorkflowBackendBase):
        self.backend = backend

    async def list_transitions(
        self,
        rfq_id: int | str,
        current_status: RfqStatus | None = None,
    ) -> list[Transition]:
        """Return transitions available for the RFQ; empty for terminal RFQs."""
        if current_status in TERMINAL_STATUSES:
            return []

        try:
            raw = await self.backend.get_workflow_transitions(str(rfq_id))
        except BackendError as exc:
            logger.warning("Fetching transitions for RFQ %s failed: %s", rfq_id, exc.message)
            raise FetchError(exc.message or FETCH_TRANSITIONS_FAILED, details=exc.details) from exc

        try:
            transitions = [Transition.model_validate(item) for item in raw]
        except pydantic.ValidationError as exc:
            logger.warning("Malformed transition list for RFQ %s: %s", rfq_id, exc)
            raise FetchError(FETCH_TRANSITIONS_FAILED) from exc

        return transitions
