"""Bid snapshot for the award guard."""

from __future__ import annotations

import logging

import pydantic

from rfq_workflow.exceptions import FetchError
from rfq_workflow.models.enums import BidStatus
from rfq_workflow.modules.backend.base import BackendError, WorkflowBackendBase
from rfq_workflow.modules.workflow.constants import FETCH_BIDS_FAILED
from rfq_workflow.modules.workflow.schemas import Bid

logger = logging.getLogger(__name__)


class BidSnapshotProvider:
    def __init__(self, backend: WorkflowBackendBase):
        self.backend = backend

    async def list_submitted_bids(self, rfq_id: int | str) -> list[Bid]:
        """Return bids in exactly ``submitted`` status.

        Draft, withdrawn and already-awarded bids are dropped even if the
        backend's filter lets them through.
        """
        try:
            raw = await self.backend.list_bids(str(rfq_id), status=BidStatus.SUBMITTED.value)
        except BackendError as exc:
            logger.warning("Fetching submitted bids for RFQ %s failed: %s", rfq_id, exc.message)
            raise FetchError(exc.message or FETCH_BIDS_FAILED, details=exc.details) from exc

        try:
            bids = [Bid.model_validate(item) for item in raw]
        except pydantic.ValidationError as exc:
            logger.warning("Malformed bid list for RFQ %s: %s", rfq_id, exc)
            raise FetchError(FETCH_BIDS_FAILED) from exc

        return [bid for bid in bids if bid.status == BidStatus.SUBMITTED.value]
