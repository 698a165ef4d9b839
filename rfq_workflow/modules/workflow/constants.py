"""Workflow statuses, metadata keys and operator-facing messages."""

from __future__ import annotations

from rfq_workflow.models.enums import RfqStatus

# Terminal statuses (no further transitions possible)
TERMINAL_STATUSES: frozenset[RfqStatus] = frozenset({
    RfqStatus.COMPLETED,
    RfqStatus.CANCELLED,
})

# Metadata keys carried on a transition request
CANCELLATION_REASON = "cancellation_reason"
AWARDED_SUPPLIER_ID = "awarded_supplier_id"

# Fallback messages when the backend gives none
FETCH_TRANSITIONS_FAILED = "Failed to fetch workflow transitions"
FETCH_BIDS_FAILED = "Failed to fetch submitted bids"
FETCH_RFQ_FAILED = "Failed to fetch RFQ"
TRANSITION_FAILED = "Failed to transition status"
REQUEST_ABORTED = "Request aborted before the backend responded"
SUBMISSION_IN_PROGRESS = "A transition is already being submitted for this RFQ"

NO_BIDS_WARNING = (
    "No bids have been submitted yet. You cannot award this RFQ without any bids."
)
