from rfq_workflow.models.enums import BidStatus, FieldKind, RfqStatus, SubmissionState

__all__ = [
    "BidStatus",
    "FieldKind",
    "RfqStatus",
    "SubmissionState",
]
