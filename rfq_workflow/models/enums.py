import enum


class RfqStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    BIDDING_OPEN = "bidding_open"
    BIDDING_CLOSED = "bidding_closed"
    UNDER_EVALUATION = "under_evaluation"
    AWARDED = "awarded"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def display(self) -> str:
        return self.value.replace("_", " ").upper()


class BidStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    WITHDRAWN = "withdrawn"
    AWARDED = "awarded"
    REJECTED = "rejected"


class SubmissionState(str, enum.Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    GUARD_PENDING = "guard_pending"
    READY = "ready"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FieldKind(str, enum.Enum):
    TEXT = "text"
    CHOICE = "choice"
