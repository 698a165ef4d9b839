"""Pydantic v2 schemas for the RFQ workflow core and its HTTP endpoints."""

from __future__ import annotations

from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from rfq_workflow.models.enums import FieldKind, RfqStatus, SubmissionState

# ---------------------------------------------------------------------------
# Backend entities
# ---------------------------------------------------------------------------


class WorkflowStats(BaseModel):
    total_bids: int = 0
    total_suppliers: int = 0
    days_remaining: int = 0
    is_overdue: bool = False


class Rfq(BaseModel):
    """The authoritative RFQ record. Unknown backend fields are kept as-is."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: int | str
    title: str = ""
    status: RfqStatus
    workflow_stats: WorkflowStats = Field(default_factory=WorkflowStats)
    reference_number: str | None = None
    cancellation_reason: str | None = None
    awarded_supplier_id: int | str | None = None

    @property
    def status_display(self) -> str:
        return self.status.display


class Transition(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_status: RfqStatus = Field(validation_alias=AliasChoices("target_status", "status"))
    label: str
    description: str = ""
    is_override: bool = False


class BidSupplier(BaseModel):
    name: str | None = None
    email: str | None = None


class Bid(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | str
    supplier_company_id: int | str
    supplier: BidSupplier | None = None
    total_amount: Decimal | None = None
    status: str

    @property
    def display_name(self) -> str:
        if self.supplier is not None:
            if self.supplier.name:
                return self.supplier.name
            if self.supplier.email:
                return self.supplier.email
        return "Unknown Supplier"

    @property
    def option_label(self) -> str:
        if self.total_amount:
            return f"{self.display_name} - ${self.total_amount:,}"
        return self.display_name


# ---------------------------------------------------------------------------
# Guard / view state
# ---------------------------------------------------------------------------


class ChoiceOption(BaseModel):
    value: str
    label: str


class FieldDescriptorResponse(BaseModel):
    key: str
    kind: FieldKind
    label: str
    placeholder: str = ""
    choices: list[ChoiceOption] = Field(default_factory=list)


class GuardResponse(BaseModel):
    target_status: RfqStatus
    fields: list[FieldDescriptorResponse] = Field(default_factory=list)
    blocked: bool = False
    warning: str | None = None
    satisfied: bool
    errors: dict[str, str] = Field(default_factory=dict)


class ErrorInfo(BaseModel):
    code: str
    message: str
    details: list[dict] = Field(default_factory=list)


class WorkflowViewResponse(BaseModel):
    view_id: str
    is_open: bool
    rfq: Rfq
    rfq_status_display: str
    transitions: list[Transition]
    bids: list[Bid]
    selected_target: RfqStatus | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    state: SubmissionState
    can_submit: bool
    submit_label: str | None = None
    guard: GuardResponse | None = None
    error: ErrorInfo | None = None
    fetch_errors: list[ErrorInfo] = Field(default_factory=list)


class SubmissionOutcomeResponse(BaseModel):
    succeeded: bool
    rfq: Rfq


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class OpenViewRequest(BaseModel):
    rfq_id: int | str


class SelectTargetRequest(BaseModel):
    target_status: RfqStatus | None = None


class MetadataUpdateRequest(BaseModel):
    key: str = Field(..., min_length=1, max_length=64)
    value: str = Field("", max_length=5000)
