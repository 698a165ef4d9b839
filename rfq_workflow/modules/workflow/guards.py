"""Guard policy: what must be collected before a transition can be submitted.

Each guarded target status maps to a ``GuardDescriptor`` in ``GUARDS``.
Submission logic only ever asks the registry, so adding a guarded transition
means registering a descriptor and nothing else.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from rfq_workflow.exceptions import ValidationError
from rfq_workflow.models.enums import FieldKind, RfqStatus
from rfq_workflow.modules.workflow.constants import (
    AWARDED_SUPPLIER_ID,
    CANCELLATION_REASON,
    NO_BIDS_WARNING,
)
from rfq_workflow.modules.workflow.schemas import Bid, ChoiceOption

Validator = Callable[[str | None, Sequence[Bid]], str | None]


@dataclass(frozen=True)
class FieldDescriptor:
    key: str
    kind: FieldKind
    label: str
    validate: Validator
    placeholder: str = ""


@dataclass(frozen=True)
class GuardDescriptor:
    fields: tuple[FieldDescriptor, ...]
    # Field rendering depends on the bid snapshot and is blocked while it is empty
    requires_bids: bool = False
    blocked_warning: str | None = None


@dataclass(frozen=True)
class GuardEvaluation:
    target_status: RfqStatus
    fields: tuple[FieldDescriptor, ...]
    blocked: bool = False
    warning: str | None = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def satisfied(self) -> bool:
        return not self.blocked and not self.errors


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _validate_cancellation_reason(value: str | None, bids: Sequence[Bid]) -> str | None:
    if value is None or not value.strip():
        return "A cancellation reason is required"
    return None


def _validate_awarded_supplier(value: str | None, bids: Sequence[Bid]) -> str | None:
    if not value:
        return "Select the supplier to award"
    matches = [bid for bid in bids if str(bid.supplier_company_id) == str(value)]
    if len(matches) != 1:
        return "The selected supplier has no submitted bid on this RFQ"
    return None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

GUARDS: dict[RfqStatus, GuardDescriptor] = {
    RfqStatus.CANCELLED: GuardDescriptor(
        fields=(
            FieldDescriptor(
                key=CANCELLATION_REASON,
                kind=FieldKind.TEXT,
                label="Cancellation Reason",
                placeholder="Please provide a reason for cancelling this RFQ...",
                validate=_validate_cancellation_reason,
            ),
        ),
    ),
    RfqStatus.AWARDED: GuardDescriptor(
        fields=(
            FieldDescriptor(
                key=AWARDED_SUPPLIER_ID,
                kind=FieldKind.CHOICE,
                label="Awarded Supplier",
                placeholder="Select a supplier...",
                validate=_validate_awarded_supplier,
            ),
        ),
        requires_bids=True,
        blocked_warning=NO_BIDS_WARNING,
    ),
}


def register_guard(target_status: RfqStatus, descriptor: GuardDescriptor) -> None:
    GUARDS[target_status] = descriptor


def required_fields(target_status: RfqStatus) -> tuple[FieldDescriptor, ...]:
    descriptor = GUARDS.get(target_status)
    return descriptor.fields if descriptor else ()


def field_keys(target_status: RfqStatus) -> frozenset[str]:
    return frozenset(f.key for f in required_fields(target_status))


def is_blocked(target_status: RfqStatus, bids: Sequence[Bid] | None) -> bool:
    """True when the guard cannot be rendered as a form (e.g. award with no bids)."""
    descriptor = GUARDS.get(target_status)
    if descriptor is None or not descriptor.requires_bids:
        return False
    return not bids


def choices(descriptor: FieldDescriptor, bids: Sequence[Bid] | None) -> list[ChoiceOption]:
    if descriptor.kind != FieldKind.CHOICE or not bids:
        return []
    return [ChoiceOption(value=str(bid.supplier_company_id), label=bid.option_label) for bid in bids]


def evaluate(
    target_status: RfqStatus,
    metadata: Mapping[str, str],
    bids: Sequence[Bid] | None,
) -> GuardEvaluation:
    descriptor = GUARDS.get(target_status)
    if descriptor is None:
        return GuardEvaluation(target_status=target_status, fields=())

    if is_blocked(target_status, bids):
        return GuardEvaluation(
            target_status=target_status,
            fields=descriptor.fields,
            blocked=True,
            warning=descriptor.blocked_warning,
        )

    errors: dict[str, str] = {}
    for fd in descriptor.fields:
        message = fd.validate(metadata.get(fd.key), bids or ())
        if message:
            errors[fd.key] = message
    return GuardEvaluation(target_status=target_status, fields=descriptor.fields, errors=errors)


def validate(
    target_status: RfqStatus,
    metadata: Mapping[str, str],
    bids: Sequence[Bid] | None,
) -> None:
    """Raise ``ValidationError`` unless the guard for ``target_status`` holds."""
    result = evaluate(target_status, metadata, bids)
    if result.blocked:
        raise ValidationError(result.warning or f"Transition to '{target_status.value}' is blocked")
    if result.errors:
        raise ValidationError(
            f"Transition to '{target_status.value}' is missing required information",
            details=[{"field": key, "message": msg} for key, msg in result.errors.items()],
        )
