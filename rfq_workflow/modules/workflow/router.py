"""RFQ workflow API router: workflow views over HTTP."""

import logging

import pydantic
from fastapi import APIRouter, Depends, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from rfq_workflow.config import settings
from rfq_workflow.exceptions import FetchError
from rfq_workflow.modules.backend.base import BackendError, WorkflowBackendBase
from rfq_workflow.modules.backend.factory import get_backend
from rfq_workflow.modules.backend.http_client import HttpWorkflowBackend
from rfq_workflow.modules.workflow.constants import FETCH_RFQ_FAILED
from rfq_workflow.modules.workflow.registry import WorkflowViewRegistry, get_registry
from rfq_workflow.modules.workflow.schemas import (
    MetadataUpdateRequest,
    OpenViewRequest,
    Rfq,
    SelectTargetRequest,
    SubmissionOutcomeResponse,
    WorkflowViewResponse,
)
from rfq_workflow.modules.workflow.view import WorkflowView

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflow", tags=["workflow"])
limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_backend(request: Request) -> WorkflowBackendBase:
    """Forward the caller's bearer token; the backend enforces authorization."""
    backend = get_backend()
    authorization = request.headers.get("Authorization", "")
    if isinstance(backend, HttpWorkflowBackend) and authorization.lower().startswith("bearer "):
        return backend.with_token(authorization[7:].strip())
    return backend


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


@router.post("/views", response_model=WorkflowViewResponse, status_code=201)
async def open_view(
    body: OpenViewRequest,
    backend: WorkflowBackendBase = Depends(_get_backend),
    views: WorkflowViewRegistry = Depends(get_registry),
):
    """Open a workflow view: fetch the RFQ, then its transitions and submitted bids."""
    try:
        raw = await backend.get_rfq(str(body.rfq_id))
        rfq = Rfq.model_validate(raw)
    except BackendError as exc:
        raise FetchError(exc.message or FETCH_RFQ_FAILED, details=exc.details) from exc
    except pydantic.ValidationError as exc:
        logger.warning("Backend returned an unusable RFQ %s: %s", body.rfq_id, exc)
        raise FetchError(FETCH_RFQ_FAILED) from exc

    view = views.add(WorkflowView(rfq, backend))
    await view.open()
    return view.snapshot()


@router.get("/views/{view_id}", response_model=WorkflowViewResponse)
async def get_view(view_id: str, views: WorkflowViewRegistry = Depends(get_registry)):
    return views.get(view_id).snapshot()


@router.post("/views/{view_id}/reload", response_model=WorkflowViewResponse)
async def reload_view(view_id: str, views: WorkflowViewRegistry = Depends(get_registry)):
    """Re-fetch the transition catalog and bid snapshot."""
    view = views.get(view_id)
    await view.reload()
    return view.snapshot()


@router.put("/views/{view_id}/target", response_model=WorkflowViewResponse)
async def select_target(
    view_id: str,
    body: SelectTargetRequest,
    views: WorkflowViewRegistry = Depends(get_registry),
):
    """Select (or clear, with ``null``) the target status. Metadata is discarded on switch."""
    view = views.get(view_id)
    view.select_target(body.target_status)
    return view.snapshot()


@router.put("/views/{view_id}/metadata", response_model=WorkflowViewResponse)
async def set_metadata(
    view_id: str,
    body: MetadataUpdateRequest,
    views: WorkflowViewRegistry = Depends(get_registry),
):
    view = views.get(view_id)
    view.set_metadata(body.key, body.value)
    return view.snapshot()


@router.post("/views/{view_id}/submit", response_model=SubmissionOutcomeResponse)
@limiter.limit(settings.rate_limit)
async def submit_transition(
    request: Request,
    view_id: str,
    views: WorkflowViewRegistry = Depends(get_registry),
):
    """Submit the selected transition. Failures keep the selection for a retry."""
    view = views.get(view_id)
    outcome = await view.submit()
    if not outcome.succeeded:
        raise outcome.error
    views.discard(view_id)
    return SubmissionOutcomeResponse(succeeded=True, rfq=outcome.rfq)


@router.delete("/views/{view_id}", status_code=204)
async def close_view(view_id: str, views: WorkflowViewRegistry = Depends(get_registry)):
    views.get(view_id)
    views.discard(view_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@router.get("/stats")
async def workflow_stats(backend: WorkflowBackendBase = Depends(_get_backend)) -> dict:
    """Aggregate workflow statistics, passed through from the backend."""
    try:
        return await backend.get_workflow_stats()
    except BackendError as exc:
        raise FetchError(exc.message or "Failed to fetch workflow stats", details=exc.details) from exc
