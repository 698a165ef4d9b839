"""Process-wide backend instance shared by all workflow views."""

from __future__ import annotations

from rfq_workflow.modules.backend.base import WorkflowBackendBase
from rfq_workflow.modules.backend.http_client import HttpWorkflowBackend

_instance: WorkflowBackendBase | None = None


def get_backend() -> WorkflowBackendBase:
    global _instance
    if _instance is None:
        _instance = HttpWorkflowBackend()
    return _instance


def set_backend(backend: WorkflowBackendBase | None) -> None:
    """Replace the shared backend (used by tests and alternative deployments)."""
    global _instance
    _instance = backend


async def close_backend() -> None:
    """Close the shared httpx client. Called from the app lifespan."""
    global _instance
    if _instance is not None:
        await _instance.aclose()
    _instance = None
