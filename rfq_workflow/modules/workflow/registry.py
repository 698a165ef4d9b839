"""In-memory registry of open workflow views for the HTTP surface."""

from __future__ import annotations

import logging

from rfq_workflow.config import settings
from rfq_workflow.exceptions import NotFoundException
from rfq_workflow.models.enums import SubmissionState
from rfq_workflow.modules.workflow.view import WorkflowView

logger = logging.getLogger(__name__)


class WorkflowViewRegistry:
    def __init__(self, max_views: int | None = None):
        self.max_views = max_views or settings.max_open_views
        self._views: dict[str, WorkflowView] = {}

    def add(self, view: WorkflowView) -> WorkflowView:
        if len(self._views) >= self.max_views:
            # Oldest first, skipping views with a submission in flight
            evict_id = next(
                (vid for vid, v in self._views.items() if v.state != SubmissionState.SUBMITTING),
                None,
            )
            if evict_id is not None:
                self.discard(evict_id)
                logger.info("Evicted workflow view %s (registry full)", evict_id)
        self._views[view.view_id] = view
        return view

    def get(self, view_id: str) -> WorkflowView:
        view = self._views.get(view_id)
        if view is None:
            raise NotFoundException(f"Workflow view {view_id} not found")
        return view

    def discard(self, view_id: str) -> None:
        view = self._views.pop(view_id, None)
        if view is not None:
            view.close()

    def clear(self) -> None:
        for view in self._views.values():
            view.close()
        self._views.clear()

    def __len__(self) -> int:
        return len(self._views)


registry = WorkflowViewRegistry()


def get_registry() -> WorkflowViewRegistry:
    return registry
