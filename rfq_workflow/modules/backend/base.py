"""Abstract interface of the authoritative RFQ backend."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BackendError(Exception):
    """The backend answered with an error or an unusable payload."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or []


class BackendUnavailableError(BackendError):
    """Network failure or 5xx after all permitted attempts."""


class BackendAbortedError(BackendError):
    """The transport gave up on the request (timeout or dropped connection)."""


class WorkflowBackendBase(ABC):
    @abstractmethod
    async def get_rfq(self, rfq_id: str) -> dict:
        """Return the RFQ record."""

    @abstractmethod
    async def get_workflow_transitions(self, rfq_id: str) -> list[dict]:
        """Return the transitions available from the RFQ's current status, in server order."""

    @abstractmethod
    async def list_bids(self, rfq_id: str, status: str) -> list[dict]:
        """Return bids on the RFQ filtered by status."""

    @abstractmethod
    async def transition_status(self, rfq_id: str, target_status: str, metadata: dict) -> dict:
        """Apply a transition and return the authoritative RFQ record."""

    @abstractmethod
    async def get_workflow_stats(self) -> dict:
        """Return aggregate workflow statistics across RFQs."""

    async def aclose(self) -> None:
        """Release transport resources."""
