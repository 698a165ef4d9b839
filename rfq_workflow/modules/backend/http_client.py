"""httpx implementation of the RFQ backend.

The backend wraps every payload in ``{"success": bool, "data": ..., "message": str}``.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from rfq_workflow.config import settings
from rfq_workflow.modules.backend.base import (
    BackendAbortedError,
    BackendError,
    BackendUnavailableError,
    WorkflowBackendBase,
)

logger = logging.getLogger(__name__)

_RETRY_STATUSES = {429, 500, 502, 503, 504}


class HttpWorkflowBackend(WorkflowBackendBase):
    def __init__(
        self,
        base_url: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.backend_base_url).rstrip("/")
        self.api_token = settings.backend_api_token if api_token is None else api_token
        self.timeout = settings.backend_timeout_seconds if timeout is None else timeout
        self.max_retries = settings.backend_max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.backend_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def with_token(self, api_token: str) -> HttpWorkflowBackend:
        """Return a backend that authenticates as ``api_token`` and shares this connection pool."""
        clone = HttpWorkflowBackend(
            base_url=self.base_url,
            api_token=api_token,
            timeout=self.timeout,
            max_retries=self.max_retries,
            backoff_seconds=self.backoff_seconds,
            transport=self._transport,
        )
        clone._client = self._get_client()
        return clone

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        if not self.api_token:
            return {}
        return {"Authorization": f"Bearer {self.api_token}"}

    async def _get_with_retry(self, path: str, params: dict | None = None) -> httpx.Response:
        """GET with exponential backoff on retryable statuses and connection errors."""
        client = self._get_client()
        last_exception: httpx.HTTPError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                response = await client.get(path, params=params, headers=self._headers())
                if response.status_code not in _RETRY_STATUSES or attempt >= self.max_retries:
                    return response
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Backend GET %s returned %d, retrying in %.1fs (attempt %d/%d)",
                    path, response.status_code, delay, attempt + 1, self.max_retries,
                )
            except httpx.TimeoutException as exc:
                last_exception = exc
                if attempt >= self.max_retries:
                    raise BackendAbortedError(f"Request aborted: {path} timed out") from exc
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning("Backend GET %s timed out, retrying in %.1fs", path, delay)
            except httpx.RequestError as exc:
                last_exception = exc
                if attempt >= self.max_retries:
                    raise BackendUnavailableError(f"Backend unreachable: {exc}") from exc
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning("Backend GET %s request error: %s, retrying in %.1fs", path, exc, delay)
            await asyncio.sleep(delay)

        raise BackendUnavailableError(f"Max retries exceeded for {path}") from last_exception

    @staticmethod
    def _unwrap(response: httpx.Response):
        """Return ``data`` from the envelope or raise ``BackendError``."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if response.status_code >= 500:
                raise BackendUnavailableError(
                    f"Backend returned HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            raise BackendError(
                f"Unexpected response from backend (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        message = body.get("message") or ""
        details = [
            {"field": field, "message": msg}
            for field, messages in (body.get("errors") or {}).items()
            for msg in (messages if isinstance(messages, list) else [messages])
        ]

        if response.status_code >= 500:
            raise BackendUnavailableError(
                message or f"Backend returned HTTP {response.status_code}",
                status_code=response.status_code,
                details=details,
            )
        if response.status_code >= 400 or body.get("success") is False:
            raise BackendError(message, status_code=response.status_code, details=details)

        return body.get("data")

    async def get_rfq(self, rfq_id: str) -> dict:
        response = await self._get_with_retry(f"/rfqs/{rfq_id}")
        return self._unwrap(response) or {}

    async def get_workflow_transitions(self, rfq_id: str) -> list[dict]:
        response = await self._get_with_retry(f"/rfqs/{rfq_id}/workflow-transitions")
        data = self._unwrap(response) or {}
        return list(data.get("available_transitions") or [])

    async def list_bids(self, rfq_id: str, status: str) -> list[dict]:
        response = await self._get_with_retry("/bids", params={"rfq_id": rfq_id, "status": status})
        data = self._unwrap(response) or {}
        # Paginated listings nest the rows one level deeper
        if isinstance(data, dict):
            return list(data.get("data") or [])
        return list(data)

    async def transition_status(self, rfq_id: str, target_status: str, metadata: dict) -> dict:
        body: dict = {"new_status": target_status, "metadata": metadata}
        if metadata.get("cancellation_reason"):
            body["cancellation_reason"] = metadata["cancellation_reason"]

        client = self._get_client()
        path = f"/rfqs/{rfq_id}/transition-status"
        try:
            response = await client.post(path, json=body, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise BackendAbortedError(f"Request aborted: {path} timed out") from exc
        except httpx.RemoteProtocolError as exc:
            raise BackendAbortedError(f"Request aborted: {exc}") from exc
        except httpx.RequestError as exc:
            raise BackendUnavailableError(f"Backend unreachable: {exc}") from exc

        return self._unwrap(response) or {}

    async def get_workflow_stats(self) -> dict:
        response = await self._get_with_retry("/rfqs/workflow-stats")
        return self._unwrap(response) or {}

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
