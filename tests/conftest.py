"""Pytest fixtures for the RFQ workflow tests."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rfq_workflow.app import app
from rfq_workflow.modules.backend.base import WorkflowBackendBase
from rfq_workflow.modules.backend.factory import set_backend
from rfq_workflow.modules.workflow.registry import registry


@pytest.fixture
def mock_backend():
    """An AsyncMock standing in for the authoritative backend."""
    backend = AsyncMock(spec=WorkflowBackendBase)
    backend.get_workflow_transitions.return_value = []
    backend.list_bids.return_value = []
    backend.get_workflow_stats.return_value = {}
    return backend


@pytest_asyncio.fixture
async def async_client(mock_backend) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient wired to the FastAPI app with a mocked backend."""
    set_backend(mock_backend)
    registry.clear()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    registry.clear()
    set_backend(None)
