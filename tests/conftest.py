"""Shared test fixtures for the CRM.

Provides:
- repo: empty InMemoryCrmRepository (see tests/fakes.py)
- crm_service / directory_service: services over that repository
- client_and_repo: httpx AsyncClient over ASGITransport plus its repository
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.app.config import DEFAULT_ASSIGNMENT_ROSTER
from src.app.crm.directory import DirectoryService
from src.app.crm.service import CrmService
from tests.fakes import InMemoryCrmRepository, make_app


@pytest.fixture
def repo() -> InMemoryCrmRepository:
    return InMemoryCrmRepository()


@pytest.fixture
def crm_service(repo) -> CrmService:
    return CrmService(repo, roster=DEFAULT_ASSIGNMENT_ROSTER, recent_clients_limit=5)


@pytest.fixture
def directory_service(repo) -> DirectoryService:
    return DirectoryService(repo, max_row_errors=10)


@pytest_asyncio.fixture
async def client_and_repo(repo):
    """Test client bound to an app whose services share ``repo``."""
    app = make_app(repo)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, repo
