"""Pytest configuration and fixtures."""
import pytest
from httpx import ASGITransport, AsyncClient

from grooveforge.main import app
from grooveforge.services.style_profile import reset_style_profile_store


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_style_profile_store():
    """Reset the singleton StyleProfileStore between tests to prevent cross-test pollution."""
    yield
    reset_style_profile_store()


@pytest.fixture
async def client():
    """Async HTTP client bound to the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
