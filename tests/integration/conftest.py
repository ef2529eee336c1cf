import httpx
import pytest

from main import app
from orderhub.api.dependencies import get_driver_notifier, get_payment_gateway
from orderhub.auth.jwt_handler import create_access_token
from orderhub.core.database import get_async_session


@pytest.fixture
async def client(session, catalog, gateway, notifier):
    """API client bound to the test database and the fake gateway"""
    async def override_session():
        yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_driver_notifier] = lambda: notifier
    app.state.status_catalog = catalog

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.status_catalog = None


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers
