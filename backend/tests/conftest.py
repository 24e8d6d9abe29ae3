import json
import os
import uuid

import httpx
import pytest
import pytest_asyncio
from pydantic import SecretStr

os.environ.setdefault("USE_SQLITE", "true")
os.environ.setdefault("SQLITE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EMAIL_AUTHORIZATION_TOKEN", "test-server-token")
os.environ.setdefault("PASSWORD_HASH_WORKERS", "2")

from newsletter.config import Settings  # noqa: E402
from newsletter.database import init_db  # noqa: E402
from newsletter.main import create_app  # noqa: E402
from newsletter.services.email_client import EmailClient  # noqa: E402
from newsletter.services.password_service import compute_password_hash  # noqa: E402


class FakeEmailApi:
    """In-process stand-in for the email delivery API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.failing_recipients: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        if body.get("To") in self.failing_recipients:
            return httpx.Response(500)
        return httpx.Response(self.status_code)

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    @property
    def recipients(self) -> list[str]:
        return [body["To"] for body in self.bodies]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        use_sqlite=True,
        sqlite_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        application_base_url="http://127.0.0.1:8000",
        email_base_url="http://email-api.local",
        email_sender="newsletter@example.com",
        email_authorization_token=SecretStr("test-server-token"),
        email_client_timeout_milliseconds=200,
        password_hash_workers=2,
    )


@pytest.fixture
def email_api() -> FakeEmailApi:
    return FakeEmailApi()


@pytest_asyncio.fixture
async def email_client(email_api):
    client = EmailClient(
        base_url="http://email-api.local",
        sender="newsletter@example.com",
        authorization_token=SecretStr("test-server-token"),
        timeout=0.2,
        transport=httpx.MockTransport(email_api.handler),
    )
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def app(settings, email_client):
    application = create_app(settings, email_client=email_client)
    await init_db(application.state.engine)
    yield application
    application.state.hashing_pool.shutdown()
    await application.state.engine.dispose()


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def store(app):
    return app.state.credential_store


@pytest_asyncio.fixture
async def test_user(store):
    """A publisher with a random username and password."""
    username = f"admin-{uuid.uuid4().hex[:8]}"
    password = uuid.uuid4().hex
    user_id = await store.insert_user(username, compute_password_hash(SecretStr(password)))
    return {"user_id": user_id, "username": username, "password": password}
