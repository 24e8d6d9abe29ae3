from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError


@pytest.mark.asyncio
async def test_health_check_works(client):
    response = await client.get("/health_check")
    assert response.status_code == 200
    assert response.content == b""


@pytest.mark.asyncio
async def test_health_reports_database_connectivity(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "connected"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        OperationalError("SELECT 1", {}, Exception("connection refused")),
        OSError("network unreachable"),
    ],
)
async def test_health_returns_503_when_database_is_unreachable(app, client, monkeypatch, error):
    failing_engine = MagicMock()
    failing_engine.connect.side_effect = error
    monkeypatch.setattr(app.state, "engine", failing_engine)

    response = await client.get("/health")

    assert response.status_code == 503
    assert response.json() == {"status": "unhealthy", "database": "disconnected"}
