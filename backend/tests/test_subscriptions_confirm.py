import logging
import re
from unittest.mock import AsyncMock

import pytest

from newsletter.errors import StorageError
from newsletter.models.subscriber import SubscriptionStatus

TOKEN = re.compile(r"subscription_token=([A-Za-z0-9]{25})")


async def _subscribe_and_get_token(client, email_api, email="ursula_le_guin@gmail.com") -> str:
    response = await client.post("/subscriptions", data={"name": "le guin", "email": email})
    assert response.status_code == 200
    return TOKEN.search(email_api.bodies[-1]["TextBody"]).group(1)


@pytest.mark.asyncio
async def test_confirmations_without_token_are_rejected_with_a_400(client):
    response = await client.get("/subscriptions/confirm")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_token_is_rejected_with_a_401(client):
    response = await client.get(
        "/subscriptions/confirm",
        params={"subscription_token": "AAAAAAAAAAAAAAAAAAAAAAAAA"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_malformed_token_is_rejected_with_a_401(client):
    response = await client.get("/subscriptions/confirm", params={"subscription_token": "'; DROP TABLE x;--"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_the_link_returned_by_subscribe_confirms_a_subscriber(client, email_api, store):
    token = await _subscribe_and_get_token(client, email_api)

    response = await client.get("/subscriptions/confirm", params={"subscription_token": token})

    assert response.status_code == 200
    subscriber = await store.find_subscriber_by_email("ursula_le_guin@gmail.com")
    assert subscriber.status == SubscriptionStatus.CONFIRMED


@pytest.mark.asyncio
async def test_confirming_twice_succeeds_both_times(client, email_api, store):
    token = await _subscribe_and_get_token(client, email_api)

    first = await client.get("/subscriptions/confirm", params={"subscription_token": token})
    second = await client.get("/subscriptions/confirm", params={"subscription_token": token})

    assert first.status_code == 200
    assert second.status_code == 200
    subscriber = await store.find_subscriber_by_email("ursula_le_guin@gmail.com")
    assert subscriber.status == SubscriptionStatus.CONFIRMED


@pytest.mark.asyncio
async def test_confirming_one_subscriber_leaves_others_pending(client, email_api, store):
    token = await _subscribe_and_get_token(client, email_api, "first@example.com")
    await _subscribe_and_get_token(client, email_api, "second@example.com")

    await client.get("/subscriptions/confirm", params={"subscription_token": token})

    assert (await store.find_subscriber_by_email("first@example.com")).status == SubscriptionStatus.CONFIRMED
    assert (await store.find_subscriber_by_email("second@example.com")).status == SubscriptionStatus.PENDING_CONFIRMATION


@pytest.mark.asyncio
async def test_storage_failure_during_confirmation_is_a_500(client, email_api, store, monkeypatch):
    token = await _subscribe_and_get_token(client, email_api)
    monkeypatch.setattr(store, "set_status", AsyncMock(side_effect=StorageError("db down")))

    response = await client.get("/subscriptions/confirm", params={"subscription_token": token})
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_rejected_tokens_are_logged(client, caplog):
    with caplog.at_level(logging.INFO):
        response = await client.get(
            "/subscriptions/confirm",
            params={"subscription_token": "AAAAAAAAAAAAAAAAAAAAAAAAA"},
        )

    assert response.status_code == 401
    assert any("Confirmation attempt rejected" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_confirmation_is_logged_with_a_redacted_address(client, email_api, caplog):
    token = await _subscribe_and_get_token(client, email_api)

    with caplog.at_level(logging.INFO):
        response = await client.get("/subscriptions/confirm", params={"subscription_token": token})

    assert response.status_code == 200
    messages = [record.getMessage() for record in caplog.records]
    assert "Subscriber u***@gmail.com confirmed" in messages
    assert not any("ursula_le_guin@gmail.com" in message for message in messages)
