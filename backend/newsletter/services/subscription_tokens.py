"""Opaque confirmation tokens linking an emailed link to a subscriber."""
import secrets
import string
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from newsletter.services.credential_store import CredentialStore

TOKEN_LENGTH = 25
TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_subscription_token() -> str:
    """Return a random 25-character alphanumeric token (~149 bits).

    Collisions are not checked; the primary key would reject one.
    """
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


async def store_token(
    store: CredentialStore,
    session: AsyncSession,
    subscriber_id: UUID,
    subscription_token: str,
) -> None:
    """Persist the token inside the transaction that owns ``session``."""
    await store.insert_token(session, subscriber_id, subscription_token)


async def get_subscriber_id_from_token(
    store: CredentialStore,
    subscription_token: str,
) -> Optional[UUID]:
    # Tokens are never issued with other characters; skip the query for junk.
    if len(subscription_token) != TOKEN_LENGTH or not all(c in TOKEN_ALPHABET for c in subscription_token):
        return None
    return await store.find_subscriber_id_by_token(subscription_token)
