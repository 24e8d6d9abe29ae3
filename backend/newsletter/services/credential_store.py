"""Persistence for administrators, subscribers and subscription tokens.

Every public coroutine opens its own session from the pool and returns it as
soon as the query completes. Callers that need several writes to land
atomically use :meth:`CredentialStore.transaction` and pass the session it
yields to the ``session``-taking helpers.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsletter.errors import StorageError
from newsletter.models.subscriber import Subscriber, SubscriptionStatus
from newsletter.models.subscription_token import SubscriptionToken
from newsletter.models.user import User


@dataclass(frozen=True)
class StoredCredentials:
    user_id: UUID
    password_hash: str


class CredentialStore:
    """Typed access to the tables used by the newsletter workflows."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside one transaction.

        Commits when the block exits normally and rolls back on any exception.
        Database failures surface as StorageError.
        """
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            raise StorageError("Failed to commit the database transaction.") from e

    # --- Users ---

    async def find_user_by_username(self, username: str) -> Optional[StoredCredentials]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(User.user_id, User.password_hash).where(User.username == username)
                )
                row = result.first()
        except SQLAlchemyError as e:
            raise StorageError("Failed to perform a query to retrieve stored credentials.") from e
        if row is None:
            return None
        return StoredCredentials(user_id=row.user_id, password_hash=row.password_hash)

    async def insert_user(self, username: str, password_hash: str) -> UUID:
        try:
            async with self._session_maker() as session:
                user = User(username=username, password_hash=password_hash)
                session.add(user)
                await session.commit()
                return user.user_id
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create user {username!r}.") from e

    async def update_password(self, user_id: UUID, password_hash: str) -> None:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    update(User).where(User.user_id == user_id).values(password_hash=password_hash)
                )
                await session.commit()
                updated = result.rowcount
        except SQLAlchemyError as e:
            raise StorageError("Failed to update password in database.") from e
        if updated == 0:
            raise StorageError(f"No user with id {user_id} to update.")

    # --- Subscribers ---

    async def find_subscriber_by_id(self, subscriber_id: UUID) -> Optional[Subscriber]:
        try:
            async with self._session_maker() as session:
                return await session.get(Subscriber, subscriber_id)
        except SQLAlchemyError as e:
            raise StorageError("Failed to load subscriber.") from e

    async def find_subscriber_by_email(self, email: str) -> Optional[Subscriber]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(Subscriber).where(Subscriber.email == email))
                return result.scalars().first()
        except SQLAlchemyError as e:
            raise StorageError("Failed to look up subscriber by email.") from e

    async def insert_subscriber(self, session: AsyncSession, email: str, name: str) -> UUID:
        """Add a pending subscriber to the caller's transaction."""
        subscriber = Subscriber(
            email=email,
            name=name,
            status=SubscriptionStatus.PENDING_CONFIRMATION,
        )
        session.add(subscriber)
        try:
            await session.flush()
        except SQLAlchemyError as e:
            raise StorageError("Failed to insert new subscriber in the database.") from e
        return subscriber.id

    async def set_status(self, subscriber_id: UUID, status: SubscriptionStatus) -> None:
        """Move a subscriber forward in its lifecycle.

        Only ``confirmed`` is accepted; writing it again is a no-op.
        """
        if status is not SubscriptionStatus.CONFIRMED:
            raise ValueError(f"Subscribers cannot be moved to {status.value!r}")
        try:
            async with self._session_maker() as session:
                await session.execute(
                    update(Subscriber)
                    .where(Subscriber.id == subscriber_id)
                    .values(status=status)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError("Failed to mark subscriber as confirmed.") from e

    async def list_confirmed_emails(self) -> list[str]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(Subscriber.email)
                    .where(Subscriber.status == SubscriptionStatus.CONFIRMED)
                    .order_by(Subscriber.subscribed_at)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError("Failed to load confirmed subscribers.") from e

    # --- Subscription tokens ---

    async def insert_token(self, session: AsyncSession, subscriber_id: UUID, token: str) -> None:
        """Add a token to the caller's transaction."""
        session.add(SubscriptionToken(subscription_token=token, subscriber_id=subscriber_id))
        try:
            await session.flush()
        except SQLAlchemyError as e:
            raise StorageError("Failed to store the confirmation token for a new subscriber.") from e

    async def find_subscriber_id_by_token(self, token: str) -> Optional[UUID]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(SubscriptionToken.subscriber_id).where(
                        SubscriptionToken.subscription_token == token
                    )
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError("Failed to retrieve the subscriber associated with the provided token.") from e

