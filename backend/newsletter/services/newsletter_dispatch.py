"""Publishing a newsletter issue to every confirmed subscriber."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union
from uuid import UUID

import structlog

from newsletter.errors import TransportError, ValidationError, error_chain
from newsletter.logging_config import redact_email
from newsletter.schemas.newsletter import NewsletterIssue
from newsletter.schemas.subscriber import ConfirmedSubscriber, parse_subscriber_email
from newsletter.services.credential_store import CredentialStore
from newsletter.services.email_client import EmailClient
from newsletter.services.hashing_pool import HashingPool
from newsletter.services.password_service import Credentials, validate_credentials

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DispatchReport:
    user_id: UUID
    delivered: int
    skipped: int


class NewsletterDispatcher:
    def __init__(self, store: CredentialStore, email_client: EmailClient, pool: HashingPool):
        self.store = store
        self.email_client = email_client
        self.pool = pool

    async def get_confirmed_subscribers(self) -> list[Union[ConfirmedSubscriber, ValidationError]]:
        """Load confirmed subscribers, re-validating each stored address.

        Rows whose email no longer parses come back as the ValidationError
        instead of aborting the whole load.
        """
        subscribers: list[Union[ConfirmedSubscriber, ValidationError]] = []
        for email in await self.store.list_confirmed_emails():
            try:
                subscribers.append(ConfirmedSubscriber(email=parse_subscriber_email(email)))
            except ValidationError as e:
                subscribers.append(e)
        return subscribers

    async def publish(self, credentials: Credentials, issue: NewsletterIssue) -> DispatchReport:
        """Authenticate the publisher, then email ``issue`` to the audience.

        Sends are sequential. The first TransportError stops the loop and
        propagates; subscribers later in the list are not attempted.

        Raises:
            InvalidCredentials: unknown username or wrong password.
            StorageError: a query failed.
            TransportError: the email API failed for one recipient.
        """
        log = logger.bind(username=credentials.username)
        user_id = await validate_credentials(credentials, self.store, self.pool)
        log = log.bind(user_id=str(user_id))

        delivered = 0
        skipped = 0
        for subscriber in await self.get_confirmed_subscribers():
            if isinstance(subscriber, ValidationError):
                skipped += 1
                log.warning(
                    "Skipping a confirmed subscriber. Their stored contact details are invalid",
                    cause_chain=error_chain(subscriber),
                )
                continue
            try:
                await self.email_client.send_email(
                    subscriber.email,
                    issue.title,
                    issue.content.html,
                    issue.content.text,
                )
            except TransportError as e:
                raise TransportError(
                    f"Failed to send newsletter issue to {redact_email(subscriber.email)}"
                ) from e
            delivered += 1

        log.info("Newsletter issue published", title=issue.title, delivered=delivered, skipped=skipped)
        return DispatchReport(user_id=user_id, delivered=delivered, skipped=skipped)
