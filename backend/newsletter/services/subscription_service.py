"""Double opt-in subscription workflow.

subscribe: validate -> insert subscriber + token in one transaction ->
commit -> send the confirmation email.
confirm: resolve token -> mark subscriber confirmed.
"""
import logging
from uuid import UUID

from newsletter.config import Settings
from newsletter.errors import TokenUnauthorized
from newsletter.logging_config import redact_email
from newsletter.models.subscriber import SubscriptionStatus
from newsletter.schemas.subscriber import NewSubscriber
from newsletter.services.credential_store import CredentialStore
from newsletter.services.email_client import EmailClient, TemplateRenderer, template_renderer
from newsletter.services.subscription_tokens import (
    generate_subscription_token,
    get_subscriber_id_from_token,
    store_token,
)

logger = logging.getLogger(__name__)

CONFIRMATION_SUBJECT = "Welcome!"


class SubscriptionService:
    def __init__(
        self,
        store: CredentialStore,
        email_client: EmailClient,
        settings: Settings,
        renderer: TemplateRenderer = template_renderer,
    ):
        self.store = store
        self.email_client = email_client
        self.base_url = settings.application_base_url
        self.renderer = renderer

    def build_confirmation_link(self, subscription_token: str) -> str:
        return f"{self.base_url}/subscriptions/confirm?subscription_token={subscription_token}"

    async def subscribe(self, new_subscriber: NewSubscriber) -> UUID:
        """Register ``new_subscriber`` and email them a confirmation link.

        The subscriber row and its token are written in one transaction; if
        either insert fails nothing is kept and no email is sent. The email
        goes out after the commit, so a TransportError leaves a pending
        subscriber behind.

        A second sign-up for an address that is still pending gets a fresh
        token and a new email. An already confirmed address is left alone.

        Raises:
            StorageError: the transaction failed.
            TransportError: the email API did not accept the message.
        """
        redacted = redact_email(new_subscriber.email)
        existing = await self.store.find_subscriber_by_email(new_subscriber.email)
        if existing is not None and existing.status == SubscriptionStatus.CONFIRMED:
            logger.info(f"Subscriber {redacted} is already confirmed; nothing to send")
            return existing.id

        subscription_token = generate_subscription_token()
        async with self.store.transaction() as session:
            if existing is None:
                subscriber_id = await self.store.insert_subscriber(
                    session, new_subscriber.email, new_subscriber.name
                )
            else:
                subscriber_id = existing.id
            await store_token(self.store, session, subscriber_id, subscription_token)

        if existing is None:
            logger.info(f"New subscriber {redacted} saved as pending")
        else:
            logger.info(f"Re-issued confirmation token for pending subscriber {redacted}")

        await self.send_confirmation_email(new_subscriber, subscription_token)
        return subscriber_id

    async def send_confirmation_email(self, new_subscriber: NewSubscriber, subscription_token: str) -> None:
        context = {
            "name": new_subscriber.name,
            "confirmation_link": self.build_confirmation_link(subscription_token),
        }
        html = self.renderer.render("confirmation.html", **context)
        text = self.renderer.render("confirmation.txt", **context)
        await self.email_client.send_email(new_subscriber.email, CONFIRMATION_SUBJECT, html, text)

    async def confirm(self, subscription_token: str) -> UUID:
        """Mark the subscriber owning ``subscription_token`` as confirmed.

        Tokens stay valid after use; confirming twice succeeds twice.

        Raises:
            TokenUnauthorized: the token does not resolve to a subscriber.
            StorageError: a query failed.
        """
        subscriber_id = await get_subscriber_id_from_token(self.store, subscription_token)
        if subscriber_id is None:
            raise TokenUnauthorized("There is no subscriber associated with the provided token.")

        await self.store.set_status(subscriber_id, SubscriptionStatus.CONFIRMED)
        subscriber = await self.store.find_subscriber_by_id(subscriber_id)
        if subscriber is not None:
            logger.info(f"Subscriber {redact_email(subscriber.email)} confirmed")
        return subscriber_id
