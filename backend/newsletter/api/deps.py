"""FastAPI dependencies resolving the components built in ``create_app``."""
from fastapi import Request

from newsletter.services.newsletter_dispatch import NewsletterDispatcher
from newsletter.services.subscription_service import SubscriptionService


def get_subscription_service(request: Request) -> SubscriptionService:
    return request.app.state.subscription_service


def get_newsletter_dispatcher(request: Request) -> NewsletterDispatcher:
    return request.app.state.newsletter_dispatcher
