import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from newsletter.api.deps import get_newsletter_dispatcher
from newsletter.auth.basic import WWW_AUTHENTICATE, basic_authentication
from newsletter.errors import (
    AuthenticationError,
    StorageError,
    TransportError,
    UnexpectedAuthError,
    error_chain,
)
from newsletter.schemas.newsletter import NewsletterIssue, PublishResponse
from newsletter.services.newsletter_dispatch import NewsletterDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/newsletters", tags=["newsletters"])


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication failed",
        headers={"WWW-Authenticate": WWW_AUTHENTICATE},
    )


@router.post("", response_model=PublishResponse)
async def publish_newsletter(
    issue: NewsletterIssue,
    request: Request,
    dispatcher: NewsletterDispatcher = Depends(get_newsletter_dispatcher),
):
    """Send a newsletter issue to every confirmed subscriber. Requires HTTP Basic auth."""
    try:
        credentials = basic_authentication(request.headers)
        report = await dispatcher.publish(credentials, issue)
    except AuthenticationError as e:
        # InvalidCredentials included: unknown user and wrong password look the same
        logger.info(f"Publish attempt rejected: {e}")
        raise _unauthorized()
    except (StorageError, TransportError, UnexpectedAuthError) as e:
        logger.error(f"Failed to publish newsletter issue:\n{error_chain(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to publish newsletter issue",
        )

    return PublishResponse(user_id=report.user_id, delivered=report.delivered, skipped=report.skipped)
