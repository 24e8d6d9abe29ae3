import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Query, status

from newsletter.api.deps import get_subscription_service
from newsletter.errors import StorageError, TokenUnauthorized, TransportError, ValidationError, error_chain
from newsletter.schemas.subscriber import NewSubscriber, SubscribeResponse
from newsletter.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("", response_model=SubscribeResponse)
async def subscribe(
    name: str = Form(...),
    email: str = Form(...),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Register a pending subscriber and send the confirmation email. No authentication required."""
    try:
        new_subscriber = NewSubscriber.parse(name=name, email=email)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        await service.subscribe(new_subscriber)
    except StorageError as e:
        logger.error(f"Failed to save new subscriber:\n{error_chain(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process subscription",
        )
    except TransportError as e:
        logger.error(f"Failed to send a confirmation email:\n{error_chain(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send confirmation email",
        )

    return SubscribeResponse(message="Check your inbox to confirm your subscription.")


@router.get("/confirm")
async def confirm(
    subscription_token: str = Query(...),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Confirm a pending subscriber from the emailed link."""
    try:
        await service.confirm(subscription_token)
    except TokenUnauthorized as e:
        logger.info(f"Confirmation attempt rejected: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subscription token")
    except StorageError as e:
        logger.error(f"Failed to confirm subscriber:\n{error_chain(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm subscription",
        )

    return {"message": "Subscription confirmed."}
