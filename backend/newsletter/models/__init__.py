from newsletter.models.subscriber import Subscriber, SubscriptionStatus
from newsletter.models.subscription_token import SubscriptionToken
from newsletter.models.user import User
