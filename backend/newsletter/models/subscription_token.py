from sqlalchemy import Column, ForeignKey, String, Uuid

from newsletter.database import Base


class SubscriptionToken(Base):
    __tablename__ = "subscription_tokens"

    subscription_token = Column(String(25), primary_key=True)
    subscriber_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("subscriptions.id"),
        nullable=False,
        index=True,
    )
