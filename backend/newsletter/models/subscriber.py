import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum as SQLEnum, String, Uuid

from newsletter.database import Base


class SubscriptionStatus(str, enum.Enum):
    """Lifecycle of a subscriber. Only moves forward."""
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"


class Subscriber(Base):
    __tablename__ = "subscriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(256), nullable=False)
    status = Column(
        SQLEnum(
            SubscriptionStatus,
            name="subscription_status",
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=SubscriptionStatus.PENDING_CONFIRMATION,
        nullable=False,
        index=True,
    )
    subscribed_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self) -> str:
        return f"<Subscriber {self.id} ({self.status.value})>"
