import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Uuid

from newsletter.database import Base


class User(Base):
    """Administrator allowed to publish newsletter issues."""
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(64), unique=True, nullable=False)
    # Argon2id hash in PHC string format
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
