"""Push Notification Subscription model."""
import uuid

from sqlalchemy import JSON, Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from app.db.base import Base


class PushSubscription(Base):
    """Stores Web Push API subscription details for a user.

    ``endpoint`` is the physical identity of a browser installation and is
    unique across all users: re-registering it under another user moves the
    row instead of duplicating it. ``user_id`` is the external identity from
    the auth system, so there is no foreign key to a users table.
    """

    __tablename__ = "push_subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)

    endpoint = Column(Text, nullable=False, unique=True)
    keys = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)  # { p256dh: "...", auth: "..." }

    user_agent = Column(String(500))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_subscription_info(self) -> dict:
        """Return the ``subscription_info`` mapping expected by pywebpush."""

        return {"endpoint": self.endpoint, "keys": dict(self.keys or {})}
