"""Subscription registry: endpoint ownership for Web Push devices."""
from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models.push_subscription import PushSubscription
from app.utils.exceptions import InvalidSubscriptionError, storage_guard


def validate_subscription(subscription: Any) -> bool:
    """Return ``True`` if ``subscription`` carries an endpoint and both keys."""

    if not isinstance(subscription, Mapping):
        return False
    endpoint = subscription.get("endpoint")
    if not endpoint or not isinstance(endpoint, str):
        return False
    keys = subscription.get("keys")
    if not isinstance(keys, Mapping):
        return False
    return bool(keys.get("p256dh")) and bool(keys.get("auth"))


class SubscriptionRegistry:
    """Single source of truth for which user owns which push endpoint.

    Lookups on subscribe are endpoint-first: an endpoint identifies a physical
    browser installation, so at most one row (and one owner) exists per
    endpoint. Every mutation is a single-row commit.
    """

    def __init__(self, db: Session):
        self.db = db

    def subscribe(
        self,
        user_id: str,
        endpoint: str,
        keys: Mapping[str, str],
        user_agent: Optional[str] = None,
    ) -> uuid.UUID:
        """Register, refresh or reassign the subscription for ``endpoint``.

        Returns the id of the row now owned by ``user_id``.
        """

        if not user_id:
            raise InvalidSubscriptionError("User id required")
        if not validate_subscription({"endpoint": endpoint, "keys": keys}):
            raise InvalidSubscriptionError(
                "Subscription requires an endpoint and p256dh/auth keys",
                details={"endpoint": bool(endpoint)},
            )

        key_material = {"p256dh": keys["p256dh"], "auth": keys["auth"]}

        with storage_guard(self.db, "subscribe"):
            existing = self._find_by_endpoint(endpoint)

            if existing is None:
                subscription = PushSubscription(
                    user_id=user_id,
                    endpoint=endpoint,
                    keys=key_material,
                    user_agent=user_agent,
                )
                self.db.add(subscription)
                try:
                    self.db.commit()
                except IntegrityError:
                    # Another request registered the endpoint between lookup and insert
                    self.db.rollback()
                    existing = self._find_by_endpoint(endpoint)
                    if existing is None:
                        raise
                    logger.info("Push endpoint registered concurrently, updating", user_id=user_id)
                else:
                    logger.info(
                        "Created push subscription",
                        user_id=user_id,
                        subscription_id=str(subscription.id),
                    )
                    return subscription.id

            previous_owner = existing.user_id
            existing.keys = key_material
            existing.user_agent = user_agent
            if previous_owner != user_id:
                # The previous owner must stop receiving pushes at this endpoint
                # in the same write that grants it to the new one.
                existing.user_id = user_id
            self.db.commit()

        if previous_owner != user_id:
            logger.info(
                "Reassigned push subscription",
                subscription_id=str(existing.id),
                previous_user_id=previous_owner,
                user_id=user_id,
            )
        else:
            logger.info(
                "Updated push subscription",
                user_id=user_id,
                subscription_id=str(existing.id),
            )
        return existing.id

    def _find_by_endpoint(self, endpoint: str) -> Optional[PushSubscription]:
        return self.db.scalars(
            select(PushSubscription).where(PushSubscription.endpoint == endpoint)
        ).first()

    def unsubscribe(self, user_id: str, endpoint: str) -> bool:
        """Remove ``endpoint`` if it still belongs to ``user_id``.

        Returns whether a row was deleted; an endpoint that was already removed
        or reassigned is not an error.
        """

        with storage_guard(self.db, "unsubscribe"):
            result = self.db.execute(
                delete(PushSubscription).where(
                    PushSubscription.user_id == user_id,
                    PushSubscription.endpoint == endpoint,
                )
            )
            self.db.commit()

        removed = bool(result.rowcount)
        logger.info("Unsubscribed push endpoint", user_id=user_id, removed=removed)
        return removed

    def list_subscriptions(self, user_id: str) -> list[PushSubscription]:
        """Return every subscription currently owned by ``user_id``."""

        with storage_guard(self.db, "list_subscriptions"):
            stmt = (
                select(PushSubscription)
                .where(PushSubscription.user_id == user_id)
                .order_by(PushSubscription.created_at)
            )
            return list(self.db.scalars(stmt))

    def has_active_subscription(self, user_id: str) -> bool:
        return len(self.list_subscriptions(user_id)) > 0

    def remove_expired(self, subscription_id: uuid.UUID) -> None:
        """Hard-delete a subscription whose endpoint the transport reported as gone."""

        with storage_guard(self.db, "remove_expired"):
            self.db.execute(delete(PushSubscription).where(PushSubscription.id == subscription_id))
            self.db.commit()
        logger.info("Removed expired push subscription", subscription_id=str(subscription_id))
