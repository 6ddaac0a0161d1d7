"""Push subscriptions and fan-out delivery.

Subscriptions are the JSON objects browsers hand out (``{"endpoint": ...,
"keys": {...}}``), kept per tenant and user. Delivery POSTs the payload to each
endpoint on its own; one unreachable endpoint never stops the others.
"""
import hashlib
import json
import logging
import threading
from abc import ABC, abstractmethod

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from bars.errors import ValidationError
from bars.models.core import PushSubscription

logger = logging.getLogger(__name__)

ALL_USERS = "_all"


def subscription_key(subscription: dict) -> str:
    canonical = json.dumps(subscription, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


class SubscriptionStore(ABC):
    @abstractmethod
    def add(self, tenant_id: str, user_id: str, subscription: dict) -> bool:
        """Register a subscription; returns False when it was already known."""

    @abstractmethod
    def list(self, tenant_id: str, user_id: str | None = None) -> list[dict]:
        """Subscriptions of one user, or of every user of the tenant."""


class InMemorySubscriptionStore(SubscriptionStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._by_tenant: dict[str, dict[str, dict[str, dict]]] = {}

    def add(self, tenant_id, user_id, subscription):
        key = subscription_key(subscription)
        with self._lock:
            users = self._by_tenant.setdefault(tenant_id, {})
            subs = users.setdefault(user_id, {})
            if key in subs:
                return False
            subs[key] = subscription
            return True

    def list(self, tenant_id, user_id=None):
        with self._lock:
            users = self._by_tenant.get(tenant_id, {})
            if user_id:
                return list(users.get(user_id, {}).values())
            return [s for subs in users.values() for s in subs.values()]

    def clear(self):
        with self._lock:
            self._by_tenant.clear()


class SqlSubscriptionStore(SubscriptionStore):
    """Opens its own session per call so it can run outside a request."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def add(self, tenant_id, user_id, subscription):
        key = subscription_key(subscription)
        db: Session = self.session_factory()
        try:
            exists = (db.query(PushSubscription.id)
                      .filter(PushSubscription.tenant_id == tenant_id,
                              PushSubscription.user_id == user_id,
                              PushSubscription.key == key)
                      .first())
            if exists:
                return False
            db.add(PushSubscription(tenant_id=tenant_id, user_id=user_id, key=key, subscription=subscription))
            try:
                db.commit()
            except IntegrityError:
                # registered by a parallel request
                db.rollback()
                return False
            return True
        finally:
            db.close()

    def list(self, tenant_id, user_id=None):
        db: Session = self.session_factory()
        try:
            q = db.query(PushSubscription).filter(PushSubscription.tenant_id == tenant_id)
            if user_id:
                q = q.filter(PushSubscription.user_id == user_id)
            return [row.subscription for row in q.order_by(PushSubscription.created_at.asc()).all()]
        finally:
            db.close()


class NotificationDispatcher:
    def __init__(self, store: SubscriptionStore, timeout: float = 5.0,
                 transport: httpx.BaseTransport | None = None, enabled: bool = True):
        self.store = store
        self.timeout = timeout
        self.transport = transport
        self.enabled = enabled

    def subscribe(self, tenant_id: str, user_id: str | None, subscription) -> bool:
        if not isinstance(subscription, dict) or not subscription.get("endpoint"):
            raise ValidationError("subscription with an endpoint is required")
        return self.store.add(tenant_id, user_id or ALL_USERS, subscription)

    def _deliver(self, client: httpx.Client, subscription: dict, payload: dict) -> bool:
        endpoint = subscription.get("endpoint")
        if not endpoint:
            logger.warning("push subscription without endpoint skipped")
            return False
        try:
            r = client.post(endpoint, json=payload, headers={"TTL": "60"})
        except httpx.HTTPError as e:
            logger.warning("push to %s failed: %s", endpoint, e)
            return False
        if not r.is_success:
            logger.warning("push to %s rejected with %s", endpoint, r.status_code)
            return False
        return True

    def send(self, tenant_id: str, user_id: str | None, payload: dict) -> int:
        """Deliver ``payload`` to every matching subscription; returns the success count."""
        if not self.enabled:
            return 0
        subs = self.store.list(tenant_id, user_id)
        if not subs:
            return 0
        sent = 0
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            for s in subs:
                if self._deliver(client, s, payload):
                    sent += 1
        logger.info("push %s: %d/%d delivered", tenant_id, sent, len(subs))
        return sent

    def notify_safely(self, tenant_id: str, user_id: str | None, payload: dict) -> int:
        try:
            return self.send(tenant_id, user_id, payload)
        except Exception:
            logger.exception("push notification for tenant %s failed", tenant_id)
            return 0
