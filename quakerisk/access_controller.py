"""Quota-gated access controller.

Issues API keys backed by expiring, request-budgeted subscriptions and
meters every authorized request. A consume is a single check-and-decrement
under the subscription's own lock, so concurrent callers can never drive a
budget below zero or both spend its last request.
"""

import logging
import random
import threading
from dataclasses import replace
from datetime import timedelta
from typing import Any, Callable, TypeVar

from quakerisk.core.errors import InvalidKeyError
from quakerisk.core.quota import (
    KeyValidation,
    Subscription,
    check_access,
    describe,
    is_active,
    renewal_end_time,
)
from quakerisk.runtime import Clock, random_token, utc_now


logger = logging.getLogger(__name__)


API_KEY_PREFIX = "qs_"
API_KEY_TOKEN_LENGTH = 26

T = TypeVar("T")


class AccessController:
    """Registry of subscriptions keyed by API key."""

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the controller.

        Args:
            rng: Source of API key tokens (defaults to SystemRandom)
            clock: Time source for issue, expiry and renewal
        """
        self._rng = rng or random.SystemRandom()
        self._clock = clock
        self._subscriptions: dict[str, Subscription] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._next_id = 1

    def _new_key(self) -> str:
        while True:
            key = API_KEY_PREFIX + random_token(self._rng, API_KEY_TOKEN_LENGTH)
            if key not in self._subscriptions:
                return key

    def _lookup(self, key: str) -> tuple[Subscription, threading.Lock]:
        with self._registry_lock:
            subscription = self._subscriptions.get(key)
            if subscription is None:
                raise InvalidKeyError("Invalid API key")
            return subscription, self._key_locks[key]

    def issue(
        self,
        owner: str,
        organization_name: str,
        contact_email: str,
        duration_days: int,
        request_limit: int,
    ) -> Subscription:
        """Create a subscription and its API key.

        Raises:
            ValueError: If duration_days or request_limit is below 1
        """
        if duration_days < 1:
            raise ValueError(f"duration_days must be at least 1, got {duration_days}")
        if request_limit < 1:
            raise ValueError(f"request_limit must be at least 1, got {request_limit}")

        now = self._clock()

        with self._registry_lock:
            subscription = Subscription(
                id=self._next_id,
                api_key=self._new_key(),
                owner=owner,
                organization_name=organization_name,
                contact_email=contact_email,
                start_time=now,
                end_time=now + timedelta(days=duration_days),
                remaining_requests=request_limit,
            )
            self._subscriptions[subscription.api_key] = subscription
            self._key_locks[subscription.api_key] = threading.Lock()
            self._next_id += 1

        logger.info(
            "Issued subscription %d to %s (%d days, %d requests)",
            subscription.id,
            organization_name,
            duration_days,
            request_limit,
        )

        return replace(subscription)

    def get(self, key: str) -> Subscription:
        """Snapshot of a subscription.

        Raises:
            InvalidKeyError: If the key is unknown
        """
        subscription, lock = self._lookup(key)
        with lock:
            return replace(subscription)

    def validate(self, key: str) -> KeyValidation:
        """Describe a key without consuming budget."""
        try:
            subscription, lock = self._lookup(key)
        except InvalidKeyError:
            return KeyValidation(valid=False, reason="Invalid API key")

        with lock:
            return describe(subscription, self._clock())

    def consume(self, key: str) -> int:
        """Spend one request.

        Returns:
            The remaining budget after this request

        Raises:
            InvalidKeyError: If the key is unknown or revoked
            ExpiredError: If the subscription has ended
            QuotaExhaustedError: If no requests are left
        """
        subscription, lock = self._lookup(key)

        with lock:
            now = self._clock()
            decision = check_access(subscription, now)
            if not decision.allowed:
                logger.warning("Access denied for subscription %d: %s",
                               subscription.id, decision.reason)
            decision.raise_if_denied()

            subscription.remaining_requests -= 1
            subscription.last_request_at = now
            return subscription.remaining_requests

    def renew(self, key: str, extra_days: int = 0, extra_requests: int = 0) -> Subscription:
        """Extend a subscription's period and budget.

        An expired subscription restarts its period from now.

        Raises:
            InvalidKeyError: If the key is unknown or revoked
            ValueError: If either extension is negative
        """
        if extra_days < 0 or extra_requests < 0:
            raise ValueError("Renewal amounts must not be negative")

        subscription, lock = self._lookup(key)

        with lock:
            if not subscription.active:
                raise InvalidKeyError(f"Subscription {subscription.id} has been revoked")

            subscription.end_time = renewal_end_time(
                subscription.end_time, self._clock(), extra_days
            )
            subscription.remaining_requests += extra_requests

            logger.info(
                "Renewed subscription %d until %s with %d requests",
                subscription.id,
                subscription.end_time.isoformat(),
                subscription.remaining_requests,
            )
            return replace(subscription)

    def revoke(self, key: str) -> Subscription:
        """Permanently disable a key.

        Raises:
            InvalidKeyError: If the key is unknown
        """
        subscription, lock = self._lookup(key)

        with lock:
            subscription.active = False
            logger.info("Revoked subscription %d", subscription.id)
            return replace(subscription)

    def subscriptions_for(self, owner: str) -> list[Subscription]:
        """Snapshots of the live subscriptions of an owner."""
        now = self._clock()
        with self._registry_lock:
            owned = [s for s in self._subscriptions.values() if s.owner == owner]
        return [replace(s) for s in owned if is_active(s, now)]

    def authorized(
        self,
        key: str,
        fn: Callable[..., T],
        *args: Any,
        **kwargs: Any,
    ) -> tuple[T, int]:
        """Consume one request, then call fn.

        The request is spent even if fn raises.

        Returns:
            Tuple of (fn result, budget left after this request)
        """
        remaining = self.consume(key)
        return fn(*args, **kwargs), remaining
