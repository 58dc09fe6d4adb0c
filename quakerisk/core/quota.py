"""Subscription quota logic - Pure functions.

This module decides whether a subscription may make another request and
computes renewals. It never mutates a subscription; the access
controller applies the decisions under its per-key lock.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from quakerisk.core.errors import (
    AccessError,
    ExpiredError,
    InvalidKeyError,
    QuotaExhaustedError,
)


@dataclass
class Subscription:
    """A request-budgeted, expiring API subscription.

    Attributes:
        id: Sequential subscription number
        api_key: Credential presented by callers
        owner: Owning principal (e.g. wallet address)
        organization_name: Subscriber organization
        contact_email: Subscriber contact
        start_time: When the subscription was issued
        end_time: Access is refused at or after this instant
        remaining_requests: Request budget left (never negative)
        active: False once revoked
        last_request_at: Time of the last authorized request
    """
    id: int
    api_key: str
    owner: str
    organization_name: str
    contact_email: str
    start_time: datetime
    end_time: datetime
    remaining_requests: int
    active: bool = True
    last_request_at: datetime | None = None


@dataclass(frozen=True)
class AccessDecision:
    """Result of checking a subscription.

    Attributes:
        allowed: Whether a request may proceed
        reason: Why not, when refused
        error: Exception type to raise when refused
    """
    allowed: bool
    reason: str | None = None
    error: type[AccessError] | None = None

    def raise_if_denied(self) -> None:
        """Raise the typed failure of a refused decision."""
        if not self.allowed and self.error is not None:
            raise self.error(self.reason)


@dataclass(frozen=True)
class KeyValidation:
    """Read-only view of a key's state.

    Attributes:
        valid: Whether the key may currently make requests
        remaining_requests: Budget left (None for unknown keys)
        expires_at: Subscription end time (None for unknown keys)
        subscription_id: Subscription number (None for unknown keys)
        organization: Subscriber organization (None for unknown keys)
        reason: Why the key is not valid
    """
    valid: bool
    remaining_requests: int | None = None
    expires_at: datetime | None = None
    subscription_id: int | None = None
    organization: str | None = None
    reason: str | None = None


def check_access(subscription: Subscription, now: datetime) -> AccessDecision:
    """Decide whether a subscription may make a request now.

    Pure function.

    Checks run in order: revoked, expired, exhausted.
    """
    if not subscription.active:
        return AccessDecision(
            allowed=False,
            reason=f"Subscription {subscription.id} has been revoked",
            error=InvalidKeyError,
        )

    if now >= subscription.end_time:
        return AccessDecision(
            allowed=False,
            reason=f"Subscription {subscription.id} expired at {subscription.end_time.isoformat()}",
            error=ExpiredError,
        )

    if subscription.remaining_requests <= 0:
        return AccessDecision(
            allowed=False,
            reason=f"Subscription {subscription.id} has no requests left",
            error=QuotaExhaustedError,
        )

    return AccessDecision(allowed=True)


def is_active(subscription: Subscription, now: datetime) -> bool:
    """Active iff not revoked, not expired and budget left.

    Pure function.
    """
    return check_access(subscription, now).allowed


def describe(subscription: Subscription, now: datetime) -> KeyValidation:
    """Build the read-only validation view of a subscription.

    Pure function.
    """
    decision = check_access(subscription, now)
    return KeyValidation(
        valid=decision.allowed,
        remaining_requests=subscription.remaining_requests,
        expires_at=subscription.end_time,
        subscription_id=subscription.id,
        organization=subscription.organization_name,
        reason=decision.reason,
    )


def renewal_end_time(end_time: datetime, now: datetime, extra_days: int) -> datetime:
    """End time after renewing by extra_days.

    Pure function.

    An expired subscription restarts from now; a live one is extended
    from its current end time.
    """
    base = now if end_time <= now else end_time
    return base + timedelta(days=extra_days)
