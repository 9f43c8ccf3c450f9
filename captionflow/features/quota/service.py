"""
captionflow/features/quota/service.py

Daily caption quota.

Handles:
- Lazy midnight (UTC) reset of the per-user counter
- The pre-generation limit check
- Atomic, conditional consumption tied to the caption insert
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
import logging

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session

from captionflow.core.database import Database, users
from captionflow.core.errors import QuotaExceededError
from captionflow.core.logging import log_event
from captionflow.features.tiers.service import Feature, is_allowed
from captionflow.models.user import Tier, User


logger = logging.getLogger("captionflow")

QUOTA_EXCEEDED_MESSAGE = "Daily limit reached. Upgrade to Pro for unlimited captions."


@dataclass(frozen=True)
class QuotaStatus:
    allowed: bool
    used: int
    limit: Optional[int]  # None = unlimited
    remaining: Optional[int]  # None = unlimited


def _today(now: Optional[datetime] = None) -> str:
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(timezone.utc).date().isoformat()


def _date_key(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).date().isoformat()


def needs_reset(last_reset_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when the counter was last reset on an earlier calendar day (or never)."""
    last = _date_key(last_reset_date)
    return last is None or last < _today(now)


def is_unlimited(tier: Tier) -> bool:
    return is_allowed(Feature.UNLIMITED_CAPTIONS, tier)


def remaining_today(tier: Tier, used: int, limit: int) -> Optional[int]:
    if is_unlimited(tier):
        return None
    return max(0, limit - used)


def reset_if_stale(db: Database, user: User, now: Optional[datetime] = None) -> User:
    """Zero the counter on the first read of a new day; returns the fresh view."""
    if not needs_reset(user.last_reset_date, now):
        return user

    stamp = now or datetime.now(timezone.utc)
    with db.session() as session:
        session.execute(
            update(users)
            .where(users.c.id == user.id)
            .values(daily_caption_count=0, last_reset_date=stamp)
        )
    logger.info("quota.reset", extra={"user_id": user.id, "previous_count": user.daily_caption_count})
    return user.model_copy(update={"daily_caption_count": 0, "last_reset_date": stamp})


def check_quota(db: Database, user: User, *, limit: int, now: Optional[datetime] = None) -> QuotaStatus:
    """
    Gate a generation request before the expensive provider call.

    Resets a stale counter as a side effect. Non-free tiers are never limited.

    Raises:
        QuotaExceededError: free tier with daily_caption_count >= limit
    """
    user = reset_if_stale(db, user, now)

    if is_unlimited(user.subscription_tier):
        return QuotaStatus(allowed=True, used=user.daily_caption_count, limit=None, remaining=None)

    if user.daily_caption_count >= limit:
        log_event("warning", "quota.exceeded", user_id=user.id, event_type="quota", error_code="quota_exceeded",
                  extra={"used": user.daily_caption_count, "limit": limit})
        raise QuotaExceededError(QUOTA_EXCEEDED_MESSAGE)

    return QuotaStatus(
        allowed=True,
        used=user.daily_caption_count,
        limit=limit,
        remaining=limit - user.daily_caption_count,
    )


def consume_quota(session: Session, user_id: str, *, limit: int) -> None:
    """
    Increment the counter by exactly one inside the caller's transaction.

    Single conditional UPDATE: only matches when the user is on an unlimited
    tier or still below the limit, so concurrent requests cannot overshoot.

    Raises:
        QuotaExceededError: the conditional update matched no row
    """
    unlimited_tiers = [tier.value for tier in Tier if is_unlimited(tier)]
    result = session.execute(
        update(users)
        .where(
            and_(
                users.c.id == user_id,
                or_(
                    users.c.subscription_tier.in_(unlimited_tiers),
                    users.c.daily_caption_count < limit,
                ),
            )
        )
        .values(daily_caption_count=users.c.daily_caption_count + 1)
    )
    if result.rowcount == 0:
        log_event("warning", "quota.exceeded", user_id=user_id, event_type="quota", error_code="quota_exceeded",
                  extra={"stage": "consume", "limit": limit})
        raise QuotaExceededError(QUOTA_EXCEEDED_MESSAGE)


def _stale_counter_clause(stamp: datetime):
    midnight = datetime.combine(date.fromisoformat(_today(stamp)), datetime.min.time(), tzinfo=timezone.utc)
    return or_(users.c.last_reset_date.is_(None), users.c.last_reset_date < midnight)


def count_stale_counters(db: Database, now: Optional[datetime] = None) -> int:
    """Rows reset_daily_counts would touch."""
    stamp = now or datetime.now(timezone.utc)
    with db.session() as session:
        return session.execute(
            select(func.count()).select_from(users).where(_stale_counter_clause(stamp))
        ).scalar_one()


def reset_daily_counts(db: Database, now: Optional[datetime] = None) -> int:
    """Zero every counter last reset before today. Returns the number of rows touched.

    Lazy resets on read keep the API correct without it; run from
    captionflow.workers.reset_daily_counts on a daily schedule.
    """
    stamp = now or datetime.now(timezone.utc)
    with db.session() as session:
        result = session.execute(
            update(users)
            .where(_stale_counter_clause(stamp))
            .values(daily_caption_count=0, last_reset_date=stamp)
        )
        return result.rowcount
