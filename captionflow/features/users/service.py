"""
User domain service.
- get_user(db, user_id)
- get_or_create_user(db, user_id, email)
- update_subscription(db, user_id, ...)
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import select, insert, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError

from captionflow.core.database import Database, users, as_utc, utc_now
from captionflow.core.errors import NotFoundError
from captionflow.models.user import Tier, User


def row_to_user(row: Row) -> User:
    return User(
        id=row.id,
        email=row.email,
        subscription_tier=Tier(row.subscription_tier),
        subscription_status=row.subscription_status,
        daily_caption_count=row.daily_caption_count,
        last_reset_date=as_utc(row.last_reset_date),
        stripe_customer_id=row.stripe_customer_id,
        subscription_id=row.subscription_id,
        current_period_end=as_utc(row.current_period_end),
    )


def get_user(db: Database, user_id: str) -> Optional[User]:
    with db.session() as session:
        row = session.execute(select(users).where(users.c.id == user_id)).first()
        return row_to_user(row) if row else None


def require_user(db: Database, user_id: str) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_or_create_user(db: Database, user_id: str, email: Optional[str] = None) -> User:
    existing = get_user(db, user_id)
    if existing:
        if email and existing.email != email:
            with db.session() as session:
                session.execute(
                    update(users).where(users.c.id == user_id).values(email=email, updated_at=utc_now())
                )
            return existing.model_copy(update={"email": email})
        return existing

    now = utc_now()
    try:
        with db.session() as session:
            session.execute(
                insert(users).values(
                    id=user_id,
                    email=email,
                    subscription_tier=Tier.FREE.value,
                    subscription_status="active",
                    daily_caption_count=0,
                    last_reset_date=now,
                    created_at=now,
                    updated_at=now,
                )
            )
    except IntegrityError:
        # Created concurrently by another request
        return require_user(db, user_id)

    return User(id=user_id, email=email, last_reset_date=now)


def update_subscription(
    db: Database,
    user_id: str,
    *,
    tier: Tier,
    status: str,
    subscription_id: Optional[str],
    current_period_end: Optional[datetime] = None,
    stripe_customer_id: Optional[str] = None,
) -> bool:
    """Write subscription fields; returns False when the user does not exist."""
    values = {
        "subscription_tier": tier.value,
        "subscription_status": status,
        "subscription_id": subscription_id,
        "current_period_end": current_period_end,
        "updated_at": utc_now(),
    }
    if stripe_customer_id:
        values["stripe_customer_id"] = stripe_customer_id

    with db.session() as session:
        result = session.execute(update(users).where(users.c.id == user_id).values(**values))
        return result.rowcount > 0
