"""
Billing webhook processing.

1. Verify + parse (provider)
2. Idempotency: skip events already processed
3. Apply the subscription change to the user row
4. Mark the event processed, or record the error and re-raise
"""
import hashlib
from typing import Dict, Optional

from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from captionflow.core.database import Database, billing_events, utc_now
from captionflow.core.errors import NotFoundError, ValidationError
from captionflow.core.logging import log_event
from captionflow.features.billing.provider import BillingProvider, BillingWebhookResult
from captionflow.features.users.service import update_subscription
from captionflow.models.user import Tier

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

PAID_TIERS = (Tier.PRO, Tier.TEAM)


def _parse_paid_tier(raw: Optional[str]) -> Tier:
    try:
        tier = Tier((raw or "").strip().lower())
    except ValueError:
        raise ValidationError("Invalid tier in metadata")
    if tier not in PAID_TIERS:
        raise ValidationError("Invalid tier in metadata")
    return tier


def _record_event(db: Database, result: BillingWebhookResult, body: bytes) -> bool:
    """Insert the ledger row. Returns False when the event was already processed."""
    payload_hash = hashlib.sha256(body).hexdigest()
    with db.session() as session:
        existing = session.execute(
            select(billing_events.c.processed).where(billing_events.c.stripe_event_id == result.event_id)
        ).first()
        if existing:
            # Failed attempts are retried by Stripe and processed again
            return not existing.processed

    try:
        with db.session() as session:
            session.execute(
                insert(billing_events).values(
                    stripe_event_id=result.event_id,
                    event_type=result.event_type,
                    received_at=utc_now(),
                    payload_hash=payload_hash,
                    processed=False,
                )
            )
    except IntegrityError:
        # Race condition: another delivery already inserted this event
        return False
    return True


def _mark_event(db: Database, event_id: str, *, error: Optional[str] = None) -> None:
    values = {"error": error} if error else {"processed": True, "processed_at": utc_now(), "error": None}
    with db.session() as session:
        session.execute(
            update(billing_events).where(billing_events.c.stripe_event_id == event_id).values(**values)
        )


def apply_checkout_completed(db: Database, result: BillingWebhookResult) -> None:
    if not result.user_id or not result.tier:
        raise ValidationError("Missing metadata")
    tier = _parse_paid_tier(result.tier)
    updated = update_subscription(
        db,
        result.user_id,
        tier=tier,
        status="active",
        subscription_id=result.subscription_id,
        stripe_customer_id=result.customer_id,
    )
    if not updated:
        raise NotFoundError("User not found")


def apply_subscription_deleted(db: Database, result: BillingWebhookResult) -> None:
    if not result.user_id:
        log_event("warning", "billing.webhook", event_type=result.event_type,
                  extra={"event_id": result.event_id, "reason": "missing userId metadata"})
        return
    update_subscription(db, result.user_id, tier=Tier.FREE, status="canceled", subscription_id=None,
                        current_period_end=None)


def process_webhook_event(
    db: Database,
    provider: BillingProvider,
    headers: Dict[str, str],
    body: bytes,
) -> BillingWebhookResult:
    """
    Process a billing webhook (idempotent).

    Raises:
        BillingWebhookError: signature invalid or payload unreadable (400)
        ValidationError: checkout metadata missing or tier invalid (400)
        NotFoundError: checkout references an unknown user (404)
    """
    result = provider.handle_webhook(headers, body)

    if not _record_event(db, result, body):
        log_event("info", "billing.webhook", user_id=result.user_id, event_type=result.event_type,
                  extra={"event_id": result.event_id, "duplicate": True})
        return result

    try:
        if result.event_type == CHECKOUT_COMPLETED:
            apply_checkout_completed(db, result)
        elif result.event_type == SUBSCRIPTION_DELETED:
            apply_subscription_deleted(db, result)
        else:
            log_event("info", "billing.webhook", event_type=result.event_type,
                      extra={"event_id": result.event_id, "handled": False})
    except Exception as e:
        _mark_event(db, result.event_id, error=str(e))
        raise

    _mark_event(db, result.event_id)
    log_event("info", "billing.webhook", user_id=result.user_id, event_type=result.event_type,
              extra={"event_id": result.event_id, "tier": result.tier})
    return result
