"""
Billing webhook route.

- POST /api/stripe-webhook: Stripe subscription events (raw body + stripe-signature)
"""
from fastapi import APIRouter, Depends, Request

from captionflow.api.deps import get_billing_provider
from captionflow.core.database import Database, get_db
from captionflow.features.billing.provider import BillingProvider
from captionflow.features.billing.service import process_webhook_event

router = APIRouter(tags=["billing"])


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    db: Database = Depends(get_db),
    provider: BillingProvider = Depends(get_billing_provider),
):
    """
    Handle Stripe webhook events.

    Signature verification requires the untouched request body.
    """
    body = await request.body()
    process_webhook_event(db, provider, dict(request.headers), body)
    return {"received": True}
