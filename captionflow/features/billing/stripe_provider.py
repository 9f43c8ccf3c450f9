"""
Stripe billing provider.

Verifies the stripe-signature header and reads the userId / tier metadata the
checkout session was created with.
"""
import json
from typing import Dict, Any, Optional
import logging

import stripe

from captionflow.core.config import Settings
from captionflow.features.billing.provider import (
    BillingProviderError,
    BillingWebhookError,
    BillingWebhookResult,
)

logger = logging.getLogger("captionflow")


class StripeProvider:
    """Stripe implementation of BillingProvider protocol."""

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str]):
        if not secret_key:
            raise BillingProviderError("STRIPE_SECRET_KEY not configured")
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        stripe.api_key = secret_key

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeProvider":
        return cls(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)

    def handle_webhook(self, headers: Dict[str, str], body: bytes) -> BillingWebhookResult:
        """Verify Stripe webhook signature and parse event."""
        if not self.webhook_secret:
            raise BillingProviderError("STRIPE_WEBHOOK_SECRET not configured")

        sig_header = headers.get("stripe-signature") or headers.get("Stripe-Signature")
        if not sig_header:
            raise BillingWebhookError("Missing stripe-signature header")

        try:
            stripe.Webhook.construct_event(body, sig_header, self.webhook_secret)
        except ValueError as e:
            logger.warning("billing.invalid_payload", extra={"error": str(e)})
            raise BillingWebhookError("Invalid payload")
        except stripe.SignatureVerificationError as e:
            logger.warning("billing.invalid_signature", extra={"error": str(e)})
            raise BillingWebhookError("Invalid signature")

        # Signature checked above; read the plain JSON body
        return self._parse_event(json.loads(body))

    @staticmethod
    def _parse_event(event: Dict[str, Any]) -> BillingWebhookResult:
        """Parse Stripe event into normalized BillingWebhookResult."""
        event_type = event["type"]
        data = (event.get("data") or {}).get("object") or {}
        metadata = data.get("metadata") or {}

        if event_type == "checkout.session.completed":
            subscription_id = data.get("subscription")
        elif event_type.startswith("customer.subscription."):
            subscription_id = data.get("id")
        else:
            subscription_id = None

        return BillingWebhookResult(
            event_id=event["id"],
            event_type=event_type,
            user_id=metadata.get("userId"),
            tier=metadata.get("tier"),
            subscription_id=subscription_id,
            customer_id=data.get("customer"),
            metadata=metadata,
        )
