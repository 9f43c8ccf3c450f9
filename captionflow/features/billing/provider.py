"""
Billing provider protocol.

Checkout and portal sessions are created client-side against Stripe; the
backend only consumes the resulting webhooks, so the protocol is just the
verification + parsing step.
"""
from typing import Protocol, Dict, Any, Optional
from dataclasses import dataclass, field

from captionflow.core.errors import AppError, WebhookError


@dataclass
class BillingWebhookResult:
    """Normalized view of a verified billing webhook."""
    event_id: str
    event_type: str
    user_id: Optional[str]
    tier: Optional[str]
    subscription_id: Optional[str]
    customer_id: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)


class BillingProvider(Protocol):
    def handle_webhook(self, headers: Dict[str, str], body: bytes) -> BillingWebhookResult:
        """
        Verify webhook signature and parse event.

        Args:
            headers: HTTP headers (must include signature header)
            body: Raw webhook body (for signature verification)

        Raises:
            BillingWebhookError: If signature invalid or parsing fails
        """
        ...


class BillingProviderError(AppError):
    """Billing is misconfigured or the provider failed."""
    code = "billing_error"
    status_code = 500


class BillingWebhookError(WebhookError):
    """Webhook could not be verified or parsed (400)."""
