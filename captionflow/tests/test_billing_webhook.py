"""
Stripe webhook processing.

Provider is mocked; StripeProvider signature handling is tested with a
patched stripe.Webhook.construct_event.
"""
import json
from unittest.mock import Mock, patch

import pytest
import stripe
from sqlalchemy import select

from captionflow.core.database import billing_events
from captionflow.core.errors import NotFoundError, ValidationError
from captionflow.features.billing.provider import BillingWebhookError, BillingWebhookResult
from captionflow.features.billing.service import process_webhook_event
from captionflow.features.billing.stripe_provider import StripeProvider
from captionflow.features.users.service import require_user
from captionflow.models.user import Tier


def _result(event_id="evt_1", event_type="checkout.session.completed", user_id="user_alice", tier="Pro"):
    return BillingWebhookResult(
        event_id=event_id,
        event_type=event_type,
        user_id=user_id,
        tier=tier,
        subscription_id="sub_123",
        customer_id="cus_123",
    )


@pytest.fixture
def provider():
    return Mock()


def test_checkout_completed_upgrades_user(db, make_user, provider):
    make_user("user_alice")
    provider.handle_webhook.return_value = _result()

    process_webhook_event(db, provider, {"stripe-signature": "sig"}, b"{}")

    user = require_user(db, "user_alice")
    assert user.subscription_tier == Tier.PRO
    assert user.subscription_status == "active"
    assert user.subscription_id == "sub_123"
    assert user.stripe_customer_id == "cus_123"


def test_duplicate_event_is_not_reprocessed(db, make_user, provider):
    make_user("user_alice")
    provider.handle_webhook.return_value = _result()
    process_webhook_event(db, provider, {}, b"{}")

    with patch("captionflow.features.billing.service.apply_checkout_completed") as apply:
        process_webhook_event(db, provider, {}, b"{}")
        apply.assert_not_called()

    with db.session() as session:
        rows = session.execute(select(billing_events)).all()
    assert len(rows) == 1
    assert rows[0].processed is True


def test_missing_metadata_is_400_and_recorded(db, provider):
    provider.handle_webhook.return_value = _result(user_id=None)
    with pytest.raises(ValidationError) as exc:
        process_webhook_event(db, provider, {}, b"{}")
    assert exc.value.status_code == 400

    with db.session() as session:
        row = session.execute(select(billing_events)).one()
    assert row.processed is False
    assert row.error == "Missing metadata"


def test_unknown_user_is_404(db, provider):
    provider.handle_webhook.return_value = _result(user_id="ghost")
    with pytest.raises(NotFoundError):
        process_webhook_event(db, provider, {}, b"{}")


def test_invalid_tier_is_rejected(db, make_user, provider):
    make_user("user_alice")
    provider.handle_webhook.return_value = _result(tier="platinum")
    with pytest.raises(ValidationError):
        process_webhook_event(db, provider, {}, b"{}")
    assert require_user(db, "user_alice").subscription_tier == Tier.FREE


def test_failed_event_is_processed_on_redelivery(db, make_user, provider):
    provider.handle_webhook.return_value = _result()
    with pytest.raises(NotFoundError):
        process_webhook_event(db, provider, {}, b"{}")

    make_user("user_alice")
    process_webhook_event(db, provider, {}, b"{}")
    assert require_user(db, "user_alice").subscription_tier == Tier.PRO


def test_subscription_deleted_downgrades(db, make_user, provider):
    make_user("user_bob", tier=Tier.TEAM)
    provider.handle_webhook.return_value = _result(
        event_id="evt_del", event_type="customer.subscription.deleted", user_id="user_bob", tier=None
    )
    process_webhook_event(db, provider, {}, b"{}")

    user = require_user(db, "user_bob")
    assert user.subscription_tier == Tier.FREE
    assert user.subscription_status == "canceled"
    assert user.subscription_id is None
    assert user.current_period_end is None


def test_other_events_are_acknowledged(db, provider):
    provider.handle_webhook.return_value = _result(event_id="evt_x", event_type="invoice.paid", user_id=None)
    result = process_webhook_event(db, provider, {}, b"{}")
    assert result.event_type == "invoice.paid"


class TestStripeProvider:
    """Signature verification and event parsing."""

    def _provider(self):
        return StripeProvider("sk_test_123", "whsec_123")

    def test_requires_secret_key(self):
        with pytest.raises(Exception) as exc:
            StripeProvider(None, "whsec_123")
        assert "STRIPE_SECRET_KEY" in str(exc.value)

    def test_missing_signature_header(self):
        with pytest.raises(BillingWebhookError) as exc:
            self._provider().handle_webhook({}, b"{}")
        assert exc.value.status_code == 400

    def test_invalid_signature(self):
        error = stripe.SignatureVerificationError("bad sig", "sig")
        with patch("stripe.Webhook.construct_event", side_effect=error):
            with pytest.raises(BillingWebhookError) as exc:
                self._provider().handle_webhook({"stripe-signature": "sig"}, b"{}")
        assert exc.value.message == "Invalid signature"

    def test_parses_checkout_metadata(self):
        body = json.dumps({
            "id": "evt_42",
            "type": "checkout.session.completed",
            "data": {"object": {
                "subscription": "sub_9",
                "customer": "cus_9",
                "metadata": {"userId": "user_alice", "tier": "team"},
            }},
        }).encode()
        with patch("stripe.Webhook.construct_event") as construct:
            result = self._provider().handle_webhook({"stripe-signature": "sig"}, body)
        construct.assert_called_once_with(body, "sig", "whsec_123")
        assert result.event_id == "evt_42"
        assert result.user_id == "user_alice"
        assert result.tier == "team"
        assert result.subscription_id == "sub_9"

    def test_parses_subscription_deleted(self):
        body = json.dumps({
            "id": "evt_43",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_9", "customer": "cus_9", "metadata": {"userId": "user_bob"}}},
        }).encode()
        with patch("stripe.Webhook.construct_event"):
            result = self._provider().handle_webhook({"stripe-signature": "sig"}, body)
        assert result.subscription_id == "sub_9"
        assert result.user_id == "user_bob"
        assert result.tier is None
