"""
Stripe billing provider.

Implements BillingProvider with the stripe library. Webhook verification
checks the Stripe-Signature header against STRIPE_WEBHOOK_SECRET, then the
verified body is parsed as plain JSON.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

from ngoinfo.core.config import settings
from ngoinfo.features.billing.provider import (
    BillingProviderError,
    BillingWebhookError,
    BillingWebhookEvent,
)


class StripeProvider:
    """Stripe implementation of BillingProvider protocol."""

    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

        if not self.secret_key:
            raise BillingProviderError("STRIPE_SECRET_KEY not configured")

        stripe.api_key = self.secret_key

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> BillingWebhookEvent:
        if not signature:
            raise BillingWebhookError("Missing stripe-signature header")
        if not self.webhook_secret:
            raise BillingWebhookError("STRIPE_WEBHOOK_SECRET not configured")

        try:
            payload = body.decode("utf-8") if isinstance(body, bytes) else body
        except UnicodeDecodeError as e:
            raise BillingWebhookError(f"Invalid payload: {e}")

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature,
                self.webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            raise BillingWebhookError(f"Invalid signature: {e}")

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise BillingWebhookError(f"Invalid payload: {e}")
        if not isinstance(event, dict):
            raise BillingWebhookError("Invalid payload: expected an event object")

        return self._parse_event(event)

    def _parse_event(self, event: Dict[str, Any]) -> BillingWebhookEvent:
        created_ts = event.get("created")
        created = datetime.fromtimestamp(created_ts, timezone.utc) if created_ts else None
        data = event.get("data", {}).get("object", {}) or {}
        return BillingWebhookEvent(
            event_id=event.get("id", ""),
            event_type=event.get("type", ""),
            created=created,
            data=data,
        )

    def create_checkout_session(
        self,
        user_id: str,
        plan_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
    ) -> str:
        metadata = {"user_id": user_id, "plan_id": plan_id}
        params: Dict[str, Any] = dict(
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            client_reference_id=user_id,
            metadata=metadata,
            subscription_data={"metadata": metadata},
            success_url=success_url,
            cancel_url=cancel_url,
        )
        if customer_id:
            params["customer"] = customer_id
        try:
            session = stripe.checkout.Session.create(**params)
            return session.url
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe checkout session creation failed: {e}")

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
            )
            return session.url
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe portal session creation failed: {e}")
