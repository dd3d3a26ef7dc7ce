"""
Billing provider protocol.

Business logic talks to this interface only; Stripe specifics live in
stripe_provider.py.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol


@dataclass
class BillingWebhookEvent:
    """A verified provider event, reduced to what the dispatcher reads."""
    event_id: str
    event_type: str
    created: Optional[datetime]
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.data.get("metadata") or {}


class BillingProvider(Protocol):
    """
    Protocol for billing providers.

    Implementations must handle:
    - Webhook signature verification and parsing
    - Checkout session creation
    - Portal session creation
    """

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> BillingWebhookEvent:
        """
        Verify the webhook signature and parse the event.

        Raises:
            BillingWebhookError: missing or invalid signature, or bad payload
        """
        ...

    def create_checkout_session(
        self,
        user_id: str,
        plan_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
    ) -> str:
        """
        Create a subscription checkout session.

        user_id and plan_id travel as metadata on both the session and the
        subscription so later webhooks can be attributed.

        Returns:
            Checkout session URL
        """
        ...

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a self-service billing portal session and return its URL."""
        ...


class BillingProviderError(Exception):
    """Base exception for billing provider errors."""
    pass


class BillingWebhookError(BillingProviderError):
    """Exception for webhook verification errors."""
    pass
