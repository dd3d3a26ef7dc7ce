"""
Billing service orchestrator.

Coordinates:
- Checkout and portal sessions
- Webhook dispatch onto the quota state machine

Replays are safe without dedup bookkeeping: every transition writes fixed
values, stamped with the event's own creation time.
"""
from typing import Callable, Dict, Optional

from ngoinfo.core.config import settings
from ngoinfo.core.errors import BillingDisabledError, NotFoundError, ValidationError
from ngoinfo.core.logging import log_event
from ngoinfo.core.metrics import stripe_webhooks_total
from ngoinfo.features.billing.provider import (
    BillingProvider,
    BillingProviderError,
    BillingWebhookEvent,
)
from ngoinfo.features.billing.stripe_provider import StripeProvider
from ngoinfo.features.plans.catalog import TRIAL_PLAN_ID, get_plan_by_id, stripe_price_for_plan
from ngoinfo.features.quota.service import cancel_subscription, get_user_plan_state, upgrade_plan

CANCELLING_STATUSES = {"canceled", "unpaid"}


def billing_enabled() -> bool:
    """Check if billing is enabled (Stripe configured)."""
    return bool(settings.STRIPE_SECRET_KEY)


def get_provider() -> Optional[BillingProvider]:
    """Get billing provider if billing is enabled."""
    if not billing_enabled():
        return None
    try:
        return StripeProvider()
    except BillingProviderError:
        return None


def _require_provider() -> BillingProvider:
    provider = get_provider()
    if provider is None:
        raise BillingDisabledError("Billing is not configured")
    return provider


def start_checkout(user_id: str, plan_id: str, success_url: str, cancel_url: str) -> str:
    """
    Start a subscription checkout for a paid plan.

    Raises:
        BillingDisabledError: Stripe not configured
        ValidationError: trial or unknown plan
        BillingProviderError: Stripe API failure
    """
    provider = _require_provider()

    plan = get_plan_by_id(plan_id)
    if plan is None or plan.id == TRIAL_PLAN_ID:
        raise ValidationError("Invalid plan for checkout", details=[{"field": "plan_id", "message": "must be a paid plan"}])

    price_id = stripe_price_for_plan(plan.id)
    if not price_id:
        raise ValidationError(f"No Stripe price configured for plan: {plan.id}")

    state = get_user_plan_state(user_id)
    url = provider.create_checkout_session(
        user_id=user_id,
        plan_id=plan.id,
        price_id=price_id,
        success_url=success_url,
        cancel_url=cancel_url,
        customer_id=state.stripe_customer_id if state else None,
    )
    log_event("info", "billing.checkout_created", user_id=user_id, extra={"plan_id": plan.id})
    return url


def start_portal(user_id: str, return_url: str) -> str:
    provider = _require_provider()

    state = get_user_plan_state(user_id)
    if state is None or not state.stripe_customer_id:
        raise NotFoundError("Customer not found. Complete checkout first.")

    return provider.create_portal_session(customer_id=state.stripe_customer_id, return_url=return_url)


def _handle_checkout_completed(event: BillingWebhookEvent) -> str:
    user_id = event.metadata.get("user_id")
    plan_id = event.metadata.get("plan_id")
    if not user_id or not plan_id:
        log_event("error", "billing.webhook_missing_metadata", event_type=event.event_type, extra={"event_id": event.event_id})
        return "dropped"
    plan = get_plan_by_id(plan_id)
    if plan is None or plan.id == TRIAL_PLAN_ID:
        log_event("error", "billing.webhook_unknown_plan", user_id=user_id, event_type=event.event_type, extra={"plan_id": plan_id})
        return "dropped"

    upgrade_plan(
        user_id,
        plan_id,
        event.data.get("customer"),
        event.data.get("subscription"),
        now=event.created,
    )
    return "upgraded"


def _handle_subscription_updated(event: BillingWebhookEvent) -> str:
    user_id = event.metadata.get("user_id")
    if not user_id:
        log_event("error", "billing.webhook_missing_metadata", event_type=event.event_type, extra={"event_id": event.event_id})
        return "dropped"

    status = event.data.get("status")
    log_event("info", "billing.subscription_updated", user_id=user_id, extra={"status": status})
    if status in CANCELLING_STATUSES:
        cancel_subscription(user_id, now=event.created)
        return "cancelled"
    # TODO: move past_due subscriptions to past_due once dunning emails exist
    return "ignored"


def _handle_subscription_deleted(event: BillingWebhookEvent) -> str:
    user_id = event.metadata.get("user_id")
    if not user_id:
        log_event("error", "billing.webhook_missing_metadata", event_type=event.event_type, extra={"event_id": event.event_id})
        return "dropped"

    cancel_subscription(user_id, now=event.created)
    return "cancelled"


def _handle_invoice_payment_failed(event: BillingWebhookEvent) -> str:
    log_event(
        "error",
        "billing.invoice_payment_failed",
        event_type=event.event_type,
        extra={
            "invoice_id": event.data.get("id"),
            "subscription_id": event.data.get("subscription"),
            "attempt_count": event.data.get("attempt_count"),
        },
    )
    return "logged"


HANDLERS: Dict[str, Callable[[BillingWebhookEvent], str]] = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.updated": _handle_subscription_updated,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "invoice.payment_failed": _handle_invoice_payment_failed,
}


def handle_webhook_event(event: BillingWebhookEvent) -> str:
    """
    Apply a verified event to plan state.

    Returns the outcome label. Handler failures propagate so the route
    answers 500 and Stripe redelivers.
    """
    log_event("info", "billing.webhook_received", event_type=event.event_type, extra={"event_id": event.event_id})
    handler = HANDLERS.get(event.event_type)
    if handler is None:
        log_event("info", "billing.webhook_unhandled", event_type=event.event_type)
        outcome = "unhandled"
    else:
        try:
            outcome = handler(event)
        except Exception:
            stripe_webhooks_total.inc(labels={"event_type": event.event_type, "outcome": "failed"})
            raise
    stripe_webhooks_total.inc(labels={"event_type": event.event_type, "outcome": outcome})
    return outcome


def process_webhook(body: bytes, signature: Optional[str]) -> BillingWebhookEvent:
    """
    Verify and dispatch a raw webhook delivery.

    Raises:
        BillingDisabledError: Stripe not configured
        BillingWebhookError: missing or invalid signature (nothing processed)
    """
    provider = _require_provider()
    event = provider.verify_webhook(body, signature)
    handle_webhook_event(event)
    return event
