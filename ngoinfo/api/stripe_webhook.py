"""
Stripe webhook endpoint.

The raw body is verified before anything is parsed. Signature failures are
400 and nothing is processed; handler failures surface as 500 so Stripe
redelivers.
"""
from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from ngoinfo.core.errors import AppError
from ngoinfo.core.logging import log_event
from ngoinfo.features.billing.provider import BillingWebhookError
from ngoinfo.features.billing.service import process_webhook

router = APIRouter(tags=["billing"])


class InvalidWebhookError(AppError):
    code = "invalid_webhook"
    status_code = 400


@router.post("/api/stripe/webhook")
async def stripe_webhook(request: Request):
    body = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = await run_in_threadpool(process_webhook, body, signature)
    except BillingWebhookError as e:
        log_event("warning", "billing.webhook_rejected", error_code="invalid_webhook", extra={"reason": str(e)})
        raise InvalidWebhookError(str(e))

    return {"received": True, "event_id": event.event_id}
