"""
ngoinfo/features/quota/service.py

Quota and trial state machine.

Handles:
- Status resolution (pure, from a plan-state row and a clock)
- Trial initialization (idempotent, one row per user)
- Usage consumption (single conditional UPDATE, no read-then-write race)
- Webhook-driven upgrade and cancellation (fixed-value writes, replay safe)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.exc import IntegrityError

from ngoinfo.core.database import get_db_session, usage_logs, user_plan_state
from ngoinfo.core.errors import NotFoundError, QuotaExceededError
from ngoinfo.core.logging import log_event
from ngoinfo.core.metrics import quota_exceeded_total
from ngoinfo.core.telemetry import track
from ngoinfo.features.plans.catalog import TRIAL_PLAN_ID, get_plan_by_id, get_trial_plan
from ngoinfo.models.quota import QuotaStatus, UserPlanState


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything here is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now(now: Optional[datetime] = None) -> datetime:
    return _utc(now) if now is not None else datetime.now(timezone.utc)


def _row_to_state(row) -> UserPlanState:
    return UserPlanState(
        user_id=row.user_id,
        plan_id=row.plan_id,
        quota_used=row.quota_used,
        monthly_quota=row.monthly_quota,
        trial_expires_at=_utc(row.trial_expires_at),
        subscription_status=row.subscription_status,
        stripe_customer_id=row.stripe_customer_id,
        stripe_subscription_id=row.stripe_subscription_id,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def is_trial_active(state: Optional[UserPlanState], now: datetime) -> bool:
    if state is None or state.trial_expires_at is None:
        return False
    return _utc(now) < _utc(state.trial_expires_at)


def trial_hours_remaining(state: Optional[UserPlanState], now: datetime) -> Optional[int]:
    if state is None or state.trial_expires_at is None:
        return None
    remaining = _utc(state.trial_expires_at) - _utc(now)
    if remaining.total_seconds() <= 0:
        return 0
    return int(remaining.total_seconds() // 3600)


def resolve_quota_status(state: Optional[UserPlanState], now: datetime) -> QuotaStatus:
    """Compute whether the user may generate right now. No side effects.

    A missing row means the trial was never initialized; generation stays
    closed until ensure_trial() has run.
    """
    if state is None:
        trial = get_trial_plan()
        return QuotaStatus(
            plan_id=TRIAL_PLAN_ID,
            quota_used=0,
            quota_remaining=trial.proposals_per_month,
            monthly_quota=trial.proposals_per_month,
            can_generate=False,
            is_trial=True,
            trial_active=False,
            trial_hours_remaining=None,
        )

    quota_remaining = max(0, state.monthly_quota - state.quota_used)
    is_trial = state.plan_id == TRIAL_PLAN_ID
    trial_active = is_trial_active(state, now)
    can_generate = quota_remaining > 0 and (
        (is_trial and trial_active)
        or (not is_trial and state.subscription_status == "active")
    )

    return QuotaStatus(
        plan_id=state.plan_id,
        quota_used=state.quota_used,
        quota_remaining=quota_remaining,
        monthly_quota=state.monthly_quota,
        can_generate=can_generate,
        is_trial=is_trial,
        trial_active=trial_active,
        trial_hours_remaining=trial_hours_remaining(state, now),
    )


def get_user_plan_state(user_id: str, session=None) -> Optional[UserPlanState]:
    """Get the user's plan-state row, or None when it was never created."""
    query = select(user_plan_state).where(user_plan_state.c.user_id == user_id)
    if session is not None:
        row = session.execute(query).first()
        return _row_to_state(row) if row else None
    with get_db_session() as db:
        row = db.execute(query).first()
        return _row_to_state(row) if row else None


def check_quota(user_id: str, now: Optional[datetime] = None) -> QuotaStatus:
    return resolve_quota_status(get_user_plan_state(user_id), _now(now))


def ensure_trial(user_id: str, now: Optional[datetime] = None) -> UserPlanState:
    """
    Initialize the user's trial if they have no plan state yet.

    Idempotent: an existing row is returned unchanged. Two concurrent first
    calls race on the primary key; the loser re-reads the winner's row.
    """
    existing = get_user_plan_state(user_id)
    if existing:
        return existing

    current = _now(now)
    trial = get_trial_plan()
    try:
        with get_db_session() as session:
            session.execute(
                insert(user_plan_state).values(
                    user_id=user_id,
                    plan_id=TRIAL_PLAN_ID,
                    quota_used=0,
                    monthly_quota=trial.proposals_per_month,
                    trial_expires_at=current + timedelta(days=trial.trial_days),
                    subscription_status="trial",
                    created_at=current,
                    updated_at=current,
                )
            )
    except IntegrityError:
        log_event("info", "quota.trial_exists", user_id=user_id, event_type="trial_race")
        state = get_user_plan_state(user_id)
        if state is None:
            raise
        return state

    log_event("info", "quota.trial_initialized", user_id=user_id, event_type="trial_started")
    track("monetisation:trial_started", {"plan_id": TRIAL_PLAN_ID, "trial_days": trial.trial_days}, user_id=user_id)
    return get_user_plan_state(user_id)


def _eligible(now: datetime):
    trial_ok = and_(
        user_plan_state.c.plan_id == TRIAL_PLAN_ID,
        user_plan_state.c.trial_expires_at.isnot(None),
        user_plan_state.c.trial_expires_at > now,
    )
    paid_ok = and_(
        user_plan_state.c.plan_id != TRIAL_PLAN_ID,
        user_plan_state.c.subscription_status == "active",
    )
    return or_(trial_ok, paid_ok)


def consume_quota(session, user_id: str, now: Optional[datetime] = None) -> None:
    """
    Spend one generation inside the caller's transaction.

    The limit and eligibility are checked by the UPDATE itself, so two
    concurrent requests can never push quota_used past monthly_quota.

    Raises:
        QuotaExceededError: no row matched (limit reached, trial expired,
            subscription not active, or trial never initialized)
    """
    current = _now(now)
    result = session.execute(
        update(user_plan_state)
        .where(user_plan_state.c.user_id == user_id)
        .where(user_plan_state.c.quota_used < user_plan_state.c.monthly_quota)
        .where(_eligible(current))
        .values(quota_used=user_plan_state.c.quota_used + 1, updated_at=current)
    )
    if result.rowcount == 1:
        return

    status = resolve_quota_status(get_user_plan_state(user_id, session=session), current)
    quota_exceeded_total.inc(labels={"plan_id": status.plan_id})
    log_event("warning", "quota.consume_rejected", user_id=user_id, error_code="quota_exceeded")
    raise QuotaExceededError("Quota exceeded", quota=status.model_dump(mode="json"))


def append_usage_log(session, user_id: str, proposal_id: Optional[str], action: str = "generate", now: Optional[datetime] = None) -> bool:
    """Best-effort audit entry. A failure rolls back only its own SAVEPOINT."""
    try:
        with session.begin_nested():
            session.execute(
                insert(usage_logs).values(
                    user_id=user_id,
                    proposal_id=proposal_id,
                    action=action,
                    created_at=_now(now),
                )
            )
        return True
    except Exception as exc:
        log_event(
            "warning",
            "quota.usage_log_failed",
            user_id=user_id,
            proposal_id=proposal_id,
            error_code="usage_log_failed",
            extra={"error": exc},
        )
        return False


def list_usage_logs(user_id: str) -> list:
    with get_db_session() as session:
        rows = session.execute(
            select(usage_logs)
            .where(usage_logs.c.user_id == user_id)
            .order_by(usage_logs.c.id)
        ).all()
        return [
            {
                "user_id": row.user_id,
                "proposal_id": row.proposal_id,
                "action": row.action,
                "created_at": _utc(row.created_at),
            }
            for row in rows
        ]


def upgrade_plan(
    user_id: str,
    plan_id: str,
    stripe_customer_id: Optional[str],
    stripe_subscription_id: Optional[str],
    now: Optional[datetime] = None,
) -> UserPlanState:
    """
    Move the user onto a paid plan after a completed checkout.

    Every field is set to a fixed value, so replaying the same event yields
    the same row. A missing row is created rather than ignored.
    """
    plan = get_plan_by_id(plan_id)
    if plan is None or plan.id == TRIAL_PLAN_ID:
        raise NotFoundError(f"Unknown paid plan: {plan_id}")

    current = _now(now)
    values = dict(
        plan_id=plan.id,
        monthly_quota=plan.proposals_per_month,
        quota_used=0,
        subscription_status="active",
        stripe_customer_id=stripe_customer_id,
        stripe_subscription_id=stripe_subscription_id,
        trial_expires_at=None,
        updated_at=current,
    )
    with get_db_session() as session:
        result = session.execute(
            update(user_plan_state).where(user_plan_state.c.user_id == user_id).values(**values)
        )
        if result.rowcount == 0:
            session.execute(insert(user_plan_state).values(user_id=user_id, created_at=current, **values))

    log_event("info", "quota.plan_upgraded", user_id=user_id, event_type="plan_upgraded", extra={"plan_id": plan.id})
    track("monetisation:plan_upgraded", {"plan_id": plan.id}, user_id=user_id)
    return get_user_plan_state(user_id)


def cancel_subscription(user_id: str, now: Optional[datetime] = None) -> UserPlanState:
    """Mark the subscription cancelled, whatever the prior state was."""
    current = _now(now)
    with get_db_session() as session:
        result = session.execute(
            update(user_plan_state)
            .where(user_plan_state.c.user_id == user_id)
            .values(subscription_status="cancelled", updated_at=current)
        )
        if result.rowcount == 0:
            trial = get_trial_plan()
            session.execute(
                insert(user_plan_state).values(
                    user_id=user_id,
                    plan_id=TRIAL_PLAN_ID,
                    quota_used=0,
                    monthly_quota=trial.proposals_per_month,
                    trial_expires_at=None,
                    subscription_status="cancelled",
                    created_at=current,
                    updated_at=current,
                )
            )

    log_event("info", "quota.subscription_cancelled", user_id=user_id, event_type="subscription_cancelled")
    track("monetisation:subscription_canceled", {}, user_id=user_id)
    return get_user_plan_state(user_id)
