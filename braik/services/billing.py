"""Season billing state machine and the billing gate for mutating actions.

The state is derived, never stored as a transition log:

    LOCKED     the platform locked the team; nothing is allowed, not even view
    GRACE      pre-season; everything is allowed until the first game week
    ACTIVE     first game week has passed and the subscription is paid
    READ_ONLY  first game week has passed and the subscription is not paid

``Team.account_status`` only caches the last synced status for reporting.
The gate always recomputes from the stored facts and the current date.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Iterable, Optional

from flask import current_app, g, has_request_context

from braik.extensions import db
from braik.models import AccountStatus, Season, Team
from braik.services.audit import log_billing_transition, record_audit
from braik.services.errors import BillingRestricted, ResourceNotFound, ValidationError

DEFAULT_GRACE_MONTHS = (6, 7)

# Gate action -> BillingState flag
ACTIONS = {
    "create": "can_create",
    "modify": "can_modify",
    "message": "can_message",
    "edit_events": "can_edit_events",
    "edit_depth_charts": "can_edit_depth_charts",
    "use_ai": "can_use_ai",
    "view": "can_view",
}


@dataclass(frozen=True)
class BillingContext:
    """Billing facts for one team on one day."""

    team_id: str
    current_date: date
    season_year: int
    season_start: Optional[date] = None
    season_end: Optional[date] = None
    first_game_week_date: Optional[date] = None
    payment_due_date: Optional[date] = None
    amount_paid: int = 0
    subscription_amount: int = 0
    ai_enabled: bool = False
    ai_disabled_by_platform: bool = False
    ai_platform_disabled: bool = False
    locked_by_platform: bool = False
    grace_months: tuple[int, ...] = DEFAULT_GRACE_MONTHS


@dataclass(frozen=True)
class BillingState:
    status: AccountStatus
    is_read_only: bool
    can_create: bool
    can_modify: bool
    can_message: bool
    can_edit_events: bool
    can_edit_depth_charts: bool
    can_use_ai: bool
    can_view: bool
    reason: str = ""

    def permits(self, action: str) -> bool:
        try:
            flag = ACTIONS[action]
        except KeyError:
            raise ValueError(f"Unknown billing action: {action}") from None
        return getattr(self, flag)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _writable(status: AccountStatus, can_use_ai: bool, reason: str) -> BillingState:
    return BillingState(
        status=status,
        is_read_only=False,
        can_create=True,
        can_modify=True,
        can_message=True,
        can_edit_events=True,
        can_edit_depth_charts=True,
        can_use_ai=can_use_ai,
        can_view=True,
        reason=reason,
    )


def _read_only(status: AccountStatus, can_view: bool, reason: str) -> BillingState:
    return BillingState(
        status=status,
        is_read_only=True,
        can_create=False,
        can_modify=False,
        can_message=False,
        can_edit_events=False,
        can_edit_depth_charts=False,
        can_use_ai=False,
        can_view=can_view,
        reason=reason,
    )


def locked_state(reason: str = "Account locked by platform owner") -> BillingState:
    return _read_only(AccountStatus.LOCKED, False, reason)


def calculate_account_status(context: BillingContext) -> AccountStatus:
    today = context.current_date

    if context.locked_by_platform:
        return AccountStatus.LOCKED

    if context.first_game_week_date is None:
        if today.month in context.grace_months:
            return AccountStatus.GRACE
        if context.season_start is not None and today < context.season_start:
            return AccountStatus.GRACE
    elif today < context.first_game_week_date:
        return AccountStatus.GRACE

    if context.amount_paid >= context.subscription_amount:
        return AccountStatus.ACTIVE
    return AccountStatus.READ_ONLY


def get_billing_state(context: BillingContext) -> BillingState:
    status = calculate_account_status(context)
    ai_allowed = (
        context.ai_enabled
        and not context.ai_disabled_by_platform
        and not context.ai_platform_disabled
    )

    if status == AccountStatus.ACTIVE:
        return _writable(status, ai_allowed, "Account is active and fully paid")
    if status == AccountStatus.GRACE:
        return _writable(status, ai_allowed, "Pre-season grace period - full access until first game week")
    if status == AccountStatus.READ_ONLY:
        return _read_only(status, True, "Payment required - account is in read-only mode")
    return locked_state()


def first_game_week_date(games: Iterable) -> date | None:
    """Date of the earliest game the coach has confirmed."""
    dates = [game.game_date for game in games if game.confirmed_by_coach]
    return min(dates) if dates else None


def update_first_game_week_date(season: Season) -> date | None:
    """Refresh the cached first game week date on ``season``. The caller commits."""
    season.first_game_week_date = first_game_week_date(season.games)
    invalidate_billing_state(season.team_id)
    return season.first_game_week_date


def current_season(team: Team) -> Season | None:
    return team.seasons[0] if team.seasons else None


def team_billing_context(team: Team, today: date | None = None) -> BillingContext:
    today = today or date.today()
    season = current_season(team)

    first_game_week = None
    if season is not None:
        first_game_week = season.first_game_week_date or first_game_week_date(season.games)

    config = current_app.config
    return BillingContext(
        team_id=team.id,
        current_date=today,
        season_year=season.year if season is not None else today.year,
        season_start=team.season_start,
        season_end=team.season_end,
        first_game_week_date=first_game_week,
        payment_due_date=team.subscription_due_date,
        amount_paid=team.amount_paid_cents or 0,
        subscription_amount=team.subscription_amount_cents or 0,
        ai_enabled=bool(team.ai_enabled),
        ai_disabled_by_platform=bool(team.ai_disabled_by_platform),
        ai_platform_disabled=bool(config.get("AI_PLATFORM_DISABLED", False)),
        locked_by_platform=bool(team.locked_by_platform),
        grace_months=tuple(config.get("BILLING_GRACE_MONTHS", DEFAULT_GRACE_MONTHS)),
    )


def _memo() -> dict[str, BillingState] | None:
    if not has_request_context():
        return None
    if "_billing_states" not in g:
        g._billing_states = {}
    return g._billing_states


def invalidate_billing_state(team_id: str | None = None) -> None:
    memo = _memo()
    if memo is None:
        return
    if team_id is None:
        memo.clear()
    else:
        memo.pop(team_id, None)


def get_team_billing_state(team_id: str) -> BillingState:
    """Billing state for ``team_id``, memoized for the current request only."""
    memo = _memo()
    if memo is not None and team_id in memo:
        return memo[team_id]

    team = db.session.get(Team, team_id)
    if team is None:
        state = locked_state("Team not found")
    else:
        state = get_billing_state(team_billing_context(team))

    if memo is not None:
        memo[team_id] = state
    return state


def require_billing_permission(team_id: str, action: str) -> BillingState:
    """Raise BillingRestricted unless the team's billing state allows ``action``.

    Mutating handlers call this before any role or scope check.
    """
    state = get_team_billing_state(team_id)
    if not state.permits(action):
        current_app.logger.warning(
            f"Billing restriction on team {team_id}: {action} blocked ({state.status.value})"
        )
        raise BillingRestricted(state.status.value, action, state.reason)
    return state


def sync_team_account_status(team_id: str) -> AccountStatus:
    """Recompute the team's status, store it on the team and log any transition."""
    team = db.session.get(Team, team_id)
    if team is None:
        raise ResourceNotFound("Team")

    from_status = team.account_status
    invalidate_billing_state(team_id)
    state = get_team_billing_state(team_id)

    team.account_status = state.status
    db.session.commit()

    if from_status != state.status:
        log_billing_transition(
            team_id,
            from_status.value if from_status else None,
            state.status.value,
            state.reason,
        )
    return state.status


def record_payment(team_id: str, amount_cents: int, actor_user_id: str | None = None) -> BillingState:
    """Add a payment to the team's running total and resync its status."""
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")

    team = db.session.get(Team, team_id)
    if team is None:
        raise ResourceNotFound("Team")

    team.amount_paid_cents = (team.amount_paid_cents or 0) + amount_cents
    record_audit(
        team_id,
        actor_user_id,
        "billing.payment_recorded",
        "team",
        team_id,
        {"amount_cents": amount_cents, "amount_paid_cents": team.amount_paid_cents},
    )
    sync_team_account_status(team_id)
    return get_team_billing_state(team_id)
