"""Billing state machine and the billing gate."""

from datetime import date
from types import SimpleNamespace

import pytest

from braik.extensions import db
from braik.models import AccountStatus, AuditLog, Season, Team
from braik.services.billing import (
    BillingContext,
    calculate_account_status,
    first_game_week_date,
    get_billing_state,
    get_team_billing_state,
    record_payment,
    require_billing_permission,
    sync_team_account_status,
    update_first_game_week_date,
)
from braik.services.errors import BillingRestricted, ValidationError

FIRST_GAME = date(2025, 9, 5)


def _context(**overrides):
    fields = dict(
        team_id='t1',
        current_date=date(2025, 10, 1),
        season_year=2025,
        first_game_week_date=FIRST_GAME,
        amount_paid=100000,
        subscription_amount=100000,
        ai_enabled=True,
    )
    fields.update(overrides)
    return BillingContext(**fields)


def test_paid_in_full_after_first_game_week_is_active():
    state = get_billing_state(_context())
    assert state.status == AccountStatus.ACTIVE
    assert not state.is_read_only
    assert state.can_create and state.can_message and state.can_use_ai


def test_half_paid_after_first_game_week_is_read_only():
    state = get_billing_state(_context(amount_paid=500, subscription_amount=1000))
    assert state.status == AccountStatus.READ_ONLY
    assert state.is_read_only
    assert state.can_view
    for action in ('create', 'modify', 'message', 'edit_events', 'edit_depth_charts', 'use_ai'):
        assert not state.permits(action), action


def test_before_first_game_week_is_grace_even_unpaid():
    context = _context(current_date=date(2025, 8, 20), amount_paid=0)
    assert calculate_account_status(context) == AccountStatus.GRACE
    assert get_billing_state(context).can_create


def test_grace_months_apply_until_a_game_is_confirmed():
    unpaid = dict(first_game_week_date=None, amount_paid=0, subscription_amount=1000)
    assert calculate_account_status(_context(current_date=date(2025, 7, 10), **unpaid)) == AccountStatus.GRACE
    assert calculate_account_status(_context(current_date=date(2025, 11, 10), **unpaid)) == AccountStatus.READ_ONLY
    assert calculate_account_status(
        _context(current_date=date(2025, 3, 1), season_start=date(2025, 8, 1), **unpaid)
    ) == AccountStatus.GRACE


def test_platform_lock_blocks_everything_including_view():
    state = get_billing_state(_context(locked_by_platform=True))
    assert state.status == AccountStatus.LOCKED
    assert not state.can_view
    assert not state.permits('view')


def test_platform_ai_switch_disables_ai_on_active_team():
    assert not get_billing_state(_context(ai_platform_disabled=True)).can_use_ai
    assert not get_billing_state(_context(ai_disabled_by_platform=True)).can_use_ai
    assert not get_billing_state(_context(ai_enabled=False)).can_use_ai
    assert get_billing_state(_context(ai_platform_disabled=True)).can_create


def test_unknown_action_is_a_programming_error():
    with pytest.raises(ValueError):
        get_billing_state(_context()).permits('teleport')


def test_first_game_week_counts_confirmed_games_only():
    games = [
        SimpleNamespace(game_date=date(2025, 8, 29), confirmed_by_coach=False),
        SimpleNamespace(game_date=date(2025, 9, 12), confirmed_by_coach=True),
        SimpleNamespace(game_date=date(2025, 9, 5), confirmed_by_coach=True),
    ]
    assert first_game_week_date(games) == date(2025, 9, 5)
    assert first_game_week_date([]) is None


def test_gate_raises_billing_restriction_for_unpaid_team(unpaid_program):
    with pytest.raises(BillingRestricted) as excinfo:
        require_billing_permission(unpaid_program.team_id, 'create')

    error = excinfo.value
    assert error.status_code == 402
    assert error.to_dict()['error']['code'] == 'billing_restriction'
    assert error.to_dict()['error']['status'] == 'READ_ONLY'

    assert require_billing_permission(unpaid_program.team_id, 'view').status == AccountStatus.READ_ONLY


def test_missing_team_is_locked(app):
    state = get_team_billing_state('no-such-team')
    assert state.status == AccountStatus.LOCKED
    assert state.reason == 'Team not found'


def test_payment_restores_write_access(unpaid_program):
    state = record_payment(unpaid_program.team_id, 500, unpaid_program.hc)
    assert state.status == AccountStatus.ACTIVE

    team = db.session.get(Team, unpaid_program.team_id)
    assert team.amount_paid_cents == 1000
    assert team.account_status == AccountStatus.ACTIVE
    audit = db.session.query(AuditLog).filter_by(action='billing.payment_recorded').one()
    assert audit.meta['amount_cents'] == 500


def test_payment_must_be_positive(unpaid_program):
    with pytest.raises(ValidationError):
        record_payment(unpaid_program.team_id, 0)


def test_sync_stores_status(unpaid_program):
    assert sync_team_account_status(unpaid_program.team_id) == AccountStatus.READ_ONLY
    assert db.session.get(Team, unpaid_program.team_id).account_status == AccountStatus.READ_ONLY


def test_update_first_game_week_date(factory):
    team = factory.team()
    factory.game(team, date(2025, 9, 12), confirmed=True)
    factory.game(team, date(2025, 9, 5), confirmed=False)

    season = db.session.query(Season).filter_by(team_id=team.id).one()
    assert update_first_game_week_date(season) == date(2025, 9, 12)
    assert season.first_game_week_date == date(2025, 9, 12)
