"""Billing CLI commands."""

import click
from flask.cli import with_appcontext

from braik.extensions import db
from braik.models import AccountStatus, Team
from braik.services.billing import (
    get_billing_state,
    record_payment,
    sync_team_account_status,
    team_billing_context,
)
from braik.services.errors import BraikError
from braik.services.payloads import parse_date


@click.group('billing')
def billing_commands():
    """Billing state commands."""
    pass


@billing_commands.command('status')
@click.option('--team-id', required=True, help='Team ID')
@click.option('--date', 'on_date', help='Evaluate as of this date (YYYY-MM-DD, default today)')
@with_appcontext
def billing_status(team_id, on_date):
    """Show the computed billing state of a team."""
    team = db.session.get(Team, team_id)
    if not team:
        click.echo(click.style(f'Error: Team "{team_id}" not found', fg='red'))
        return

    try:
        today = parse_date(on_date, 'date')
    except BraikError as e:
        click.echo(click.style(f'Error: {e}', fg='red'))
        return

    context = team_billing_context(team, today)
    state = get_billing_state(context)
    if not state.is_read_only:
        color = 'green'
    else:
        color = 'red' if state.status == AccountStatus.LOCKED else 'yellow'

    click.echo(f'Team: {team.name}')
    click.echo(click.style(f'  Status: {state.status.value}', fg=color))
    click.echo(f'  Reason: {state.reason}')
    click.echo(f'  Paid: {context.amount_paid} / {context.subscription_amount} cents')
    click.echo(f'  First game week: {context.first_game_week_date or "unknown"}')
    for flag, allowed in state.to_dict().items():
        if flag.startswith('can_'):
            click.echo(f'  {flag}: {"yes" if allowed else "no"}')


@billing_commands.command('sync')
@click.option('--team-id', help='Team ID (default: every team)')
@with_appcontext
def billing_sync(team_id):
    """Recompute and store account status, logging any transition."""
    team_ids = [team_id] if team_id else [t.id for t in db.session.query(Team).all()]
    changed = 0
    for tid in team_ids:
        team = db.session.get(Team, tid)
        if team is None:
            click.echo(click.style(f'Error: Team "{tid}" not found', fg='red'))
            continue
        before = team.account_status
        after = sync_team_account_status(tid)
        if before != after:
            changed += 1
            click.echo(f'  {team.name}: {before.value if before else "unset"} -> {after.value}')

    click.echo(click.style(f'Synced {len(team_ids)} team(s), {changed} changed.', fg='green'))


@billing_commands.command('record-payment')
@click.option('--team-id', required=True, help='Team ID')
@click.option('--amount-cents', type=int, required=True, help='Payment amount in cents')
@with_appcontext
def billing_record_payment(team_id, amount_cents):
    """Record a payment received outside the app."""
    try:
        state = record_payment(team_id, amount_cents)
    except BraikError as e:
        db.session.rollback()
        click.echo(click.style(f'Error: {e}', fg='red'))
        return

    click.echo(click.style('Payment recorded.', fg='green'))
    click.echo(f'  Status: {state.status.value}')
