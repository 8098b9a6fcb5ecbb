"""Team management CLI commands."""

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from braik.extensions import db
from braik.models import (
    Game,
    Membership,
    MembershipRole,
    Organization,
    OrganizationType,
    Season,
    Team,
    User,
)
from braik.services.billing import sync_team_account_status, update_first_game_week_date
from braik.services.errors import BraikError
from braik.services.messaging import ThreadService
from braik.services.payloads import parse_date
from braik.services.roster import apply_staff_assignment, build_assignment


@click.group('team')
def team_commands():
    """Team management commands."""
    pass


def _get_or_create_user(email: str) -> User:
    email = email.strip().lower()
    user = db.session.query(User).filter_by(email=email).first()
    if user is None:
        user = User(email=email)
        db.session.add(user)
        db.session.flush()
    return user


@team_commands.command('create')
@click.option('--name', required=True, help='Team name')
@click.option('--org-name', required=True, help='Organization (school or college) name')
@click.option('--org-type', type=click.Choice([t.value for t in OrganizationType]),
              default=OrganizationType.SCHOOL.value, show_default=True)
@click.option('--head-coach-email', help='Email of the head coach (created if missing)')
@click.option('--season-start', help='Season start date (YYYY-MM-DD)')
@click.option('--season-end', help='Season end date (YYYY-MM-DD)')
@click.option('--subscription-cents', type=int, default=0, show_default=True,
              help='Subscription amount in cents')
@with_appcontext
def create_team(name, org_name, org_type, head_coach_email, season_start, season_end, subscription_cents):
    """Create a team, its organization if needed, and optionally its head coach.

    Example:
        flask team create --name "Varsity Football" --org-name "Central High" --head-coach-email hc@central.edu
    """
    try:
        org = db.session.query(Organization).filter_by(name=org_name).first()
        if org is None:
            org = Organization(name=org_name, org_type=OrganizationType(org_type))
            db.session.add(org)
            db.session.flush()

        team = Team(
            org_id=org.id,
            name=name,
            season_start=parse_date(season_start, 'season_start'),
            season_end=parse_date(season_end, 'season_end'),
            subscription_amount_cents=subscription_cents,
        )
        db.session.add(team)
        db.session.flush()

        if head_coach_email:
            coach = _get_or_create_user(head_coach_email)
            db.session.add(Membership(user_id=coach.id, team_id=team.id, role=MembershipRole.HEAD_COACH))

        db.session.commit()

        if head_coach_email:
            ThreadService.ensure_general_chat(team.id)

        status = sync_team_account_status(team.id)

        click.echo(click.style('Team created successfully!', fg='green'))
        click.echo(f'  ID: {team.id}')
        click.echo(f'  Organization: {org.name} ({org.org_type.value})')
        click.echo(f'  Billing status: {status.value}')
    except (BraikError, IntegrityError) as e:
        db.session.rollback()
        click.echo(click.style(f'Error creating team: {e}', fg='red'))


@team_commands.command('add-member')
@click.option('--team-id', required=True, help='Team ID')
@click.option('--email', required=True, help='Member email (created if missing)')
@click.option('--role', type=click.Choice([r.value for r in MembershipRole]), required=True)
@with_appcontext
def add_member(team_id, email, role):
    """Add a user to a team with the given role."""
    team = db.session.get(Team, team_id)
    if not team:
        click.echo(click.style(f'Error: Team "{team_id}" not found', fg='red'))
        return

    user = _get_or_create_user(email)
    existing = db.session.query(Membership).filter_by(user_id=user.id, team_id=team.id).first()
    if existing:
        click.echo(click.style(f'Error: {email} is already a {existing.role.value} on this team', fg='red'))
        db.session.rollback()
        return

    db.session.add(Membership(user_id=user.id, team_id=team.id, role=MembershipRole(role)))
    db.session.commit()

    try:
        ThreadService.ensure_general_chat(team.id)
    except BraikError as e:
        click.echo(click.style(f'Warning: General Chat not updated: {e}', fg='yellow'))

    click.echo(click.style(f'Added {email} to {team.name} as {role}', fg='green'))


@team_commands.command('assign-role')
@click.option('--team-id', required=True, help='Team ID')
@click.option('--email', required=True, help='Assistant coach email')
@click.option('--coordinator-type', help='OFFENSIVE_COORDINATOR, DEFENSIVE_COORDINATOR or SPECIAL_TEAMS_COORDINATOR')
@click.option('--position-group', 'position_groups', multiple=True, help='Position group (repeatable)')
@with_appcontext
def assign_role(team_id, email, coordinator_type, position_groups):
    """Set an assistant coach's coordinator type or position groups.

    With neither option the assignment is cleared.
    """
    membership = (
        db.session.query(Membership)
        .join(User, User.id == Membership.user_id)
        .filter(Membership.team_id == team_id, User.email == email.strip().lower())
        .first()
    )
    if not membership:
        click.echo(click.style(f'Error: {email} is not a member of team "{team_id}"', fg='red'))
        return

    try:
        apply_staff_assignment(membership, build_assignment(coordinator_type, list(position_groups)))
        db.session.commit()
    except BraikError as e:
        db.session.rollback()
        click.echo(click.style(f'Error: {e}', fg='red'))
        return

    click.echo(click.style('Assignment updated.', fg='green'))
    click.echo(f'  Permissions: {membership.permissions}')
    click.echo(f'  Position groups: {membership.position_groups}')


@team_commands.command('add-game')
@click.option('--team-id', required=True, help='Team ID')
@click.option('--date', 'game_date', required=True, help='Game date (YYYY-MM-DD)')
@click.option('--opponent', help='Opponent name')
@click.option('--year', type=int, help='Season year (defaults to the game year)')
@click.option('--confirmed', is_flag=True, help='Mark the game as confirmed by the coach')
@with_appcontext
def add_game(team_id, game_date, opponent, year, confirmed):
    """Add a game to the schedule and refresh the season's first game week.

    Only coach-confirmed games count toward the first game week.
    """
    team = db.session.get(Team, team_id)
    if not team:
        click.echo(click.style(f'Error: Team "{team_id}" not found', fg='red'))
        return

    try:
        played_on = parse_date(game_date, 'date')
    except BraikError as e:
        click.echo(click.style(f'Error: {e}', fg='red'))
        return

    year = year or played_on.year
    season = db.session.query(Season).filter_by(team_id=team.id, year=year).first()
    if season is None:
        season = Season(team_id=team.id, year=year)
        db.session.add(season)
        db.session.flush()

    db.session.add(Game(
        team_id=team.id,
        season_id=season.id,
        opponent=opponent,
        game_date=played_on,
        confirmed_by_coach=confirmed,
    ))
    db.session.flush()
    db.session.refresh(season)
    first_week = update_first_game_week_date(season)
    db.session.commit()
    status = sync_team_account_status(team.id)

    click.echo(click.style('Game added.', fg='green'))
    click.echo(f'  First game week: {first_week.isoformat() if first_week else "unknown"}')
    click.echo(f'  Billing status: {status.value}')
