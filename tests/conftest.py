"""Shared fixtures for the Braik test suite."""

from datetime import date
from types import SimpleNamespace

import pytest
from flask_login import FlaskLoginClient

from braik import create_app
from braik.config import Config
from braik.extensions import db
from braik.models import (
    Game,
    Guardian,
    GuardianPlayer,
    Membership,
    MembershipRole,
    Organization,
    OrganizationType,
    Player,
    PlayerStatus,
    Season,
    Team,
    User,
)
from braik.services.roster import apply_staff_assignment, build_assignment


class TestConfig(Config):
    __test__ = False

    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False
    NOTIFICATION_QUEUE_ENABLED = False
    AI_PLATFORM_DISABLED = False


class _IsolatedLoginClient(FlaskLoginClient):
    """Drop Flask-Login's cached user from the shared test app context before
    each request so clients logged in as different users don't leak into each other."""

    def open(self, *args, **kwargs):
        from flask import g
        g.pop('_login_user', None)
        return super().open(*args, **kwargs)


@pytest.fixture
def app():
    """Create and configure a test application instance."""
    app = create_app(TestConfig)
    app.test_client_class = _IsolatedLoginClient

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class Factory:
    """Row builders; every call commits."""

    def user(self, email, password=None, name=None):
        user = User(email=email, name=name)
        if password:
            user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    def team(self, name='Varsity Football', org_type=OrganizationType.SCHOOL, **fields):
        org = Organization(name=f'{name} Org', org_type=org_type)
        db.session.add(org)
        db.session.flush()
        team = Team(org_id=org.id, name=name, **fields)
        db.session.add(team)
        db.session.commit()
        return team

    def member(self, team, user, role, coordinator_type=None, position_groups=None):
        membership = Membership(user_id=user.id, team_id=team.id, role=role)
        db.session.add(membership)
        db.session.flush()
        if coordinator_type or position_groups:
            apply_staff_assignment(membership, build_assignment(coordinator_type, position_groups))
        db.session.commit()
        return membership

    def player(self, team, first_name, last_name, position_group=None, user=None, status=PlayerStatus.ACTIVE):
        player = Player(
            team_id=team.id,
            first_name=first_name,
            last_name=last_name,
            position_group=position_group,
            user_id=user.id if user else None,
            status=status,
        )
        db.session.add(player)
        db.session.commit()
        return player

    def guardian(self, user, player):
        guardian = db.session.query(Guardian).filter_by(user_id=user.id).first()
        if guardian is None:
            guardian = Guardian(user_id=user.id)
            db.session.add(guardian)
            db.session.flush()
        link = GuardianPlayer(guardian_id=guardian.id, player_id=player.id)
        db.session.add(link)
        db.session.commit()
        return link

    def game(self, team, game_date, confirmed=True):
        season = db.session.query(Season).filter_by(team_id=team.id, year=game_date.year).first()
        if season is None:
            season = Season(team_id=team.id, year=game_date.year)
            db.session.add(season)
            db.session.flush()
        game = Game(team_id=team.id, season_id=season.id, game_date=game_date, confirmed_by_coach=confirmed)
        db.session.add(game)
        db.session.commit()
        return game


@pytest.fixture
def factory(app):
    return Factory()


def _build_program(factory, **team_fields):
    team = factory.team(**team_fields)

    hc = factory.user('hc@central.edu', password='CoachPass123!', name='Head Coach')
    oc = factory.user('oc@central.edu', name='Offensive Coordinator')
    dc = factory.user('dc@central.edu', name='Defensive Coordinator')
    wr_coach = factory.user('wr@central.edu', name='WR Coach')
    assistant = factory.user('assistant@central.edu', name='Assistant')
    qb_user = factory.user('qb@central.edu', name='Quinn Back')
    dl_user = factory.user('dl@central.edu', name='Dee Line')
    parent = factory.user('parent@central.edu', name='Pat Back')

    factory.member(team, hc, MembershipRole.HEAD_COACH)
    factory.member(team, oc, MembershipRole.ASSISTANT_COACH, coordinator_type='OFFENSIVE_COORDINATOR')
    factory.member(team, dc, MembershipRole.ASSISTANT_COACH, coordinator_type='DEFENSIVE_COORDINATOR')
    factory.member(team, wr_coach, MembershipRole.ASSISTANT_COACH, position_groups=['WR'])
    factory.member(team, assistant, MembershipRole.ASSISTANT_COACH)
    factory.member(team, qb_user, MembershipRole.PLAYER)
    factory.member(team, dl_user, MembershipRole.PLAYER)
    factory.member(team, parent, MembershipRole.PARENT)

    qb = factory.player(team, 'Quinn', 'Back', 'QB', user=qb_user)
    dl = factory.player(team, 'Dee', 'Line', 'DL', user=dl_user)
    wr = factory.player(team, 'Wes', 'Receiver', 'WR')
    factory.guardian(parent, qb)

    return SimpleNamespace(
        team_id=team.id,
        hc=hc.id,
        oc=oc.id,
        dc=dc.id,
        wr_coach=wr_coach.id,
        assistant=assistant.id,
        qb_user=qb_user.id,
        dl_user=dl_user.id,
        parent=parent.id,
        qb_player=qb.id,
        dl_player=dl.id,
        wr_player=wr.id,
    )


@pytest.fixture
def program(factory):
    """A school team with a head coach, two coordinators, a WR position coach,
    an unassigned assistant, two rostered players and the QB's parent.

    The subscription is zero, so the team is always writable.
    """
    return _build_program(factory)


@pytest.fixture
def unpaid_program(factory):
    """Same staff and roster, but half paid with the first game week behind us."""
    program = _build_program(factory, subscription_amount_cents=1000, amount_paid_cents=500)
    team = db.session.get(Team, program.team_id)
    factory.game(team, date(date.today().year - 1, 9, 1))
    return program


def login(app, user_id):
    """Test client with ``user_id`` logged in."""
    return app.test_client(user=db.session.get(User, user_id))


@pytest.fixture
def login_as(app):
    return lambda user_id: login(app, user_id)
