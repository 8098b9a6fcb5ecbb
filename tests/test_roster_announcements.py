"""Roster reads, staff assignments, guardians and announcements."""

import pytest

from braik.extensions import db
from braik.models import AnnouncementAudience, Membership, MembershipRole, Notification
from braik.services.announcements import AnnouncementService
from braik.services.errors import PermissionDenied, ValidationError
from braik.services.membership import MembershipDirectory
from braik.services.roster import RosterService, build_assignment
from braik.services.scoping import NoAssignment, OwnChildScope, PositionGroupsScope, UnitScope


def _last_names(players):
    return [p.last_name for p in players]


def test_roster_is_filtered_by_scope(program):
    assert _last_names(RosterService.list_players(program.team_id, program.hc)) == ['Back', 'Line', 'Receiver']
    assert _last_names(RosterService.list_players(program.team_id, program.oc)) == ['Back', 'Receiver']
    assert _last_names(RosterService.list_players(program.team_id, program.dc)) == ['Line']
    assert _last_names(RosterService.list_players(program.team_id, program.wr_coach)) == ['Receiver']
    assert _last_names(RosterService.list_players(program.team_id, program.parent)) == ['Back']
    assert len(RosterService.list_players(program.team_id, program.qb_user)) == 3
    assert len(RosterService.list_players(program.team_id, program.assistant)) == 3


def test_add_player_with_account(program):
    player = RosterService.add_player(program.team_id, program.hc, {
        'first_name': 'Tia',
        'last_name': 'End',
        'position_group': 'te',
        'email': 'TE@central.edu',
    })
    assert player.position_group == 'TE'
    assert player.user_id is not None

    membership = MembershipDirectory.find_membership(player.user_id, program.team_id)
    assert membership.role == MembershipRole.PLAYER
    assert MembershipDirectory.load_context(player.user_id, program.team_id).scope.player_id == player.id


def test_parents_cannot_edit_roster(program):
    with pytest.raises(PermissionDenied):
        RosterService.add_player(program.team_id, program.parent, {'first_name': 'A', 'last_name': 'B'})


def test_coordinator_edits_only_own_unit_players(program):
    updated = RosterService.update_player(program.team_id, program.qb_player, program.oc, {'jersey_number': 7})
    assert updated.jersey_number == 7
    with pytest.raises(PermissionDenied):
        RosterService.update_player(program.team_id, program.dl_player, program.oc, {'jersey_number': 99})


def test_link_guardian_creates_parent_membership(program, factory):
    guardian = factory.user('guardian@central.edu')
    RosterService.link_guardian(program.team_id, program.dl_player, program.hc, guardian.id)

    context = MembershipDirectory.load_context(guardian.id, program.team_id)
    assert context.role == MembershipRole.PARENT
    assert context.scope == OwnChildScope(frozenset({program.dl_player}))


def test_link_guardian_rejects_staff(program):
    with pytest.raises(ValidationError):
        RosterService.link_guardian(program.team_id, program.qb_player, program.hc, program.oc)


def test_head_coach_assigns_staff_roles(program):
    membership = MembershipDirectory.find_membership(program.assistant, program.team_id)

    RosterService.assign_staff_role(program.team_id, program.hc, membership.id, position_groups=['ol', 'TE'])
    context = MembershipDirectory.load_context(program.assistant, program.team_id)
    assert context.scope == PositionGroupsScope(frozenset({'OL', 'TE'}))

    RosterService.assign_staff_role(program.team_id, program.hc, membership.id, coordinator_type='ST')
    context = MembershipDirectory.load_context(program.assistant, program.team_id)
    assert isinstance(context.scope, UnitScope)
    assert db.session.get(Membership, membership.id).position_groups is None

    with pytest.raises(PermissionDenied):
        RosterService.assign_staff_role(program.team_id, program.oc, membership.id)


def test_build_assignment_validation():
    assert build_assignment() == NoAssignment()
    with pytest.raises(ValidationError):
        build_assignment('HEAD_WIZARD')
    with pytest.raises(ValidationError):
        build_assignment('OFFENSIVE_COORDINATOR', ['QB'])


def test_staff_assignment_needs_an_assistant(program):
    membership = MembershipDirectory.find_membership(program.qb_user, program.team_id)
    with pytest.raises(ValidationError):
        RosterService.assign_staff_role(program.team_id, program.hc, membership.id, coordinator_type='OC')


def test_announcement_audiences(program):
    AnnouncementService.create_announcement(program.team_id, program.hc, {'title': 'Picture day', 'body': 'Friday'})
    AnnouncementService.create_announcement(program.team_id, program.oc, {'title': 'Lift', 'body': '6am', 'audience': 'team'})
    AnnouncementService.create_announcement(program.team_id, program.hc, {'title': 'Fundraiser', 'body': 'Bring cookies', 'audience': 'parents'})

    def titles(user_id):
        return sorted(a.title for a in AnnouncementService.list_announcements(program.team_id, user_id))

    assert titles(program.hc) == ['Fundraiser', 'Lift', 'Picture day']
    assert titles(program.qb_user) == ['Lift', 'Picture day']
    assert titles(program.parent) == ['Fundraiser', 'Picture day']


def test_only_head_coach_announces_to_parents(program):
    with pytest.raises(PermissionDenied):
        AnnouncementService.create_announcement(program.team_id, program.oc, {
            'title': 'Carpool',
            'body': 'Sign up',
            'audience': AnnouncementAudience.PARENTS.value,
        })
    with pytest.raises(PermissionDenied):
        AnnouncementService.create_announcement(program.team_id, program.qb_user, {'title': 'Hi', 'body': 'All'})


def test_announcement_notifies_audience(program):
    AnnouncementService.create_announcement(program.team_id, program.hc, {'title': 'Lift', 'body': '6am', 'audience': 'team'})
    recipients = {n.user_id for n in db.session.query(Notification).filter_by(notification_type='announcement')}
    assert program.qb_user in recipients
    assert program.parent not in recipients
    assert program.hc not in recipients
