"""Thread membership, read-only parents and messaging policy."""

import pytest

from braik.extensions import db
from braik.models import MembershipRole, Notification, OrganizationType, ThreadParticipant, ThreadType
from braik.services.errors import BillingRestricted, PermissionDenied, ResourceNotFound, ValidationError
from braik.services.messaging import (
    ThreadAccess,
    ThreadService,
    messaging_policy,
    validate_thread_composition,
)


def _participants(thread):
    return {p.user_id: p.read_only for p in db.session.query(ThreadParticipant).filter_by(thread_id=thread.id)}


def test_policy_by_role():
    assert messaging_policy(MembershipRole.HEAD_COACH).can_message('parent')
    assert not messaging_policy(MembershipRole.ASSISTANT_COACH).can_message('parent')
    assert messaging_policy(MembershipRole.PLAYER).can_message('coach')
    assert not messaging_policy(MembershipRole.PLAYER).can_create_thread
    assert not messaging_policy(MembershipRole.SCHOOL_ADMIN).can_reply


def test_thread_composition_rules():
    coach, player, parent = MembershipRole.HEAD_COACH, MembershipRole.PLAYER, MembershipRole.PARENT
    assert validate_thread_composition(coach, [player, parent]) is None
    assert validate_thread_composition(MembershipRole.PLAYER, [parent]) is not None
    assert validate_thread_composition(MembershipRole.PARENT, [coach, coach]) == 'Parents cannot create group chats'
    assert validate_thread_composition(MembershipRole.ASSISTANT_COACH, [parent]) == (
        'Assistant coaches cannot create parent-only threads'
    )


def test_parent_of_player_participant_joins_read_only(program):
    thread = ThreadService.create_thread(program.team_id, program.hc, [program.qb_user], subject='Film review')

    participants = _participants(thread)
    assert participants[program.hc] is False
    assert participants[program.qb_user] is False
    assert participants[program.parent] is True


def test_read_only_parent_cannot_post(program):
    thread = ThreadService.create_thread(program.team_id, program.hc, [program.qb_user])

    found, access = ThreadService.get_thread(program.team_id, thread.id, program.parent)
    assert found.id == thread.id
    assert access == ThreadAccess.READ_ONLY

    with pytest.raises(PermissionDenied) as excinfo:
        ThreadService.send_message(program.team_id, thread.id, program.parent, 'Can I join?')
    assert excinfo.value.reason == 'You have read-only access to this thread'


def test_non_participants_cannot_see_threads(program):
    thread = ThreadService.create_thread(program.team_id, program.oc, [program.qb_user])
    with pytest.raises(ResourceNotFound):
        ThreadService.get_thread(program.team_id, thread.id, program.dl_user)
    assert ThreadService.list_threads(program.team_id, program.dl_user) == []


def test_players_cannot_start_threads(program):
    with pytest.raises(PermissionDenied):
        ThreadService.create_thread(program.team_id, program.qb_user, [program.hc])


def test_assistant_cannot_message_parent_directly(program):
    with pytest.raises(ValidationError):
        ThreadService.create_thread(program.team_id, program.oc, [program.parent])


def test_head_coach_one_on_one_with_parent(program):
    thread = ThreadService.create_thread(program.team_id, program.hc, [program.parent])
    message = ThreadService.send_message(program.team_id, thread.id, program.parent, 'Thanks coach')
    assert message.created_by == program.parent


def test_participants_must_be_team_members(program, factory):
    outsider = factory.user('outsider@elsewhere.edu')
    with pytest.raises(ValidationError):
        ThreadService.create_thread(program.team_id, program.hc, [outsider.id])


def test_send_message_notifies_other_participants(program):
    thread = ThreadService.create_thread(program.team_id, program.hc, [program.qb_user])
    ThreadService.send_message(program.team_id, thread.id, program.qb_user, 'On my way')

    recipients = {n.user_id for n in db.session.query(Notification).filter_by(notification_type='message_received')}
    assert recipients == {program.hc, program.parent}


def test_general_chat_adds_everyone(program):
    thread = ThreadService.ensure_general_chat(program.team_id)
    assert thread.thread_type == ThreadType.GENERAL
    assert thread.created_by == program.hc

    participants = _participants(thread)
    assert participants[program.parent] is True
    assert participants[program.qb_user] is False
    assert participants[program.assistant] is False

    again = ThreadService.ensure_general_chat(program.team_id)
    assert again.id == thread.id
    assert len(_participants(again)) == len(participants)


def test_college_parents_do_not_follow_threads(factory):
    team = factory.team('College Team', org_type=OrganizationType.COLLEGE)
    coach = factory.user('coach@college.edu')
    athlete = factory.user('athlete@college.edu')
    parent = factory.user('mom@college.edu')
    factory.member(team, coach, MembershipRole.HEAD_COACH)
    factory.member(team, athlete, MembershipRole.PLAYER)
    factory.member(team, parent, MembershipRole.PARENT)
    factory.guardian(parent, factory.player(team, 'Ath', 'Lete', 'RB', user=athlete))

    thread = ThreadService.create_thread(team.id, coach.id, [athlete.id])
    assert parent.id not in _participants(thread)
    with pytest.raises(ResourceNotFound):
        ThreadService.get_thread(team.id, thread.id, parent.id)


def test_unpaid_team_cannot_message(unpaid_program):
    with pytest.raises(BillingRestricted):
        ThreadService.create_thread(unpaid_program.team_id, unpaid_program.hc, [unpaid_program.qb_user])
