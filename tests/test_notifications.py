"""Notification fan-out, inline and through the RQ queue."""

import pytest

from braik.extensions import db
from braik.models import Announcement, Event, EventVisibility, MembershipRole, Notification, Unit, User
from braik.services import queue as queue_module
from braik.services.announcements import AnnouncementService
from braik.services.errors import MembershipNotFound, ResourceNotFound
from braik.services.notifications import NotificationService, deliver_notifications


class RecordingQueue:
    calls = []

    def __init__(self, redis_url=None):
        self.redis_url = redis_url

    def enqueue_notifications(self, team_id, user_ids, notification_type, title, **fields):
        RecordingQueue.calls.append((team_id, list(user_ids), notification_type, title, fields))


class BrokenQueue(RecordingQueue):
    def enqueue_notifications(self, *args, **kwargs):
        raise ConnectionError('redis is down')


@pytest.fixture
def queued(app, monkeypatch):
    app.config['NOTIFICATION_QUEUE_ENABLED'] = True
    RecordingQueue.calls = []
    monkeypatch.setattr(queue_module, 'QueueService', RecordingQueue)
    return RecordingQueue.calls


def test_deliver_dedupes_recipients(program):
    count = deliver_notifications(program.team_id, [program.oc, program.oc, program.dc], 'ping', 'Hello')
    assert count == 2
    assert db.session.query(Notification).count() == 2


def test_visible_recipients_follow_scope(program):
    event = Event(team_id=program.team_id, created_by=program.oc, title='Install',
                  scoped_unit=Unit.OFFENSE, visibility=EventVisibility.TEAM)
    recipients = NotificationService.visible_recipients(program.team_id, event, exclude_user_ids=[program.oc])

    assert program.hc in recipients
    assert program.qb_user in recipients
    assert program.oc not in recipients
    assert program.dc not in recipients
    assert program.dl_user not in recipients


def test_notifications_are_enqueued_when_enabled(queued, program):
    AnnouncementService.create_announcement(program.team_id, program.hc, {'title': 'Lift', 'body': '6am', 'audience': 'team'})

    assert len(queued) == 1
    team_id, user_ids, notification_type, title, fields = queued[0]
    assert team_id == program.team_id
    assert notification_type == 'announcement'
    assert program.qb_user in user_ids
    assert fields['link_type'] == 'announcement'
    assert db.session.query(Notification).count() == 0


def test_queue_failure_does_not_undo_the_mutation(app, monkeypatch, program):
    app.config['NOTIFICATION_QUEUE_ENABLED'] = True
    monkeypatch.setattr(queue_module, 'QueueService', BrokenQueue)

    announcement = AnnouncementService.create_announcement(
        program.team_id, program.hc, {'title': 'Lift', 'body': '6am'}
    )
    assert db.session.get(Announcement, announcement.id) is not None


def test_inbox_lists_only_own_notifications(program, factory):
    deliver_notifications(program.team_id, [program.qb_user, program.oc], 'ping', 'Film at 4')
    jv = factory.team(name='JV Football')
    factory.member(jv, db.session.get(User, program.qb_user), MembershipRole.PLAYER)
    deliver_notifications(jv.id, [program.qb_user], 'ping', 'JV film')

    inbox = NotificationService.list_for_user(program.team_id, program.qb_user)

    assert [n.title for n in inbox] == ['Film at 4']
    assert NotificationService.unread_count(program.team_id, program.qb_user) == 1
    assert [n.title for n in NotificationService.list_for_user(jv.id, program.qb_user)] == ['JV film']


def test_inbox_requires_membership(program, factory):
    outsider = factory.user('outsider@example.com')
    with pytest.raises(MembershipNotFound):
        NotificationService.list_for_user(program.team_id, outsider.id)


def test_mark_read_is_limited_to_the_recipient(program):
    deliver_notifications(program.team_id, [program.qb_user], 'ping', 'Film at 4')
    notification = db.session.query(Notification).filter_by(user_id=program.qb_user).one()

    with pytest.raises(ResourceNotFound):
        NotificationService.mark_read(program.team_id, program.oc, notification.id)
    assert db.session.get(Notification, notification.id).read_at is None

    marked = NotificationService.mark_read(program.team_id, program.qb_user, notification.id)
    first_read = marked.read_at
    assert first_read is not None
    assert NotificationService.mark_read(program.team_id, program.qb_user, notification.id).read_at == first_read
    assert NotificationService.list_for_user(program.team_id, program.qb_user, unread_only=True) == []


def test_mark_all_read_leaves_other_users_alone(program):
    deliver_notifications(program.team_id, [program.qb_user, program.oc], 'ping', 'Film at 4')
    deliver_notifications(program.team_id, [program.qb_user], 'ping', 'Lift at 6')

    assert NotificationService.mark_all_read(program.team_id, program.qb_user) == 2
    assert NotificationService.mark_all_read(program.team_id, program.qb_user) == 0
    assert NotificationService.unread_count(program.team_id, program.qb_user) == 0
    assert NotificationService.unread_count(program.team_id, program.oc) == 1


def test_unpaid_team_can_still_clear_its_inbox(unpaid_program):
    deliver_notifications(unpaid_program.team_id, [unpaid_program.hc], 'ping', 'Invoice due')

    assert NotificationService.mark_all_read(unpaid_program.team_id, unpaid_program.hc) == 1
