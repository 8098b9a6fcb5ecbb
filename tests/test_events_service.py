"""Calendar events through the service layer."""

from datetime import date, datetime, timezone

import pytest

from braik.extensions import db
from braik.models import AccountStatus, AuditLog, EventType, EventVisibility, Notification, Team, Unit
from braik.services.ai_actions import AIActionService
from braik.services.messaging import ThreadService
from braik.services.payloads import as_utc
from braik.services.errors import BillingRestricted, PermissionDenied, ResourceNotFound, ValidationError
from braik.services.events import EventService


def _payload(title='Practice', event_type='PRACTICE', **extra):
    data = {
        'title': title,
        'event_type': event_type,
        'start': '2025-10-01T16:00:00',
        'end': '2025-10-01T18:00:00',
    }
    data.update(extra)
    return data


def _titles(events):
    return sorted(event.title for event in events)


def test_head_coach_event_is_unscoped(program):
    event = EventService.create_event(program.team_id, program.hc, _payload('Team Practice'))
    assert event.scoped_unit is None
    assert event.coordinator_type is None
    assert event.created_by == program.hc
    assert event.visibility == EventVisibility.TEAM


def test_coordinator_event_is_stamped_with_unit(program):
    event = EventService.create_event(program.team_id, program.oc, _payload('Offense Install', 'MEETING'))
    assert event.scoped_unit == Unit.OFFENSE
    assert event.coordinator_type is not None


def test_list_applies_hierarchical_visibility(program):
    EventService.create_event(program.team_id, program.hc, _payload('Team Practice', visibility='PARENTS_AND_TEAM'))
    EventService.create_event(program.team_id, program.oc, _payload('Offense Install', 'MEETING'))

    assert _titles(EventService.list_events(program.team_id, program.hc)) == ['Offense Install', 'Team Practice']
    assert _titles(EventService.list_events(program.team_id, program.qb_user)) == ['Offense Install', 'Team Practice']
    assert _titles(EventService.list_events(program.team_id, program.dc)) == ['Team Practice']
    assert _titles(EventService.list_events(program.team_id, program.parent)) == ['Team Practice']
    assert _titles(EventService.list_events(program.team_id, program.dl_user)) == ['Team Practice']


def test_hidden_event_reads_as_missing(program):
    event = EventService.create_event(program.team_id, program.oc, _payload('Offense Install', 'MEETING'))
    with pytest.raises(ResourceNotFound):
        EventService.get_event(program.team_id, event.id, program.dc)
    assert EventService.get_event(program.team_id, event.id, program.qb_user).id == event.id


def test_players_and_parents_cannot_create(program):
    for user_id in (program.qb_user, program.parent):
        with pytest.raises(PermissionDenied):
            EventService.create_event(program.team_id, user_id, _payload())


def test_assistant_event_types_follow_calendar_settings(program):
    # No settings row yet: no gate
    EventService.create_event(program.team_id, program.oc, _payload('Extra Practice'))

    EventService.update_calendar_settings(program.team_id, program.hc, {'assistants_can_add_practices': False})
    with pytest.raises(PermissionDenied):
        EventService.create_event(program.team_id, program.oc, _payload('Another Practice'))
    with pytest.raises(PermissionDenied):
        EventService.create_event(program.team_id, program.oc, _payload('Scrimmage', 'GAME'))
    EventService.create_event(program.team_id, program.oc, _payload('Film', 'MEETING'))

    # Head coach is never gated
    EventService.create_event(program.team_id, program.hc, _payload('Homecoming', 'GAME'))


def test_only_head_coach_updates_calendar_settings(program):
    with pytest.raises(PermissionDenied):
        EventService.update_calendar_settings(program.team_id, program.oc, {'assistants_can_add_meetings': False})

    settings = EventService.get_calendar_settings(program.team_id, program.oc)
    assert settings.assistants_can_add_meetings is True
    assert settings.assistants_can_add_practices is False


def test_update_respects_scope_and_never_touches_scoping(program):
    event = EventService.create_event(program.team_id, program.oc, _payload('Offense Install', 'MEETING'))

    with pytest.raises(PermissionDenied):
        EventService.update_event(program.team_id, event.id, program.dc, {'title': 'Defense now'})

    updated = EventService.update_event(program.team_id, event.id, program.oc, {
        'title': 'Offense Install II',
        'scoped_unit': 'DEFENSE',
    })
    assert updated.title == 'Offense Install II'
    assert updated.scoped_unit == Unit.OFFENSE


def test_lock_blocks_removal_but_not_creator_edits(program):
    event = EventService.create_event(program.team_id, program.oc, _payload('Offense Install', 'MEETING'))

    with pytest.raises(PermissionDenied):
        EventService.set_event_lock(program.team_id, event.id, program.oc, True)
    EventService.set_event_lock(program.team_id, event.id, program.hc, True)

    EventService.update_event(program.team_id, event.id, program.oc, {'location': 'Film room'})
    with pytest.raises(PermissionDenied):
        EventService.remove_event(program.team_id, event.id, program.oc)

    EventService.remove_event(program.team_id, event.id, program.hc)
    assert EventService.list_events(program.team_id, program.hc) == []


def test_invalid_window_is_rejected(program):
    with pytest.raises(ValidationError):
        EventService.create_event(program.team_id, program.hc, _payload(end='2025-10-01T15:00:00'))


def test_legacy_audience_maps_to_visibility(program):
    event = EventService.create_event(program.team_id, program.hc, _payload('Staff Meeting', 'MEETING', audience='staff'))
    assert event.visibility == EventVisibility.COACHES_ONLY
    assert EventService.list_events(program.team_id, program.qb_user) == []


def test_filter_by_event_type(program):
    EventService.create_event(program.team_id, program.hc, _payload('Practice'))
    EventService.create_event(program.team_id, program.hc, _payload('Film', 'MEETING'))
    events = EventService.list_events(program.team_id, program.hc, event_type=EventType.MEETING)
    assert _titles(events) == ['Film']


def test_visible_members_are_notified(program):
    EventService.create_event(program.team_id, program.oc, _payload('Offense Install', 'MEETING'))

    recipients = {n.user_id for n in db.session.query(Notification).filter_by(notification_type='event_created')}
    assert program.qb_user in recipients
    assert program.hc in recipients
    assert program.dc not in recipients
    assert program.parent not in recipients
    assert program.oc not in recipients


def test_creation_is_audited(program):
    event = EventService.create_event(program.team_id, program.hc, _payload('Team Practice'))
    audit = db.session.query(AuditLog).filter_by(action='event_created').one()
    assert audit.entity_id == event.id
    assert audit.actor_user_id == program.hc


def test_unpaid_team_is_read_only(unpaid_program):
    with pytest.raises(BillingRestricted):
        EventService.create_event(unpaid_program.team_id, unpaid_program.hc, _payload())
    assert EventService.list_events(unpaid_program.team_id, unpaid_program.hc) == []


def test_utc_times_are_normalized(program):
    event = EventService.create_event(program.team_id, program.hc, _payload(
        start='2025-10-01T16:00:00Z', end='2025-10-01T13:00:00-05:00',
    ))
    assert as_utc(event.start) == datetime(2025, 10, 1, 16, 0, tzinfo=timezone.utc)
    assert as_utc(event.end) == datetime(2025, 10, 1, 18, 0, tzinfo=timezone.utc)

    mixed = EventService.create_event(program.team_id, program.hc, _payload(
        start='2025-10-01T16:00:00Z', end='2025-10-01T18:00:00',
    ))
    assert as_utc(mixed.end) == datetime(2025, 10, 1, 18, 0, tzinfo=timezone.utc)


def test_end_only_update_after_reload(program):
    event = EventService.create_event(program.team_id, program.hc, _payload(
        start='2025-10-01T16:00:00Z', end='2025-10-01T18:00:00Z',
    ))
    db.session.expire_all()

    updated = EventService.update_event(program.team_id, event.id, program.hc, {'end': '2025-10-01T19:00:00Z'})
    assert as_utc(updated.end) == datetime(2025, 10, 1, 19, 0, tzinfo=timezone.utc)

    with pytest.raises(ValidationError):
        EventService.update_event(program.team_id, event.id, program.hc, {'end': '2025-10-01T15:00:00Z'})


def test_read_only_team_keeps_reads_and_blocks_writes(program, factory):
    team = db.session.get(Team, program.team_id)
    team.ai_enabled = True
    db.session.commit()
    event = EventService.create_event(program.team_id, program.hc, _payload('Team Practice'))
    thread = ThreadService.create_thread(program.team_id, program.hc, [program.qb_user], subject='Film review')

    team = db.session.get(Team, program.team_id)
    team.subscription_amount_cents = 1000
    team.amount_paid_cents = 500
    db.session.commit()
    factory.game(team, date(date.today().year - 1, 9, 1))

    assert [e.id for e in EventService.list_events(program.team_id, program.qb_user)] == [event.id]
    assert EventService.get_event(program.team_id, event.id, program.qb_user).title == 'Team Practice'

    blocked = [
        lambda: EventService.update_event(program.team_id, event.id, program.hc, {'title': 'Moved'}),
        lambda: EventService.remove_event(program.team_id, event.id, program.hc),
        lambda: ThreadService.send_message(program.team_id, thread.id, program.hc, 'Bring cleats'),
        lambda: AIActionService.propose_action(
            program.team_id, program.hc, 'create_parent_announcement', {'title': 'x', 'body': 'y'}
        ),
    ]
    for attempt in blocked:
        with pytest.raises(BillingRestricted) as excinfo:
            attempt()
        assert excinfo.value.status == AccountStatus.READ_ONLY.value

    assert EventService.get_event(program.team_id, event.id, program.hc).title == 'Team Practice'
