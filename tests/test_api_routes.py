"""JSON API: authentication, error envelopes and billing gating over HTTP."""

from braik.extensions import db
from braik.models import Team


def _event_payload(**overrides):
    payload = {
        'title': 'Practice',
        'start': '2026-08-10T15:30:00',
        'end': '2026-08-10T17:30:00',
        'event_type': 'PRACTICE',
    }
    payload.update(overrides)
    return payload


def test_requires_login(client, program):
    response = client.get(f'/api/teams/{program.team_id}/events')
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'unauthenticated'


def test_login_and_logout(client, program):
    response = client.post('/auth/login', json={'email': 'HC@central.edu', 'password': 'CoachPass123!'})
    assert response.status_code == 200
    user = response.get_json()['user']
    assert user['email'] == 'hc@central.edu'
    assert user['teams'] == [{'team_id': program.team_id, 'role': 'HEAD_COACH'}]

    assert client.get('/auth/me').status_code == 200
    assert client.post('/auth/logout').status_code == 200
    assert client.get('/auth/me').status_code == 401


def test_login_rejects_bad_credentials(client, program):
    response = client.post('/auth/login', json={'email': 'hc@central.edu', 'password': 'wrong'})
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'invalid_credentials'

    response = client.post('/auth/login', json={'email': 'hc@central.edu'})
    assert response.status_code == 400


def test_head_coach_creates_and_lists_events(login_as, program):
    client = login_as(program.hc)
    response = client.post(f'/api/teams/{program.team_id}/events', json=_event_payload())
    assert response.status_code == 201
    created = response.get_json()
    assert created['title'] == 'Practice'

    response = login_as(program.qb_user).get(f'/api/teams/{program.team_id}/events')
    assert response.status_code == 200
    assert [e['id'] for e in response.get_json()['items']] == [created['id']]


def test_player_cannot_create_events(login_as, program):
    response = login_as(program.qb_user).post(f'/api/teams/{program.team_id}/events', json=_event_payload())
    assert response.status_code == 403
    assert response.get_json()['error']['code'] == 'permission_denied'


def test_validation_errors_are_reported(login_as, program):
    response = login_as(program.hc).post(f'/api/teams/{program.team_id}/events', json={'title': 'No times'})
    assert response.status_code == 400
    assert response.get_json()['error']['code'] == 'validation_error'

    response = login_as(program.hc).post(f'/api/teams/{program.team_id}/events', json=['not', 'an', 'object'])
    assert response.status_code == 400


def test_unpaid_team_is_read_only(login_as, unpaid_program):
    client = login_as(unpaid_program.hc)

    response = client.post(f'/api/teams/{unpaid_program.team_id}/events', json=_event_payload())
    assert response.status_code == 402
    error = response.get_json()['error']
    assert error['code'] == 'billing_restriction'

    assert client.get(f'/api/teams/{unpaid_program.team_id}/events').status_code == 200

    billing = client.get(f'/api/teams/{unpaid_program.team_id}/billing').get_json()
    assert billing['status'] == 'READ_ONLY'
    assert billing['can_create'] is False


def test_payment_restores_write_access(login_as, unpaid_program):
    client = login_as(unpaid_program.hc)
    response = client.post(f'/api/teams/{unpaid_program.team_id}/billing/payments', json={'amount_cents': 500})
    assert response.status_code == 201
    assert response.get_json()['status'] == 'ACTIVE'

    response = client.post(f'/api/teams/{unpaid_program.team_id}/events', json=_event_payload())
    assert response.status_code == 201


def test_only_head_coach_records_payments(login_as, unpaid_program):
    response = login_as(unpaid_program.oc).post(
        f'/api/teams/{unpaid_program.team_id}/billing/payments', json={'amount_cents': 500}
    )
    assert response.status_code == 403


def test_me_describes_scope(login_as, program):
    body = login_as(program.oc).get(f'/api/teams/{program.team_id}/me').get_json()
    assert body['membership']['role'] == 'ASSISTANT_COACH'
    assert body['scope']['kind'] == 'unit'
    assert body['scope']['unit'] == 'OFFENSE'

    body = login_as(program.parent).get(f'/api/teams/{program.team_id}/me').get_json()
    assert body['scope'] == {
        'kind': 'own_child',
        'unit': None,
        'position_groups': [],
        'player_ids': [program.qb_player],
    }


def test_non_member_is_refused(login_as, factory, program):
    outsider = factory.user('outsider@rival.edu')
    response = login_as(outsider.id).get(f'/api/teams/{program.team_id}/events')
    assert response.status_code == 403
    assert response.get_json()['error']['code'] == 'membership_not_found'


def test_unknown_team_is_not_found(login_as, program):
    response = login_as(program.hc).get('/api/teams/no-such-team/events')
    assert response.status_code == 404
    assert response.get_json()['error']['code'] == 'not_found'


def test_hidden_event_reads_as_not_found(login_as, program):
    created = login_as(program.oc).post(
        f'/api/teams/{program.team_id}/events',
        json=_event_payload(title='Install', event_type='MEETING', visibility='COACHES_ONLY'),
    ).get_json()

    response = login_as(program.parent).get(f'/api/teams/{program.team_id}/events/{created["id"]}')
    assert response.status_code == 404


def test_roster_lists_scope_filtered_players(login_as, program):
    items = login_as(program.dc).get(f'/api/teams/{program.team_id}/roster').get_json()['items']
    assert [p['last_name'] for p in items] == ['Line']


def test_ai_proposal_flow_over_http(login_as, program):
    team = db.session.get(Team, program.team_id)
    team.ai_enabled = True
    db.session.commit()

    payload = {
        'action_type': 'create_parent_announcement',
        'payload': {'title': 'Booster meeting', 'body': 'Tuesday at 7'},
    }
    response = login_as(program.oc).post(
        f'/api/teams/{program.team_id}/ai/proposals', json=payload, headers={'Idempotency-Key': 'boosters'}
    )
    assert response.status_code == 201
    proposal = response.get_json()
    assert proposal['status'] == 'pending'

    response = login_as(program.oc).post(f'/api/teams/{program.team_id}/ai/proposals/{proposal["id"]}/confirm')
    assert response.status_code == 403

    response = login_as(program.hc).post(f'/api/teams/{program.team_id}/ai/proposals/{proposal["id"]}/confirm')
    assert response.status_code == 200
    assert response.get_json()['executed_items'][0]['type'] == 'announcement'

    response = login_as(program.hc).post(f'/api/teams/{program.team_id}/ai/proposals/{proposal["id"]}/reject')
    assert response.status_code == 409
    assert response.get_json()['error']['code'] == 'invalid_state'


def test_notification_inbox_over_http(login_as, program):
    hc = login_as(program.hc)
    hc.post(f'/api/teams/{program.team_id}/announcements', json={'title': 'Lift', 'body': '6am', 'audience': 'team'})
    hc.post(f'/api/teams/{program.team_id}/announcements', json={'title': 'Film', 'body': '4pm', 'audience': 'team'})

    qb = login_as(program.qb_user)
    body = qb.get(f'/api/teams/{program.team_id}/notifications').get_json()
    assert body['unread_count'] == 2
    assert {item['title'] for item in body['items']} == {'Lift', 'Film'}
    notification_id = body['items'][0]['id']

    response = login_as(program.oc).post(f'/api/teams/{program.team_id}/notifications/{notification_id}/read')
    assert response.status_code == 404

    response = qb.post(f'/api/teams/{program.team_id}/notifications/{notification_id}/read')
    assert response.status_code == 200
    assert response.get_json()['read'] is True

    body = qb.get(f'/api/teams/{program.team_id}/notifications?unread=1').get_json()
    assert len(body['items']) == 1
    assert body['unread_count'] == 1

    assert qb.post(f'/api/teams/{program.team_id}/notifications/read-all').get_json() == {'marked': 1}
    assert qb.get(f'/api/teams/{program.team_id}/notifications').get_json()['unread_count'] == 0
