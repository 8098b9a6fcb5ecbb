"""Team-scoped JSON API blueprint.

Handlers parse input, call a service and serialize the result. Every error
raised by a service surfaces as ``{"error": {"code", "message", ...}}``.
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from braik.blueprints.common.team import team_required
from braik.extensions import db, limiter
from braik.models import (
    AIActionProposal,
    Announcement,
    CalendarSettings,
    DepthChartEntry,
    Document,
    Event,
    InventoryItem,
    Membership,
    Notification,
    Message,
    MessageThread,
    Play,
    Player,
)
from braik.services.ai_actions import AIActionService
from braik.services.announcements import AnnouncementService
from braik.services.billing import get_team_billing_state, record_payment
from braik.services.depth_chart import DepthChartService
from braik.services.documents import DocumentService
from braik.services.errors import BraikError, ValidationError
from braik.services.events import EventService
from braik.services.inventory import InventoryService
from braik.services.membership import MembershipDirectory
from braik.services.messaging import ThreadAccess, ThreadService
from braik.services.notifications import NotificationService
from braik.services.payloads import parse_bool, parse_datetime, parse_int
from braik.services.plays import PlayService
from braik.services.roles import require_capability
from braik.services.roster import RosterService
from braik.services.scoping import SCOPING_FIELD_NAMES, ScopeSummary

api_bp = Blueprint('api', __name__)


def _value(value):
    return value.value if hasattr(value, 'value') else value


def _iso(value):
    return value.isoformat() if value else None


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _ai_rate_limit() -> str:
    return current_app.config.get('AI_RATE_LIMIT', '30 per minute')


@api_bp.errorhandler(BraikError)
def handle_braik_error(error: BraikError):
    db.session.rollback()
    return jsonify(error.to_dict()), error.status_code


@api_bp.errorhandler(PermissionError)
def handle_cross_team_write(error: PermissionError):
    db.session.rollback()
    current_app.logger.warning(f"Blocked cross-team write: {error}")
    return jsonify({'error': {'code': 'permission_denied', 'message': str(error)}}), 403


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------


def serialize_scoping(resource) -> dict:
    return {name: _value(getattr(resource, name, None)) for name in SCOPING_FIELD_NAMES}


def serialize_event(event: Event) -> dict:
    data = {
        'id': event.id,
        'event_type': _value(event.event_type),
        'title': event.title,
        'description': event.description,
        'start': _iso(event.start),
        'end': _iso(event.end),
        'location': event.location,
        'visibility': _value(event.visibility),
        'locked': event.locked,
        'created_by': event.created_by,
        'created_at': _iso(event.created_at),
    }
    data.update(serialize_scoping(event))
    return data


def serialize_calendar_settings(settings: CalendarSettings) -> dict:
    return {
        'assistants_can_add_meetings': settings.assistants_can_add_meetings,
        'assistants_can_add_practices': settings.assistants_can_add_practices,
    }


def serialize_document(document: Document) -> dict:
    data = {
        'id': document.id,
        'title': document.title,
        'file_url': document.file_url,
        'category': document.category,
        'visibility': _value(document.visibility),
        'locked': document.locked,
        'created_by': document.created_by,
        'created_at': _iso(document.created_at),
    }
    data.update(serialize_scoping(document))
    return data


def serialize_item(item: InventoryItem) -> dict:
    data = {
        'id': item.id,
        'name': item.name,
        'category': item.category,
        'quantity': item.quantity,
        'condition': item.condition,
        'notes': item.notes,
        'assigned_to_player_id': item.assigned_to_player_id,
        'locked': item.locked,
        'created_by': item.created_by,
    }
    data.update(serialize_scoping(item))
    return data


def serialize_depth_entry(entry: DepthChartEntry) -> dict:
    return {
        'id': entry.id,
        'unit': _value(entry.unit),
        'position': entry.position,
        'string': entry.string,
        'special_team_type': entry.special_team_type,
        'player_id': entry.player_id,
        'player_name': entry.player.full_name if entry.player else None,
    }


def serialize_play(play: Play) -> dict:
    return {
        'id': play.id,
        'side': _value(play.side),
        'name': play.name,
        'formation': play.formation,
        'data': play.data,
        'created_by': play.created_by,
        'updated_at': _iso(play.updated_at),
    }


def serialize_thread(thread: MessageThread, access: ThreadAccess) -> dict:
    return {
        'id': thread.id,
        'subject': thread.subject,
        'thread_type': _value(thread.thread_type),
        'created_by': thread.created_by,
        'access': access.value,
        'participants': [
            {'user_id': p.user_id, 'read_only': p.read_only}
            for p in thread.participants
        ],
        'updated_at': _iso(thread.updated_at),
    }


def serialize_message(message: Message) -> dict:
    return {
        'id': message.id,
        'thread_id': message.thread_id,
        'body': message.body,
        'created_by': message.created_by,
        'created_at': _iso(message.created_at),
    }


def serialize_announcement(announcement: Announcement) -> dict:
    return {
        'id': announcement.id,
        'title': announcement.title,
        'body': announcement.body,
        'audience': _value(announcement.audience),
        'created_by': announcement.created_by,
        'created_at': _iso(announcement.created_at),
    }


def serialize_notification(notification: Notification) -> dict:
    return {
        'id': notification.id,
        'type': notification.notification_type,
        'title': notification.title,
        'body': notification.body,
        'link_type': notification.link_type,
        'link_id': notification.link_id,
        'read': notification.read_at is not None,
        'read_at': _iso(notification.read_at),
        'created_at': _iso(notification.created_at),
    }


def serialize_player(player: Player) -> dict:
    return {
        'id': player.id,
        'user_id': player.user_id,
        'first_name': player.first_name,
        'last_name': player.last_name,
        'position_group': player.position_group,
        'jersey_number': player.jersey_number,
        'status': _value(player.status),
    }


def serialize_membership(membership: Membership) -> dict:
    return {
        'id': membership.id,
        'user_id': membership.user_id,
        'role': _value(membership.role),
        'permissions': membership.permissions,
        'position_groups': membership.position_groups,
    }


def serialize_proposal(proposal: AIActionProposal) -> dict:
    return {
        'id': proposal.id,
        'action_type': proposal.action_type,
        'payload': proposal.payload,
        'preview': proposal.preview,
        'status': _value(proposal.status),
        'user_id': proposal.user_id,
        'decided_by': proposal.decided_by,
        'decided_at': _iso(proposal.decided_at),
        'executed_at': _iso(proposal.executed_at),
        'result': proposal.result,
        'rejection_reason': proposal.rejection_reason,
        'created_at': _iso(proposal.created_at),
    }


# ---------------------------------------------------------------------------
# Membership and billing
# ---------------------------------------------------------------------------


@api_bp.route('/teams/<team_id>/me', methods=['GET'])
@login_required
@team_required
def my_membership(team_id):
    context = MembershipDirectory.load_context(current_user.id, team_id)
    return jsonify({
        'membership': serialize_membership(context.membership),
        'scope': ScopeSummary.of(context.scope).to_dict(),
        'billing': get_team_billing_state(team_id).to_dict(),
    })


@api_bp.route('/teams/<team_id>/billing', methods=['GET'])
@login_required
@team_required
def billing_state(team_id):
    MembershipDirectory.load_context(current_user.id, team_id)
    return jsonify(get_team_billing_state(team_id).to_dict())


@api_bp.route('/teams/<team_id>/billing/payments', methods=['POST'])
@login_required
@team_required
def create_payment(team_id):
    context = MembershipDirectory.load_context(current_user.id, team_id)
    require_capability(context, 'manage_billing')
    data = _json_body()
    state = record_payment(team_id, parse_int(data.get('amount_cents'), 'amount_cents'), current_user.id)
    return jsonify(state.to_dict()), 201


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@api_bp.route('/teams/<team_id>/events', methods=['GET'])
@login_required
@team_required
def list_events(team_id):
    events = EventService.list_events(
        team_id,
        current_user.id,
        start=parse_datetime(request.args.get('start'), 'start'),
        end=parse_datetime(request.args.get('end'), 'end'),
        event_type=request.args.get('event_type'),
    )
    return jsonify({'items': [serialize_event(e) for e in events]})


@api_bp.route('/teams/<team_id>/events', methods=['POST'])
@login_required
@team_required
def create_event(team_id):
    event = EventService.create_event(team_id, current_user.id, _json_body())
    return jsonify(serialize_event(event)), 201


@api_bp.route('/teams/<team_id>/events/<event_id>', methods=['GET'])
@login_required
@team_required
def get_event(team_id, event_id):
    return jsonify(serialize_event(EventService.get_event(team_id, event_id, current_user.id)))


@api_bp.route('/teams/<team_id>/events/<event_id>', methods=['PATCH'])
@login_required
@team_required
def update_event(team_id, event_id):
    event = EventService.update_event(team_id, event_id, current_user.id, _json_body())
    return jsonify(serialize_event(event))


@api_bp.route('/teams/<team_id>/events/<event_id>', methods=['DELETE'])
@login_required
@team_required
def delete_event(team_id, event_id):
    EventService.remove_event(team_id, event_id, current_user.id)
    return '', 204


@api_bp.route('/teams/<team_id>/events/<event_id>/lock', methods=['POST'])
@login_required
@team_required
def lock_event(team_id, event_id):
    locked = parse_bool(_json_body().get('locked', True))
    event = EventService.set_event_lock(team_id, event_id, current_user.id, locked)
    return jsonify(serialize_event(event))


@api_bp.route('/teams/<team_id>/calendar-settings', methods=['GET'])
@login_required
@team_required
def get_calendar_settings(team_id):
    settings = EventService.get_calendar_settings(team_id, current_user.id)
    return jsonify(serialize_calendar_settings(settings))


@api_bp.route('/teams/<team_id>/calendar-settings', methods=['PATCH'])
@login_required
@team_required
def update_calendar_settings(team_id):
    settings = EventService.update_calendar_settings(team_id, current_user.id, _json_body())
    return jsonify(serialize_calendar_settings(settings))


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@api_bp.route('/teams/<team_id>/documents', methods=['GET'])
@login_required
@team_required
def list_documents(team_id):
    documents = DocumentService.list_documents(team_id, current_user.id, category=request.args.get('category'))
    return jsonify({'items': [serialize_document(d) for d in documents]})


@api_bp.route('/teams/<team_id>/documents', methods=['POST'])
@login_required
@team_required
def create_document(team_id):
    document = DocumentService.create_document(team_id, current_user.id, _json_body())
    return jsonify(serialize_document(document)), 201


@api_bp.route('/teams/<team_id>/documents/<document_id>', methods=['GET'])
@login_required
@team_required
def get_document(team_id, document_id):
    return jsonify(serialize_document(DocumentService.get_document(team_id, document_id, current_user.id)))


@api_bp.route('/teams/<team_id>/documents/<document_id>', methods=['PATCH'])
@login_required
@team_required
def update_document(team_id, document_id):
    document = DocumentService.update_document(team_id, document_id, current_user.id, _json_body())
    return jsonify(serialize_document(document))


@api_bp.route('/teams/<team_id>/documents/<document_id>', methods=['DELETE'])
@login_required
@team_required
def delete_document(team_id, document_id):
    DocumentService.remove_document(team_id, document_id, current_user.id)
    return '', 204


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@api_bp.route('/teams/<team_id>/inventory', methods=['GET'])
@login_required
@team_required
def list_inventory(team_id):
    items = InventoryService.list_items(team_id, current_user.id)
    return jsonify({'items': [serialize_item(i) for i in items]})


@api_bp.route('/teams/<team_id>/inventory', methods=['POST'])
@login_required
@team_required
def create_inventory_item(team_id):
    item = InventoryService.create_item(team_id, current_user.id, _json_body())
    return jsonify(serialize_item(item)), 201


@api_bp.route('/teams/<team_id>/inventory/<item_id>', methods=['PATCH'])
@login_required
@team_required
def update_inventory_item(team_id, item_id):
    item = InventoryService.update_item(team_id, item_id, current_user.id, _json_body())
    return jsonify(serialize_item(item))


@api_bp.route('/teams/<team_id>/inventory/<item_id>/assign', methods=['POST'])
@login_required
@team_required
def assign_inventory_item(team_id, item_id):
    item = InventoryService.assign_item(team_id, item_id, current_user.id, _json_body().get('player_id'))
    return jsonify(serialize_item(item))


@api_bp.route('/teams/<team_id>/inventory/<item_id>', methods=['DELETE'])
@login_required
@team_required
def delete_inventory_item(team_id, item_id):
    InventoryService.remove_item(team_id, item_id, current_user.id)
    return '', 204


# ---------------------------------------------------------------------------
# Depth chart and plays
# ---------------------------------------------------------------------------


@api_bp.route('/teams/<team_id>/depth-chart', methods=['GET'])
@login_required
@team_required
def get_depth_chart(team_id):
    entries = DepthChartService.list_entries(team_id, current_user.id)
    return jsonify({'items': [serialize_depth_entry(e) for e in entries]})


@api_bp.route('/teams/<team_id>/depth-chart', methods=['PUT'])
@login_required
@team_required
def replace_depth_chart(team_id):
    entries = DepthChartService.replace_entries(team_id, current_user.id, _json_body().get('entries'))
    return jsonify({'items': [serialize_depth_entry(e) for e in entries]})


@api_bp.route('/teams/<team_id>/plays', methods=['GET'])
@login_required
@team_required
def list_plays(team_id):
    plays = PlayService.list_plays(team_id, current_user.id, side=request.args.get('side'))
    return jsonify({'items': [serialize_play(p) for p in plays]})


@api_bp.route('/teams/<team_id>/plays', methods=['POST'])
@login_required
@team_required
def create_play(team_id):
    play = PlayService.create_play(team_id, current_user.id, _json_body())
    return jsonify(serialize_play(play)), 201


@api_bp.route('/teams/<team_id>/plays/<play_id>', methods=['GET'])
@login_required
@team_required
def get_play(team_id, play_id):
    return jsonify(serialize_play(PlayService.get_play(team_id, play_id, current_user.id)))


@api_bp.route('/teams/<team_id>/plays/<play_id>', methods=['PATCH'])
@login_required
@team_required
def update_play(team_id, play_id):
    play = PlayService.update_play(team_id, play_id, current_user.id, _json_body())
    return jsonify(serialize_play(play))


@api_bp.route('/teams/<team_id>/plays/<play_id>', methods=['DELETE'])
@login_required
@team_required
def delete_play(team_id, play_id):
    PlayService.remove_play(team_id, play_id, current_user.id)
    return '', 204


# ---------------------------------------------------------------------------
# Messaging and announcements
# ---------------------------------------------------------------------------


@api_bp.route('/teams/<team_id>/threads', methods=['GET'])
@login_required
@team_required
def list_threads(team_id):
    threads = ThreadService.list_threads(team_id, current_user.id)
    return jsonify({'items': [serialize_thread(t, access) for t, access in threads]})


@api_bp.route('/teams/<team_id>/threads', methods=['POST'])
@login_required
@team_required
def create_thread(team_id):
    data = _json_body()
    thread = ThreadService.create_thread(
        team_id,
        current_user.id,
        data.get('participant_user_ids') or [],
        subject=data.get('subject'),
    )
    return jsonify(serialize_thread(thread, ThreadAccess.READ_WRITE)), 201


@api_bp.route('/teams/<team_id>/threads/<thread_id>', methods=['GET'])
@login_required
@team_required
def get_thread(team_id, thread_id):
    thread, access = ThreadService.get_thread(team_id, thread_id, current_user.id)
    data = serialize_thread(thread, access)
    data['messages'] = [serialize_message(m) for m in thread.messages]
    return jsonify(data)


@api_bp.route('/teams/<team_id>/threads/<thread_id>/messages', methods=['POST'])
@login_required
@team_required
def send_message(team_id, thread_id):
    message = ThreadService.send_message(team_id, thread_id, current_user.id, _json_body().get('body'))
    return jsonify(serialize_message(message)), 201


@api_bp.route('/teams/<team_id>/announcements', methods=['GET'])
@login_required
@team_required
def list_announcements(team_id):
    announcements = AnnouncementService.list_announcements(team_id, current_user.id)
    return jsonify({'items': [serialize_announcement(a) for a in announcements]})


@api_bp.route('/teams/<team_id>/announcements', methods=['POST'])
@login_required
@team_required
def create_announcement(team_id):
    announcement = AnnouncementService.create_announcement(team_id, current_user.id, _json_body())
    return jsonify(serialize_announcement(announcement)), 201


@api_bp.route('/teams/<team_id>/notifications', methods=['GET'])
@login_required
@team_required
def list_notifications(team_id):
    notifications = NotificationService.list_for_user(
        team_id,
        current_user.id,
        unread_only=parse_bool(request.args.get('unread', '')),
        limit=max(1, min(parse_int(request.args.get('limit'), 'limit', 50), 200)),
    )
    return jsonify({
        'items': [serialize_notification(n) for n in notifications],
        'unread_count': NotificationService.unread_count(team_id, current_user.id),
    })


@api_bp.route('/teams/<team_id>/notifications/<notification_id>/read', methods=['POST'])
@login_required
@team_required
def mark_notification_read(team_id, notification_id):
    notification = NotificationService.mark_read(team_id, current_user.id, notification_id)
    return jsonify(serialize_notification(notification))


@api_bp.route('/teams/<team_id>/notifications/read-all', methods=['POST'])
@login_required
@team_required
def mark_all_notifications_read(team_id):
    count = NotificationService.mark_all_read(team_id, current_user.id)
    return jsonify({'marked': count})


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------


@api_bp.route('/teams/<team_id>/roster', methods=['GET'])
@login_required
@team_required
def list_roster(team_id):
    players = RosterService.list_players(
        team_id,
        current_user.id,
        include_inactive=parse_bool(request.args.get('include_inactive')),
    )
    return jsonify({'items': [serialize_player(p) for p in players]})


@api_bp.route('/teams/<team_id>/roster', methods=['POST'])
@login_required
@team_required
def add_player(team_id):
    player = RosterService.add_player(team_id, current_user.id, _json_body())
    return jsonify(serialize_player(player)), 201


@api_bp.route('/teams/<team_id>/roster/<player_id>', methods=['PATCH'])
@login_required
@team_required
def update_player(team_id, player_id):
    player = RosterService.update_player(team_id, player_id, current_user.id, _json_body())
    return jsonify(serialize_player(player))


@api_bp.route('/teams/<team_id>/roster/<player_id>/guardians', methods=['POST'])
@login_required
@team_required
def link_guardian(team_id, player_id):
    data = _json_body()
    link = RosterService.link_guardian(team_id, player_id, current_user.id, data.get('user_id'))
    return jsonify({'id': link.id, 'player_id': link.player_id, 'guardian_id': link.guardian_id}), 201


@api_bp.route('/teams/<team_id>/members/<membership_id>/assignment', methods=['PUT'])
@login_required
@team_required
def assign_staff_role(team_id, membership_id):
    data = _json_body()
    membership = RosterService.assign_staff_role(
        team_id,
        current_user.id,
        membership_id,
        coordinator_type=data.get('coordinator_type'),
        position_groups=data.get('position_groups'),
    )
    return jsonify(serialize_membership(membership))


# ---------------------------------------------------------------------------
# AI assistant
# ---------------------------------------------------------------------------


@api_bp.route('/teams/<team_id>/ai/actions', methods=['POST'])
@login_required
@team_required
@limiter.limit(_ai_rate_limit)
def execute_ai_action(team_id):
    data = _json_body()
    result = AIActionService.execute_safe_action(
        team_id,
        current_user.id,
        data.get('action_type'),
        data.get('payload') or {},
    )
    return jsonify(result)


@api_bp.route('/teams/<team_id>/ai/proposals', methods=['GET'])
@login_required
@team_required
def list_ai_proposals(team_id):
    proposals = AIActionService.list_proposals(team_id, current_user.id, status=request.args.get('status'))
    return jsonify({'items': [serialize_proposal(p) for p in proposals]})


@api_bp.route('/teams/<team_id>/ai/proposals', methods=['POST'])
@login_required
@team_required
@limiter.limit(_ai_rate_limit)
def create_ai_proposal(team_id):
    data = _json_body()
    proposal = AIActionService.propose_action(
        team_id,
        current_user.id,
        data.get('action_type'),
        data.get('payload') or {},
        preview=data.get('preview'),
        idempotency_key=data.get('idempotency_key') or request.headers.get('Idempotency-Key'),
    )
    return jsonify(serialize_proposal(proposal)), 201


@api_bp.route('/teams/<team_id>/ai/proposals/<proposal_id>/confirm', methods=['POST'])
@login_required
@team_required
@limiter.limit(_ai_rate_limit)
def confirm_ai_proposal(team_id, proposal_id):
    confirmed_items = _json_body().get('confirmed_items')
    result = AIActionService.confirm_action(proposal_id, current_user.id, confirmed_items, team_id=team_id)
    return jsonify(result)


@api_bp.route('/teams/<team_id>/ai/proposals/<proposal_id>/reject', methods=['POST'])
@login_required
@team_required
def reject_ai_proposal(team_id, proposal_id):
    reason = _json_body().get('reason')
    proposal = AIActionService.reject_action(proposal_id, current_user.id, reason, team_id=team_id)
    return jsonify(serialize_proposal(proposal))
