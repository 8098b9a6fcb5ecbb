"""Staff assignment decoding, scope resolution and creation-time scoping."""

from types import SimpleNamespace

from braik.models import CoordinatorType, MembershipRole, Unit
from braik.services.membership import MemberContext
from braik.services.scoping import (
    CoordinatorAssignment,
    NoAssignment,
    NoScope,
    OwnChildScope,
    PositionAssignment,
    PositionGroupsScope,
    ProgramWide,
    ScopeSummary,
    SelfScope,
    UnitScope,
    decode_assignment,
    encode_assignment,
    resolve_scope,
    scope_covers_player,
    scoping_for_new_resource,
    unit_for_position_group,
)


def _context(role, assignment=NoAssignment(), scope=None):
    membership = SimpleNamespace(role=role, user_id='u1', team_id='t1')
    return MemberContext(membership=membership, assignment=assignment, scope=scope or NoScope(role))


def test_coordinator_type_wins_over_position_groups():
    assignment = decode_assignment({'coordinatorType': 'OFFENSIVE_COORDINATOR'}, ['QB', 'WR'])
    assert assignment == CoordinatorAssignment(CoordinatorType.OFFENSIVE_COORDINATOR)
    assert assignment.unit == Unit.OFFENSE


def test_legacy_coordinator_codes_are_accepted():
    assert decode_assignment({'coordinatorType': 'dc'}, None).unit == Unit.DEFENSE
    assert decode_assignment({'coordinator_type': 'ST'}, None).unit == Unit.SPECIAL_TEAMS


def test_position_groups_are_normalized():
    assignment = decode_assignment(None, [' wr', 'WR', 'qb', 7])
    assert assignment == PositionAssignment(('WR', 'QB'))
    assert assignment.units == frozenset({Unit.OFFENSE})


def test_garbage_blobs_decode_to_no_assignment():
    assert decode_assignment('not-a-dict', 'not-a-list') == NoAssignment()
    assert decode_assignment({'coordinatorType': 'HEAD_WIZARD'}, []) == NoAssignment()


def test_encoded_assignment_decodes_back():
    original = CoordinatorAssignment(CoordinatorType.SPECIAL_TEAMS_COORDINATOR)
    assert decode_assignment(*encode_assignment(original)) == original
    assert encode_assignment(NoAssignment()) == (None, None)


def test_resolve_scope_by_role():
    coordinator = CoordinatorAssignment(CoordinatorType.DEFENSIVE_COORDINATOR)
    player = SimpleNamespace(id='p1', position_group='QB')

    assert resolve_scope(MembershipRole.HEAD_COACH, NoAssignment()) == ProgramWide()
    assert resolve_scope(MembershipRole.SCHOOL_ADMIN, NoAssignment()) == ProgramWide()
    assert resolve_scope(MembershipRole.ASSISTANT_COACH, coordinator) == UnitScope(Unit.DEFENSE)
    assert resolve_scope(MembershipRole.ASSISTANT_COACH, PositionAssignment(('OL',))) == PositionGroupsScope(frozenset({'OL'}))
    assert resolve_scope(MembershipRole.ASSISTANT_COACH, NoAssignment()) == NoScope(MembershipRole.ASSISTANT_COACH)
    assert resolve_scope(MembershipRole.PLAYER, NoAssignment(), self_player=player) == SelfScope('p1', 'QB')
    assert resolve_scope(MembershipRole.PLAYER, NoAssignment()) == NoScope(MembershipRole.PLAYER)
    assert resolve_scope(MembershipRole.PARENT, NoAssignment(), child_player_ids=['p1']) == OwnChildScope(frozenset({'p1'}))
    assert resolve_scope(MembershipRole.PLATFORM_OWNER, NoAssignment()) == NoScope(MembershipRole.PLATFORM_OWNER)


def test_assignment_is_ignored_for_players():
    coordinator = CoordinatorAssignment(CoordinatorType.OFFENSIVE_COORDINATOR)
    assert isinstance(resolve_scope(MembershipRole.PLAYER, coordinator), NoScope)


def test_scope_covers_player():
    qb = SimpleNamespace(id='p1', position_group='QB')
    lb = SimpleNamespace(id='p2', position_group='LB')

    assert scope_covers_player(ProgramWide(), lb)
    assert scope_covers_player(UnitScope(Unit.OFFENSE), qb)
    assert not scope_covers_player(UnitScope(Unit.OFFENSE), lb)
    assert scope_covers_player(PositionGroupsScope(frozenset({'LB'})), lb)
    assert scope_covers_player(OwnChildScope(frozenset({'p1'})), qb)
    assert not scope_covers_player(OwnChildScope(frozenset({'p1'})), lb)
    assert not scope_covers_player(NoScope(MembershipRole.ASSISTANT_COACH), qb)


def test_unit_for_position_group():
    assert unit_for_position_group('qb') == Unit.OFFENSE
    assert unit_for_position_group('CB') == Unit.DEFENSE
    assert unit_for_position_group('LS') == Unit.SPECIAL_TEAMS
    assert unit_for_position_group('COACH') is None
    assert unit_for_position_group(None) is None


def test_coordinator_resources_are_stamped_with_unit():
    assignment = CoordinatorAssignment(CoordinatorType.OFFENSIVE_COORDINATOR)
    fields = scoping_for_new_resource(_context(MembershipRole.ASSISTANT_COACH, assignment, UnitScope(Unit.OFFENSE)))
    assert fields.scoped_unit == Unit.OFFENSE
    assert fields.coordinator_type == CoordinatorType.OFFENSIVE_COORDINATOR
    assert fields.scoped_position_groups is None


def test_position_coach_resources_are_stamped_with_groups():
    assignment = PositionAssignment(('WR', 'TE'))
    fields = scoping_for_new_resource(_context(MembershipRole.ASSISTANT_COACH, assignment))
    assert fields.scoped_position_groups == ['WR', 'TE']
    assert fields.scoped_unit is None


def test_head_coach_resources_are_unscoped():
    fields = scoping_for_new_resource(_context(MembershipRole.HEAD_COACH, scope=ProgramWide()))
    assert fields.is_unscoped
    assert fields.coordinator_type is None


def test_scope_summary():
    assert ScopeSummary.of(ProgramWide()).to_dict()['kind'] == 'program'
    summary = ScopeSummary.of(SelfScope('p1', 'QB')).to_dict()
    assert summary == {'kind': 'self', 'unit': 'OFFENSE', 'position_groups': ['QB'], 'player_ids': ['p1']}
