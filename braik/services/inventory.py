"""Equipment inventory.

Visibility follows the player an item is assigned to rather than the item's
own scoping: coaches see unassigned items plus items held by players in their
scope, players see what they hold, parents see nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from braik.blueprints.common.team import get_team_object
from braik.extensions import db
from braik.models import InventoryItem, MembershipRole, Player, PlayerStatus
from braik.services.audit import record_audit
from braik.services.authorization import deny, evaluate_edit
from braik.services.billing import require_billing_permission
from braik.services.errors import ResourceNotFound, ValidationError
from braik.services.membership import MemberContext, MembershipDirectory
from braik.services.payloads import parse_int, require_fields
from braik.services.scoping import SelfScope, scope_covers_player, scoping_for_new_resource


@dataclass(frozen=True)
class InventoryCapabilities:
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_assign: bool = False
    can_view_all: bool = False


def inventory_capabilities(context: MemberContext) -> InventoryCapabilities:
    role = context.role
    if role == MembershipRole.HEAD_COACH:
        return InventoryCapabilities(True, True, True, True, True, True)
    if role == MembershipRole.PLAYER:
        return InventoryCapabilities(can_view=True)
    if role == MembershipRole.ASSISTANT_COACH:
        if context.is_coordinator:
            return InventoryCapabilities(can_view=True, can_create=True, can_edit=True, can_assign=True)
        if context.is_position_coach:
            return InventoryCapabilities(can_view=True, can_assign=True)
        return InventoryCapabilities(can_view=True, can_view_all=True)
    return InventoryCapabilities()


def can_view_item(context: MemberContext, item: Any, assigned_player: Any = None) -> bool:
    capabilities = inventory_capabilities(context)
    if not capabilities.can_view:
        return False
    if capabilities.can_view_all:
        return True

    if context.role == MembershipRole.PLAYER:
        scope = context.scope
        return (
            isinstance(scope, SelfScope)
            and item.assigned_to_player_id is not None
            and item.assigned_to_player_id == scope.player_id
        )

    if item.assigned_to_player_id is None:
        return True
    if assigned_player is None:
        return False
    return scope_covers_player(context.scope, assigned_player)


def can_assign_to_player(context: MemberContext, player: Any) -> bool:
    if not inventory_capabilities(context).can_assign:
        return False
    if context.is_head_coach:
        return True
    return player.status == PlayerStatus.ACTIVE and scope_covers_player(context.scope, player)


def can_edit_item(context: MemberContext, item: Any) -> bool:
    if not inventory_capabilities(context).can_edit:
        return False
    return evaluate_edit(context.user_id, item, context).allowed


class InventoryService:
    """Service for team inventory items."""

    @staticmethod
    def list_items(team_id: str, user_id: str) -> list[InventoryItem]:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)

        stmt = (
            select(InventoryItem)
            .options(selectinload(InventoryItem.assigned_player))
            .where(InventoryItem.team_id == team_id)
            .order_by(InventoryItem.name.asc())
        )
        return [
            item
            for item in db.session.execute(stmt).scalars()
            if can_view_item(context, item, item.assigned_player)
        ]

    @staticmethod
    def create_item(team_id: str, user_id: str, payload: dict[str, Any]) -> InventoryItem:
        require_billing_permission(team_id, "create")
        context = MembershipDirectory.load_context(user_id, team_id)
        if not inventory_capabilities(context).can_create:
            deny(context, "You don't have permission to create inventory items")

        require_fields(payload, "name")
        quantity = parse_int(payload.get("quantity"), "quantity", 1)
        if quantity < 0:
            raise ValidationError("quantity cannot be negative", field="quantity")

        item = InventoryItem(
            team_id=team_id,
            created_by=user_id,
            name=str(payload["name"]).strip(),
            category=payload.get("category") or None,
            quantity=quantity,
            condition=payload.get("condition") or None,
            notes=payload.get("notes") or None,
        )
        scoping_for_new_resource(context).apply(item)

        player_id = payload.get("assigned_to_player_id")
        if player_id:
            player = InventoryService._assignable_player(context, team_id, player_id)
            item.assigned_to_player_id = player.id

        db.session.add(item)
        db.session.flush()
        record_audit(team_id, user_id, "inventory_created", "inventory_item", item.id, {"name": item.name})
        db.session.commit()
        return item

    @staticmethod
    def update_item(team_id: str, item_id: str, user_id: str, patch: dict[str, Any]) -> InventoryItem:
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        item = get_team_object(InventoryItem, team_id, item_id, "Inventory item")

        if not inventory_capabilities(context).can_edit:
            deny(context, "You don't have permission to edit inventory items")
        decision = evaluate_edit(user_id, item, context)
        if not decision:
            deny(context, decision.reason, action="edit", resource_id=item.id)

        changes = {}
        for field in ("name", "category", "condition", "notes"):
            if field in patch:
                setattr(item, field, patch[field] or None)
                changes[field] = patch[field]
        if not item.name:
            raise ValidationError("name cannot be empty", field="name")
        if "quantity" in patch:
            quantity = parse_int(patch["quantity"], "quantity", item.quantity)
            if quantity < 0:
                raise ValidationError("quantity cannot be negative", field="quantity")
            item.quantity = quantity
            changes["quantity"] = quantity

        record_audit(team_id, user_id, "inventory_updated", "inventory_item", item.id, {"changes": changes})
        db.session.commit()
        return item

    @staticmethod
    def assign_item(team_id: str, item_id: str, user_id: str, player_id: str | None) -> InventoryItem:
        """Assign ``item_id`` to ``player_id``, or return it to the pool when None."""
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        item = get_team_object(InventoryItem, team_id, item_id, "Inventory item")

        if not inventory_capabilities(context).can_assign:
            deny(context, "You don't have permission to assign inventory")
        if not can_view_item(context, item, item.assigned_player):
            raise ResourceNotFound("Inventory item")

        previous = item.assigned_to_player_id
        if player_id:
            player = InventoryService._assignable_player(context, team_id, player_id)
            item.assigned_to_player_id = player.id
        else:
            item.assigned_to_player_id = None

        record_audit(team_id, user_id, "inventory_assigned", "inventory_item", item.id, {
            "from_player_id": previous,
            "to_player_id": item.assigned_to_player_id,
        })
        db.session.commit()
        return item

    @staticmethod
    def remove_item(team_id: str, item_id: str, user_id: str) -> None:
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        item = get_team_object(InventoryItem, team_id, item_id, "Inventory item")
        if not inventory_capabilities(context).can_delete:
            deny(context, "Only the head coach can delete inventory items", resource_id=item.id)

        record_audit(team_id, user_id, "inventory_deleted", "inventory_item", item.id, {"name": item.name})
        db.session.delete(item)
        db.session.commit()

    @staticmethod
    def _assignable_player(context: MemberContext, team_id: str, player_id: str) -> Player:
        player = get_team_object(Player, team_id, player_id, "Player")
        if not can_assign_to_player(context, player):
            deny(context, "You can only assign items to active players in your scope", player_id=player_id)
        return player
