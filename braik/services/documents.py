"""Team documents and resources.

Head coach: full access. Coordinators create and edit their unit's material.
Position coaches and players read what is in their scope. Parents read only
documents the head coach shared with the whole program, on school teams.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select

from braik.blueprints.common.team import get_team_object
from braik.extensions import db
from braik.models import Document, DocumentVisibility, MembershipRole
from braik.services.audit import record_audit
from braik.services.authorization import deny, evaluate_edit
from braik.services.billing import require_billing_permission
from braik.services.errors import ResourceNotFound, ValidationError
from braik.services.membership import MemberContext, MembershipDirectory
from braik.services.payloads import parse_enum, require_fields
from braik.services.scoping import ProgramWide, scoping_for_new_resource
from braik.services.visibility import can_view


@dataclass(frozen=True)
class DocumentCapabilities:
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_link: bool = False


FULL = DocumentCapabilities(True, True, True, True, True)
READ_ONLY = DocumentCapabilities(can_view=True)


def document_capabilities(context: MemberContext) -> DocumentCapabilities:
    role = context.role
    if role == MembershipRole.HEAD_COACH:
        return FULL
    if role == MembershipRole.PARENT:
        return READ_ONLY if context.is_school_team else DocumentCapabilities()
    if role == MembershipRole.PLAYER:
        return READ_ONLY
    if role == MembershipRole.ASSISTANT_COACH:
        if context.is_coordinator:
            return DocumentCapabilities(can_view=True, can_create=True, can_edit=True, can_link=True)
        return READ_ONLY
    if isinstance(context.scope, ProgramWide):
        return READ_ONLY
    return DocumentCapabilities()


def _visibility(document: Any) -> DocumentVisibility:
    value = getattr(document, "visibility", None) or DocumentVisibility.ALL
    if isinstance(value, DocumentVisibility):
        return value
    return DocumentVisibility(str(value).lower())


def visibility_permits(role: MembershipRole, visibility: DocumentVisibility) -> bool:
    if role == MembershipRole.HEAD_COACH:
        return True
    if visibility == DocumentVisibility.STAFF:
        return role not in (MembershipRole.PLAYER, MembershipRole.PARENT)
    if visibility == DocumentVisibility.PLAYERS:
        return role != MembershipRole.PARENT
    if visibility == DocumentVisibility.PARENTS:
        return role == MembershipRole.PARENT
    return True


def can_view_document(context: MemberContext, document: Any, *, created_by_head_coach: bool = False) -> bool:
    if not document_capabilities(context).can_view:
        return False
    if context.is_head_coach:
        return True
    if not visibility_permits(context.role, _visibility(document)):
        return False
    return can_view(context.scope, document, created_by_head_coach=created_by_head_coach)


def can_edit_document(context: MemberContext, document: Any) -> bool:
    if not document_capabilities(context).can_edit:
        return False
    return evaluate_edit(context.user_id, document, context).allowed


def can_delete_document(context: MemberContext, document: Any) -> bool:
    return document_capabilities(context).can_delete


class DocumentService:
    """Service for team documents."""

    @staticmethod
    def list_documents(team_id: str, user_id: str, category: str | None = None) -> list[Document]:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)

        stmt = select(Document).where(Document.team_id == team_id)
        if category:
            stmt = stmt.where(Document.category == category)
        stmt = stmt.order_by(Document.created_at.desc())

        head_coaches = MembershipDirectory.head_coach_ids(team_id)
        return [
            document
            for document in db.session.execute(stmt).scalars()
            if can_view_document(context, document, created_by_head_coach=document.created_by in head_coaches)
        ]

    @staticmethod
    def get_document(team_id: str, document_id: str, user_id: str) -> Document:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)
        document = get_team_object(Document, team_id, document_id, "Document")
        head_coaches = MembershipDirectory.head_coach_ids(team_id)
        if not can_view_document(context, document, created_by_head_coach=document.created_by in head_coaches):
            raise ResourceNotFound("Document")
        return document

    @staticmethod
    def create_document(team_id: str, user_id: str, payload: dict[str, Any]) -> Document:
        require_billing_permission(team_id, "create")
        context = MembershipDirectory.load_context(user_id, team_id)
        if not document_capabilities(context).can_create:
            deny(context, "You don't have permission to create documents")

        require_fields(payload, "title")
        document = Document(
            team_id=team_id,
            created_by=user_id,
            title=str(payload["title"]).strip(),
            file_url=payload.get("file_url") or None,
            category=payload.get("category") or None,
            visibility=parse_enum(DocumentVisibility, payload.get("visibility"), "visibility", DocumentVisibility.ALL),
        )
        scoping_for_new_resource(context).apply(document)
        db.session.add(document)
        db.session.flush()

        record_audit(team_id, user_id, "document_created", "document", document.id, {"title": document.title})
        db.session.commit()
        return document

    @staticmethod
    def update_document(team_id: str, document_id: str, user_id: str, patch: dict[str, Any]) -> Document:
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        document = get_team_object(Document, team_id, document_id, "Document")

        if not document_capabilities(context).can_edit:
            deny(context, "You don't have permission to edit documents")
        decision = evaluate_edit(user_id, document, context)
        if not decision:
            deny(context, decision.reason, action="edit", resource_id=document.id)

        changes = {}
        if "title" in patch:
            title = str(patch["title"] or "").strip()
            if not title:
                raise ValidationError("title cannot be empty", field="title")
            document.title = title
            changes["title"] = title
        if "category" in patch:
            document.category = patch["category"] or None
            changes["category"] = document.category
        if "file_url" in patch:
            document.file_url = patch["file_url"] or None
        if "visibility" in patch:
            document.visibility = parse_enum(DocumentVisibility, patch["visibility"], "visibility", document.visibility)
            changes["visibility"] = document.visibility.value

        record_audit(team_id, user_id, "document_updated", "document", document.id, {"changes": changes})
        db.session.commit()
        return document

    @staticmethod
    def remove_document(team_id: str, document_id: str, user_id: str) -> None:
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        document = get_team_object(Document, team_id, document_id, "Document")
        if not can_delete_document(context, document):
            deny(context, "Only the head coach can delete documents", resource_id=document.id)

        record_audit(team_id, user_id, "document_deleted", "document", document.id, {"title": document.title})
        db.session.delete(document)
        db.session.commit()
