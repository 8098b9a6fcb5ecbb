"""Team resolution and team-isolation helpers."""

from __future__ import annotations

from functools import wraps
from typing import Type, TypeVar

from flask import g, has_request_context, request
from sqlalchemy import select

from braik.extensions import db
from braik.models import Team
from braik.services.errors import ResourceNotFound

Model = TypeVar("Model", bound=db.Model)


def init_team(app) -> None:
    """Register team resolution hooks with the Flask app."""

    @app.before_request
    def _load_team() -> None:
        resolve_team()


def resolve_team() -> Team | None:
    """Resolve the active team for the request.

    Order:
    1) ``team_id`` URL argument
    2) X-Team-Id header
    """

    team_id = None
    if request.view_args:
        team_id = request.view_args.get("team_id")
    if not team_id:
        header = request.headers.get("X-Team-Id")
        team_id = header.strip() if header else None

    team = db.session.get(Team, team_id) if team_id else None

    g.team = team
    g.team_id = team_id
    return team


def team_required(view):
    """Ensure a team is loaded before executing the view."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        if getattr(g, "team", None) is None:
            raise ResourceNotFound("Team")
        return view(*args, **kwargs)

    return wrapped


def get_team_object(model: Type[Model], team_id: str, object_id: str, entity: str | None = None) -> Model:
    """Fetch an object that belongs to ``team_id`` or raise ResourceNotFound."""

    stmt = select(model).where(model.id == object_id, model.team_id == team_id)
    instance = db.session.execute(stmt).scalar_one_or_none()
    if instance is None:
        raise ResourceNotFound(entity or model.__name__)
    return instance


@db.event.listens_for(db.session, "before_flush")
def _guard_team_id(session, flush_context, instances) -> None:
    """Assign team_id to new rows and block cross-team writes."""

    if not has_request_context():
        return

    team = getattr(g, "team", None)
    if team is None:
        return

    for obj in session.new:
        if hasattr(obj, "team_id"):
            current_value = getattr(obj, "team_id", None)
            if current_value is None:
                setattr(obj, "team_id", team.id)
            elif current_value != team.id:
                raise PermissionError("Cross-team insert blocked")

    for obj in session.dirty:
        if hasattr(obj, "team_id"):
            current_value = getattr(obj, "team_id", None)
            if current_value is not None and current_value != team.id:
                raise PermissionError("Cross-team update blocked")


__all__ = [
    "init_team",
    "resolve_team",
    "team_required",
    "get_team_object",
]
