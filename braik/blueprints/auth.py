"""Session authentication for the JSON API."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy import select

from braik.extensions import db, limiter
from braik.models import User

auth_bp = Blueprint("auth", __name__)


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'teams': [
            {
                'team_id': m.team_id,
                'role': m.role.value if hasattr(m.role, 'value') else m.role,
            }
            for m in user.memberships
        ],
    }


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({'error': {'code': 'validation_error', 'message': 'Email and password are required'}}), 400

    user = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None or not user.check_password(password):
        current_app.logger.warning(f"Failed login attempt for {email} from {request.remote_addr}")
        return jsonify({'error': {'code': 'invalid_credentials', 'message': 'Invalid email or password'}}), 401
    if not user.is_active:
        return jsonify({'error': {'code': 'account_disabled', 'message': 'This account has been disabled'}}), 403

    login_user(user, remember=bool(data.get('remember')))
    current_app.logger.info(f"User {user.id} logged in")
    return jsonify({'user': serialize_user(user)})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    user_id = current_user.id
    logout_user()
    current_app.logger.info(f"User {user_id} logged out")
    return jsonify({'ok': True})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({'user': serialize_user(current_user)})
