"""Application factory for Braik."""

from __future__ import annotations

from flask import Flask, jsonify

from braik.blueprints.api import api_bp
from braik.blueprints.auth import auth_bp
from braik.blueprints.common.team import init_team
from braik.config import Config
from braik.extensions import db, limiter, login_manager, migrate
from braik.models import User
from braik.services.billing import invalidate_billing_state
from braik.services.membership import invalidate_member_context


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)
    init_team(app)

    @app.teardown_request
    def drop_request_memos(exc):
        # Billing states and member contexts never outlive a request
        invalidate_billing_state()
        invalidate_member_context()

    @login_manager.user_loader
    def load_user(user_id: str):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        return jsonify({'error': {'code': 'unauthenticated', 'message': 'Authentication required'}}), 401

    # Ensure models are registered for migrations
    import braik.models  # noqa: F401

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(api_bp, url_prefix='/api')

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': {'code': 'not_found', 'message': 'Not found'}}), 404

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({'error': {'code': 'rate_limited', 'message': str(error.description)}}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': {'code': 'internal_error', 'message': 'Internal server error'}}), 500

    # Register CLI commands
    from braik.commands import register_commands
    register_commands(app)

    return app
