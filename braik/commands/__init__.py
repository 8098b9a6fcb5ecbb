"""CLI commands for Braik."""

from .team import team_commands
from .billing import billing_commands
from .user import user_commands


def register_commands(app):
    """Register all CLI command groups with the Flask app."""
    app.cli.add_command(team_commands)
    app.cli.add_command(billing_commands)
    app.cli.add_command(user_commands)
