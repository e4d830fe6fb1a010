"""Blueprint registration."""

from routes.auth import auth_bp
from routes.invitations import invitations_bp
from routes.leases import leases_bp
from routes.properties import properties_bp
from routes.solvency import solvency_bp
from routes.subscriptions import subscriptions_bp

ALL_BLUEPRINTS = [
    auth_bp,
    subscriptions_bp,
    properties_bp,
    solvency_bp,
    invitations_bp,
    leases_bp,
]


def register_blueprints(app):
    """Register all application blueprints on *app*."""
    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)
