"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask, jsonify


def create_app():
    """Create and configure the Flask application."""
    from ledger.config import SECRET_KEY
    from ledger.errors import LedgerError
    from ledger.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = SECRET_KEY
    app.json.sort_keys = False

    @app.errorhandler(LedgerError)
    def handle_ledger_error(e):
        return jsonify({'error': e.message}), e.status_code

    # Register blueprints
    from ledger.routes.health import bp as health_bp
    from ledger.routes.partners import bp as partners_bp
    from ledger.routes.introductions import bp as introductions_bp
    from ledger.routes.hires import bp as hires_bp
    from ledger.routes.placements import bp as placements_bp
    from ledger.routes.reconciliation import bp as reconciliation_bp
    from ledger.routes.audit import bp as audit_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(partners_bp)
    app.register_blueprint(introductions_bp)
    app.register_blueprint(hires_bp)
    app.register_blueprint(placements_bp)
    app.register_blueprint(reconciliation_bp)
    app.register_blueprint(audit_bp)

    # Circuit breakers for external services
    from ledger.extensions import redis_client, log_missing_configuration
    from ledger.services.circuit_breaker import init_breakers
    init_breakers(redis_client)
    log_missing_configuration()

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic — no create_all() call.
    import importlib
    importlib.import_module('ledger.models.partner')
    importlib.import_module('ledger.models.introduction')
    importlib.import_module('ledger.models.hire')
    importlib.import_module('ledger.models.placement')
    importlib.import_module('ledger.models.audit_log')
    importlib.import_module('ledger.models.registered_advisor')

    return app
