"""
Health routes — liveness and circuit breaker health.
"""
from flask import Blueprint, jsonify

from ledger.auth import require_admin
from ledger.errors import NotFoundError
from ledger.services.circuit_breaker import get_all_breakers

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def breaker_health():
    breakers = get_all_breakers()
    services = {name: cb.get_health() for name, cb in sorted(breakers.items())}
    degraded = any(h['state'] != 'closed' for h in services.values())
    return jsonify({'status': 'degraded' if degraded else 'healthy', 'services': services}), 200


@bp.route('/api/health/<name>/reset', methods=['POST'])
@require_admin
def reset_breaker(name):
    breaker = get_all_breakers().get(name)
    if breaker is None:
        raise NotFoundError('Circuit breaker', name)
    breaker.reset()
    return jsonify(breaker.get_health()), 200
