"""
Request authentication.

Partners authenticate with X-API-Key (SHA-256 hash lookup; the matched partner
is stored on flask.g). Internal endpoints take X-Admin-Key when ADMIN_API_KEY
is set and are open otherwise (local dev).
"""
import hmac
from functools import wraps

from flask import g, jsonify, request

from ledger import config
from ledger.services.partners import authenticate


def require_partner(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        api_key = request.headers.get('X-API-Key')
        if not api_key:
            return jsonify({'error': 'API key is required'}), 401
        partner = authenticate(api_key)
        if partner is None:
            return jsonify({'error': 'Invalid API key'}), 401
        g.partner = partner
        return view(*args, **kwargs)
    return wrapper


def require_admin(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        expected = config.ADMIN_API_KEY
        if expected:
            supplied = request.headers.get('X-Admin-Key') or ''
            if not hmac.compare_digest(supplied.encode('utf-8'), expected.encode('utf-8')):
                return jsonify({'error': 'Admin key required'}), 401
        return view(*args, **kwargs)
    return wrapper
