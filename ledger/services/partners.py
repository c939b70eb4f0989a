"""
Partner registry — partner identities, attribution terms, API keys.

Raw API keys are only ever returned once (at rotation); the table stores a
SHA-256 hash.
"""
import hashlib
import logging
import secrets

from sqlalchemy.exc import IntegrityError

from ledger.database import get_session
from ledger.errors import ConflictError, NotFoundError, ValidationError
from ledger.models.partner import Partner
from ledger.services import audit
from ledger.services.attribution import to_decimal

logger = logging.getLogger('services.partners')

MIN_API_KEY_LENGTH = 32


def hash_api_key(api_key):
    return hashlib.sha256(api_key.encode('utf-8')).hexdigest()


def generate_api_key():
    return secrets.token_hex(32)


def normalize_terms(terms):
    """Validate a placement_terms dict. Unknown keys are kept as-is."""
    if terms is None:
        return None
    if not isinstance(terms, dict):
        raise ValidationError('placement_terms must be an object')
    window = terms.get('attribution_window_months')
    if window is not None and (not isinstance(window, int) or isinstance(window, bool) or window < 0):
        raise ValidationError('attribution_window_months must be a non-negative integer')
    for key in ('fee_percentage', 'flat_fee'):
        value = terms.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValidationError(f'{key} must be a number')
        try:
            amount = to_decimal(value)
        except ValueError:
            raise ValidationError(f'{key} must be a number')
        if not amount.is_finite():
            raise ValidationError(f'{key} must be a number')
        if amount < 0:
            raise ValidationError(f'{key} must be non-negative')
    return dict(terms)


def create_partner(name, api_key, placement_terms=None, webhook_url=None):
    """Create a partner. Conflict if the name is taken."""
    name = (name or '').strip()
    if not name:
        raise ValidationError('name is required')
    if not api_key or len(api_key) < MIN_API_KEY_LENGTH:
        raise ValidationError(f'api_key must be at least {MIN_API_KEY_LENGTH} characters')
    terms = normalize_terms(placement_terms)

    session = get_session()
    try:
        if session.query(Partner.id).filter_by(name=name).first():
            raise ConflictError(f'Partner with name "{name}" already exists')
        partner = Partner(
            name=name,
            placement_terms=terms,
            webhook_url=webhook_url,
            api_key_hash=hash_api_key(api_key),
            is_active=True,
        )
        session.add(partner)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise ConflictError(f'Partner with name "{name}" already exists')
    finally:
        session.close()

    audit.record('PARTNER', partner.id, 'CREATED', new_value={
        'name': partner.name,
        'webhook_url': partner.webhook_url,
        'placement_terms': partner.placement_terms,
    }, source='INTERNAL_API')
    logger.info("Created partner %s (%s)", partner.name, partner.id)
    return partner


def list_partners():
    session = get_session()
    try:
        return session.query(Partner).order_by(Partner.name.asc()).all()
    finally:
        session.close()


def get_partner(partner_id):
    session = get_session()
    try:
        partner = session.get(Partner, partner_id)
        if partner is None:
            raise NotFoundError('Partner', partner_id)
        return partner
    finally:
        session.close()


def update_partner(partner_id, name=None, placement_terms=None, webhook_url=None, is_active=None):
    """Update mutable partner fields. None means 'leave unchanged'."""
    session = get_session()
    try:
        partner = session.get(Partner, partner_id)
        if partner is None:
            raise NotFoundError('Partner', partner_id)

        old = {
            'name': partner.name,
            'webhook_url': partner.webhook_url,
            'placement_terms': partner.placement_terms,
            'is_active': partner.is_active,
        }

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError('name cannot be empty')
            clash = session.query(Partner.id).filter(Partner.name == name, Partner.id != partner_id).first()
            if clash:
                raise ConflictError(f'Partner with name "{name}" already exists')
            partner.name = name
        if placement_terms is not None:
            partner.placement_terms = normalize_terms(placement_terms)
        if webhook_url is not None:
            partner.webhook_url = webhook_url or None
        if is_active is not None:
            partner.is_active = bool(is_active)

        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise ConflictError(f'Partner with name "{name}" already exists')
    finally:
        session.close()

    audit.record('PARTNER', partner.id, 'UPDATED', old_value=old, new_value={
        'name': partner.name,
        'webhook_url': partner.webhook_url,
        'placement_terms': partner.placement_terms,
        'is_active': partner.is_active,
    }, source='INTERNAL_API')
    return partner


def rotate_api_key(partner_id):
    """
    Replace the partner's key and return the new raw key.

    A single-row UPDATE swaps the hash, so the old key stops working at the
    same instant the new one starts.
    """
    new_key = generate_api_key()
    session = get_session()
    try:
        updated = session.query(Partner).filter(Partner.id == partner_id).update(
            {Partner.api_key_hash: hash_api_key(new_key)},
            synchronize_session=False,
        )
        if updated == 0:
            session.rollback()
            raise NotFoundError('Partner', partner_id)
        session.commit()
    finally:
        session.close()

    audit.record('PARTNER', partner_id, 'UPDATED', new_value={'action': 'API_KEY_ROTATED'}, source='INTERNAL_API')
    logger.info("Rotated API key for partner %s", partner_id)
    return new_key


def authenticate(api_key):
    """Resolve a raw API key to an active partner, or None."""
    if not api_key:
        return None
    session = get_session()
    try:
        return session.query(Partner).filter_by(
            api_key_hash=hash_api_key(api_key),
            is_active=True,
        ).first()
    finally:
        session.close()


def get_terms(partner):
    """Partner's attribution terms as a plain dict (never None)."""
    return dict(partner.placement_terms or {}) if partner is not None else {}
