"""
Audit routes — read-only access to the audit trail.
"""
from flask import Blueprint, jsonify, request

from ledger.auth import require_admin
from ledger.config import AUDIT_ENTITY_TYPES
from ledger.errors import ValidationError
from ledger.routes.params import paging
from ledger.services import audit as audit_service

bp = Blueprint('audit', __name__, url_prefix='/api/audit')


def _entity_type(value):
    if value and value.upper() not in AUDIT_ENTITY_TYPES:
        raise ValidationError(f'Invalid entity_type: {value}')
    return value.upper() if value else None


@bp.route('', methods=['GET'])
@require_admin
def list_audit_entries():
    entity_type = _entity_type(request.args.get('entity_type'))
    entity_id = request.args.get('entity_id')
    if entity_type and entity_id:
        rows = audit_service.find_by_entity(entity_type, entity_id)
    else:
        skip, take = paging()
        rows = audit_service.list_entries(
            entity_type=entity_type,
            source=request.args.get('source'),
            skip=skip,
            take=take,
        )
    return jsonify([r.to_dict() for r in rows]), 200


@bp.route('/<entity_type>/<entity_id>', methods=['GET'])
@require_admin
def entity_history(entity_type, entity_id):
    rows = audit_service.find_by_entity(_entity_type(entity_type), entity_id)
    return jsonify([r.to_dict() for r in rows]), 200
