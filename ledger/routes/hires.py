"""
Hire routes — internal hire events.

A newly created hire is matched against open introductions straight away;
a duplicate submission is returned as-is without re-matching.
"""
import logging

from flask import Blueprint, jsonify, request

from ledger.auth import require_admin
from ledger.config import HIRE_SOURCE_INTERNAL
from ledger.errors import InvalidStateError, ValidationError
from ledger.routes.params import (
    json_body, paging, parse_crd, parse_date, parse_int, require_fields,
)
from ledger.services import hires as hire_service
from ledger.services.placements import match_hire_to_introductions

logger = logging.getLogger('routes.hires')

bp = Blueprint('hires', __name__, url_prefix='/api/hires')


@bp.route('', methods=['POST'])
@require_admin
def create_hire():
    data = json_body()
    require_fields(data, 'crd_number', 'firm_entity', 'hire_date')

    hire, created = hire_service.create_hire(
        crd_number=parse_crd(data['crd_number'], 'crd_number'),
        first_name=data.get('first_name', ''),
        last_name=data.get('last_name', ''),
        firm_entity=data['firm_entity'],
        firm_crd=parse_int(data.get('firm_crd'), 'firm_crd', minimum=1),
        hire_date=parse_date(data['hire_date'], 'hire_date'),
        source=data.get('source') or HIRE_SOURCE_INTERNAL,
        raw_source_reference=data.get('raw_source_reference'),
        audit_source='INTERNAL_API',
    )

    body = {'hire': hire.to_dict(), 'created': created, 'placement': None}
    if created:
        try:
            placement = match_hire_to_introductions(hire.id)
        except InvalidStateError as e:
            # The hire is committed either way.
            logger.warning("Hire %s recorded but not attributed: %s", hire.id, e)
            placement = None
        if placement is not None:
            body['placement'] = placement.to_dict()
    return jsonify(body), 201 if created else 200


@bp.route('', methods=['GET'])
@require_admin
def list_hires():
    skip, take = paging()
    crd = request.args.get('crd_number')
    rows, total = hire_service.list_hires(
        crd_number=parse_crd(crd, 'crd_number') if crd else None,
        firm_entity=request.args.get('firm_entity'),
        source=request.args.get('source'),
        from_date=parse_date(request.args.get('from_date'), 'from_date'),
        to_date=parse_date(request.args.get('to_date'), 'to_date'),
        skip=skip,
        take=take,
    )
    return jsonify({
        'data': [h.to_dict() for h in rows],
        'total': total,
        'skip': skip,
        'take': take,
    }), 200


@bp.route('/recent', methods=['GET'])
@require_admin
def recent_hires():
    days = parse_int(request.args.get('days'), 'days', minimum=1) or 7
    return jsonify([h.to_dict() for h in hire_service.recent_hires(days)]), 200


@bp.route('/by-crd/<crd>', methods=['GET'])
@require_admin
def hires_by_crd(crd):
    rows = hire_service.find_hires_by_crd(parse_crd(crd, 'crd'))
    return jsonify([h.to_dict() for h in rows]), 200


@bp.route('/<hire_id>', methods=['GET'])
@require_admin
def get_hire(hire_id):
    return jsonify(hire_service.get_hire(hire_id).to_dict()), 200


@bp.route('/<hire_id>', methods=['PATCH'])
@require_admin
def update_hire(hire_id):
    """Only termination_date is mutable; null clears it."""
    data = json_body()
    if 'termination_date' not in data:
        raise ValidationError('Missing required fields: termination_date')
    hire = hire_service.set_termination_date(
        hire_id, parse_date(data['termination_date'], 'termination_date'),
    )
    return jsonify(hire.to_dict()), 200
