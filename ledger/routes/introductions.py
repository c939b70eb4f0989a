"""
Introduction routes — the partner-facing API.

All endpoints are scoped to the partner resolved from X-API-Key.
"""
from flask import Blueprint, g, jsonify, request

from ledger.auth import require_partner
from ledger.errors import ValidationError
from ledger.routes.params import (
    json_body, paging, parse_crd, parse_datetime, require_fields,
)
from ledger.services import introductions as intro_service

bp = Blueprint('introductions', __name__, url_prefix='/api/introductions')


@bp.route('', methods=['POST'])
@require_partner
def create_introduction():
    """201 for a new introduction, 200 when the idempotency key already exists."""
    data = json_body()
    require_fields(data, 'candidate_crd', 'conversation_id', 'intro_timestamp', 'first_name', 'last_name')
    metadata = data.get('metadata')
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError('metadata must be an object')

    introduction, created = intro_service.create_introduction(
        partner_id=g.partner.id,
        candidate_crd=parse_crd(data['candidate_crd']),
        conversation_id=str(data['conversation_id']),
        intro_timestamp=parse_datetime(data['intro_timestamp'], 'intro_timestamp'),
        first_name=data['first_name'],
        last_name=data['last_name'],
        phone=data.get('phone'),
        email=data.get('email'),
        linkedin=data.get('linkedin'),
        recruiter_name=data.get('recruiter_name'),
        metadata=metadata,
    )
    return jsonify(introduction.to_dict()), 201 if created else 200


@bp.route('', methods=['GET'])
@require_partner
def list_introductions():
    skip, take = paging()
    crd = request.args.get('candidate_crd')
    rows, total = intro_service.list_introductions(
        partner_id=g.partner.id,
        candidate_crd=parse_crd(crd) if crd else None,
        status=request.args.get('status'),
        from_date=parse_datetime(request.args.get('from_date'), 'from_date'),
        to_date=parse_datetime(request.args.get('to_date'), 'to_date'),
        skip=skip,
        take=take,
    )
    return jsonify({
        'data': [i.to_dict() for i in rows],
        'total': total,
        'skip': skip,
        'take': take,
    }), 200


@bp.route('/by-crd/<crd>', methods=['GET'])
@require_partner
def introductions_by_crd(crd):
    rows = intro_service.find_by_crd(g.partner.id, parse_crd(crd, 'crd'))
    return jsonify([i.to_dict() for i in rows]), 200


@bp.route('/<introduction_id>', methods=['GET'])
@require_partner
def get_introduction(introduction_id):
    introduction = intro_service.get_introduction(introduction_id, partner_id=g.partner.id)
    return jsonify(introduction.to_dict()), 200


@bp.route('/<introduction_id>', methods=['PATCH'])
@require_partner
def update_introduction(introduction_id):
    data = json_body()
    require_fields(data, 'status')
    introduction = intro_service.update_introduction_status(
        introduction_id, data['status'], partner_id=g.partner.id,
    )
    return jsonify(introduction.to_dict()), 200
