"""
Placement routes — manual placement, matching, billing status, stats.
"""
from flask import Blueprint, jsonify, request

from ledger.auth import require_admin
from ledger.routes.params import (
    json_body, paging, parse_crd, parse_date, parse_int, require_fields,
)
from ledger.services import placements as placement_service

bp = Blueprint('placements', __name__, url_prefix='/api/placements')


@bp.route('', methods=['POST'])
@require_admin
def create_placement():
    """Manual placement, optionally overriding the fee the partner terms would give."""
    data = json_body()
    require_fields(data, 'introduction_id', 'hire_id')
    placement = placement_service.create_placement(
        data['introduction_id'],
        data['hire_id'],
        fee_override=data.get('fee_amount'),
        fee_currency=data.get('fee_currency'),
    )
    return jsonify(placement.to_dict()), 201


@bp.route('/match/<hire_id>', methods=['POST'])
@require_admin
def match_hire(hire_id):
    placement = placement_service.match_hire_to_introductions(hire_id)
    if placement is None:
        return jsonify({'matched': False, 'placement': None}), 200
    return jsonify({'matched': True, 'placement': placement.to_dict()}), 201


@bp.route('', methods=['GET'])
@require_admin
def list_placements():
    skip, take = paging()
    crd = request.args.get('candidate_crd')
    rows, total = placement_service.list_placements(
        partner_id=request.args.get('partner_id'),
        candidate_crd=parse_crd(crd) if crd else None,
        status=request.args.get('status'),
        from_date=parse_date(request.args.get('from_date'), 'from_date'),
        to_date=parse_date(request.args.get('to_date'), 'to_date'),
        skip=skip,
        take=take,
    )
    return jsonify({
        'data': [p.to_dict() for p in rows],
        'total': total,
        'skip': skip,
        'take': take,
    }), 200


@bp.route('/stats', methods=['GET'])
@require_admin
def placement_stats():
    return jsonify(placement_service.get_summary_stats()), 200


@bp.route('/notify-pending', methods=['POST'])
@require_admin
def notify_pending():
    limit = parse_int(request.args.get('limit'), 'limit', minimum=1) or 50
    return jsonify(placement_service.retry_pending_notifications(limit=limit)), 200


@bp.route('/<placement_id>', methods=['GET'])
@require_admin
def get_placement(placement_id):
    return jsonify(placement_service.get_placement(placement_id).to_dict()), 200


@bp.route('/<placement_id>', methods=['PATCH'])
@require_admin
def update_placement(placement_id):
    data = json_body()
    require_fields(data, 'status')
    placement = placement_service.update_placement_status(placement_id, data['status'])
    return jsonify(placement.to_dict()), 200
