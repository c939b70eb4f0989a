"""
Partner routes — admin management of partners and their API keys.
"""
from flask import Blueprint, jsonify

from ledger.auth import require_admin
from ledger.routes.params import json_body, require_fields
from ledger.services import partners as partner_service

bp = Blueprint('partners', __name__, url_prefix='/api/partners')


@bp.route('', methods=['POST'])
@require_admin
def create_partner():
    data = json_body()
    require_fields(data, 'name', 'api_key')
    partner = partner_service.create_partner(
        name=data['name'],
        api_key=data['api_key'],
        placement_terms=data.get('placement_terms'),
        webhook_url=data.get('webhook_url'),
    )
    return jsonify(partner.to_dict()), 201


@bp.route('', methods=['GET'])
@require_admin
def list_partners():
    return jsonify([p.to_dict() for p in partner_service.list_partners()]), 200


@bp.route('/<partner_id>', methods=['GET'])
@require_admin
def get_partner(partner_id):
    return jsonify(partner_service.get_partner(partner_id).to_dict()), 200


@bp.route('/<partner_id>', methods=['PATCH'])
@require_admin
def update_partner(partner_id):
    data = json_body()
    partner = partner_service.update_partner(
        partner_id,
        name=data.get('name'),
        placement_terms=data.get('placement_terms'),
        webhook_url=data.get('webhook_url'),
        is_active=data.get('is_active'),
    )
    return jsonify(partner.to_dict()), 200


@bp.route('/<partner_id>/rotate-key', methods=['POST'])
@require_admin
def rotate_key(partner_id):
    """The new raw key is only ever shown in this response."""
    new_key = partner_service.rotate_api_key(partner_id)
    return jsonify({'id': partner_id, 'api_key': new_key}), 200
