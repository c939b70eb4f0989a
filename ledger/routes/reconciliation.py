"""
Reconciliation routes — manual BrokerCheck runs, status, ad-hoc CRD checks.
"""
import logging

from flask import Blueprint, jsonify, request

from ledger.auth import require_admin
from ledger.routes.params import parse_crd
from ledger.services.brokercheck import RegistryError
from ledger.services.reconciliation import enqueue_reconciliation, get_reconciler

logger = logging.getLogger('routes.reconciliation')

bp = Blueprint('reconciliation', __name__, url_prefix='/api/reconciliation')


@bp.route('/run', methods=['POST'])
@require_admin
def run_reconciliation():
    """Run inline by default; ?async=1 hands the run to an RQ worker."""
    if request.args.get('async') in ('1', 'true'):
        job_id = enqueue_reconciliation()
        return jsonify({'job_id': job_id, 'status': 'queued'}), 202

    result = get_reconciler().run()
    return jsonify(result.to_dict()), 200


@bp.route('/status', methods=['GET'])
@require_admin
def reconciliation_status():
    return jsonify(get_reconciler().status()), 200


@bp.route('/check/<crd>', methods=['GET'])
@require_admin
def check_crd(crd):
    crd = parse_crd(crd, 'crd')
    try:
        return jsonify(get_reconciler().check_crd(crd)), 200
    except RegistryError as e:
        logger.warning("Ad-hoc BrokerCheck lookup for CRD %s failed: %s", crd, e)
        return jsonify({'error': str(e)}), 502
