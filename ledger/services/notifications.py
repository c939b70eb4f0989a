"""
Notifications — partner webhooks and internal Slack messages.

Notification failure never blocks a ledger operation: every function here
logs and returns instead of raising.
"""
import logging
from datetime import datetime, timezone

import requests

from ledger.config import MONITORED_FIRM_NAME, PARTNER_WEBHOOK_TIMEOUT, SLACK_WEBHOOK_URL
from ledger.services import audit

logger = logging.getLogger('services.notifications')

PLACEMENT_CREATED_EVENT = 'placement.created'


def _post_to_slack(blocks, what):
    requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
    logger.info("Slack notification sent: %s", what)


# ── Partner webhooks ─────────────────────────────────────────────────────────

def notify_partner_of_placement(partner, summary):
    """
    POST a placement.created event to the partner's webhook.

    Returns True when the partner acknowledged with a 2xx. Either outcome is
    written to the audit trail against the placement.
    """
    if not partner or not partner.webhook_url:
        logger.info("Partner %s has no webhook configured, skipping notification",
                    getattr(partner, 'id', None))
        return False

    payload = {
        'event': PLACEMENT_CREATED_EVENT,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'data': summary,
    }
    placement_id = summary.get('placement_id')

    try:
        resp = requests.post(
            partner.webhook_url,
            json=payload,
            headers={'X-Ledger-Event': PLACEMENT_CREATED_EVENT},
            timeout=PARTNER_WEBHOOK_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Webhook to partner %s failed for placement %s: %s", partner.id, placement_id, e)
        audit.record('PLACEMENT', placement_id, 'NOTIFIED_PARTNER', new_value={
            'success': False,
            'partner_id': partner.id,
            'error': str(e)[:500],
        }, source='SYSTEM')
        return False

    audit.record('PLACEMENT', placement_id, 'NOTIFIED_PARTNER', new_value={
        'success': True,
        'partner_id': partner.id,
        'status_code': resp.status_code,
    }, source='SYSTEM')
    logger.info("Partner %s notified of placement %s", partner.id, placement_id)
    return True


# ── Slack ────────────────────────────────────────────────────────────────────

def notify_new_introduction(introduction, partner_name):
    if not SLACK_WEBHOOK_URL:
        return

    try:
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"New Introduction — {partner_name}"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Candidate:* {introduction.candidate_name}"},
                    {"type": "mrkdwn", "text": f"*CRD:* {introduction.candidate_crd}"},
                    {"type": "mrkdwn", "text": f"*Recruiter:* {introduction.recruiter_name or '—'}"},
                    {"type": "mrkdwn", "text": f"*Opt-in:* {introduction.intro_timestamp:%Y-%m-%d}"},
                ],
            },
        ]
        _post_to_slack(blocks, f'introduction {introduction.id}')
    except Exception:
        logger.error("Failed to send introduction notification for %s", introduction.id, exc_info=True)


def notify_new_placement(placement, partner_name, candidate_name, partner_notified):
    if not SLACK_WEBHOOK_URL:
        return

    try:
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "Placement Created"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Candidate:* {candidate_name}"},
                    {"type": "mrkdwn", "text": f"*CRD:* {placement.candidate_crd}"},
                    {"type": "mrkdwn", "text": f"*Partner:* {partner_name}"},
                    {"type": "mrkdwn", "text": f"*Hire date:* {placement.hire_date.isoformat()}"},
                    {"type": "mrkdwn", "text": f"*Fee:* {placement.fee_amount} {placement.fee_currency}"},
                    {"type": "mrkdwn", "text": f"*Partner notified:* {'yes' if partner_notified else 'no'}"},
                ],
            },
        ]
        _post_to_slack(blocks, f'placement {placement.id}')
    except Exception:
        logger.error("Failed to send placement notification for %s", placement.id, exc_info=True)


def notify_reconciliation_alert(message, consecutive_failures=None):
    """Alert on a failed or skipped reconciliation run."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        fields = [{"type": "mrkdwn", "text": f"*Firm:* {MONITORED_FIRM_NAME or 'not configured'}"}]
        if consecutive_failures is not None:
            fields.append({"type": "mrkdwn", "text": f"*Consecutive failures:* {consecutive_failures}"})

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "BrokerCheck Reconciliation Alert"},
            },
            {"type": "section", "fields": fields},
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"```{message[:500]}```"},
            },
        ]
        _post_to_slack(blocks, 'reconciliation alert')
    except Exception:
        logger.error("Failed to send reconciliation alert", exc_info=True)
