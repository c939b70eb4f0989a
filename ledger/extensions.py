"""
Shared client instances — Redis.

redis.from_url() connects lazily, so importing this module is always safe
(even when Redis is not running during tests). Missing integrations are
reported once here; each call site warns again and degrades to a no-op.
"""
import logging
import redis

from ledger.config import (
    REDIS_URL,
    SLACK_WEBHOOK_URL,
    MONITORED_FIRM_CRD,
    BROKERCHECK_SYNC_ENABLED,
    ADMIN_API_KEY,
)

logger = logging.getLogger('ledger.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


def log_missing_configuration():
    """Warn about unconfigured integrations. Called once from create_app()."""
    if not SLACK_WEBHOOK_URL:
        logger.warning("SLACK_WEBHOOK_URL not set — internal Slack notifications disabled")
    if BROKERCHECK_SYNC_ENABLED and MONITORED_FIRM_CRD is None:
        logger.warning("MONITORED_FIRM_CRD not set — BrokerCheck reconciliation will be a no-op")
    if not ADMIN_API_KEY:
        logger.warning("ADMIN_API_KEY not set — internal endpoints are open (local dev only)")
