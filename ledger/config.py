"""
Centralized configuration — env vars, attribution defaults, status values.
"""
import os


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default=None):
    value = os.getenv(name)
    if value in (None, ''):
        return default
    return int(value)


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Auth ─────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
ADMIN_API_KEY = os.getenv('ADMIN_API_KEY')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Partner webhooks ─────────────────────────────────────────────────────────
PARTNER_WEBHOOK_TIMEOUT = _env_int('PARTNER_WEBHOOK_TIMEOUT', 10)

# ── Attribution ──────────────────────────────────────────────────────────────
ATTRIBUTION_WINDOW_MONTHS = _env_int('ATTRIBUTION_WINDOW_MONTHS', 12)
DEFAULT_FEE_CURRENCY = os.getenv('DEFAULT_FEE_CURRENCY', 'USD')

# ── FINRA BrokerCheck reconciliation ─────────────────────────────────────────
BROKERCHECK_API_URL = os.getenv('BROKERCHECK_API_URL', 'https://api.brokercheck.finra.org')
BROKERCHECK_TIMEOUT = _env_int('BROKERCHECK_TIMEOUT', 30)
BROKERCHECK_SYNC_ENABLED = _env_bool('BROKERCHECK_SYNC_ENABLED', True)
BROKERCHECK_REQUEST_DELAY = float(os.getenv('BROKERCHECK_REQUEST_DELAY', '0.5'))
MONITORED_FIRM_CRD = _env_int('MONITORED_FIRM_CRD')
MONITORED_FIRM_NAME = os.getenv('MONITORED_FIRM_NAME', '')
RECONCILIATION_FAILURE_THRESHOLD = _env_int('RECONCILIATION_FAILURE_THRESHOLD', 5)

# ── Introduction status values ────────────────────────────────────────────────
INTRO_OPEN = 'OPEN'
INTRO_PLACED = 'PLACED'
INTRO_EXPIRED = 'EXPIRED'
INTRO_CANCELLED = 'CANCELLED'
INTRODUCTION_STATUSES = [INTRO_OPEN, INTRO_PLACED, INTRO_EXPIRED, INTRO_CANCELLED]

# ── Placement status values ──────────────────────────────────────────────────
PLACEMENT_PENDING_NOTIFY = 'PENDING_NOTIFY'
PLACEMENT_NOTIFIED = 'NOTIFIED'
PLACEMENT_INVOICED = 'INVOICED'
PLACEMENT_PAID = 'PAID'
PLACEMENT_DISPUTED = 'DISPUTED'
PLACEMENT_STATUSES = [
    PLACEMENT_PENDING_NOTIFY,
    PLACEMENT_NOTIFIED,
    PLACEMENT_INVOICED,
    PLACEMENT_PAID,
    PLACEMENT_DISPUTED,
]

# ── Hire sources ──────────────────────────────────────────────────────────────
HIRE_SOURCE_INTERNAL = 'INTERNAL_ONBOARDING'
HIRE_SOURCE_BROKERCHECK = 'BROKERCHECK_SYNC'
HIRE_SOURCE_MANUAL = 'MANUAL_ENTRY'
HIRE_SOURCES = [HIRE_SOURCE_INTERNAL, HIRE_SOURCE_BROKERCHECK, HIRE_SOURCE_MANUAL]

# ── Audit vocabulary ─────────────────────────────────────────────────────────
AUDIT_ENTITY_TYPES = ['INTRODUCTION', 'HIRE', 'PLACEMENT', 'PARTNER']
AUDIT_EVENT_TYPES = ['CREATED', 'UPDATED', 'STATUS_CHANGED', 'NOTIFIED_PARTNER']
AUDIT_SOURCES = ['SYSTEM', 'PARTNER_API', 'INTERNAL_API', 'BROKERCHECK_SYNC']
