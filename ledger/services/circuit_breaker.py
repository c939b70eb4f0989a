"""
Circuit breaker — Redis-backed failure counting for external dependencies.

States:
  - CLOSED    → calls pass through
  - OPEN      → failure_threshold consecutive failures; calls short-circuit
                with CircuitOpenError
  - HALF_OPEN → reset_timeout elapsed since the last failure; one probe call
                is allowed through

A breaker built with reset_timeout=None never half-opens on its own and stays
OPEN until reset() or a successful call. The reconciliation breaker works this
way: after five failed weekly runs someone has to look at it.

Counters live in Redis so they survive restarts and are shared by the web
process, the scheduler and RQ workers.
"""
import logging
import time
from functools import wraps

from ledger.config import RECONCILIATION_FAILURE_THRESHOLD

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN — service unavailable")


class CircuitBreaker:
    """
    Usage:
        cb = CircuitBreaker('brokercheck', redis_client, failure_threshold=5, reset_timeout=None)
        result = cb.call(run_batch)

    Or as a decorator:
        @cb.protect
        def lookup(...): ...
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=300):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout  # seconds before OPEN → HALF_OPEN; None = manual only

    # ── Redis keys ────────────────────────────────────────────────────

    @property
    def _state_key(self):
        return f'{self.PREFIX}:{self.name}:state'

    @property
    def _failures_key(self):
        return f'{self.PREFIX}:{self.name}:failures'

    @property
    def _last_failure_key(self):
        return f'{self.PREFIX}:{self.name}:last_failure'

    @property
    def _health_key(self):
        return f'{self.PREFIX}:{self.name}:health'

    # ── State ─────────────────────────────────────────────────────────

    @property
    def state(self):
        try:
            s = self.redis.get(self._state_key)
            if s is None:
                return CLOSED
            if s == OPEN and self.reset_timeout is not None:
                last = self.redis.get(self._last_failure_key)
                if last and (time.time() - float(last)) > self.reset_timeout:
                    self._set_state(HALF_OPEN)
                    return HALF_OPEN
            return s
        except Exception:
            logger.warning("Circuit '%s' state unreadable, treating as closed", self.name)
            return CLOSED

    @property
    def is_open(self):
        return self.state == OPEN

    def _set_state(self, new_state):
        try:
            self.redis.set(self._state_key, new_state)
        except Exception:
            logger.warning("Circuit '%s' could not persist state %s", self.name, new_state)

    @property
    def failure_count(self):
        try:
            val = self.redis.get(self._failures_key)
            return int(val) if val else 0
        except Exception:
            return 0

    # ── Health metrics ────────────────────────────────────────────────

    def _bump_health(self, field, error_msg=''):
        try:
            pipe = self.redis.pipeline()
            pipe.hincrby(self._health_key, field, 1)
            pipe.hset(self._health_key, f'last_{field}', str(time.time()))
            if error_msg:
                pipe.hset(self._health_key, 'last_error', str(error_msg)[:200])
            pipe.execute()
        except Exception:
            logger.debug("Circuit '%s' health update skipped", self.name)

    def get_health(self):
        """Health metrics dict for /api/health."""
        health = {
            'name': self.name,
            'state': 'unknown',
            'failure_count': 0,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': 0,
            'total_failure': 0,
            'last_success': None,
            'last_failure': None,
            'last_error': '',
        }
        try:
            data = self.redis.hgetall(self._health_key) or {}
        except Exception:
            return health

        health.update({
            'state': self.state,
            'failure_count': self.failure_count,
            'total_success': int(data.get('success', 0)),
            'total_failure': int(data.get('failure', 0)),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        })
        return health

    # ── Core call logic ───────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        """Execute func through the breaker; its exceptions are counted and re-raised."""
        if self.state == OPEN:
            retry_after = None
            if self.reset_timeout is not None:
                try:
                    last = self.redis.get(self._last_failure_key)
                except Exception:
                    last = None
                if last:
                    retry_after = max(0, self.reset_timeout - (time.time() - float(last)))
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self.record_failure(e)
            raise
        self.record_success()
        return result

    def record_success(self):
        """Reset the consecutive-failure count and close the circuit."""
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._state_key, CLOSED)
            pipe.set(self._failures_key, 0)
            pipe.execute()
        except Exception:
            logger.warning("Circuit '%s' could not record success", self.name)
        self._bump_health('success')

    def record_failure(self, error):
        """Count one failure; open the circuit once the threshold is reached."""
        try:
            new_count = self.redis.incr(self._failures_key)
            self.redis.set(self._last_failure_key, str(time.time()))
            if new_count >= self.failure_threshold:
                self._set_state(OPEN)
                logger.warning(
                    "Circuit '%s' OPENED after %d failures (threshold=%d): %s",
                    self.name, new_count, self.failure_threshold, error,
                )
            else:
                logger.info(
                    "Circuit '%s' failure %d/%d: %s",
                    self.name, new_count, self.failure_threshold, error,
                )
        except Exception:
            logger.warning("Circuit '%s' could not record failure: %s", self.name, error)
        self._bump_health('failure', str(error))

    def reset(self):
        """Manually reset the circuit breaker to closed state."""
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._state_key, CLOSED)
            pipe.set(self._failures_key, 0)
            pipe.delete(self._last_failure_key)
            pipe.execute()
            logger.info("Circuit '%s' manually reset to CLOSED", self.name)
        except Exception as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    def protect(self, func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper


# ── Global registry ───────────────────────────────────────────────────────

_registry = {}


def get_breaker(name, redis_client=None, **kwargs):
    """Get or create a named circuit breaker (singleton per name)."""
    if name not in _registry:
        if redis_client is None:
            from ledger.extensions import redis_client as rc
            redis_client = rc
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register the breakers for the ledger's external dependencies."""
    breakers = {
        # Counts failed reconciliation runs, not individual lookups
        'brokercheck': CircuitBreaker(
            'brokercheck', redis_client,
            failure_threshold=RECONCILIATION_FAILURE_THRESHOLD,
            reset_timeout=None,
        ),
    }
    _registry.update(breakers)
    return breakers
