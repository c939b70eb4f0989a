"""
BrokerCheck reconciliation — detect hires of introduced candidates.

Weekly (and on demand) every distinct CRD with an OPEN introduction is looked
up in BrokerCheck. A candidate now registered at the monitored firm becomes a
BROKERCHECK_SYNC hire, which is then run through attribution.

Guards, in order: sync disabled, firm not configured, circuit breaker open,
another run holding the Redis lock. Each one short-circuits to an empty
result without touching BrokerCheck.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

import redis

from ledger.config import (
    BROKERCHECK_REQUEST_DELAY,
    BROKERCHECK_SYNC_ENABLED,
    HIRE_SOURCE_BROKERCHECK,
    INTRO_OPEN,
    MONITORED_FIRM_CRD,
    MONITORED_FIRM_NAME,
    RECONCILIATION_FAILURE_THRESHOLD,
)
from ledger.database import get_session, utcnow
from ledger.models.introduction import Introduction
from ledger.models.registered_advisor import RegisteredAdvisor
from ledger.services import audit
from ledger.services.brokercheck import BrokerCheckClient, RegistryError
from ledger.services.circuit_breaker import get_breaker
from ledger.services.hires import create_hire
from ledger.services.introductions import open_candidate_crds
from ledger.services.notifications import notify_reconciliation_alert
from ledger.services.placements import match_hire_to_introductions

logger = logging.getLogger('services.reconciliation')

BATCH_ENTITY_ID = 'RECONCILIATION_BATCH'
LOCK_KEY = 'lock:reconciliation'
LOCK_TIMEOUT = 3 * 60 * 60  # longest plausible run; the lock expires if a worker dies mid-run
JOB_TIMEOUT = LOCK_TIMEOUT


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation run."""
    synced_at: datetime = field(default_factory=utcnow)
    candidates_checked: int = 0
    new_hires_found: int = 0
    hires_created: int = 0
    placements_created: int = 0
    errors: List[str] = field(default_factory=list)

    @classmethod
    def skipped(cls, reason):
        return cls(errors=[reason])

    def to_dict(self):
        return {
            'synced_at': self.synced_at.isoformat(),
            'candidates_checked': self.candidates_checked,
            'new_hires_found': self.new_hires_found,
            'hires_created': self.hires_created,
            'placements_created': self.placements_created,
            'errors': list(self.errors),
        }


class Reconciler:
    """
    Runs reconciliation against one monitored firm.

    Collaborators are injectable for tests; defaults come from config and the
    shared Redis client. The breaker counts failed runs and persists its
    counter in Redis.
    """

    def __init__(self, registry=None, redis_client=None, breaker=None,
                 firm_crd=None, delay=None, enabled=None):
        if redis_client is None:
            from ledger.extensions import redis_client
        self.registry = registry or BrokerCheckClient()
        self.redis = redis_client
        self.breaker = breaker or get_breaker(
            'brokercheck', redis_client,
            failure_threshold=RECONCILIATION_FAILURE_THRESHOLD,
            reset_timeout=None,
        )
        self.firm_crd = firm_crd if firm_crd is not None else MONITORED_FIRM_CRD
        self.delay = BROKERCHECK_REQUEST_DELAY if delay is None else delay
        self.enabled = BROKERCHECK_SYNC_ENABLED if enabled is None else enabled

    # ── Run ───────────────────────────────────────────────────────────

    def run(self):
        if not self.enabled:
            logger.info("BrokerCheck sync is disabled")
            return ReconciliationResult.skipped('Sync disabled')

        if self.firm_crd is None:
            logger.warning("MONITORED_FIRM_CRD not set — skipping reconciliation")
            return ReconciliationResult.skipped('Monitored firm not configured')

        if self.breaker.is_open:
            failures = self.breaker.failure_count
            logger.warning("Circuit breaker open after %d failed runs — skipping reconciliation", failures)
            notify_reconciliation_alert('Circuit breaker open after repeated failures', failures)
            return ReconciliationResult.skipped('Circuit breaker open')

        lock = self._acquire_lock()
        if lock is False:
            logger.info("Reconciliation already running elsewhere")
            return ReconciliationResult.skipped('Reconciliation already running')

        result = ReconciliationResult()
        started = time.monotonic()
        try:
            self.breaker.call(self._reconcile, result)
        except Exception as e:
            msg = f'Reconciliation run failed: {e}'
            logger.error("Reconciliation run failed: %s", e, exc_info=True)
            result.errors.append(msg)
            notify_reconciliation_alert(msg, self.breaker.failure_count)
        finally:
            self._release_lock(lock)

        logger.info(
            "Reconciliation finished in %.1fs: %d candidates checked, %d hires found, "
            "%d hires created, %d placements created, %d errors",
            time.monotonic() - started, result.candidates_checked, result.new_hires_found,
            result.hires_created, result.placements_created, len(result.errors),
        )
        return result

    def _reconcile(self, result):
        crds = open_candidate_crds()
        result.candidates_checked = len(crds)
        logger.info("Checking %d unique candidates against firm %s", len(crds), self.firm_crd)

        run_date = utcnow().date()
        registry_failures = 0
        for i, crd in enumerate(crds):
            if i and self.delay:
                time.sleep(self.delay)
            try:
                self._check_candidate(crd, run_date, result)
            except RegistryError as e:
                registry_failures += 1
                result.errors.append(f'Error checking CRD {crd}: {e}')
            except Exception as e:
                logger.error("Error checking CRD %s", crd, exc_info=True)
                result.errors.append(f'Error checking CRD {crd}: {e}')

        if crds and registry_failures == len(crds):
            raise RegistryError(f'All {len(crds)} BrokerCheck lookups failed')

        audit.record('HIRE', BATCH_ENTITY_ID, 'CREATED', new_value={
            'firm_crd': self.firm_crd,
            'candidates_checked': result.candidates_checked,
            'new_hires_found': result.new_hires_found,
            'hires_created': result.hires_created,
            'placements_created': result.placements_created,
            'error_count': len(result.errors),
        }, source='BROKERCHECK_SYNC')

    def _check_candidate(self, crd, run_date, result):
        advisor = self.registry.verify_advisor_at_firm(crd, self.firm_crd)
        if advisor is None:
            return

        logger.info("Found hire: %s (CRD %s) is now registered at firm %s", advisor.full_name, crd, self.firm_crd)
        result.new_hires_found += 1

        hire, created = create_hire(
            crd_number=advisor.crd_number,
            first_name=advisor.first_name,
            last_name=advisor.last_name,
            firm_entity=advisor.firm_name or MONITORED_FIRM_NAME or str(self.firm_crd),
            firm_crd=advisor.firm_crd,
            hire_date=run_date,
            source=HIRE_SOURCE_BROKERCHECK,
            raw_source_reference=f'BROKERCHECK-{run_date.isoformat()}',
            audit_source='BROKERCHECK_SYNC',
        )
        if created:
            result.hires_created += 1
            placement = match_hire_to_introductions(hire.id)
            if placement is not None:
                result.placements_created += 1

        self._track_advisor(advisor)

    def _track_advisor(self, advisor):
        session = get_session()
        try:
            now = utcnow()
            row = session.query(RegisteredAdvisor).filter_by(crd_number=advisor.crd_number).first()
            if row is None:
                row = RegisteredAdvisor(crd_number=advisor.crd_number, first_seen=now)
                session.add(row)
            row.first_name = advisor.first_name
            row.last_name = advisor.last_name
            row.firm_crd = advisor.firm_crd
            row.firm_name = advisor.firm_name
            row.last_seen = now
            row.is_active = True
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Single-instance lock ──────────────────────────────────────────

    def _acquire_lock(self):
        """Lock object, False when held elsewhere, or None when Redis is unreachable."""
        try:
            lock = self.redis.lock(LOCK_KEY, timeout=LOCK_TIMEOUT)
            if not lock.acquire(blocking=False):
                return False
            return lock
        except redis.RedisError as e:
            logger.warning("Reconciliation lock unavailable (%s), running without it", e)
            return None

    def _release_lock(self, lock):
        if not lock:
            return
        try:
            lock.release()
        except redis.RedisError as e:
            logger.warning("Failed to release reconciliation lock: %s", e)

    # ── Status & ad-hoc checks ────────────────────────────────────────

    def status(self):
        session = get_session()
        try:
            open_count = session.query(Introduction).filter(Introduction.status == INTRO_OPEN).count()
            unique_candidates = session.query(Introduction.candidate_crd).filter(
                Introduction.status == INTRO_OPEN,
            ).distinct().count()
            tracked = 0
            if self.firm_crd is not None:
                tracked = session.query(RegisteredAdvisor).filter(
                    RegisteredAdvisor.firm_crd == self.firm_crd,
                ).count()
        finally:
            session.close()

        last = audit.latest(BATCH_ENTITY_ID, source='BROKERCHECK_SYNC')
        return {
            'last_sync': last.created_at.isoformat() if last and last.created_at else None,
            'open_introductions': open_count,
            'unique_candidates': unique_candidates,
            'tracked_advisors': tracked,
            'consecutive_failures': self.breaker.failure_count,
            'breaker_state': self.breaker.state,
            'enabled': self.enabled,
            'firm_crd': self.firm_crd,
        }

    def check_crd(self, crd):
        """Ad-hoc lookup: is this CRD in BrokerCheck, and is it at the monitored firm?"""
        if self.firm_crd is None:
            logger.warning("MONITORED_FIRM_CRD not set — skipping BrokerCheck lookup for CRD %s", crd)
            return {'found': False, 'at_firm': False, 'advisor': None}

        advisor = self.registry.verify_advisor_at_firm(crd, self.firm_crd)
        if advisor is not None:
            return {'found': True, 'at_firm': True, 'advisor': advisor.to_dict()}

        individual = self.registry.search_by_crd(crd)
        return {'found': bool(individual), 'at_firm': False, 'advisor': None}


# ── Shared instance + background jobs ─────────────────────────────────────

_reconciler = None


def get_reconciler():
    global _reconciler
    if _reconciler is None:
        _reconciler = Reconciler()
    return _reconciler


def run_reconciliation():
    """Job entry point for the scheduler and RQ workers."""
    return get_reconciler().run().to_dict()


_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from ledger.extensions import redis_client
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


def enqueue_reconciliation():
    """Run reconciliation in an RQ worker. Returns the job id."""
    job = _get_queue().enqueue(run_reconciliation, job_timeout=JOB_TIMEOUT)
    logger.info("Enqueued reconciliation job %s", job.id)
    return job.id
