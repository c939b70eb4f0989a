"""Tests for ledger.services.reconciliation — BrokerCheck batch runs."""
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import redis

from ledger.database import get_session, utcnow
from ledger.models.registered_advisor import RegisteredAdvisor
from ledger.services import audit
from ledger.services.brokercheck import AdvisorRecord, RegistryError
from ledger.services.circuit_breaker import CircuitBreaker
from ledger.services.hires import find_hires_by_crd
from ledger.services.introductions import get_introduction
from ledger.services.placements import list_placements
from ledger.services.reconciliation import (
    BATCH_ENTITY_ID, LOCK_KEY, Reconciler, ReconciliationResult,
)

FIRM_CRD = 7654
FIRM_NAME = 'Acme Securities LLC'


class FakeRegistry:
    """Stands in for BrokerCheckClient; records every CRD looked up."""

    def __init__(self, at_firm=(), fail=(), fail_all=False, elsewhere=()):
        self.at_firm = set(at_firm)
        self.fail = set(fail)
        self.fail_all = fail_all
        self.elsewhere = set(elsewhere)
        self.calls = []

    def verify_advisor_at_firm(self, crd, firm_crd):
        self.calls.append(crd)
        if self.fail_all or crd in self.fail:
            raise RegistryError(f'timeout for {crd}')
        if crd in self.at_firm:
            return AdvisorRecord(crd, 'Jane', 'Doe', firm_crd, FIRM_NAME)
        return None

    def search_by_crd(self, crd):
        self.calls.append(crd)
        if crd in self.at_firm or crd in self.elsewhere:
            return {'ind_source_id': str(crd)}
        return None


@pytest.fixture(autouse=True)
def no_partner_webhooks():
    with patch('ledger.services.placements.notify_partner_of_placement', return_value=False):
        yield


@pytest.fixture
def alerts():
    with patch('ledger.services.reconciliation.notify_reconciliation_alert') as alert:
        yield alert


@pytest.fixture
def breaker(fake_redis):
    return CircuitBreaker('brokercheck', fake_redis, failure_threshold=5, reset_timeout=None)


@pytest.fixture
def make_reconciler(fake_redis, breaker):
    def _make(registry, **overrides):
        kwargs = dict(registry=registry, redis_client=fake_redis, breaker=breaker,
                      firm_crd=FIRM_CRD, delay=0, enabled=True)
        kwargs.update(overrides)
        return Reconciler(**kwargs)
    return _make


@pytest.fixture
def recent():
    """An opt-in a month ago, comfortably inside any window when the hire is dated today."""
    return datetime.now(timezone.utc) - timedelta(days=30)


class TestGuards:
    """Each guard short-circuits without touching BrokerCheck."""

    def test_disabled(self, make_reconciler):
        registry = FakeRegistry()
        result = make_reconciler(registry, enabled=False).run()
        assert result.errors == ['Sync disabled']
        assert registry.calls == []

    def test_firm_not_configured(self, make_reconciler, partner, make_introduction):
        make_introduction(partner.id)
        registry = FakeRegistry()
        with patch('ledger.services.reconciliation.MONITORED_FIRM_CRD', None):
            reconciler = make_reconciler(registry, firm_crd=None)
        result = reconciler.run()
        assert result.errors == ['Monitored firm not configured']
        assert result.candidates_checked == 0
        assert registry.calls == []

    def test_lock_held(self, make_reconciler, fake_redis, partner, make_introduction):
        make_introduction(partner.id)
        fake_redis.set(LOCK_KEY, 'held')
        registry = FakeRegistry()
        result = make_reconciler(registry).run()
        assert result.errors == ['Reconciliation already running']
        assert registry.calls == []

    def test_lock_released_after_run(self, make_reconciler, fake_redis):
        make_reconciler(FakeRegistry()).run()
        assert fake_redis.get(LOCK_KEY) is None

    def test_redis_unavailable_runs_without_lock(self, make_reconciler, partner, make_introduction):
        make_introduction(partner.id)
        broken = MagicMock()
        broken.lock.side_effect = redis.ConnectionError('down')
        registry = FakeRegistry()
        result = make_reconciler(registry, redis_client=broken).run()
        assert result.candidates_checked == 1
        assert registry.calls == [1234567]


class TestCircuitBreaker:
    """Five failed runs open the breaker; the sixth makes no lookups."""

    def test_sixth_run_skipped_after_five_failures(self, make_reconciler, breaker, alerts,
                                                   partner, make_introduction):
        make_introduction(partner.id)
        registry = FakeRegistry(fail_all=True)
        reconciler = make_reconciler(registry)

        for run in range(1, 6):
            result = reconciler.run()
            assert any('Reconciliation run failed' in e for e in result.errors)
            assert breaker.failure_count == run
        assert breaker.is_open
        assert len(registry.calls) == 5

        alerts.reset_mock()
        result = reconciler.run()

        assert result.errors == ['Circuit breaker open']
        assert len(registry.calls) == 5
        alerts.assert_called_once()
        assert alerts.call_args[0][1] == 5

    def test_success_resets_failure_count(self, make_reconciler, breaker, alerts,
                                          partner, make_introduction):
        make_introduction(partner.id)
        make_reconciler(FakeRegistry(fail_all=True)).run()
        assert breaker.failure_count == 1

        make_reconciler(FakeRegistry()).run()
        assert breaker.failure_count == 0

    def test_single_lookup_failure_is_not_a_failed_run(self, make_reconciler, breaker,
                                                       partner, make_introduction):
        make_introduction(partner.id, candidate_crd=1, conversation_id='a')
        make_introduction(partner.id, candidate_crd=2, conversation_id='b')
        result = make_reconciler(FakeRegistry(fail={1})).run()
        assert result.errors == ['Error checking CRD 1: timeout for 1']
        assert breaker.failure_count == 0


class TestReconcile:
    """Detected hires become BROKERCHECK_SYNC hires and go through attribution."""

    def test_hire_detected_and_placed(self, make_reconciler, partner, make_introduction, recent):
        intro = make_introduction(partner.id, intro_timestamp=recent)
        make_introduction(partner.id, candidate_crd=999, conversation_id='other', intro_timestamp=recent)

        result = make_reconciler(FakeRegistry(at_firm={1234567})).run()

        assert result.candidates_checked == 2
        assert result.new_hires_found == 1
        assert result.hires_created == 1
        assert result.placements_created == 1
        assert result.errors == []

        hire = find_hires_by_crd(1234567)[0]
        assert hire.source == 'BROKERCHECK_SYNC'
        assert hire.hire_date == utcnow().date()
        assert hire.firm_crd == FIRM_CRD
        assert hire.firm_entity == FIRM_NAME
        assert get_introduction(intro.id).status == 'PLACED'
        assert list_placements()[1] == 1

    def test_hire_dated_by_utc_clock(self, make_reconciler, partner, make_introduction):
        """Just after UTC midnight the hire takes the UTC date, matching a same-day introduction."""
        now = datetime(2026, 3, 1, 0, 30, tzinfo=timezone.utc)
        intro = make_introduction(partner.id, intro_timestamp=now - timedelta(minutes=20))

        with patch('ledger.services.reconciliation.utcnow', return_value=now):
            result = make_reconciler(FakeRegistry(at_firm={1234567})).run()

        assert result.placements_created == 1
        assert find_hires_by_crd(1234567)[0].hire_date == date(2026, 3, 1)
        assert get_introduction(intro.id).status == 'PLACED'

    def test_registered_advisor_upserted(self, make_reconciler, partner, make_introduction, recent):
        make_introduction(partner.id, intro_timestamp=recent)
        reconciler = make_reconciler(FakeRegistry(at_firm={1234567}))
        reconciler.run()
        reconciler.run()

        session = get_session()
        try:
            rows = session.query(RegisteredAdvisor).all()
        finally:
            session.close()
        assert len(rows) == 1
        assert rows[0].crd_number == 1234567
        assert rows[0].firm_name == FIRM_NAME

    def test_batch_audit_entry(self, make_reconciler, partner, make_introduction):
        make_introduction(partner.id)
        make_reconciler(FakeRegistry()).run()

        entries = audit.find_by_entity('HIRE', BATCH_ENTITY_ID)
        assert len(entries) == 1
        assert entries[0].event_type == 'CREATED'
        assert entries[0].source == 'BROKERCHECK_SYNC'
        assert entries[0].new_value['candidates_checked'] == 1
        assert entries[0].new_value['firm_crd'] == FIRM_CRD

    def test_existing_hire_not_rematched(self, make_reconciler, partner, make_partner,
                                         make_introduction, recent):
        """A second run the same day reuses the hire and creates nothing new."""
        other = make_partner(name='Harbor')
        make_introduction(partner.id, intro_timestamp=recent - timedelta(days=1), conversation_id='a')
        second = make_introduction(other.id, intro_timestamp=recent, conversation_id='b')
        reconciler = make_reconciler(FakeRegistry(at_firm={1234567}))

        first_run = reconciler.run()
        second_run = reconciler.run()

        assert first_run.placements_created == 1
        assert second_run.new_hires_found == 1
        assert second_run.hires_created == 0
        assert second_run.placements_created == 0
        assert get_introduction(second.id).status == 'OPEN'
        assert len(find_hires_by_crd(1234567)) == 1

    def test_no_open_introductions(self, make_reconciler, breaker):
        registry = FakeRegistry()
        result = make_reconciler(registry).run()
        assert result.candidates_checked == 0
        assert result.errors == []
        assert registry.calls == []
        assert breaker.failure_count == 0

    def test_sleeps_between_lookups(self, make_reconciler, partner, make_introduction):
        for crd in (1, 2, 3):
            make_introduction(partner.id, candidate_crd=crd, conversation_id=f'c{crd}')
        with patch('ledger.services.reconciliation.time.sleep') as sleep:
            make_reconciler(FakeRegistry(), delay=0.5).run()
        assert sleep.call_count == 2
        sleep.assert_called_with(0.5)


class TestStatusAndCheck:

    def test_status(self, make_reconciler, partner, make_introduction, recent):
        make_introduction(partner.id, intro_timestamp=recent, conversation_id='a')
        make_introduction(partner.id, candidate_crd=55, conversation_id='b')
        make_introduction(partner.id, candidate_crd=55, conversation_id='c')
        reconciler = make_reconciler(FakeRegistry(at_firm={1234567}))

        before = reconciler.status()
        assert before['last_sync'] is None
        assert before['open_introductions'] == 3
        assert before['unique_candidates'] == 2

        reconciler.run()
        after = reconciler.status()
        assert after['last_sync'] is not None
        assert after['open_introductions'] == 2
        assert after['unique_candidates'] == 1
        assert after['tracked_advisors'] == 1
        assert after['consecutive_failures'] == 0
        assert after['breaker_state'] == 'closed'
        assert after['firm_crd'] == FIRM_CRD

    def test_check_crd_at_firm(self, make_reconciler):
        result = make_reconciler(FakeRegistry(at_firm={42})).check_crd(42)
        assert result['found'] is True
        assert result['at_firm'] is True
        assert result['advisor']['firm_name'] == FIRM_NAME

    def test_check_crd_elsewhere(self, make_reconciler):
        result = make_reconciler(FakeRegistry(elsewhere={42})).check_crd(42)
        assert result == {'found': True, 'at_firm': False, 'advisor': None}

    def test_check_crd_unknown(self, make_reconciler):
        result = make_reconciler(FakeRegistry()).check_crd(42)
        assert result['found'] is False

    def test_check_crd_without_firm_is_empty(self, make_reconciler, caplog):
        registry = FakeRegistry(at_firm={42})
        with patch('ledger.services.reconciliation.MONITORED_FIRM_CRD', None):
            reconciler = make_reconciler(registry, firm_crd=None)
        with caplog.at_level('WARNING', logger='services.reconciliation'):
            result = reconciler.check_crd(42)
        assert result == {'found': False, 'at_firm': False, 'advisor': None}
        assert registry.calls == []
        assert 'MONITORED_FIRM_CRD not set' in caplog.text


class TestResult:

    def test_to_dict(self):
        result = ReconciliationResult(candidates_checked=3, hires_created=1)
        data = result.to_dict()
        assert data['candidates_checked'] == 3
        assert data['hires_created'] == 1
        assert data['errors'] == []
        assert 'synced_at' in data

    def test_skipped(self):
        assert ReconciliationResult.skipped('Sync disabled').errors == ['Sync disabled']
