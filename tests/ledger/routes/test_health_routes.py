"""Tests for /health, /api/health and /api/health/<service>/reset endpoints."""
from ledger.services.circuit_breaker import get_all_breakers


class TestLiveness:

    def test_health(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.json == {'status': 'healthy'}


class TestApiHealth:
    """GET /api/health returns circuit breaker states."""

    def test_returns_services_dict(self, client):
        data = client.get('/api/health').json
        assert data['status'] == 'healthy'
        assert 'brokercheck' in data['services']

    def test_service_has_expected_fields(self, client):
        svc = client.get('/api/health').json['services']['brokercheck']
        for field in ('name', 'state', 'failure_count', 'failure_threshold', 'total_success', 'total_failure'):
            assert field in svc
        assert svc['reset_timeout'] is None

    def test_degraded_when_breaker_open(self, client):
        breaker = get_all_breakers()['brokercheck']
        for _ in range(breaker.failure_threshold):
            breaker.record_failure(RuntimeError('down'))
        data = client.get('/api/health').json
        assert data['status'] == 'degraded'
        assert data['services']['brokercheck']['state'] == 'open'


class TestResetCircuit:
    """POST /api/health/<service>/reset resets a circuit breaker."""

    def test_reset_known_service(self, client):
        breaker = get_all_breakers()['brokercheck']
        for _ in range(breaker.failure_threshold):
            breaker.record_failure(RuntimeError('down'))
        resp = client.post('/api/health/brokercheck/reset')
        assert resp.status_code == 200
        assert resp.json['state'] == 'closed'
        assert resp.json['failure_count'] == 0

    def test_reset_unknown_service_404(self, client):
        assert client.post('/api/health/nonexistent/reset').status_code == 404
