"""Tests for /api/audit — read-only audit trail."""
from ledger.services import audit


class TestAuditList:

    def test_filter_by_entity_type(self, client, partner, make_introduction):
        make_introduction(partner.id)
        rows = client.get('/api/audit?entity_type=introduction').json
        assert len(rows) == 1
        assert rows[0]['entity_type'] == 'INTRODUCTION'
        assert rows[0]['event_type'] == 'CREATED'

    def test_filter_by_source(self, client, partner, make_introduction):
        make_introduction(partner.id)
        rows = client.get('/api/audit?source=INTERNAL_API').json
        assert {r['entity_type'] for r in rows} == {'PARTNER'}

    def test_invalid_entity_type_400(self, client):
        assert client.get('/api/audit?entity_type=WIDGET').status_code == 400

    def test_paging(self, client):
        for i in range(5):
            audit.record('HIRE', f'h-{i}', 'CREATED')
        assert len(client.get('/api/audit?take=2').json) == 2


class TestEntityHistory:

    def test_history(self, client, partner, make_introduction):
        intro = make_introduction(partner.id)
        audit.record('INTRODUCTION', intro.id, 'STATUS_CHANGED',
                     old_value={'status': 'OPEN'}, new_value={'status': 'EXPIRED'})

        rows = client.get(f'/api/audit/INTRODUCTION/{intro.id}').json
        assert [r['event_type'] for r in rows] == ['STATUS_CHANGED', 'CREATED']
        assert rows[0]['new_value'] == {'status': 'EXPIRED'}

    def test_query_string_form(self, client, partner, make_introduction):
        intro = make_introduction(partner.id)
        rows = client.get(f'/api/audit?entity_type=INTRODUCTION&entity_id={intro.id}').json
        assert len(rows) == 1
