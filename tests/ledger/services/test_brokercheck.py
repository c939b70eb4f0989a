"""Tests for ledger.services.brokercheck — CRD lookup and firm verification."""
from unittest.mock import MagicMock

import pytest
import requests

from ledger.services.brokercheck import AdvisorRecord, BrokerCheckClient, RegistryError


def _response(payload, status=200):
    resp = MagicMock(status_code=status)
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f'{status} Error')
    else:
        resp.raise_for_status.return_value = None
    return resp


def _individual(crd=1234567, employments=None):
    return {
        'ind_source_id': str(crd),
        'ind_firstname': 'Jane',
        'ind_lastname': 'Doe',
        'ind_current_employments': employments if employments is not None else [
            {'firm_id': '7654', 'firm_name': 'Acme Securities LLC'},
        ],
    }


def _hits(*sources):
    return {'hits': {'total': len(sources), 'hits': [{'_source': s} for s in sources]}}


@pytest.fixture
def bc():
    c = BrokerCheckClient(base_url='https://bc.test/', timeout=5)
    c.session = MagicMock()
    return c


class TestSearchByCrd:

    def test_request_shape(self, bc):
        bc.session.get.return_value = _response(_hits(_individual()))
        bc.search_by_crd(1234567)

        args, kwargs = bc.session.get.call_args
        assert args[0] == 'https://bc.test/search/individual'
        assert kwargs['params']['query'] == '1234567'
        assert kwargs['params']['filter'] == 'active=true,prev=false,bar=false'
        assert kwargs['params']['nrows'] == 1
        assert kwargs['timeout'] == 5

    def test_returns_first_hit(self, bc):
        bc.session.get.return_value = _response(_hits(_individual()))
        assert bc.search_by_crd(1234567)['ind_firstname'] == 'Jane'

    def test_not_found(self, bc):
        bc.session.get.return_value = _response({'hits': {'total': 0, 'hits': []}})
        assert bc.search_by_crd(1) is None

    def test_http_error_raises_registry_error(self, bc):
        bc.session.get.return_value = _response({}, status=503)
        with pytest.raises(RegistryError):
            bc.search_by_crd(1)

    def test_timeout_raises_registry_error(self, bc):
        bc.session.get.side_effect = requests.Timeout('slow')
        with pytest.raises(RegistryError):
            bc.search_by_crd(1)

    def test_bad_json_raises_registry_error(self, bc):
        resp = _response(None)
        resp.json.side_effect = ValueError('not json')
        bc.session.get.return_value = resp
        with pytest.raises(RegistryError):
            bc.search_by_crd(1)


class TestVerifyAdvisorAtFirm:

    def test_employed_at_firm(self, bc):
        bc.session.get.return_value = _response(_hits(_individual()))
        advisor = bc.verify_advisor_at_firm(1234567, 7654)
        assert advisor == AdvisorRecord(1234567, 'Jane', 'Doe', 7654, 'Acme Securities LLC')
        assert advisor.full_name == 'Jane Doe'

    def test_employed_elsewhere(self, bc):
        bc.session.get.return_value = _response(_hits(_individual(employments=[
            {'firm_id': '1111', 'firm_name': 'Other Co'},
        ])))
        assert bc.verify_advisor_at_firm(1234567, 7654) is None

    def test_picks_matching_employment(self, bc):
        bc.session.get.return_value = _response(_hits(_individual(employments=[
            {'firm_id': '1111', 'firm_name': 'Other Co'},
            {'firm_id': 7654, 'firm_name': 'Acme Securities LLC'},
        ])))
        assert bc.verify_advisor_at_firm(1234567, 7654).firm_name == 'Acme Securities LLC'

    def test_no_current_employment(self, bc):
        bc.session.get.return_value = _response(_hits(_individual(employments=[])))
        assert bc.verify_advisor_at_firm(1234567, 7654) is None

    def test_not_found(self, bc):
        bc.session.get.return_value = _response({'hits': {'hits': []}})
        assert bc.verify_advisor_at_firm(1234567, 7654) is None
