"""
FINRA BrokerCheck client — individual lookup by CRD number.

Only the fields reconciliation needs are parsed. Transport failures, timeouts
and non-2xx responses surface as RegistryError.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

import requests

from ledger.config import BROKERCHECK_API_URL, BROKERCHECK_TIMEOUT

logger = logging.getLogger('services.brokercheck')


class RegistryError(Exception):
    """BrokerCheck could not be reached or returned an error."""


@dataclass
class AdvisorRecord:
    crd_number: int
    first_name: str
    last_name: str
    firm_crd: int
    firm_name: str

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'.strip()

    def to_dict(self):
        return asdict(self)


class BrokerCheckClient:
    """Thin wrapper over the public BrokerCheck search API."""

    SEARCH_FILTER = 'active=true,prev=false,bar=false'

    def __init__(self, base_url=None, timeout=None):
        self.base_url = (base_url or BROKERCHECK_API_URL).rstrip('/')
        self.timeout = timeout or BROKERCHECK_TIMEOUT
        self.session = requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
        })

    def search_by_crd(self, crd: int) -> Optional[Dict[str, Any]]:
        """Return the individual's BrokerCheck document, or None when not found."""
        params = {
            'query': str(crd),
            'filter': self.SEARCH_FILTER,
            'nrows': 1,
            'start': 0,
            'wt': 'json',
        }
        try:
            resp = self.session.get(f'{self.base_url}/search/individual', params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.exceptions.RequestException as e:
            logger.error("BrokerCheck lookup failed for CRD %s: %s", crd, e)
            raise RegistryError(f'BrokerCheck lookup failed for CRD {crd}: {e}') from e
        except ValueError as e:
            raise RegistryError(f'BrokerCheck returned invalid JSON for CRD {crd}') from e

        hits = ((data or {}).get('hits') or {}).get('hits') or []
        if not hits:
            return None
        return hits[0].get('_source')

    def verify_advisor_at_firm(self, crd: int, firm_crd: int) -> Optional[AdvisorRecord]:
        """AdvisorRecord when the individual is currently employed by firm_crd, else None."""
        individual = self.search_by_crd(crd)
        if not individual:
            logger.debug("CRD %s not found in BrokerCheck", crd)
            return None

        employment = next(
            (emp for emp in individual.get('ind_current_employments') or []
             if _as_int(emp.get('firm_id')) == firm_crd),
            None,
        )
        if employment is None:
            logger.debug("CRD %s (%s %s) not currently at firm %s", crd,
                         individual.get('ind_firstname'), individual.get('ind_lastname'), firm_crd)
            return None

        return AdvisorRecord(
            crd_number=_as_int(individual.get('ind_source_id')) or crd,
            first_name=individual.get('ind_firstname') or '',
            last_name=individual.get('ind_lastname') or '',
            firm_crd=_as_int(employment.get('firm_id')),
            firm_name=employment.get('firm_name') or '',
        )


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
