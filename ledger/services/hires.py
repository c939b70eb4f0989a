"""
Hire ledger — hire events from internal onboarding, BrokerCheck sync and
manual entry.

Pure data: creating a hire never runs attribution. Callers match genuinely
new hires themselves (see services.placements.match_hire_to_introductions).
"""
import logging
from datetime import date, timedelta

from sqlalchemy.exc import IntegrityError

from ledger.config import HIRE_SOURCE_INTERNAL, HIRE_SOURCES
from ledger.database import get_session
from ledger.errors import NotFoundError, ValidationError
from ledger.models.hire import Hire
from ledger.services import audit

logger = logging.getLogger('services.hires')


def _find_duplicate(session, crd_number, firm_entity, hire_date):
    return session.query(Hire).filter_by(
        crd_number=crd_number,
        firm_entity=firm_entity,
        hire_date=hire_date,
    ).first()


def create_hire(crd_number, firm_entity, hire_date, first_name='', last_name='',
                firm_crd=None, source=HIRE_SOURCE_INTERNAL, raw_source_reference=None,
                audit_source='INTERNAL_API'):
    """
    Record a hire, or return the existing one for (crd_number, firm_entity, hire_date).

    Returns (hire, created).
    """
    if not isinstance(crd_number, int) or isinstance(crd_number, bool) or crd_number < 1:
        raise ValidationError('crd_number must be a positive integer')
    if not firm_entity:
        raise ValidationError('firm_entity is required')
    if not isinstance(hire_date, date):
        raise ValidationError('hire_date must be a date')
    if source not in HIRE_SOURCES:
        raise ValidationError(f'Invalid hire source: {source}')

    session = get_session()
    try:
        existing = _find_duplicate(session, crd_number, firm_entity, hire_date)
        if existing:
            logger.info("Hire already exists for CRD %s at %s on %s", crd_number, firm_entity, hire_date)
            return existing, False

        hire = Hire(
            crd_number=crd_number,
            first_name=first_name or '',
            last_name=last_name or '',
            firm_entity=firm_entity,
            firm_crd=firm_crd,
            hire_date=hire_date,
            source=source,
            raw_source_reference=raw_source_reference,
        )
        session.add(hire)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            existing = _find_duplicate(session, crd_number, firm_entity, hire_date)
            if existing is None:
                raise
            return existing, False
    finally:
        session.close()

    audit.record('HIRE', hire.id, 'CREATED', new_value={
        'crd_number': crd_number,
        'name': hire.full_name,
        'firm_entity': firm_entity,
        'hire_date': hire_date.isoformat(),
        'source': source,
    }, source=audit_source)

    logger.info("Created hire %s for CRD %s at %s", hire.id, crd_number, firm_entity)
    return hire, True


def get_hire(hire_id):
    session = get_session()
    try:
        hire = session.get(Hire, hire_id)
        if hire is None:
            raise NotFoundError('Hire', hire_id)
        return hire
    finally:
        session.close()


def set_termination_date(hire_id, termination_date):
    """Set (or clear, with None) the termination date."""
    session = get_session()
    try:
        hire = session.get(Hire, hire_id)
        if hire is None:
            raise NotFoundError('Hire', hire_id)
        old = hire.termination_date
        hire.termination_date = termination_date
        session.commit()
    finally:
        session.close()

    audit.record(
        'HIRE', hire_id, 'UPDATED',
        old_value={'termination_date': old.isoformat() if old else None},
        new_value={'termination_date': termination_date.isoformat() if termination_date else None},
        source='INTERNAL_API',
    )
    return hire


def list_hires(crd_number=None, firm_entity=None, source=None,
               from_date=None, to_date=None, skip=0, take=50):
    """Filtered page of hires, most recent hire date first. Returns (rows, total)."""
    session = get_session()
    try:
        query = session.query(Hire)
        if crd_number is not None:
            query = query.filter(Hire.crd_number == crd_number)
        if firm_entity:
            query = query.filter(Hire.firm_entity.ilike(f'%{firm_entity}%'))
        if source:
            query = query.filter(Hire.source == source)
        if from_date is not None:
            query = query.filter(Hire.hire_date >= from_date)
        if to_date is not None:
            query = query.filter(Hire.hire_date <= to_date)

        total = query.count()
        rows = query.order_by(Hire.hire_date.desc()).offset(skip).limit(take).all()
        return rows, total
    finally:
        session.close()


def find_hires_by_crd(crd_number):
    rows, _ = list_hires(crd_number=crd_number, take=1000)
    return rows


def recent_hires(days=7):
    rows, _ = list_hires(from_date=date.today() - timedelta(days=days), take=1000)
    return rows
