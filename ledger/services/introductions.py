"""
Introduction ledger — double-opt-in introductions from partners.

Owns the OPEN → PLACED / EXPIRED / CANCELLED state machine. Creation is
idempotent on (partner_id, candidate_crd, conversation_id); PLACED is only
ever set by placement creation (services.placements).
"""
import logging
from datetime import timezone

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ledger.config import INTRO_OPEN, INTRO_PLACED, INTRODUCTION_STATUSES
from ledger.database import get_session
from ledger.errors import InvalidStateError, NotFoundError, ValidationError
from ledger.models.introduction import Introduction
from ledger.models.partner import Partner
from ledger.services import audit
from ledger.services.notifications import notify_new_introduction

logger = logging.getLogger('services.introductions')


def _find_by_key(session, partner_id, candidate_crd, conversation_id):
    return session.query(Introduction).filter_by(
        partner_id=partner_id,
        candidate_crd=candidate_crd,
        conversation_id=conversation_id,
    ).first()


def create_introduction(partner_id, candidate_crd, conversation_id, intro_timestamp,
                        first_name, last_name, phone=None, email=None, linkedin=None,
                        recruiter_name=None, metadata=None):
    """
    Record an introduction, or return the existing one for the same key.

    Returns (introduction, created). A duplicate submission has no side
    effects: no audit entry, no notification.
    """
    if not isinstance(candidate_crd, int) or isinstance(candidate_crd, bool) or candidate_crd < 1:
        raise ValidationError('candidate_crd must be a positive integer')
    if not conversation_id:
        raise ValidationError('conversation_id is required')
    if intro_timestamp is None:
        raise ValidationError('intro_timestamp is required')
    if intro_timestamp.tzinfo is not None:
        intro_timestamp = intro_timestamp.astimezone(timezone.utc)

    session = get_session()
    try:
        existing = _find_by_key(session, partner_id, candidate_crd, conversation_id)
        if existing:
            logger.info("Introduction already exists for CRD %s, conversation %s", candidate_crd, conversation_id)
            return existing, False

        introduction = Introduction(
            partner_id=partner_id,
            candidate_crd=candidate_crd,
            candidate_first_name=first_name or '',
            candidate_last_name=last_name or '',
            candidate_phone=phone,
            candidate_email=email,
            candidate_linkedin=linkedin,
            recruiter_name=recruiter_name,
            intro_timestamp=intro_timestamp,
            conversation_id=conversation_id,
            status=INTRO_OPEN,
            extra_metadata=metadata,
        )
        session.add(introduction)
        try:
            session.commit()
        except IntegrityError:
            # Lost a race with an identical submission — return the winner
            session.rollback()
            existing = _find_by_key(session, partner_id, candidate_crd, conversation_id)
            if existing is None:
                raise
            return existing, False

        partner_name = session.query(Partner.name).filter_by(id=partner_id).scalar()
    finally:
        session.close()

    audit.record('INTRODUCTION', introduction.id, 'CREATED', new_value={
        'candidate_crd': candidate_crd,
        'candidate_name': introduction.candidate_name,
        'conversation_id': conversation_id,
        'partner_id': partner_id,
    }, source='PARTNER_API')

    notify_new_introduction(introduction, partner_name or 'Unknown Partner')

    logger.info("Created introduction %s for CRD %s from partner %s", introduction.id, candidate_crd, partner_id)
    return introduction, True


def get_introduction(introduction_id, partner_id=None):
    """Load one introduction; scoped to a partner when partner_id is given."""
    session = get_session()
    try:
        query = session.query(Introduction).filter(Introduction.id == introduction_id)
        if partner_id is not None:
            query = query.filter(Introduction.partner_id == partner_id)
        introduction = query.first()
        if introduction is None:
            raise NotFoundError('Introduction', introduction_id)
        return introduction
    finally:
        session.close()


def list_introductions(partner_id=None, candidate_crd=None, status=None,
                       from_date=None, to_date=None, skip=0, take=50):
    """Filtered page of introductions, newest opt-in first. Returns (rows, total)."""
    session = get_session()
    try:
        query = session.query(Introduction)
        if partner_id is not None:
            query = query.filter(Introduction.partner_id == partner_id)
        if candidate_crd is not None:
            query = query.filter(Introduction.candidate_crd == candidate_crd)
        if status:
            query = query.filter(Introduction.status == status)
        if from_date is not None:
            query = query.filter(Introduction.intro_timestamp >= from_date)
        if to_date is not None:
            query = query.filter(Introduction.intro_timestamp <= to_date)

        total = query.count()
        rows = query.order_by(Introduction.intro_timestamp.desc()).offset(skip).limit(take).all()
        return rows, total
    finally:
        session.close()


def find_by_crd(partner_id, candidate_crd):
    rows, _ = list_introductions(partner_id=partner_id, candidate_crd=candidate_crd, take=1000)
    return rows


def update_introduction_status(introduction_id, new_status, partner_id=None, source='PARTNER_API'):
    """
    Move an introduction to new_status.

    Same status is a no-op. PLACED can't be requested here; callers are
    otherwise trusted to only ask for legal transitions.
    """
    if new_status not in INTRODUCTION_STATUSES:
        raise ValidationError(f'Invalid status: {new_status}')

    session = get_session()
    try:
        query = session.query(Introduction).filter(Introduction.id == introduction_id)
        if partner_id is not None:
            query = query.filter(Introduction.partner_id == partner_id)
        introduction = query.first()
        if introduction is None:
            raise NotFoundError('Introduction', introduction_id)

        old_status = introduction.status
        if old_status == new_status:
            return introduction
        if new_status == INTRO_PLACED:
            raise InvalidStateError('Introductions are only marked PLACED by creating a placement')

        introduction.status = new_status
        session.commit()
    finally:
        session.close()

    audit.record(
        'INTRODUCTION', introduction_id, 'STATUS_CHANGED',
        old_value={'status': old_status},
        new_value={'status': new_status},
        source=source,
    )
    logger.info("Introduction %s: %s → %s", introduction_id, old_status, new_status)
    return introduction


def find_open_for_candidate(candidate_crd):
    """
    OPEN introductions for a CRD, oldest opt-in first.

    The order decides which partner gets attribution, so it is part of the
    contract, not a presentation detail.
    """
    session = get_session()
    try:
        return session.query(Introduction).filter(
            Introduction.candidate_crd == candidate_crd,
            Introduction.status == INTRO_OPEN,
        ).order_by(
            Introduction.intro_timestamp.asc(),
            Introduction.created_at.asc(),
        ).all()
    finally:
        session.close()


def open_candidate_crds():
    """Distinct CRDs across all OPEN introductions."""
    session = get_session()
    try:
        rows = session.query(Introduction.candidate_crd).filter(
            Introduction.status == INTRO_OPEN,
        ).distinct().order_by(Introduction.candidate_crd.asc()).all()
        return [row[0] for row in rows]
    finally:
        session.close()


def count_by_status():
    session = get_session()
    try:
        rows = session.query(
            Introduction.status,
            func.count(Introduction.id).label('count'),
        ).group_by(Introduction.status).all()
        return {row.status: row.count for row in rows}
    finally:
        session.close()
