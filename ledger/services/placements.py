"""
Attribution engine — hire ↔ introduction matching and placement creation.

A hire is attributed to the oldest OPEN introduction for the same CRD whose
partner window covers the hire date. The placement insert and the
introduction's OPEN → PLACED move commit together or not at all.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ledger.config import (
    DEFAULT_FEE_CURRENCY,
    INTRO_OPEN,
    INTRO_PLACED,
    PLACEMENT_NOTIFIED,
    PLACEMENT_PENDING_NOTIFY,
    PLACEMENT_STATUSES,
)
from ledger.database import get_session, utcnow
from ledger.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ledger.models.hire import Hire
from ledger.models.introduction import Introduction
from ledger.models.partner import Partner
from ledger.models.placement import Placement
from ledger.services import audit
from ledger.services.attribution import CENTS, check_window, resolve_fee, resolve_window
from ledger.services.hires import get_hire
from ledger.services.introductions import count_by_status, find_open_for_candidate
from ledger.services.notifications import notify_new_placement, notify_partner_of_placement
from ledger.services.partners import get_terms

logger = logging.getLogger('services.placements')


# ── Matching ─────────────────────────────────────────────────────────────────

def match_hire_to_introductions(hire_id):
    """
    Attribute a hire to the oldest eligible OPEN introduction.

    Returns the new Placement, or None when nothing matched. Errors from
    placement creation propagate; there is no fall-through to the next
    introduction.
    """
    hire = get_hire(hire_id)
    candidates = find_open_for_candidate(hire.crd_number)
    if not candidates:
        logger.info("No open introductions for CRD %s", hire.crd_number)
        return None

    terms_by_partner = {}
    session = get_session()
    try:
        for intro in candidates:
            if intro.partner_id not in terms_by_partner:
                terms_by_partner[intro.partner_id] = get_terms(session.get(Partner, intro.partner_id))
    finally:
        session.close()

    for intro in candidates:
        window = resolve_window(terms_by_partner[intro.partner_id])
        reason = check_window(intro.intro_timestamp, hire.hire_date, window)
        if reason:
            logger.info("Introduction %s not attributable to hire %s: %s", intro.id, hire.id, reason)
            continue

        logger.info("Matched hire %s to introduction %s (partner %s)", hire.id, intro.id, intro.partner_id)
        return create_placement(intro.id, hire.id)

    return None


# ── Creation ─────────────────────────────────────────────────────────────────

def create_placement(introduction_id, hire_id, fee_override=None, fee_currency=None):
    """
    Create the placement for (introduction, hire) and mark the introduction PLACED.

    Raises NotFoundError, InvalidStateError (introduction not OPEN, or placed
    concurrently), ConflictError (CRD mismatch or hire outside the window),
    ValidationError (bad fee override).
    """
    session = get_session()
    try:
        intro = session.get(Introduction, introduction_id)
        if intro is None:
            raise NotFoundError('Introduction', introduction_id)
        hire = session.get(Hire, hire_id)
        if hire is None:
            raise NotFoundError('Hire', hire_id)

        if intro.status != INTRO_OPEN:
            raise InvalidStateError(f'Introduction is in {intro.status} status, expected OPEN')
        if intro.candidate_crd != hire.crd_number:
            raise ConflictError(
                f'CRD mismatch: introduction has {intro.candidate_crd}, hire has {hire.crd_number}'
            )

        partner = session.get(Partner, intro.partner_id)
        terms = get_terms(partner)
        reason = check_window(intro.intro_timestamp, hire.hire_date, resolve_window(terms))
        if reason:
            raise ConflictError(reason)

        try:
            fee = resolve_fee(terms, fee_override)
        except ValueError as e:
            raise ValidationError(str(e))

        placement = Placement(
            partner_id=intro.partner_id,
            introduction_id=intro.id,
            hire_id=hire.id,
            candidate_crd=hire.crd_number,
            hire_date=hire.hire_date,
            status=PLACEMENT_PENDING_NOTIFY,
            fee_amount=fee,
            fee_currency=fee_currency or DEFAULT_FEE_CURRENCY,
            terms_snapshot=terms,
        )

        try:
            session.add(placement)
            session.flush()
            moved = session.query(Introduction).filter(
                Introduction.id == intro.id,
                Introduction.status == INTRO_OPEN,
            ).update(
                {Introduction.status: INTRO_PLACED, Introduction.updated_at: utcnow()},
                synchronize_session=False,
            )
            if moved != 1:
                session.rollback()
                raise InvalidStateError('Introduction was placed concurrently')
            session.commit()
        except IntegrityError:
            session.rollback()
            raise InvalidStateError('Introduction already has a placement')

        summary = _placement_summary(placement, intro, hire)
    finally:
        session.close()

    logger.info("Created placement %s: introduction %s ↔ hire %s, fee %s %s",
                placement.id, introduction_id, hire_id, placement.fee_amount, placement.fee_currency)

    audit.record('PLACEMENT', placement.id, 'CREATED', new_value={
        'introduction_id': introduction_id,
        'hire_id': hire_id,
        'partner_id': placement.partner_id,
        'fee_amount': str(placement.fee_amount),
        'fee_currency': placement.fee_currency,
    })
    audit.record(
        'INTRODUCTION', introduction_id, 'STATUS_CHANGED',
        old_value={'status': INTRO_OPEN},
        new_value={'status': INTRO_PLACED, 'placement_id': placement.id},
    )

    notified = notify_partner_of_placement(partner, summary)
    if notified:
        _mark_notified(placement)

    notify_new_placement(placement, partner.name if partner else 'Unknown Partner',
                         summary['candidate_name'], notified)
    return placement


def _placement_summary(placement, intro, hire):
    return {
        'placement_id': placement.id,
        'introduction_id': intro.id,
        'conversation_id': intro.conversation_id,
        'candidate_crd': placement.candidate_crd,
        'candidate_name': intro.candidate_name,
        'hire_date': placement.hire_date.isoformat(),
        'firm_entity': hire.firm_entity,
        'fee_amount': str(placement.fee_amount),
        'fee_currency': placement.fee_currency,
    }


def _mark_notified(placement):
    """PENDING_NOTIFY → NOTIFIED, guarded so an admin status change isn't overwritten."""
    session = get_session()
    try:
        moved = session.query(Placement).filter(
            Placement.id == placement.id,
            Placement.status == PLACEMENT_PENDING_NOTIFY,
        ).update(
            {Placement.status: PLACEMENT_NOTIFIED, Placement.updated_at: utcnow()},
            synchronize_session=False,
        )
        session.commit()
    finally:
        session.close()

    if not moved:
        return False
    placement.status = PLACEMENT_NOTIFIED
    audit.record(
        'PLACEMENT', placement.id, 'STATUS_CHANGED',
        old_value={'status': PLACEMENT_PENDING_NOTIFY},
        new_value={'status': PLACEMENT_NOTIFIED},
    )
    return True


# ── Reads & admin updates ────────────────────────────────────────────────────

def get_placement(placement_id, partner_id=None):
    session = get_session()
    try:
        query = session.query(Placement).filter(Placement.id == placement_id)
        if partner_id is not None:
            query = query.filter(Placement.partner_id == partner_id)
        placement = query.first()
        if placement is None:
            raise NotFoundError('Placement', placement_id)
        return placement
    finally:
        session.close()


def list_placements(partner_id=None, candidate_crd=None, status=None,
                    from_date=None, to_date=None, skip=0, take=50):
    """Filtered page of placements, newest first. Returns (rows, total)."""
    session = get_session()
    try:
        query = session.query(Placement)
        if partner_id is not None:
            query = query.filter(Placement.partner_id == partner_id)
        if candidate_crd is not None:
            query = query.filter(Placement.candidate_crd == candidate_crd)
        if status:
            query = query.filter(Placement.status == status)
        if from_date is not None:
            query = query.filter(Placement.hire_date >= from_date)
        if to_date is not None:
            query = query.filter(Placement.hire_date <= to_date)

        total = query.count()
        rows = query.order_by(Placement.created_at.desc()).offset(skip).limit(take).all()
        return rows, total
    finally:
        session.close()


def update_placement_status(placement_id, new_status):
    """Admin status change (invoicing, payment, disputes). Same status is a no-op."""
    if new_status not in PLACEMENT_STATUSES:
        raise ValidationError(f'Invalid status: {new_status}')

    session = get_session()
    try:
        placement = session.get(Placement, placement_id)
        if placement is None:
            raise NotFoundError('Placement', placement_id)
        old_status = placement.status
        if old_status == new_status:
            return placement
        placement.status = new_status
        session.commit()
    finally:
        session.close()

    audit.record(
        'PLACEMENT', placement_id, 'STATUS_CHANGED',
        old_value={'status': old_status},
        new_value={'status': new_status},
        source='INTERNAL_API',
    )
    logger.info("Placement %s: %s → %s", placement_id, old_status, new_status)
    return placement


def get_summary_stats():
    session = get_session()
    try:
        now = utcnow()
        total = session.query(func.count(Placement.id)).scalar() or 0
        last_30 = session.query(func.count(Placement.id)).filter(
            Placement.created_at >= now - timedelta(days=30)).scalar() or 0
        last_90 = session.query(func.count(Placement.id)).filter(
            Placement.created_at >= now - timedelta(days=90)).scalar() or 0

        by_status = {
            row.status: row.count
            for row in session.query(
                Placement.status, func.count(Placement.id).label('count'),
            ).group_by(Placement.status).all()
        }

        partner_rows = session.query(
            Placement.partner_id,
            Partner.name,
            func.count(Placement.id).label('count'),
            func.sum(Placement.fee_amount).label('fees'),
        ).join(Partner, Partner.id == Placement.partner_id).group_by(
            Placement.partner_id, Partner.name,
        ).order_by(Partner.name.asc()).all()
    finally:
        session.close()

    return {
        'total_placements': total,
        'last_30_days': last_30,
        'last_90_days': last_90,
        'by_status': by_status,
        'by_partner': [
            {
                'partner_id': row.partner_id,
                'partner_name': row.name,
                'count': row.count,
                'total_fees': str(Decimal(str(row.fees or 0)).quantize(CENTS)),
            }
            for row in partner_rows
        ],
        'introductions_by_status': count_by_status(),
    }


# ── Notification retry sweep ─────────────────────────────────────────────────

def retry_pending_notifications(limit=50):
    """Re-send webhooks for placements still PENDING_NOTIFY, oldest first."""
    session = get_session()
    try:
        pending = session.query(Placement).filter(
            Placement.status == PLACEMENT_PENDING_NOTIFY,
        ).order_by(Placement.created_at.asc()).limit(limit).all()
        work = []
        for placement in pending:
            partner = session.get(Partner, placement.partner_id)
            intro = session.get(Introduction, placement.introduction_id)
            hire = session.get(Hire, placement.hire_id)
            work.append((placement, partner, _placement_summary(placement, intro, hire)))
    finally:
        session.close()

    result = {'attempted': 0, 'notified': 0, 'failed': 0, 'skipped': 0}
    for placement, partner, summary in work:
        if partner is None or not partner.webhook_url:
            result['skipped'] += 1
            continue
        result['attempted'] += 1
        if notify_partner_of_placement(partner, summary) and _mark_notified(placement):
            result['notified'] += 1
        else:
            result['failed'] += 1

    if work:
        logger.info("Notification retry sweep: %s", result)
    return result
