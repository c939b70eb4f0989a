#!/usr/bin/env python3
"""
Seed demo data for exercising the ledger locally.

Creates two demo partners and a handful of introductions covering key scenarios:
  1. Introduction + in-window hire → placement
  2. Introduction + hire 13 months later → no placement
  3. Two partners introducing the same CRD → oldest wins
  4. Cancelled introduction
  5. Open introduction waiting for reconciliation

Usage:
    python scripts/seed_demo_data.py          # seed all scenarios
    python scripts/seed_demo_data.py --clear  # wipe seeded data first

Requires: DATABASE_URL set (or defaults to sqlite:///local.db). Redis is
optional; notifications are skipped when SLACK_WEBHOOK_URL is unset.
"""
import sys
import os
import argparse
from datetime import date, datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ledger import create_app
from ledger.config import INTRO_CANCELLED
from ledger.database import get_session, engine, Base
from ledger.models.audit_log import AuditLog
from ledger.models.hire import Hire
from ledger.models.introduction import Introduction
from ledger.models.partner import Partner
from ledger.models.placement import Placement
from ledger.services import hires, introductions, partners, placements


# Prefix for seeded partner names so we can clear them
SEED_PREFIX = 'Demo '

PARTNERS = [
    {'name': 'Demo Boardy', 'terms': {'flat_fee': 15000, 'attribution_window_months': 12}},
    {'name': 'Demo Harbor Talent', 'terms': {'fee_percentage': 20}},
]

FIRM = 'Demo Securities LLC'


def _utc(y, m, d):
    return datetime(y, m, d, 15, 0, tzinfo=timezone.utc)


def _introduce(partner, crd, conversation_id, when, first, last):
    intro, _ = introductions.create_introduction(
        partner_id=partner.id,
        candidate_crd=crd,
        conversation_id=conversation_id,
        intro_timestamp=when,
        first_name=first,
        last_name=last,
        email=f'{first.lower()}.{last.lower()}@example.com',
        recruiter_name='Demo Recruiter',
    )
    return intro


def _hire(crd, hire_date, first, last):
    hire, created = hires.create_hire(
        crd_number=crd, first_name=first, last_name=last,
        firm_entity=FIRM, hire_date=hire_date,
    )
    return hire, created


def seed_all():
    boardy = partners.create_partner(
        PARTNERS[0]['name'], partners.generate_api_key(), placement_terms=PARTNERS[0]['terms'],
    )
    harbor = partners.create_partner(
        PARTNERS[1]['name'], partners.generate_api_key(), placement_terms=PARTNERS[1]['terms'],
    )

    _introduce(boardy, 7001001, 'demo-conv-1', _utc(2025, 1, 15), 'Alice', 'Nguyen')
    hire, _ = _hire(7001001, date(2025, 6, 1), 'Alice', 'Nguyen')
    placement = placements.match_hire_to_introductions(hire.id)
    print(f'  [1] In-window hire:   placement {placement.id if placement else "—"}')

    _introduce(boardy, 7001002, 'demo-conv-2', _utc(2024, 1, 10), 'Ben', 'Okafor')
    hire, _ = _hire(7001002, date(2025, 2, 3), 'Ben', 'Okafor')
    placement = placements.match_hire_to_introductions(hire.id)
    print(f'  [2] Outside window:   placement {placement.id if placement else "none (expected)"}')

    _introduce(harbor, 7001003, 'demo-conv-3a', _utc(2025, 2, 1), 'Chloe', 'Ramirez')
    _introduce(boardy, 7001003, 'demo-conv-3b', _utc(2025, 3, 1), 'Chloe', 'Ramirez')
    hire, _ = _hire(7001003, date(2025, 5, 20), 'Chloe', 'Ramirez')
    placement = placements.match_hire_to_introductions(hire.id)
    print(f'  [3] Oldest wins:      placement for partner {placement.partner_id if placement else "—"}')

    cancelled = _introduce(boardy, 7001004, 'demo-conv-4', _utc(2025, 4, 2), 'Dev', 'Patel')
    introductions.update_introduction_status(cancelled.id, INTRO_CANCELLED)
    print(f'  [4] Cancelled:        introduction {cancelled.id}')

    waiting = _introduce(harbor, 7001005, 'demo-conv-5', _utc(2025, 5, 5), 'Erin', 'Walsh')
    print(f'  [5] Awaiting hire:    introduction {waiting.id}')


def clear_seeded_data():
    session = get_session()
    try:
        partner_ids = [p.id for p in session.query(Partner).filter(Partner.name.like(f'{SEED_PREFIX}%')).all()]
        if not partner_ids:
            print('No seeded data found.')
            return

        intro_ids = [i.id for i in session.query(Introduction.id).filter(Introduction.partner_id.in_(partner_ids))]
        placement_ids = [p.id for p in session.query(Placement.id).filter(Placement.partner_id.in_(partner_ids))]
        hire_ids = [h.id for h in session.query(Hire.id).filter(Hire.firm_entity == FIRM)]

        entity_ids = partner_ids + intro_ids + placement_ids + hire_ids
        session.query(AuditLog).filter(AuditLog.entity_id.in_(entity_ids)).delete(synchronize_session=False)
        session.query(Placement).filter(Placement.id.in_(placement_ids)).delete(synchronize_session=False)
        session.query(Introduction).filter(Introduction.id.in_(intro_ids)).delete(synchronize_session=False)
        session.query(Hire).filter(Hire.id.in_(hire_ids)).delete(synchronize_session=False)
        session.query(Partner).filter(Partner.id.in_(partner_ids)).delete(synchronize_session=False)
        session.commit()
        print(f'Cleared {len(partner_ids)} partners, {len(intro_ids)} introductions, '
              f'{len(hire_ids)} hires, {len(placement_ids)} placements.')
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def main():
    parser = argparse.ArgumentParser(description='Seed demo ledger data')
    parser.add_argument('--clear', action='store_true', help='Clear seeded data before (or instead of) seeding')
    parser.add_argument('--clear-only', action='store_true', help='Only clear, do not re-seed')
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        # Ensure tables exist (for SQLite local dev)
        Base.metadata.create_all(engine)

        if args.clear or args.clear_only:
            clear_seeded_data()
            if args.clear_only:
                return

        print('Seeding demo data...')
        seed_all()
        print('\nDone! Try GET /api/placements/stats.')


if __name__ == '__main__':
    main()
