"""
Audit trail — append-only log of state transitions.

record() uses its own session and never raises: a failed audit write is
logged and the enclosing business operation carries on.
"""
import logging

from ledger.database import get_session
from ledger.models.audit_log import AuditLog

logger = logging.getLogger('services.audit')


def record(entity_type, entity_id, event_type, old_value=None, new_value=None, source='SYSTEM'):
    """Append one audit entry. Fire-and-forget."""
    session = get_session()
    try:
        session.add(AuditLog(
            entity_type=entity_type,
            entity_id=str(entity_id),
            event_type=event_type,
            old_value=old_value,
            new_value=new_value,
            source=source,
        ))
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Failed to write audit entry %s %s %s", entity_type, entity_id, event_type, exc_info=True)
    finally:
        session.close()


def find_by_entity(entity_type, entity_id):
    """All entries for one entity, newest first."""
    session = get_session()
    try:
        return session.query(AuditLog).filter_by(
            entity_type=entity_type,
            entity_id=str(entity_id),
        ).order_by(AuditLog.created_at.desc()).all()
    finally:
        session.close()


def list_entries(entity_type=None, source=None, skip=0, take=50):
    session = get_session()
    try:
        query = session.query(AuditLog)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if source:
            query = query.filter(AuditLog.source == source)
        return query.order_by(AuditLog.created_at.desc()).offset(skip).limit(take).all()
    finally:
        session.close()


def latest(entity_id, source=None):
    """Most recent entry for an entity id (used for batch markers)."""
    session = get_session()
    try:
        query = session.query(AuditLog).filter(AuditLog.entity_id == str(entity_id))
        if source:
            query = query.filter(AuditLog.source == source)
        return query.order_by(AuditLog.created_at.desc()).first()
    finally:
        session.close()
