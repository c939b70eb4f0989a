"""
AuditLog model — append-only record of state transitions.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, JSON, Index

from ledger.database import Base, utcnow


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type = Column(Text, nullable=False)   # INTRODUCTION / HIRE / PLACEMENT / PARTNER
    entity_id = Column(Text, nullable=False)
    event_type = Column(Text, nullable=False)    # CREATED / UPDATED / STATUS_CHANGED / NOTIFIED_PARTNER
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    source = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index('ix_audit_log_entity', 'entity_type', 'entity_id'),
        Index('ix_audit_log_created_at', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'event_type': self.event_type,
            'old_value': self.old_value,
            'new_value': self.new_value,
            'source': self.source,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
