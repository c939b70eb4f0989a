"""
Partner model — a recruiting partner (vendor) that submits introductions.

Never hard-deleted; disabled via is_active so historical introductions and
placements keep a valid reference.
"""
import uuid

from sqlalchemy import Column, Text, Boolean, DateTime, JSON, Index

from ledger.database import Base, utcnow


class Partner(Base):
    __tablename__ = 'partners'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False, unique=True)
    placement_terms = Column(JSON, nullable=True)   # {fee_percentage, flat_fee, attribution_window_months}
    webhook_url = Column(Text, nullable=True)
    api_key_hash = Column(Text, nullable=False)     # sha256 hex, never serialized
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_partners_api_key_hash', 'api_key_hash'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'placement_terms': self.placement_terms or {},
            'webhook_url': self.webhook_url,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
