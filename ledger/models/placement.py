"""
Placement model — the billable link between one introduction and one hire.

introduction_id is unique: an introduction can never be placed twice.
"""
import uuid

from sqlalchemy import (
    Column, Text, BigInteger, Date, DateTime, JSON, Numeric, ForeignKey, Index,
)

from ledger.config import PLACEMENT_PENDING_NOTIFY
from ledger.database import Base, utcnow


class Placement(Base):
    __tablename__ = 'placements'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    partner_id = Column(Text, ForeignKey('partners.id'), nullable=False)
    introduction_id = Column(Text, ForeignKey('introductions.id'), nullable=False, unique=True)
    hire_id = Column(Text, ForeignKey('hires.id'), nullable=False)
    candidate_crd = Column(BigInteger, nullable=False)
    hire_date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default=PLACEMENT_PENDING_NOTIFY)
    fee_amount = Column(Numeric(18, 2, asdecimal=True), nullable=False)
    fee_currency = Column(Text, nullable=False, default='USD')
    terms_snapshot = Column(JSON, nullable=False, default=dict)  # partner terms at creation time
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_placements_candidate_crd', 'candidate_crd'),
        Index('ix_placements_status', 'status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'partner_id': self.partner_id,
            'introduction_id': self.introduction_id,
            'hire_id': self.hire_id,
            'candidate_crd': self.candidate_crd,
            'hire_date': self.hire_date.isoformat() if self.hire_date else None,
            'status': self.status,
            'fee_amount': str(self.fee_amount) if self.fee_amount is not None else None,
            'fee_currency': self.fee_currency,
            'terms_snapshot': self.terms_snapshot or {},
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
