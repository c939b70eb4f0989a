"""
Introduction model — one double-opt-in introduction from a partner.

Deduplicated by (partner_id, candidate_crd, conversation_id), the idempotency
key partners retry with.
"""
import uuid

from sqlalchemy import (
    Column, Text, BigInteger, DateTime, JSON, ForeignKey, UniqueConstraint, Index,
)

from ledger.config import INTRO_OPEN
from ledger.database import Base, utcnow


class Introduction(Base):
    __tablename__ = 'introductions'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    partner_id = Column(Text, ForeignKey('partners.id'), nullable=False)
    candidate_crd = Column(BigInteger, nullable=False)
    candidate_first_name = Column(Text, nullable=False)
    candidate_last_name = Column(Text, nullable=False)
    candidate_phone = Column(Text, nullable=True)
    candidate_email = Column(Text, nullable=True)
    candidate_linkedin = Column(Text, nullable=True)
    recruiter_name = Column(Text, nullable=True)
    intro_timestamp = Column(DateTime(timezone=True), nullable=False)  # opt-in time, supplied by partner
    conversation_id = Column(Text, nullable=False)                     # partner's lead reference
    status = Column(Text, nullable=False, default=INTRO_OPEN)
    extra_metadata = Column('metadata', JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint(
            'partner_id', 'candidate_crd', 'conversation_id',
            name='uq_introduction_partner_crd_conversation',
        ),
        Index('ix_introductions_candidate_crd', 'candidate_crd'),
        Index('ix_introductions_status', 'status'),
    )

    @property
    def candidate_name(self):
        return f'{self.candidate_first_name} {self.candidate_last_name}'.strip()

    def to_dict(self):
        return {
            'id': self.id,
            'partner_id': self.partner_id,
            'candidate_crd': self.candidate_crd,
            'first_name': self.candidate_first_name,
            'last_name': self.candidate_last_name,
            'phone': self.candidate_phone,
            'email': self.candidate_email,
            'linkedin': self.candidate_linkedin,
            'recruiter_name': self.recruiter_name,
            'intro_timestamp': self.intro_timestamp.isoformat() if self.intro_timestamp else None,
            'conversation_id': self.conversation_id,
            'status': self.status,
            'metadata': self.extra_metadata or {},
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
