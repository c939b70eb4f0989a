"""
Hire model — one hire event, deduplicated by (crd_number, firm_entity, hire_date).

All sources (internal onboarding, BrokerCheck sync, manual entry) share this
table; `source` tells them apart.
"""
import uuid

from sqlalchemy import Column, Text, BigInteger, Date, DateTime, UniqueConstraint, Index

from ledger.database import Base, utcnow


class Hire(Base):
    __tablename__ = 'hires'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    crd_number = Column(BigInteger, nullable=False)
    first_name = Column(Text, nullable=False, default='')
    last_name = Column(Text, nullable=False, default='')
    firm_entity = Column(Text, nullable=False)
    firm_crd = Column(BigInteger, nullable=True)   # absent for internally-sourced hires
    hire_date = Column(Date, nullable=False)
    termination_date = Column(Date, nullable=True)
    source = Column(Text, nullable=False)
    raw_source_reference = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('crd_number', 'firm_entity', 'hire_date', name='uq_hire_crd_firm_date'),
        Index('ix_hires_crd_number', 'crd_number'),
        Index('ix_hires_hire_date', 'hire_date'),
    )

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'.strip()

    def to_dict(self):
        return {
            'id': self.id,
            'crd_number': self.crd_number,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'firm_entity': self.firm_entity,
            'firm_crd': self.firm_crd,
            'hire_date': self.hire_date.isoformat() if self.hire_date else None,
            'termination_date': self.termination_date.isoformat() if self.termination_date else None,
            'source': self.source,
            'raw_source_reference': self.raw_source_reference,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
