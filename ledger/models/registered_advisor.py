"""
RegisteredAdvisor model — advisors BrokerCheck reports at the monitored firm.

Upserted by reconciliation on every positive lookup, one row per CRD.
"""
import uuid

from sqlalchemy import Column, Text, BigInteger, Boolean, DateTime, Index

from ledger.database import Base, utcnow


class RegisteredAdvisor(Base):
    __tablename__ = 'registered_advisors'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    crd_number = Column(BigInteger, nullable=False, unique=True)
    first_name = Column(Text, default='')
    last_name = Column(Text, default='')
    firm_crd = Column(BigInteger, nullable=False)
    firm_name = Column(Text, default='')
    first_seen = Column(DateTime(timezone=True), default=utcnow)
    last_seen = Column(DateTime(timezone=True), default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index('ix_registered_advisors_firm_crd', 'firm_crd'),
    )
