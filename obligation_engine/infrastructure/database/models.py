"""SQLAlchemy ORM models for scheduled entries, recurrence groups and ledger transactions"""

import uuid
from sqlalchemy import Column, Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class RecurrenceGroup(Base):
    """One recurring definition or installment plan and the entries expanded from it"""

    __tablename__ = "recurrence_group"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    series_type = Column(Text, nullable=False)  # recurrence | installment
    periodicity = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    entries = relationship("ScheduledEntryRecord", back_populates="group")


class ScheduledEntryRecord(Base):
    """Expected future income or expense"""

    __tablename__ = "scheduled_entry"
    __table_args__ = (
        Index("ix_scheduled_entry_group_date", "recurrence_group_id", "expected_date"),
        Index("ix_scheduled_entry_owner_date", "owner_id", "expected_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False)
    kind = Column(Text, nullable=False)  # income | expense
    amount = Column(Numeric(14, 2), nullable=False)
    description = Column(Text, nullable=False)
    category_id = Column(Text, nullable=False)
    expected_date = Column(Date, nullable=False)
    account_scope = Column(Text, nullable=False, default="personal")
    account_id = Column(Text, nullable=True)
    counterparty = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="pending")
    is_recurring = Column(Boolean, nullable=False, default=False)
    periodicity = Column(Text, nullable=True)
    recurrence_end_date = Column(Date, nullable=True)
    installment_index = Column(Integer, nullable=True)
    installment_total = Column(Integer, nullable=True)
    recurrence_group_id = Column(
        UUID(as_uuid=True), ForeignKey("recurrence_group.id", ondelete="SET NULL"), nullable=True
    )
    realized_transaction_id = Column(UUID(as_uuid=True), nullable=True)
    effective_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    group = relationship("RecurrenceGroup", back_populates="entries")


class LedgerTransactionRecord(Base):
    """Realized transaction created by confirming a scheduled entry"""

    __tablename__ = "ledger_transaction"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    kind = Column(Text, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    description = Column(Text, nullable=False)
    category_id = Column(Text, nullable=False)
    transaction_date = Column(Date, nullable=False)
    account_scope = Column(Text, nullable=False)
    account_id = Column(Text, nullable=True)
    payer = Column(Text, nullable=True)
    payee = Column(Text, nullable=True)
    originating_entry_id = Column(
        UUID(as_uuid=True),
        ForeignKey("scheduled_entry.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
