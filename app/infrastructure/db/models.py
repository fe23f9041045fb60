"""
Database Models (SQLAlchemy ORM)
Ledger tables are soft-delete only - NO DELETES
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime,
    Boolean, ForeignKey, Text, Enum as SQLEnum, Index, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from app.infrastructure.db.database import Base
from app.utils.time import now_local_naive


# Enums
class TransactionKindEnum(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class PlatformStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"


# Tables

class ClientModel(Base):
    """Capital owner"""
    __tablename__ = "client"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(254), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, default=now_local_naive)

    transactions = relationship("InvestmentTransactionModel", back_populates="client")


class InvestmentTransactionModel(Base):
    """Client deposit / withdrawal - LEDGER RECORD"""
    __tablename__ = "investment_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("client.id"), nullable=False, index=True)

    amount = Column(Numeric(14, 2), nullable=False)
    kind = Column(SQLEnum(TransactionKindEnum), nullable=False, default=TransactionKindEnum.DEPOSIT)
    transaction_date = Column(Date, nullable=False)
    status = Column(SQLEnum(TransactionStatusEnum), nullable=False, default=TransactionStatusEnum.ACTIVE)
    is_edited = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=now_local_naive)
    updated_at = Column(DateTime, nullable=False, default=now_local_naive, onupdate=now_local_naive)

    # Relationships
    client = relationship("ClientModel", back_populates="transactions")
    edits = relationship(
        "TransactionEditModel",
        back_populates="transaction",
        order_by="TransactionEditModel.id",
    )

    # Indexes
    __table_args__ = (
        Index('ix_investment_transaction_date', 'transaction_date'),
        Index('ix_investment_transaction_client_date', 'client_id', 'transaction_date'),
    )


class TransactionEditModel(Base):
    """Amount change on a ledger entry - AUDIT RECORD (append-only)"""
    __tablename__ = "transaction_edit"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("investment_transaction.id"), nullable=False, index=True)
    previous_amount = Column(Numeric(14, 2), nullable=False)
    new_amount = Column(Numeric(14, 2), nullable=False)
    edited_by = Column(String(100), nullable=True)
    reason = Column(Text, nullable=False)
    edited_at = Column(DateTime, nullable=False, default=now_local_naive)

    transaction = relationship("InvestmentTransactionModel", back_populates="edits")


class PlatformAllocationModel(Base):
    """Capital placed with an external trading platform"""
    __tablename__ = "platform_allocation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    platform_name = Column(String(100), nullable=False, index=True)
    principal_amount = Column(Numeric(14, 2), nullable=False)
    allocation_date = Column(Date, nullable=False, index=True)
    return_percentage = Column(Numeric(10, 4), nullable=False, default=0)
    current_value = Column(Numeric(14, 2), nullable=False)
    status = Column(SQLEnum(PlatformStatusEnum), nullable=False, default=PlatformStatusEnum.ACTIVE)

    created_at = Column(DateTime, nullable=False, default=now_local_naive)
    updated_at = Column(DateTime, nullable=False, default=now_local_naive, onupdate=now_local_naive)


class WeeklyPlatformSnapshotModel(Base):
    """Weekly platform performance (entered or interpolated)"""
    __tablename__ = "weekly_platform_snapshot"

    id = Column(Integer, primary_key=True, autoincrement=True)
    platform_id = Column(Integer, ForeignKey("platform_allocation.id"), nullable=False, index=True)

    week_start_date = Column(Date, nullable=False)
    week_end_date = Column(Date, nullable=False)
    week_number = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    opening_value = Column(Numeric(18, 6), nullable=False)
    closing_value = Column(Numeric(18, 6), nullable=False)
    weekly_return_pct = Column(Numeric(10, 2), nullable=False)
    profit_amount = Column(Numeric(18, 6), nullable=False)

    notes = Column(Text, nullable=True)
    entered_by = Column(String(100), nullable=True)
    is_interpolated = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=now_local_naive)

    __table_args__ = (
        UniqueConstraint('platform_id', 'week_start_date', name='uq_weekly_platform_week'),
        Index('ix_weekly_platform_end', 'platform_id', 'week_end_date'),
    )


class MonthlyReturnModel(Base):
    """
    Derived monthly returns - one document per month.

    client_returns / platform_returns are JSON lists with decimal strings;
    the row is replaced as a whole on every recalculation.
    """
    __tablename__ = "monthly_return"

    id = Column(Integer, primary_key=True, autoincrement=True)
    month = Column(Date, nullable=False, unique=True, index=True)

    total_corpus = Column(Numeric(18, 6), nullable=False)
    total_platform_value = Column(Numeric(18, 6), nullable=False)
    monthly_return_percentage = Column(Numeric(20, 10), nullable=False)

    client_returns = Column(JSON, nullable=False)
    platform_returns = Column(JSON, nullable=False)

    calculated_at = Column(DateTime, nullable=False, default=now_local_naive)
