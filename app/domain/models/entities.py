"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple


class TransactionKind(str, Enum):
    """Direction of a ledger entry"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, Enum):
    """Soft-delete state of a ledger entry"""
    ACTIVE = "active"
    CANCELLED = "cancelled"


class PlatformStatus(str, Enum):
    """Lifecycle of capital placed with a platform"""
    ACTIVE = "active"
    CLOSED = "closed"


class CompoundingPolicy(str, Enum):
    """Base used for a client's monthly profit"""
    SIMPLE = "simple"
    COMPOUND = "compound"


class PlatformValueSource(str, Enum):
    """Where platform value/return comes from when aggregating a period"""
    CURRENT = "current"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class Client:
    """Capital owner referenced by ledger entries"""
    id: int
    name: str
    email: Optional[str] = None


@dataclass(frozen=True)
class EditRecord:
    """One amount change on a ledger entry - audit trail"""
    previous_amount: Decimal
    new_amount: Decimal
    editor: Optional[str]
    edited_at: datetime
    reason: str


@dataclass(frozen=True)
class Transaction:
    """Ledger entry (deposit / withdrawal) - Immutable"""
    id: Optional[int]
    client_id: int
    amount: Decimal
    kind: TransactionKind
    transaction_date: date
    status: TransactionStatus = TransactionStatus.ACTIVE
    is_edited: bool = False
    edit_history: Tuple[EditRecord, ...] = ()

    @property
    def signed_amount(self) -> Decimal:
        """Deposit adds to the corpus, withdrawal removes from it"""
        if self.kind == TransactionKind.WITHDRAWAL:
            return -self.amount
        return self.amount

    @property
    def is_active(self) -> bool:
        return self.status == TransactionStatus.ACTIVE


@dataclass(frozen=True)
class PlatformAllocation:
    """Capital placed with one external platform"""
    id: Optional[int]
    platform_name: str
    principal_amount: Decimal
    allocation_date: date
    return_percentage: Decimal
    current_value: Decimal
    status: PlatformStatus = PlatformStatus.ACTIVE


@dataclass(frozen=True)
class WeeklySnapshot:
    """Weekly platform performance record"""
    id: Optional[int]
    platform_id: int
    week_start_date: date
    week_end_date: date
    week_number: int
    year: int
    opening_value: Decimal
    closing_value: Decimal
    weekly_return_pct: Decimal
    profit_amount: Decimal
    is_interpolated: bool = False
    entered_by: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class ClientShare:
    """A client's net capital and ownership of the corpus at a point in time"""
    client_id: int
    client_name: str
    total_investment: Decimal
    share_percentage: Decimal


@dataclass(frozen=True)
class CorpusData:
    """Pooled capital as of a cutoff date"""
    as_of: date
    total_corpus: Decimal
    client_shares: List[ClientShare] = field(default_factory=list)

    @property
    def number_of_clients(self) -> int:
        return len(self.client_shares)


@dataclass(frozen=True)
class PlatformPerformance:
    """One platform's contribution to a period's aggregate"""
    platform_id: int
    platform_name: str
    return_percentage: Decimal
    current_value: Decimal


@dataclass(frozen=True)
class PlatformAggregate:
    """Value-weighted performance across active platforms"""
    period_start: date
    period_end: date
    total_value: Decimal
    weighted_return_pct: Decimal
    platforms: List[PlatformPerformance] = field(default_factory=list)


@dataclass(frozen=True)
class ClientReturn:
    """Per-client line of a monthly snapshot"""
    client_id: int
    client_name: str
    investment_share: Decimal
    share_percentage: Decimal
    return_amount: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class PlatformReturn:
    """Per-platform line of a monthly snapshot"""
    platform_id: int
    platform_name: str
    return_percentage: Decimal
    return_amount: Decimal
    current_value: Decimal


@dataclass(frozen=True)
class MonthlyReturnSnapshot:
    """Derived returns for one calendar month - replaced wholesale on recalculation"""
    month: date
    total_corpus: Decimal
    total_platform_value: Decimal
    monthly_return_percentage: Decimal
    calculated_at: datetime
    client_returns: List[ClientReturn] = field(default_factory=list)
    platform_returns: List[PlatformReturn] = field(default_factory=list)

    def client_return(self, client_id: int) -> Optional[ClientReturn]:
        for entry in self.client_returns:
            if entry.client_id == client_id:
                return entry
        return None

    @property
    def total_return_amount(self) -> Decimal:
        return sum((c.return_amount for c in self.client_returns), Decimal('0'))


@dataclass(frozen=True)
class CascadeResult:
    """Outcome of one forward recalculation run"""
    from_month: date
    months_recalculated: int
    last_month: Optional[date]
    resume_from: Optional[date] = None

    @property
    def completed(self) -> bool:
        """True when every month up to the current one was processed"""
        return self.resume_from is None
