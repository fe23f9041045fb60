"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    CompoundingPolicy,
    PlatformStatus,
    PlatformValueSource,
    TransactionKind,
    TransactionStatus,

    # Entities
    CascadeResult,
    Client,
    ClientReturn,
    ClientShare,
    CorpusData,
    EditRecord,
    MonthlyReturnSnapshot,
    PlatformAggregate,
    PlatformAllocation,
    PlatformPerformance,
    PlatformReturn,
    Transaction,
    WeeklySnapshot,
)

__all__ = [
    # Enums
    "CompoundingPolicy",
    "PlatformStatus",
    "PlatformValueSource",
    "TransactionKind",
    "TransactionStatus",

    # Entities
    "CascadeResult",
    "Client",
    "ClientReturn",
    "ClientShare",
    "CorpusData",
    "EditRecord",
    "MonthlyReturnSnapshot",
    "PlatformAggregate",
    "PlatformAllocation",
    "PlatformPerformance",
    "PlatformReturn",
    "Transaction",
    "WeeklySnapshot",
]
