# app/services/portfolio_service.py

"""
SERVICE - CORPUS OVERVIEW & CLIENT PORTFOLIO

Read-only reporting over the ledger and stored monthly snapshots.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import (
    CorpusData,
    MonthlyReturnSnapshot,
    PlatformAllocation,
    Transaction,
)
from app.infrastructure.db.repositories.client_repository import ClientRepository
from app.infrastructure.db.repositories.platform_repository import PlatformAllocationRepository
from app.infrastructure.db.repositories.transaction_repository import TransactionRepository
from app.services.returns_engine import build_returns_engine
from app.utils.time import today_local


@dataclass
class CorpusOverview:
    corpus: CorpusData
    platforms: List[PlatformAllocation]
    latest_monthly_return: Optional[MonthlyReturnSnapshot]
    total_platform_value: Decimal

    @property
    def number_of_platforms(self) -> int:
        return len(self.platforms)


@dataclass
class ClientMonthLine:
    month: date
    total_corpus: Decimal
    share_percentage: Decimal
    investment_share: Decimal
    return_amount: Decimal
    closing_balance: Decimal
    monthly_return_percentage: Decimal


@dataclass
class ClientPortfolio:
    client_id: int
    client_name: str
    transactions: List[Transaction]
    monthly_returns: List[ClientMonthLine] = field(default_factory=list)
    total_invested: Decimal = Decimal("0")
    current_value: Decimal = Decimal("0")
    previous_closing_balance: Decimal = Decimal("0")

    @property
    def total_returns(self) -> Decimal:
        return self.current_value - self.total_invested

    @property
    def return_percentage(self) -> Decimal:
        if self.total_invested <= 0:
            return Decimal("0.00")
        return (self.total_returns / self.total_invested * Decimal("100")).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )


class PortfolioService:
    def __init__(self, session: AsyncSession, today=today_local):
        self.today = today
        self.clients = ClientRepository(session)
        self.transactions = TransactionRepository(session)
        self.platforms = PlatformAllocationRepository(session)
        self.engine = build_returns_engine(session, today=today)

    async def corpus_overview(self, as_of: Optional[date] = None) -> CorpusOverview:
        as_of = as_of or self.today()
        corpus = await self.engine.corpus_resolver.resolve_corpus(as_of)
        platforms = await self.platforms.list_active()
        latest = await self.engine.snapshots.get_latest()

        return CorpusOverview(
            corpus=corpus,
            platforms=platforms,
            latest_monthly_return=latest,
            total_platform_value=sum((p.current_value for p in platforms), Decimal("0")),
        )

    async def client_portfolio(self, client_id: int) -> Optional[ClientPortfolio]:
        """
        Client's active ledger entries and month-by-month returns.

        Current value is the latest stored closing balance, or the net
        invested amount when no month has been calculated yet.
        """
        client = await self.clients.get(client_id)
        if client is None:
            return None

        transactions = await self.transactions.list_for_client(client_id, include_cancelled=False)
        transactions.sort(key=lambda t: (t.transaction_date, t.id or 0))
        total_invested = sum((t.signed_amount for t in transactions), Decimal("0"))

        first_entry = transactions[0].transaction_date if transactions else None
        lines: List[ClientMonthLine] = []
        for snapshot in await self.engine.snapshots.list_for_client(client_id, since=first_entry):
            entry = snapshot.client_return(client_id)
            lines.append(
                ClientMonthLine(
                    month=snapshot.month,
                    total_corpus=snapshot.total_corpus,
                    share_percentage=entry.share_percentage,
                    investment_share=entry.investment_share,
                    return_amount=entry.return_amount,
                    closing_balance=entry.closing_balance,
                    monthly_return_percentage=snapshot.monthly_return_percentage,
                )
            )

        current_value = lines[-1].closing_balance if lines else total_invested
        previous_balance = await self.engine.calculator.previous_closing_balance(client_id, self.today())

        return ClientPortfolio(
            client_id=client.id,
            client_name=client.name,
            transactions=transactions,
            monthly_returns=lines,
            total_invested=total_invested,
            current_value=current_value,
            previous_closing_balance=previous_balance,
        )
