"""
Corpus API Routes
Pooled capital overview and per-client portfolio
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.routes.ledger import TransactionResponse, transaction_response
from app.api.routes.returns import MonthlyReturnResponse, snapshot_response
from app.infrastructure.db.database import get_db
from app.services.portfolio_service import PortfolioService

router = APIRouter()


# -------------------------------------------------------------------
# Response models
# -------------------------------------------------------------------

class ClientShareResponse(BaseModel):
    client_id: int
    client_name: str
    total_investment: float
    share_percentage: float


class PlatformSummaryResponse(BaseModel):
    platform_id: int
    platform_name: str
    principal_amount: float
    allocation_date: str
    return_percentage: float
    current_value: float
    status: str


class CorpusSummaryResponse(BaseModel):
    total_corpus: float
    total_platform_value: float
    number_of_clients: int
    number_of_platforms: int


class CorpusOverviewResponse(BaseModel):
    as_of: str
    total_corpus: float
    client_shares: List[ClientShareResponse]
    platforms: List[PlatformSummaryResponse]
    latest_monthly_return: Optional[MonthlyReturnResponse] = None
    summary: CorpusSummaryResponse


class ClientMonthResponse(BaseModel):
    month: str
    total_corpus: float
    share_percentage: float
    investment_share: float
    return_amount: float
    closing_balance: float
    monthly_return_percentage: float


class PortfolioSummaryResponse(BaseModel):
    total_invested: float
    current_value: float
    total_returns: float
    return_percentage: float
    previous_closing_balance: float


class ClientPortfolioResponse(BaseModel):
    client_id: int
    client_name: str
    transactions: List[TransactionResponse]
    monthly_returns: List[ClientMonthResponse]
    summary: PortfolioSummaryResponse


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------

@router.get("/overview", response_model=CorpusOverviewResponse)
async def corpus_overview(
    as_of: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    overview = await PortfolioService(db).corpus_overview(as_of)
    corpus = overview.corpus

    return CorpusOverviewResponse(
        as_of=corpus.as_of.isoformat(),
        total_corpus=float(corpus.total_corpus),
        client_shares=[
            ClientShareResponse(
                client_id=s.client_id,
                client_name=s.client_name,
                total_investment=float(s.total_investment),
                share_percentage=float(s.share_percentage),
            )
            for s in corpus.client_shares
        ],
        platforms=[
            PlatformSummaryResponse(
                platform_id=p.id,
                platform_name=p.platform_name,
                principal_amount=float(p.principal_amount),
                allocation_date=p.allocation_date.isoformat(),
                return_percentage=float(p.return_percentage),
                current_value=float(p.current_value),
                status=p.status.value,
            )
            for p in overview.platforms
        ],
        latest_monthly_return=(
            snapshot_response(overview.latest_monthly_return)
            if overview.latest_monthly_return
            else None
        ),
        summary=CorpusSummaryResponse(
            total_corpus=float(corpus.total_corpus),
            total_platform_value=float(overview.total_platform_value),
            number_of_clients=corpus.number_of_clients,
            number_of_platforms=overview.number_of_platforms,
        ),
    )


@router.get("/clients/{client_id}/portfolio", response_model=ClientPortfolioResponse)
async def client_portfolio(client_id: int, db: AsyncSession = Depends(get_db)):
    portfolio = await PortfolioService(db).client_portfolio(client_id)
    if portfolio is None:
        raise HTTPException(status_code=404, detail=f"Client {client_id} not found")

    return ClientPortfolioResponse(
        client_id=portfolio.client_id,
        client_name=portfolio.client_name,
        transactions=[transaction_response(t) for t in portfolio.transactions],
        monthly_returns=[
            ClientMonthResponse(
                month=line.month.strftime("%Y-%m"),
                total_corpus=float(line.total_corpus),
                share_percentage=float(line.share_percentage),
                investment_share=float(line.investment_share),
                return_amount=float(line.return_amount),
                closing_balance=float(line.closing_balance),
                monthly_return_percentage=float(line.monthly_return_percentage),
            )
            for line in portfolio.monthly_returns
        ],
        summary=PortfolioSummaryResponse(
            total_invested=float(portfolio.total_invested),
            current_value=float(portfolio.current_value),
            total_returns=float(portfolio.total_returns),
            return_percentage=float(portfolio.return_percentage),
            previous_closing_balance=float(portfolio.previous_closing_balance),
        ),
    )
