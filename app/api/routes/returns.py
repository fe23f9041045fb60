"""
Monthly Returns API Routes
Recalculate and inspect monthly return snapshots

Month Selection Rules:
- Path months use YYYY-MM
- Recalculation always runs from the given date through the current month
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import MonthlyReturnSnapshot
from app.domain.services.recalculation_cascade import RecalculationError
from app.infrastructure.db.database import get_db
from app.services.returns_engine import build_returns_engine
from app.utils.time import parse_month, to_local_iso_db

router = APIRouter()


# -------------------------------------------------------------------
# Helper utilities
# -------------------------------------------------------------------

def resolve_month(month_str: str) -> date:
    try:
        return parse_month(month_str)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid month format. Use YYYY-MM")


# -------------------------------------------------------------------
# Request / Response models
# -------------------------------------------------------------------

class RecalculateRequest(BaseModel):
    from_date: date = Field(..., description="Effective date of the change")
    max_months: Optional[int] = Field(None, ge=1, description="Bound for this run")


class RecalculateResponse(BaseModel):
    from_month: str
    months_recalculated: int
    last_month: Optional[str] = None
    resume_from: Optional[str] = None
    completed: bool


class CalculateMonthRequest(BaseModel):
    return_percentage: Optional[float] = Field(
        None, description="Override for the weighted platform return"
    )


class ClientReturnResponse(BaseModel):
    client_id: int
    client_name: str
    investment_share: float
    share_percentage: float
    return_amount: float
    closing_balance: float


class PlatformReturnResponse(BaseModel):
    platform_id: int
    platform_name: str
    return_percentage: float
    return_amount: float
    current_value: float


class MonthlyReturnResponse(BaseModel):
    month: str
    total_corpus: float
    total_platform_value: float
    monthly_return_percentage: float
    total_return_amount: float
    calculated_at: str
    client_returns: List[ClientReturnResponse]
    platform_returns: List[PlatformReturnResponse]


def snapshot_response(snapshot: MonthlyReturnSnapshot) -> MonthlyReturnResponse:
    return MonthlyReturnResponse(
        month=snapshot.month.strftime("%Y-%m"),
        total_corpus=float(snapshot.total_corpus),
        total_platform_value=float(snapshot.total_platform_value),
        monthly_return_percentage=float(snapshot.monthly_return_percentage),
        total_return_amount=float(snapshot.total_return_amount),
        calculated_at=to_local_iso_db(snapshot.calculated_at),
        client_returns=[
            ClientReturnResponse(
                client_id=c.client_id,
                client_name=c.client_name,
                investment_share=float(c.investment_share),
                share_percentage=float(c.share_percentage),
                return_amount=float(c.return_amount),
                closing_balance=float(c.closing_balance),
            )
            for c in snapshot.client_returns
        ],
        platform_returns=[
            PlatformReturnResponse(
                platform_id=p.platform_id,
                platform_name=p.platform_name,
                return_percentage=float(p.return_percentage),
                return_amount=float(p.return_amount),
                current_value=float(p.current_value),
            )
            for p in snapshot.platform_returns
        ],
    )


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------

@router.post("/recalculate", response_model=RecalculateResponse)
async def recalculate(
    request: RecalculateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Manual recalculation trigger.

    On failure the months already processed stay saved; the error names
    the month to resume from.
    """
    engine = build_returns_engine(db, commit_each_month=True)
    try:
        result = await engine.cascade.recalculate_from_date(request.from_date, max_months=request.max_months)
    except RecalculationError as exc:
        raise HTTPException(
            status_code=500,
            detail={
                "error": str(exc.cause),
                "months_recalculated": exc.months_recalculated,
                "resume_from": exc.resume_from.strftime("%Y-%m"),
            },
        )

    return RecalculateResponse(
        from_month=result.from_month.strftime("%Y-%m"),
        months_recalculated=result.months_recalculated,
        last_month=result.last_month.strftime("%Y-%m") if result.last_month else None,
        resume_from=result.resume_from.strftime("%Y-%m") if result.resume_from else None,
        completed=result.completed,
    )


@router.post("/months/{month}/calculate", response_model=MonthlyReturnResponse)
async def calculate_month(
    month: str,
    request: Optional[CalculateMonthRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Recalculate a single month, optionally with a manual return percentage."""
    month_date = resolve_month(month)
    override = None
    if request is not None and request.return_percentage is not None:
        override = Decimal(str(request.return_percentage))

    engine = build_returns_engine(db)
    snapshot = await engine.cascade.calculate_month(month_date, precomputed_return_pct=override)
    return snapshot_response(snapshot)


@router.get("/months", response_model=List[MonthlyReturnResponse])
async def list_months(db: AsyncSession = Depends(get_db)):
    engine = build_returns_engine(db)
    return [snapshot_response(s) for s in await engine.snapshots.list_all()]


@router.get("/months/{month}", response_model=MonthlyReturnResponse)
async def get_month(month: str, db: AsyncSession = Depends(get_db)):
    month_date = resolve_month(month)
    engine = build_returns_engine(db)
    snapshot = await engine.snapshots.get_for_month(month_date)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No returns calculated for {month}")
    return snapshot_response(snapshot)
