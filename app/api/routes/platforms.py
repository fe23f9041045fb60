"""
Platform API Routes
Allocations, return updates and weekly performance history
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.routes.ledger import RecalculationSummary, recalculation_summary
from app.domain.models import PlatformAllocation, WeeklySnapshot
from app.infrastructure.db.database import get_db
from app.infrastructure.db.repositories.weekly_snapshot_repository import WeeklySnapshotRepository
from app.services.ledger_service import (
    DuplicateWeeklySnapshotError,
    LedgerService,
    LedgerValidationError,
    NotFoundError,
)
from app.services.returns_engine import build_returns_engine

router = APIRouter()


# -------------------------------------------------------------------
# Request / Response models
# -------------------------------------------------------------------

class AllocationRequest(BaseModel):
    platform_name: str = Field(..., min_length=1)
    principal_amount: float = Field(..., gt=0)
    allocation_date: date


class ReturnsUpdateRequest(BaseModel):
    return_percentage: float
    current_value: float = Field(..., ge=0)
    effective_date: Optional[date] = Field(
        None, description="First month to recalculate (defaults to today)"
    )


class BulkUpdateEntry(BaseModel):
    platform_id: int
    return_percentage: float


class BulkUpdateRequest(BaseModel):
    updates: List[BulkUpdateEntry] = Field(..., min_length=1)


class WeeklySnapshotRequest(BaseModel):
    week_start_date: date
    opening_value: float = Field(..., ge=0)
    closing_value: float = Field(..., ge=0)
    entered_by: Optional[str] = None
    notes: Optional[str] = None


class InterpolateRequest(BaseModel):
    start_date: date
    end_date: date


class PlatformResponse(BaseModel):
    id: int
    platform_name: str
    principal_amount: float
    allocation_date: str
    return_percentage: float
    current_value: float
    status: str


class PlatformMutationResponse(BaseModel):
    message: str
    platform: PlatformResponse
    recalculation: Optional[RecalculationSummary] = None


class BulkUpdateResultResponse(BaseModel):
    platform_id: int
    success: bool
    platform_name: Optional[str] = None
    error: Optional[str] = None


class BulkUpdateResponse(BaseModel):
    results: List[BulkUpdateResultResponse]
    months_recalculated: int = 0
    recalculation_error: Optional[str] = None


class WeeklySnapshotResponse(BaseModel):
    id: int
    platform_id: int
    week_start_date: str
    week_end_date: str
    week_number: int
    year: int
    opening_value: float
    closing_value: float
    weekly_return_pct: float
    profit_amount: float
    is_interpolated: bool
    entered_by: Optional[str] = None
    notes: Optional[str] = None


class WeeklyMutationResponse(BaseModel):
    message: str
    snapshot: WeeklySnapshotResponse
    recalculation: Optional[RecalculationSummary] = None


class InterpolateResponse(BaseModel):
    platform_id: int
    weeks_created: int
    snapshots: List[WeeklySnapshotResponse]
    recalculation: Optional[RecalculationSummary] = None


class ContinuityBreakResponse(BaseModel):
    previous_week_start: str
    week_start: str
    previous_closing: float
    opening: float
    difference: float


class ContinuityResponse(BaseModel):
    platform_id: int
    continuous: bool
    breaks: List[ContinuityBreakResponse]


def platform_response(platform: PlatformAllocation) -> PlatformResponse:
    return PlatformResponse(
        id=platform.id,
        platform_name=platform.platform_name,
        principal_amount=float(platform.principal_amount),
        allocation_date=platform.allocation_date.isoformat(),
        return_percentage=float(platform.return_percentage),
        current_value=float(platform.current_value),
        status=platform.status.value,
    )


def weekly_response(snapshot: WeeklySnapshot) -> WeeklySnapshotResponse:
    return WeeklySnapshotResponse(
        id=snapshot.id,
        platform_id=snapshot.platform_id,
        week_start_date=snapshot.week_start_date.isoformat(),
        week_end_date=snapshot.week_end_date.isoformat(),
        week_number=snapshot.week_number,
        year=snapshot.year,
        opening_value=float(snapshot.opening_value),
        closing_value=float(snapshot.closing_value),
        weekly_return_pct=float(snapshot.weekly_return_pct),
        profit_amount=float(snapshot.profit_amount),
        is_interpolated=snapshot.is_interpolated,
        entered_by=snapshot.entered_by,
        notes=snapshot.notes,
    )


# -------------------------------------------------------------------
# Allocations
# -------------------------------------------------------------------

@router.post("/allocations", response_model=PlatformMutationResponse, status_code=201)
async def add_allocation(request: AllocationRequest, db: AsyncSession = Depends(get_db)):
    service = LedgerService(db)
    try:
        outcome = await service.add_platform_allocation(
            platform_name=request.platform_name,
            principal_amount=Decimal(str(request.principal_amount)),
            allocation_date=request.allocation_date,
        )
    except LedgerValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return PlatformMutationResponse(
        message="Allocation recorded",
        platform=platform_response(outcome.record),
        recalculation=recalculation_summary(outcome),
    )


@router.put("/allocations/{platform_id}/returns", response_model=PlatformMutationResponse)
async def update_returns(
    platform_id: int,
    request: ReturnsUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    service = LedgerService(db)
    try:
        outcome = await service.update_platform_returns(
            platform_id,
            return_percentage=Decimal(str(request.return_percentage)),
            current_value=Decimal(str(request.current_value)),
            effective_date=request.effective_date,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except LedgerValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return PlatformMutationResponse(
        message="Platform returns updated",
        platform=platform_response(outcome.record),
        recalculation=recalculation_summary(outcome),
    )


@router.post("/allocations/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update(request: BulkUpdateRequest, db: AsyncSession = Depends(get_db)):
    service = LedgerService(db)
    outcome = await service.bulk_update_platform_returns(
        [(u.platform_id, Decimal(str(u.return_percentage))) for u in request.updates]
    )
    return BulkUpdateResponse(
        results=[
            BulkUpdateResultResponse(
                platform_id=item.platform_id,
                success=item.success,
                platform_name=item.platform_name,
                error=item.error,
            )
            for item in outcome.results
        ],
        months_recalculated=outcome.recalculation.months_recalculated if outcome.recalculation else 0,
        recalculation_error=outcome.recalculation_error,
    )


# -------------------------------------------------------------------
# Weekly history
# -------------------------------------------------------------------

@router.post("/{platform_id}/weekly", response_model=WeeklyMutationResponse, status_code=201)
async def record_weekly(
    platform_id: int,
    request: WeeklySnapshotRequest,
    db: AsyncSession = Depends(get_db),
):
    service = LedgerService(db)
    try:
        outcome = await service.record_weekly_snapshot(
            platform_id,
            week_start=request.week_start_date,
            opening_value=Decimal(str(request.opening_value)),
            closing_value=Decimal(str(request.closing_value)),
            entered_by=request.entered_by,
            notes=request.notes,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except DuplicateWeeklySnapshotError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except LedgerValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return WeeklyMutationResponse(
        message="Weekly snapshot recorded",
        snapshot=weekly_response(outcome.record),
        recalculation=recalculation_summary(outcome),
    )


@router.get("/{platform_id}/weekly", response_model=List[WeeklySnapshotResponse])
async def list_weekly(
    platform_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    history = await WeeklySnapshotRepository(db).list_for_platform(platform_id, start_date, end_date)
    return [weekly_response(s) for s in history]


@router.post("/{platform_id}/weekly/interpolate", response_model=InterpolateResponse)
async def interpolate_weekly(
    platform_id: int,
    request: InterpolateRequest,
    db: AsyncSession = Depends(get_db),
):
    if request.end_date < request.start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")

    service = LedgerService(db)
    try:
        created, outcome = await service.interpolate_weekly_gaps(
            platform_id, request.start_date, request.end_date
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    return InterpolateResponse(
        platform_id=platform_id,
        weeks_created=len(created),
        snapshots=[weekly_response(s) for s in created],
        recalculation=recalculation_summary(outcome) if outcome else None,
    )


@router.get("/{platform_id}/weekly/continuity", response_model=ContinuityResponse)
async def weekly_continuity(platform_id: int, db: AsyncSession = Depends(get_db)):
    engine = build_returns_engine(db)
    breaks = await engine.interpolator.find_continuity_breaks(platform_id)
    return ContinuityResponse(
        platform_id=platform_id,
        continuous=not breaks,
        breaks=[
            ContinuityBreakResponse(
                previous_week_start=b.previous_week_start.isoformat(),
                week_start=b.week_start.isoformat(),
                previous_closing=float(b.previous_closing),
                opening=float(b.opening),
                difference=float(b.difference),
            )
            for b in breaks
        ],
    )
