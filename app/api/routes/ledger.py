"""
Ledger API Routes
Client deposits / withdrawals; every change triggers recalculation

Recalculation outcome is reported alongside the mutation. A failed
recalculation does not fail the request: the ledger change is kept.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import Transaction, TransactionKind
from app.infrastructure.db.database import get_db
from app.services.ledger_service import (
    LedgerService,
    LedgerValidationError,
    MutationOutcome,
    NotFoundError,
)
from app.utils.time import to_local_iso_db

router = APIRouter()


# -------------------------------------------------------------------
# Request / Response models
# -------------------------------------------------------------------

class RecordTransactionRequest(BaseModel):
    client_id: int
    amount: float = Field(..., gt=0, description="Positive amount")
    transaction_date: date
    kind: TransactionKind = TransactionKind.DEPOSIT


class EditTransactionRequest(BaseModel):
    amount: float = Field(..., gt=0, description="New positive amount")
    reason: str = Field(..., min_length=1, description="Reason for edit")
    editor: Optional[str] = Field(None, description="Who made the change")


class EditRecordResponse(BaseModel):
    previous_amount: float
    new_amount: float
    editor: Optional[str] = None
    edited_at: str
    reason: str


class TransactionResponse(BaseModel):
    id: int
    client_id: int
    amount: float
    kind: str
    transaction_date: str
    status: str
    is_edited: bool
    edit_history: List[EditRecordResponse] = []


class RecalculationSummary(BaseModel):
    months_recalculated: int
    resume_from: Optional[str] = None
    error: Optional[str] = None


class TransactionMutationResponse(BaseModel):
    message: str
    transaction: TransactionResponse
    recalculation: Optional[RecalculationSummary] = None


def transaction_response(txn: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=txn.id,
        client_id=txn.client_id,
        amount=float(txn.amount),
        kind=txn.kind.value,
        transaction_date=txn.transaction_date.isoformat(),
        status=txn.status.value,
        is_edited=txn.is_edited,
        edit_history=[
            EditRecordResponse(
                previous_amount=float(e.previous_amount),
                new_amount=float(e.new_amount),
                editor=e.editor,
                edited_at=to_local_iso_db(e.edited_at),
                reason=e.reason,
            )
            for e in txn.edit_history
        ],
    )


def recalculation_summary(outcome: MutationOutcome) -> Optional[RecalculationSummary]:
    if outcome.recalculation is None:
        return None
    return RecalculationSummary(
        months_recalculated=outcome.recalculation.months_recalculated,
        resume_from=outcome.resume_from.strftime("%Y-%m") if outcome.resume_from else None,
        error=outcome.recalculation_error,
    )


def _mutation_response(message: str, outcome: MutationOutcome) -> TransactionMutationResponse:
    return TransactionMutationResponse(
        message=message,
        transaction=transaction_response(outcome.record),
        recalculation=recalculation_summary(outcome),
    )


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------

@router.post("/transactions", response_model=TransactionMutationResponse, status_code=201)
async def record_transaction(
    request: RecordTransactionRequest,
    db: AsyncSession = Depends(get_db),
):
    service = LedgerService(db)
    try:
        outcome = await service.record_transaction(
            client_id=request.client_id,
            amount=Decimal(str(request.amount)),
            kind=request.kind,
            transaction_date=request.transaction_date,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except LedgerValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return _mutation_response("Transaction recorded and returns recalculated", outcome)


@router.put("/transactions/{transaction_id}", response_model=TransactionMutationResponse)
async def edit_transaction(
    transaction_id: int,
    request: EditTransactionRequest,
    db: AsyncSession = Depends(get_db),
):
    service = LedgerService(db)
    try:
        outcome = await service.edit_transaction(
            transaction_id,
            new_amount=Decimal(str(request.amount)),
            reason=request.reason,
            editor=request.editor,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except LedgerValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return _mutation_response("Transaction updated and returns recalculated", outcome)


@router.delete("/transactions/{transaction_id}", response_model=TransactionMutationResponse)
async def cancel_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
):
    service = LedgerService(db)
    try:
        outcome = await service.cancel_transaction(transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except LedgerValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return _mutation_response("Transaction cancelled and returns recalculated", outcome)


@router.get("/transactions/history/{client_id}", response_model=List[TransactionResponse])
async def transaction_history(
    client_id: int,
    edited_only: bool = False,
    db: AsyncSession = Depends(get_db),
):
    service = LedgerService(db)
    try:
        transactions = await service.transaction_history(client_id, edited_only=edited_only)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return [transaction_response(t) for t in transactions]
