"""
Investment Transaction Repository
Ledger of client deposits / withdrawals with edit history

Entries are never deleted: cancellation flips the status and edits append
an audit row before the amount changes.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.domain.models import (
    EditRecord,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from app.infrastructure.db.models import (
    InvestmentTransactionModel,
    TransactionEditModel,
    TransactionKindEnum,
    TransactionStatusEnum,
)


class TransactionRepository:
    """Repository for ledger entries"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        client_id: int,
        amount: Decimal,
        kind: TransactionKind,
        transaction_date: date,
    ) -> Transaction:
        model = InvestmentTransactionModel(
            client_id=client_id,
            amount=amount,
            kind=TransactionKindEnum(kind.value),
            transaction_date=transaction_date,
            status=TransactionStatusEnum.ACTIVE,
            is_edited=False,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_domain(model, edits=[])

    async def get(self, transaction_id: int) -> Optional[Transaction]:
        model = await self._load(transaction_id)
        return self._to_domain(model, edits=model.edits) if model else None

    async def list_active_until(self, as_of: date) -> List[Transaction]:
        """Active entries dated on or before as_of, oldest first"""
        result = await self.session.execute(
            select(InvestmentTransactionModel)
            .where(
                InvestmentTransactionModel.transaction_date <= as_of,
                InvestmentTransactionModel.status == TransactionStatusEnum.ACTIVE,
            )
            .order_by(InvestmentTransactionModel.transaction_date, InvestmentTransactionModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_for_client(
        self,
        client_id: int,
        include_cancelled: bool = True,
        edited_only: bool = False,
    ) -> List[Transaction]:
        """Client's entries with edit history, newest first"""
        stmt = (
            select(InvestmentTransactionModel)
            .options(selectinload(InvestmentTransactionModel.edits))
            .where(InvestmentTransactionModel.client_id == client_id)
            .order_by(
                InvestmentTransactionModel.transaction_date.desc(),
                InvestmentTransactionModel.id.desc(),
            )
        )
        if not include_cancelled:
            stmt = stmt.where(InvestmentTransactionModel.status == TransactionStatusEnum.ACTIVE)
        if edited_only:
            stmt = stmt.where(InvestmentTransactionModel.is_edited.is_(True))

        result = await self.session.execute(stmt)
        return [self._to_domain(m, edits=m.edits) for m in result.scalars().all()]

    async def update_amount(
        self,
        transaction_id: int,
        new_amount: Decimal,
        editor: Optional[str],
        reason: str,
    ) -> Optional[Transaction]:
        """Record the edit, then change the amount"""
        model = await self._load(transaction_id)
        if model is None:
            return None

        self.session.add(
            TransactionEditModel(
                transaction_id=model.id,
                previous_amount=model.amount,
                new_amount=new_amount,
                edited_by=editor,
                reason=reason,
            )
        )
        model.amount = new_amount
        model.is_edited = True
        await self.session.flush()

        return await self.get(transaction_id)

    async def cancel(self, transaction_id: int) -> Optional[Transaction]:
        """Soft delete"""
        model = await self._load(transaction_id)
        if model is None:
            return None
        model.status = TransactionStatusEnum.CANCELLED
        await self.session.flush()
        return self._to_domain(model, edits=model.edits)

    async def _load(self, transaction_id: int) -> Optional[InvestmentTransactionModel]:
        result = await self.session.execute(
            select(InvestmentTransactionModel)
            .options(selectinload(InvestmentTransactionModel.edits))
            .where(InvestmentTransactionModel.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _to_domain(
        model: InvestmentTransactionModel,
        edits: Optional[List[TransactionEditModel]] = None,
    ) -> Transaction:
        """Convert database model to domain entity"""
        history = tuple(
            EditRecord(
                previous_amount=Decimal(str(e.previous_amount)),
                new_amount=Decimal(str(e.new_amount)),
                editor=e.edited_by,
                edited_at=e.edited_at,
                reason=e.reason,
            )
            for e in (edits or [])
        )
        return Transaction(
            id=model.id,
            client_id=model.client_id,
            amount=Decimal(str(model.amount)),
            kind=TransactionKind(model.kind.value),
            transaction_date=model.transaction_date,
            status=TransactionStatus(model.status.value),
            is_edited=bool(model.is_edited),
            edit_history=history,
        )
