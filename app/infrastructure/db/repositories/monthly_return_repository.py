"""
Monthly Return Repository
One snapshot document per month, replaced as a whole on recalculation
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import ClientReturn, MonthlyReturnSnapshot, PlatformReturn
from app.infrastructure.db.models import MonthlyReturnModel
from app.utils.time import first_of_month


def _client_to_json(entry: ClientReturn) -> dict:
    return {
        "client_id": entry.client_id,
        "client_name": entry.client_name,
        "investment_share": str(entry.investment_share),
        "share_percentage": str(entry.share_percentage),
        "return_amount": str(entry.return_amount),
        "closing_balance": str(entry.closing_balance),
    }


def _platform_to_json(entry: PlatformReturn) -> dict:
    return {
        "platform_id": entry.platform_id,
        "platform_name": entry.platform_name,
        "return_percentage": str(entry.return_percentage),
        "return_amount": str(entry.return_amount),
        "current_value": str(entry.current_value),
    }


class MonthlyReturnRepository:
    """Repository for MonthlyReturnSnapshot documents"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_month(self, month: date) -> Optional[MonthlyReturnSnapshot]:
        model = await self._get_model(month)
        return self._to_domain(model) if model else None

    async def upsert(self, snapshot: MonthlyReturnSnapshot) -> MonthlyReturnSnapshot:
        """
        Insert or replace every field of the month's row.

        The month column is unique, so two upserts for one month always
        collapse into a single stored record.
        """
        model = await self._get_model(snapshot.month)
        if model is None:
            model = MonthlyReturnModel(month=snapshot.month)
            self.session.add(model)

        model.total_corpus = snapshot.total_corpus
        model.total_platform_value = snapshot.total_platform_value
        model.monthly_return_percentage = snapshot.monthly_return_percentage
        model.client_returns = [_client_to_json(c) for c in snapshot.client_returns]
        model.platform_returns = [_platform_to_json(p) for p in snapshot.platform_returns]
        model.calculated_at = snapshot.calculated_at

        await self.session.flush()
        return snapshot

    async def list_all(self) -> List[MonthlyReturnSnapshot]:
        result = await self.session.execute(
            select(MonthlyReturnModel).order_by(MonthlyReturnModel.month)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_for_client(self, client_id: int, since: Optional[date] = None) -> List[MonthlyReturnSnapshot]:
        """
        Months (ascending) whose snapshot has a line for the client.

        Client lines live inside the JSON column, so the month bound is the
        only filter applied in SQL.
        """
        stmt = select(MonthlyReturnModel).order_by(MonthlyReturnModel.month)
        if since is not None:
            stmt = stmt.where(MonthlyReturnModel.month >= first_of_month(since))
        result = await self.session.execute(stmt)
        snapshots = [self._to_domain(m) for m in result.scalars().all()]
        return [s for s in snapshots if s.client_return(client_id) is not None]

    async def get_latest(self) -> Optional[MonthlyReturnSnapshot]:
        result = await self.session.execute(
            select(MonthlyReturnModel).order_by(MonthlyReturnModel.month.desc()).limit(1)
        )
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def _get_model(self, month: date) -> Optional[MonthlyReturnModel]:
        result = await self.session.execute(
            select(MonthlyReturnModel).where(MonthlyReturnModel.month == month)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _to_domain(model: MonthlyReturnModel) -> MonthlyReturnSnapshot:
        """Convert database model to domain entity"""
        return MonthlyReturnSnapshot(
            month=model.month,
            total_corpus=Decimal(str(model.total_corpus)),
            total_platform_value=Decimal(str(model.total_platform_value)),
            monthly_return_percentage=Decimal(str(model.monthly_return_percentage)),
            calculated_at=model.calculated_at,
            client_returns=[
                ClientReturn(
                    client_id=int(c["client_id"]),
                    client_name=c.get("client_name", ""),
                    investment_share=Decimal(c["investment_share"]),
                    share_percentage=Decimal(c["share_percentage"]),
                    return_amount=Decimal(c["return_amount"]),
                    closing_balance=Decimal(c["closing_balance"]),
                )
                for c in (model.client_returns or [])
            ],
            platform_returns=[
                PlatformReturn(
                    platform_id=int(p["platform_id"]),
                    platform_name=p.get("platform_name", ""),
                    return_percentage=Decimal(p["return_percentage"]),
                    return_amount=Decimal(p["return_amount"]),
                    current_value=Decimal(p["current_value"]),
                )
                for p in (model.platform_returns or [])
            ],
        )
