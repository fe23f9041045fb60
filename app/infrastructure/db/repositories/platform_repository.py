"""
Platform Allocation Repository
Capital placed with external trading platforms
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import PlatformAllocation, PlatformStatus
from app.infrastructure.db.models import PlatformAllocationModel, PlatformStatusEnum


class PlatformAllocationRepository:
    """Repository for PlatformAllocation data access"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        platform_name: str,
        principal_amount: Decimal,
        allocation_date: date,
        return_percentage: Decimal = Decimal("0"),
        current_value: Optional[Decimal] = None,
    ) -> PlatformAllocation:
        """
        Record a new allocation. Current value starts at the principal.
        """
        model = PlatformAllocationModel(
            platform_name=platform_name,
            principal_amount=principal_amount,
            allocation_date=allocation_date,
            return_percentage=return_percentage,
            current_value=principal_amount if current_value is None else current_value,
            status=PlatformStatusEnum.ACTIVE,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_domain(model)

    async def get(self, platform_id: int) -> Optional[PlatformAllocation]:
        model = await self.session.get(PlatformAllocationModel, platform_id)
        return self._to_domain(model) if model else None

    async def list_active_until(self, as_of: date) -> List[PlatformAllocation]:
        """Active allocations made on or before as_of"""
        result = await self.session.execute(
            select(PlatformAllocationModel)
            .where(
                PlatformAllocationModel.allocation_date <= as_of,
                PlatformAllocationModel.status == PlatformStatusEnum.ACTIVE,
            )
            .order_by(PlatformAllocationModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_active(self) -> List[PlatformAllocation]:
        result = await self.session.execute(
            select(PlatformAllocationModel)
            .where(PlatformAllocationModel.status == PlatformStatusEnum.ACTIVE)
            .order_by(PlatformAllocationModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def update_returns(
        self,
        platform_id: int,
        return_percentage: Decimal,
        current_value: Decimal,
    ) -> Optional[PlatformAllocation]:
        """Overwrite the latest known return and value"""
        model = await self.session.get(PlatformAllocationModel, platform_id)
        if model is None:
            return None
        model.return_percentage = return_percentage
        model.current_value = current_value
        await self.session.flush()
        return self._to_domain(model)

    @staticmethod
    def _to_domain(model: PlatformAllocationModel) -> PlatformAllocation:
        """Convert database model to domain entity"""
        return PlatformAllocation(
            id=model.id,
            platform_name=model.platform_name,
            principal_amount=Decimal(str(model.principal_amount)),
            allocation_date=model.allocation_date,
            return_percentage=Decimal(str(model.return_percentage or 0)),
            current_value=Decimal(str(model.current_value)),
            status=PlatformStatus(model.status.value),
        )
