"""
Client Repository
Lookups for capital owners referenced by the ledger
"""

from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import Client
from app.infrastructure.db.models import ClientModel


class ClientRepository:
    """Repository for Client data access"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, name: str, email: Optional[str] = None) -> Client:
        model = ClientModel(name=name, email=email)
        self.session.add(model)
        await self.session.flush()
        return self._to_domain(model)

    async def get(self, client_id: int) -> Optional[Client]:
        model = await self.session.get(ClientModel, client_id)
        return self._to_domain(model) if model else None

    async def get_names(self, client_ids: Iterable[int]) -> Dict[int, str]:
        """Names of the clients that exist among `client_ids`"""
        ids = list(client_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(ClientModel.id, ClientModel.name).where(ClientModel.id.in_(ids))
        )
        return {row.id: row.name for row in result}

    @staticmethod
    def _to_domain(model: ClientModel) -> Client:
        return Client(id=model.id, name=model.name, email=model.email)
