import os
from typing import AsyncGenerator

# Settings are read at import time; tests never reach a real server
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./pooled_returns_test.db")

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from app.infrastructure.db.database import Base, get_db  # noqa: E402
from app.infrastructure.db import models  # noqa: E402,F401
from app.api.routes import corpus, health, ledger, platforms, returns  # noqa: E402


@pytest.fixture()
async def db_engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        future=True,
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest.fixture()
async def app(db_session) -> FastAPI:
    app = FastAPI()
    app.include_router(health.router, tags=["Health"])
    app.include_router(returns.router, prefix="/api/v1/returns", tags=["Monthly Returns"])
    app.include_router(corpus.router, prefix="/api/v1/corpus", tags=["Corpus"])
    app.include_router(ledger.router, prefix="/api/v1/ledger", tags=["Ledger"])
    app.include_router(platforms.router, prefix="/api/v1/platforms", tags=["Platforms"])

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
