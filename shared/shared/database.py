from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def get_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # writers queue on the file lock instead of failing straight away
        return create_async_engine(database_url, echo=echo, connect_args={"timeout": 15})
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


def get_session(engine: AsyncEngine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
