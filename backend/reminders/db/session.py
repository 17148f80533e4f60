from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from reminders.config import settings
from reminders.db.base import Base

# pre_ping: reminder cycles run every 30 min, long enough for idle connections to be dropped upstream
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    import reminders.models  # noqa: F401 - register tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    await engine.dispose()
