from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from .settings.config import settings


def normalize_db_url(raw_url: str) -> str:
    # DSNs are usually handed over in libpq form; upgrade them to the async driver
    for prefix in ("postgres://", "postgresql://", "postgresql+psycopg://", "postgresql+psycopg2://"):
        if raw_url.startswith(prefix):
            return "postgresql+asyncpg://" + raw_url[len(prefix):]
    return raw_url


DATABASE_URL = normalize_db_url(settings.DB_CONN)

# sqlite (tests, local runs) gets a fresh connection per checkout so sessions
# can be opened from more than one event loop
_engine_kwargs = {"poolclass": NullPool} if DATABASE_URL.startswith("sqlite") else {"pool_pre_ping": True}

engine = create_async_engine(DATABASE_URL, echo=False, future=True, **_engine_kwargs)
async_session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
Base = declarative_base()

async def get_db():
    async with async_session_maker() as session:
        yield session

async def init_db():
    # Only run create_all in dev, never in prod with Alembic
    if settings.RUN_DB_CREATE_ALL:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

def dialect_insert(db: AsyncSession):
    """``insert`` construct with ON CONFLICT support for whatever the session is bound to."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert
