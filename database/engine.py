import logging
from sqlalchemy import BigInteger, Integer, event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

logger = logging.getLogger(__name__)

# BigInteger primary keys do not autoincrement on SQLite
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


def enum_values(enum_cls) -> list[str]:
    """Store enum values (e.g. "Full-time") rather than member names."""
    return [member.value for member in enum_cls]


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign keys enabled."""
    engine = create_async_engine(database_url, echo=echo)

    if make_url(database_url).get_backend_name() == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


logger.info(f"Connecting to database at {make_url(settings.database_url).render_as_string(hide_password=True)}")

db_engine = build_engine(settings.database_url, echo=settings.database_echo)

# Create async session maker to be used throughout the application
AsyncSessionLocal = build_session_factory(db_engine)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


# Function to initialize the database (create tables)
async def init_db(engine: AsyncEngine | None = None):
    import database.models  # noqa: F401  registers tables on Base.metadata

    async with (engine or db_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()
