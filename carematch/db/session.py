# carematch/db/session.py

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from carematch.core.config import settings


def serialize_sqlite_writes(engine: AsyncEngine) -> None:
    """
    SQLite: take the write lock at BEGIN so concurrent schedule writers queue on
    the busy timeout instead of deadlocking on a SHARED -> RESERVED upgrade.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_txn(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, **kwargs) -> AsyncEngine:
    if make_url(url).get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {"timeout": 30})
        eng = create_async_engine(url, **kwargs)
        serialize_sqlite_writes(eng)
        return eng
    return create_async_engine(url, pool_pre_ping=True, **kwargs)


# 1) Engine: one per app
engine = build_engine(settings.async_db_uri)

# 2) Session factory: creates short-lived sessions per request
AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,  # keep objects usable after commit
    class_=AsyncSession,
)

# 3) Declarative Base: all models inherit from this
class Base(DeclarativeBase):
    pass

# 4) FastAPI dependency: yields a session and closes it safely
async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session
