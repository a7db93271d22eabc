from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from backend.app.config import DATA_DIR, DATABASE_URL, settings


class Base(DeclarativeBase):
    pass


def install_sqlite_pragmas(target: AsyncEngine) -> None:
    """Apply per-connection pragmas every time the pool opens a connection.

    ``foreign_keys`` and ``busy_timeout`` are connection-scoped in SQLite, so
    they must be set on each new DBAPI connection rather than once at startup.
    """

    @event.listens_for(target.sync_engine, "connect")
    def _set_pragmas(dbapi_connection, connection_record) -> None:  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute(f"PRAGMA busy_timeout = {int(settings.busy_timeout_ms)}")
        cursor.close()


engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
)
install_sqlite_pragmas(engine)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:
    """FastAPI dependency for database sessions."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(target: AsyncEngine | None = None) -> None:
    """Create all tables and apply database-wide pragmas."""
    import backend.app.models  # noqa: F401 (registers models)

    target = target or engine
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    async with target.begin() as conn:
        # SQLite performance & safety pragmas
        await conn.execute(text("PRAGMA journal_mode = WAL"))
        await conn.execute(text("PRAGMA synchronous = NORMAL"))
        await conn.execute(text("PRAGMA cache_size = -64000"))
        await conn.execute(text("PRAGMA temp_store = MEMORY"))

        await conn.run_sync(Base.metadata.create_all)

