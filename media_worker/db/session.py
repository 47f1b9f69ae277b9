from collections.abc import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from media_worker.core.config import settings


def _serialize_sqlite_transactions(engine: Engine) -> None:
    """
    SQLite has no FOR UPDATE SKIP LOCKED. Opening every transaction with
    BEGIN IMMEDIATE takes the write lock up front, so two claim
    transactions can never read the same queued row.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _serialize_sqlite_transactions(engine)
        return engine

    return create_engine(database_url, pool_pre_ping=True, pool_size=4, max_overflow=0)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
