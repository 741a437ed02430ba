from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from stockledger.core.config import settings


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, **kwargs):
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {"sslmode": "require"}
    db_engine = create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=not is_sqlite,
        pool_recycle=1800 if not is_sqlite else -1,
        **kwargs,
    )
    if is_sqlite:
        # Item and movement rows cascade with their adjustment.
        @event.listens_for(db_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_schema(bind=None) -> None:
    # Registers every mapped table on Base.metadata.
    import stockledger.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
