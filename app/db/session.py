# app/db/session.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings


def make_engine(database_url: str, **kwargs) -> Engine:
    """Create an engine; SQLite gets thread-safe connect args and FK enforcement."""
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    eng = create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,  # safer reconnects
        **kwargs,
    )

    if is_sqlite:

        @event.listens_for(eng, "connect")
        def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return eng


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False)


DATABASE_URL = get_settings().database_url

engine = make_engine(DATABASE_URL)

SessionLocal = make_session_factory(engine)
