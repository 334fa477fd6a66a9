from contextlib import contextmanager

from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy import create_engine, event
from .config import settings


def make_engine(url: str, **kwargs):
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 5)
        kwargs.setdefault("max_overflow", 10)
        kwargs.setdefault("pool_recycle", 3600)  # Recycle connections after 1 hour
    eng = create_engine(url, future=True, **kwargs)
    if is_sqlite:
        _configure_sqlite(eng)
    return eng


def _configure_sqlite(eng) -> None:
    # pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT; take over transaction control
    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = make_engine(settings.database_url)

# One session per command; never share a session across commands
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


@contextmanager
def session_scope(factory=None):
    """Yield a session that commits on success and rolls back on error."""
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
