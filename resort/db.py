import os
from pathlib import Path

from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

# repository root, one level above the package
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"


def resolve_database_url(url=None) -> str:
    """Return the database URL to use, defaulting to ``data/app.db``.

    Relative sqlite paths are anchored at the repository root so the app,
    Alembic and the tests all open the same file whatever the working
    directory is.
    """
    url = url or os.getenv("DATABASE_URL") or f"sqlite:///{(DATA_DIR / 'app.db').as_posix()}"
    prefix = "sqlite:///"
    if not url.startswith(prefix) or url == prefix + ":memory:":
        return url
    path = Path(url[len(prefix):])
    if not path.is_absolute():
        path = (BASE_DIR / path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"{prefix}{path.as_posix()}"


DATABASE_URL = resolve_database_url()


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def make_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False, pool_pre_ping=True)
    # TestClient and uvicorn workers share connections across threads
    sqlite_engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
    event.listen(sqlite_engine, "connect", _set_sqlite_pragma)
    return sqlite_engine


engine = make_engine(DATABASE_URL)


def init_db():
    SQLModel.metadata.create_all(engine)
