import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine


# Module-level setup: ensure env vars are set before test modules import `resort`.
ROOT = Path(__file__).resolve().parent.parent
data_dir = ROOT / "data"
data_dir.mkdir(exist_ok=True)
test_db_path = data_dir / "test.db"
for suffix in ("", "-wal", "-shm"):
    stale = Path(f"{test_db_path}{suffix}")
    if stale.exists():
        stale.unlink()

test_db_url = f"sqlite:///{test_db_path.as_posix()}"
os.environ["DATABASE_URL"] = test_db_url
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["UPLOAD_DIR"] = str(data_dir / "test-uploads")

# Run alembic migrations once at import time so `resort` imports see the schema.
cfg = Config(str(ROOT / "alembic.ini"))
cfg.set_main_option("script_location", str(ROOT / "alembic"))
cfg.set_main_option("sqlalchemy.url", test_db_url)
command.upgrade(cfg, "head")


@pytest.fixture(scope="session", autouse=True)
def prepare_test_db():
    """Session-scoped fixture available to tests; cleanup happens after session."""
    yield
    from resort.db import engine as app_engine

    app_engine.dispose()
    for suffix in ("", "-wal", "-shm"):
        leftover = Path(f"{test_db_path}{suffix}")
        if leftover.exists():
            leftover.unlink()


@pytest.fixture
def engine():
    import resort.models  # noqa: F401
    from resort.db import _set_sqlite_pragma

    e = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    event.listen(e, "connect", _set_sqlite_pragma)
    SQLModel.metadata.create_all(e)
    return e


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s
