# FILE: memoire/db.py
import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from config.settings import DATABASE_URL

logger = logging.getLogger(__name__)

# SQLite needs cross-thread access because FastAPI runs sync deps in a threadpool
_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args,
    echo=False,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _ensure_sqlite_dir() -> None:
    # sqlite:///./data/memoire.db -> ./data
    if not _is_sqlite or ":memory:" in DATABASE_URL:
        return
    path = DATABASE_URL.split("///", 1)[-1]
    directory = os.path.dirname(path)
    if directory and not os.path.isdir(directory):
        os.makedirs(directory, exist_ok=True)
        logger.info(f"[db] Created database directory {directory}")


def init_db():
    """Create all tables. Call once at startup."""
    _ensure_sqlite_dir()
    # Model modules must be imported so Base.metadata sees every table
    from memoire.projects import models as _projects  # noqa: F401
    from memoire.versions import models as _versions  # noqa: F401
    from memoire.jobs import models as _jobs  # noqa: F401
    from memoire.usage import models as _usage  # noqa: F401
    Base.metadata.create_all(bind=engine)
