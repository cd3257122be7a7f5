import json
from pathlib import Path
from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, create_engine, Session, select
from memostore.config import settings
from memostore.logging import logger

DB_URL = settings.DATABASE_URL

# Keep non-ASCII payload text readable in the stored JSON
engine = create_engine(
    DB_URL,
    echo=settings.ECHO_SQL,
    json_serializer=lambda obj: json.dumps(obj, ensure_ascii=False),
)

def _sqlite_data_dir(url: str) -> Path | None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or parsed.database in (None, "", ":memory:"):
        return None
    return Path(parsed.database).parent

def init_db(bind=None):
    """Create the memo tables on the given engine (the configured one by default)."""
    bind = bind or engine
    data_dir = _sqlite_data_dir(str(bind.url))
    if data_dir is not None and not data_dir.exists():
        data_dir.mkdir(parents=True, exist_ok=True)

    # Import models so SQLModel registers their tables before create_all
    from memostore.models import memo  # noqa: F401

    logger.info(f"Initializing database at {bind.url!r}")
    SQLModel.metadata.create_all(bind)

def get_session():
    with Session(engine) as session:
        yield session

def check_connection(bind=None) -> str | None:
    """Return an error message if the database cannot be queried, else None."""
    from memostore.models.memo import Memo
    try:
        with Session(bind or engine) as session:
            session.exec(select(Memo).limit(1)).first()
    except Exception as e:
        return f"Database connection failed: {e}"
    return None
