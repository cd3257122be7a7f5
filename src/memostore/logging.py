import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional
from memostore.config import settings

# Request id of the store call currently running in this thread/task
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

NO_REQUEST = "-"

def new_request_id() -> str:
    return uuid.uuid4().hex[:12]

def get_request_id() -> str:
    """Return the id of the active request, or "-" outside of one."""
    return request_id_ctx.get() or NO_REQUEST

@contextmanager
def request_scope(request_id: str):
    """Tag every log line emitted inside the block with request_id."""
    token = request_id_ctx.set(request_id)
    try:
        yield request_id
    finally:
        request_id_ctx.reset(token)

class RequestIDFilter(logging.Filter):
    """Injects request_id into log records."""
    def filter(self, record):
        record.request_id = get_request_id()
        return True

def configure_logging(level: str = "INFO"):
    """Configures the root logger with a standard format including request_id."""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers to avoid duplication
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | [%(request_id)s] | %(name)s:%(funcName)s:%(lineno)d - %(message)s"
    )
    handler.setFormatter(formatter)

    handler.addFilter(RequestIDFilter())

    logger.addHandler(handler)

    # SQLAlchemy echoes through its own logger; keep it quiet unless asked
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

# Initialize logging on import with configured settings
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger("memostore")
