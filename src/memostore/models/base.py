import time
from sqlmodel import Field, SQLModel


def now_ts() -> int:
    """Current Unix time in seconds."""
    return int(time.time())


class TimestampMixin(SQLModel):
    created_ts: int = Field(default_factory=now_ts, nullable=False, index=True)
    updated_ts: int = Field(default_factory=now_ts, nullable=False, index=True)
