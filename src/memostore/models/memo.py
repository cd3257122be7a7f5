from enum import Enum
from typing import List, Optional
from pydantic import BaseModel
from sqlalchemy import JSON, Column
from sqlmodel import Field
from memostore.models.base import TimestampMixin


class RowStatus(str, Enum):
    NORMAL = "NORMAL"
    ARCHIVED = "ARCHIVED"


class Visibility(str, Enum):
    PUBLIC = "PUBLIC"
    PROTECTED = "PROTECTED"
    PRIVATE = "PRIVATE"

    @classmethod
    def _missing_(cls, value):
        # Closed enumeration: unknown values collapse to PRIVATE
        if isinstance(value, str):
            member = cls.__members__.get(value.strip().upper())
            if member is not None:
                return member
        return cls.PRIVATE


class MemoPayloadProperty(BaseModel):
    has_link: bool = False
    has_task_list: bool = False
    has_code: bool = False
    has_incomplete_tasks: bool = False


class MemoPayload(BaseModel):
    """Structured metadata stored alongside a memo as JSON."""
    tags: List[str] = []
    property: MemoPayloadProperty = MemoPayloadProperty()


class Memo(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    uid: str = Field(unique=True, index=True)
    short_id: str = Field(default="", unique=True, index=True, description="e.g. 'abc1234', assigned by the store")

    row_status: RowStatus = Field(default=RowStatus.NORMAL, index=True)
    creator_id: int = Field(default=0, index=True)

    content: str = ""
    visibility: Visibility = Field(default=Visibility.PRIVATE)
    pinned: bool = Field(default=False)
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    # Set when this memo is a comment on another memo
    parent_id: Optional[int] = Field(default=None, foreign_key="memo.id", index=True)

    def set_payload(self, payload: MemoPayload):
        """Serialize a MemoPayload into the JSON column."""
        self.payload = payload.model_dump()

    def get_payload(self) -> MemoPayload:
        return MemoPayload.model_validate(self.payload or {})
