"""
Find / update / delete descriptors handed from the store to a driver.

Every optional field defaults to ``None`` meaning "not supplied"; drivers must
not treat empty strings or zero as absent.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from memostore.models.memo import MemoPayload, RowStatus, Visibility


@dataclass
class FindMemoPayload:
    raw: Optional[str] = None
    tag_search: List[str] = field(default_factory=list)
    has_link: bool = False
    has_task_list: bool = False
    has_code: bool = False
    has_incomplete_tasks: bool = False


@dataclass
class FindMemo:
    id: Optional[int] = None
    uid: Optional[str] = None
    short_id: Optional[str] = None

    # Standard fields
    row_status: Optional[RowStatus] = None
    creator_id: Optional[int] = None
    created_ts_after: Optional[int] = None
    created_ts_before: Optional[int] = None
    updated_ts_after: Optional[int] = None
    updated_ts_before: Optional[int] = None

    # Domain specific fields
    content_search: List[str] = field(default_factory=list)
    visibility_list: List[Visibility] = field(default_factory=list)
    payload_find: Optional[FindMemoPayload] = None
    exclude_content: bool = False
    exclude_comments: bool = False
    filter: Optional[str] = None

    # Pagination
    limit: Optional[int] = None
    offset: Optional[int] = None

    # Ordering
    order_by_updated_ts: bool = False
    order_by_pinned: bool = False
    order_by_time_asc: bool = False


@dataclass
class UpdateMemo:
    id: int
    uid: Optional[str] = None
    created_ts: Optional[int] = None
    updated_ts: Optional[int] = None
    row_status: Optional[RowStatus] = None
    content: Optional[str] = None
    visibility: Optional[Visibility] = None
    pinned: Optional[bool] = None
    payload: Optional[MemoPayload] = None

    def changes(self) -> dict:
        """Supplied fields only, keyed by Memo column name."""
        values = {}
        for name in ("uid", "created_ts", "updated_ts", "row_status", "content", "visibility", "pinned"):
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        if self.payload is not None:
            values["payload"] = self.payload.model_dump()
        return values


@dataclass
class DeleteMemo:
    id: int
