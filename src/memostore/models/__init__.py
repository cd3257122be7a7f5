from memostore.models.base import TimestampMixin, now_ts
from memostore.models.memo import Memo, MemoPayload, MemoPayloadProperty, RowStatus, Visibility

__all__ = [
    "TimestampMixin", "now_ts",
    "Memo", "MemoPayload", "MemoPayloadProperty",
    "RowStatus", "Visibility",
]
