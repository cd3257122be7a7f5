from memostore.store.descriptors import FindMemo, FindMemoPayload, UpdateMemo, DeleteMemo
from memostore.store.driver import Driver
from memostore.store.memo import MemoStore
from memostore.store.sql_driver import SQLModelDriver

__all__ = [
    "FindMemo", "FindMemoPayload", "UpdateMemo", "DeleteMemo",
    "Driver",
    "MemoStore",
    "SQLModelDriver",
]
