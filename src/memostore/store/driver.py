"""
Storage driver interface.

A driver executes descriptors against real storage. It must check the
request context before doing any work and raise ``DriverError`` (or a
subclass) for storage failures.
"""
from abc import ABC, abstractmethod
from typing import List

from memostore.context import RequestContext
from memostore.models.memo import Memo
from memostore.store.descriptors import DeleteMemo, FindMemo, UpdateMemo


class Driver(ABC):
    @abstractmethod
    def create_memo(self, ctx: RequestContext, create: Memo) -> Memo:
        """Persist a new memo and return it with its id populated.

        Raises ``ShortIDConflict`` when storage already holds ``create.short_id``.
        """

    @abstractmethod
    def list_memos(self, ctx: RequestContext, find: FindMemo) -> List[Memo]:
        """Return matching memos in the order ``find`` asks for."""

    @abstractmethod
    def update_memo(self, ctx: RequestContext, update: UpdateMemo) -> None:
        ...

    @abstractmethod
    def delete_memo(self, ctx: RequestContext, delete: DeleteMemo) -> None:
        ...
