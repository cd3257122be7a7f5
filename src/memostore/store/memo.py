"""
Memo store: validation and short ID allocation in front of a storage driver.

The store keeps no state between calls. Each operation validates its input,
then hands a descriptor to the driver and returns (or propagates) the result.
Log lines emitted during an operation carry the request id of its context.
"""
from dataclasses import replace
from typing import List, Optional

from memostore.config import settings
from memostore.context import RequestContext, ensure_context
from memostore.errors import InvalidArgument, ShortIDConflict, ShortIDExhausted
from memostore.logging import logger, request_scope
from memostore.models.memo import Memo, Visibility
from memostore.shortid import ShortIDGenerator, default_generator
from memostore.store.descriptors import DeleteMemo, FindMemo, UpdateMemo
from memostore.store.driver import Driver
from memostore.uid import is_valid_uid


class MemoStore:
    def __init__(
        self,
        driver: Driver,
        id_generator: Optional[ShortIDGenerator] = None,
        max_short_id_attempts: Optional[int] = None,
    ):
        self.driver = driver
        self.id_generator = id_generator or default_generator
        if max_short_id_attempts is None:
            max_short_id_attempts = settings.SHORT_ID_MAX_ATTEMPTS
        self.max_short_id_attempts = max_short_id_attempts

    def create_memo(self, create: Memo, ctx: Optional[RequestContext] = None) -> Memo:
        """
        Validate and persist a new memo.

        The short ID is always assigned here; any value already on ``create``
        is replaced. A candidate that is already taken, either found by the
        lookup or rejected by storage, is discarded and a new one is drawn.
        """
        ctx = ensure_context(ctx)
        with request_scope(ctx.request_id):
            if not is_valid_uid(create.uid):
                logger.warning(f"Rejected memo create with invalid uid {create.uid!r}")
                raise InvalidArgument(f"invalid uid {create.uid!r}")

            create.visibility = Visibility(create.visibility or settings.DEFAULT_VISIBILITY)

            attempts = 0
            while True:
                ctx.check()
                if attempts >= self.max_short_id_attempts:
                    raise ShortIDExhausted(attempts)
                candidate = self.id_generator.generate()
                attempts += 1
                if self.get_memo(FindMemo(short_id=candidate), ctx=ctx) is not None:
                    logger.debug(f"Short id {candidate} already in use")
                    continue

                create.short_id = candidate
                try:
                    memo = self.driver.create_memo(ctx, create)
                except ShortIDConflict as e:
                    logger.warning(f"Short id {e.short_id} taken at insert time, retrying")
                    continue
                logger.info(f"Created memo {memo.id} (uid={memo.uid}, short_id={memo.short_id})")
                return memo

    def list_memos(self, find: FindMemo, ctx: Optional[RequestContext] = None) -> List[Memo]:
        ctx = ensure_context(ctx)
        with request_scope(ctx.request_id):
            if find.limit is not None and find.limit < 0:
                raise InvalidArgument(f"limit must be non-negative, got {find.limit}")
            if find.offset is not None and find.offset < 0:
                raise InvalidArgument(f"offset must be non-negative, got {find.offset}")
            ctx.check()
            return list(self.driver.list_memos(ctx, find) or [])

    def get_memo(self, find: FindMemo, ctx: Optional[RequestContext] = None) -> Optional[Memo]:
        """Return the first memo matching ``find``, or None when nothing matches."""
        if find.limit is None:
            find = replace(find, limit=1)
        memos = self.list_memos(find, ctx=ctx)
        if not memos:
            return None
        return memos[0]

    def update_memo(self, update: UpdateMemo, ctx: Optional[RequestContext] = None) -> None:
        ctx = ensure_context(ctx)
        with request_scope(ctx.request_id):
            if update.uid is not None and not is_valid_uid(update.uid):
                logger.warning(f"Rejected update of memo {update.id} with invalid uid {update.uid!r}")
                raise InvalidArgument(f"invalid uid {update.uid!r}")
            if update.visibility is not None:
                update.visibility = Visibility(update.visibility)
            ctx.check()
            self.driver.update_memo(ctx, update)

    def delete_memo(self, delete: DeleteMemo, ctx: Optional[RequestContext] = None) -> None:
        ctx = ensure_context(ctx)
        with request_scope(ctx.request_id):
            ctx.check()
            self.driver.delete_memo(ctx, delete)
            logger.info(f"Deleted memo {delete.id}")
