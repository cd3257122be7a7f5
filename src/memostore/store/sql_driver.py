"""
SQLModel-backed driver.

One ``Session`` per call; returned memos are detached from it, so callers may
read and modify them freely without triggering writes.
"""
from contextlib import contextmanager
from typing import List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from memostore.context import RequestContext
from memostore.errors import DriverError, ShortIDConflict
from memostore.logging import logger
from memostore.models.base import now_ts
from memostore.models.memo import Memo, Visibility
from memostore.store.descriptors import DeleteMemo, FindMemo, FindMemoPayload, UpdateMemo
from memostore.store.driver import Driver
from memostore.store.filter import compile_filter, payload_flag_set, payload_has_tag, payload_raw_contains


def _payload_conditions(find: FindMemoPayload) -> list:
    conds = []
    if find.raw is not None:
        conds.append(payload_raw_contains(find.raw))
    for tag in find.tag_search:
        conds.append(payload_has_tag(tag))
    for flag in ("has_link", "has_task_list", "has_code", "has_incomplete_tasks"):
        if getattr(find, flag):
            conds.append(payload_flag_set(flag))
    return conds


def build_conditions(find: FindMemo) -> list:
    """Translate a FindMemo into WHERE conditions (ANDed by the caller)."""
    conds = []
    if find.id is not None:
        conds.append(Memo.id == find.id)
    if find.uid is not None:
        conds.append(Memo.uid == find.uid)
    if find.short_id is not None:
        conds.append(Memo.short_id == find.short_id)
    if find.row_status is not None:
        conds.append(Memo.row_status == find.row_status)
    if find.creator_id is not None:
        conds.append(Memo.creator_id == find.creator_id)

    # Half-open ranges: after is inclusive, before is exclusive
    if find.created_ts_after is not None:
        conds.append(Memo.created_ts >= find.created_ts_after)
    if find.created_ts_before is not None:
        conds.append(Memo.created_ts < find.created_ts_before)
    if find.updated_ts_after is not None:
        conds.append(Memo.updated_ts >= find.updated_ts_after)
    if find.updated_ts_before is not None:
        conds.append(Memo.updated_ts < find.updated_ts_before)

    for term in find.content_search:
        conds.append(Memo.content.contains(term, autoescape=True))
    if find.visibility_list:
        conds.append(Memo.visibility.in_([Visibility(v) for v in find.visibility_list]))
    if find.payload_find is not None:
        conds.extend(_payload_conditions(find.payload_find))
    if find.exclude_comments:
        conds.append(Memo.parent_id.is_(None))
    if find.filter:
        conds.extend(compile_filter(find.filter))
    return conds


def build_order_by(find: FindMemo) -> list:
    """
    Sort keys, highest priority first:
    pinned DESC, updated_ts, created_ts, id.
    Time keys and id run ascending only when order_by_time_asc is set.
    """
    def directed(column):
        return column.asc() if find.order_by_time_asc else column.desc()

    order = []
    if find.order_by_pinned:
        order.append(Memo.pinned.desc())
    if find.order_by_updated_ts:
        order.append(directed(Memo.updated_ts))
    order.append(directed(Memo.created_ts))
    order.append(directed(Memo.id))
    return order


class SQLModelDriver(Driver):
    def __init__(self, engine):
        self.engine = engine

    @contextmanager
    def _session(self, ctx: RequestContext):
        ctx.check()
        try:
            with Session(self.engine) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Storage failure: {e}")
            raise DriverError(str(e)) from e

    def create_memo(self, ctx: RequestContext, create: Memo) -> Memo:
        row = Memo(**create.model_dump(exclude={"id"}))
        with self._session(ctx) as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                if "short_id" in str(e.orig):
                    raise ShortIDConflict(create.short_id) from e
                raise
            session.refresh(row)
        return row

    def list_memos(self, ctx: RequestContext, find: FindMemo) -> List[Memo]:
        stmt = select(Memo).where(*build_conditions(find)).order_by(*build_order_by(find))
        if find.offset is not None:
            stmt = stmt.offset(find.offset)
        if find.limit is not None:
            stmt = stmt.limit(find.limit)

        with self._session(ctx) as session:
            memos = list(session.exec(stmt).all())
            session.expunge_all()

        if find.exclude_content:
            for memo in memos:
                memo.content = ""
        return memos

    def update_memo(self, ctx: RequestContext, update: UpdateMemo) -> None:
        changes = update.changes()
        changes.setdefault("updated_ts", now_ts())
        with self._session(ctx) as session:
            memo = session.get(Memo, update.id)
            if memo is None:
                logger.warning(f"Update skipped, memo {update.id} does not exist")
                return
            for name, value in changes.items():
                setattr(memo, name, value)
            session.add(memo)
            session.commit()

    def delete_memo(self, ctx: RequestContext, delete: DeleteMemo) -> None:
        with self._session(ctx) as session:
            memo = session.get(Memo, delete.id)
            if memo is None:
                return
            for comment in session.exec(select(Memo).where(Memo.parent_id == delete.id)).all():
                comment.parent_id = None
                session.add(comment)
            session.delete(memo)
            session.commit()
