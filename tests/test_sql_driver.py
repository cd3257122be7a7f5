import random
from concurrent.futures import ThreadPoolExecutor
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine, select
from memostore.context import RequestContext
from memostore.db import init_db, check_connection
from memostore.errors import Cancelled, DriverError, FilterSyntaxError, InvalidArgument, ShortIDConflict
from memostore.models.memo import Memo, MemoPayload, MemoPayloadProperty, RowStatus, Visibility
from memostore.shortid import SHORT_ID_PATTERN, ShortIDGenerator
from memostore.store import DeleteMemo, FindMemo, FindMemoPayload, MemoStore, SQLModelDriver, UpdateMemo

# Use in-memory DB for testing
@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine

@pytest.fixture
def driver(engine):
    return SQLModelDriver(engine)

@pytest.fixture
def store(driver):
    return MemoStore(driver)


def make_memo(uid, content="", **kwargs):
    payload = kwargs.pop("payload", None)
    memo = Memo(uid=uid, content=content, **kwargs)
    if payload is not None:
        memo.set_payload(payload)
    return memo


def uids(memos):
    return [m.uid for m in memos]


# ---------------------------------------------------------------------------
# create / get
# ---------------------------------------------------------------------------
def test_create_scenario(store):
    memo = store.create_memo(make_memo("abc-123", "hello"))

    assert memo.id is not None
    assert SHORT_ID_PATTERN.fullmatch(memo.short_id)
    assert memo.visibility == Visibility.PRIVATE
    assert memo.row_status == RowStatus.NORMAL
    assert memo.pinned is False
    assert memo.created_ts > 0

    fetched = store.get_memo(FindMemo(short_id=memo.short_id))
    assert fetched.id == memo.id
    assert fetched.content == "hello"

    with pytest.raises(InvalidArgument):
        store.create_memo(make_memo("bad uid!", "nope"))
    assert len(store.list_memos(FindMemo())) == 1


def test_lookup_by_id_uid_and_short_id(store):
    memo = store.create_memo(make_memo("lookup", "x"))
    assert store.get_memo(FindMemo(id=memo.id)).uid == "lookup"
    assert store.get_memo(FindMemo(uid="lookup")).id == memo.id
    assert store.get_memo(FindMemo(short_id=memo.short_id)).id == memo.id
    assert store.get_memo(FindMemo(uid="absent")) is None
    assert store.get_memo(FindMemo(id=9999)) is None


def test_duplicate_uid_is_driver_error(store):
    store.create_memo(make_memo("dup"))
    with pytest.raises(DriverError):
        store.create_memo(make_memo("dup"))


def test_driver_reports_short_id_conflict(driver):
    ctx = RequestContext.background()
    driver.create_memo(ctx, make_memo("first", short_id="aaa0000"))
    with pytest.raises(ShortIDConflict) as exc:
        driver.create_memo(ctx, make_memo("second", short_id="aaa0000"))
    assert exc.value.short_id == "aaa0000"


def test_payload_round_trips(store):
    payload = MemoPayload(tags=["work", "ideas"], property=MemoPayloadProperty(has_link=True))
    memo = store.create_memo(make_memo("payload", "see https://example.com", payload=payload))
    fetched = store.get_memo(FindMemo(id=memo.id))
    assert fetched.get_payload() == payload


def test_cancelled_context_skips_storage(driver):
    ctx = RequestContext()
    ctx.cancel()
    with pytest.raises(Cancelled):
        driver.list_memos(ctx, FindMemo())


# ---------------------------------------------------------------------------
# filters
# ---------------------------------------------------------------------------
def test_visibility_list(store):
    store.create_memo(make_memo("pub", visibility=Visibility.PUBLIC))
    store.create_memo(make_memo("priv", visibility=Visibility.PRIVATE))

    public = store.list_memos(FindMemo(visibility_list=["PUBLIC"]))
    assert uids(public) == ["pub"]

    both = store.list_memos(FindMemo(visibility_list=[]))
    assert sorted(uids(both)) == ["priv", "pub"]


def test_row_status_and_creator(store):
    store.create_memo(make_memo("a", creator_id=1))
    store.create_memo(make_memo("b", creator_id=2, row_status=RowStatus.ARCHIVED))

    assert uids(store.list_memos(FindMemo(creator_id=1))) == ["a"]
    assert uids(store.list_memos(FindMemo(row_status=RowStatus.ARCHIVED))) == ["b"]


def test_content_search_requires_every_term(store):
    store.create_memo(make_memo("one", "buy milk and eggs"))
    store.create_memo(make_memo("two", "buy bread"))

    assert uids(store.list_memos(FindMemo(content_search=["buy", "eggs"]))) == ["one"]
    assert sorted(uids(store.list_memos(FindMemo(content_search=["buy"])))) == ["one", "two"]
    # LIKE wildcards in terms are matched literally
    assert store.list_memos(FindMemo(content_search=["%"])) == []


def test_timestamp_ranges_are_half_open(store):
    store.create_memo(make_memo("t100", created_ts=100, updated_ts=100))
    store.create_memo(make_memo("t200", created_ts=200, updated_ts=250))
    store.create_memo(make_memo("t300", created_ts=300, updated_ts=300))

    found = store.list_memos(FindMemo(created_ts_after=200, created_ts_before=300))
    assert uids(found) == ["t200"]

    found = store.list_memos(FindMemo(updated_ts_after=250))
    assert sorted(uids(found)) == ["t200", "t300"]

    found = store.list_memos(FindMemo(updated_ts_before=250))
    assert uids(found) == ["t100"]


def test_payload_filters(store):
    store.create_memo(make_memo("tasks", payload=MemoPayload(
        tags=["work"],
        property=MemoPayloadProperty(has_task_list=True, has_incomplete_tasks=True),
    )))
    store.create_memo(make_memo("code", payload=MemoPayload(
        tags=["work", "python"],
        property=MemoPayloadProperty(has_code=True),
    )))
    store.create_memo(make_memo("plain"))

    def find(**kwargs):
        return sorted(uids(store.list_memos(FindMemo(payload_find=FindMemoPayload(**kwargs)))))

    assert find(tag_search=["work"]) == ["code", "tasks"]
    assert find(tag_search=["work", "python"]) == ["code"]
    assert find(has_task_list=True) == ["tasks"]
    assert find(has_incomplete_tasks=True, has_code=True) == []
    assert find(has_code=True) == ["code"]
    assert find(raw="python") == ["code"]
    assert find() == ["code", "plain", "tasks"]


def test_exclude_content_and_comments(store):
    parent = store.create_memo(make_memo("parent", "top level"))
    store.create_memo(make_memo("reply", "a comment", parent_id=parent.id))

    all_memos = store.list_memos(FindMemo(exclude_content=True))
    assert len(all_memos) == 2
    assert all(m.content == "" for m in all_memos)

    top = store.list_memos(FindMemo(exclude_comments=True))
    assert uids(top) == ["parent"]
    assert top[0].content == "top level"


def test_filter_expression(store):
    store.create_memo(make_memo("a", "meeting notes", visibility=Visibility.PUBLIC, creator_id=1,
                                payload=MemoPayload(tags=["work"])))
    store.create_memo(make_memo("b", "meeting agenda", visibility=Visibility.PRIVATE, creator_id=1))
    store.create_memo(make_memo("c", "groceries", visibility=Visibility.PUBLIC, creator_id=2, pinned=True))

    def find(expr):
        return sorted(uids(store.list_memos(FindMemo(filter=expr))))

    assert find('visibility == "PUBLIC"') == ["a", "c"]
    assert find('content.contains("meeting") && creator_id == 1') == ["a", "b"]
    assert find('tag in ["work", "home"]') == ["a"]
    assert find('visibility in ["PUBLIC"] && pinned') == ["c"]
    assert find("creator_id != 1") == ["c"]


def test_bad_filter_expression(store):
    with pytest.raises(FilterSyntaxError):
        store.list_memos(FindMemo(filter="visibility ~ 1"))


# ---------------------------------------------------------------------------
# ordering & pagination
# ---------------------------------------------------------------------------
def test_default_order_newest_first(store):
    store.create_memo(make_memo("older", created_ts=100))
    store.create_memo(make_memo("newer", created_ts=200))

    assert store.get_memo(FindMemo()).uid == "newer"
    assert uids(store.list_memos(FindMemo(order_by_time_asc=True))) == ["older", "newer"]


def test_ties_broken_by_id(store):
    first = store.create_memo(make_memo("first", created_ts=100))
    second = store.create_memo(make_memo("second", created_ts=100))

    assert [m.id for m in store.list_memos(FindMemo())] == [second.id, first.id]
    assert [m.id for m in store.list_memos(FindMemo(order_by_time_asc=True))] == [first.id, second.id]


def test_pinned_first_then_updated(store):
    store.create_memo(make_memo("old-pinned", created_ts=100, updated_ts=100, pinned=True))
    store.create_memo(make_memo("fresh", created_ts=200, updated_ts=500))
    store.create_memo(make_memo("stale", created_ts=300, updated_ts=300))

    ordered = store.list_memos(FindMemo(order_by_pinned=True, order_by_updated_ts=True))
    assert uids(ordered) == ["old-pinned", "fresh", "stale"]

    ordered = store.list_memos(FindMemo(order_by_updated_ts=True))
    assert uids(ordered) == ["fresh", "stale", "old-pinned"]


def test_limit_and_offset(store):
    for ts in (100, 200, 300, 400):
        store.create_memo(make_memo(f"m{ts}", created_ts=ts))

    page = store.list_memos(FindMemo(limit=2, offset=1))
    assert uids(page) == ["m300", "m200"]
    assert store.list_memos(FindMemo(limit=0)) == []


# ---------------------------------------------------------------------------
# update / delete
# ---------------------------------------------------------------------------
def test_update_content_only_keeps_other_fields(store):
    payload = MemoPayload(tags=["keep"], property=MemoPayloadProperty(has_code=True))
    memo = store.create_memo(make_memo("keep", "before", visibility=Visibility.PUBLIC, pinned=True,
                                       payload=payload, updated_ts=100))

    store.update_memo(UpdateMemo(id=memo.id, content="after"))

    fetched = store.get_memo(FindMemo(id=memo.id))
    assert fetched.content == "after"
    assert fetched.visibility == Visibility.PUBLIC
    assert fetched.pinned is True
    assert fetched.get_payload() == payload
    assert fetched.created_ts == memo.created_ts
    assert fetched.updated_ts > 100


def test_update_fields(store):
    memo = store.create_memo(make_memo("before"))
    store.update_memo(UpdateMemo(
        id=memo.id,
        uid="after",
        visibility=Visibility.PROTECTED,
        row_status=RowStatus.ARCHIVED,
        pinned=True,
        updated_ts=42,
        payload=MemoPayload(tags=["new"]),
    ))
    fetched = store.get_memo(FindMemo(id=memo.id))
    assert fetched.uid == "after"
    assert fetched.visibility == Visibility.PROTECTED
    assert fetched.row_status == RowStatus.ARCHIVED
    assert fetched.pinned is True
    assert fetched.updated_ts == 42
    assert fetched.get_payload().tags == ["new"]
    assert fetched.short_id == memo.short_id


def test_update_invalid_uid_leaves_row(store):
    memo = store.create_memo(make_memo("stable"))
    with pytest.raises(InvalidArgument):
        store.update_memo(UpdateMemo(id=memo.id, uid="no spaces allowed", content="changed"))
    assert store.get_memo(FindMemo(id=memo.id)).content == ""


def test_delete_clears_comment_parent(store, engine):
    parent = store.create_memo(make_memo("parent"))
    reply = store.create_memo(make_memo("reply", parent_id=parent.id))

    store.delete_memo(DeleteMemo(id=parent.id))

    assert store.get_memo(FindMemo(id=parent.id)) is None
    with Session(engine) as session:
        orphan = session.exec(select(Memo).where(Memo.id == reply.id)).one()
        assert orphan.parent_id is None


def test_delete_missing_is_noop(store):
    store.delete_memo(DeleteMemo(id=12345))


def test_check_connection(engine):
    assert check_connection(engine) is None


# ---------------------------------------------------------------------------
# payload text that JSON escapes on disk
# ---------------------------------------------------------------------------
def test_tags_with_non_ascii_and_quotes(store):
    store.create_memo(make_memo("accent", payload=MemoPayload(tags=["café", "日本"])))
    store.create_memo(make_memo("quoted", payload=MemoPayload(tags=['say "hi"', "back\\slash"])))
    store.create_memo(make_memo("plain", payload=MemoPayload(tags=["cafe"])))

    def tagged(*tags):
        return uids(store.list_memos(FindMemo(payload_find=FindMemoPayload(tag_search=list(tags)))))

    assert tagged("café") == ["accent"]
    assert tagged("café", "日本") == ["accent"]
    assert tagged('say "hi"') == ["quoted"]
    assert tagged("back\\slash") == ["quoted"]
    assert tagged("cafe") == ["plain"]
    # whole-tag match, not substring of another tag
    assert tagged("caf") == []


def test_raw_search_sees_decoded_text(store):
    store.create_memo(make_memo("accent", payload=MemoPayload(tags=["crème brûlée"])))
    store.create_memo(make_memo("quoted", payload=MemoPayload(tags=['a "quoted" tag'])))

    def raw(text):
        return uids(store.list_memos(FindMemo(payload_find=FindMemoPayload(raw=text))))

    assert raw("brûlée") == ["accent"]
    assert raw('"quoted"') == ["quoted"]
    assert raw("tags") == ["quoted", "accent"]


def test_filter_expression_with_non_ascii_tag(store):
    store.create_memo(make_memo("accent", payload=MemoPayload(tags=["café"])))
    store.create_memo(make_memo("other", payload=MemoPayload(tags=["tea"])))
    found = store.list_memos(FindMemo(filter='tag in ["café", "]"]'))
    assert uids(found) == ["accent"]


# ---------------------------------------------------------------------------
# concurrent creators
# ---------------------------------------------------------------------------
class NarrowRandom(random.Random):
    """Only draws from the first two symbols so candidates collide often."""

    def choice(self, seq):
        return super().choice(seq[:2])


def test_concurrent_creates_never_share_a_short_id(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'memos.db'}", connect_args={"timeout": 30, "check_same_thread": False})
    init_db(engine)
    # 2**3 * 2**4 = 128 possible ids for 48 memos
    store = MemoStore(SQLModelDriver(engine), id_generator=ShortIDGenerator(NarrowRandom(3)))

    def create_batch(worker):
        return [store.create_memo(make_memo(f"w{worker}-{i}")).short_id for i in range(6)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        batches = list(pool.map(create_batch, range(8)))

    short_ids = [s for batch in batches for s in batch]
    assert len(short_ids) == 48
    assert len(set(short_ids)) == 48
    assert all(SHORT_ID_PATTERN.fullmatch(s) for s in short_ids)

    stored = store.list_memos(FindMemo())
    assert sorted(m.short_id for m in stored) == sorted(short_ids)
    engine.dispose()
