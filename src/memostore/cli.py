import sys
import typer
from typing import List, Optional
from memostore.config import settings
from memostore.logging import logger

app = typer.Typer(no_args_is_help=True)

@app.callback()
def main():
    """
    Memo store CLI.
    """
    pass

@app.command(name="doctor")
def doctor():
    """
    Check configuration and database health.
    """
    logger.info("Running doctor check...")

    print("\n🩺 Memo Store Doctor\n")

    print(f"Python: {sys.version.split()[0]}")
    print(f"Prefix: {sys.prefix}")

    print("\n[Configuration]")
    print(f"DATABASE_URL:           {settings.DATABASE_URL}")
    print(f"LOG_LEVEL:              {settings.LOG_LEVEL}")
    print(f"SHORT_ID_MAX_ATTEMPTS:  {settings.SHORT_ID_MAX_ATTEMPTS}")
    print(f"DEFAULT_VISIBILITY:     {settings.DEFAULT_VISIBILITY}")

    from memostore.db import check_connection
    error = check_connection()
    if error is None:
        print("\n[Database]               ✅ Reachable")
    else:
        print(f"\n[Database]               ❌ {error}")

    print("\nDoctor check complete.")


db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")

@db_app.command("init")
def init():
    """Create the memo tables."""
    from memostore.db import init_db
    try:
        init_db()
        logger.info("Database initialized successfully.")
        print("✅ Database initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)


memo_app = typer.Typer(help="Memo commands.")
app.add_typer(memo_app, name="memo")

def _store():
    from memostore.db import engine
    from memostore.store import MemoStore, SQLModelDriver
    return MemoStore(SQLModelDriver(engine))

def _print_memo(memo):
    pin = "📌 " if memo.pinned else ""
    print(f"{pin}[{memo.id}] {memo.uid} ({memo.short_id}) {memo.visibility.value} {memo.row_status.value}")
    if memo.content:
        print(f"    {memo.content}")

@memo_app.command("create")
def create(
    uid: str,
    content: str,
    visibility: str = typer.Option(settings.DEFAULT_VISIBILITY, help="PUBLIC, PROTECTED or PRIVATE"),
    creator_id: int = typer.Option(0, help="Creator user id"),
    pinned: bool = typer.Option(False, help="Pin the memo"),
    tag: List[str] = typer.Option([], help="Tag to attach (repeatable)"),
):
    """Create a memo and print its short ID."""
    from memostore.errors import StoreError
    from memostore.models import Memo, MemoPayload, Visibility
    memo = Memo(uid=uid, content=content, visibility=Visibility(visibility), creator_id=creator_id, pinned=pinned)
    memo.set_payload(MemoPayload(tags=list(tag)))
    try:
        created = _store().create_memo(memo)
    except StoreError as e:
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)
    print(f"✅ Created memo {created.id} with short id {created.short_id}")

@memo_app.command("list")
def list_memos(
    search: List[str] = typer.Option([], help="Content term that must appear (repeatable)"),
    visibility: List[str] = typer.Option([], help="Allowed visibility (repeatable)"),
    expression: Optional[str] = typer.Option(None, "--filter", help='Filter expression, e.g. \'tag in ["work"]\''),
    limit: Optional[int] = typer.Option(None, min=0),
    offset: Optional[int] = typer.Option(None, min=0),
    pinned_first: bool = typer.Option(False, help="Show pinned memos first"),
):
    """List memos, newest first."""
    from memostore.errors import StoreError
    from memostore.models import Visibility
    from memostore.store import FindMemo
    find = FindMemo(
        content_search=list(search),
        visibility_list=[Visibility(v) for v in visibility],
        filter=expression,
        limit=limit,
        offset=offset,
        order_by_pinned=pinned_first,
    )
    try:
        memos = _store().list_memos(find)
    except StoreError as e:
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)
    if not memos:
        print("No memos found.")
        return
    for memo in memos:
        _print_memo(memo)

@memo_app.command("get")
def get(key: str):
    """Show one memo by numeric id, short id or uid."""
    from memostore.shortid import is_short_id
    from memostore.store import FindMemo
    if key.isdigit():
        find = FindMemo(id=int(key))
    elif is_short_id(key):
        find = FindMemo(short_id=key)
    else:
        find = FindMemo(uid=key)
    memo = _store().get_memo(find)
    if memo is None:
        print("Memo not found.")
        raise typer.Exit(code=1)
    _print_memo(memo)

@memo_app.command("update")
def update(
    memo_id: int,
    content: Optional[str] = typer.Option(None),
    uid: Optional[str] = typer.Option(None),
    visibility: Optional[str] = typer.Option(None),
    pinned: Optional[bool] = typer.Option(None, "--pinned/--unpinned"),
    archive: Optional[bool] = typer.Option(None, "--archive/--restore"),
):
    """Change selected fields of a memo."""
    from memostore.errors import StoreError
    from memostore.models import RowStatus, Visibility
    from memostore.store import UpdateMemo
    patch = UpdateMemo(
        id=memo_id,
        uid=uid,
        content=content,
        visibility=Visibility(visibility) if visibility is not None else None,
        pinned=pinned,
        row_status=None if archive is None else (RowStatus.ARCHIVED if archive else RowStatus.NORMAL),
    )
    try:
        _store().update_memo(patch)
    except StoreError as e:
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)
    print(f"✅ Updated memo {memo_id}")

@memo_app.command("delete")
def delete(memo_id: int):
    """Delete a memo by id."""
    from memostore.errors import StoreError
    from memostore.store import DeleteMemo
    try:
        _store().delete_memo(DeleteMemo(id=memo_id))
    except StoreError as e:
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)
    print(f"✅ Deleted memo {memo_id}")

if __name__ == "__main__":
    app()
