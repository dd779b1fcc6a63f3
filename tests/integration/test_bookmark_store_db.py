"""
Integration tests for bookmarks, chunks, RAG sessions and keyword search.
"""

import math
import uuid
from unittest.mock import Mock

import pytest
from sqlalchemy import func, select

from bookmark_hub.core.config import settings
from bookmark_hub.db.session import session_scope
from bookmark_hub.models.bookmark import Bookmark, BookmarkChunk
from bookmark_hub.schemas.bookmark import TagOperation
from bookmark_hub.schemas.search import SearchRequest, TagFilter, TagFilterMode
from bookmark_hub.services.bookmark_service import BookmarkService
from bookmark_hub.services.processors.url import make_content_id
from bookmark_hub.services.store.bookmarks import (
    BookmarkNotFoundError,
    BookmarkStore,
    DuplicateBookmarkError,
)
from bookmark_hub.services.store.chunks import ChunkMismatchError, ChunkStore
from bookmark_hub.services.store.rag_sessions import RagSessionNotFoundError, RagSessionStore
from bookmark_hub.services.store.search import BookmarkSearch


pytestmark = pytest.mark.integration

LONG_TEXT = "PostgreSQL keeps old row versions around until vacuum removes them. " * 5


def make_bookmark(user_id, path="a", title="A post", tags=None):
    url = f"https://example.com/{path}"
    return Bookmark(
        bookmark_id=make_content_id(url),
        user_id=user_id,
        url=url,
        domain="example.com",
        title=title,
        tags=tags,
    )


def unit_vector(*components):
    """768-dim vector with the given leading components, normalized."""
    vector = list(components) + [0.0] * (settings.EMBEDDING_DIMENSION - len(components))
    norm = math.sqrt(sum(value * value for value in vector))
    return [value / norm for value in vector]


# ================================
# Bookmarks
# ================================

@pytest.mark.asyncio
async def test_save_and_get(db_session, user_id):
    store = BookmarkStore(db_session)
    bookmark = await store.save(make_bookmark(user_id), LONG_TEXT)

    fetched = await store.get(user_id, bookmark.bookmark_id)
    found = await store.get_by_url_and_user("https://example.com/a", user_id)

    assert fetched.title == "A post"
    assert found.bookmark_id == bookmark.bookmark_id
    assert await store.get_text_content(user_id, bookmark.bookmark_id) == LONG_TEXT
    assert await store.get_by_url_and_user("https://example.com/a", uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_get_other_users_bookmark_not_found(db_session, user_id):
    store = BookmarkStore(db_session)
    bookmark = await store.save(make_bookmark(user_id), LONG_TEXT)

    with pytest.raises(BookmarkNotFoundError):
        await store.get(uuid.uuid4(), bookmark.bookmark_id)


@pytest.mark.asyncio
async def test_duplicate_url_raises(session_factory, user_id):
    async with session_scope(session_factory) as db:
        await BookmarkStore(db).save(make_bookmark(user_id), LONG_TEXT)

    with pytest.raises(DuplicateBookmarkError):
        async with session_scope(session_factory) as db:
            await BookmarkStore(db).save(make_bookmark(user_id), LONG_TEXT)

    async with session_scope(session_factory) as db:
        count = await db.scalar(select(func.count()).select_from(Bookmark))
    assert count == 1


@pytest.mark.asyncio
async def test_same_url_for_two_users(db_session, user_id):
    store = BookmarkStore(db_session)
    await store.save(make_bookmark(user_id), LONG_TEXT)
    await store.save(make_bookmark(uuid.uuid4()), LONG_TEXT)

    assert len(await store.list_for_user(user_id)) == 1


@pytest.mark.asyncio
async def test_update_tags_set_and_append(db_session, user_id):
    store = BookmarkStore(db_session)
    bookmark = await store.save(make_bookmark(user_id, tags=["old"]), LONG_TEXT)

    replaced = await store.update_tags(user_id, bookmark.bookmark_id, ["db", "mvcc"], TagOperation.SET)
    assert replaced.tags == ["db", "mvcc"]

    appended = await store.update_tags(user_id, bookmark.bookmark_id, ["vacuum"], TagOperation.APPEND)
    assert appended.tags == ["db", "mvcc", "vacuum"]


@pytest.mark.asyncio
async def test_append_to_untagged_bookmark(db_session, user_id):
    store = BookmarkStore(db_session)
    bookmark = await store.save(make_bookmark(user_id), LONG_TEXT)

    appended = await store.update_tags(user_id, bookmark.bookmark_id, ["db"], TagOperation.APPEND)

    assert appended.tags == ["db"]


@pytest.mark.asyncio
async def test_update_missing_bookmark_raises(db_session, user_id):
    with pytest.raises(BookmarkNotFoundError):
        await BookmarkStore(db_session).update_summary(user_id, "missing", "summary")


@pytest.mark.asyncio
async def test_tag_counts_and_list_by_tag(db_session, user_id):
    store = BookmarkStore(db_session)
    await store.save(make_bookmark(user_id, "a", tags=["db", "postgres"]), LONG_TEXT)
    await store.save(make_bookmark(user_id, "b", tags=["db"]), LONG_TEXT)

    counts = await store.tag_counts(user_id)
    by_tag = await store.list_by_tag(user_id, "postgres")

    assert [(c.tag, c.count) for c in counts] == [("db", 2), ("postgres", 1)]
    assert [b.url for b in by_tag] == ["https://example.com/a"]


@pytest.mark.asyncio
async def test_enrichment_cursors(db_session, user_id):
    store = BookmarkStore(db_session)
    await store.save(make_bookmark(user_id, "untagged"), LONG_TEXT)
    await store.save(make_bookmark(user_id, "empty-tags", tags=[]), LONG_TEXT)
    await store.save(make_bookmark(user_id, "tagged", tags=["db"]), LONG_TEXT)
    await store.save(make_bookmark(user_id, "short"), "tiny")

    untagged = await store.untagged(limit=10, min_text_length=50)
    unsummarized = await store.without_summary(limit=10, min_text_length=50)

    assert sorted(b.url for b in untagged) == [
        "https://example.com/empty-tags",
        "https://example.com/untagged",
    ]
    assert len(unsummarized) == 3


# ================================
# Chunks
# ================================

@pytest.mark.asyncio
async def test_replace_chunks_replaces_the_whole_set(db_session, user_id):
    bookmark = await BookmarkStore(db_session).save(make_bookmark(user_id), LONG_TEXT)
    store = ChunkStore(db_session)

    first = await store.replace_chunks(
        bookmark.bookmark_id, user_id, ["one", "two", "three"], [unit_vector(1, i) for i in range(3)]
    )
    second = await store.replace_chunks(
        bookmark.bookmark_id, user_id, ["uno", "dos"], [unit_vector(1, i) for i in range(2)]
    )

    rows = (await db_session.scalars(select(BookmarkChunk).order_by(BookmarkChunk.chunk_index))).all()
    assert [(row.chunk_index, row.chunk_text) for row in rows] == [(0, "uno"), (1, "dos")]
    assert {row.chunk_id for row in rows} == {chunk.chunk_id for chunk in second}
    assert not {chunk.chunk_id for chunk in first} & {row.chunk_id for row in rows}


@pytest.mark.asyncio
async def test_replace_chunks_length_mismatch_keeps_existing_chunks(db_session, user_id):
    bookmark = await BookmarkStore(db_session).save(make_bookmark(user_id), LONG_TEXT)
    store = ChunkStore(db_session)
    existing = await store.replace_chunks(
        bookmark.bookmark_id, user_id, ["one", "two"], [unit_vector(1), unit_vector(0, 1)]
    )

    with pytest.raises(ChunkMismatchError):
        await store.replace_chunks(bookmark.bookmark_id, user_id, ["a", "b"], [unit_vector(1)])

    rows = (await db_session.scalars(select(BookmarkChunk.chunk_id))).all()
    assert set(rows) == {chunk.chunk_id for chunk in existing}


@pytest.mark.asyncio
async def test_get_chunks_by_ids_keeps_given_order(db_session, user_id):
    bookmark = await BookmarkStore(db_session).save(make_bookmark(user_id), LONG_TEXT)
    store = ChunkStore(db_session)
    first, second, third = await store.replace_chunks(
        bookmark.bookmark_id, user_id, ["one", "two", "three"], [unit_vector(1, i) for i in range(3)]
    )

    chunks = await store.get_chunks_by_ids(
        user_id, [third.chunk_id, uuid.uuid4(), first.chunk_id]
    )

    assert [chunk.chunk_text for chunk in chunks] == ["three", "one"]
    assert await store.get_chunks_by_ids(uuid.uuid4(), [first.chunk_id]) == []
    assert await store.get_chunks_by_ids(user_id, []) == []


@pytest.mark.asyncio
async def test_bookmarks_without_chunks(db_session, user_id):
    bookmarks = BookmarkStore(db_session)
    embedded = await bookmarks.save(make_bookmark(user_id, "embedded"), LONG_TEXT)
    await bookmarks.save(make_bookmark(user_id, "pending"), LONG_TEXT)
    await ChunkStore(db_session).replace_chunks(embedded.bookmark_id, user_id, ["x"], [unit_vector(1)])

    pending = await ChunkStore(db_session).bookmarks_without_chunks(limit=10, min_text_length=10)

    assert [b.url for b in pending] == ["https://example.com/pending"]


@pytest.mark.asyncio
async def test_similarity_search_threshold_and_order(db_session, user_id):
    bookmark = await BookmarkStore(db_session).save(make_bookmark(user_id), LONG_TEXT)
    store = ChunkStore(db_session)
    await store.replace_chunks(
        bookmark.bookmark_id,
        user_id,
        ["close", "near", "orthogonal"],
        [unit_vector(1, 0.1), unit_vector(1, 1), unit_vector(0, 1)],
    )

    matches = await store.search_similar_chunks(user_id, unit_vector(1), limit=10, threshold=0.5)

    assert [m.chunk.chunk_text for m in matches] == ["close", "near"]
    assert matches[0].similarity_score == pytest.approx(1 / math.sqrt(1.01), abs=1e-4)
    assert matches[1].similarity_score == pytest.approx(1 / math.sqrt(2), abs=1e-4)
    assert matches[0].bookmark.url == "https://example.com/a"

    assert await store.search_similar_chunks(uuid.uuid4(), unit_vector(1), limit=10, threshold=0.0) == []


# ================================
# Keyword Search
# ================================

@pytest.mark.asyncio
async def test_keyword_search_highlights_matches(db_session, user_id):
    store = BookmarkStore(db_session)
    await store.save(make_bookmark(user_id, "vacuum", title="Vacuum explained", tags=["db"]), LONG_TEXT)
    await store.save(
        make_bookmark(user_id, "css", title="CSS grids", tags=["web"]),
        "Grid layout places items in rows and columns.",
    )

    response = await BookmarkSearch(db_session).search(user_id, SearchRequest(query="vacuum"))

    assert response.total == 1
    assert [item.bookmark.title for item in response.items] == ["Vacuum explained"]
    assert "<mark>vacuum</mark>" in response.items[0].search_match.lower()
    assert [(tag.tag, tag.count) for tag in response.tags] == [("db", 1)]


@pytest.mark.asyncio
async def test_search_tag_filters(db_session, user_id):
    store = BookmarkStore(db_session)
    await store.save(make_bookmark(user_id, "both", tags=["db", "web"]), LONG_TEXT)
    await store.save(make_bookmark(user_id, "db", tags=["db"]), LONG_TEXT)
    await store.save(make_bookmark(user_id, "none"), LONG_TEXT)
    search = BookmarkSearch(db_session)

    async def urls(mode, tags=()):
        response = await search.search(
            user_id, SearchRequest(tags_filter=TagFilter(mode=mode, tags=list(tags)))
        )
        return sorted(item.bookmark.url.rsplit("/", 1)[-1] for item in response.items)

    assert await urls(TagFilterMode.AND, ["db", "web"]) == ["both"]
    assert await urls(TagFilterMode.OR, ["web", "db"]) == ["both", "db"]
    assert await urls(TagFilterMode.UNTAGGED) == ["none"]
    assert await urls(TagFilterMode.ANY) == ["both", "db", "none"]


@pytest.mark.asyncio
async def test_search_without_query_has_no_snippet(db_session, user_id):
    await BookmarkStore(db_session).save(make_bookmark(user_id), LONG_TEXT)

    response = await BookmarkSearch(db_session).search(user_id, SearchRequest())

    assert response.total == 1
    assert response.items[0].search_match is None


# ================================
# RAG Sessions
# ================================

@pytest.mark.asyncio
async def test_rag_session_with_chunks_in_stored_order(session_factory, user_id):
    async with session_scope(session_factory) as db:
        bookmark = await BookmarkStore(db).save(make_bookmark(user_id), LONG_TEXT)
        first, second = await ChunkStore(db).replace_chunks(
            bookmark.bookmark_id, user_id, ["one", "two"], [unit_vector(1), unit_vector(0, 1)]
        )
        sessions = RagSessionStore(db)
        session = await sessions.create(user_id, "What is vacuum?")
        await sessions.update(
            session.session_id, user_id, "It removes dead rows.", [second.chunk_id, first.chunk_id]
        )

    service = BookmarkService(session_factory=session_factory, notifier=Mock())
    detail = await service.rag_session(user_id, session.session_id)

    assert detail.session.answer == "It removes dead rows."
    assert detail.session.relevant_chunks == [second.chunk_id, first.chunk_id]
    assert [chunk.chunk_text for chunk in detail.chunks] == ["two", "one"]


@pytest.mark.asyncio
async def test_rag_session_of_another_user_not_found(session_factory, user_id):
    async with session_scope(session_factory) as db:
        session = await RagSessionStore(db).create(user_id, "What is vacuum?")

    service = BookmarkService(session_factory=session_factory, notifier=Mock())

    with pytest.raises(RagSessionNotFoundError):
        await service.rag_session(uuid.uuid4(), session.session_id)


@pytest.mark.asyncio
async def test_rag_session_update_is_scoped_to_user(db_session, user_id):
    store = RagSessionStore(db_session)
    session = await store.create(user_id, "What is vacuum?")

    await store.update(session.session_id, uuid.uuid4(), "hijacked", [])

    fetched = await store.get(session.session_id, user_id)
    await db_session.refresh(fetched)
    assert fetched.answer is None
