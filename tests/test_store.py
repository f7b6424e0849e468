from typing import get_type_hints

import pytest
import pytest_asyncio

from asgi_bucket_dav.constants import (
    DAVHeaders,
    DAVRangeType,
    DAVRequestRange,
    DAVTime,
)
from asgi_bucket_dav.exceptions import DAVExceptionStoreInitFailed
from asgi_bucket_dav.helpers import generate_etag
from asgi_bucket_dav.store import create_lock_store, create_object_store
from asgi_bucket_dav.store.base import (
    DAVHTTPMetadata,
    DAVObjectStore,
    DAVStoreConditional,
    DAVStoreObject,
    get_content_range,
    paginate_sorted_keys,
)
from asgi_bucket_dav.store.file_system import FileSystemObjectStore
from asgi_bucket_dav.store.memory import MemoryLockStore, MemoryObjectStore

CONTENT = b"Hello, World!"


@pytest_asyncio.fixture(params=["memory", "file"])
async def store(request, tmp_path):
    match request.param:
        case "memory":
            uri = "memory:///"
        case _:
            uri = f"file://{tmp_path.as_posix()}"

    yield create_object_store(uri, list_limit=2)


@pytest.mark.parametrize(
    "store_class", [DAVObjectStore, MemoryObjectStore, FileSystemObjectStore]
)
def test_store_delete_annotations(store_class):
    # the list() method must not shadow the builtin in annotations
    hints = get_type_hints(store_class.delete)
    assert hints["keys"] == str | list[str]
    assert hints["return"] is type(None)


def test_create_store(tmp_path):
    assert isinstance(create_object_store("memory:///"), MemoryObjectStore)
    assert isinstance(
        create_object_store(f"file://{tmp_path.as_posix()}"), FileSystemObjectStore
    )
    assert isinstance(create_lock_store("memory:///"), MemoryLockStore)

    with pytest.raises(DAVExceptionStoreInitFailed):
        create_object_store("s3://bucket")

    with pytest.raises(DAVExceptionStoreInitFailed):
        create_object_store(f"file://{tmp_path.joinpath('missing').as_posix()}")

    with pytest.raises(DAVExceptionStoreInitFailed):
        create_lock_store("redis://localhost")


@pytest.mark.asyncio
async def test_put_head_get(store):
    obj = await store.put(
        "a/b.txt",
        CONTENT,
        http_metadata=DAVHTTPMetadata(content_type="text/plain"),
        custom_metadata={"k": "v"},
    )
    assert obj.key == "a/b.txt"
    assert obj.size == len(CONTENT)
    assert obj.etag == generate_etag(CONTENT)
    assert obj.http_etag == f'"{obj.etag}"'
    assert not obj.is_collection

    head = await store.head("a/b.txt")
    assert head.etag == obj.etag
    assert head.http_metadata.content_type == "text/plain"
    assert head.custom_metadata == {"k": "v"}

    body = await store.get("a/b.txt")
    assert body.body == CONTENT
    assert body.content_range is None

    assert await store.head("a") is None
    assert await store.get("a") is None


@pytest.mark.asyncio
async def test_get_range(store):
    await store.put("b.txt", CONTENT)

    body = await store.get(
        "b.txt",
        request_range=DAVRequestRange(
            type=DAVRangeType.RANGE, range_start=0, range_end=4
        ),
    )
    assert body.body == b"Hello"
    assert body.content_range.header_value() == b"bytes 0-4/13"

    body = await store.get(
        "b.txt",
        request_range=DAVRequestRange(type=DAVRangeType.SUFFIX, suffix_length=6),
    )
    assert body.body == b"World!"

    # not satisfiable, the whole content
    body = await store.get(
        "b.txt",
        request_range=DAVRequestRange(type=DAVRangeType.RANGE, range_start=100),
    )
    assert body.body == CONTENT
    assert body.content_range is None


@pytest.mark.asyncio
async def test_get_conditional(store):
    obj = await store.put("c.txt", CONTENT)

    body = await store.get(
        "c.txt", conditional=DAVStoreConditional(etag_does_not_match=[obj.etag])
    )
    assert body is not None
    assert body.body is None
    assert body.etag == obj.etag

    body = await store.get(
        "c.txt", conditional=DAVStoreConditional(etag_matches=[obj.etag])
    )
    assert body.body == CONTENT


@pytest.mark.asyncio
async def test_list(store):
    for key in ("a", "a/1.txt", "a/2.txt", "a/d/3.txt", "b.txt"):
        await store.put(key, b"")

    page = await store.list(prefix="a/", delimiter="/")
    assert [obj.key for obj in page.objects] == ["a/1.txt", "a/2.txt"]
    assert page.truncated
    assert page.cursor == "a/2.txt"

    page = await store.list(prefix="a/", delimiter="/", cursor=page.cursor)
    assert page.objects == []
    assert not page.truncated

    page = await store.list(prefix="a/", cursor="a/2.txt")
    assert [obj.key for obj in page.objects] == ["a/d/3.txt"]


@pytest.mark.asyncio
async def test_delete(store):
    await store.put("a.txt", CONTENT)
    await store.put("b.txt", CONTENT)
    await store.put("c.txt", CONTENT)

    await store.delete("a.txt")
    assert await store.head("a.txt") is None

    await store.delete(["b.txt", "c.txt", "missing.txt"])
    page = await store.list()
    assert page.objects == []


@pytest.mark.asyncio
async def test_lock_store():
    lock_store = MemoryLockStore(uri="memory:///")
    await lock_store.put("lock_a", "value", ttl=600)
    assert await lock_store.get("lock_a") == "value"

    await lock_store.delete("lock_a")
    assert await lock_store.get("lock_a") is None

    await lock_store.put("lock_b", "value", ttl=0)
    assert await lock_store.get("lock_b") is None


def test_conditional_from_headers():
    assert DAVStoreConditional.from_headers(DAVHeaders([])) is None

    conditional = DAVStoreConditional.from_headers(
        DAVHeaders(
            [
                (b"if-none-match", b'"abc", W/"def"'),
                (b"if-modified-since", b"Sun, 06 Nov 1994 08:49:37 GMT"),
            ]
        )
    )
    assert conditional.etag_does_not_match == ["abc", "def"]
    assert conditional.uploaded_after.timestamp == 784111777


def test_conditional_is_satisfied():
    document = DAVStoreObject(key="a", size=0, etag="abc", uploaded=784111777.5)
    assert DAVStoreConditional(etag_matches=["*"]).is_satisfied(document)
    assert not DAVStoreConditional(etag_matches=["def"]).is_satisfied(document)
    assert not DAVStoreConditional(etag_does_not_match=["*"]).is_satisfied(document)
    assert DAVStoreConditional(etag_does_not_match=["def"]).is_satisfied(document)

    same_second = DAVTime(784111777)
    assert not DAVStoreConditional(uploaded_after=same_second).is_satisfied(document)
    assert DAVStoreConditional(uploaded_before=same_second).is_satisfied(document)
    assert not DAVStoreConditional(uploaded_before=DAVTime(0)).is_satisfied(document)


def test_get_content_range():
    assert get_content_range(None, 10) is None
    assert get_content_range(
        DAVRequestRange(type=DAVRangeType.RANGE, range_start=0), 0
    ) is None

    content_range = get_content_range(
        DAVRequestRange(type=DAVRangeType.RANGE, range_start=5, range_end=100), 10
    )
    assert (content_range.content_start, content_range.content_end) == (5, 9)

    assert (
        get_content_range(
            DAVRequestRange(type=DAVRangeType.RANGE, range_start=5, range_end=1), 10
        )
        is None
    )

    content_range = get_content_range(
        DAVRequestRange(type=DAVRangeType.SUFFIX, suffix_length=100), 10
    )
    assert (content_range.content_start, content_range.content_end) == (0, 9)


def test_paginate_sorted_keys():
    keys = ["a", "a/1", "a/2", "a/x/1", "a/x/2", "a/y/1", "b"]

    assert paginate_sorted_keys(keys, "", "/", None, 10) == (
        ["a", "b"],
        ["a/"],
        False,
        None,
    )
    assert paginate_sorted_keys(keys, "a/", "/", None, 3) == (
        ["a/1", "a/2"],
        ["a/x/"],
        True,
        "a/x/",
    )
    assert paginate_sorted_keys(keys, "a/", "/", "a/x/", 3) == (
        [],
        ["a/y/"],
        False,
        None,
    )
    assert paginate_sorted_keys(keys, "a/", None, "a/2", 2) == (
        ["a/x/1", "a/x/2"],
        [],
        True,
        "a/x/2",
    )
