from logging import getLogger

from asgi_bucket_dav.constants import (
    DAV_COLLECTION_MARKER,
    DAV_COLLECTION_METADATA_KEY,
    DAVResourceKey,
)
from asgi_bucket_dav.exceptions import DAVExceptionConflict
from asgi_bucket_dav.store.base import DAVObjectStore, DAVStoreObject

logger = getLogger(__name__)

DAV_LIST_DELIMITER = "/"


class DAVObjectLister:
    """Lazy, restartable listing of a collection's members

    recursive is False: immediate children only, the store folds deeper keys
    recursive is True: the whole subtree

    state: cursor of the next page, truncated flag of the last page,
    exhausted once a page reports truncated is False
    """

    store: DAVObjectStore
    key: DAVResourceKey
    recursive: bool

    cursor: str | None
    truncated: bool
    exhausted: bool

    def __init__(
        self, store: DAVObjectStore, key: DAVResourceKey, recursive: bool = False
    ):
        self.store = store
        self.key = key
        self.recursive = recursive

        self._buffer: list[DAVStoreObject] = list()
        self.restart()

    def restart(self) -> None:
        self.cursor = None
        self.truncated = False
        self.exhausted = False
        self._buffer = list()

    @property
    def prefix(self) -> str:
        return self.key.list_prefix

    async def fetch_page(self) -> list[DAVStoreObject]:
        """next page of members, empty list once exhausted"""
        if self.exhausted:
            return list()

        page = await self.store.list(
            prefix=self.prefix,
            delimiter=None if self.recursive else DAV_LIST_DELIMITER,
            cursor=self.cursor,
        )
        self.truncated = page.truncated
        if page.truncated:
            self.cursor = page.cursor
        else:
            self.exhausted = True

        # the prefix marker itself
        return [obj for obj in page.objects if obj.key != self.key.raw]

    def __aiter__(self) -> "DAVObjectLister":
        return self

    async def __anext__(self) -> DAVStoreObject:
        while len(self._buffer) == 0:
            if self.exhausted:
                raise StopAsyncIteration

            self._buffer = await self.fetch_page()

        return self._buffer.pop(0)


def list_children(
    store: DAVObjectStore, key: DAVResourceKey, recursive: bool = False
) -> DAVObjectLister:
    return DAVObjectLister(store, key, recursive)


def is_collection(obj: DAVStoreObject | None) -> bool:
    if obj is None:
        return False

    return obj.custom_metadata.get(DAV_COLLECTION_METADATA_KEY) == DAV_COLLECTION_MARKER


def get_collection_custom_metadata() -> dict[str, str]:
    return {DAV_COLLECTION_METADATA_KEY: DAV_COLLECTION_MARKER}


async def exists(store: DAVObjectStore, key: DAVResourceKey) -> DAVStoreObject | None:
    if key.is_root:
        return None

    return await store.head(key.raw)


async def require_parent_collection(store: DAVObjectStore, key: DAVResourceKey) -> None:
    """the parent of key must be the root or an existing collection"""
    parent = key.parent
    if parent.is_root:
        return

    obj = await store.head(parent.raw)
    if not is_collection(obj):
        logger.debug(f"Parent collection not exists: {parent}")
        raise DAVExceptionConflict(f"Parent collection not exists: {parent}")
