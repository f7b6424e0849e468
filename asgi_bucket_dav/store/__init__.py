from logging import getLogger

from asgi_bucket_dav.constants import DEFAULT_STORE_LIST_LIMIT
from asgi_bucket_dav.exceptions import DAVExceptionStoreInitFailed
from asgi_bucket_dav.store.base import DAVLockStore, DAVObjectStore
from asgi_bucket_dav.store.file_system import FileSystemObjectStore
from asgi_bucket_dav.store.memory import MemoryLockStore, MemoryObjectStore

logger = getLogger(__name__)


def create_object_store(
    uri: str, list_limit: int = DEFAULT_STORE_LIST_LIMIT
) -> DAVObjectStore:
    if uri.startswith("file://"):
        store_factory = FileSystemObjectStore

    elif uri.startswith("memory://"):
        store_factory = MemoryObjectStore

    else:
        raise DAVExceptionStoreInitFailed(f"Unsupported object store uri: {uri}")

    store = store_factory(uri=uri, list_limit=list_limit)
    logger.info(f"Object Store: {store}")
    return store


def create_lock_store(uri: str) -> DAVLockStore:
    if uri.startswith("memory://"):
        store = MemoryLockStore(uri=uri)

    else:
        raise DAVExceptionStoreInitFailed(f"Unsupported lock store uri: {uri}")

    logger.info(f"Lock Store: {store}")
    return store
