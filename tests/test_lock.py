import pytest
from icecream import ic

from asgi_bucket_dav.constants import DAVLockScope, DAVResourceKey
from asgi_bucket_dav.exceptions import DAVExceptionLocked, DAVExceptionMalformedRequest
from asgi_bucket_dav.lock import DAVLockInfo, DAVLockManager
from asgi_bucket_dav.store.memory import MemoryLockStore

LOCK_BODY = b"""<?xml version="1.0" encoding="utf-8" ?>
<D:lockinfo xmlns:D="DAV:">
    <D:lockscope><D:exclusive/></D:lockscope>
    <D:locktype><D:write/></D:locktype>
    <D:owner><D:href>litmus test suite</D:href></D:owner>
</D:lockinfo>"""

LOCK_RES_PATH1 = DAVResourceKey("/a/b.txt")
LOCK_RES_PATH2 = DAVResourceKey("/a/c.txt")


def test_lock_info():
    info = DAVLockInfo.from_xml(LOCK_BODY)
    assert info.scope == DAVLockScope.exclusive
    assert info.lock_type == "write"
    assert info.owner == "litmus test suite"

    info = DAVLockInfo.from_xml(LOCK_BODY.replace(b"exclusive", b"shared"))
    assert info.scope == DAVLockScope.shared


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"<D:lockinfo xmlns:D='DAV:'>",
        b"<D:prop xmlns:D='DAV:'><D:x/></D:prop>",
        LOCK_BODY.replace(b"<D:owner><D:href>litmus test suite</D:href></D:owner>", b""),
        LOCK_BODY.replace(b"exclusive", b"private"),
    ],
)
def test_lock_info_malformed(body):
    with pytest.raises(DAVExceptionMalformedRequest):
        DAVLockInfo.from_xml(body)


class TestDAVLockManager:
    lock_manager: DAVLockManager

    @pytest.fixture(autouse=True)
    def init_per_test(self):
        self.lock_manager = DAVLockManager(MemoryLockStore(uri="memory:///"))
        self.info = DAVLockInfo.from_xml(LOCK_BODY)

    @pytest.mark.asyncio
    async def test_acquire(self):
        lock_obj = await self.lock_manager.acquire(LOCK_RES_PATH1, self.info)
        ic(lock_obj)
        assert lock_obj.token.startswith("opaquelocktoken:")
        assert lock_obj.token in lock_obj.xml
        assert await self.lock_manager.lookup(LOCK_RES_PATH1) == lock_obj.xml
        assert await self.lock_manager.lookup(LOCK_RES_PATH2) is None

        body = lock_obj.get_response_body()
        assert body.startswith(b'<?xml version="1.0" encoding="utf-8"?><D:prop')
        assert b"<D:activelock>" in body
        assert b"<D:lockroot><D:href>/a/b.txt</D:href></D:lockroot>" in body

    @pytest.mark.asyncio
    async def test_acquire_locked(self):
        await self.lock_manager.acquire(LOCK_RES_PATH1, self.info)
        with pytest.raises(DAVExceptionLocked):
            await self.lock_manager.acquire(LOCK_RES_PATH1, self.info)

        # locks are not hierarchical
        await self.lock_manager.acquire(LOCK_RES_PATH1.parent, self.info)

    @pytest.mark.asyncio
    async def test_release(self):
        await self.lock_manager.acquire(LOCK_RES_PATH1, self.info)
        await self.lock_manager.release(LOCK_RES_PATH1)
        assert await self.lock_manager.lookup(LOCK_RES_PATH1) is None

        # release without lock
        await self.lock_manager.release(LOCK_RES_PATH2)

        lock_obj = await self.lock_manager.acquire(LOCK_RES_PATH1, self.info)
        assert lock_obj is not None

    @pytest.mark.asyncio
    async def test_expired(self):
        lock_manager = DAVLockManager(MemoryLockStore(uri="memory:///"), timeout=0)
        await lock_manager.acquire(LOCK_RES_PATH1, self.info)
        assert await lock_manager.lookup(LOCK_RES_PATH1) is None

        # expired lock does not block a new one
        lock_obj = await lock_manager.acquire(LOCK_RES_PATH1, self.info)
        assert lock_obj is not None
