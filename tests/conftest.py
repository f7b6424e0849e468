import pytest

from .testkit_asgi import ASGITestClient, get_test_client


@pytest.fixture
def client() -> ASGITestClient:
    return get_test_client()


@pytest.fixture
def paged_client() -> ASGITestClient:
    # every listing takes several pages
    return get_test_client(list_limit=2)
