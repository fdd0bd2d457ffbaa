import pytest
import pytest_asyncio

from tests.fakes import FakeLoyverse


@pytest.fixture
def fake() -> FakeLoyverse:
    return FakeLoyverse()


@pytest_asyncio.fixture
async def client(fake: FakeLoyverse):
    c = fake.client()
    try:
        yield c
    finally:
        await c.http.aclose()
