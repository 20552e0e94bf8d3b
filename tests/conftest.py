import pytest_asyncio

from datajpa.data import (
    InMemoryAdapter,
    SQLAlchemyAdapter,
    get_entity_metadata,
    set_database_adapter,
)
from datajpa.domain import Member, Team
from datajpa.repository import MemberRepository, TeamRepository


async def _connect(kind: str):
    if kind == "memory":
        adapter = InMemoryAdapter()
        await adapter.connect()
    else:
        adapter = SQLAlchemyAdapter()
        await adapter.connect("sqlite+aiosqlite:///:memory:")

    await adapter.create_table_if_not_exists(get_entity_metadata(Team))
    await adapter.create_table_if_not_exists(get_entity_metadata(Member))
    return adapter


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def adapter(request):
    """Fresh database per test, once for each backend."""
    adapter = await _connect(request.param)
    set_database_adapter(adapter)

    yield adapter

    await adapter.disconnect()
    set_database_adapter(None)


@pytest_asyncio.fixture
async def member_repository(adapter):
    return MemberRepository(adapter)


@pytest_asyncio.fixture
async def team_repository(adapter):
    return TeamRepository(adapter)
