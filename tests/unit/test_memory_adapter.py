"""
Unit tests for the in-memory database adapter.
"""

import asyncio

import pytest
import pytest_asyncio

from datajpa.data import InMemoryAdapter, get_entity_metadata
from datajpa.data.adapters.memory import next_identity
from datajpa.data.query import (
    ComparisonOperator,
    FieldRef,
    Literal,
    OrderBy,
    Query,
    QueryCondition,
    QueryOperation,
)
from datajpa.domain import Member, Team


@pytest_asyncio.fixture
async def memory_adapter():
    adapter = InMemoryAdapter()
    await adapter.connect()
    await adapter.create_table_if_not_exists(get_entity_metadata(Team))
    await adapter.create_table_if_not_exists(get_entity_metadata(Member))

    yield adapter

    await adapter.disconnect()


def member_row(username, age=0, team_id=None):
    return {"username": username, "age": age, "team_id": team_id}


class TestIdentitySequence:
    """Tests for identity assignment."""

    def test_sequence_is_per_entity_class(self):
        class First:
            pass

        class Second:
            pass

        assert next_identity(First) == 1
        assert next_identity(First) == 2
        assert next_identity(Second) == 1

    @pytest.mark.asyncio
    async def test_ids_are_unique_across_adapters(self):
        meta = get_entity_metadata(Member)
        first, second = InMemoryAdapter(), InMemoryAdapter()

        ids = [
            await first.insert(meta, member_row("a")),
            await second.insert(meta, member_row("b")),
            await first.insert(meta, member_row("c")),
        ]

        assert len(set(ids)) == 3

    @pytest.mark.asyncio
    async def test_concurrent_inserts_get_distinct_ids(self, memory_adapter):
        meta = get_entity_metadata(Member)

        ids = await asyncio.gather(
            *(memory_adapter.insert(meta, member_row(f"m{i}")) for i in range(50))
        )

        assert len(set(ids)) == 50
        assert await memory_adapter.count(meta) == 50


class TestStorage:
    """Tests for row storage."""

    @pytest.mark.asyncio
    async def test_rows_are_copied(self, memory_adapter):
        meta = get_entity_metadata(Member)
        values = member_row("AAA", 10)
        entity_id = await memory_adapter.insert(meta, values)

        values["username"] = "changed"
        row = await memory_adapter.find_by_id(meta, entity_id)
        row["age"] = 99

        stored = await memory_adapter.find_by_id(meta, entity_id)
        assert stored == {"username": "AAA", "age": 10, "team_id": None, "id": entity_id}

    @pytest.mark.asyncio
    async def test_update_unknown_id(self, memory_adapter):
        meta = get_entity_metadata(Member)
        assert await memory_adapter.update(meta, 424242, member_row("x")) is False

    @pytest.mark.asyncio
    async def test_disconnect_clears_tables(self, memory_adapter):
        meta = get_entity_metadata(Member)
        await memory_adapter.insert(meta, member_row("AAA"))

        await memory_adapter.disconnect()

        assert memory_adapter.connected is False
        assert await memory_adapter.count(meta) == 0


class TestExecuteQuery:
    """Tests for query evaluation."""

    @pytest.mark.asyncio
    async def test_comparisons_never_match_null(self, memory_adapter):
        meta = get_entity_metadata(Member)
        await memory_adapter.insert(meta, member_row("AAA", 10, None))

        query = Query(
            entity=Member,
            conditions=(
                QueryCondition(FieldRef("team_id"), ComparisonOperator.NE, Literal(5)),
            ),
        )

        assert await memory_adapter.execute_query(query) == []

    @pytest.mark.asyncio
    async def test_nulls_sort_first(self, memory_adapter):
        meta = get_entity_metadata(Member)
        team_meta = get_entity_metadata(Team)
        team_id = await memory_adapter.insert(team_meta, {"name": "A"})
        await memory_adapter.insert(meta, member_row("with-team", 1, team_id))
        await memory_adapter.insert(meta, member_row("no-team", 2, None))

        query = Query(entity=Member, order_by=(OrderBy(FieldRef("team_id")),))
        result = await memory_adapter.execute_query(query)

        assert [m.username for m in result] == ["no-team", "with-team"]

    @pytest.mark.asyncio
    async def test_count_and_exists(self, memory_adapter):
        meta = get_entity_metadata(Member)
        await memory_adapter.insert(meta, member_row("AAA", 10))
        await memory_adapter.insert(meta, member_row("BBB", 20))

        condition = QueryCondition(FieldRef("age"), ComparisonOperator.GT, Literal(15))
        count = Query(entity=Member, operation=QueryOperation.COUNT, conditions=(condition,))
        exists = Query(entity=Member, operation=QueryOperation.EXISTS, conditions=(condition,))

        assert await memory_adapter.execute_query(count) == 1
        assert await memory_adapter.execute_query(exists) is True

    @pytest.mark.asyncio
    async def test_like_wildcards(self, memory_adapter):
        meta = get_entity_metadata(Member)
        for name in ("abc", "axc", "abcd", "a.c"):
            await memory_adapter.insert(meta, member_row(name))

        query = Query(
            entity=Member,
            conditions=(
                QueryCondition(FieldRef("username"), ComparisonOperator.LIKE, Literal("a_c")),
            ),
        )
        result = await memory_adapter.execute_query(query)

        assert sorted(m.username for m in result) == ["a.c", "abc", "axc"]
