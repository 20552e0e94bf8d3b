"""
Integration tests for initialize_database() and configuration-driven setup.
"""

import os

import pytest

from datajpa.config import ConfigurationProperties
from datajpa.data import (
    InMemoryAdapter,
    SQLAlchemyAdapter,
    get_database_adapter,
    initialize_database,
    set_database_adapter,
)
from datajpa.domain import Member, Team
from datajpa.exceptions import ConfigurationException
from datajpa.repository import MemberRepository, TeamRepository


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("DATAJPA_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    yield
    set_database_adapter(None)


def write_config(tmp_path, text):
    path = tmp_path / "application.yml"
    path.write_text(text)
    return ConfigurationProperties(str(path))


class TestInitializeDatabase:
    """Tests for adapter selection and table creation."""

    @pytest.mark.asyncio
    async def test_memory_adapter_by_default(self):
        adapter = await initialize_database(ConfigurationProperties())

        try:
            assert isinstance(adapter, InMemoryAdapter)
            assert get_database_adapter() is adapter
        finally:
            await adapter.disconnect()

    @pytest.mark.asyncio
    async def test_sqlalchemy_adapter_from_config(self, tmp_path):
        config = write_config(
            tmp_path,
            "database:\n  adapter: sqlalchemy\n  url: 'sqlite+aiosqlite:///:memory:'\n",
        )

        adapter = await initialize_database(config)

        try:
            assert isinstance(adapter, SQLAlchemyAdapter)

            teams = TeamRepository()
            members = MemberRepository()
            team = await teams.save(Team("TeamA"))
            member = Member("AAA", 10)
            member.change_team(team)
            await members.save(member)

            assert await members.count() == 1
            assert (await members.find_by_id(member.id)).get().team_id == team.id
        finally:
            await adapter.disconnect()

    @pytest.mark.asyncio
    async def test_sqlalchemy_adapter_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATAJPA_DATABASE_ADAPTER", "sqlalchemy")
        monkeypatch.setenv(
            "DATAJPA_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'env.db'}"
        )

        adapter = await initialize_database(ConfigurationProperties())

        try:
            assert isinstance(adapter, SQLAlchemyAdapter)
            saved = await MemberRepository().save(Member("env", 1))
            assert saved.id is not None
        finally:
            await adapter.disconnect()

    @pytest.mark.asyncio
    async def test_sqlalchemy_requires_url(self, tmp_path):
        config = write_config(tmp_path, "database:\n  adapter: sqlalchemy\n")

        with pytest.raises(ConfigurationException, match="database.url is required"):
            await initialize_database(config)

    @pytest.mark.asyncio
    async def test_unknown_adapter(self, tmp_path):
        config = write_config(tmp_path, "database:\n  adapter: mongodb\n")

        with pytest.raises(ConfigurationException, match="Unknown database adapter"):
            await initialize_database(config)

    @pytest.mark.asyncio
    async def test_file_database_keeps_data_across_connections(self, tmp_path):
        config = write_config(
            tmp_path,
            f"database:\n  adapter: sqlalchemy\n  url: sqlite+aiosqlite:///{tmp_path / 'app.db'}\n",
        )

        adapter = await initialize_database(config)
        saved = await TeamRepository().save(Team("persisted"))
        await adapter.disconnect()

        adapter = await initialize_database(config)
        try:
            found = await TeamRepository().find_by_id(saved.id)
            assert found.get().name == "persisted"
        finally:
            await adapter.disconnect()
