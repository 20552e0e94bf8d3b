"""
Members and teams on whichever database application.yml selects.

    python app.py                                   # in-memory
    DATAJPA_DATABASE_ADAPTER=sqlalchemy \
    DATAJPA_DATABASE_URL=sqlite+aiosqlite:///team.db python app.py
"""

import asyncio

from datajpa import get_config, get_logger, initialize_database
from datajpa.config import log_config_sources
from datajpa.core.logging import configure_logging_from_config
from datajpa.domain import Member, Team
from datajpa.repository import MemberRepository, TeamRepository

logger = get_logger("examples.team_members")


async def main():
    configure_logging_from_config()
    log_config_sources(get_config())
    adapter = await initialize_database()

    teams = TeamRepository()
    members = MemberRepository()

    team_a = await teams.save(Team("TeamA"))
    for username, age in (("AAA", 10), ("AAA", 20), ("BBB", 30)):
        await members.save(Member(username, age, team_a))
    await members.save(Member("loner", 40))

    logger.info(f"Older AAA: {await members.find_by_username_and_age_greater_than('AAA', 15)}")
    logger.info(f"Usernames: {await members.find_username_list()}")
    for dto in await members.find_member_dto():
        logger.info(f"  {dto}")
    logger.info(f"BBB: {await members.find_optional_by_username('BBB')}")
    logger.info(f"Nobody: {await members.find_member_by_username('nobody')}")

    await adapter.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
