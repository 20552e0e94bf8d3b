from typing import List

from datajpa.data import CrudRepository, OptionalResult, Query
from datajpa.domain import Member, MemberDto


@CrudRepository(entity=Member)
class MemberRepository:
    """Repository for Member entities."""

    # Query DSL methods
    async def find_by_username_and_age_greater_than(
        self, username: str, age: int
    ) -> List[Member]: ...

    async def find_list_by_username(self, username: str) -> List[Member]: ...

    async def find_member_by_username(self, username: str) -> Member: ...

    async def find_optional_by_username(
        self, username: str
    ) -> OptionalResult[Member]: ...

    async def find_by_team_id(self, team_id: int) -> List[Member]: ...

    async def count_by_username(self, username: str) -> int: ...

    # Declared queries
    @Query("SELECT m FROM Member m WHERE m.username = :username AND m.age = :age")
    async def find_user(self, username: str, age: int) -> List[Member]: ...

    @Query("SELECT m.username FROM Member m")
    async def find_username_list(self) -> List[str]: ...

    @Query(
        """
        SELECT new MemberDto(m.id, m.username, t.name)
        FROM Member m LEFT JOIN m.team t
        """,
        projection=MemberDto,
    )
    async def find_member_dto(self) -> List[MemberDto]: ...

    @Query("SELECT m FROM Member m WHERE m.username IN :names")
    async def find_by_names(self, names: List[str]) -> List[Member]: ...

    @Query(
        """
        SELECT m FROM Member m
        WHERE m.age >= :min_age
        ORDER BY m.age DESC
        """
    )
    async def find_by_min_age_paged(
        self, min_age: int, limit: int = None, offset: int = None
    ) -> List[Member]: ...
