from datajpa.data import CrudRepository, OptionalResult
from datajpa.domain import Team


@CrudRepository(entity=Team)
class TeamRepository:
    """Repository for Team entities."""

    async def find_optional_by_name(self, name: str) -> OptionalResult[Team]: ...
