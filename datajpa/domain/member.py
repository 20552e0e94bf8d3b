from dataclasses import dataclass
from typing import Optional

from datajpa.data import Entity, Id, ManyToOne
from datajpa.domain.team import Team
from datajpa.exceptions import InvalidStateException


@Entity()
@dataclass
class Member:
    """
    A team member.

    Fields are ordered so that Member("AAA"), Member("AAA", 10) and
    Member("AAA", 10, team) work positionally. A Team given in place of
    team_id goes through change_team(); the id is assigned by the
    repository on insert.
    """

    username: str = ""
    age: int = 0
    team_id: Optional[int] = ManyToOne(Team)
    id: Optional[int] = Id()

    def __post_init__(self):
        if isinstance(self.team_id, Team):
            team, self.team_id = self.team_id, None
            self.change_team(team)

    def change_team(self, team: Optional[Team]) -> None:
        """Point this member at a stored team, or detach it with None."""
        if team is None:
            self.team_id = None
            return
        if team.id is None:
            raise InvalidStateException(
                f"Team '{team.name}' must be saved before members can join it"
            )
        self.team_id = team.id
