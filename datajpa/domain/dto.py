from dataclasses import dataclass
from typing import Optional


@dataclass
class MemberDto:
    """Member joined with its team name; never persisted."""

    id: int
    username: str
    team_name: Optional[str] = None
