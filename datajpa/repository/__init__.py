from datajpa.repository.member_repository import MemberRepository
from datajpa.repository.team_repository import TeamRepository

__all__ = ["MemberRepository", "TeamRepository"]
