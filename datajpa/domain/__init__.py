from datajpa.domain.dto import MemberDto
from datajpa.domain.member import Member
from datajpa.domain.team import Team

__all__ = ["Member", "Team", "MemberDto"]
