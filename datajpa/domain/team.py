from dataclasses import dataclass
from typing import Optional

from datajpa.data import Entity, Id


@Entity()
@dataclass
class Team:
    name: str = ""
    id: Optional[int] = Id()
