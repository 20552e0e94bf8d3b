from enum import Enum


class DatabaseAdapter(str, Enum):
    """Supported database adapter backends."""

    SQLALCHEMY = "sqlalchemy"
    MEMORY = "memory"
