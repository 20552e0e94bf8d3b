from datajpa.config import ConfigurationProperties, get_config, reload_config
from datajpa.core.logging import configure_logging, get_logger
from datajpa.data import (
    Column,
    CrudRepository,
    Entity,
    Id,
    InMemoryAdapter,
    ManyToOne,
    OptionalResult,
    Query,
    SQLAlchemyAdapter,
    initialize_database,
    set_database_adapter,
)
from datajpa.exceptions import (
    DataJpaException,
    EntityNotFoundException,
    InvalidStateException,
    MultipleResultsException,
    QueryException,
)
from datajpa.version import get_version

__version__ = get_version()

__all__ = [
    # Configuration
    "ConfigurationProperties",
    "get_config",
    "reload_config",
    # Logging
    "configure_logging",
    "get_logger",
    # Data
    "Entity",
    "Id",
    "Column",
    "ManyToOne",
    "CrudRepository",
    "Query",
    "OptionalResult",
    "InMemoryAdapter",
    "SQLAlchemyAdapter",
    "initialize_database",
    "set_database_adapter",
    # Exceptions
    "DataJpaException",
    "InvalidStateException",
    "EntityNotFoundException",
    "MultipleResultsException",
    "QueryException",
]
