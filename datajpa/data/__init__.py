from datajpa.config.properties import get_config
from datajpa.core.enums import DatabaseAdapter as DatabaseAdapterEnum
from datajpa.core.logging import get_logger
from datajpa.data.adapters.base import DatabaseAdapter
from datajpa.data.adapters.memory import InMemoryAdapter
from datajpa.data.adapters.sqlalchemy import SQLAlchemyAdapter
from datajpa.data.entity import Entity, get_all_entities, get_entity_metadata, is_entity
from datajpa.data.query import ComparisonOperator, QueryCondition, QueryOperation, ResultShape
from datajpa.data.query import Query as QueryObject
from datajpa.data.query_decorators import Query
from datajpa.data.repository import (
    CrudRepository,
    get_database_adapter,
    set_database_adapter,
)
from datajpa.data.result import OptionalResult
from datajpa.data.types import (
    Column,
    EntityMetadata,
    FieldMetadata,
    Id,
    ManyToOne,
)
from datajpa.exceptions import ConfigurationException

logger = get_logger("data")


async def initialize_database(config=None) -> DatabaseAdapter:
    """
    Create the configured adapter, connect it and create tables for all entities.

    Reads database.* keys from the configuration (application.yml,
    DATAJPA_* environment variables) and installs the adapter as the
    default for repositories.
    """
    config = config or get_config()

    adapter_type = config.get("database.adapter", DatabaseAdapterEnum.MEMORY.value)
    database_url = config.get("database.url")

    if adapter_type == DatabaseAdapterEnum.MEMORY:
        database_adapter = InMemoryAdapter()
        await database_adapter.connect()
    elif adapter_type == DatabaseAdapterEnum.SQLALCHEMY:
        if not database_url:
            raise ConfigurationException(
                "database.url is required when database.adapter is 'sqlalchemy'"
            )
        database_adapter = SQLAlchemyAdapter()
        await database_adapter.connect(
            database_url,
            echo=config.get_bool("database.echo"),
            pool_size=config.get("database.pool.size"),
            max_overflow=config.get("database.pool.max_overflow"),
            pool_timeout=config.get("database.pool.timeout"),
            pool_recycle=config.get("database.pool.recycle"),
            enable_pooling=config.get_bool("database.pool.enabled", True),
        )
    else:
        raise ConfigurationException(f"Unknown database adapter: {adapter_type}")

    set_database_adapter(database_adapter)

    for entity_class, entity_meta in get_all_entities().items():
        await database_adapter.create_table_if_not_exists(entity_meta)

    logger.info(
        f"Database initialized with {adapter_type} adapter "
        f"({len(get_all_entities())} entities)"
    )
    return database_adapter


__all__ = [
    # Entity
    "Entity",
    "get_entity_metadata",
    "get_all_entities",
    "is_entity",
    # Field markers
    "Id",
    "Column",
    "ManyToOne",
    # Metadata
    "EntityMetadata",
    "FieldMetadata",
    # Repository
    "CrudRepository",
    "OptionalResult",
    "set_database_adapter",
    "get_database_adapter",
    # Query
    "QueryObject",
    "QueryOperation",
    "QueryCondition",
    "ComparisonOperator",
    "ResultShape",
    "Query",
    # Adapters
    "DatabaseAdapter",
    "InMemoryAdapter",
    "SQLAlchemyAdapter",
    # Initialization
    "initialize_database",
]
