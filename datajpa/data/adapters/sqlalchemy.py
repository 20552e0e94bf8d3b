from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    Time,
    and_,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from datajpa.core.logging import get_logger
from datajpa.data.adapters.base import DatabaseAdapter
from datajpa.data.entity import get_entity_metadata, resolve_reference
from datajpa.data.query import ComparisonOperator, Query, QueryCondition, QueryOperation
from datajpa.data.types import EntityMetadata, FieldMetadata

logger = get_logger("data.sqlalchemy")

DB_TYPE_MAP = {
    "INTEGER": Integer,
    "BIGINT": BigInteger,
    "FLOAT": Float,
    "BOOLEAN": Boolean,
    "TIMESTAMP": DateTime,
    "DATE": Date,
    "TIME": Time,
    "BLOB": LargeBinary,
    "TEXT": Text,
}


class SQLAlchemyAdapter(DatabaseAdapter):
    """
    Async SQLAlchemy Core backend.

    Tables are built from entity metadata on demand. SQLite tables use
    AUTOINCREMENT so a deleted highest id is never handed out again.
    """

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.metadata = MetaData()
        self._tables: Dict[type, Table] = {}

    async def connect(
        self,
        url: Optional[str] = None,
        echo: bool = False,
        pool_size: Optional[int] = None,
        max_overflow: Optional[int] = None,
        pool_timeout: Optional[int] = None,
        pool_recycle: Optional[int] = None,
        enable_pooling: bool = True,
        **options,
    ) -> None:
        """
        Create the async engine.

        SQLite in-memory databases share one connection through StaticPool so
        every session sees the same data; other SQLite files skip pooling.
        """
        if not url:
            raise ValueError("SQLAlchemyAdapter.connect() requires a database url")

        engine_options: Dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite"):
            if ":memory:" in url or url.rstrip("/").endswith(":"):
                engine_options["poolclass"] = StaticPool
                engine_options["connect_args"] = {"check_same_thread": False}
            else:
                engine_options["poolclass"] = NullPool
        elif not enable_pooling:
            engine_options["poolclass"] = NullPool
        else:
            for key, value in (
                ("pool_size", pool_size),
                ("max_overflow", max_overflow),
                ("pool_timeout", pool_timeout),
                ("pool_recycle", pool_recycle),
            ):
                if value is not None:
                    engine_options[key] = value

        engine_options.update(options)
        self.engine = create_async_engine(url, **engine_options)
        logger.info(f"Connected to database {self.engine.url.render_as_string(hide_password=True)}")

    async def disconnect(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            logger.info("Database connection closed")

    @asynccontextmanager
    async def get_connection(self):
        """Transactional connection for hand-written SQLAlchemy queries."""
        if self.engine is None:
            raise RuntimeError("SQLAlchemyAdapter is not connected")
        async with self.engine.begin() as conn:
            yield conn

    def get_table(self, entity_class: type) -> Table:
        table = self._tables.get(entity_class)
        if table is None:
            table = self._build_table(get_entity_metadata(entity_class))
            self._tables[entity_class] = table
        return table

    def _build_table(self, metadata: EntityMetadata) -> Table:
        columns = [self._build_column(field) for field in metadata.fields.values()]
        return Table(
            metadata.table_name,
            self.metadata,
            *columns,
            sqlite_autoincrement=True,
        )

    def _build_column(self, field: FieldMetadata) -> Column:
        args: List[Any] = [field.name, _column_type(field)]
        if field.references is not None:
            target = resolve_reference(field)
            args.append(
                ForeignKey(
                    f"{target.table_name}.{target.primary_key_field}",
                    ondelete="SET NULL",
                )
            )

        kwargs: Dict[str, Any] = {}
        if field.primary_key:
            kwargs["primary_key"] = True
            kwargs["autoincrement"] = True
        else:
            kwargs["nullable"] = field.nullable
            kwargs["unique"] = field.unique
            kwargs["index"] = field.index
        return Column(*args, **kwargs)

    async def create_table_if_not_exists(self, metadata: EntityMetadata) -> None:
        # Referenced tables are created first so foreign keys resolve.
        tables = [
            self.get_table(resolve_reference(relation).entity_class)
            for relation in metadata.relations()
        ]
        tables.append(self.get_table(metadata.entity_class))
        async with self.get_connection() as conn:
            await conn.run_sync(
                lambda sync_conn: self.metadata.create_all(
                    sync_conn, tables=tables, checkfirst=True
                )
            )
        logger.debug(f"Ensured table {metadata.table_name}")

    async def insert(self, metadata: EntityMetadata, values: Dict[str, Any]) -> Any:
        table = self.get_table(metadata.entity_class)
        values = {
            k: v for k, v in values.items() if k != metadata.primary_key_field
        }
        try:
            async with self.get_connection() as conn:
                result = await conn.execute(insert(table).values(**values))
                return result.inserted_primary_key[0]
        except SQLAlchemyError as e:
            logger.error(f"Insert into {metadata.table_name} failed: {e}")
            raise

    async def update(
        self, metadata: EntityMetadata, entity_id: Any, values: Dict[str, Any]
    ) -> bool:
        table = self.get_table(metadata.entity_class)
        pk = table.c[metadata.primary_key_field]
        values = {
            k: v for k, v in values.items() if k != metadata.primary_key_field
        }
        try:
            async with self.get_connection() as conn:
                result = await conn.execute(
                    update(table).where(pk == entity_id).values(**values)
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Update of {metadata.table_name} id={entity_id} failed: {e}")
            raise

    async def find_by_id(
        self, metadata: EntityMetadata, entity_id: Any
    ) -> Optional[Dict[str, Any]]:
        table = self.get_table(metadata.entity_class)
        pk = table.c[metadata.primary_key_field]
        async with self.get_connection() as conn:
            result = await conn.execute(select(table).where(pk == entity_id))
            row = result.first()
            return dict(row._mapping) if row is not None else None

    async def find_all(
        self,
        metadata: EntityMetadata,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        table = self.get_table(metadata.entity_class)
        query = select(table)
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        async with self.get_connection() as conn:
            result = await conn.execute(query)
            return [dict(row._mapping) for row in result.fetchall()]

    async def delete_by_id(self, metadata: EntityMetadata, entity_id: Any) -> bool:
        table = self.get_table(metadata.entity_class)
        pk = table.c[metadata.primary_key_field]
        async with self.get_connection() as conn:
            result = await conn.execute(delete(table).where(pk == entity_id))
            return result.rowcount > 0

    async def delete_all(self, metadata: EntityMetadata) -> int:
        table = self.get_table(metadata.entity_class)
        async with self.get_connection() as conn:
            result = await conn.execute(delete(table))
            return result.rowcount

    async def count(self, metadata: EntityMetadata) -> int:
        table = self.get_table(metadata.entity_class)
        async with self.get_connection() as conn:
            result = await conn.execute(select(func.count()).select_from(table))
            return result.scalar_one()

    async def exists_by_id(self, metadata: EntityMetadata, entity_id: Any) -> bool:
        table = self.get_table(metadata.entity_class)
        pk = table.c[metadata.primary_key_field]
        async with self.get_connection() as conn:
            result = await conn.execute(select(pk).where(pk == entity_id).limit(1))
            return result.first() is not None

    async def execute_query(self, query: Query) -> Any:
        metadata = get_entity_metadata(query.entity)
        root = self.get_table(metadata.entity_class)
        sources = {None: root}

        from_clause = root
        for join in query.joins:
            target_meta = get_entity_metadata(join.entity)
            target = self.get_table(join.entity).alias(join.alias)
            sources[join.alias] = target
            on = root.c[join.field] == target.c[target_meta.primary_key_field]
            from_clause = from_clause.join(target, on, isouter=join.outer)

        def column(ref):
            return sources[ref.alias].c[ref.field]

        where = [_condition(column(c.field), c) for c in query.conditions]

        if query.operation == QueryOperation.COUNT:
            statement = select(func.count()).select_from(from_clause)
        elif query.operation == QueryOperation.EXISTS:
            statement = select(root.c[metadata.primary_key_field]).select_from(from_clause).limit(1)
        elif query.projection is not None:
            statement = select(*[column(ref) for ref in query.projection.columns]).select_from(from_clause)
        else:
            statement = select(root).select_from(from_clause)

        if where:
            statement = statement.where(and_(*where))

        if query.operation == QueryOperation.FIND:
            for order in query.order_by:
                col = column(order.field)
                statement = statement.order_by(col.desc() if order.descending else col.asc())
            if query.limit is not None:
                statement = statement.limit(query.limit)
            if query.offset:
                statement = statement.offset(query.offset)

        logger.debug(f"Executing {query.method_name or 'query'}: {statement}")
        async with self.get_connection() as conn:
            result = await conn.execute(statement)

            if query.operation == QueryOperation.COUNT:
                return result.scalar_one()
            if query.operation == QueryOperation.EXISTS:
                return result.first() is not None

            rows = result.fetchall()

        if query.projection is not None:
            return [query.projection.build(list(row)) for row in rows]
        return [metadata.from_row(dict(row._mapping)) for row in rows]


def _column_type(field: FieldMetadata):
    db_type = field.db_type.upper()
    if db_type.startswith("VARCHAR"):
        return String(field.max_length or 255)
    return DB_TYPE_MAP.get(db_type, String(255))


def _condition(column, condition: QueryCondition):
    operator = condition.operator
    value = condition.value.value if condition.value is not None else None

    if operator == ComparisonOperator.EQ:
        return column.is_(None) if value is None else column == value
    if operator == ComparisonOperator.NE:
        return column.is_not(None) if value is None else column != value
    if operator == ComparisonOperator.GT:
        return column > value
    if operator == ComparisonOperator.GTE:
        return column >= value
    if operator == ComparisonOperator.LT:
        return column < value
    if operator == ComparisonOperator.LTE:
        return column <= value
    if operator == ComparisonOperator.IN:
        return column.in_(list(value))
    if operator == ComparisonOperator.NOT_IN:
        return column.not_in(list(value))
    if operator == ComparisonOperator.LIKE:
        return column.like(value)
    if operator == ComparisonOperator.CONTAINING:
        return column.contains(value, autoescape=True)
    if operator == ComparisonOperator.STARTING_WITH:
        return column.startswith(value, autoescape=True)
    if operator == ComparisonOperator.ENDING_WITH:
        return column.endswith(value, autoescape=True)
    if operator == ComparisonOperator.IS_NULL:
        return column.is_(None)
    if operator == ComparisonOperator.IS_NOT_NULL:
        return column.is_not(None)
    raise ValueError(f"Unsupported operator {operator}")
