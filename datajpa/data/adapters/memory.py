import itertools
import re
import threading
from typing import Any, Dict, Iterator, List, Optional

from datajpa.core.logging import get_logger
from datajpa.data.adapters.base import DatabaseAdapter
from datajpa.data.entity import get_entity_metadata
from datajpa.data.query import (
    ComparisonOperator,
    FieldRef,
    Query,
    QueryCondition,
    QueryOperation,
)
from datajpa.data.types import EntityMetadata

logger = get_logger("data.memory")

# Identity sequences are process-wide: two adapters never hand out the same
# id for one entity type, and ids are never reused after a delete.
_sequences: Dict[type, Iterator[int]] = {}
_sequence_lock = threading.Lock()


def next_identity(entity_class: type) -> int:
    with _sequence_lock:
        sequence = _sequences.get(entity_class)
        if sequence is None:
            sequence = itertools.count(1)
            _sequences[entity_class] = sequence
        return next(sequence)


class InMemoryAdapter(DatabaseAdapter):
    """
    Dict-backed storage, one table per entity class.

    None of the coroutines await internally, so each operation runs to
    completion on the event loop before another can start.
    """

    def __init__(self):
        self._tables: Dict[type, Dict[Any, Dict[str, Any]]] = {}
        self.connected = False

    async def connect(self, url: Optional[str] = None, **options) -> None:
        self.connected = True
        logger.info("In-memory database adapter connected")

    async def disconnect(self) -> None:
        self._tables.clear()
        self.connected = False
        logger.info("In-memory database adapter disconnected")

    async def create_table_if_not_exists(self, metadata: EntityMetadata) -> None:
        if metadata.entity_class not in self._tables:
            self._tables[metadata.entity_class] = {}
            logger.debug(f"Created in-memory table {metadata.table_name}")

    def _table(self, entity_class: type) -> Dict[Any, Dict[str, Any]]:
        return self._tables.setdefault(entity_class, {})

    async def insert(self, metadata: EntityMetadata, values: Dict[str, Any]) -> Any:
        entity_id = next_identity(metadata.entity_class)
        row = dict(values)
        row[metadata.primary_key_field] = entity_id
        self._table(metadata.entity_class)[entity_id] = row
        return entity_id

    async def update(
        self, metadata: EntityMetadata, entity_id: Any, values: Dict[str, Any]
    ) -> bool:
        table = self._table(metadata.entity_class)
        if entity_id not in table:
            return False
        row = dict(values)
        row[metadata.primary_key_field] = entity_id
        table[entity_id] = row
        return True

    async def find_by_id(
        self, metadata: EntityMetadata, entity_id: Any
    ) -> Optional[Dict[str, Any]]:
        row = self._table(metadata.entity_class).get(entity_id)
        return dict(row) if row is not None else None

    async def find_all(
        self,
        metadata: EntityMetadata,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        rows = [dict(row) for row in self._table(metadata.entity_class).values()]
        return _page(rows, limit, offset)

    async def delete_by_id(self, metadata: EntityMetadata, entity_id: Any) -> bool:
        return self._table(metadata.entity_class).pop(entity_id, None) is not None

    async def delete_all(self, metadata: EntityMetadata) -> int:
        table = self._table(metadata.entity_class)
        count = len(table)
        table.clear()
        return count

    async def count(self, metadata: EntityMetadata) -> int:
        return len(self._table(metadata.entity_class))

    async def exists_by_id(self, metadata: EntityMetadata, entity_id: Any) -> bool:
        return entity_id in self._table(metadata.entity_class)

    async def execute_query(self, query: Query) -> Any:
        metadata = get_entity_metadata(query.entity)
        contexts = [
            context
            for context in self._join(query, metadata)
            if all(_matches(condition, context) for condition in query.conditions)
        ]

        if query.operation == QueryOperation.COUNT:
            return len(contexts)
        if query.operation == QueryOperation.EXISTS:
            return bool(contexts)

        for order in reversed(query.order_by):
            contexts.sort(
                key=lambda ctx, o=order: _sort_key(_value(o.field, ctx)),
                reverse=order.descending,
            )
        contexts = _page(contexts, query.limit, query.offset)

        if query.projection is not None:
            return [
                query.projection.build(
                    [_value(column, ctx) for column in query.projection.columns]
                )
                for ctx in contexts
            ]
        return [metadata.from_row(ctx[None]) for ctx in contexts]

    def _join(self, query: Query, metadata: EntityMetadata):
        """Yield one alias->row context per root row, dropping inner-join misses."""
        for row in self._table(metadata.entity_class).values():
            context = {None: row}
            keep = True
            for join in query.joins:
                target_id = row.get(join.field)
                joined = None
                if target_id is not None:
                    joined = self._table(join.entity).get(target_id)
                if joined is None and not join.outer:
                    keep = False
                    break
                context[join.alias] = joined
            if keep:
                yield context


def _value(ref: FieldRef, context: Dict[Optional[str], Optional[Dict[str, Any]]]) -> Any:
    row = context.get(ref.alias)
    if row is None:
        return None
    return row.get(ref.field)


def _matches(condition: QueryCondition, context) -> bool:
    """Evaluate a bound condition with SQL semantics: comparisons against NULL are false."""
    actual = _value(condition.field, context)
    operator = condition.operator
    expected = condition.value.value if condition.value is not None else None

    if operator == ComparisonOperator.IS_NULL:
        return actual is None
    if operator == ComparisonOperator.IS_NOT_NULL:
        return actual is not None
    if operator == ComparisonOperator.EQ and expected is None:
        return actual is None
    if operator == ComparisonOperator.NE and expected is None:
        return actual is not None
    if actual is None:
        return False

    if operator == ComparisonOperator.EQ:
        return actual == expected
    if operator == ComparisonOperator.NE:
        return actual != expected
    if operator == ComparisonOperator.GT:
        return actual > expected
    if operator == ComparisonOperator.GTE:
        return actual >= expected
    if operator == ComparisonOperator.LT:
        return actual < expected
    if operator == ComparisonOperator.LTE:
        return actual <= expected
    if operator == ComparisonOperator.IN:
        return actual in list(expected)
    if operator == ComparisonOperator.NOT_IN:
        return actual not in list(expected)
    if operator == ComparisonOperator.LIKE:
        return _like_to_regex(expected).fullmatch(str(actual)) is not None
    if operator == ComparisonOperator.CONTAINING:
        return str(expected) in str(actual)
    if operator == ComparisonOperator.STARTING_WITH:
        return str(actual).startswith(str(expected))
    if operator == ComparisonOperator.ENDING_WITH:
        return str(actual).endswith(str(expected))
    raise ValueError(f"Unsupported operator {operator}")


def _like_to_regex(pattern: str) -> "re.Pattern":
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def _sort_key(value: Any):
    # NULLs sort first, as in SQLite.
    return (value is not None, value)


def _page(items: List[Any], limit: Optional[int], offset: Optional[int]) -> List[Any]:
    start = offset or 0
    if limit is None:
        return items[start:]
    return items[start : start + limit]
