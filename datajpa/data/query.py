"""
Typed query objects.

Derived method names and @Query text are both compiled into a Query once,
when the repository class is declared. A call only binds argument values
into the compiled Query before handing it to the database adapter.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from datajpa.exceptions import QueryException


class QueryOperation(str, Enum):
    FIND = "find"
    COUNT = "count"
    EXISTS = "exists"


class ResultShape(str, Enum):
    """How a find query's rows are handed back to the caller."""

    LIST = "list"  # empty list when nothing matches
    SINGLE = "single"  # None when nothing matches
    OPTIONAL = "optional"  # empty OptionalResult when nothing matches


class ComparisonOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "not_in"
    LIKE = "like"
    CONTAINING = "containing"
    STARTING_WITH = "starting_with"
    ENDING_WITH = "ending_with"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"

    @property
    def arity(self) -> int:
        """Number of arguments the operator consumes."""
        if self in (ComparisonOperator.IS_NULL, ComparisonOperator.IS_NOT_NULL):
            return 0
        return 1


@dataclass(frozen=True)
class FieldRef:
    """A field of the root entity (alias None) or of a joined entity."""

    field: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class Parameter:
    """Placeholder for a call argument, by name (:name) or 1-based position (?1)."""

    name: Optional[str] = None
    position: Optional[int] = None


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class QueryCondition:
    field: FieldRef
    operator: ComparisonOperator
    value: Union[Parameter, Literal, None] = None


@dataclass(frozen=True)
class Join:
    """Join from a root ManyToOne field to the referenced entity."""

    alias: str
    field: str
    entity: type
    outer: bool = False


@dataclass(frozen=True)
class OrderBy:
    field: FieldRef
    descending: bool = False


@dataclass(frozen=True)
class Projection:
    """
    Select columns instead of the root entity.

    With a target the columns are passed positionally to target(...);
    without one a single column yields bare values and several yield tuples.
    """

    columns: Sequence[FieldRef]
    target: Optional[type] = None

    def build(self, values: Sequence[Any]) -> Any:
        if self.target is not None:
            return self.target(*values)
        if len(self.columns) == 1:
            return values[0]
        return tuple(values)


@dataclass(frozen=True)
class Query:
    entity: type
    operation: QueryOperation = QueryOperation.FIND
    conditions: Sequence[QueryCondition] = ()
    joins: Sequence[Join] = ()
    projection: Optional[Projection] = None
    order_by: Sequence[OrderBy] = ()
    result_shape: ResultShape = ResultShape.LIST
    limit: Optional[int] = None
    offset: Optional[int] = None
    method_name: str = ""

    @property
    def parameters(self) -> List[Parameter]:
        return [c.value for c in self.conditions if isinstance(c.value, Parameter)]

    def bind(
        self,
        positional: Sequence[Any] = (),
        named: Optional[Dict[str, Any]] = None,
    ) -> "Query":
        """
        Return a copy whose parameters are replaced by literal values.

        Named parameters are looked up in ``named``; positional ones (?1 or
        derived-query order) index into ``positional``.
        """
        named = named or {}
        bound = []
        for condition in self.conditions:
            value = condition.value
            if isinstance(value, Parameter):
                value = Literal(self._resolve(value, positional, named))
            bound.append(dataclasses.replace(condition, value=value))
        return dataclasses.replace(self, conditions=tuple(bound))

    def _resolve(self, param: Parameter, positional, named) -> Any:
        if param.name is not None:
            if param.name not in named:
                raise QueryException(
                    f"Query method '{self.method_name}' has no argument named '{param.name}'"
                )
            return named[param.name]

        index = param.position - 1
        if index < 0 or index >= len(positional):
            raise QueryException(
                f"Query method '{self.method_name}' has no argument at position {param.position}"
            )
        return positional[index]

    def with_page(self, limit: Optional[int], offset: Optional[int]) -> "Query":
        return dataclasses.replace(
            self,
            limit=limit if limit is not None else self.limit,
            offset=offset if offset is not None else self.offset,
        )


def join_for(query: Query, alias: Optional[str]) -> Optional[Join]:
    if alias is None:
        return None
    for join in query.joins:
        if join.alias == alias:
            return join
    return None
