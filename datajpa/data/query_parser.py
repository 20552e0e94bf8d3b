"""
Method-name query derivation.

    find_by_username_and_age_greater_than(username, age)
    find_list_by_username(username)
    count_by_age_less_than(age)
    find_by_age_greater_than_order_by_age_desc(age)

A name is a subject verb, an optional descriptor that is ignored
(``list``, ``member``, ``optional``), ``_by_``, criteria joined by ``_and_``
and an optional ``_order_by_`` clause. Each criterion is a field name
followed by an operator suffix; a bare field name means equality.
"""

import re
from typing import List, Optional, Tuple

from datajpa.data.query import (
    ComparisonOperator,
    FieldRef,
    OrderBy,
    Parameter,
    Query,
    QueryCondition,
    QueryOperation,
    ResultShape,
)
from datajpa.data.types import EntityMetadata
from datajpa.exceptions import QueryException

SUBJECTS = {
    "find": QueryOperation.FIND,
    "read": QueryOperation.FIND,
    "get": QueryOperation.FIND,
    "query": QueryOperation.FIND,
    "count": QueryOperation.COUNT,
    "exists": QueryOperation.EXISTS,
}

METHOD_PATTERN = re.compile(
    r"^(?P<subject>find|read|get|query|count|exists)(?:_[a-z0-9_]+?)??_by_(?P<criteria>.+)$"
)

OPERATOR_SUFFIXES = {
    "is": ComparisonOperator.EQ,
    "equals": ComparisonOperator.EQ,
    "not": ComparisonOperator.NE,
    "is_not": ComparisonOperator.NE,
    "greater_than": ComparisonOperator.GT,
    "greater_than_equal": ComparisonOperator.GTE,
    "less_than": ComparisonOperator.LT,
    "less_than_equal": ComparisonOperator.LTE,
    "in": ComparisonOperator.IN,
    "not_in": ComparisonOperator.NOT_IN,
    "like": ComparisonOperator.LIKE,
    "containing": ComparisonOperator.CONTAINING,
    "starting_with": ComparisonOperator.STARTING_WITH,
    "ending_with": ComparisonOperator.ENDING_WITH,
    "is_null": ComparisonOperator.IS_NULL,
    "is_not_null": ComparisonOperator.IS_NOT_NULL,
}


def is_derived_query_name(name: str) -> bool:
    return METHOD_PATTERN.match(name) is not None


def parse_method_name(
    name: str,
    metadata: EntityMetadata,
    result_shape: ResultShape = ResultShape.LIST,
) -> Query:
    """
    Compile a derived query method name into a Query.

    Raises:
        QueryException: If the name does not follow the derived-query grammar
            or references unknown fields or operators.
    """
    match = METHOD_PATTERN.match(name)
    if not match:
        raise QueryException(f"'{name}' is not a derived query method name")

    operation = SUBJECTS[match.group("subject")]
    criteria = match.group("criteria")

    order_by: List[OrderBy] = []
    if "_order_by_" in criteria:
        criteria, order_part = criteria.split("_order_by_", 1)
        order_by = _parse_order_by(name, order_part, metadata)

    conditions = []
    position = 1
    for part in criteria.split("_and_"):
        field_name, operator = _parse_criterion(name, part, metadata)
        value = None
        if operator.arity:
            value = Parameter(position=position)
            position += 1
        conditions.append(QueryCondition(FieldRef(field_name), operator, value))

    return Query(
        entity=metadata.entity_class,
        operation=operation,
        conditions=tuple(conditions),
        order_by=tuple(order_by),
        result_shape=result_shape,
        method_name=name,
    )


def _match_field(part: str, metadata: EntityMetadata) -> Optional[Tuple[str, str]]:
    """Split ``part`` into (field, remainder), preferring the longest field name."""
    for field_name in sorted(metadata.fields, key=len, reverse=True):
        if part == field_name:
            return field_name, ""
        if part.startswith(field_name + "_"):
            return field_name, part[len(field_name) + 1 :]
    return None


def _parse_criterion(
    method_name: str, part: str, metadata: EntityMetadata
) -> Tuple[str, ComparisonOperator]:
    matched = _match_field(part, metadata)
    if matched is None:
        raise QueryException(
            f"Method '{method_name}': '{part}' does not start with a field of "
            f"{metadata.entity_name} ({', '.join(metadata.fields)})"
        )

    field_name, suffix = matched
    if not suffix:
        return field_name, ComparisonOperator.EQ

    operator = OPERATOR_SUFFIXES.get(suffix)
    if operator is not None:
        return field_name, operator

    raise QueryException(
        f"Method '{method_name}': unknown operator '{suffix}' for field '{field_name}'"
    )


def _parse_order_by(
    method_name: str, order_part: str, metadata: EntityMetadata
) -> List[OrderBy]:
    order_by = []
    for part in order_part.split("_and_"):
        descending = False
        if part.endswith("_desc"):
            part, descending = part[: -len("_desc")], True
        elif part.endswith("_asc"):
            part = part[: -len("_asc")]

        if part not in metadata.fields:
            raise QueryException(
                f"Method '{method_name}': cannot order by unknown field '{part}'"
            )
        order_by.append(OrderBy(FieldRef(part), descending))
    return order_by
