"""
@Query: explicitly declared queries.

The text is a small JPQL subset, compiled against entity metadata when the
repository class is declared:

    SELECT m FROM Member m WHERE m.username = :username AND m.age = :age
    SELECT m.username FROM Member m
    SELECT new MemberDto(m.id, m.username, t.name) FROM Member m LEFT JOIN m.team t
    SELECT m FROM Member m WHERE m.username IN :names ORDER BY m.age DESC
    SELECT COUNT(m) FROM Member m WHERE m.age > ?1

Only SELECT statements with AND-joined predicates are supported.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from datajpa.data.entity import find_entity_by_name, resolve_reference
from datajpa.data.query import (
    ComparisonOperator,
    FieldRef,
    Join,
    Literal,
    OrderBy,
    Parameter,
    Projection,
)
from datajpa.data.query import Query as QueryObject
from datajpa.data.query import QueryCondition, QueryOperation, ResultShape
from datajpa.data.types import EntityMetadata
from datajpa.exceptions import QueryException


@dataclass(frozen=True)
class QueryDeclaration:
    text: str
    projection: Optional[type] = None


def Query(text: str, projection: Optional[type] = None) -> Callable:
    """
    Declare the query a repository method runs.

    Args:
        text: JPQL-style SELECT statement
        projection: Class built from the selected columns of a
            ``SELECT new Name(...)`` or multi-column select

    Example:
        @Query("SELECT m FROM Member m WHERE m.username IN :names")
        async def find_by_names(self, names: List[str]) -> List[Member]: ...
    """

    def decorator(func):
        func.__datajpa_query__ = QueryDeclaration(text.strip(), projection)
        return func

    return decorator


_TOKEN_PATTERN = re.compile(
    r"""
    \s*(?:
        (?P<string>'(?:[^']|'')*')
      | (?P<named>:[A-Za-z_][A-Za-z0-9_]*)
      | (?P<positional>\?[0-9]+)
      | (?P<number>-?[0-9]+(?:\.[0-9]+)?)
      | (?P<op><>|!=|>=|<=|=|<|>)
      | (?P<punct>[(),])
      | (?P<word>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
    )
    """,
    re.VERBOSE,
)

_COMPARISONS = {
    "=": ComparisonOperator.EQ,
    "<>": ComparisonOperator.NE,
    "!=": ComparisonOperator.NE,
    ">": ComparisonOperator.GT,
    ">=": ComparisonOperator.GTE,
    "<": ComparisonOperator.LT,
    "<=": ComparisonOperator.LTE,
}


def tokenize(text: str) -> List[Tuple[str, str]]:
    tokens = []
    position = 0
    text = text.rstrip()
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if not match or match.end() == position:
            raise QueryException(
                f"Unexpected character {text[position:].lstrip()[:1]!r} in query: {text}"
            )
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


class _QueryCompiler:
    """Recursive-descent compiler for one @Query text."""

    def __init__(
        self,
        declaration: QueryDeclaration,
        root: EntityMetadata,
        method_name: str,
        result_shape: ResultShape,
    ):
        self.declaration = declaration
        self.method_name = method_name
        self.result_shape = result_shape
        self.tokens = tokenize(declaration.text)
        self.pos = 0
        self.root = root
        self.root_alias: Optional[str] = None
        self.aliases: Dict[str, EntityMetadata] = {}
        self.joins: List[Join] = []

    # Token helpers

    def _peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _peek_keyword(self, *keywords: str) -> bool:
        token = self._peek()
        return (
            token is not None
            and token[0] == "word"
            and token[1].upper() in keywords
        )

    def _next(self) -> Tuple[str, str]:
        token = self._peek()
        if token is None:
            self._fail("unexpected end of query")
        self.pos += 1
        return token

    def _expect_keyword(self, keyword: str) -> None:
        if not self._peek_keyword(keyword):
            found = self._peek()
            self._fail(f"expected {keyword} but found {found[1] if found else 'end of query'}")
        self.pos += 1

    def _expect_punct(self, value: str) -> None:
        kind, text = self._next()
        if kind != "punct" or text != value:
            self._fail(f"expected '{value}' but found '{text}'")

    def _expect_word(self) -> str:
        kind, text = self._next()
        if kind != "word":
            self._fail(f"expected an identifier but found '{text}'")
        return text

    def _fail(self, message: str):
        raise QueryException(
            f"Invalid @Query on '{self.method_name}': {message}. "
            f"Query: {self.declaration.text}"
        )

    # Grammar

    def compile(self) -> QueryObject:
        if not self._peek_keyword("SELECT"):
            if self._peek_keyword("UPDATE", "DELETE", "INSERT"):
                self._fail("only SELECT queries are supported")
            self._fail("query must start with SELECT")
        self.pos += 1

        select_start = self.pos
        self._skip_to_keyword("FROM")
        self._expect_keyword("FROM")
        self._parse_from()
        while self._peek_keyword("JOIN", "LEFT", "INNER"):
            self._parse_join()

        # Select list is resolved after FROM/JOIN so aliases are known.
        from_pos = self.pos
        self.pos = select_start
        operation, projection = self._parse_select()
        self.pos = from_pos

        conditions: List[QueryCondition] = []
        if self._peek_keyword("WHERE"):
            self.pos += 1
            conditions.append(self._parse_predicate())
            while self._peek_keyword("AND", "OR"):
                if self._peek_keyword("OR"):
                    self._fail("OR predicates are not supported")
                self.pos += 1
                conditions.append(self._parse_predicate())

        order_by: List[OrderBy] = []
        if self._peek_keyword("ORDER"):
            self.pos += 1
            self._expect_keyword("BY")
            order_by.append(self._parse_order())
            while self._peek() == ("punct", ","):
                self.pos += 1
                order_by.append(self._parse_order())

        if self._peek() is not None:
            self._fail(f"unexpected '{self._peek()[1]}'")

        return QueryObject(
            entity=self.root.entity_class,
            operation=operation,
            conditions=tuple(conditions),
            joins=tuple(self.joins),
            projection=projection,
            order_by=tuple(order_by),
            result_shape=self.result_shape,
            method_name=self.method_name,
        )

    def _skip_to_keyword(self, keyword: str) -> None:
        while not self._peek_keyword(keyword):
            self._next()

    def _parse_from(self) -> None:
        entity_name = self._expect_word()
        metadata = self._entity(entity_name)
        if metadata.entity_class is not self.root.entity_class:
            self._fail(
                f"FROM {entity_name} does not match repository entity {self.root.entity_name}"
            )
        self.root_alias = self._expect_word()
        self.aliases[self.root_alias] = self.root

    def _parse_join(self) -> None:
        outer = False
        if self._peek_keyword("LEFT"):
            self.pos += 1
            outer = True
            if self._peek_keyword("OUTER"):
                self.pos += 1
        elif self._peek_keyword("INNER"):
            self.pos += 1
        self._expect_keyword("JOIN")

        path = self._expect_word()
        alias, _, relation_name = path.partition(".")
        if alias != self.root_alias or not relation_name:
            self._fail(f"JOIN must navigate a relation of '{self.root_alias}', got '{path}'")

        relation = self.root.get_relation(relation_name)
        if relation is None:
            self._fail(f"{self.root.entity_name} has no relation '{relation_name}'")

        join_alias = self._expect_word()
        target = resolve_reference(relation)
        self.aliases[join_alias] = target
        self.joins.append(
            Join(
                alias=join_alias,
                field=relation.name,
                entity=target.entity_class,
                outer=outer,
            )
        )

    def _parse_select(self):
        if self._peek_keyword("DISTINCT"):
            self._fail("DISTINCT is not supported")

        if self._peek_keyword("COUNT"):
            self.pos += 1
            self._expect_punct("(")
            self._expect_word()
            self._expect_punct(")")
            return QueryOperation.COUNT, None

        target = self.declaration.projection
        if self._peek_keyword("NEW"):
            self.pos += 1
            class_name = self._expect_word().rsplit(".", 1)[-1]
            if target is None or target.__name__ != class_name:
                self._fail(f"pass projection={class_name} to @Query for 'new {class_name}(...)'")
            self._expect_punct("(")
            columns = self._parse_path_list()
            self._expect_punct(")")
            return QueryOperation.FIND, Projection(tuple(columns), target)

        token = self._peek()
        if token and token[0] == "word" and token[1] == self.root_alias:
            self.pos += 1
            return QueryOperation.FIND, None

        columns = self._parse_path_list()
        return QueryOperation.FIND, Projection(tuple(columns), target)

    def _parse_path_list(self) -> List[FieldRef]:
        columns = [self._parse_path(self._expect_word())]
        while self._peek() == ("punct", ","):
            self.pos += 1
            columns.append(self._parse_path(self._expect_word()))
        return columns

    def _parse_path(self, path: str) -> FieldRef:
        alias, _, field_name = path.partition(".")
        metadata = self.aliases.get(alias)
        if metadata is None or not field_name:
            self._fail(f"'{path}' is not a field path of a declared alias")

        if metadata.get_field(field_name) is None:
            relation = metadata.get_relation(field_name)
            if relation is None:
                self._fail(f"{metadata.entity_name} has no field '{field_name}'")
            field_name = relation.name

        return FieldRef(field_name, None if alias == self.root_alias else alias)

    def _parse_predicate(self) -> QueryCondition:
        field = self._parse_path(self._expect_word())

        if self._peek_keyword("IS"):
            self.pos += 1
            operator = ComparisonOperator.IS_NULL
            if self._peek_keyword("NOT"):
                self.pos += 1
                operator = ComparisonOperator.IS_NOT_NULL
            self._expect_keyword("NULL")
            return QueryCondition(field, operator)

        negated = False
        if self._peek_keyword("NOT"):
            self.pos += 1
            negated = True

        if self._peek_keyword("IN"):
            self.pos += 1
            operator = ComparisonOperator.NOT_IN if negated else ComparisonOperator.IN
            return QueryCondition(field, operator, self._parse_value(allow_list=True))

        if self._peek_keyword("LIKE"):
            self.pos += 1
            if negated:
                self._fail("NOT LIKE is not supported")
            return QueryCondition(field, ComparisonOperator.LIKE, self._parse_value())

        if negated:
            self._fail("NOT must be followed by IN")

        kind, text = self._next()
        if kind != "op":
            self._fail(f"expected a comparison operator after '{field.field}' but found '{text}'")
        return QueryCondition(field, _COMPARISONS[text], self._parse_value())

    def _parse_value(self, allow_list: bool = False):
        kind, text = self._next()
        if kind == "named":
            return Parameter(name=text[1:])
        if kind == "positional":
            return Parameter(position=int(text[1:]))
        if kind == "punct" and text == "(" and allow_list:
            values = [self._literal(self._next())]
            while self._peek() == ("punct", ","):
                self.pos += 1
                values.append(self._literal(self._next()))
            self._expect_punct(")")
            return Literal(tuple(values))
        return Literal(self._literal((kind, text)))

    def _literal(self, token: Tuple[str, str]) -> Any:
        kind, text = token
        if kind == "string":
            return text[1:-1].replace("''", "'")
        if kind == "number":
            return float(text) if "." in text else int(text)
        if kind == "word" and text.upper() in ("TRUE", "FALSE"):
            return text.upper() == "TRUE"
        if kind == "word" and text.upper() == "NULL":
            return None
        self._fail(f"expected a parameter or literal but found '{text}'")

    def _parse_order(self) -> OrderBy:
        field = self._parse_path(self._expect_word())
        descending = False
        if self._peek_keyword("DESC"):
            self.pos += 1
            descending = True
        elif self._peek_keyword("ASC"):
            self.pos += 1
        return OrderBy(field, descending)

    def _entity(self, name: str) -> EntityMetadata:
        if name == self.root.entity_name:
            return self.root
        metadata = find_entity_by_name(name)
        if metadata is None:
            self._fail(f"unknown entity '{name}'")
        return metadata


def compile_query(
    declaration: QueryDeclaration,
    root: EntityMetadata,
    method_name: str,
    result_shape: ResultShape = ResultShape.LIST,
) -> QueryObject:
    """
    Compile @Query text into a Query bound to the repository's entity.

    Raises:
        QueryException: If the text is outside the supported subset.
    """
    return _QueryCompiler(declaration, root, method_name, result_shape).compile()
