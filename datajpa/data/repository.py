import collections.abc
import functools
import inspect
import typing
from typing import Any, Callable, Dict, List, Optional

from datajpa.core.logging import get_logger
from datajpa.data.adapters.base import DatabaseAdapter
from datajpa.data.entity import get_entity_metadata, resolve_reference
from datajpa.data.query import Query, QueryOperation, ResultShape
from datajpa.data.query_decorators import compile_query
from datajpa.data.query_parser import is_derived_query_name, parse_method_name
from datajpa.data.result import OptionalResult
from datajpa.data.types import EntityMetadata
from datajpa.exceptions import (
    DatabaseNotInitializedException,
    EntityNotFoundException,
    InvalidStateException,
    MultipleResultsException,
    QueryException,
)

logger = get_logger("data.repository")

_database_adapter: Optional[DatabaseAdapter] = None

PAGING_PARAMETERS = ("limit", "offset")


def set_database_adapter(adapter: Optional[DatabaseAdapter]) -> None:
    """Install the adapter used by repositories constructed without one."""
    global _database_adapter
    _database_adapter = adapter


def get_database_adapter() -> DatabaseAdapter:
    if _database_adapter is None:
        raise DatabaseNotInitializedException()
    return _database_adapter


class _RepositoryBase:
    """Built-in CRUD operations mixed into every @CrudRepository class."""

    __entity__: type
    __entity_metadata__: EntityMetadata

    def __init__(self, adapter: Optional[DatabaseAdapter] = None):
        self._adapter = adapter

    @property
    def adapter(self) -> DatabaseAdapter:
        if self._adapter is not None:
            return self._adapter
        return get_database_adapter()

    def get_connection(self):
        """
        Transactional connection for hand-written queries.

        Only the SQLAlchemy adapter has one:

            async with self.get_connection() as conn:
                result = await conn.execute(select(...))
        """
        return self.adapter.get_connection()

    async def insert(self, entity: Any) -> Any:
        """
        Store a new entity and assign its id.

        Returns the same instance, now carrying its id.

        Raises:
            InvalidStateException: If the entity already has an id, or
                references an entity that is not stored.
        """
        meta = self.__entity_metadata__
        if meta.get_id(entity) is not None:
            raise InvalidStateException(
                f"{meta.entity_name} already has id {meta.get_id(entity)!r}; "
                "use save() to update a stored entity"
            )

        await self._check_references(entity)
        entity_id = await self.adapter.insert(meta, meta.to_row(entity, include_id=False))
        meta.set_id(entity, entity_id)
        logger.debug(f"Inserted {meta.entity_name} id={entity_id}")
        return entity

    async def save(self, entity: Any) -> Any:
        """
        Insert the entity when it has no id, otherwise update it in place.

        On update only references that changed are checked, so a member of
        a deleted team can still be saved.

        Raises:
            EntityNotFoundException: If the entity has an id that is not stored.
            InvalidStateException: If a changed reference points at nothing.
        """
        meta = self.__entity_metadata__
        entity_id = meta.get_id(entity)
        if entity_id is None:
            return await self.insert(entity)

        stored = await self.adapter.find_by_id(meta, entity_id)
        if stored is None:
            raise EntityNotFoundException(meta.entity_name, entity_id)

        await self._check_references(entity, stored)
        updated = await self.adapter.update(meta, entity_id, meta.to_row(entity))
        if not updated:
            raise EntityNotFoundException(meta.entity_name, entity_id)
        return entity

    async def save_all(self, entities: List[Any]) -> List[Any]:
        return [await self.save(entity) for entity in entities]

    async def find_by_id(self, entity_id: Any) -> OptionalResult:
        meta = self.__entity_metadata__
        row = await self.adapter.find_by_id(meta, entity_id)
        if row is None:
            return OptionalResult.empty()
        return OptionalResult.of(meta.from_row(row))

    async def exists_by_id(self, entity_id: Any) -> bool:
        return await self.adapter.exists_by_id(self.__entity_metadata__, entity_id)

    async def find_all(
        self, page: Optional[int] = None, size: Optional[int] = None
    ) -> List[Any]:
        """
        Return every stored entity, optionally one page of ``size`` rows.

        Raises:
            QueryException: If ``page`` is given without ``size``.
        """
        meta = self.__entity_metadata__
        if page is not None and size is None:
            raise QueryException("find_all(page=...) requires size")
        limit = offset = None
        if size is not None:
            limit = size
            offset = (page or 0) * size
        rows = await self.adapter.find_all(meta, limit=limit, offset=offset)
        return [meta.from_row(row) for row in rows]

    async def delete(self, entity: Any) -> None:
        """
        Raises:
            EntityNotFoundException: If the entity has no id or is not stored.
        """
        await self.delete_by_id(self.__entity_metadata__.get_id(entity))

    async def delete_by_id(self, entity_id: Any) -> None:
        meta = self.__entity_metadata__
        if entity_id is None or not await self.adapter.delete_by_id(meta, entity_id):
            raise EntityNotFoundException(meta.entity_name, entity_id)
        logger.debug(f"Deleted {meta.entity_name} id={entity_id}")

    async def delete_all(self) -> int:
        return await self.adapter.delete_all(self.__entity_metadata__)

    async def count(self) -> int:
        return await self.adapter.count(self.__entity_metadata__)

    async def _check_references(
        self, entity: Any, stored: Optional[Dict[str, Any]] = None
    ) -> None:
        # An unchanged reference may dangle after its target was deleted.
        meta = self.__entity_metadata__
        for relation in meta.relations():
            target_id = getattr(entity, relation.name)
            if target_id is None:
                continue
            if stored is not None and stored.get(relation.name) == target_id:
                continue
            target = resolve_reference(relation)
            if not await self.adapter.exists_by_id(target, target_id):
                raise InvalidStateException(
                    f"{meta.entity_name}.{relation.name} references "
                    f"{target.entity_name} id {target_id!r}, which is not stored"
                )

    async def _run_query(self, query: Query) -> Any:
        result = await self.adapter.execute_query(query)
        if query.operation != QueryOperation.FIND:
            return result

        if query.result_shape == ResultShape.LIST:
            return list(result)

        if len(result) > 1:
            raise MultipleResultsException(query.method_name, len(result))

        value = result[0] if result else None
        if query.result_shape == ResultShape.OPTIONAL:
            return OptionalResult.of_nullable(value)
        return value


def CrudRepository(entity: type):
    """
    Turn a class into a repository for ``entity``.

    Adds insert/save/find_by_id/find_all/delete/count and friends, and
    implements two kinds of declared methods:

    - methods decorated with @Query run the declared query;
    - methods whose name follows the derived-query grammar
      (find_by_..., count_by_..., exists_by_...) and whose body is only
      ``...``, ``pass`` or a docstring run the query the name describes.

    Any other method, whatever its name, is kept as written.

    Find queries return a list, a single value (None when nothing matches)
    or an OptionalResult, chosen by the return annotation:

        async def find_list_by_username(self, username: str) -> List[Member]: ...
        async def find_member_by_username(self, username: str) -> Member: ...
        async def find_optional_by_username(self, username: str) -> OptionalResult[Member]: ...

    Every query is compiled when the decorator runs, so a bad method name
    or query text fails at import time.
    """
    metadata = get_entity_metadata(entity)

    def decorator(cls):
        namespace = {
            "__entity__": entity,
            "__entity_metadata__": metadata,
            "__module__": cls.__module__,
            "__qualname__": cls.__qualname__,
            "__doc__": cls.__doc__,
        }

        for name, member in list(vars(cls).items()):
            if not inspect.isfunction(member):
                continue

            declaration = getattr(member, "__datajpa_query__", None)
            if declaration is None and not (
                is_derived_query_name(name) and _is_stub(member)
            ):
                continue

            shape = _result_shape(member)
            if declaration is not None:
                query = compile_query(declaration, metadata, name, shape)
            else:
                query = parse_method_name(name, metadata, shape)

            _check_arity(member, query, derived=declaration is None)
            namespace[name] = _query_method(member, query)
            logger.debug(f"{cls.__name__}.{name} -> {query.operation.value} {metadata.entity_name}")

        return type(cls.__name__, (cls, _RepositoryBase), namespace)

    return decorator


def _query_method(func: Callable, query: Query) -> Callable:
    signature = inspect.signature(func)

    @functools.wraps(func)
    async def method(self, *args, **kwargs):
        try:
            bound = signature.bind(self, *args, **kwargs)
        except TypeError as e:
            raise QueryException(f"{func.__name__}: {e}") from e
        bound.apply_defaults()

        arguments = dict(bound.arguments)
        arguments.pop(next(iter(signature.parameters)))
        limit = arguments.pop("limit", None)
        offset = arguments.pop("offset", None)

        bound_query = query.bind(
            positional=list(arguments.values()), named=arguments
        ).with_page(limit, offset)

        if (
            query.operation == QueryOperation.FIND
            and query.result_shape != ResultShape.LIST
            and bound_query.limit is None
        ):
            # Two rows are enough to detect a cardinality violation.
            bound_query = bound_query.with_page(2, None)

        return await self._run_query(bound_query)

    return method


def _query_arguments(func: Callable) -> List[str]:
    params = list(inspect.signature(func).parameters)[1:]
    return [p for p in params if p not in PAGING_PARAMETERS]


def _check_arity(func: Callable, query: Query, derived: bool) -> None:
    arguments = _query_arguments(func)
    parameters = query.parameters

    if derived:
        if len(arguments) != len(parameters):
            raise QueryException(
                f"Method '{func.__name__}' takes {len(arguments)} argument(s) "
                f"but its name requires {len(parameters)}"
            )
        return

    for param in parameters:
        if param.name is not None and param.name not in arguments:
            raise QueryException(
                f"Method '{func.__name__}' has no argument named '{param.name}' "
                "used by its @Query"
            )
        if param.position is not None and param.position > len(arguments):
            raise QueryException(
                f"Method '{func.__name__}' has no argument at position "
                f"?{param.position} used by its @Query"
            )


def _result_shape(func: Callable) -> ResultShape:
    """Pick LIST, SINGLE or OPTIONAL from the method's return annotation."""
    annotation = inspect.signature(func).return_annotation
    if annotation is inspect.Signature.empty or annotation is None:
        return ResultShape.LIST

    if isinstance(annotation, str):
        text = annotation.replace("typing.", "").strip()
        if text.startswith(("List", "list", "Sequence", "Collection", "Iterable")):
            return ResultShape.LIST
        if text.startswith("OptionalResult"):
            return ResultShape.OPTIONAL
        if text in ("int", "bool"):
            return ResultShape.LIST
        return ResultShape.SINGLE

    origin = typing.get_origin(annotation) or annotation
    if origin is OptionalResult:
        return ResultShape.OPTIONAL
    if origin in (list, tuple, set, frozenset) or _is_abc_collection(origin):
        return ResultShape.LIST
    if origin in (int, bool):
        return ResultShape.LIST
    return ResultShape.SINGLE


def _is_abc_collection(origin: Any) -> bool:
    return origin in (
        collections.abc.Sequence,
        collections.abc.Collection,
        collections.abc.Iterable,
    )


def _stub(self):
    pass


async def _async_stub(self):
    pass


def _documented_stub(self):
    """Stub."""


async def _documented_async_stub(self):
    """Stub."""


def _is_stub(func: Callable) -> bool:
    """True when the body is only ``...``, ``pass`` or a docstring."""
    if inspect.iscoroutinefunction(func):
        references = (_async_stub, _documented_async_stub)
    else:
        references = (_stub, _documented_stub)

    code = func.__code__
    for reference in references:
        expected = reference.__code__
        if (
            code.co_code == expected.co_code
            and code.co_names == expected.co_names
            and _constants(func) == _constants(reference)
        ):
            return True
    return False


def _constants(func: Callable) -> tuple:
    doc = func.__doc__
    return tuple(c for c in func.__code__.co_consts if doc is None or c is not doc)
