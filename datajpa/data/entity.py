import dataclasses
import re
import typing
from typing import Any, Dict, Optional, Union

from datajpa.core.logging import get_logger
from datajpa.data.types import (
    PYTHON_TO_DB_TYPE,
    ColumnInfo,
    EntityMetadata,
    FieldMetadata,
    column_info,
)
from datajpa.exceptions import EntityException

logger = get_logger("data.entity")

_entity_registry: Dict[type, EntityMetadata] = {}

_TYPE_NAMES = {t.__name__: t for t in PYTHON_TO_DB_TYPE}


def Entity(table: Optional[str] = None):
    """
    Register a dataclass as a persistent entity.

    Args:
        table: Table name; defaults to the pluralized snake_case class name

    Example:
        @Entity()
        @dataclass
        class Team:
            name: str = ""
            id: Optional[int] = Id()
    """

    def decorator(cls):
        if not dataclasses.is_dataclass(cls):
            raise EntityException(
                f"{cls.__name__} is not a dataclass. Apply @dataclass below @Entity()."
            )

        metadata = _build_metadata(cls, table or _table_name(cls.__name__))
        _entity_registry[cls] = metadata
        cls.__datajpa_entity__ = metadata
        logger.debug(f"Registered entity {cls.__name__} -> {metadata.table_name}")
        return cls

    return decorator


def _build_metadata(cls, table_name: str) -> EntityMetadata:
    fields: Dict[str, FieldMetadata] = {}
    primary_key = None

    for dc_field in dataclasses.fields(cls):
        info = column_info(dc_field) or ColumnInfo()
        python_type = _resolve_type(dc_field.type)

        is_pk = info.primary_key or (dc_field.name == "id" and primary_key is None)
        if is_pk:
            if primary_key is not None and info.primary_key:
                raise EntityException(
                    f"{cls.__name__} declares more than one primary key"
                )
            primary_key = dc_field.name

        relation = info.relation
        if info.references is not None and relation is None:
            relation = dc_field.name[:-3] if dc_field.name.endswith("_id") else dc_field.name

        default = dc_field.default
        if default is dataclasses.MISSING:
            default = None

        fields[dc_field.name] = FieldMetadata(
            name=dc_field.name,
            python_type=python_type,
            db_type=info.db_type or _db_type(python_type, info.max_length),
            primary_key=is_pk,
            auto_increment=is_pk,
            nullable=False if is_pk else info.nullable,
            unique=info.unique,
            index=info.index,
            default=default,
            max_length=info.max_length,
            references=info.references,
            relation=relation,
        )

    if primary_key is None:
        raise EntityException(
            f"{cls.__name__} must have a primary key. Declare 'id: Optional[int] = Id()'."
        )

    if fields[primary_key].python_type is not int:
        raise EntityException(
            f"{cls.__name__}.{primary_key} must be an integer primary key"
        )

    return EntityMetadata(
        entity_class=cls,
        table_name=table_name,
        fields=fields,
        primary_key_field=primary_key,
    )


def _resolve_type(annotation: Any) -> type:
    """Reduce an annotation (possibly a string or Optional[...]) to a plain type."""
    if isinstance(annotation, str):
        name = annotation.strip()
        match = re.fullmatch(r"(?:typing\.)?Optional\[(.+)\]", name)
        if match:
            name = match.group(1).strip()
        return _TYPE_NAMES.get(name, str)

    origin = typing.get_origin(annotation)
    if origin is Union:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return _resolve_type(args[0])

    if isinstance(annotation, type):
        return annotation
    return str


def _db_type(python_type: type, max_length: Optional[int]) -> str:
    if python_type is str and max_length:
        return f"VARCHAR({max_length})"
    return PYTHON_TO_DB_TYPE.get(python_type, "VARCHAR(255)")


def _table_name(class_name: str) -> str:
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", class_name).lower()
    if snake.endswith("y") and not snake.endswith(("ay", "ey", "oy", "uy")):
        return snake[:-1] + "ies"
    if snake.endswith(("s", "x", "ch", "sh")):
        return snake + "es"
    return snake + "s"


def get_entity_metadata(entity_class: type) -> EntityMetadata:
    metadata = _entity_registry.get(entity_class)
    if metadata is None:
        metadata = getattr(entity_class, "__datajpa_entity__", None)
    if metadata is None:
        raise EntityException(f"{entity_class!r} is not an @Entity")
    return metadata


def find_entity_by_name(name: str) -> Optional[EntityMetadata]:
    for metadata in _entity_registry.values():
        if metadata.entity_name == name:
            return metadata
    return None


def resolve_reference(field: FieldMetadata) -> EntityMetadata:
    """Resolve the target entity of a ManyToOne field."""
    target = field.references
    if isinstance(target, str):
        metadata = find_entity_by_name(target)
        if metadata is None:
            raise EntityException(
                f"Field '{field.name}' references unknown entity '{target}'"
            )
        return metadata
    return get_entity_metadata(target)


def is_entity(cls: Any) -> bool:
    return cls in _entity_registry or hasattr(cls, "__datajpa_entity__")


def get_all_entities() -> Dict[type, EntityMetadata]:
    return dict(_entity_registry)


def clear_entity_registry() -> None:
    _entity_registry.clear()
