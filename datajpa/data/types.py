import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Union

METADATA_KEY = "datajpa"

PYTHON_TO_DB_TYPE = {
    int: "INTEGER",
    str: "VARCHAR(255)",
    float: "FLOAT",
    bool: "BOOLEAN",
    datetime: "TIMESTAMP",
    date: "DATE",
    time: "TIME",
    bytes: "BLOB",
}


@dataclass
class ColumnInfo:
    """Column options captured by the Id/Column/ManyToOne markers."""

    primary_key: bool = False
    nullable: bool = True
    unique: bool = False
    index: bool = False
    db_type: Optional[str] = None
    max_length: Optional[int] = None
    references: Optional[Union[type, str]] = None
    relation: Optional[str] = None


@dataclass
class FieldMetadata:
    """Resolved metadata for one entity field."""

    name: str
    python_type: type
    db_type: str
    primary_key: bool = False
    auto_increment: bool = False
    nullable: bool = True
    unique: bool = False
    index: bool = False
    default: Any = None
    max_length: Optional[int] = None
    references: Optional[Union[type, str]] = None
    relation: Optional[str] = None

    @property
    def is_relation(self) -> bool:
        return self.references is not None


@dataclass
class EntityMetadata:
    """Resolved metadata for an @Entity class."""

    entity_class: type
    table_name: str
    fields: Dict[str, FieldMetadata]
    primary_key_field: str

    @property
    def entity_name(self) -> str:
        return self.entity_class.__name__

    def get_primary_key(self) -> FieldMetadata:
        return self.fields[self.primary_key_field]

    def get_field(self, name: str) -> Optional[FieldMetadata]:
        return self.fields.get(name)

    def get_relation(self, name: str) -> Optional[FieldMetadata]:
        """Find a many-to-one field by relation name (``team``) or column name (``team_id``)."""
        for meta in self.fields.values():
            if meta.is_relation and name in (meta.relation, meta.name):
                return meta
        return None

    def relations(self) -> List[FieldMetadata]:
        return [meta for meta in self.fields.values() if meta.is_relation]

    def get_id(self, entity: Any) -> Any:
        return getattr(entity, self.primary_key_field)

    def set_id(self, entity: Any, value: Any) -> None:
        setattr(entity, self.primary_key_field, value)

    def to_row(self, entity: Any, include_id: bool = True) -> Dict[str, Any]:
        """Extract field values from an entity instance."""
        row = {}
        for name in self.fields:
            if not include_id and name == self.primary_key_field:
                continue
            row[name] = getattr(entity, name)
        return row

    def from_row(self, row: Dict[str, Any]) -> Any:
        """Build an entity instance from a row mapping."""
        return self.entity_class(**{k: v for k, v in row.items() if k in self.fields})


def Id() -> Any:
    """
    Mark a field as the auto-generated integer primary key.

    The value stays None until the entity is first inserted.
    """
    return field(
        default=None,
        metadata={METADATA_KEY: ColumnInfo(primary_key=True, nullable=False)},
    )


def Column(
    default: Any = None,
    unique: bool = False,
    nullable: bool = True,
    index: bool = False,
    db_type: Optional[str] = None,
    max_length: Optional[int] = None,
) -> Any:
    """Declare a column with explicit constraints."""
    info = ColumnInfo(
        nullable=nullable,
        unique=unique,
        index=index,
        db_type=db_type,
        max_length=max_length,
    )
    return field(default=default, metadata={METADATA_KEY: info})


def ManyToOne(
    target: Union[type, str],
    relation: Optional[str] = None,
    nullable: bool = True,
) -> Any:
    """
    Declare a foreign-key style reference to another entity's id.

    The field stores the target id. In queries the association is addressed
    by its relation name, which defaults to the field name without ``_id``:

        team_id: Optional[int] = ManyToOne(Team)
        # SELECT m FROM Member m JOIN m.team t
    """
    info = ColumnInfo(
        nullable=nullable,
        index=True,
        references=target,
        relation=relation,
    )
    return field(default=None, metadata={METADATA_KEY: info})


def column_info(dc_field: dataclasses.Field) -> Optional[ColumnInfo]:
    return dc_field.metadata.get(METADATA_KEY)
