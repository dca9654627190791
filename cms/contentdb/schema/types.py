"""
Core type definitions for the ContentDB schema system.

This module defines the foundational types for content modeling:
- FieldType: The closed set of field types
- FieldDef: A single typed slot within a schema
- Schema: A named, ordered field list of kind collection or single

Invariants:
    - Field ids are unique within a schema and immutable once created
    - Labels are display-only; ids are canonical storage keys
    - The order of Schema.fields is significant and persisted
    - Enum fields carry a non-empty options list
    - Relation fields name a target schema id
    - Schema.version increases by one on every persisted change

How to change safely:
    - Add new fields with new ids (never reuse an id)
    - Rename by changing the label, never the id
    - Keep to_dict()/from_dict() attribute names stable (camelCase JSON)

Example:
    >>> from cms.contentdb.schema.types import Schema, SchemaKind, field
    >>> BlogPost = Schema(
    ...     id="blog-post",
    ...     name="Blog Post",
    ...     kind=SchemaKind.COLLECTION,
    ...     fields=(
    ...         field("title", "Title", "text", required=True),
    ...         field("category", "Category", "enum", options=("A", "B")),
    ...     ),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any


class FieldType(Enum):
    """Supported field types.

    The set is closed: validation and default derivation in catalog.py
    dispatch exhaustively over these members.
    """

    TEXT = "text"  # Plain text or markdown
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"  # ISO-8601 date or datetime string
    ENUM = "enum"  # One of Field.options
    RELATION = "relation"  # Content item id(s) in Field.relation_target
    ASSET = "asset"  # Image/file reference
    JSON = "json"  # Arbitrary JSON value

    @classmethod
    def from_str(cls, value: str) -> FieldType:
        """Convert string representation to FieldType.

        Legacy tags (markdown, image, datetime) map onto their current type.

        Args:
            value: String name of the field type

        Returns:
            Corresponding FieldType enum value

        Raises:
            ValueError: If value is not a valid field type
        """
        normalized = LEGACY_FIELD_TYPES.get(value, value)
        for kind in cls:
            if kind.value == normalized:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field type '{value}'. Valid types: {valid}")


LEGACY_FIELD_TYPES: dict[str, str] = {
    "markdown": "text",
    "image": "asset",
    "datetime": "date",
}


# Field attribute names written by SQL/REST backends and older editors
_FIELD_ALIASES: dict[str, str] = {
    "default_value": "defaultValue",
    "relation_target": "relationTarget",
    "relation_schema_id": "relationTarget",
    "relation_cardinality": "relationCardinality",
}


def normalize_field_dict(raw: dict[str, Any]) -> dict[str, Any]:
    """Bring a field record of any supported shape into canonical shape."""
    result = dict(raw)
    for alias, canonical in _FIELD_ALIASES.items():
        if alias in result:
            value = result.pop(alias)
            result.setdefault(canonical, value)
    if "label" not in result and "name" in result:
        result["label"] = result.pop("name")
    # Older editors write `options: []` on every field type
    if result.get("options") == [] and result.get("type") != "enum":
        result.pop("options")
    if "isMultiple" in result:
        is_multiple = result.pop("isMultiple")
        if result.get("relationTarget") is not None and "relationCardinality" not in result:
            result["relationCardinality"] = "many" if is_multiple else "one"
    return result


class RelationCardinality(Enum):
    """How many target items a relation field holds."""

    ONE = "one"
    MANY = "many"


class SchemaKind(Enum):
    """Collection schemas hold many items; single schemas hold at most one."""

    COLLECTION = "collection"
    SINGLE = "single"


class FieldMigrationPolicy(Enum):
    """What happens to stored item data when a field is deleted.

    Supplied only to SchemaMutationEngine.delete_field(); never persisted.
    """

    PURGE = "purge"  # Remove the key from every item's data
    RETAIN = "retain"  # Hide the field, leave item data untouched


@dataclass(frozen=True)
class FieldDef:
    """Definition of a single field within a schema.

    Attributes:
        id: Stable identifier, used as the key in ContentItem.data
        label: Human-readable label (mutable, no storage meaning)
        type: The field type
        required: Whether a value must be present before leaving draft
        default_value: Value substituted when an optional field is absent
        options: Allowed values (enum only)
        relation_target: Target schema id (relation only)
        relation_cardinality: One or many target items (relation only)
        description: Human-readable description

    Invariants:
        - id never changes
        - type cannot change for an existing id
        - options non-empty for enum; default_value must be one of them

    Example:
        >>> title = FieldDef(id="title", label="Title", type=FieldType.TEXT, required=True)
    """

    id: str
    label: str
    type: FieldType
    required: bool = False
    default_value: Any = None
    options: tuple[str, ...] | None = None
    relation_target: str | None = None
    relation_cardinality: RelationCardinality | None = None
    description: str | None = None

    @property
    def is_many(self) -> bool:
        """Whether this is a relation field holding a list of ids."""
        return (
            self.type == FieldType.RELATION
            and self.relation_cardinality == RelationCardinality.MANY
        )

    def structural_errors(self) -> list[str]:
        """Check the invariants that need no other schema to verify.

        Returns:
            List of error messages (empty if the definition is well formed)
        """
        errors: list[str] = []
        if not self.id or not str(self.id).strip():
            errors.append("Field id cannot be empty")
        if not self.label or not self.label.strip():
            errors.append(f"Field '{self.id}' must have a label")

        if self.type == FieldType.ENUM:
            if not self.options:
                errors.append(f"Enum field '{self.id}' must define at least one option")
            else:
                if any(not isinstance(o, str) or not o for o in self.options):
                    errors.append(f"Enum field '{self.id}' options must be non-empty strings")
                if len(set(self.options)) != len(self.options):
                    errors.append(f"Enum field '{self.id}' has duplicate options")
                if self.default_value not in (None, "") and self.default_value not in self.options:
                    errors.append(
                        f"Enum field '{self.id}' default {self.default_value!r} "
                        f"is not one of {list(self.options)}"
                    )
        elif self.options is not None:
            errors.append(f"Field '{self.id}' of type {self.type.value} cannot define options")

        if self.type == FieldType.RELATION:
            if not self.relation_target:
                errors.append(f"Relation field '{self.id}' must name a target schema")
        elif self.relation_target is not None or self.relation_cardinality is not None:
            errors.append(
                f"Field '{self.id}' of type {self.type.value} cannot define a relation target"
            )
        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "type": self.type.value,
            "required": self.required,
            "defaultValue": self.default_value,
        }
        if self.options is not None:
            result["options"] = list(self.options)
        if self.relation_target is not None:
            result["relationTarget"] = self.relation_target
            cardinality = self.relation_cardinality or RelationCardinality.ONE
            result["relationCardinality"] = cardinality.value
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldDef:
        """Create from dictionary representation."""
        field_type = FieldType.from_str(data["type"])
        cardinality = data.get("relationCardinality")
        if field_type == FieldType.RELATION and cardinality is None:
            cardinality = RelationCardinality.ONE.value
        return cls(
            id=data["id"],
            label=data.get("label", ""),
            type=field_type,
            required=bool(data.get("required", False)),
            default_value=data.get("defaultValue"),
            options=tuple(data["options"]) if data.get("options") is not None else None,
            relation_target=data.get("relationTarget"),
            relation_cardinality=RelationCardinality(cardinality) if cardinality else None,
            description=data.get("description"),
        )


def field(
    id: str,
    label: str,
    type: str | FieldType,
    *,
    required: bool = False,
    default_value: Any = None,
    options: tuple[str, ...] | list[str] | None = None,
    relation_target: str | None = None,
    many: bool = False,
    description: str | None = None,
) -> FieldDef:
    """Convenience function to create a FieldDef.

    This is the preferred way to define fields in code.

    Args:
        id: Stable field identifier
        label: Display label
        type: Field type (string or FieldType enum)
        required: Whether field is required
        default_value: Default value
        options: Valid values (for enum type)
        relation_target: Target schema id (for relation type)
        many: Relation holds a list of ids
        description: Human-readable description

    Returns:
        FieldDef instance

    Example:
        >>> title = field("title", "Title", "text", required=True)
        >>> tags = field("related", "Related", "relation", relation_target="post", many=True)
    """
    if isinstance(type, str):
        type = FieldType.from_str(type)
    cardinality = None
    if type == FieldType.RELATION:
        cardinality = RelationCardinality.MANY if many else RelationCardinality.ONE
    return FieldDef(
        id=id,
        label=label,
        type=type,
        required=required,
        default_value=default_value,
        options=tuple(options) if options is not None else None,
        relation_target=relation_target,
        relation_cardinality=cardinality,
        description=description,
    )


@dataclass(frozen=True)
class Schema:
    """A content schema: a named, ordered list of typed fields.

    Attributes:
        id: Schema identifier (unique within a tenant)
        name: Human-readable name
        kind: Collection (many items) or single (at most one item)
        fields: Ordered tuple of active field definitions
        description: Optional description
        archived_at: Set while archived (reversible)
        created_at: Creation timestamp (ISO-8601)
        updated_at: Last update timestamp (ISO-8601)
        version: Optimistic concurrency stamp, +1 on every persisted change
        retained_field_ids: Ids deleted with the retain policy; items may
            still carry data under these keys

    Invariants:
        - Field ids unique within the schema
        - A retained id is never active at the same time
    """

    id: str
    name: str
    kind: SchemaKind = SchemaKind.COLLECTION
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    description: str | None = None
    archived_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    version: int = 0
    retained_field_ids: tuple[str, ...] = dataclass_field(default_factory=tuple)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def field_ids(self) -> list[str]:
        """Active field ids in display order."""
        return [f.id for f in self.fields]

    def get_field(self, field_id: str) -> FieldDef | None:
        """Get an active field by id.

        Args:
            field_id: Field identifier

        Returns:
            FieldDef if found, None otherwise
        """
        for f in self.fields:
            if f.id == field_id:
                return f
        return None

    def get_relation_fields(self) -> list[FieldDef]:
        """Get list of relation fields."""
        return [f for f in self.fields if f.type == FieldType.RELATION]

    def known_keys(self) -> set[str]:
        """Keys an item of this schema may carry in its data."""
        return set(self.field_ids) | set(self.retained_field_ids)

    def structural_errors(self) -> tuple[list[str], list[str]]:
        """Check schema invariants that need no store access.

        Returns:
            Tuple of (error messages, offending field ids)
        """
        errors: list[str] = []
        bad_ids: list[str] = []
        if not self.name or not self.name.strip():
            errors.append("Schema name cannot be empty")

        seen: set[str] = set()
        for f in self.fields:
            if f.id in seen:
                errors.append(f"Duplicate field id '{f.id}' in schema '{self.name}'")
                bad_ids.append(f.id)
            seen.add(f.id)
            field_errors = f.structural_errors()
            if field_errors:
                errors.extend(field_errors)
                bad_ids.append(f.id)

        overlap = seen & set(self.retained_field_ids)
        for fid in sorted(overlap):
            errors.append(f"Field id '{fid}' was deleted from schema '{self.name}' and cannot be reused")
            bad_ids.append(fid)
        return errors, list(dict.fromkeys(bad_ids))

    def with_fields(self, fields: tuple[FieldDef, ...] | list[FieldDef]) -> Schema:
        """Return a copy with a new field list."""
        return replace(self, fields=tuple(fields))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "kind": self.kind.value,
            "fields": [f.to_dict() for f in self.fields],
            "archivedAt": self.archived_at,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "version": self.version,
            "retainedFieldIds": list(self.retained_field_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schema:
        """Create from dictionary representation."""
        return cls(
            id=data["id"],
            name=data["name"],
            kind=SchemaKind(data.get("kind", SchemaKind.COLLECTION.value)),
            fields=tuple(FieldDef.from_dict(f) for f in data.get("fields") or []),
            description=data.get("description"),
            archived_at=data.get("archivedAt"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            version=int(data.get("version") or 0),
            retained_field_ids=tuple(data.get("retainedFieldIds") or ()),
        )
