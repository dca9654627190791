"""
Field type catalog for ContentDB.

For every FieldType this module defines:
- a default value used when an optional field is absent
- a type check returning the normalized value or a reason

All functions are pure: (field, value) -> FieldCheck. Relation checks only
verify the shape of the ids; existence is resolved by content.relations.

Invariants:
    - Every FieldType member has exactly one check and one default
    - check_value(f, check_value(f, v).value) == check_value(f, v) (idempotent)
    - Checks never mutate their input

How to change safely:
    - Adding a FieldType member requires an entry in _CHECKS and _DEFAULTS;
      the completeness assertion at the bottom of the module fails otherwise
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from ..util import now_iso
from .types import FieldDef, FieldType, RelationCardinality


@dataclass(frozen=True)
class FieldCheck:
    """Outcome of a type check.

    Attributes:
        ok: Whether the value is acceptable
        value: Normalized value (only meaningful when ok)
        reason: Why the value was rejected (only when not ok)
    """

    ok: bool
    value: Any = None
    reason: str | None = None

    @classmethod
    def accept(cls, value: Any) -> FieldCheck:
        return cls(ok=True, value=value)

    @classmethod
    def reject(cls, reason: str) -> FieldCheck:
        return cls(ok=False, reason=reason)


def is_empty(value: Any) -> bool:
    """Whether a value counts as absent for required-field checks.

    False and 0 are values, not absence.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _type_name(value: Any) -> str:
    return type(value).__name__


def _check_text(f: FieldDef, value: Any) -> FieldCheck:
    if not isinstance(value, str):
        return FieldCheck.reject(f"must be a string, got {_type_name(value)}")
    return FieldCheck.accept(value)


def _check_number(f: FieldDef, value: Any) -> FieldCheck:
    if isinstance(value, bool):
        return FieldCheck.reject("must be a number, got bool")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return FieldCheck.reject("must be a finite number")
        return FieldCheck.accept(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return FieldCheck.accept(int(text))
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return FieldCheck.reject(f"must be a number, got {value!r}")
        if not math.isfinite(parsed):
            return FieldCheck.reject("must be a finite number")
        return FieldCheck.accept(parsed)
    return FieldCheck.reject(f"must be a number, got {_type_name(value)}")


def _check_boolean(f: FieldDef, value: Any) -> FieldCheck:
    if value is True or value is False:
        return FieldCheck.accept(value)
    return FieldCheck.reject(f"must be true or false, got {value!r}")


def _check_date(f: FieldDef, value: Any) -> FieldCheck:
    if isinstance(value, datetime):
        return FieldCheck.accept(value.isoformat())
    if isinstance(value, date):
        return FieldCheck.accept(value.isoformat())
    if not isinstance(value, str):
        return FieldCheck.reject(f"must be an ISO-8601 date string, got {_type_name(value)}")
    text = value.strip()
    candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        datetime.fromisoformat(candidate)
    except ValueError:
        return FieldCheck.reject(f"must be an ISO-8601 date string, got {value!r}")
    return FieldCheck.accept(value)


def _check_enum(f: FieldDef, value: Any) -> FieldCheck:
    if not isinstance(value, str):
        return FieldCheck.reject(f"must be a string, got {_type_name(value)}")
    options = f.options or ()
    if value not in options:
        return FieldCheck.reject(f"must be one of {list(options)}, got {value!r}")
    return FieldCheck.accept(value)


def _is_id(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _check_relation(f: FieldDef, value: Any) -> FieldCheck:
    if f.relation_cardinality == RelationCardinality.MANY:
        if _is_id(value):
            value = [value]
        if not isinstance(value, list):
            return FieldCheck.reject(f"must be a list of item ids, got {_type_name(value)}")
        for i, item_id in enumerate(value):
            if not _is_id(item_id):
                return FieldCheck.reject(f"item [{i}] must be a non-empty id string")
        return FieldCheck.accept(list(dict.fromkeys(value)))
    if not _is_id(value):
        return FieldCheck.reject(f"must be an item id string, got {_type_name(value)}")
    return FieldCheck.accept(value)


def _check_asset(f: FieldDef, value: Any) -> FieldCheck:
    if _is_id(value):
        return FieldCheck.accept(value)
    if isinstance(value, dict) and (_is_id(value.get("id")) or _is_id(value.get("url"))):
        return FieldCheck.accept(value)
    return FieldCheck.reject("must be an asset id, URL, or an object with 'id' or 'url'")


def _check_json(f: FieldDef, value: Any) -> FieldCheck:
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as e:
        return FieldCheck.reject(f"must be JSON-serializable ({e})")
    return FieldCheck.accept(value)


_CHECKS: dict[FieldType, Callable[[FieldDef, Any], FieldCheck]] = {
    FieldType.TEXT: _check_text,
    FieldType.NUMBER: _check_number,
    FieldType.BOOLEAN: _check_boolean,
    FieldType.DATE: _check_date,
    FieldType.ENUM: _check_enum,
    FieldType.RELATION: _check_relation,
    FieldType.ASSET: _check_asset,
    FieldType.JSON: _check_json,
}

_DEFAULTS: dict[FieldType, Callable[[FieldDef], Any]] = {
    FieldType.TEXT: lambda f: "",
    FieldType.NUMBER: lambda f: 0,
    FieldType.BOOLEAN: lambda f: False,
    FieldType.DATE: lambda f: now_iso(),
    FieldType.ENUM: lambda f: f.options[0] if f.options else "",
    FieldType.RELATION: lambda f: None,
    FieldType.ASSET: lambda f: None,
    FieldType.JSON: lambda f: {},
}

assert set(_CHECKS) == set(FieldType), "every FieldType needs a check"
assert set(_DEFAULTS) == set(FieldType), "every FieldType needs a default"


def check_value(f: FieldDef, value: Any) -> FieldCheck:
    """Type-check a value against a field definition.

    Args:
        f: Field definition
        value: Candidate value (must not be None; absence is handled by callers)

    Returns:
        FieldCheck with the normalized value or the rejection reason
    """
    return _CHECKS[f.type](f, value)


def type_default(f: FieldDef) -> Any:
    """Per-type default, ignoring the field's own default_value."""
    return _DEFAULTS[f.type](f)


def default_for(f: FieldDef) -> Any:
    """Value substituted for an absent optional field.

    The field's own default_value wins over the per-type default.
    """
    if f.default_value is not None:
        return f.default_value
    return type_default(f)


def supported_types() -> list[str]:
    """Field type tags in declaration order."""
    return [t.value for t in FieldType]
