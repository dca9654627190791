"""
Unit tests for the field type catalog.

Tests cover:
- Per-type checks and normalization
- Per-type defaults
- Exhaustiveness over FieldType
- Idempotence of checks
"""

import math
from datetime import date, datetime, timezone

import pytest

from cms.contentdb.schema import catalog
from cms.contentdb.schema.catalog import check_value, default_for, is_empty, type_default
from cms.contentdb.schema.types import FieldType, field


class TestChecks:
    """Tests for check_value()."""

    def test_text_accepts_strings_only(self):
        f = field("t", "T", "text")
        assert check_value(f, "hello").value == "hello"
        assert not check_value(f, 42).ok

    def test_number_accepts_numbers_and_numeric_strings(self):
        f = field("n", "N", "number")
        assert check_value(f, 3).value == 3
        assert check_value(f, 2.5).value == 2.5
        assert check_value(f, "7").value == 7
        assert check_value(f, " 1.25 ").value == 1.25

    def test_number_rejects_bool_and_non_finite(self):
        f = field("n", "N", "number")
        assert not check_value(f, True).ok
        assert not check_value(f, math.inf).ok
        assert not check_value(f, "nan").ok
        assert not check_value(f, "abc").ok

    def test_boolean_is_strict(self):
        f = field("b", "B", "boolean")
        assert check_value(f, False).value is False
        assert not check_value(f, "true").ok
        assert not check_value(f, 1).ok

    def test_date_strings_kept_verbatim(self):
        f = field("d", "D", "date")
        assert check_value(f, "2024-03-01").value == "2024-03-01"
        assert check_value(f, "2024-03-01T10:00:00Z").value == "2024-03-01T10:00:00Z"
        assert not check_value(f, "yesterday").ok

    def test_date_objects_normalized(self):
        f = field("d", "D", "date")
        assert check_value(f, date(2024, 1, 2)).value == "2024-01-02"
        moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert check_value(f, moment).value == "2024-01-02T03:04:05+00:00"

    def test_enum_membership(self):
        f = field("c", "Category", "enum", options=["A", "B"])
        assert check_value(f, "A").ok
        result = check_value(f, "C")
        assert not result.ok
        assert "one of" in result.reason

    def test_relation_one_needs_an_id(self):
        f = field("r", "R", "relation", relation_target="author")
        assert check_value(f, "item_1").value == "item_1"
        assert not check_value(f, "").ok
        assert not check_value(f, ["item_1"]).ok

    def test_relation_many_normalizes_to_unique_list(self):
        f = field("r", "R", "relation", relation_target="author", many=True)
        assert check_value(f, "a").value == ["a"]
        assert check_value(f, ["a", "a", "b"]).value == ["a", "b"]
        assert not check_value(f, ["a", ""]).ok
        assert not check_value(f, {"id": "a"}).ok

    def test_asset_forms(self):
        f = field("img", "Image", "image")
        assert f.type == FieldType.ASSET
        assert check_value(f, "https://cdn.example.com/a.png").ok
        assert check_value(f, {"url": "https://cdn.example.com/a.png"}).ok
        assert not check_value(f, {}).ok

    def test_json_must_serialize(self):
        f = field("j", "J", "json")
        assert check_value(f, {"a": [1, 2, {"b": None}]}).ok
        assert not check_value(f, {"x": math.nan}).ok
        assert not check_value(f, object()).ok

    def test_checks_are_idempotent(self):
        samples = [
            (field("n", "N", "number"), "12"),
            (field("d", "D", "date"), date(2024, 5, 6)),
            (field("r", "R", "relation", relation_target="s", many=True), "x"),
            (field("j", "J", "json"), [1, "two"]),
        ]
        for f, value in samples:
            first = check_value(f, value)
            second = check_value(f, first.value)
            assert second == first


class TestDefaults:
    """Tests for type_default() and default_for()."""

    def test_type_defaults(self):
        assert type_default(field("t", "T", "text")) == ""
        assert type_default(field("n", "N", "number")) == 0
        assert type_default(field("b", "B", "boolean")) is False
        assert type_default(field("e", "E", "enum", options=["x", "y"])) == "x"
        assert type_default(field("r", "R", "relation", relation_target="s")) is None
        assert type_default(field("a", "A", "asset")) is None
        assert type_default(field("j", "J", "json")) == {}

    def test_date_default_is_current_utc(self):
        value = type_default(field("d", "D", "date"))
        assert value.endswith("Z")
        assert value[:4] == str(datetime.now(timezone.utc).year)

    def test_field_default_wins(self):
        assert default_for(field("b", "B", "boolean", default_value=True)) is True
        assert default_for(field("e", "E", "enum", options=["x", "y"], default_value="y")) == "y"


class TestCatalogShape:
    """Tests for catalog completeness."""

    def test_every_type_has_check_and_default(self):
        assert set(catalog._CHECKS) == set(FieldType)
        assert set(catalog._DEFAULTS) == set(FieldType)

    def test_supported_types(self):
        assert catalog.supported_types() == [
            "text", "number", "boolean", "date", "enum", "relation", "asset", "json",
        ]

    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    def test_empty_values(self, value):
        assert is_empty(value)

    @pytest.mark.parametrize("value", [False, 0, "x", [None], {"a": 1}])
    def test_non_empty_values(self, value):
        assert not is_empty(value)
