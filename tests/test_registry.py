"""Tests for schema registration, build validation and YAML loading."""

import pytest

from livegraph import GraphConfigError, SchemaRegistry, build_registry, load_schema
from livegraph.core.defs import FieldDef, ObjectTypeDef, fields_of


def _two_types(user_rel: dict, photo_rel: dict) -> dict:
    return {
        "objects": {
            "User": {
                "key": "login",
                "fields": {
                    "login": "ID!",
                    "photos": {"type": "[Photo!]!", "relation": user_rel},
                },
            },
            "Photo": {
                "fields": {
                    "id": "ID!",
                    "owner": {"type": "User!", "relation": photo_rel},
                },
            },
        }
    }


class TestPhotoShareSchema:
    """The bundled schema builds and exposes its dispatch tables."""

    def test_builds(self):
        registry = build_registry()

        assert registry.root("query").name == "Query"
        assert registry.root("mutation").name == "Mutation"
        assert registry.root("subscription").name == "Subscription"
        assert registry.key_of("User") == "githubLogin"

    def test_possible_types(self):
        registry = build_registry()

        assert set(registry.possible_types("AgendaItem")) == {"StudyGroup", "Workout"}
        assert set(registry.possible_types("ScheduleItem")) == {"StudyGroup", "Workout"}
        assert registry.is_abstract("AgendaItem")
        assert registry.is_leaf("PhotoCategory")
        assert not registry.is_leaf("Photo")

    def test_read_only_after_build(self):
        registry = build_registry()

        with pytest.raises(GraphConfigError):
            registry.add_object(ObjectTypeDef("Extra", fields_of(FieldDef("id", "ID!"))))


class TestBuildValidation:
    """build() fails fast on inconsistent declarations."""

    def test_symmetric_relation_accepted(self):
        registry = SchemaRegistry.from_dict(_two_types(
            {"kind": "one_to_many", "target": "Photo", "foreign_key": "owner", "inverse": "owner"},
            {"kind": "one_to_one", "target": "User", "foreign_key": "owner", "inverse": "photos"},
        ))

        assert registry.field("User", "photos").relation.target == "Photo"

    def test_missing_inverse(self):
        with pytest.raises(GraphConfigError) as exc_info:
            SchemaRegistry.from_dict(_two_types(
                {"kind": "one_to_many", "target": "Photo", "foreign_key": "owner", "inverse": "uploader"},
                {"kind": "one_to_one", "target": "User", "foreign_key": "owner", "inverse": "photos"},
            ))

        assert any("Photo.uploader" in e for e in exc_info.value.errors)

    def test_inverse_not_pointing_back(self):
        with pytest.raises(GraphConfigError) as exc_info:
            SchemaRegistry.from_dict(_two_types(
                {"kind": "one_to_many", "target": "Photo", "foreign_key": "owner", "inverse": "owner"},
                {"kind": "one_to_one", "target": "User", "foreign_key": "owner", "inverse": "login"},
            ))

        assert any("does not point back" in e or "is not declared" in e for e in exc_info.value.errors)

    def test_incompatible_kinds(self):
        with pytest.raises(GraphConfigError) as exc_info:
            SchemaRegistry.from_dict(_two_types(
                {"kind": "one_to_many", "target": "Photo", "foreign_key": "owner", "inverse": "owner"},
                {"kind": "one_to_many", "target": "User", "foreign_key": "owner", "inverse": "photos"},
            ))

        assert any("cannot pair" in e for e in exc_info.value.errors)

    def test_many_to_many_same_side(self):
        doc = _two_types(
            {"kind": "many_to_many", "target": "Photo", "association": "tags", "side": "right", "inverse": "owner"},
            {"kind": "many_to_many", "target": "User", "association": "tags", "side": "right", "inverse": "photos"},
        )
        doc["objects"]["Photo"]["fields"]["owner"]["type"] = "[User!]!"

        with pytest.raises(GraphConfigError) as exc_info:
            SchemaRegistry.from_dict(doc)

        assert any("opposite side" in e for e in exc_info.value.errors)

    def test_unknown_field_type(self):
        with pytest.raises(GraphConfigError) as exc_info:
            SchemaRegistry.from_dict({"objects": {"Photo": {"fields": {"id": "ID!", "camera": "Camera"}}}})

        assert exc_info.value.errors == ["Photo.camera: unknown type 'Camera'"]

    def test_interface_field_missing(self):
        with pytest.raises(GraphConfigError) as exc_info:
            SchemaRegistry.from_dict({
                "interfaces": {"ScheduleItem": {"fields": {"name": "String!", "start": "DateTime!"}}},
                "objects": {
                    "Workout": {"interfaces": ["ScheduleItem"], "fields": {"id": "ID!", "name": "String!"}},
                },
            })

        assert any("missing field 'start'" in e for e in exc_info.value.errors)

    def test_union_member_must_be_object(self):
        with pytest.raises(GraphConfigError):
            SchemaRegistry.from_dict({
                "enums": {"Color": ["RED"]},
                "unions": {"Thing": ["Color"]},
            })

    def test_all_errors_reported(self):
        with pytest.raises(GraphConfigError) as exc_info:
            SchemaRegistry.from_dict({
                "objects": {
                    "A": {"fields": {"id": "ID!", "x": "Missing"}},
                    "B": {"key": "code", "fields": {"id": "ID!"}},
                },
            })

        assert len(exc_info.value.errors) == 2


class TestLoadSchema:

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "schema.yaml"
        path.write_text(
            """
enums:
  PhotoCategory: [SELFIE, ACTION]
objects:
  Query:
    fields:
      allPhotos:
        type: "[Photo!]!"
        entry: {kind: all, source: Photo}
  Photo:
    fields:
      id: "ID!"
      category:
        type: "PhotoCategory!"
        sortable: true
"""
        )

        registry = load_schema(path)

        assert registry.objects["Query"].key is None
        assert registry.field("Query", "allPhotos").entry.kind == "all"
        assert registry.field("Photo", "category").sortable is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_schema(tmp_path / "nope.yaml")
