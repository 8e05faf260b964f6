"""Tests for projection.projects.document module."""

import json
from datetime import date

import pytest

from projection.core.errors import NotFoundError, ParseError, SharedRecordError
from projection.projects.document import (
    JsonDocument,
    YamlDocument,
    detect_format,
    dump_yaml_node,
    load_document,
)


class TestDetectFormat:
    """Tests for detect_format function."""

    def test_json_extension(self):
        """Test that .json files are JSON."""
        assert detect_format("projects.json") == "json"

    def test_yaml_extensions(self):
        """Test that .yaml and .yml files are YAML."""
        assert detect_format("projects.yaml") == "yaml"
        assert detect_format("projects.YML") == "yaml"

    def test_unknown_extension_defaults_to_yaml(self):
        """Test that unknown extensions are treated as YAML."""
        assert detect_format("projects.txt") == "yaml"


class TestLoadDocument:
    """Tests for load_document function."""

    def test_decodes_bytes(self, sample_yaml_text):
        """Test that bytes content is decoded as UTF-8."""
        doc = load_document(sample_yaml_text.encode("utf-8"), "yaml")
        assert isinstance(doc, YamlDocument)
        assert len(doc.records) == 2

    def test_invalid_utf8_raises_parse_error(self):
        """Test that undecodable bytes raise ParseError."""
        with pytest.raises(ParseError):
            load_document(b"projects: \xff\xfe\n", "yaml")

    def test_json_format(self, sample_json_text):
        """Test that json format gives a JsonDocument."""
        assert isinstance(load_document(sample_json_text, "json"), JsonDocument)

    def test_unknown_format_raises(self):
        """Test that an unknown format is rejected."""
        with pytest.raises(ValueError):
            load_document("", "toml")


class TestYamlRoundTrip:
    """Tests for reading YAML documents without changes."""

    def test_serialize_is_byte_identical(self, sample_yaml_text):
        """Test that an untouched document serializes to its input."""
        doc = YamlDocument(sample_yaml_text)
        assert doc.serialize() == sample_yaml_text

    def test_records_in_file_order(self, sample_yaml_text):
        """Test that records are exposed in file order."""
        doc = YamlDocument(sample_yaml_text)
        assert [r["id"] for r in doc.records] == ["alpha", "beta"]
        assert doc.records[1]["featured"] is True

    def test_config_block(self, sample_yaml_text):
        """Test that the config block is exposed as a copy."""
        doc = YamlDocument(sample_yaml_text)
        config = doc.config
        assert config == {"title": "My Portfolio"}

        config["title"] = "Changed"
        assert doc.config == {"title": "My Portfolio"}

    def test_config_absent(self):
        """Test that config is None when the file has none."""
        assert YamlDocument("projects: []\n").config is None

    def test_empty_document_has_no_records(self):
        """Test that an empty file has no records."""
        doc = YamlDocument("")
        assert list(doc.records) == []

    def test_null_projects_has_no_records(self):
        """Test that a bare projects key means no records."""
        assert list(YamlDocument("projects:\n").records) == []

    def test_find_record_index_by_id(self, sample_yaml_text):
        """Test finding records by id."""
        doc = YamlDocument(sample_yaml_text)
        assert doc.find_record_index_by_id("beta") == 1
        assert doc.find_record_index_by_id("missing") is None

    def test_records_view_is_live(self, sample_yaml_text, new_project):
        """Test that a records view reflects later mutations."""
        doc = YamlDocument(sample_yaml_text)
        view = doc.records
        doc.append_record(new_project("gamma"))
        assert len(view) == 3
        assert view[2]["id"] == "gamma"


class TestYamlParseErrors:
    """Tests for rejecting malformed YAML documents."""

    def test_invalid_yaml(self):
        """Test that a syntax error raises ParseError."""
        with pytest.raises(ParseError):
            YamlDocument("projects: [\n")

    def test_root_must_be_mapping(self):
        """Test that a top-level list is rejected."""
        with pytest.raises(ParseError):
            YamlDocument("- id: alpha\n")

    def test_projects_must_be_list(self):
        """Test that a mapping under projects is rejected."""
        with pytest.raises(ParseError):
            YamlDocument("projects:\n  alpha: 1\n")

    def test_records_must_be_mappings(self):
        """Test that scalar list items are rejected."""
        with pytest.raises(ParseError):
            YamlDocument("projects:\n  - just a string\n")


class TestYamlReplace:
    """Tests for YamlDocument.replace_record_at."""

    def test_only_replaced_record_changes(self, sample_yaml_text):
        """Test that text outside the replaced record is untouched."""
        doc = YamlDocument(sample_yaml_text)
        record = dict(doc.records[1], title="Beta Two")
        doc.replace_record_at(1, record)

        text = doc.serialize()
        before = sample_yaml_text[: sample_yaml_text.index("  - id: beta")]
        assert text.startswith(before)
        assert text.endswith("    featured: true\n# trailing comment\n")
        assert "    title: Beta Two\n" in text
        assert doc.records[1]["title"] == "Beta Two"

    def test_dates_written_double_quoted(self, sample_yaml_text):
        """Test that date-shaped strings in the new node are double-quoted."""
        doc = YamlDocument(sample_yaml_text)
        doc.replace_record_at(1, dict(doc.records[1], creationDate="2023-07-04"))

        assert '    creationDate: "2023-07-04"\n' in doc.serialize()
        assert doc.records[1]["creationDate"] == "2023-07-04"

    def test_tags_written_inline(self, sample_yaml_text):
        """Test that scalar lists are written in flow style."""
        doc = YamlDocument(sample_yaml_text)
        doc.replace_record_at(1, dict(doc.records[1], tags=["web", "api"]))
        assert "    tags: [web, api]\n" in doc.serialize()

    def test_out_of_range_raises_not_found(self, sample_yaml_text):
        """Test that a bad index raises NotFoundError."""
        doc = YamlDocument(sample_yaml_text)
        with pytest.raises(NotFoundError):
            doc.replace_record_at(5, {"id": "x"})
        assert doc.serialize() == sample_yaml_text


class TestYamlAppend:
    """Tests for YamlDocument.append_record."""

    def test_append_to_block_list(self, sample_yaml_text, new_project):
        """Test appending after the last block item."""
        doc = YamlDocument(sample_yaml_text)
        doc.append_record(new_project("gamma"))

        text = doc.serialize()
        assert [r["id"] for r in doc.records] == ["alpha", "beta", "gamma"]
        assert "    featured: true\n  - id: gamma\n    title: Gamma\n" in text
        assert '    creationDate: "2025-03-10"\n' in text
        assert text.endswith("# trailing comment\n")
        assert text.startswith(sample_yaml_text[: sample_yaml_text.index("# trailing comment")].rstrip("\n"))

    def test_append_native_date(self, sample_yaml_text, new_project):
        """Test that a date object is written as a quoted string."""
        doc = YamlDocument(sample_yaml_text)
        doc.append_record(new_project("gamma", creationDate=date(2025, 3, 10)))
        assert doc.records[2]["creationDate"] == "2025-03-10"

    def test_append_to_flow_list(self):
        """Test appending to a flow-style list."""
        doc = YamlDocument("projects: [{id: a, title: A}]\n")
        doc.append_record({"id": "b", "title": "B"})
        assert doc.serialize() == "projects: [{id: a, title: A}, {id: b, title: B}]\n"

    def test_append_when_key_missing(self):
        """Test that the projects key is created at the end."""
        doc = YamlDocument("config:\n  title: X\n")
        doc.append_record({"id": "a", "title": "A"})
        assert doc.serialize() == "config:\n  title: X\nprojects:\n  - id: a\n    title: A\n"
        assert doc.config == {"title": "X"}

    def test_append_to_empty_document(self):
        """Test appending to an empty file."""
        doc = YamlDocument("")
        doc.append_record({"id": "a", "title": "A"})
        assert doc.serialize() == "projects:\n  - id: a\n    title: A\n"

    @pytest.mark.parametrize("text", ["projects:\n", "projects: []\n", "projects: null\n"])
    def test_append_to_empty_projects(self, text):
        """Test appending where the projects value is empty."""
        doc = YamlDocument(text)
        doc.append_record({"id": "a", "title": "A"})
        assert doc.serialize() == "projects:\n  - id: a\n    title: A\n"

    def test_preserves_crlf(self):
        """Test that CRLF line endings are kept for new lines."""
        doc = YamlDocument("projects:\r\n  - id: a\r\n    title: A\r\n")
        doc.append_record({"id": "b", "title": "B"})
        assert doc.serialize() == "projects:\r\n  - id: a\r\n    title: A\r\n  - id: b\r\n    title: B\r\n"

    def test_indentless_list(self):
        """Test appending to a list at the key's own indentation."""
        doc = YamlDocument("projects:\n- id: a\n  title: A\n")
        doc.append_record({"id": "b", "title": "B"})
        assert doc.serialize() == "projects:\n- id: a\n  title: A\n- id: b\n  title: B\n"


class TestYamlRemove:
    """Tests for YamlDocument.remove_record_at."""

    def test_remove_first_keeps_comments(self, sample_yaml_text):
        """Test removing a record keeps surrounding comments."""
        doc = YamlDocument(sample_yaml_text)
        doc.remove_record_at(0)

        text = doc.serialize()
        assert [r["id"] for r in doc.records] == ["beta"]
        assert "id: alpha" not in text
        assert "asset://alpha.png" not in text
        assert "  # Flagship\n" in text
        assert "title: My Portfolio  # site title" in text
        assert text.endswith("# trailing comment\n")

    def test_remove_last(self, sample_yaml_text):
        """Test removing the last record."""
        doc = YamlDocument(sample_yaml_text)
        doc.remove_record_at(1)

        text = doc.serialize()
        assert [r["id"] for r in doc.records] == ["alpha"]
        assert "featured" not in text
        assert text.endswith("# trailing comment\n")

    def test_remove_only_record(self):
        """Test that removing the only record leaves an empty list."""
        doc = YamlDocument("projects:\n  - id: a\n    title: A\nconfig:\n  x: 1\n")
        doc.remove_record_at(0)
        assert doc.serialize() == "projects:\nconfig:\n  x: 1\n"
        assert list(doc.records) == []

    def test_remove_from_flow_list(self):
        """Test removing from a flow-style list."""
        doc = YamlDocument("projects: [{id: a}, {id: b}]\n")
        doc.remove_record_at(0)
        assert doc.serialize() == "projects: [{id: b}]\n"

    def test_remove_last_from_flow_list(self):
        """Test removing the final item of a flow-style list."""
        doc = YamlDocument("projects: [{id: a}, {id: b}]\n")
        doc.remove_record_at(1)
        assert doc.serialize() == "projects: [{id: a}]\n"

    def test_out_of_range_raises_not_found(self, sample_yaml_text):
        """Test that a bad index raises NotFoundError."""
        doc = YamlDocument(sample_yaml_text)
        with pytest.raises(NotFoundError):
            doc.remove_record_at(2)


class TestYamlAliases:
    """Tests for records written as YAML anchors and aliases."""

    ALIASED = (
        "base: &base {id: alpha, title: Alpha}\n"
        "projects:\n"
        "  - *base\n"
        "  - id: beta\n"
        "    title: Beta\n"
    )

    def test_aliased_record_is_readable(self):
        """Test that an alias resolves to the anchored record."""
        doc = YamlDocument(self.ALIASED)
        assert [r["id"] for r in doc.records] == ["alpha", "beta"]

    @pytest.mark.parametrize(
        "edit",
        [
            lambda doc, new_project: doc.replace_record_at(0, new_project("alpha")),
            lambda doc, new_project: doc.remove_record_at(0),
        ],
    )
    def test_editing_alias_raises(self, edit, new_project):
        """Test that an aliased record is refused and the text kept."""
        doc = YamlDocument(self.ALIASED)
        with pytest.raises(SharedRecordError) as exc_info:
            edit(doc, new_project)
        assert exc_info.value.project_id == "alpha"
        assert doc.serialize() == self.ALIASED

    def test_anchor_inside_list_is_shared(self, new_project):
        """Test that the anchored item is refused as well as its alias."""
        text = "projects:\n  - &a {id: alpha, title: Alpha}\n  - *a\n"
        doc = YamlDocument(text)
        with pytest.raises(SharedRecordError):
            doc.replace_record_at(0, new_project("alpha"))
        assert doc.serialize() == text

    def test_other_records_still_editable(self, new_project):
        """Test that records without aliases can be edited."""
        doc = YamlDocument(self.ALIASED)
        doc.replace_record_at(1, new_project("beta"))
        assert doc.serialize().startswith("base: &base {id: alpha, title: Alpha}\nprojects:\n  - *base\n  - id: beta\n")
        assert doc.records[1]["title"] == "Beta"


class TestDumpYamlNode:
    """Tests for dump_yaml_node function."""

    def test_block_mapping(self):
        """Test rendering a mapping in block style."""
        assert dump_yaml_node({"id": "a", "creationDate": "2024-01-01"}) == 'id: a\ncreationDate: "2024-01-01"'

    def test_no_aliases(self):
        """Test that repeated objects are not written as aliases."""
        tags = ["x"]
        rendered = dump_yaml_node({"a": {"tags": tags}, "b": {"tags": tags}})
        assert "&" not in rendered
        assert "*" not in rendered


class TestJsonDocument:
    """Tests for JsonDocument."""

    def test_serialize_is_byte_identical(self, sample_json_text):
        """Test that an untouched document serializes to its input."""
        assert JsonDocument(sample_json_text).serialize() == sample_json_text

    def test_records_and_config(self, sample_json_text):
        """Test reading records and config."""
        doc = JsonDocument(sample_json_text)
        assert [r["id"] for r in doc.records] == ["alpha", "beta"]
        assert doc.config == {"title": "My Portfolio"}

    def test_replace_keeps_other_records(self, sample_json_text):
        """Test that replacing a record leaves the rest of the text alone."""
        doc = JsonDocument(sample_json_text)
        doc.replace_record_at(0, dict(doc.records[0], title="Alpha Two"))

        text = doc.serialize()
        tail = sample_json_text[sample_json_text.index('      "id": "beta"'):]
        assert text.endswith(tail)
        assert '  "config": {"title": "My Portfolio"},\n' in text
        assert '      "title": "Alpha Two",\n' in text
        assert json.loads(text)["projects"][0]["title"] == "Alpha Two"

    def test_append_matches_indentation(self, sample_json_text, new_project):
        """Test that appended records use the file's indentation."""
        doc = JsonDocument(sample_json_text)
        doc.append_record(new_project("gamma"))

        text = doc.serialize()
        assert '    },\n    {\n      "id": "gamma",\n' in text
        assert text.endswith("    }\n  ]\n}\n")
        assert [p["id"] for p in json.loads(text)["projects"]] == ["alpha", "beta", "gamma"]

    def test_remove_middle_and_last(self, sample_json_text, new_project):
        """Test removing records keeps the JSON valid."""
        doc = JsonDocument(sample_json_text)
        doc.append_record(new_project("gamma"))
        doc.remove_record_at(1)
        assert [r["id"] for r in doc.records] == ["alpha", "gamma"]

        doc.remove_record_at(1)
        assert [p["id"] for p in json.loads(doc.serialize())["projects"]] == ["alpha"]

    def test_remove_only_record_leaves_empty_array(self):
        """Test that removing the only record leaves []."""
        doc = JsonDocument('{"projects": [{"id": "a"}]}')
        doc.remove_record_at(0)
        assert doc.serialize() == '{"projects": []}'

    def test_append_compact(self):
        """Test appending to a single-line document."""
        doc = JsonDocument('{"projects": []}')
        doc.append_record({"id": "a", "title": "A"})
        assert doc.serialize() == '{"projects": [{"id": "a", "title": "A"}]}'

    def test_append_when_key_missing(self):
        """Test that the projects member is added after the last member."""
        doc = JsonDocument('{"config": {}}')
        doc.append_record({"id": "a"})
        assert doc.serialize() == '{"config": {}, "projects": [{"id": "a"}]}'

    def test_append_to_empty_object(self):
        """Test appending to an empty root object."""
        doc = JsonDocument("{}")
        doc.append_record({"id": "a"})
        assert json.loads(doc.serialize()) == {"projects": [{"id": "a"}]}

    def test_append_to_null_projects(self):
        """Test that a null projects member is replaced by a list."""
        doc = JsonDocument('{\n  "projects": null\n}\n')
        doc.append_record({"id": "a"})
        assert json.loads(doc.serialize()) == {"projects": [{"id": "a"}]}
        assert doc.serialize().endswith("\n  ]\n}\n")

    def test_native_date_serialized(self):
        """Test that date values are written as ISO strings."""
        doc = JsonDocument('{"projects": []}')
        doc.append_record({"id": "a", "creationDate": date(2024, 2, 29)})
        assert doc.records[0]["creationDate"] == "2024-02-29"

    def test_byte_order_mark(self):
        """Test that a leading BOM is tolerated and kept."""
        doc = JsonDocument('\ufeff{"projects": []}')
        doc.append_record({"id": "a"})
        assert doc.serialize() == '\ufeff{"projects": [{"id": "a"}]}'

    @pytest.mark.parametrize(
        "text",
        ["{bad", "[1, 2]", '{"projects": {"a": 1}}', '{"projects": [1]}'],
    )
    def test_parse_errors(self, text):
        """Test that malformed documents raise ParseError."""
        with pytest.raises(ParseError):
            JsonDocument(text)
