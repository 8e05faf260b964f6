"""
Comment-preserving editing of the projects file.

A document keeps the original file text and an index of where each project
record lives in it. Mutations splice new text into the span of the one record
they touch and then re-index, so comments, blank lines, key order and
indentation everywhere else come back byte for byte on ``serialize()``.

YAML spans come from PyYAML's composer (node start/end marks); JSON spans come
from walking the text with ``json.JSONDecoder.raw_decode``.
"""

from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterator, Mapping, Sequence
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from projection.core.errors import NotFoundError, ParseError, SharedRecordError
from projection.projects.models import DATE_PATTERN

logger = logging.getLogger(__name__)

RECORDS_KEY = "projects"
CONFIG_KEY = "config"

YAML_SUFFIXES = {".yaml", ".yml"}
JSON_SUFFIXES = {".json"}

# Indentation used for a projects list created from scratch
DEFAULT_INDENT = "  "


def detect_format(path: Path | str) -> str:
    """Detect the document format from a file extension.

    Unknown extensions are treated as YAML.
    """
    suffix = Path(path).suffix.lower()
    if suffix in JSON_SUFFIXES:
        return "json"
    return "yaml"


def load_document(content: str | bytes, fmt: str = "yaml") -> StructuredDocument:
    """Parse file content into an editable document.

    Args:
        content: File content; bytes are decoded as UTF-8
        fmt: "yaml" or "json"

    Raises:
        ParseError: If the content is not a valid projects document
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"File is not valid UTF-8: {e}", format=fmt) from e

    if fmt == "json":
        return JsonDocument(content)
    if fmt == "yaml":
        return YamlDocument(content)
    raise ValueError(f"Unsupported document format: {fmt!r}")


class RecordsView(Sequence):
    """Live, read-only view over a document's records.

    Reflects every later mutation of the document it was taken from.
    """

    def __init__(self, document: StructuredDocument):
        self._document = document

    def __getitem__(self, index):  # type: ignore[override]
        return self._document._records[index]

    def __len__(self) -> int:
        return len(self._document._records)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._document._records)

    def __repr__(self) -> str:
        return f"RecordsView({self._document._records!r})"


class StructuredDocument(ABC):
    """Editable projects document that round-trips untouched text.

    Subclasses implement ``_index`` (parse and locate record spans) and the
    three text-splicing primitives for their format.
    """

    format = ""

    def __init__(self, text: str):
        self._text = text
        self._newline = "\r\n" if "\r\n" in text else "\n"
        self._data: Any = None
        self._records: list[dict[str, Any]] = []
        self._index()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def records(self) -> RecordsView:
        """The project records, in file order."""
        return RecordsView(self)

    @property
    def config(self) -> dict[str, Any] | None:
        """The embedded config block, or None when absent."""
        if isinstance(self._data, dict):
            config = self._data.get(CONFIG_KEY)
            if isinstance(config, dict):
                return copy.deepcopy(config)
        return None

    def to_data(self) -> Any:
        """Return the whole document as plain Python data."""
        return copy.deepcopy(self._data)

    def find_record_index_by_id(self, project_id: str) -> int | None:
        """Return the index of the record with *project_id*, or None."""
        for index, record in enumerate(self._records):
            if record.get("id") == project_id:
                return index
        return None

    def replace_record_at(self, index: int, data: Mapping[str, Any]) -> None:
        """Replace the record at *index* with a node built from *data*.

        Only the replaced record's text changes; date-shaped strings in the new
        node are written double-quoted.
        """
        self._check_index(index, "replace")
        start, end, replacement = self._replacement_for(index, dict(data))
        self._splice(start, end, replacement)

    def append_record(self, data: Mapping[str, Any]) -> None:
        """Append a record, creating the projects list if needed."""
        start, end, replacement = self._append_for(dict(data))
        self._splice(start, end, replacement)

    def remove_record_at(self, index: int) -> None:
        """Remove the record at *index*."""
        self._check_index(index, "remove")
        start, end, replacement = self._removal_for(index)
        self._splice(start, end, replacement)

    def serialize(self) -> str:
        """Render the full document text."""
        return self._text

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _check_index(self, index: int, operation: str) -> None:
        if not 0 <= index < len(self._records):
            raise NotFoundError(
                f"No record at index {index} ({len(self._records)} records)",
                operation=operation,
                index=index,
            )

    def _splice(self, start: int, end: int, replacement: str) -> None:
        previous = self._text
        self._text = previous[:start] + replacement + previous[end:]
        try:
            self._index()
        except ParseError:
            self._text = previous
            self._index()
            raise
        logger.debug("Spliced %s document at [%d:%d] (+%d chars)", self.format, start, end, len(replacement))

    def _line_start(self, pos: int) -> int:
        return self._text.rfind("\n", 0, pos) + 1

    def _line_end(self, pos: int) -> int:
        """Index where the line containing *pos* ends, excluding the line break."""
        idx = self._text.find("\n", pos)
        if idx == -1:
            return len(self._text)
        if idx > 0 and self._text[idx - 1] == "\r":
            return idx - 1
        return idx

    def _line_prefix(self, pos: int) -> str | None:
        """Whitespace before *pos* on its line, or None if anything else precedes it."""
        prefix = self._text[self._line_start(pos):pos]
        if prefix.strip(" \t"):
            return None
        return prefix

    def _indent_lines(self, rendered: str, prefix: str) -> str:
        lines = rendered.split("\n")
        return self._newline.join(
            [lines[0]] + [prefix + line if line else line for line in lines[1:]]
        )

    def _set_parsed(self, data: Any, records: Any) -> None:
        if records is None:
            records = []
        if not isinstance(records, list):
            raise ParseError(
                f"'{RECORDS_KEY}' must be a list, got {type(records).__name__}",
                format=self.format,
            )
        for position, record in enumerate(records):
            if not isinstance(record, dict):
                raise ParseError(
                    f"{RECORDS_KEY}[{position}] must be a mapping, got {type(record).__name__}",
                    format=self.format,
                )
        self._data = data
        self._records = records

    @abstractmethod
    def _index(self) -> None:
        """Parse ``self._text`` and record where each record lives."""

    @abstractmethod
    def _replacement_for(self, index: int, data: dict[str, Any]) -> tuple[int, int, str]:
        ...

    @abstractmethod
    def _append_for(self, data: dict[str, Any]) -> tuple[int, int, str]:
        ...

    @abstractmethod
    def _removal_for(self, index: int) -> tuple[int, int, str]:
        ...


# ----------------------------------------------------------------------
# YAML
# ----------------------------------------------------------------------


class _RecordDumper(yaml.SafeDumper):
    """Dumper for newly built record nodes."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if DATE_PATTERN.fullmatch(data):
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style='"')
    return dumper.represent_str(data)


def _represent_date(dumper: yaml.SafeDumper, data: date) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", data.isoformat(), style='"')


def _represent_list(dumper: yaml.SafeDumper, data: list) -> yaml.SequenceNode:
    # Lists of scalars (tags) stay on one line
    flow = all(item is None or isinstance(item, (str, int, float, bool)) for item in data)
    return dumper.represent_sequence("tag:yaml.org,2002:seq", data, flow_style=flow)


_RecordDumper.add_representer(str, _represent_str)
_RecordDumper.add_representer(date, _represent_date)
_RecordDumper.add_representer(list, _represent_list)


def dump_yaml_node(data: Any, flow: bool = False) -> str:
    """Render plain data as a YAML fragment without a trailing newline."""
    text = yaml.dump(
        data,
        Dumper=_RecordDumper,
        default_flow_style=flow,
        sort_keys=False,
        allow_unicode=True,
        width=float("inf"),
    )
    return text.rstrip("\n")


def _count_references(root: yaml.Node | None) -> Counter:
    """Count how often each node object is reached from *root*.

    Aliases compose to the anchored node itself, so a count above one marks
    a node that is written once but used in several places.
    """
    counts: Counter = Counter()
    stack = [root] if root is not None else []
    while stack:
        node = stack.pop()
        counts[id(node)] += 1
        if counts[id(node)] > 1 or isinstance(node, yaml.ScalarNode):
            continue
        if isinstance(node, yaml.MappingNode):
            for key, value in node.value:
                stack.extend((key, value))
        else:
            stack.extend(node.value)
    return counts


class YamlDocument(StructuredDocument):
    """Projects document in YAML."""

    format = "yaml"

    def _index(self) -> None:
        loader = yaml.SafeLoader(self._text)
        try:
            root = loader.get_single_node()
            data = loader.construct_document(root) if root is not None else None
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid YAML: {e}", format=self.format) from e
        finally:
            loader.dispose()

        if root is not None and not isinstance(root, yaml.MappingNode):
            raise ParseError("Top level of the projects file must be a mapping", format=self.format)

        key_node = value_node = None
        if root is not None:
            for key, value in root.value:
                if isinstance(key, yaml.ScalarNode) and key.value == RECORDS_KEY:
                    key_node, value_node = key, value

        self._root = root
        self._key_node = key_node
        self._seq_node = value_node if isinstance(value_node, yaml.SequenceNode) else None
        self._value_node = value_node
        self._items: list[yaml.Node] = list(self._seq_node.value) if self._seq_node else []
        references = _count_references(root)
        self._shared = {i for i, node in enumerate(self._items) if references[id(node)] > 1}
        self._set_parsed(data, data.get(RECORDS_KEY) if isinstance(data, dict) else None)

    # -- spans ---------------------------------------------------------

    def _content_end(self, node: yaml.Node) -> int:
        """Index just past the last character that belongs to *node*.

        Block collections report an end mark at the following token, which
        would swallow trailing comments; walk down to the last leaf instead.
        """
        if isinstance(node, yaml.ScalarNode):
            start, end = node.start_mark.index, node.end_mark.index
            if node.style in ("|", ">"):
                end = start + len(self._text[start:end].rstrip())
            return end
        if node.flow_style or not node.value:
            return node.end_mark.index
        last = node.value[-1]
        if isinstance(node, yaml.MappingNode):
            last = last[1]
        return self._content_end(last)

    def _dash_index(self, node: yaml.Node) -> int | None:
        pos = node.start_mark.index - 1
        while pos >= 0 and self._text[pos] == " ":
            pos -= 1
        if pos >= 0 and self._text[pos] == "-":
            return pos
        return None

    def _in_flow(self) -> bool:
        return bool(self._root is not None and self._root.flow_style)

    def _render_item(self, data: dict[str, Any], column: int, flow: bool) -> str:
        if flow:
            return dump_yaml_node(data, flow=True)
        return self._indent_lines(dump_yaml_node(data), " " * column)

    def _new_block_list(self, data: dict[str, Any], key_column: int) -> str:
        dash_column = key_column + len(DEFAULT_INDENT)
        return (
            self._newline
            + " " * dash_column
            + "- "
            + self._render_item(data, dash_column + 2, flow=False)
        )

    # -- primitives ----------------------------------------------------

    def _check_unshared(self, index: int, operation: str) -> None:
        # The composer returns the anchored node for an alias, so its marks
        # point at the anchor definition rather than at this item
        if index in self._shared:
            raise SharedRecordError(
                f"{RECORDS_KEY}[{index}] is a YAML anchor or alias; expand it by hand before editing",
                project_id=self._records[index].get("id"),
                operation=operation,
            )

    def _replacement_for(self, index: int, data: dict[str, Any]) -> tuple[int, int, str]:
        self._check_unshared(index, "replace")
        node = self._items[index]
        start = node.start_mark.index
        end = self._content_end(node)
        flow = bool(node.flow_style) or bool(self._seq_node.flow_style)
        return start, end, self._render_item(data, node.start_mark.column, flow)

    def _append_for(self, data: dict[str, Any]) -> tuple[int, int, str]:
        text = self._text

        if self._seq_node is not None and self._items:
            last = self._items[-1]
            if self._seq_node.flow_style:
                end = self._content_end(last)
                return end, end, ", " + dump_yaml_node(data, flow=True)

            item_column = last.start_mark.column
            dash = self._dash_index(last)
            dash_column = dash - self._line_start(dash) if dash is not None else max(item_column - 2, 0)
            gap = max(item_column - dash_column - 1, 1)
            insert_at = self._line_end(self._content_end(last))
            rendered = (
                self._newline
                + " " * dash_column
                + "-"
                + " " * gap
                + self._render_item(data, dash_column + 1 + gap, flow=bool(last.flow_style))
            )
            return insert_at, insert_at, rendered

        if self._key_node is not None:
            value = self._value_node
            key_column = self._key_node.start_mark.column
            start, end = value.start_mark.index, self._content_end(value)
            if self._in_flow():
                return start, end, "[" + dump_yaml_node(data, flow=True) + "]"
            if isinstance(value, yaml.ScalarNode) and value.value == "":
                insert_at = self._line_end(start)
                return insert_at, insert_at, self._new_block_list(data, key_column)
            # explicit null or empty flow list
            while start > 0 and text[start - 1] == " ":
                start -= 1
            return start, end, self._new_block_list(data, key_column)

        if self._root is not None and self._root.flow_style:
            if self._root.value:
                end = self._content_end(self._root.value[-1][1])
                return end, end, f", {RECORDS_KEY}: [" + dump_yaml_node(data, flow=True) + "]"
            start, end = self._root.start_mark.index, self._root.end_mark.index
            return start, end, "{" + f"{RECORDS_KEY}: [" + dump_yaml_node(data, flow=True) + "]}"

        key_column = self._root.start_mark.column if self._root is not None else 0
        prefix = ""
        if text and not text.endswith("\n"):
            prefix = self._newline
        rendered = prefix + " " * key_column + f"{RECORDS_KEY}:" + self._new_block_list(data, key_column) + self._newline
        return len(text), len(text), rendered

    def _removal_for(self, index: int) -> tuple[int, int, str]:
        self._check_unshared(index, "remove")
        node = self._items[index]

        if self._seq_node.flow_style:
            return self._flow_removal(index)

        dash = self._dash_index(node)
        start = dash if dash is not None else node.start_mark.index
        line_start = self._line_start(start)
        if not self._text[line_start:start].strip(" "):
            start = line_start
        end = self._line_end(self._content_end(node))
        end = self._text.find("\n", end)
        end = len(self._text) if end == -1 else end + 1
        return start, end, ""

    def _flow_removal(self, index: int) -> tuple[int, int, str]:
        items = self._items
        if index < len(items) - 1:
            return items[index].start_mark.index, items[index + 1].start_mark.index, ""
        if index > 0:
            return self._content_end(items[index - 1]), self._content_end(items[index]), ""
        return items[index].start_mark.index, self._content_end(items[index]), ""


# ----------------------------------------------------------------------
# JSON
# ----------------------------------------------------------------------

_JSON_WHITESPACE = " \t\n\r"


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class _Span:
    """Location of one JSON value (and, for members, its key) in the text."""

    __slots__ = ("key", "key_start", "start", "end")

    def __init__(self, start: int, end: int, key: str | None = None, key_start: int | None = None):
        self.start = start
        self.end = end
        self.key = key
        self.key_start = key_start


class JsonDocument(StructuredDocument):
    """Projects document in JSON.

    JSON has no comments, but key order, spacing and indentation of untouched
    records are still preserved.
    """

    format = "json"

    def _index(self) -> None:
        text = self._text
        offset = 1 if text.startswith("\ufeff") else 0
        try:
            data = json.loads(text[offset:])
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}", format=self.format) from e

        if not isinstance(data, dict):
            raise ParseError("Top level of the projects file must be an object", format=self.format)

        decoder = json.JSONDecoder()
        root_start = self._skip_ws(offset)
        members, root_end = self._scan_object(decoder, root_start)
        self._root_span = _Span(root_start, root_end)
        self._members = members
        self._records_member = next((m for m in members if m.key == RECORDS_KEY), None)
        self._items: list[_Span] = []
        self._array_span: _Span | None = None
        if self._records_member is not None and text[self._records_member.start] == "[":
            self._items = self._scan_array(decoder, self._records_member.start)
            self._array_span = self._records_member

        self._set_parsed(data, data.get(RECORDS_KEY))
        self._unit = self._detect_indent_unit()

    # -- scanning ------------------------------------------------------

    def _skip_ws(self, pos: int) -> int:
        text = self._text
        while pos < len(text) and text[pos] in _JSON_WHITESPACE:
            pos += 1
        return pos

    def _scan_object(self, decoder: json.JSONDecoder, pos: int) -> tuple[list[_Span], int]:
        text = self._text
        members: list[_Span] = []
        pos = self._skip_ws(pos + 1)
        if text[pos] == "}":
            return members, pos + 1
        while True:
            key_start = pos
            key, pos = decoder.raw_decode(text, pos)
            pos = self._skip_ws(pos)
            pos = self._skip_ws(pos + 1)  # ':'
            value_start = pos
            _, pos = decoder.raw_decode(text, pos)
            members.append(_Span(value_start, pos, key=key, key_start=key_start))
            pos = self._skip_ws(pos)
            if text[pos] == "}":
                return members, pos + 1
            pos = self._skip_ws(pos + 1)  # ','

    def _scan_array(self, decoder: json.JSONDecoder, pos: int) -> list[_Span]:
        text = self._text
        items: list[_Span] = []
        pos = self._skip_ws(pos + 1)
        if text[pos] == "]":
            return items
        while True:
            start = pos
            _, pos = decoder.raw_decode(text, pos)
            items.append(_Span(start, pos))
            pos = self._skip_ws(pos)
            if text[pos] == "]":
                return items
            pos = self._skip_ws(pos + 1)

    def _detect_indent_unit(self) -> str:
        if self._members:
            prefix = self._line_prefix(self._members[0].key_start)
            if prefix:
                return prefix
        return DEFAULT_INDENT

    # -- rendering -----------------------------------------------------

    def _dump(self, data: Any, prefix: str | None) -> str:
        """Render *data*; pretty when *prefix* is known, single-line otherwise."""
        if prefix is None:
            return json.dumps(data, ensure_ascii=False, default=_json_default)
        rendered = json.dumps(data, indent=self._unit, ensure_ascii=False, default=_json_default)
        return self._indent_lines(rendered, prefix)

    def _new_array(self, data: dict[str, Any], key_prefix: str | None) -> str:
        if key_prefix is None:
            return "[" + self._dump(data, None) + "]"
        inner = key_prefix + self._unit
        return "[" + self._newline + inner + self._dump(data, inner) + self._newline + key_prefix + "]"

    # -- primitives ----------------------------------------------------

    def _replacement_for(self, index: int, data: dict[str, Any]) -> tuple[int, int, str]:
        span = self._items[index]
        return span.start, span.end, self._dump(data, self._line_prefix(span.start))

    def _append_for(self, data: dict[str, Any]) -> tuple[int, int, str]:
        if self._items:
            last = self._items[-1]
            prefix = self._line_prefix(last.start)
            separator = "," + (self._newline + prefix if prefix is not None else " ")
            return last.end, last.end, separator + self._dump(data, prefix)

        member = self._records_member
        if member is not None:
            key_prefix = self._line_prefix(member.key_start)
            return member.start, member.end, self._new_array(data, key_prefix)

        if self._members:
            last = self._members[-1]
            key_prefix = self._line_prefix(last.key_start)
            separator = "," + (self._newline + key_prefix if key_prefix is not None else " ")
            rendered = separator + json.dumps(RECORDS_KEY) + ": " + self._new_array(data, key_prefix)
            return last.end, last.end, rendered

        root = self._root_span
        rendered = json.dumps({RECORDS_KEY: [data]}, indent=self._unit, ensure_ascii=False, default=_json_default)
        return root.start, root.end, rendered.replace("\n", self._newline)

    def _removal_for(self, index: int) -> tuple[int, int, str]:
        items = self._items
        if len(items) == 1:
            array = self._array_span
            return array.start + 1, array.end - 1, ""
        if index < len(items) - 1:
            return items[index].start, items[index + 1].start, ""
        return items[index - 1].end, items[index].end, ""
