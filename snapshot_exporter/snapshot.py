#!/usr/bin/env python3
"""
Snapshot file writer.

Each export target ends up as ``<output_directory>/<name>.json`` holding::

    {
      "data": [ ...rows exactly as the database serialized them... ],
      "export_date": "YYYY-MM-DD"
    }

The rows arrive already serialized by the database. They are carried as a
RawJSON fragment and spliced into the document as text, so numbers such as
``12.3400000000000000001`` are written exactly as PostgreSQL produced them
instead of going through float conversion.
"""

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any, Dict, List

from snapshot_exporter.errors import SnapshotFormatError

SNAPSHOT_SUFFIX = '.json'
INDENT = '  '


@dataclass(frozen=True)
class RawJSON:
    """A pre-serialized JSON value, embedded verbatim when building documents."""
    text: str

    def validate(self) -> None:
        def _reject_constant(name: str) -> Any:
            raise ValueError(f"{name} is not valid JSON")

        try:
            # Syntax check only; numbers stay strings so arbitrarily long literals are accepted
            json.loads(self.text, parse_int=str, parse_float=str, parse_constant=_reject_constant)
        except ValueError as e:
            raise SnapshotFormatError(f"Invalid JSON fragment: {e}") from e


def encode_object(fields: Dict[str, Any]) -> str:
    """Compact JSON object; RawJSON values are inserted as-is, everything else goes through json.dumps."""
    members: List[str] = []
    for key, value in fields.items():
        if isinstance(value, RawJSON):
            value.validate()
            encoded = value.text
        else:
            encoded = json.dumps(value, ensure_ascii=False)
        members.append(f"{json.dumps(key, ensure_ascii=False)}:{encoded}")
    return "{" + ",".join(members) + "}"


def indent_json(text: str, indent: str = INDENT) -> str:
    """
    Pretty-print valid JSON text by rewriting only the whitespace between tokens.

    String and number tokens are copied unchanged. Empty arrays and objects
    stay on one line as ``[]`` and ``{}``.
    """
    out: List[str] = []
    depth = 0
    in_string = False
    escaped = False
    opened = False  # just emitted '[' or '{', newline pending until we see what follows

    def newline() -> None:
        out.append('\n' + indent * depth)

    for ch in text:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch in ' \t\r\n':
            continue

        if opened and ch not in ']}':
            opened = False
            depth += 1
            newline()

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in '[{':
            out.append(ch)
            opened = True
        elif ch in ']}':
            if opened:
                opened = False
            else:
                depth -= 1
                newline()
            out.append(ch)
        elif ch == ',':
            out.append(ch)
            newline()
        elif ch == ':':
            out.append(': ')
        else:
            out.append(ch)

    return ''.join(out)


def build_export_document(fragment: RawJSON, export_date: str) -> str:
    """Wrap a view's rows and the run date into the pretty-printed export document."""
    return indent_json(encode_object({
        'data': fragment,
        'export_date': export_date,
    }))


class SnapshotWriter:
    output_directory: Path

    def __init__(self, output_directory: Path) -> None:
        self.output_directory = output_directory

    def prepare(self) -> None:
        """Create the output directory (and parents). Raises OSError on failure."""
        self.output_directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.output_directory / f"{name}{SNAPSHOT_SUFFIX}"

    def write(self, name: str, fragment: RawJSON, export_date: str) -> Path:
        document: str = build_export_document(fragment, export_date)
        path: Path = self.path_for(name)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(document)
        return path
