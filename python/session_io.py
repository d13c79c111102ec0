"""
Session snapshots as plain JSON-compatible documents.

Document layout:
    {
      "title": "Session 1",
      "root": <grammar>, "meta": <grammar>,
      "grammars": [{"coordinate": "root-A1", "grammar": <grammar>}, ...],
      "row_heights": [{"parent": "root", "index": 1, "size": 30.0}, ...],
      "col_widths": [{"parent": "root", "index": 1, "size": 90.0}, ...],
      "active_cell": "root-A1" | null
    }

A grammar is {"name", "kind", "style"} where kind is a tagged object such as
{"type": "Text", "content": "hello"} or {"type": "Grid", "sub_coords": [[1, 1]]}.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from coordinate import Col, CoordinateError, Row, parse_coordinate
from grammar_types import (
    Button,
    Control,
    Defn,
    Grammar,
    Grid,
    Input,
    Interactive,
    Kind,
    Lookup,
    LookupKind,
    Slider,
    Style,
    Text,
    Toggle,
)
from session import Session, check_invariants

logger = logging.getLogger(__name__)


class SnapshotError(ValueError):
    """A snapshot document is malformed or describes an inconsistent session."""


# =============================================================================
# Encoding
# =============================================================================


def _encode_control(control: Control) -> dict[str, Any]:
    match control:
        case Button():
            return {"type": "Button"}
        case Slider(value=value, min_value=min_value, max_value=max_value):
            return {"type": "Slider", "value": value, "min": min_value, "max": max_value}
        case Toggle(checked=checked):
            return {"type": "Toggle", "checked": checked}
        case _:
            raise ValueError(f"Unknown control: {control}")


def _encode_kind(kind: Kind) -> dict[str, Any]:
    match kind:
        case Text(content=content):
            return {"type": "Text", "content": content}
        case Input(content=content):
            return {"type": "Input", "content": content}
        case Interactive(name=name, control=control):
            return {"type": "Interactive", "name": name, "control": _encode_control(control)}
        case Grid(sub_coords=sub_coords):
            return {"type": "Grid", "sub_coords": [list(offset) for offset in sub_coords]}
        case Lookup(query=query, kind=lookup_kind):
            return {
                "type": "Lookup",
                "query": query,
                "kind": lookup_kind.value if lookup_kind is not None else None,
            }
        case Defn(name=name, defn_coord=defn_coord, rules=rules):
            return {
                "type": "Defn",
                "name": name,
                "defn_coord": defn_coord.to_string(),
                "rules": [[rule, coord.to_string()] for rule, coord in rules],
            }
        case _:
            raise ValueError(f"Unknown grammar kind: {kind}")


def _encode_grammar(grammar: Grammar) -> dict[str, Any]:
    return {
        "name": grammar.name,
        "kind": _encode_kind(grammar.kind),
        "style": {
            "display": grammar.style.display,
            "font_weight": grammar.style.font_weight,
            "font_color": grammar.style.font_color,
        },
    }


def to_snapshot(session: Session) -> dict[str, Any]:
    """Render a session as a JSON-compatible document. Entries are sorted by key."""
    return {
        "title": session.title,
        "root": _encode_grammar(session.root),
        "meta": _encode_grammar(session.meta),
        "grammars": [
            {"coordinate": coord.to_string(), "grammar": _encode_grammar(grammar)}
            for coord, grammar in sorted(session.grammars.items())
        ],
        "row_heights": [
            {"parent": row.parent.to_string(), "index": row.index, "size": size}
            for row, size in sorted(session.row_heights.items())
        ],
        "col_widths": [
            {"parent": col.parent.to_string(), "index": col.index, "size": size}
            for col, size in sorted(session.col_widths.items())
        ],
        "active_cell": session.active_cell.to_string() if session.active_cell is not None else None,
    }


# =============================================================================
# Decoding
# =============================================================================


def _expect_object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise SnapshotError(f"Malformed snapshot: {what} must be an object, got {type(data).__name__}")
    return data


def _decode_offset(pair: Any) -> tuple[int, int]:
    r, c = pair
    if int(r) < 1 or int(c) < 1:
        raise SnapshotError(f"Malformed snapshot: grid offsets are 1-based, got {list(pair)!r}")
    return int(r), int(c)


def _decode_control(data: Any) -> Control:
    match _expect_object(data, "control").get("type"):
        case "Button":
            return Button()
        case "Slider":
            return Slider(float(data["value"]), float(data["min"]), float(data["max"]))
        case "Toggle":
            return Toggle(bool(data["checked"]))
        case other:
            raise SnapshotError(f"Unknown control type: {other!r}")


def _decode_kind(data: Any) -> Kind:
    match _expect_object(data, "grammar kind").get("type"):
        case "Text":
            return Text(data["content"])
        case "Input":
            return Input(data["content"])
        case "Interactive":
            return Interactive(data["name"], _decode_control(data["control"]))
        case "Grid":
            return Grid(tuple(_decode_offset(pair) for pair in data["sub_coords"]))
        case "Lookup":
            kind = data.get("kind")
            return Lookup(data["query"], LookupKind(kind) if kind is not None else None)
        case "Defn":
            rules = tuple((name, parse_coordinate(coord)) for name, coord in data["rules"])
            return Defn(data["name"], parse_coordinate(data["defn_coord"]), rules)
        case other:
            raise SnapshotError(f"Unknown grammar kind: {other!r}")


def _decode_grammar(data: Any) -> Grammar:
    data = _expect_object(data, "grammar")
    style = _expect_object(data.get("style", {}), "style")
    return Grammar(
        data["name"],
        _decode_kind(data["kind"]),
        Style(
            display=style.get("display", True),
            font_weight=style.get("font_weight", 400),
            font_color=style.get("font_color", "black"),
        ),
    )


def from_snapshot(data: dict[str, Any]) -> Session:
    """
    Rebuild a session from a snapshot document.

    Args:
        data: A document in the layout described in this module's docstring

    Returns:
        The loaded session

    Raises:
        SnapshotError: If the document is malformed or the session it describes
            breaks the map invariants
    """
    try:
        data = _expect_object(data, "snapshot")
        session = Session(
            root=_decode_grammar(data["root"]),
            meta=_decode_grammar(data["meta"]),
            grammars={
                parse_coordinate(entry["coordinate"]): _decode_grammar(entry["grammar"])
                for entry in data["grammars"]
            },
            row_heights={
                Row(parse_coordinate(entry["parent"]), int(entry["index"])): float(entry["size"])
                for entry in data.get("row_heights", [])
            },
            col_widths={
                Col(parse_coordinate(entry["parent"]), int(entry["index"])): float(entry["size"])
                for entry in data.get("col_widths", [])
            },
            title=data.get("title", "Session 1"),
            active_cell=(
                parse_coordinate(data["active_cell"]) if data.get("active_cell") is not None else None
            ),
        )
    except SnapshotError:
        raise
    except CoordinateError as e:
        raise SnapshotError(f"Invalid coordinate in snapshot: {e}") from e
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise SnapshotError(f"Malformed snapshot: {e!r}") from e

    problems = check_invariants(session)
    if problems:
        raise SnapshotError(
            "Snapshot describes an inconsistent session:\n"
            + "\n".join(f"  - {problem}" for problem in problems)
        )
    return session


# =============================================================================
# Text and files
# =============================================================================


def dumps(session: Session) -> str:
    return json.dumps(to_snapshot(session), indent=2)


def loads(text: str) -> Session:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SnapshotError(f"Snapshot must be a JSON object, got {type(data).__name__}")
    return from_snapshot(data)


def save_session(session: Session, path: str | Path) -> None:
    path = Path(path)
    path.write_text(dumps(session), encoding="utf-8")
    logger.info("Saved %s (%d cells) to %s", session.title, len(session.grammars), path)


def load_session(path: str | Path) -> Session:
    """Load a session from a file written by save_session."""
    path = Path(path)
    session = loads(path.read_text(encoding="utf-8"))
    logger.info("Loaded %s (%d cells) from %s", session.title, len(session.grammars), path)
    return session
