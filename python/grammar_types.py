"""
Shared type definitions for grammars (the typed content of a cell).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from coordinate import Coordinate

# =============================================================================
# Style
# =============================================================================


@dataclass(frozen=True)
class Style:
    """Presentation hints carried with a grammar; opaque to the core."""

    display: bool = True
    font_weight: int = 400
    font_color: str = "black"


# =============================================================================
# Kinds
# =============================================================================


@dataclass(frozen=True)
class Text:
    """Static display string."""

    content: str = ""


@dataclass(frozen=True)
class Input:
    """Editable string, completed against the meta suggestions."""

    content: str = ""


@dataclass(frozen=True)
class Button:
    """A push button."""

    pass


@dataclass(frozen=True)
class Slider:
    """A range control."""

    value: float
    min_value: float
    max_value: float


@dataclass(frozen=True)
class Toggle:
    """A checkbox."""

    checked: bool = False


Control = Button | Slider | Toggle


@dataclass(frozen=True)
class Interactive:
    """A named interactive control."""

    name: str
    control: Control


@dataclass(frozen=True)
class Grid:
    """
    Declares which child offsets exist directly beneath a cell.

    This is the authoritative shape of a nested grid: every declared offset
    must have its own entry in the session map.
    """

    sub_coords: tuple[tuple[int, int], ...]

    @property
    def rows(self) -> list[int]:
        """Distinct row indices, ascending."""
        return sorted({r for r, _ in self.sub_coords})

    @property
    def cols(self) -> list[int]:
        """Distinct column indices, ascending."""
        return sorted({c for _, c in self.sub_coords})

    def declares(self, offset: tuple[int, int]) -> bool:
        return offset in self.sub_coords

    def with_offsets(self, offsets: list[tuple[int, int]] | tuple[tuple[int, int], ...]) -> Grid:
        """Append offsets not already declared, keeping declaration order."""
        merged = list(self.sub_coords)
        for offset in offsets:
            if offset not in merged:
                merged.append(offset)
        return Grid(tuple(merged))

    def without_offsets(self, offsets: set[tuple[int, int]]) -> Grid:
        return Grid(tuple(o for o in self.sub_coords if o not in offsets))


class LookupKind(Enum):
    """Which rendered form of a coordinate a lookup query is matched against."""

    CELL = "cell"
    ROW = "row"
    COL = "col"


@dataclass(frozen=True)
class Lookup:
    """A reference resolved against the global coordinate space."""

    query: str = ""
    kind: LookupKind | None = None


@dataclass(frozen=True)
class Defn:
    """
    A named rule definition.

    defn_coord is the grid holding the definition table; rules pairs each
    sub-rule name with the coordinate of its grammar inside that table.
    """

    name: str
    defn_coord: Coordinate
    rules: tuple[tuple[str, Coordinate], ...] = ()


Kind = Text | Input | Interactive | Grid | Lookup | Defn


# =============================================================================
# Grammar
# =============================================================================


@dataclass(frozen=True)
class Grammar:
    """A named, styled cell whose behavior is given by its kind."""

    name: str
    kind: Kind
    style: Style = field(default_factory=Style)

    @staticmethod
    def default() -> Grammar:
        """Fresh empty editable cell."""
        return Grammar("input", Input(""))

    @staticmethod
    def text(content: str, name: str = "text") -> Grammar:
        return Grammar(name, Text(content))

    @staticmethod
    def suggestion(name: str, content: str) -> Grammar:
        """A named static grammar offered as a completion."""
        return Grammar(name, Text(content))

    @staticmethod
    def as_grid(rows: int, cols: int, name: str = "grid") -> Grammar:
        """A rows x cols grid, offsets declared row-major."""
        offsets = tuple((r, c) for r in range(1, rows + 1) for c in range(1, cols + 1))
        return Grammar(name, Grid(offsets))

    @property
    def is_grid(self) -> bool:
        return isinstance(self.kind, Grid)

    def with_kind(self, kind: Kind) -> Grammar:
        return Grammar(self.name, kind, self.style)


def describe_kind(kind: Kind) -> str:
    """Short human-readable label for a kind."""
    match kind:
        case Text(content=content):
            return content
        case Input(content=content):
            return content
        case Interactive(name=name, control=Button()):
            return f"[{name}]"
        case Interactive(name=name, control=Slider(value=value)):
            return f"{name}={value:g}"
        case Interactive(name=name, control=Toggle(checked=checked)):
            return f"{name}:{'on' if checked else 'off'}"
        case Grid(sub_coords=sub_coords):
            return f"#{len(sub_coords)}"
        case Lookup(query=query):
            return f"${query}"
        case Defn(name=name):
            return f"defn {name}"
        case _:
            raise ValueError(f"Unknown grammar kind: {kind}")
