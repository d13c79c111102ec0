"""
Nested cell addressing.

A Coordinate is a path of 1-based (row, col) pairs from a top-level anchor
down to a cell. The first pair names the tree: (1, 1) is root, (1, 2) is meta.

Text syntax:
    root | meta | <letters><digits> ('-' <letters><digits>)*
    e.g. "root-A1-B2-B3", "meta-A1"

Column letters are summed per character (A=1 ... Z=26), so "AB" is column 3,
not 28. Columns above 26 render as a run of Zs followed by one letter.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "Col",
    "Coordinate",
    "CoordinateError",
    "CoordinateParseError",
    "Direction",
    "META",
    "MissingParentError",
    "ROOT",
    "Row",
    "column_to_letters",
    "coord_col",
    "coord_row",
    "letters_to_column",
    "parse_coordinate",
]


class Direction(Enum):
    """Cardinal direction between sibling cells."""

    N = "N"  # Up (decreasing row)
    S = "S"  # Down (increasing row)
    E = "E"  # Right (increasing col)
    W = "W"  # Left (decreasing col)


class CoordinateError(ValueError):
    """A coordinate could not be built or a parent-relative query has no parent."""


class CoordinateParseError(CoordinateError):
    """Malformed coordinate text."""


class MissingParentError(CoordinateError):
    """A parent-relative operation was called on root or meta."""


# =============================================================================
# Column letters
# =============================================================================


def letters_to_column(letters: str) -> int:
    """
    Convert column letters to a column number by summing letter values.

    Examples: "A" -> 1, "Z" -> 26, "AB" -> 3, "ZA" -> 27
    """
    return sum(ord(ch) - 64 for ch in letters)


def column_to_letters(col: int) -> str:
    """Render a column number in the canonical summed form ("Z" * k + letter)."""
    if col < 1:
        raise CoordinateError(f"Column must be >= 1, got {col}")
    full_z = (col - 1) // 26
    return "Z" * full_z + chr(64 + col - 26 * full_z)


# =============================================================================
# Coordinate
# =============================================================================

_SPECIAL_PAIRS: dict[str, tuple[int, int]] = {"root": (1, 1), "meta": (1, 2)}
_SPECIAL_NAMES: dict[tuple[int, int], str] = {pair: name for name, pair in _SPECIAL_PAIRS.items()}

_FRAGMENT = re.compile(r"([A-Z]+)([0-9]+)")


def _fragment_to_string(row: int, col: int) -> str:
    return f"{column_to_letters(col)}{row}"


@dataclass(frozen=True, order=True)
class Coordinate:
    """
    Address of a cell as a non-empty path of (row, col) pairs.

    Equality and ordering are structural over the pairs, so sorting a set of
    coordinates gives a stable row-major, depth-first order.
    """

    row_cols: tuple[tuple[int, int], ...]

    def __post_init__(self) -> None:
        pairs = tuple((int(r), int(c)) for r, c in self.row_cols)
        if not pairs:
            raise CoordinateError("A coordinate needs at least one (row, col) pair")
        for depth, (r, c) in enumerate(pairs):
            if r < 1 or c < 1:
                raise CoordinateError(
                    f"Coordinate components are 1-based, got ({r}, {c}) at depth {depth}"
                )
        object.__setattr__(self, "row_cols", pairs)

    # -- structure -----------------------------------------------------------

    @staticmethod
    def child_of(parent: Coordinate, child: tuple[int, int]) -> Coordinate:
        """Append one (row, col) pair to parent's path."""
        return Coordinate(parent.row_cols + (child,))

    def __len__(self) -> int:
        return len(self.row_cols)

    @property
    def depth(self) -> int:
        return len(self.row_cols)

    def parent(self) -> Coordinate | None:
        """The path without its last pair, or None for root/meta."""
        if len(self.row_cols) == 1:
            return None
        return Coordinate(self.row_cols[:-1])

    def truncate(self, depth: int) -> Coordinate | None:
        """The ancestor (or self) at the given depth, None if depth is out of range."""
        if depth < 1 or depth > len(self.row_cols):
            return None
        return Coordinate(self.row_cols[:depth])

    def is_within(self, ancestor: Coordinate) -> bool:
        """True if self is ancestor or lies somewhere beneath it."""
        n = len(ancestor.row_cols)
        return len(self.row_cols) >= n and self.row_cols[:n] == ancestor.row_cols

    def rebase(self, old_prefix: Coordinate, new_prefix: Coordinate) -> Coordinate:
        """Replace the leading old_prefix of this path with new_prefix."""
        if not self.is_within(old_prefix):
            raise CoordinateError(
                f"{self.to_string()} does not lie within {old_prefix.to_string()}"
            )
        return Coordinate(new_prefix.row_cols + self.row_cols[len(old_prefix.row_cols):])

    @property
    def offset(self) -> tuple[int, int]:
        """The last (row, col) pair: this cell's position inside its parent grid."""
        return self.row_cols[-1]

    def row(self) -> int:
        if not self.row_cols:
            raise CoordinateError("a coordinate should always have a row, this one doesn't")
        return self.row_cols[-1][0]

    def col(self) -> int:
        if not self.row_cols:
            raise CoordinateError("a coordinate should always have a column, this one doesn't")
        return self.row_cols[-1][1]

    def full_row(self) -> Row:
        parent = self.parent()
        if parent is None:
            raise MissingParentError(
                f"full_row shouldn't be called on root or meta (got {self.to_string()})"
            )
        return Row(parent, self.row())

    def full_col(self) -> Col:
        parent = self.parent()
        if parent is None:
            raise MissingParentError(
                f"full_col shouldn't be called on root or meta (got {self.to_string()})"
            )
        return Col(parent, self.col())

    def is_n_parent(self, other: Coordinate) -> int | None:
        """
        Count the leading pairs shared with other.

        Returns None if self is longer than other. Otherwise the number of
        pairs matching before the first divergence (0 when nothing is shared).
        """
        if len(self.row_cols) > len(other.row_cols):
            return None
        n = 0
        for a, b in zip(self.row_cols, other.row_cols):
            if a != b:
                break
            n += 1
        return n

    # -- neighbors -----------------------------------------------------------

    def _with_last(self, row: int, col: int) -> Coordinate:
        return Coordinate(self.row_cols[:-1] + ((row, col),))

    def neighbor_above(self) -> Coordinate | None:
        r, c = self.row_cols[-1]
        if r <= 1:
            return None
        return self._with_last(r - 1, c)

    def neighbor_below(self) -> Coordinate:
        r, c = self.row_cols[-1]
        return self._with_last(r + 1, c)

    def neighbor_left(self) -> Coordinate | None:
        r, c = self.row_cols[-1]
        if c <= 1:
            return None
        return self._with_last(r, c - 1)

    def neighbor_right(self) -> Coordinate:
        r, c = self.row_cols[-1]
        return self._with_last(r, c + 1)

    def neighbor(self, direction: Direction) -> Coordinate | None:
        """Sibling one step in the given direction (None past the top/left edge)."""
        if direction == Direction.N:
            return self.neighbor_above()
        elif direction == Direction.S:
            return self.neighbor_below()
        elif direction == Direction.W:
            return self.neighbor_left()
        elif direction == Direction.E:
            return self.neighbor_right()
        else:
            raise ValueError(f"Unknown direction: {direction}")

    # -- text ----------------------------------------------------------------

    def to_string(self) -> str:
        """Render as text; round-trips with parse_coordinate."""
        parts: list[str] = []
        for depth, (r, c) in enumerate(self.row_cols):
            if depth == 0 and (r, c) in _SPECIAL_NAMES:
                parts.append(_SPECIAL_NAMES[(r, c)])
            else:
                parts.append(_fragment_to_string(r, c))
        return "-".join(parts)

    def row_to_string(self) -> str:
        """Parent path plus the bare row number, e.g. "root-A1-B2-3"."""
        parent = self.parent()
        if parent is None:
            return f"{self.row()}"
        return f"{parent.to_string()}-{self.row()}"

    def col_to_string(self) -> str:
        """Parent path plus the bare column letters, e.g. "root-A1-B2-B"."""
        parent = self.parent()
        if parent is None:
            return column_to_letters(self.col())
        return f"{parent.to_string()}-{column_to_letters(self.col())}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True, order=True)
class Row:
    """The index-th row of the grid at parent."""

    parent: Coordinate
    index: int

    def __post_init__(self) -> None:
        if self.index < 1:
            raise CoordinateError(f"Row indices are 1-based, got {self.index}")

    def to_string(self) -> str:
        return f"{self.parent.to_string()}-{self.index}"


@dataclass(frozen=True, order=True)
class Col:
    """The index-th column of the grid at parent."""

    parent: Coordinate
    index: int

    def __post_init__(self) -> None:
        if self.index < 1:
            raise CoordinateError(f"Column indices are 1-based, got {self.index}")

    def to_string(self) -> str:
        return f"{self.parent.to_string()}-{column_to_letters(self.index)}"


ROOT = Coordinate(((1, 1),))
META = Coordinate(((1, 2),))


# =============================================================================
# Parsing
# =============================================================================


def parse_coordinate(text: str) -> Coordinate:
    """
    Parse coordinate text into a Coordinate.

    Format:
    - Fragments separated by '-'
    - The first fragment may be the literal "root" (1, 1) or "meta" (1, 2)
    - Every other fragment is upper-case column letters followed by a row
      number, e.g. "B12" = row 12, column 2
    - Row numbers are decimal, >= 1, without leading zeros

    Only canonical text round-trips through to_string. The leading token is
    optional, so "A1-B2" parses to the same path as "root-B2" and renders as
    the latter; column letters like "AB" render as their canonical "C".

    Example:
        parse_coordinate("root-A1-B2-B3")
        -> Coordinate(((1, 1), (1, 1), (2, 2), (3, 2)))

    Args:
        text: Coordinate text

    Returns:
        The parsed Coordinate

    Raises:
        CoordinateParseError: On empty input, malformed fragments, misplaced
            root/meta tokens or zero row numbers
    """
    if not text:
        raise CoordinateParseError("Empty coordinate string")

    fragments = text.split("-")
    pairs: list[tuple[int, int]] = []

    for idx, fragment in enumerate(fragments):
        if fragment in _SPECIAL_PAIRS:
            if idx != 0:
                raise CoordinateParseError(
                    f"Invalid coordinate: '{text}'\n"
                    f"  '{fragment}' may only appear as the first fragment (found at position {idx})"
                )
            pairs.append(_SPECIAL_PAIRS[fragment])
            continue

        match = _FRAGMENT.fullmatch(fragment)
        if match is None:
            raise CoordinateParseError(
                f"Invalid coordinate fragment: '{fragment}'\n"
                f"  Coordinate: '{text}'\n"
                f"  Position: {idx}\n"
                f"  Valid formats:\n"
                f"    - 'root' or 'meta' (first fragment only)\n"
                f"    - Upper-case letters followed by a row number (e.g., 'A1', 'B12')"
            )

        letters, digits = match.groups()
        if digits.startswith("0"):
            raise CoordinateParseError(
                f"Invalid row number in fragment '{fragment}' of '{text}'\n"
                f"  Rows are 1-based and written without leading zeros"
            )
        pairs.append((int(digits), letters_to_column(letters)))

    return Coordinate(tuple(pairs))


def coord_row(parent_text: str, row_text: str) -> Row:
    """Build a Row from parent coordinate text and a row number, e.g. ("root-A1", "3")."""
    if not row_text.isdigit() or int(row_text) < 1:
        raise CoordinateParseError(f"Invalid row number: '{row_text}'")
    return Row(parse_coordinate(parent_text), int(row_text))


def coord_col(parent_text: str, col_text: str) -> Col:
    """Build a Col from parent coordinate text and column letters, e.g. ("root", "B")."""
    if re.fullmatch(r"[A-Z]+", col_text) is None:
        raise CoordinateParseError(f"Invalid column letters: '{col_text}'")
    return Col(parse_coordinate(parent_text), letters_to_column(col_text))
