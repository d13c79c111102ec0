"""
The session aggregate: root and meta grammars, the coordinate -> grammar map
and the row/column size maps.

Sessions are treated as values. Structural operations never mutate the session
they are given; they describe their effect as a SessionDiff and apply_diff
commits it to a copy after re-checking the map invariants, so an operation
either lands completely or not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from coordinate import META, ROOT, Col, Coordinate, Row
from grammar_types import Defn, Grammar, Grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SheetConfig:
    """Tunables shared by the structural operations."""

    default_row_height: float = 30.0
    default_col_width: float = 90.0
    root_rows: int = 3
    root_cols: int = 2
    nest_rows: int = 3
    nest_cols: int = 3


# =============================================================================
# Failures
# =============================================================================


@dataclass(frozen=True)
class OperationFailure:
    """Why a structural operation was rejected. The input session is unchanged."""

    operation: str
    coordinate: Coordinate | None
    details: str

    def __str__(self) -> str:
        where = f" at {self.coordinate.to_string()}" if self.coordinate is not None else ""
        return f"{self.operation} failed{where}: {self.details}"


@dataclass(frozen=True)
class PreconditionViolation(OperationFailure):
    """The anchor or arguments of an operation do not satisfy its contract."""

    pass


@dataclass(frozen=True)
class InvariantViolation(OperationFailure):
    """Applying the operation would leave the map inconsistent."""

    problems: tuple[str, ...] = ()


# =============================================================================
# Session
# =============================================================================


@dataclass
class Session:
    """
    Aggregate root of a sheet.

    grammars also holds the entries for root and meta themselves; the root and
    meta fields always mirror those two entries.
    """

    root: Grammar
    meta: Grammar
    grammars: dict[Coordinate, Grammar]
    row_heights: dict[Row, float] = field(default_factory=dict)
    col_widths: dict[Col, float] = field(default_factory=dict)
    title: str = "Session 1"
    active_cell: Coordinate | None = None

    def copy(self) -> Session:
        """Copy the maps; grammars and coordinates are immutable so they are shared."""
        return Session(
            root=self.root,
            meta=self.meta,
            grammars=dict(self.grammars),
            row_heights=dict(self.row_heights),
            col_widths=dict(self.col_widths),
            title=self.title,
            active_cell=self.active_cell,
        )


# =============================================================================
# Queries
# =============================================================================


def get_grammar(session: Session, coord: Coordinate) -> Grammar | None:
    return session.grammars.get(coord)


def get_grid(session: Session, coord: Coordinate) -> Grid | None:
    """The Grid kind stored at coord, or None if absent or not a grid."""
    grammar = session.grammars.get(coord)
    if grammar is not None and isinstance(grammar.kind, Grid):
        return grammar.kind
    return None


def children_of(session: Session, coord: Coordinate) -> list[Coordinate]:
    """
    Children of a grid in declaration order.

    Ordering comes from the Grid's declared offsets, not from map order.
    Non-grid cells have no children.
    """
    grid = get_grid(session, coord)
    if grid is None:
        return []
    return [Coordinate.child_of(coord, offset) for offset in grid.sub_coords]


def query_by_parent(session: Session, parent: Coordinate) -> set[Coordinate]:
    """All stored coordinates whose parent is parent (linear scan)."""
    return {k for k in session.grammars if k.parent() == parent}


def query_by_row(session: Session, row: Row) -> set[Coordinate]:
    """All stored coordinates in the given full row; root and meta are ignored."""
    return {k for k in session.grammars if len(k) > 1 and k.full_row() == row}


def query_by_col(session: Session, col: Col) -> set[Coordinate]:
    """All stored coordinates in the given full column; root and meta are ignored."""
    return {k for k in session.grammars if len(k) > 1 and k.full_col() == col}


def descendants_of(session: Session, coord: Coordinate) -> set[Coordinate]:
    """Every stored coordinate strictly beneath coord."""
    return {k for k in session.grammars if len(k) > len(coord) and k.is_within(coord)}


def size_of_row(session: Session, row: Row, config: SheetConfig | None = None) -> float:
    config = config or SheetConfig()
    return session.row_heights.get(row, config.default_row_height)


def size_of_col(session: Session, col: Col, config: SheetConfig | None = None) -> float:
    config = config or SheetConfig()
    return session.col_widths.get(col, config.default_col_width)


# =============================================================================
# Invariants
# =============================================================================


def check_invariants(session: Session) -> list[str]:
    """
    Check the map consistency rules.

    - root and meta are stored and are the grammars held by the session
    - every declared child of a grid is stored (no dangling children)
    - every other stored coordinate has a Grid parent that declares it (no orphans)
    - a Defn's table coordinate and every rule coordinate are stored
    - the active cell, if any, is stored

    Returns:
        Human-readable problems; empty when the session is consistent
    """
    problems: list[str] = []
    grammars = session.grammars

    for anchor, held in ((ROOT, session.root), (META, session.meta)):
        stored = grammars.get(anchor)
        if stored is None:
            problems.append(f"{anchor.to_string()} is missing from the map")
        elif stored != held:
            problems.append(f"{anchor.to_string()} in the map differs from the session's copy")

    for coord, grammar in grammars.items():
        if isinstance(grammar.kind, Grid):
            for offset in grammar.kind.sub_coords:
                child = Coordinate.child_of(coord, offset)
                if child not in grammars:
                    problems.append(
                        f"{coord.to_string()} declares {child.to_string()} which is not stored"
                    )
        elif isinstance(grammar.kind, Defn):
            if grammar.kind.defn_coord not in grammars:
                problems.append(
                    f"{coord.to_string()} defines its rules at "
                    f"{grammar.kind.defn_coord.to_string()} which is not stored"
                )
            for rule_name, rule_coord in grammar.kind.rules:
                if rule_coord not in grammars:
                    problems.append(
                        f"{coord.to_string()} rule {rule_name!r} refers to "
                        f"{rule_coord.to_string()} which is not stored"
                    )

        parent = coord.parent()
        if parent is None:
            if coord not in (ROOT, META):
                problems.append(f"{coord.to_string()} is a top-level coordinate other than root/meta")
            continue
        parent_grammar = grammars.get(parent)
        if parent_grammar is None:
            problems.append(f"{coord.to_string()} has no stored parent")
        elif not isinstance(parent_grammar.kind, Grid):
            problems.append(f"{coord.to_string()} has a parent that is not a grid")
        elif not parent_grammar.kind.declares(coord.offset):
            problems.append(f"{coord.to_string()} is not declared by its parent grid")

    if session.active_cell is not None and session.active_cell not in grammars:
        problems.append(f"active cell {session.active_cell.to_string()} is not stored")

    return problems


# =============================================================================
# Diffs
# =============================================================================


@dataclass(frozen=True)
class SessionDiff:
    """
    The complete effect of one structural operation.

    A None value removes the key. active_cell of None leaves the active cell
    as it is.
    """

    operation: str
    anchor: Coordinate | None = None
    grammars: dict[Coordinate, Grammar | None] = field(default_factory=dict)
    row_heights: dict[Row, float | None] = field(default_factory=dict)
    col_widths: dict[Col, float | None] = field(default_factory=dict)
    active_cell: Coordinate | None = None

    @property
    def added(self) -> set[Coordinate]:
        return {c for c, g in self.grammars.items() if g is not None}

    @property
    def removed(self) -> set[Coordinate]:
        return {c for c, g in self.grammars.items() if g is None}


def apply_diff(session: Session, diff: SessionDiff) -> Session | InvariantViolation:
    """
    Apply a diff to a copy of session.

    Args:
        session: The session to start from (left untouched)
        diff: The effect to apply

    Returns:
        The new session, or an InvariantViolation if the result would be
        inconsistent (in which case nothing is committed)
    """
    new_session = session.copy()

    for coord, grammar in diff.grammars.items():
        if grammar is None:
            new_session.grammars.pop(coord, None)
        else:
            new_session.grammars[coord] = grammar
    for row, height in diff.row_heights.items():
        if height is None:
            new_session.row_heights.pop(row, None)
        else:
            new_session.row_heights[row] = height
    for col, width in diff.col_widths.items():
        if width is None:
            new_session.col_widths.pop(col, None)
        else:
            new_session.col_widths[col] = width
    if diff.active_cell is not None:
        new_session.active_cell = diff.active_cell

    if ROOT in new_session.grammars:
        new_session.root = new_session.grammars[ROOT]
    if META in new_session.grammars:
        new_session.meta = new_session.grammars[META]

    problems = check_invariants(new_session)
    if problems:
        logger.warning("%s rejected: %s", diff.operation, "; ".join(problems))
        return InvariantViolation(
            diff.operation,
            diff.anchor,
            f"{len(problems)} invariant problem(s), first: {problems[0]}",
            tuple(problems),
        )

    logger.info(
        "%s at %s: +%d -%d cells",
        diff.operation,
        diff.anchor.to_string() if diff.anchor is not None else "-",
        len(diff.added),
        len(diff.removed),
    )
    return new_session
