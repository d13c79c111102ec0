"""
Structural operations over a Session.

Every operation is split in two phases:
1. plan_*: inspect the session and describe the whole effect as a SessionDiff
   (or return a PreconditionViolation)
2. apply_diff: commit the diff to a copy of the session, rejecting it if the
   map invariants would break

The public operations chain the two and return either a new Session or an
OperationFailure. The input session is never modified.
"""

from __future__ import annotations

import logging
from typing import Sequence

from coordinate import META, ROOT, Col, Coordinate, Direction, Row, parse_coordinate
from grammar_types import Defn, Grammar, Grid, Input, Interactive, Lookup, Text
from session import (
    OperationFailure,
    PreconditionViolation,
    Session,
    SessionDiff,
    SheetConfig,
    apply_diff,
    descendants_of,
    query_by_col,
    query_by_row,
)

__all__ = [
    "add_nested_grid",
    "apply_definition_grammar",
    "change_input",
    "delete_col",
    "delete_row",
    "do_completion",
    "insert_col",
    "insert_row",
    "merge_cells",
    "move_grammar",
    "new_session",
    "plan_delete_col",
    "plan_delete_row",
    "plan_insert_col",
    "plan_insert_row",
    "plan_merge_cells",
    "plan_move_grammar",
    "plan_nested_grid",
    "plan_resize",
    "plan_resize_cells",
    "resize",
    "resize_cells",
    "set_active_cell",
    "toggle_lookup",
]

logger = logging.getLogger(__name__)

RowSizes = dict[Row, float | None]
ColSizes = dict[Col, float | None]
GrammarChanges = dict[Coordinate, Grammar | None]
Moves = Sequence[tuple[Coordinate, Coordinate]]


# =============================================================================
# Helpers
# =============================================================================


def _fail(operation: str, coord: Coordinate | None, details: str) -> PreconditionViolation:
    where = coord.to_string() if coord is not None else "-"
    logger.warning("%s rejected at %s: %s", operation, where, details)
    return PreconditionViolation(operation, coord, details)


def _commit(session: Session, plan: SessionDiff | OperationFailure) -> Session | OperationFailure:
    if isinstance(plan, OperationFailure):
        return plan
    return apply_diff(session, plan)


def _grid_parent(
    session: Session, coord: Coordinate, operation: str
) -> tuple[Coordinate, Grammar, Grid] | PreconditionViolation:
    """The parent coordinate, its grammar and its Grid kind, or a failure."""
    parent = coord.parent()
    if parent is None:
        return _fail(operation, coord, "root and meta have no parent grid")
    grammar = session.grammars.get(parent)
    if grammar is None or not isinstance(grammar.kind, Grid):
        return _fail(operation, coord, f"parent {parent.to_string()} is not a grid")
    return parent, grammar, grammar.kind


def _active_cell(session: Session, operation: str) -> Coordinate | PreconditionViolation:
    active = session.active_cell
    if active is None:
        return _fail(operation, None, "no active cell")
    if active not in session.grammars:
        return _fail(operation, active, "active cell is not stored in the session")
    return active


def _ensure_default_sizes(
    session: Session,
    row_heights: RowSizes,
    col_widths: ColSizes,
    coord: Coordinate,
    config: SheetConfig,
) -> None:
    """Give coord's full row and column a default size unless one exists or is being written."""
    row, col = coord.full_row(), coord.full_col()
    height = row_heights[row] if row in row_heights else session.row_heights.get(row)
    if height is None:
        row_heights[row] = config.default_row_height
    width = col_widths[col] if col in col_widths else session.col_widths.get(col)
    if width is None:
        col_widths[col] = config.default_col_width


def _drop_sizes_within(
    session: Session,
    prefix: Coordinate,
    row_heights: RowSizes,
    col_widths: ColSizes,
    keep_own: bool = False,
) -> None:
    """Mark for removal every size entry describing rows/cols inside prefix's subtree."""
    for row in session.row_heights:
        if row.parent.is_within(prefix) and not (keep_own and row.parent == prefix):
            row_heights[row] = None
    for col in session.col_widths:
        if col.parent.is_within(prefix) and not (keep_own and col.parent == prefix):
            col_widths[col] = None


def _drop_subtree(
    session: Session,
    coord: Coordinate,
    grammars: GrammarChanges,
    row_heights: RowSizes,
    col_widths: ColSizes,
    include_self: bool = True,
) -> None:
    if include_self:
        grammars[coord] = None
    for descendant in descendants_of(session, coord):
        grammars[descendant] = None
    _drop_sizes_within(session, coord, row_heights, col_widths, keep_own=not include_self)


def _move_coord(coord: Coordinate, moves: Moves) -> Coordinate:
    for old, new in moves:
        if coord.is_within(old):
            return coord.rebase(old, new)
    return coord


def _retarget(grammar: Grammar, moves: Moves, dropped: Sequence[Coordinate] = ()) -> Grammar:
    """Rewrite the coordinates a Defn refers to after subtrees moved or were removed."""
    kind = grammar.kind
    if (not moves and not dropped) or not isinstance(kind, Defn):
        return grammar
    rules = tuple(
        (name, _move_coord(c, moves))
        for name, c in kind.rules
        if not any(c.is_within(gone) for gone in dropped)
    )
    return grammar.with_kind(Defn(kind.name, _move_coord(kind.defn_coord, moves), rules))


def _retarget_definitions(
    session: Session,
    grammars: GrammarChanges,
    moves: Moves,
    dropped: Sequence[Coordinate] = (),
) -> None:
    """Retarget every definition of the resulting map, moved or not."""
    if not moves and not dropped:
        return
    resulting = {c: g for c, g in session.grammars.items() if c not in grammars}
    resulting.update({c: g for c, g in grammars.items() if g is not None})
    for coord, grammar in resulting.items():
        updated = _retarget(grammar, moves, dropped)
        if updated != grammar:
            grammars[coord] = updated


def _copy_subtree(
    session: Session,
    source: Coordinate,
    dest: Coordinate,
    grammars: GrammarChanges,
    row_heights: RowSizes,
    col_widths: ColSizes,
    config: SheetConfig,
    moves: Moves = (),
) -> None:
    """Write source and everything beneath it, re-rooted at dest, into the change maps."""
    subtree = [source, *sorted(descendants_of(session, source))]
    for coord in subtree:
        grammars[coord.rebase(source, dest)] = _retarget(session.grammars[coord], moves)
    for row, height in session.row_heights.items():
        if row.parent.is_within(source):
            row_heights[Row(row.parent.rebase(source, dest), row.index)] = height
    for col, width in session.col_widths.items():
        if col.parent.is_within(source):
            col_widths[Col(col.parent.rebase(source, dest), col.index)] = width
    for coord in subtree[1:]:
        _ensure_default_sizes(session, row_heights, col_widths, coord.rebase(source, dest), config)


# =============================================================================
# Nest grid
# =============================================================================


def plan_nested_grid(
    session: Session,
    coord: Coordinate,
    rows: int,
    cols: int,
    config: SheetConfig | None = None,
) -> SessionDiff | PreconditionViolation:
    """
    Plan replacing the cell at coord with a rows x cols grid of fresh cells.

    Any content previously nested beneath coord is discarded. Row/column size
    entries of the new children get defaults where absent, coord itself is
    sized to rows * default height by cols * default width, and the active
    cell moves to the first child.
    """
    config = config or SheetConfig()
    operation = "add_nested_grid"

    if rows < 1 or cols < 1:
        return _fail(operation, coord, f"grid shape must be at least 1x1, got {rows}x{cols}")
    existing = session.grammars.get(coord)
    if existing is None:
        return _fail(operation, coord, "no cell at this coordinate")

    grammars: GrammarChanges = {}
    row_heights: RowSizes = {}
    col_widths: ColSizes = {}

    parent = coord.parent()
    if parent is not None:
        found = _grid_parent(session, coord, operation)
        if isinstance(found, PreconditionViolation):
            return found
        _, parent_grammar, parent_grid = found
        if not parent_grid.declares(coord.offset):
            grammars[parent] = parent_grammar.with_kind(parent_grid.with_offsets([coord.offset]))

    _drop_subtree(session, coord, grammars, row_heights, col_widths, include_self=False)

    grid = Grid(tuple((r, c) for r in range(1, rows + 1) for c in range(1, cols + 1)))
    grammars[coord] = Grammar("grid", grid, existing.style)
    for offset in grid.sub_coords:
        child = Coordinate.child_of(coord, offset)
        grammars[child] = Grammar.default()
        _ensure_default_sizes(session, row_heights, col_widths, child, config)

    if parent is not None:
        row_heights[coord.full_row()] = rows * config.default_row_height
        col_widths[coord.full_col()] = cols * config.default_col_width

    first_child = Coordinate.child_of(coord, grid.sub_coords[0])
    return SessionDiff(operation, coord, grammars, row_heights, col_widths, active_cell=first_child)


def add_nested_grid(
    session: Session,
    coord: Coordinate,
    rows: int,
    cols: int,
    config: SheetConfig | None = None,
) -> Session | OperationFailure:
    """Nest a rows x cols grid at coord. See plan_nested_grid."""
    return _commit(session, plan_nested_grid(session, coord, rows, cols, config))


# =============================================================================
# Insert / delete rows and columns
# =============================================================================


def _plan_insert_line(
    session: Session, axis: Direction, config: SheetConfig
) -> SessionDiff | PreconditionViolation:
    """
    Add a row (axis S) or column (axis E) after the last occupied one.

    Walks from the active cell in the axis direction while the neighbor is
    stored, then copies the shape of that last full row/column one step
    further out.
    """
    operation = "insert_row" if axis == Direction.S else "insert_col"
    active = _active_cell(session, operation)
    if isinstance(active, PreconditionViolation):
        return active
    found = _grid_parent(session, active, operation)
    if isinstance(found, PreconditionViolation):
        return found
    parent, parent_grammar, grid = found

    edge = active
    while True:
        step = edge.neighbor(axis)
        if step is None or step not in session.grammars:
            break
        edge = step

    if axis == Direction.S:
        line = query_by_row(session, edge.full_row())
        new_offsets = sorted((c.row() + 1, c.col()) for c in line)
    else:
        line = query_by_col(session, edge.full_col())
        new_offsets = sorted((c.row(), c.col() + 1) for c in line)

    grammars: GrammarChanges = {}
    row_heights: RowSizes = {}
    col_widths: ColSizes = {}
    added: list[tuple[int, int]] = []

    for offset in new_offsets:
        child = Coordinate.child_of(parent, offset)
        if child in session.grammars:
            logger.debug("%s: %s already exists, left untouched", operation, child.to_string())
            continue
        grammars[child] = Grammar.default()
        added.append(offset)
        _ensure_default_sizes(session, row_heights, col_widths, child, config)

    grammars[parent] = parent_grammar.with_kind(grid.with_offsets(added))
    return SessionDiff(operation, active, grammars, row_heights, col_widths)


def plan_insert_row(session: Session, config: SheetConfig | None = None) -> SessionDiff | PreconditionViolation:
    return _plan_insert_line(session, Direction.S, config or SheetConfig())


def plan_insert_col(session: Session, config: SheetConfig | None = None) -> SessionDiff | PreconditionViolation:
    return _plan_insert_line(session, Direction.E, config or SheetConfig())


def insert_row(session: Session, config: SheetConfig | None = None) -> Session | OperationFailure:
    """Append a row below the last occupied row of the active cell's grid."""
    return _commit(session, plan_insert_row(session, config))


def insert_col(session: Session, config: SheetConfig | None = None) -> Session | OperationFailure:
    """Append a column right of the last occupied column of the active cell's grid."""
    return _commit(session, plan_insert_col(session, config))


def _plan_delete_line(
    session: Session, axis: Direction, config: SheetConfig
) -> SessionDiff | PreconditionViolation:
    """
    Remove the active cell's full row (axis S) or column (axis E).

    Later rows/columns shift back by one, taking their nested subtrees, size
    entries and any definitions pointing into them along.
    """
    is_row = axis == Direction.S
    operation = "delete_row" if is_row else "delete_col"
    active = _active_cell(session, operation)
    if isinstance(active, PreconditionViolation):
        return active
    found = _grid_parent(session, active, operation)
    if isinstance(found, PreconditionViolation):
        return found
    parent, parent_grammar, grid = found

    index = active.row() if is_row else active.col()
    if len(grid.rows if is_row else grid.cols) <= 1:
        kind = "row" if is_row else "column"
        return _fail(operation, active, f"cannot delete the last {kind} of a grid")

    def line_of(offset: tuple[int, int]) -> int:
        return offset[0] if is_row else offset[1]

    def shifted(offset: tuple[int, int]) -> tuple[int, int]:
        r, c = offset
        return (r - 1, c) if is_row else (r, c - 1)

    grammars: GrammarChanges = {}
    row_heights: RowSizes = {}
    col_widths: ColSizes = {}
    own_sizes: dict = session.row_heights if is_row else session.col_widths
    own_changes: dict = row_heights if is_row else col_widths
    key_type = Row if is_row else Col

    # Pass 1: clear everything at or after the deleted line
    for offset in grid.sub_coords:
        if line_of(offset) >= index:
            _drop_subtree(session, Coordinate.child_of(parent, offset), grammars, row_heights, col_widths)
    for key in own_sizes:
        if key.parent == parent and key.index >= index:
            own_changes[key] = None

    # Pass 2: write back the survivors, shifted
    moves: list[tuple[Coordinate, Coordinate]] = []
    dropped: list[Coordinate] = []
    new_offsets: list[tuple[int, int]] = []
    for offset in grid.sub_coords:
        line = line_of(offset)
        if line < index:
            new_offsets.append(offset)
        elif line == index:
            dropped.append(Coordinate.child_of(parent, offset))
        else:
            source = Coordinate.child_of(parent, offset)
            target = Coordinate.child_of(parent, shifted(offset))
            moves.append((source, target))
            new_offsets.append(shifted(offset))
            _copy_subtree(session, source, target, grammars, row_heights, col_widths, config)
    for key, size in own_sizes.items():
        if key.parent == parent and key.index > index:
            own_changes[key_type(parent, key.index - 1)] = size

    grammars[parent] = parent_grammar.with_kind(Grid(tuple(new_offsets)))
    # Rules on the deleted line go with it
    _retarget_definitions(session, grammars, moves, dropped)

    if active.offset in new_offsets:
        next_active = active
    else:
        before = shifted(active.offset) if index > 1 else None
        next_offset = before if before in new_offsets else new_offsets[0]
        next_active = Coordinate.child_of(parent, next_offset)

    return SessionDiff(operation, active, grammars, row_heights, col_widths, active_cell=next_active)


def plan_delete_row(session: Session, config: SheetConfig | None = None) -> SessionDiff | PreconditionViolation:
    return _plan_delete_line(session, Direction.S, config or SheetConfig())


def plan_delete_col(session: Session, config: SheetConfig | None = None) -> SessionDiff | PreconditionViolation:
    return _plan_delete_line(session, Direction.E, config or SheetConfig())


def delete_row(session: Session, config: SheetConfig | None = None) -> Session | OperationFailure:
    """Delete the active cell's row from its grid."""
    return _commit(session, plan_delete_row(session, config))


def delete_col(session: Session, config: SheetConfig | None = None) -> Session | OperationFailure:
    """Delete the active cell's column from its grid."""
    return _commit(session, plan_delete_col(session, config))


# =============================================================================
# Merge
# =============================================================================


def plan_merge_cells(
    session: Session,
    first: Coordinate,
    last: Coordinate,
    config: SheetConfig | None = None,
) -> SessionDiff | PreconditionViolation:
    """
    Plan folding the rectangle spanned by two sibling cells into a nested grid.

    The top-left cell of the rectangle becomes a grid holding every stored
    cell of the rectangle at its relative offset; the other cells leave the
    parent grid. Copied row/column sizes size the nested grid, and the
    top-left cell grows to the sum of the merged rows and columns.
    """
    config = config or SheetConfig()
    operation = "merge_cells"

    if first.parent() is None or first.parent() != last.parent():
        return _fail(operation, first, f"{last.to_string()} is not a sibling of {first.to_string()}")
    found = _grid_parent(session, first, operation)
    if isinstance(found, PreconditionViolation):
        return found
    parent, parent_grammar, grid = found

    r1, r2 = sorted((first.row(), last.row()))
    c1, c2 = sorted((first.col(), last.col()))
    if (r1, c1) == (r2, c2):
        return _fail(operation, first, "select more than one cell to merge")
    if not grid.declares((r1, c1)):
        return _fail(operation, first, "the top-left cell of the selection is empty")

    in_range = [o for o in grid.sub_coords if r1 <= o[0] <= r2 and c1 <= o[1] <= c2]
    anchor = Coordinate.child_of(parent, (r1, c1))

    grammars: GrammarChanges = {}
    row_heights: RowSizes = {}
    col_widths: ColSizes = {}

    for offset in in_range:
        _drop_subtree(session, Coordinate.child_of(parent, offset), grammars, row_heights, col_widths)

    moves: list[tuple[Coordinate, Coordinate]] = []
    nested_offsets: list[tuple[int, int]] = []
    for r, c in in_range:
        local = (r - r1 + 1, c - c1 + 1)
        source = Coordinate.child_of(parent, (r, c))
        target = Coordinate.child_of(anchor, local)
        moves.append((source, target))
        nested_offsets.append(local)
        _copy_subtree(session, source, target, grammars, row_heights, col_widths, config)

    merged_rows = sorted({r for r, _ in in_range})
    merged_cols = sorted({c for _, c in in_range})
    for r in merged_rows:
        row_heights[Row(anchor, r - r1 + 1)] = session.row_heights.get(
            Row(parent, r), config.default_row_height
        )
    for c in merged_cols:
        col_widths[Col(anchor, c - c1 + 1)] = session.col_widths.get(
            Col(parent, c), config.default_col_width
        )
    row_heights[anchor.full_row()] = sum(row_heights[Row(anchor, r - r1 + 1)] or 0.0 for r in merged_rows)
    col_widths[anchor.full_col()] = sum(col_widths[Col(anchor, c - c1 + 1)] or 0.0 for c in merged_cols)

    grammars[anchor] = Grammar("merged", Grid(tuple(nested_offsets)), session.grammars[anchor].style)
    grammars[parent] = parent_grammar.with_kind(grid.without_offsets(set(in_range) - {(r1, c1)}))
    _retarget_definitions(session, grammars, moves)

    return SessionDiff(operation, anchor, grammars, row_heights, col_widths, active_cell=anchor)


def merge_cells(
    session: Session,
    first: Coordinate,
    last: Coordinate,
    config: SheetConfig | None = None,
) -> Session | OperationFailure:
    """Merge the rectangle between two sibling cells. See plan_merge_cells."""
    return _commit(session, plan_merge_cells(session, first, last, config))


# =============================================================================
# Move / complete / resize
# =============================================================================


def plan_move_grammar(
    session: Session,
    source: Coordinate,
    dest: Coordinate,
    config: SheetConfig | None = None,
) -> SessionDiff | PreconditionViolation:
    """
    Plan copying the grammar at source (with its nested subtree) into dest.

    dest's previous subtree is discarded. The source stays in place: completion
    sources are reusable definitions.
    """
    config = config or SheetConfig()
    operation = "move_grammar"

    if source not in session.grammars:
        return _fail(operation, source, "no grammar at the source coordinate")
    if dest not in session.grammars:
        return _fail(operation, dest, "no cell at the destination coordinate")
    if dest.parent() is None:
        return _fail(operation, dest, "root and meta cannot be replaced")
    if dest.is_within(source):
        return _fail(operation, dest, f"destination lies inside the source {source.to_string()}")

    grammars: GrammarChanges = {}
    row_heights: RowSizes = {}
    col_widths: ColSizes = {}
    _drop_subtree(session, dest, grammars, row_heights, col_widths, include_self=False)
    # dest's own rows and columns are replaced by the source's, if it has any
    _drop_sizes_within(session, dest, row_heights, col_widths)
    _copy_subtree(session, source, dest, grammars, row_heights, col_widths, config, moves=[(source, dest)])

    active = session.active_cell
    next_active = dest if active is not None and active != dest and active.is_within(dest) else None
    return SessionDiff(operation, dest, grammars, row_heights, col_widths, active_cell=next_active)


def move_grammar(
    session: Session,
    source: Coordinate,
    dest: Coordinate,
    config: SheetConfig | None = None,
) -> Session | OperationFailure:
    """Copy the grammar at source into dest. See plan_move_grammar."""
    return _commit(session, plan_move_grammar(session, source, dest, config))


def _intrinsic_size(
    grammar: Grammar,
    coord: Coordinate,
    row_heights: dict[Row, float],
    col_widths: dict[Col, float],
    config: SheetConfig,
) -> tuple[float, float]:
    """(height, width) a grammar needs to be shown in full."""
    match grammar.kind:
        case Grid() as grid:
            height = sum(row_heights.get(Row(coord, r), config.default_row_height) for r in grid.rows)
            width = sum(col_widths.get(Col(coord, c), config.default_col_width) for c in grid.cols)
            return height, width
        case Defn(rules=rules):
            return (len(rules) + 1) * config.default_row_height, 2 * config.default_col_width
        case Text() | Input() | Interactive() | Lookup():
            return config.default_row_height, config.default_col_width
        case _:
            raise ValueError(f"Unknown grammar kind: {grammar.kind}")


def plan_resize_cells(
    session: Session,
    coord: Coordinate,
    config: SheetConfig | None = None,
) -> SessionDiff | PreconditionViolation:
    """
    Plan growing coord's row and column to fit its grammar.

    Sizes only ever grow. When coord grows, each ancestor that has a parent is
    checked the same way.
    """
    config = config or SheetConfig()
    operation = "resize_cells"

    if coord not in session.grammars:
        return _fail(operation, coord, "no cell at this coordinate")
    if coord.parent() is None:
        return _fail(operation, coord, "root and meta have no row or column to size")

    heights = dict(session.row_heights)
    widths = dict(session.col_widths)
    row_heights: RowSizes = {}
    col_widths: ColSizes = {}

    current: Coordinate | None = coord
    while current is not None and current.parent() is not None:
        height, width = _intrinsic_size(session.grammars[current], current, heights, widths, config)
        row, col = current.full_row(), current.full_col()
        grew = False
        if height > heights.get(row, config.default_row_height):
            heights[row] = row_heights[row] = height
            grew = True
        if width > widths.get(col, config.default_col_width):
            widths[col] = col_widths[col] = width
            grew = True
        if not grew:
            break
        current = current.parent()

    return SessionDiff(operation, coord, {}, row_heights, col_widths)


def resize_cells(
    session: Session, coord: Coordinate, config: SheetConfig | None = None
) -> Session | OperationFailure:
    """Grow coord's row/column (and its ancestors') to fit. See plan_resize_cells."""
    return _commit(session, plan_resize_cells(session, coord, config))


def do_completion(
    session: Session,
    source: Coordinate,
    dest: Coordinate,
    config: SheetConfig | None = None,
) -> Session | OperationFailure:
    """Accept a completion: move_grammar then resize_cells, as one unit."""
    moved = move_grammar(session, source, dest, config)
    if isinstance(moved, OperationFailure):
        return moved
    return resize_cells(moved, dest, config)


def plan_resize(
    session: Session, coord: Coordinate, height: float, width: float
) -> SessionDiff | PreconditionViolation:
    operation = "resize"
    if coord not in session.grammars:
        return _fail(operation, coord, "no cell at this coordinate")
    if coord.parent() is None:
        return _fail(operation, coord, "root and meta have no row or column to size")
    if height <= 0 or width <= 0:
        return _fail(operation, coord, f"sizes must be positive, got {height}x{width}")
    return SessionDiff(operation, coord, {}, {coord.full_row(): height}, {coord.full_col(): width})


def resize(session: Session, coord: Coordinate, height: float, width: float) -> Session | OperationFailure:
    """Set the height of coord's full row and the width of its full column."""
    return _commit(session, plan_resize(session, coord, height, width))


# =============================================================================
# Cell edits
# =============================================================================


def change_input(session: Session, coord: Coordinate, value: str) -> Session | OperationFailure:
    """Replace the text of a Text/Input cell or the query of a Lookup cell."""
    operation = "change_input"
    grammar = session.grammars.get(coord)
    if grammar is None:
        return _fail(operation, coord, "no cell at this coordinate")
    match grammar.kind:
        case Text():
            kind = Text(value)
        case Input():
            kind = Input(value)
        case Lookup(kind=lookup_kind):
            kind = Lookup(value, lookup_kind)
        case _:
            return _fail(operation, coord, f"{type(grammar.kind).__name__} cells are not editable")
    return _commit(session, SessionDiff(operation, coord, {coord: grammar.with_kind(kind)}))


def toggle_lookup(session: Session, coord: Coordinate) -> Session | OperationFailure:
    """Turn an Input into a Lookup (dropping a leading "$") or a Lookup back into an Input."""
    operation = "toggle_lookup"
    grammar = session.grammars.get(coord)
    if grammar is None:
        return _fail(operation, coord, "no cell at this coordinate")
    match grammar.kind:
        case Input(content=content):
            updated = Grammar("lookup", Lookup(content.removeprefix("$")), grammar.style)
        case Lookup(query=query):
            updated = Grammar("input", Input(query), grammar.style)
        case _:
            return _fail(operation, coord, f"{type(grammar.kind).__name__} cells cannot become lookups")
    return _commit(session, SessionDiff(operation, coord, {coord: updated}))


def set_active_cell(session: Session, coord: Coordinate) -> Session | OperationFailure:
    if coord not in session.grammars:
        return _fail("set_active_cell", coord, "no cell at this coordinate")
    return _commit(session, SessionDiff("set_active_cell", coord, active_cell=coord))


# =============================================================================
# Definitions and seeding
# =============================================================================


def apply_definition_grammar(
    session: Session,
    coord: Coordinate,
    table_coord: Coordinate,
    name: str,
    rule_names: Sequence[str],
    config: SheetConfig | None = None,
) -> Session | OperationFailure:
    """
    Author a rule definition.

    Writes Defn(name) at coord and its len(rule_names) x 2 table at
    table_coord: column A names each rule, column B holds the rule's grammar.
    Both coordinates must be children of grids; they are added to their
    parents' declarations if needed.

    Args:
        session: The session to start from
        coord: Where the definition cell goes
        table_coord: Where the definition table goes
        name: Definition name (also offered as a meta suggestion)
        rule_names: Sub-rule names, in order
        config: Sizes for the new rows/columns

    Returns:
        New Session, or an OperationFailure
    """
    config = config or SheetConfig()
    operation = "apply_definition_grammar"

    if not rule_names:
        return _fail(operation, coord, "a definition needs at least one rule")
    if coord.is_within(table_coord) or table_coord.is_within(coord):
        return _fail(operation, coord, "definition and table must not contain each other")

    grammars: GrammarChanges = {}
    row_heights: RowSizes = {}
    col_widths: ColSizes = {}
    parents: dict[Coordinate, Grammar] = {}

    for target in (coord, table_coord):
        parent = target.parent()
        if parent is None:
            return _fail(operation, target, "root and meta cannot hold a definition")
        parent_grammar = parents.get(parent) or session.grammars.get(parent)
        if parent_grammar is None or not isinstance(parent_grammar.kind, Grid):
            return _fail(operation, target, f"parent {parent.to_string()} is not a grid")
        if not parent_grammar.kind.declares(target.offset):
            parents[parent] = parent_grammar.with_kind(parent_grammar.kind.with_offsets([target.offset]))
        _drop_subtree(session, target, grammars, row_heights, col_widths, include_self=False)
        _ensure_default_sizes(session, row_heights, col_widths, target, config)

    rules: list[tuple[str, Coordinate]] = []
    for index, rule_name in enumerate(rule_names, start=1):
        name_coord = Coordinate.child_of(table_coord, (index, 1))
        grammar_coord = Coordinate.child_of(table_coord, (index, 2))
        grammars[name_coord] = Grammar.text(rule_name, name=rule_name)
        grammars[grammar_coord] = Grammar.default()
        _ensure_default_sizes(session, row_heights, col_widths, name_coord, config)
        _ensure_default_sizes(session, row_heights, col_widths, grammar_coord, config)
        rules.append((rule_name, grammar_coord))

    grammars[table_coord] = Grammar.as_grid(len(rule_names), 2, name=f"{name} rules")
    grammars[coord] = Grammar(name, Defn(name, table_coord, tuple(rules)))
    grammars.update(parents)

    return _commit(session, SessionDiff(operation, coord, grammars, row_heights, col_widths))


def new_session(config: SheetConfig | None = None, title: str = "Session 1") -> Session:
    """
    Build the seed session.

    root is a root_rows x root_cols grid of empty cells; meta holds two
    suggestions (meta-A1, meta-A2) and a "defn" definition at meta-A3 whose
    table lives at meta-B3.
    """
    config = config or SheetConfig()

    root_grammar = Grammar.as_grid(config.root_rows, config.root_cols, name="root")
    meta_grammar = Grammar("meta", Grid(((1, 1), (2, 1))))
    grammars: dict[Coordinate, Grammar] = {ROOT: root_grammar, META: meta_grammar}

    root_grid = root_grammar.kind
    assert isinstance(root_grid, Grid)
    for offset in root_grid.sub_coords:
        grammars[Coordinate.child_of(ROOT, offset)] = Grammar.default()
    grammars[parse_coordinate("meta-A1")] = Grammar.suggestion("js grammar", "This is js")
    grammars[parse_coordinate("meta-A2")] = Grammar.suggestion("java grammar", "This is java")

    row_heights: dict[Row, float] = {}
    col_widths: dict[Col, float] = {}
    for coord in grammars:
        if coord.parent() is not None:
            row_heights.setdefault(coord.full_row(), config.default_row_height)
            col_widths.setdefault(coord.full_col(), config.default_col_width)

    session = Session(
        root=root_grammar,
        meta=meta_grammar,
        grammars=grammars,
        row_heights=row_heights,
        col_widths=col_widths,
        title=title,
        active_cell=parse_coordinate("root-A1"),
    )
    seeded = apply_definition_grammar(
        session,
        parse_coordinate("meta-A3"),
        parse_coordinate("meta-B3"),
        "defn",
        ("name", "rule"),
        config,
    )
    if isinstance(seeded, OperationFailure):
        raise RuntimeError(f"seed session is inconsistent: {seeded}")
    return seeded
