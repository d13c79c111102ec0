"""
ASCII rendering for sheet sessions.

Every grid level is drawn as its own titled box of fixed-width cells (no
recursion into nested grids: a nested grid shows as "#n" and gets its own box).
The flow renderer lays all boxes of a session out in rows that fit the
terminal, coloring each box by nesting depth.
"""

from __future__ import annotations

import logging
from typing import Callable

import simple_chalk as chalk  # type: ignore[import-untyped]

from coordinate import Coordinate, column_to_letters
from grammar_types import Grid, describe_kind
from session import Session, get_grid

logger = logging.getLogger(__name__)

Colorizer = Callable[[str], str]


def _plain(s: str) -> str:
    return s


def _fit(label: str, width: int) -> str:
    """Center label in width characters, truncating with '~' when too long."""
    if len(label) > width:
        label = label[: max(width - 1, 0)] + "~"
    return label.center(width)


def render_grid(
    session: Session,
    coord: Coordinate,
    cell_width: int = 9,
    highlight: Coordinate | None = None,
    colorize: Colorizer | None = None,
    show_headers: bool = True,
) -> list[str]:
    """
    Render one grid level as a box of fixed-width cells.

    Args:
        session: Session holding the grid
        coord: Coordinate of a Grid-typed cell
        cell_width: Characters per cell
        highlight: Cell to draw inverted (defaults to the session's active cell)
        colorize: Colorizer for borders and cells (defaults to no color)
        show_headers: Prefix rows with row numbers and add a column-letter line

    Returns:
        The rendered lines

    Raises:
        ValueError: If coord does not hold a grid
    """
    grid = get_grid(session, coord)
    if grid is None:
        raise ValueError(f"{coord.to_string()} does not hold a grid")
    if highlight is None:
        highlight = session.active_cell
    if colorize is None:
        colorize = _plain

    rows, cols = grid.rows, grid.cols
    gutter = len(str(max(rows, default=1))) + 1 if show_headers else 0
    grid_width = len(cols) * cell_width + 2

    lines: list[str] = []

    title = f" {coord.to_string()} "
    title_line = "┌" + "─" * (grid_width - 2) + "┐"
    if len(title) <= grid_width - 2:
        title_start = (grid_width - len(title)) // 2
        title_line = (
            "┌"
            + "─" * (title_start - 1)
            + title
            + "─" * (grid_width - title_start - len(title) - 1)
            + "┐"
        )
    lines.append(" " * gutter + colorize(title_line))

    if show_headers:
        header = "".join(_fit(column_to_letters(c), cell_width) for c in cols)
        lines.append(" " * gutter + colorize(" " + header + " "))

    for r in rows:
        line_parts = [f"{r:>{gutter - 1}} " if show_headers else "", colorize("│")]
        for c in cols:
            if not grid.declares((r, c)):
                line_parts.append(" " * cell_width)
                continue
            child = Coordinate.child_of(coord, (r, c))
            grammar = session.grammars.get(child)
            label = describe_kind(grammar.kind) if grammar is not None else "?"
            content = _fit(label or "_", cell_width)
            if child == highlight:
                line_parts.append(chalk.bgWhite.black(content))
            else:
                line_parts.append(colorize(content))
        line_parts.append(colorize("│"))
        lines.append("".join(line_parts))

    lines.append(" " * gutter + colorize("└" + "─" * (grid_width - 2) + "┘"))
    return lines


def _visible_width(session: Session, coord: Coordinate, cell_width: int, show_headers: bool) -> int:
    grid = get_grid(session, coord)
    assert grid is not None
    gutter = len(str(max(grid.rows, default=1))) + 1 if show_headers else 0
    return gutter + len(grid.cols) * cell_width + 2


def render_session_flow(
    session: Session,
    terminal_width: int = 120,
    cell_width: int = 9,
    highlight: Coordinate | None = None,
    show_headers: bool = True,
) -> str:
    """
    Render every grid of a session in flow layout (multiple grids per row).

    Grids are ordered by coordinate, so root's tree comes before meta's and a
    grid comes before the grids nested inside it.

    Args:
        session: The session to draw
        terminal_width: Maximum width for layout
        cell_width: Characters per cell
        highlight: Cell to draw inverted (defaults to the session's active cell)
        show_headers: Draw row numbers and column letters

    Returns:
        Rendered string with ANSI color codes
    """
    colors: list[Colorizer] = [
        chalk.red,
        chalk.green,
        chalk.yellow,
        chalk.blue,
        chalk.magenta,
        chalk.cyan,
        chalk.redBright,
        chalk.greenBright,
        chalk.yellowBright,
        chalk.blueBright,
    ]

    grid_coords = sorted(c for c, g in session.grammars.items() if isinstance(g.kind, Grid))
    logger.debug("render_session_flow: %d grids", len(grid_coords))

    rendered: dict[Coordinate, list[str]] = {}
    widths: dict[Coordinate, int] = {}
    for coord in grid_coords:
        colorize = colors[(coord.depth - 1) % len(colors)]
        rendered[coord] = render_grid(session, coord, cell_width, highlight, colorize, show_headers)
        widths[coord] = _visible_width(session, coord, cell_width, show_headers)

    output_lines: list[str] = []
    grid_spacing = 2

    current_row: list[Coordinate] = []
    current_row_width = 0
    for coord in grid_coords:
        needed_width = widths[coord]
        if current_row:
            needed_width += grid_spacing

        if current_row and current_row_width + needed_width > terminal_width:
            _flush_grid_row(current_row, rendered, widths, output_lines, grid_spacing)
            current_row = []
            current_row_width = 0
            needed_width = widths[coord]

        current_row.append(coord)
        current_row_width += needed_width

    if current_row:
        _flush_grid_row(current_row, rendered, widths, output_lines, grid_spacing)

    return "\n".join(output_lines)


def _flush_grid_row(
    row_coords: list[Coordinate],
    rendered: dict[Coordinate, list[str]],
    widths: dict[Coordinate, int],
    output_lines: list[str],
    grid_spacing: int,
) -> None:
    """Join one row of boxes side by side, padding shorter boxes with blanks."""
    max_height = max(len(rendered[c]) for c in row_coords)

    for line_idx in range(max_height):
        line_parts = []
        for coord in row_coords:
            box = rendered[coord]
            if line_idx < len(box):
                # Widths are measured without ANSI codes
                line_parts.append(box[line_idx])
            else:
                line_parts.append(" " * widths[coord])
        output_lines.append((" " * grid_spacing).join(line_parts))

    output_lines.append("")
