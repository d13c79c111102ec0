"""
Interactive demo for the nested sheet.
Display the session and drive the structural operations from the keyboard.
"""

import logging
import sys

import readchar
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ascii_render import render_grid, render_session_flow
from coordinate import Coordinate, Direction
from grammar_types import describe_kind
from operations import (
    add_nested_grid,
    delete_col,
    delete_row,
    insert_col,
    insert_row,
    new_session,
    set_active_cell,
)
from session import OperationFailure, Session, SheetConfig, get_grid


class InteractiveDemo:
    """Interactive demo for structural operations."""

    def __init__(self, session: Session, config: SheetConfig | None = None) -> None:
        self.session = session
        self.original_session = session  # Seed state for reset
        self.config = config or SheetConfig()
        self.console = Console()
        self.status_message = "Ready"

    def generate_display(self) -> Panel:
        """Generate the current display with the active grid and status."""
        active = self.session.active_cell
        if active is None:
            status = Text()
            status.append("ERROR: No active cell!\n", style="bold red")
            return Panel(status, title="Sheet - Error", border_style="red")

        status = Text()
        status.append("Active Cell: ", style="bold")
        status.append(f"{active.to_string()}\n")

        grammar = self.session.grammars.get(active)
        if grammar is not None:
            status.append("Grammar: ", style="bold")
            status.append(f"{grammar.name} {describe_kind(grammar.kind)!r}\n\n")

        parent = active.parent()
        if parent is not None:
            status.append(Text.from_ansi("\n".join(render_grid(self.session, parent))))
            status.append("\n\n")

        status.append("Keys:\n", style="bold cyan")
        status.append("  W/A/S/D - Move among siblings\n")
        status.append("  I/O - Enter nested grid / go to parent\n")
        status.append(f"  G - Nest a {self.config.nest_rows}x{self.config.nest_cols} grid here\n")
        status.append("  R/C - Insert row / column\n")
        status.append("  X/Z - Delete row / column\n")
        status.append("  N - Reset to the seed session\n")
        status.append("  Q - Quit\n\n")

        status.append("─" * 40 + "\n", style="dim")
        status.append("Status: ", style="bold")
        status.append(self.status_message)

        return Panel(status, title=self.session.title, border_style="green", width=100)

    def apply(self, label: str, result: Session | OperationFailure) -> None:
        """Keep the new session, or show why the operation was refused."""
        if isinstance(result, OperationFailure):
            self.status_message = f"✗ {label}: {result.details}"
            return
        self.session = result
        active = result.active_cell.to_string() if result.active_cell is not None else "-"
        self.status_message = f"✓ {label}, active cell {active}"

    def move(self, direction: Direction) -> None:
        active = self.session.active_cell
        if active is None or active.parent() is None:
            self.status_message = "Nowhere to move"
            return
        target = active.neighbor(direction)
        if target is None or target not in self.session.grammars:
            self.status_message = f"No cell {direction.value} of {active.to_string()}"
            return
        self.apply(f"Moved {direction.value}", set_active_cell(self.session, target))

    def enter(self) -> None:
        active = self.session.active_cell
        grid = get_grid(self.session, active) if active is not None else None
        if active is None or grid is None or not grid.sub_coords:
            self.status_message = "Active cell is not a nested grid"
            return
        first = Coordinate.child_of(active, grid.sub_coords[0])
        self.apply("Entered grid", set_active_cell(self.session, first))

    def leave(self) -> None:
        active = self.session.active_cell
        parent = active.parent() if active is not None else None
        if parent is None or parent.parent() is None:
            self.status_message = "Already at the top level"
            return
        self.apply("Left grid", set_active_cell(self.session, parent))

    def reset(self) -> None:
        self.session = self.original_session
        self.status_message = "Session reset to the seed"

    def run(self) -> None:
        """Run the interactive demo."""
        with Live(self.generate_display(), console=self.console, refresh_per_second=4) as live:
            try:
                while True:
                    live.update(self.generate_display())

                    key = readchar.readkey().lower()

                    if key == 'q':
                        self.status_message = "Quitting..."
                        live.update(self.generate_display())
                        break
                    elif key == 'n':
                        self.reset()
                    elif key == 'w':
                        self.move(Direction.N)
                    elif key == 's':
                        self.move(Direction.S)
                    elif key == 'a':
                        self.move(Direction.W)
                    elif key == 'd':
                        self.move(Direction.E)
                    elif key == 'i':
                        self.enter()
                    elif key == 'o':
                        self.leave()
                    elif key == 'g':
                        active = self.session.active_cell
                        if active is None:
                            self.status_message = "No active cell"
                        else:
                            self.apply(
                                "Nested grid",
                                add_nested_grid(
                                    self.session, active, self.config.nest_rows, self.config.nest_cols, self.config
                                ),
                            )
                    elif key == 'r':
                        self.apply("Inserted row", insert_row(self.session, self.config))
                    elif key == 'c':
                        self.apply("Inserted column", insert_col(self.session, self.config))
                    elif key == 'x':
                        self.apply("Deleted row", delete_row(self.session, self.config))
                    elif key == 'z':
                        self.apply("Deleted column", delete_col(self.session, self.config))
                    else:
                        self.status_message = f"Unknown key: {repr(key)}"

            except KeyboardInterrupt:
                self.status_message = "Interrupted by user"
                live.update(self.generate_display())


def main() -> None:
    """Run the interactive demo on a fresh seed session."""
    demo = InteractiveDemo(new_session())
    demo.run()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == 'sublime':
        # Running from IDE - just render the initial state
        logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')

        print('Running from IDE - rendering initial state')
        print()
        print(render_session_flow(new_session()))
    else:
        main()
