"""
Demonstration scripts for the nested sheet.
"""

import logging

from ascii_render import render_session_flow
from coordinate import parse_coordinate
from operations import (
    add_nested_grid,
    change_input,
    delete_row,
    do_completion,
    insert_col,
    insert_row,
    merge_cells,
    new_session,
    set_active_cell,
)
from session import OperationFailure, Session
from session_io import dumps, loads
from suggestions import input_suggestions, lookup_matches, meta_suggestions


def _show(label: str, result: Session | OperationFailure) -> Session | None:
    print(label)
    print("-" * 60)
    if isinstance(result, OperationFailure):
        print(f"✗ {result}")
        print()
        return None
    print(render_session_flow(result))
    return result


def structure_demo() -> None:
    """Walk through the structural operations on the seed session."""
    print("=" * 60)
    print("Structure Demo: nesting, inserting, deleting, merging")
    print("=" * 60)
    print()

    session = new_session()
    _show("Seed session:", session)

    nested = _show("Nest a 2x2 grid at root-B2:", add_nested_grid(session, parse_coordinate("root-B2"), 2, 2))
    if nested is None:
        return

    widened = _show("Insert a column next to the active cell:", insert_col(nested))
    if widened is None:
        return

    grown = _show("Insert a row below it:", insert_row(widened))
    if grown is None:
        return

    merged = _show(
        "Merge root-B2-A1 .. root-B2-B2:",
        merge_cells(grown, parse_coordinate("root-B2-A1"), parse_coordinate("root-B2-B2")),
    )
    if merged is None:
        return

    moved = set_active_cell(merged, parse_coordinate("root-A3"))
    if isinstance(moved, OperationFailure):
        print(f"✗ {moved}")
        return
    _show("Delete row 3 of root:", delete_row(moved))

    print("Deleting the only row of a one-row grid is refused:")
    print("-" * 60)
    single = add_nested_grid(session, parse_coordinate("root-A1"), 1, 2)
    if not isinstance(single, OperationFailure):
        refused = delete_row(single)
        print(f"✗ {refused}" if isinstance(refused, OperationFailure) else "✓ unexpectedly succeeded")
    print()


def completion_demo() -> None:
    """Type into a cell, pick a suggestion and complete it."""
    print("=" * 60)
    print("Completion Demo: suggestions from meta")
    print("=" * 60)
    print()

    session = new_session()
    print("Meta suggestions:")
    for name, coord in meta_suggestions(session):
        print(f"  {name:<14} {coord.to_string()}")
    print()

    target = parse_coordinate("root-A2")
    typed = change_input(session, target, "java")
    if isinstance(typed, OperationFailure):
        print(f"✗ {typed}")
        return
    offers = input_suggestions(typed, target)
    print(f"Typed 'java' at {target.to_string()}, offered: {[g.name for _, g in offers]}")
    if not offers:
        return

    source, _ = offers[0]
    _show(f"Complete {target.to_string()} from {source.to_string()}:", do_completion(typed, source, target))

    defn = parse_coordinate("meta-A3")
    _show(f"Complete root-A3 from the definition at {defn.to_string()}:", do_completion(session, defn, parse_coordinate("root-A3")))

    print("Lookup '$B3' matches:", [c.to_string() for c in lookup_matches(session, "B3")])
    print()


def snapshot_demo() -> None:
    """Save a session to JSON text and load it back."""
    print("=" * 60)
    print("Snapshot Demo")
    print("=" * 60)
    print()

    session = new_session()
    text = dumps(session)
    print(f"Snapshot: {len(text)} characters, {len(session.grammars)} cells")
    restored = loads(text)
    print("✓ Round trip preserved the session" if restored == session else "✗ Round trip changed the session")
    print()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
    structure_demo()
    print()
    completion_demo()
    print()
    snapshot_demo()
