"""
Completion suggestions and lookup resolution.

Suggestions are the named grammars authored directly under meta; an Input
cell is offered every suggestion whose name contains what was typed. Lookups
match their query against the rendered text of every stored coordinate.
"""

from __future__ import annotations

from coordinate import META, Coordinate
from grammar_types import Grammar, Grid, Input, Lookup, LookupKind
from session import Session, children_of


def meta_suggestions(session: Session) -> list[tuple[str, Coordinate]]:
    """Named, non-grid children of meta in declaration order."""
    suggestions = []
    for child in children_of(session, META):
        grammar = session.grammars.get(child)
        if grammar is None or isinstance(grammar.kind, Grid) or not grammar.name:
            continue
        suggestions.append((grammar.name, child))
    return suggestions


def input_suggestions(session: Session, coord: Coordinate) -> list[tuple[Coordinate, Grammar]]:
    """
    Completions for the Input cell at coord.

    Nothing is offered for an empty input or for a cell that is not an Input.
    """
    grammar = session.grammars.get(coord)
    if grammar is None or not isinstance(grammar.kind, Input):
        return []
    typed = grammar.kind.content
    if not typed:
        return []
    return [
        (source, session.grammars[source])
        for name, source in meta_suggestions(session)
        if typed in name
    ]


def _rendered(coord: Coordinate, kind: LookupKind | None) -> str:
    if kind is None or kind == LookupKind.CELL:
        return coord.to_string()
    elif kind == LookupKind.ROW:
        return coord.row_to_string()
    elif kind == LookupKind.COL:
        return coord.col_to_string()
    else:
        raise ValueError(f"Unknown lookup kind: {kind}")


def lookup_matches(session: Session, query: str, kind: LookupKind | None = None) -> list[Coordinate]:
    """Stored coordinates whose rendered form contains query, sorted."""
    return sorted(c for c in session.grammars if query in _rendered(c, kind))


def resolve_lookup(session: Session, coord: Coordinate) -> list[Coordinate]:
    """
    Resolve the Lookup stored at coord.

    Raises:
        ValueError: If coord does not hold a Lookup
    """
    grammar = session.grammars.get(coord)
    if grammar is None or not isinstance(grammar.kind, Lookup):
        raise ValueError(f"{coord.to_string()} does not hold a lookup")
    return lookup_matches(session, grammar.kind.query, grammar.kind.kind)
