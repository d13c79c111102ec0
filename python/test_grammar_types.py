"""Tests for grammar_types module."""

import pytest

from coordinate import parse_coordinate
from grammar_types import (
    Button,
    Defn,
    Grammar,
    Grid,
    Input,
    Interactive,
    Lookup,
    LookupKind,
    Slider,
    Style,
    Text,
    Toggle,
    describe_kind,
)


class TestGrid:
    """Tests for the Grid declaration."""

    def test_rows_and_cols(self) -> None:
        """Distinct indices, ascending, even for ragged declarations."""
        grid = Grid(((1, 1), (1, 2), (3, 1)))
        assert grid.rows == [1, 3]
        assert grid.cols == [1, 2]

    def test_with_offsets_dedupes_and_keeps_order(self) -> None:
        """Merging never duplicates an offset."""
        grid = Grid(((1, 1), (1, 2)))
        merged = grid.with_offsets([(1, 2), (2, 1), (2, 1)])
        assert merged.sub_coords == ((1, 1), (1, 2), (2, 1))
        assert grid.sub_coords == ((1, 1), (1, 2))

    def test_without_offsets(self) -> None:
        """Removing offsets keeps the rest in order."""
        grid = Grid(((1, 1), (1, 2), (2, 1)))
        assert grid.without_offsets({(1, 2)}).sub_coords == ((1, 1), (2, 1))

    def test_declares(self) -> None:
        """Membership of a single offset."""
        grid = Grid(((1, 1),))
        assert grid.declares((1, 1))
        assert not grid.declares((2, 1))


class TestGrammar:
    """Tests for Grammar constructors."""

    def test_default_is_empty_input(self) -> None:
        """New cells are empty editable inputs."""
        grammar = Grammar.default()
        assert grammar.name == "input"
        assert grammar.kind == Input("")
        assert grammar.style == Style()

    def test_as_grid_row_major(self) -> None:
        """as_grid declares offsets row by row."""
        grammar = Grammar.as_grid(2, 3)
        assert isinstance(grammar.kind, Grid)
        assert grammar.kind.sub_coords == ((1, 1), (1, 2), (1, 3), (2, 1), (2, 2), (2, 3))
        assert grammar.is_grid

    def test_suggestion_is_named_text(self) -> None:
        """Suggestions are static text with a name."""
        grammar = Grammar.suggestion("js grammar", "This is js")
        assert grammar.name == "js grammar"
        assert grammar.kind == Text("This is js")
        assert not grammar.is_grid

    def test_with_kind_keeps_name_and_style(self) -> None:
        """Only the kind is replaced."""
        grammar = Grammar("cell", Text("a"), Style(font_weight=700))
        updated = grammar.with_kind(Input("b"))
        assert updated == Grammar("cell", Input("b"), Style(font_weight=700))

    def test_grammars_are_values(self) -> None:
        """Equal contents compare equal and hash equal."""
        assert Grammar.text("x") == Grammar.text("x")
        assert hash(Grammar.text("x")) == hash(Grammar.text("x"))


class TestDescribeKind:
    """Tests for short kind labels."""

    def test_text_like(self) -> None:
        """Text and Input show their content."""
        assert describe_kind(Text("hello")) == "hello"
        assert describe_kind(Input("typed")) == "typed"

    def test_interactive(self) -> None:
        """Controls show their name and state."""
        assert describe_kind(Interactive("go", Button())) == "[go]"
        assert describe_kind(Interactive("vol", Slider(0.5, 0.0, 1.0))) == "vol=0.5"
        assert describe_kind(Interactive("dark", Toggle(True))) == "dark:on"

    def test_structural(self) -> None:
        """Grids, lookups and definitions."""
        assert describe_kind(Grid(((1, 1), (1, 2)))) == "#2"
        assert describe_kind(Lookup("A1", LookupKind.CELL)) == "$A1"
        assert describe_kind(Defn("expr", parse_coordinate("meta-B3"))) == "defn expr"

    def test_unknown_kind(self) -> None:
        """Anything else is rejected."""
        with pytest.raises(ValueError, match="Unknown grammar kind"):
            describe_kind("not a kind")  # type: ignore[arg-type]
