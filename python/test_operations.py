"""Tests for operations module."""

import random

import pytest

from coordinate import META, ROOT, Col, Coordinate, Row, parse_coordinate
from grammar_types import Defn, Grammar, Grid, Input, Lookup, Text
from operations import (
    add_nested_grid,
    apply_definition_grammar,
    change_input,
    delete_col,
    delete_row,
    do_completion,
    insert_col,
    insert_row,
    merge_cells,
    move_grammar,
    new_session,
    plan_insert_col,
    plan_nested_grid,
    resize,
    resize_cells,
    set_active_cell,
    toggle_lookup,
)
from session import (
    InvariantViolation,
    OperationFailure,
    PreconditionViolation,
    Session,
    SessionDiff,
    SheetConfig,
    apply_diff,
    check_invariants,
    children_of,
)


def c(text: str) -> Coordinate:
    return parse_coordinate(text)


def ok(result: Session | OperationFailure) -> Session:
    """Unwrap a successful result."""
    assert isinstance(result, Session), f"expected a session, got {result}"
    assert check_invariants(result) == []
    return result


def activate(session: Session, text: str) -> Session:
    return ok(set_active_cell(session, c(text)))


class TestNewSession:
    """Tests for the seed session."""

    def test_consistent(self) -> None:
        """The seed satisfies every invariant."""
        assert check_invariants(new_session()) == []

    def test_root_shape(self) -> None:
        """root is a 3x2 grid of empty inputs."""
        session = new_session()
        assert session.root.kind == Grid(((1, 1), (1, 2), (2, 1), (2, 2), (3, 1), (3, 2)))
        for child in children_of(session, ROOT):
            assert session.grammars[child] == Grammar.default()
        assert session.active_cell == c("root-A1")

    def test_meta_contents(self) -> None:
        """Two suggestions and a definition with its table."""
        session = new_session()
        assert session.grammars[c("meta-A1")] == Grammar.suggestion("js grammar", "This is js")
        assert session.grammars[c("meta-A2")] == Grammar.suggestion("java grammar", "This is java")
        defn = session.grammars[c("meta-A3")].kind
        assert isinstance(defn, Defn)
        assert defn.defn_coord == c("meta-B3")
        assert defn.rules == (("name", c("meta-B3-B1")), ("rule", c("meta-B3-B2")))
        assert session.grammars[c("meta-B3-A2")].kind == Text("rule")
        assert session.meta == session.grammars[META]

    def test_eager_sizes(self) -> None:
        """Every non-top cell has explicit row and column sizes."""
        session = new_session()
        for coord in session.grammars:
            if coord.parent() is not None:
                assert session.row_heights[coord.full_row()] == 30.0
                assert session.col_widths[coord.full_col()] == 90.0

    def test_config_shape(self) -> None:
        """The root shape comes from the config."""
        session = new_session(SheetConfig(root_rows=1, root_cols=4))
        assert len(children_of(session, ROOT)) == 4


class TestAddNestedGrid:
    """Tests for nesting a grid inside a cell."""

    def test_nest_creates_children_and_sizes(self) -> None:
        """Children, their sizes and the cell's own size."""
        session = new_session()
        result = ok(add_nested_grid(session, c("root-A1"), 2, 3))

        grid = result.grammars[c("root-A1")].kind
        assert isinstance(grid, Grid)
        assert len(grid.sub_coords) == 6
        for child in children_of(result, c("root-A1")):
            assert result.grammars[child] == Grammar.default()
        assert result.row_heights[Row(c("root-A1"), 2)] == 30.0
        assert result.col_widths[Col(c("root-A1"), 3)] == 90.0
        assert result.row_heights[Row(ROOT, 1)] == 60.0
        assert result.col_widths[Col(ROOT, 1)] == 270.0
        assert result.active_cell == c("root-A1-A1")

    def test_input_untouched(self) -> None:
        """Operations return a new session."""
        session = new_session()
        before = session.copy()
        ok(add_nested_grid(session, c("root-A1"), 2, 2))
        assert session == before

    def test_nesting_again_discards_content(self) -> None:
        """Old children and their subtrees are replaced, not kept as orphans."""
        session = ok(add_nested_grid(new_session(), c("root-A1"), 2, 2))
        session = ok(change_input(session, c("root-A1-A1"), "typed"))
        session = ok(add_nested_grid(session, c("root-A1-B1"), 2, 2))

        result = ok(add_nested_grid(session, c("root-A1"), 1, 1))
        assert result.grammars[c("root-A1-A1")] == Grammar.default()
        assert c("root-A1-B1") not in result.grammars
        assert c("root-A1-B1-A1") not in result.grammars
        assert Row(c("root-A1-B1"), 1) not in result.row_heights

    def test_parent_declaration_is_merged(self) -> None:
        """The parent keeps all its other offsets."""
        result = ok(add_nested_grid(new_session(), c("root-B2"), 1, 1))
        assert result.root.kind == new_session().root.kind

    def test_missing_cell(self) -> None:
        """Nesting needs an existing cell."""
        result = add_nested_grid(new_session(), c("root-C9"), 2, 2)
        assert isinstance(result, PreconditionViolation)
        assert result.details == "no cell at this coordinate"

    def test_bad_shape(self) -> None:
        """At least one row and one column."""
        result = add_nested_grid(new_session(), c("root-A1"), 0, 2)
        assert isinstance(result, PreconditionViolation)
        assert "at least 1x1" in result.details

    def test_plan_describes_the_whole_effect(self) -> None:
        """The plan lists every created cell."""
        plan = plan_nested_grid(new_session(), c("root-A1"), 2, 2)
        assert isinstance(plan, SessionDiff)
        assert {c(f"root-A1-{t}") for t in ["A1", "B1", "A2", "B2"]} <= plan.added
        assert plan.removed == set()

    def test_three_by_three_adds_exactly_nine_children(self) -> None:
        """Every new key is a child of the nested cell, one per declared offset."""
        session = new_session()
        result = ok(add_nested_grid(session, c("root-A2"), 3, 3))

        new_keys = set(result.grammars) - set(session.grammars)
        assert len(new_keys) == 9
        assert all(key.parent() == c("root-A2") for key in new_keys)
        grid = result.grammars[c("root-A2")].kind
        assert isinstance(grid, Grid)
        assert {key.offset for key in new_keys} == set(grid.sub_coords)
        assert len(grid.sub_coords) == 9


class TestInsert:
    """Tests for inserting rows and columns."""

    def test_insert_col(self) -> None:
        """A column is added right of the last occupied one."""
        session = new_session()
        result = ok(insert_col(session))
        for text in ["root-C1", "root-C2", "root-C3"]:
            assert result.grammars[c(text)] == Grammar.default()
        assert result.root.kind.sub_coords[-3:] == ((1, 3), (2, 3), (3, 3))
        assert result.col_widths[Col(ROOT, 3)] == 90.0

    def test_insert_row(self) -> None:
        """A row is added below the last occupied one."""
        result = ok(insert_row(new_session()))
        assert c("root-A4") in result.grammars
        assert c("root-B4") in result.grammars
        assert result.row_heights[Row(ROOT, 4)] == 30.0

    def test_second_insert_col_goes_further_right(self) -> None:
        """Each insert starts from the new rightmost column."""
        result = ok(insert_col(ok(insert_col(new_session()))))
        for text in ["root-D1", "root-D2", "root-D3"]:
            assert result.grammars[c(text)] == Grammar.default()
        assert c("root-E1") not in result.grammars
        assert len(result.root.kind.sub_coords) == 12
        assert result.col_widths[Col(ROOT, 4)] == 90.0

    def test_second_insert_row_goes_further_down(self) -> None:
        """Each insert starts from the new bottom row."""
        result = ok(insert_row(ok(insert_row(new_session()))))
        assert c("root-A5") in result.grammars
        assert c("root-B5") in result.grammars
        assert c("root-A6") not in result.grammars
        assert len(result.root.kind.sub_coords) == 10

    def test_insert_from_middle_of_grid(self) -> None:
        """The walk starts at the active cell and finds the edge."""
        session = activate(new_session(), "root-B2")
        result = ok(insert_row(session))
        assert c("root-A4") in result.grammars

    def test_ragged_grid_skips_existing(self) -> None:
        """Existing coordinates are neither overwritten nor declared twice."""
        session = ok(add_nested_grid(new_session(), c("root-A1"), 2, 2))
        session = ok(change_input(session, c("root-A1-B2"), "keep"))
        ragged = Grid(((1, 1), (2, 1), (2, 2)))
        session = ok(
            apply_diff(
                session,
                SessionDiff(
                    "ragged",
                    c("root-A1"),
                    {c("root-A1"): Grammar("grid", ragged), c("root-A1-B1"): None},
                ),
            )
        )

        result = ok(insert_col(session))
        assert result.grammars[c("root-A1-B1")] == Grammar.default()
        assert result.grammars[c("root-A1-B2")].kind == Input("keep")
        offsets = result.grammars[c("root-A1")].kind.sub_coords
        assert len(offsets) == len(set(offsets)) == 4

    def test_insert_at_top_level_refused(self) -> None:
        """root has no parent grid."""
        session = activate(new_session(), "root")
        result = insert_row(session)
        assert isinstance(result, PreconditionViolation)
        assert "no parent grid" in result.details

    def test_no_active_cell(self) -> None:
        """Inserting needs an active cell."""
        session = new_session().copy()
        session.active_cell = None
        result = plan_insert_col(session)
        assert isinstance(result, PreconditionViolation)
        assert result.details == "no active cell"


class TestDelete:
    """Tests for deleting rows and columns."""

    def test_delete_row_shifts_later_rows(self) -> None:
        """Rows below move up by one with their sizes."""
        session = ok(change_input(new_session(), c("root-A3"), "third"))
        session = ok(resize(session, c("root-A3"), 55.0, 90.0))
        session = activate(session, "root-A2")

        result = ok(delete_row(session))
        assert result.grammars[c("root-A2")].kind == Input("third")
        assert c("root-A3") not in result.grammars
        assert result.root.kind.sub_coords == ((1, 1), (1, 2), (2, 1), (2, 2))
        assert result.row_heights[Row(ROOT, 2)] == 55.0
        assert Row(ROOT, 3) not in result.row_heights
        assert result.active_cell == c("root-A2")

    def test_delete_last_row_moves_active_up(self) -> None:
        """Deleting the bottom row activates the row above."""
        session = activate(new_session(), "root-B3")
        result = ok(delete_row(session))
        assert result.active_cell == c("root-B2")

    def test_delete_col_carries_subtrees(self) -> None:
        """Nested content and its sizes are renumbered."""
        session = ok(add_nested_grid(new_session(), c("root-B1"), 1, 2))
        session = activate(session, "root-A1")

        result = ok(delete_col(session))
        assert result.root.kind.sub_coords == ((1, 1), (2, 1), (3, 1))
        assert isinstance(result.grammars[c("root-A1")].kind, Grid)
        assert c("root-A1-B1") in result.grammars
        assert c("root-B1") not in result.grammars
        assert result.col_widths[Col(ROOT, 1)] == 180.0
        assert Col(ROOT, 2) not in result.col_widths
        assert result.row_heights[Row(c("root-A1"), 1)] == 30.0

    def test_definitions_follow_their_table(self) -> None:
        """Defn coordinates are rewritten when the table moves."""
        session = activate(new_session(), "meta-A1")
        result = ok(delete_row(session))
        defn = result.grammars[c("meta-A2")].kind
        assert isinstance(defn, Defn)
        assert defn.defn_coord == c("meta-B2")
        assert defn.rules == (("name", c("meta-B2-B1")), ("rule", c("meta-B2-B2")))
        assert result.grammars[c("meta-A1")] == Grammar.suggestion("java grammar", "This is java")

    def test_deleting_a_table_row_drops_its_rule(self) -> None:
        """A rule whose table row is deleted leaves the definition."""
        session = activate(new_session(), "meta-B3-A2")
        result = ok(delete_row(session))
        defn = result.grammars[c("meta-A3")].kind
        assert isinstance(defn, Defn)
        assert defn.rules == (("name", c("meta-B3-B1")),)
        assert c("meta-B3-B2") not in result.grammars

    def test_dangling_definition_rejected(self) -> None:
        """Deleting a definition's table is refused as a whole."""
        session = activate(new_session(), "meta-B3")
        before = session.copy()
        result = delete_col(session)
        assert isinstance(result, InvariantViolation)
        assert any("meta-B3 which is not stored" in p for p in result.problems)
        assert session == before

    def test_last_row_refused(self) -> None:
        """A grid keeps at least one row."""
        session = ok(add_nested_grid(new_session(), c("root-A1"), 1, 2))
        result = delete_row(session)
        assert isinstance(result, PreconditionViolation)
        assert "last row" in result.details


class TestMergeCells:
    """Tests for folding a rectangle into a nested grid."""

    def test_merge_two_by_two(self) -> None:
        """The top-left cell becomes a grid of the merged cells."""
        session = ok(change_input(new_session(), c("root-B2"), "x"))
        result = ok(merge_cells(session, c("root-A1"), c("root-B2")))

        anchor = result.grammars[c("root-A1")].kind
        assert anchor == Grid(((1, 1), (1, 2), (2, 1), (2, 2)))
        assert result.grammars[c("root-A1-B2")].kind == Input("x")
        assert result.root.kind.sub_coords == ((1, 1), (3, 1), (3, 2))
        for text in ["root-B1", "root-A2", "root-B2"]:
            assert c(text) not in result.grammars
        assert result.row_heights[Row(ROOT, 1)] == 60.0
        assert result.col_widths[Col(ROOT, 1)] == 180.0
        assert result.row_heights[Row(c("root-A1"), 2)] == 30.0
        assert result.active_cell == c("root-A1")

    def test_corner_order_does_not_matter(self) -> None:
        """Any two opposite corners span the same rectangle."""
        session = new_session()
        assert ok(merge_cells(session, c("root-B2"), c("root-A1"))) == ok(
            merge_cells(session, c("root-A1"), c("root-B2"))
        )

    def test_merged_subtree_moves(self) -> None:
        """Nested content of a merged cell moves under the anchor."""
        session = ok(add_nested_grid(new_session(), c("root-B1"), 1, 1))
        result = ok(merge_cells(session, c("root-A1"), c("root-B1")))
        assert c("root-A1-B1-A1") in result.grammars
        assert Row(c("root-A1-B1"), 1) in result.row_heights

    def test_single_cell_refused(self) -> None:
        """A merge needs more than one cell."""
        result = merge_cells(new_session(), c("root-A1"), c("root-A1"))
        assert isinstance(result, PreconditionViolation)

    def test_not_siblings_refused(self) -> None:
        """Both corners must share a parent."""
        result = merge_cells(new_session(), c("root-A1"), c("meta-A1"))
        assert isinstance(result, PreconditionViolation)
        assert "not a sibling" in result.details

    def test_empty_top_left_refused(self) -> None:
        """The anchor slot must hold a cell."""
        session = ok(merge_cells(new_session(), c("root-A1"), c("root-B2")))
        result = merge_cells(session, c("root-B1"), c("root-B3"))
        assert isinstance(result, PreconditionViolation)
        assert "top-left" in result.details


class TestMoveGrammar:
    """Tests for copying a grammar into a cell."""

    def test_copies_and_keeps_source(self) -> None:
        """The source stays usable as a suggestion."""
        result = ok(move_grammar(new_session(), c("meta-A2"), c("root-A1")))
        assert result.grammars[c("root-A1")] == Grammar.suggestion("java grammar", "This is java")
        assert c("meta-A2") in result.grammars

    def test_copies_subtree(self) -> None:
        """Nested children and their sizes come along."""
        session = ok(add_nested_grid(new_session(), c("root-B1"), 2, 2))
        result = ok(move_grammar(session, c("root-B1"), c("root-A3")))
        assert isinstance(result.grammars[c("root-A3")].kind, Grid)
        assert c("root-A3-B2") in result.grammars
        assert result.row_heights[Row(c("root-A3"), 2)] == 30.0

    def test_destination_subtree_discarded(self) -> None:
        """Whatever was nested at the destination is removed."""
        session = ok(add_nested_grid(new_session(), c("root-A3"), 2, 2))
        result = ok(move_grammar(session, c("meta-A1"), c("root-A3")))
        assert c("root-A3-A1") not in result.grammars
        assert result.active_cell == c("root-A3")

    def test_destination_sizes_do_not_outlive_its_grid(self) -> None:
        """Replacing a grid with a plain grammar drops the grid's row and column sizes."""
        session = ok(add_nested_grid(new_session(), c("root-A3"), 2, 2))
        session = ok(resize(session, c("root-A3-A1"), 55.0, 120.0))
        result = ok(move_grammar(session, c("meta-A1"), c("root-A3")))
        assert Row(c("root-A3"), 1) not in result.row_heights
        assert Col(c("root-A3"), 1) not in result.col_widths

        renested = ok(add_nested_grid(result, c("root-A3"), 1, 1))
        assert renested.row_heights[Row(c("root-A3"), 1)] == 30.0
        assert renested.col_widths[Col(c("root-A3"), 1)] == 90.0

    def test_definition_keeps_its_table(self) -> None:
        """Moving a definition keeps pointing at its table."""
        result = ok(move_grammar(new_session(), c("meta-A3"), c("root-A1")))
        defn = result.grammars[c("root-A1")].kind
        assert isinstance(defn, Defn)
        assert defn.defn_coord == c("meta-B3")

    @pytest.mark.parametrize(
        "source, dest, message",
        [
            ("root-B1", "root-B1", "inside the source"),
            ("root", "root-A1", "inside the source"),
            ("meta-A1", "root", "cannot be replaced"),
            ("root-C9", "root-A1", "no grammar at the source"),
            ("meta-A1", "root-C9", "no cell at the destination"),
        ],
    )
    def test_refused(self, source: str, dest: str, message: str) -> None:
        """Illegal sources and destinations."""
        result = move_grammar(new_session(), c(source), c(dest))
        assert isinstance(result, PreconditionViolation)
        assert message in result.details


class TestResize:
    """Tests for sizing rows and columns."""

    def test_resize_sets_sizes(self) -> None:
        """Sizes are set directly, larger or smaller."""
        result = ok(resize(new_session(), c("root-A1"), 12.0, 40.0))
        assert result.row_heights[Row(ROOT, 1)] == 12.0
        assert result.col_widths[Col(ROOT, 1)] == 40.0

    def test_resize_refusals(self) -> None:
        """root has no row; sizes must be positive."""
        assert isinstance(resize(new_session(), ROOT, 10.0, 10.0), PreconditionViolation)
        assert isinstance(resize(new_session(), c("root-A1"), 0.0, 10.0), PreconditionViolation)

    def test_resize_cells_grows_for_definition(self) -> None:
        """A definition needs a row per rule plus one, and two columns."""
        session = ok(move_grammar(new_session(), c("meta-A3"), c("root-A2")))
        result = ok(resize_cells(session, c("root-A2")))
        assert result.row_heights[Row(ROOT, 2)] == 90.0
        assert result.col_widths[Col(ROOT, 1)] == 180.0

    def test_resize_cells_never_shrinks(self) -> None:
        """A larger manual size is kept."""
        session = ok(resize(new_session(), c("root-A1"), 200.0, 300.0))
        result = ok(resize_cells(session, c("root-A1")))
        assert result.row_heights[Row(ROOT, 1)] == 200.0
        assert result.col_widths[Col(ROOT, 1)] == 300.0

    def test_growth_propagates_to_ancestors(self) -> None:
        """A grid grows to hold its grown child."""
        session = ok(add_nested_grid(new_session(), c("root-A1"), 1, 1))
        result = ok(do_completion(session, c("meta-A3"), c("root-A1-A1")))
        assert result.row_heights[Row(c("root-A1"), 1)] == 90.0
        assert result.col_widths[Col(c("root-A1"), 1)] == 180.0
        assert result.row_heights[Row(ROOT, 1)] == 90.0
        assert result.col_widths[Col(ROOT, 1)] == 180.0


class TestDoCompletion:
    """Tests for accepting a suggestion."""

    def test_completion(self) -> None:
        """The suggestion lands in the cell."""
        result = ok(do_completion(new_session(), c("meta-A1"), c("root-B1")))
        assert result.grammars[c("root-B1")].kind == Text("This is js")

    def test_failure_is_atomic(self) -> None:
        """A refused move leaves nothing behind."""
        session = new_session()
        before = session.copy()
        assert isinstance(do_completion(session, ROOT, c("root-A1")), OperationFailure)
        assert session == before


class TestCellEdits:
    """Tests for editing, lookups and the active cell."""

    def test_change_input(self) -> None:
        """Inputs, texts and lookups are editable."""
        session = ok(change_input(new_session(), c("root-A1"), "hello"))
        assert session.grammars[c("root-A1")].kind == Input("hello")
        session = ok(change_input(session, c("meta-A1"), "js!"))
        assert session.grammars[c("meta-A1")].kind == Text("js!")

    def test_change_input_on_grid_refused(self) -> None:
        """Grids are not text."""
        result = change_input(new_session(), c("meta-B3"), "x")
        assert isinstance(result, PreconditionViolation)
        assert "not editable" in result.details

    def test_toggle_lookup(self) -> None:
        """Input and Lookup convert back and forth."""
        session = ok(change_input(new_session(), c("root-A1"), "$B3"))
        session = ok(toggle_lookup(session, c("root-A1")))
        assert session.grammars[c("root-A1")].kind == Lookup("B3")
        session = ok(change_input(session, c("root-A1"), "A2"))
        assert session.grammars[c("root-A1")].kind == Lookup("A2")
        session = ok(toggle_lookup(session, c("root-A1")))
        assert session.grammars[c("root-A1")].kind == Input("A2")

    def test_toggle_lookup_on_text_refused(self) -> None:
        """Only inputs become lookups."""
        assert isinstance(toggle_lookup(new_session(), c("meta-A1")), PreconditionViolation)

    def test_set_active_cell(self) -> None:
        """Only stored coordinates can be active."""
        assert ok(set_active_cell(new_session(), c("meta-A2"))).active_cell == c("meta-A2")
        assert isinstance(set_active_cell(new_session(), c("root-C1")), PreconditionViolation)


class TestApplyDefinitionGrammar:
    """Tests for authoring a definition."""

    def test_definition_and_table(self) -> None:
        """One table row per rule: name then grammar."""
        result = ok(apply_definition_grammar(new_session(), c("root-A1"), c("root-B1"), "expr", ["lhs", "op", "rhs"]))
        defn = result.grammars[c("root-A1")]
        assert defn.name == "expr"
        assert defn.kind == Defn(
            "expr",
            c("root-B1"),
            (("lhs", c("root-B1-B1")), ("op", c("root-B1-B2")), ("rhs", c("root-B1-B3"))),
        )
        assert result.grammars[c("root-B1-A2")] == Grammar.text("op", name="op")
        assert result.grammars[c("root-B1-B3")] == Grammar.default()

    def test_new_offsets_declared(self) -> None:
        """Absent cells are added to the parent grid."""
        result = ok(apply_definition_grammar(new_session(), c("meta-A4"), c("meta-B4"), "stmt", ["body"]))
        assert result.meta.kind.declares((4, 1))
        assert result.meta.kind.declares((4, 2))
        assert result.row_heights[Row(META, 4)] == 30.0

    def test_refusals(self) -> None:
        """Rules are required; targets need grid parents and must not nest."""
        session = new_session()
        assert isinstance(apply_definition_grammar(session, c("root-A1"), c("root-B1"), "x", []), PreconditionViolation)
        assert isinstance(apply_definition_grammar(session, ROOT, c("root-B1"), "x", ["a"]), PreconditionViolation)
        assert isinstance(
            apply_definition_grammar(session, c("root-A1"), c("root-A1-A1"), "x", ["a"]), PreconditionViolation
        )
        assert isinstance(
            apply_definition_grammar(session, c("root-A1-A1"), c("root-B1"), "x", ["a"]), PreconditionViolation
        )


class TestRandomOperations:
    """Random operation sequences keep every invariant."""

    def _step(self, rng: random.Random, session: Session) -> Session | OperationFailure:
        coords = sorted(session.grammars)
        pick = rng.choice(coords)
        op = rng.randrange(10)
        if op == 0:
            return add_nested_grid(session, pick, rng.randint(1, 3), rng.randint(1, 3))
        elif op == 1:
            return insert_row(session)
        elif op == 2:
            return insert_col(session)
        elif op == 3:
            return delete_row(session)
        elif op == 4:
            return delete_col(session)
        elif op == 5:
            parent = pick.parent()
            siblings = children_of(session, parent) if parent is not None else [pick]
            return merge_cells(session, pick, rng.choice(siblings))
        elif op == 6:
            sources = [k for k in coords if k.parent() is not None]
            return do_completion(session, rng.choice(sources), pick)
        elif op == 7:
            return resize_cells(session, pick)
        elif op == 8:
            return change_input(session, pick, rng.choice(["", "js", "$A1"]))
        else:
            return set_active_cell(session, pick)

    @pytest.mark.parametrize("seed", range(8))
    def test_invariants_hold(self, seed: int) -> None:
        """Every result is consistent and inputs are never modified."""
        rng = random.Random(seed)
        session = new_session()
        for _ in range(40):
            before = session.copy()
            result = self._step(rng, session)
            assert session == before
            if isinstance(result, OperationFailure):
                continue
            assert check_invariants(result) == []
            for coord in result.grammars:
                if coord.parent() is not None:
                    assert coord.full_row() in result.row_heights
                    assert coord.full_col() in result.col_widths
            session = result
