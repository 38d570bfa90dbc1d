import logging
from itertools import product

import pytest
from hypothesis import given, settings, strategies as st
from pysat.solvers import Solver

from nonogram import Nonogram
from nonogram_cnf import possible_assignments
from nonogram_errors import DecodeMismatch, NonogramError, UnknownBackendError
from nonogram_pysat import (
    CellLiterals,
    PySatBackend,
    SatBackend,
    SolveConfig,
    SolveStatus,
    Z3Backend,
    add_line_rules,
    decode_model,
    make_backend,
    puzzle_cnf,
    remap_clause,
    solve_nonogram,
)

PLUS_SOLUTION = [[False, True, False], [True, True, True], [False, True, False]]


def plus_puzzle():
    return Nonogram(3, [[1], [3], [1]], [[1], [3], [1]])


def expected_clauses(puzzle):
    """One clause per forbidden assignment of every row and column."""
    n = puzzle.size
    return sum(2 ** n - len(possible_assignments(n, clues))
               for clues in puzzle.row_clues + puzzle.col_clues)


class BruteForceBackend(SatBackend):
    """Tries every assignment; only usable for a handful of literals."""

    def __init__(self):
        self.count = 0
        self.clauses = []
        self._model = None

    def allocate_literal(self, key=None):
        self.count += 1
        return self.count

    def add_clause(self, clause):
        self.clauses.append(list(clause))

    def solve(self, timeout=None):
        lits = range(1, self.count + 1)
        for signs in product((True, False), repeat=self.count):
            values = dict(zip(lits, signs))
            if all(any(values[abs(l)] == (l > 0) for l in clause) for clause in self.clauses):
                self._model = values
                return SolveStatus.SATISFIABLE
        return SolveStatus.UNSATISFIABLE

    def model(self):
        return self._model


# ---------- literal binding ----------
def test_cell_literals_are_row_major():
    with PySatBackend() as backend:
        literals = CellLiterals.allocate(backend, 3)
    assert len(literals) == 9
    for r in range(3):
        for c in range(3):
            lit = literals.literal(r, c)
            assert lit == r * 3 + c + 1
            assert literals.cell(lit) == (r, c)
            assert literals.cell(-lit) == (r, c)
    assert literals.row(1) == [4, 5, 6]
    assert literals.col(2) == [3, 6, 9]
    assert [kind for kind, _, _ in literals.lines()] == ["row"] * 3 + ["col"] * 3


def test_cell_literals_reject_duplicates():
    with pytest.raises(ValueError):
        CellLiterals(2, [1, 2, 2, 3])
    with pytest.raises(ValueError):
        CellLiterals(2, [1, 2, 3])


def test_pysat_backend_refuses_reused_key():
    with PySatBackend() as backend:
        backend.allocate_literal((0, 0))
        with pytest.raises(ValueError):
            backend.allocate_literal((0, 0))
        assert backend.allocate_literal() == 2


def test_remap_clause_keeps_signs():
    assert remap_clause([1, -2, 3], [7, 4, 9]) == [7, -4, 9]


def test_add_line_rules_counts_clauses():
    backend = BruteForceBackend()
    lits = [backend.allocate_literal() for _ in range(3)]
    assert add_line_rules(backend, lits, [1, 1]) == 2 ** 3 - 1
    assert backend.solve() is SolveStatus.SATISFIABLE
    assert backend.model() == {1: True, 2: False, 3: True}


# ---------- decoding ----------
def test_decode_model():
    literals = CellLiterals(2, [1, 2, 3, 4])
    board = decode_model({1: True, 2: False, 3: False, 4: True}, literals)
    assert board == [[True, False], [False, True]]


def test_decode_truncated_model():
    literals = CellLiterals(2, [1, 2, 3, 4])
    with pytest.raises(DecodeMismatch):
        decode_model({1: True, 2: False}, literals)


def test_decode_model_missing_cell():
    literals = CellLiterals(2, [1, 2, 3, 4])
    with pytest.raises(DecodeMismatch):
        decode_model({1: True, 2: False, 3: True, 5: True}, literals)


def test_model_before_solve():
    with PySatBackend() as backend:
        backend.allocate_literal()
        with pytest.raises(NonogramError):
            backend.model()


# ---------- end to end ----------
@pytest.mark.parametrize("backend", ["pysat", "z3"])
def test_single_cell(backend):
    puzzle = Nonogram(1, [[1]], [[1]])
    result = solve_nonogram(puzzle, SolveConfig(backend=backend))
    assert result.status is SolveStatus.SATISFIABLE
    assert puzzle.board == [[True]]
    assert result.valid


@pytest.mark.parametrize("backend", ["pysat", "z3"])
def test_plus_shape(backend):
    puzzle = plus_puzzle()
    result = solve_nonogram(puzzle, SolveConfig(backend=backend))
    assert result.solved
    assert puzzle.board == PLUS_SOLUTION
    assert result.valid
    assert puzzle.invalid_lines() == []
    assert result.num_literals == 9
    assert result.num_clauses == expected_clauses(puzzle) == 34


@pytest.mark.parametrize("backend", ["pysat", "z3"])
def test_infeasible_row_is_unsatisfiable(backend):
    puzzle = Nonogram(2, [[1], [1]], [[3], [1]])
    assert possible_assignments(2, [3]) == frozenset()

    result = solve_nonogram(puzzle, SolveConfig(backend=backend))
    assert result.status is SolveStatus.UNSATISFIABLE
    assert not result.solved
    assert result.solutions == []
    assert not result.valid
    assert puzzle.board == [[False, False], [False, False]]


def test_contradictory_clues_are_unsatisfiable():
    # every line fits, but rows want 2 filled cells and columns only 1
    puzzle = Nonogram(2, [[1], [1]], [[2], [2]])
    assert solve_nonogram(puzzle).status is SolveStatus.UNSATISFIABLE


def test_custom_backend():
    puzzle = plus_puzzle()
    result = solve_nonogram(puzzle, backend=BruteForceBackend())
    assert result.solved
    assert puzzle.board == PLUS_SOLUTION


@pytest.mark.parametrize("backend", ["pysat", "z3"])
def test_all_solutions_of_ambiguous_puzzle(backend):
    puzzle = Nonogram(2, [[1], [1]], [[1], [1]])
    result = solve_nonogram(puzzle, SolveConfig(backend=backend, all_solutions=True))
    assert result.solved
    assert result.exhausted
    assert sorted(result.solutions) == sorted([
        [[True, False], [False, True]],
        [[False, True], [True, False]],
    ])
    assert puzzle.board == result.solutions[0]
    assert result.valid


def test_max_solutions_caps_enumeration():
    puzzle = Nonogram(2, [[1], [1]], [[1], [1]])
    result = solve_nonogram(puzzle, SolveConfig(all_solutions=True, max_solutions=1))
    assert len(result.solutions) == 1
    assert not result.exhausted


def test_unique_puzzle_has_one_solution():
    result = solve_nonogram(plus_puzzle(), SolveConfig(all_solutions=True))
    assert result.exhausted
    assert result.solutions == [PLUS_SOLUTION]


def test_timeout_allows_quick_solve():
    result = solve_nonogram(plus_puzzle(), SolveConfig(timeout=30.0))
    assert result.status is SolveStatus.SATISFIABLE


def test_timeout_on_solver_without_interrupt(monkeypatch, caplog):
    with PySatBackend() as backend:
        def no_interrupt(*args, **kwargs):
            raise NotImplementedError("interrupt not supported")

        monkeypatch.setattr(backend.solver, "solve_limited", no_interrupt)
        puzzle = plus_puzzle()
        with caplog.at_level(logging.WARNING):
            result = solve_nonogram(puzzle, SolveConfig(timeout=5.0), backend=backend)
    assert result.solved
    assert puzzle.board == PLUS_SOLUTION
    assert "cannot be interrupted" in caplog.text


def test_unknown_backend():
    with pytest.raises(UnknownBackendError):
        make_backend(SolveConfig(backend="minisat-over-http"))


def test_unknown_pysat_solver_name():
    with pytest.raises(UnknownBackendError):
        make_backend(SolveConfig(solver_name="nosuch"))
    with pytest.raises(UnknownBackendError):
        solve_nonogram(plus_puzzle(), SolveConfig(solver_name="nosuch"))


def test_z3_backend_names_cells():
    backend = Z3Backend()
    assert backend.allocate_literal((1, 2)) == 1
    assert str(backend.vars[1]) == "x_1_2"


def test_puzzle_cnf_matches_solver_literals():
    cnf = puzzle_cnf(plus_puzzle())
    assert len(cnf.clauses) == expected_clauses(plus_puzzle()) == 34
    with Solver(name="g3", bootstrap_with=cnf.clauses) as s:
        assert s.solve()
        true_lits = {l for l in s.get_model() if l > 0}
    assert true_lits == {2, 4, 5, 6, 8}


pictures = st.integers(min_value=1, max_value=5).flatmap(
    lambda n: st.lists(st.lists(st.booleans(), min_size=n, max_size=n), min_size=n, max_size=n)
)


@settings(max_examples=25, deadline=None)
@given(picture=pictures)
def test_puzzles_from_pictures_solve_validly(picture):
    puzzle = Nonogram.from_picture(picture)
    result = solve_nonogram(puzzle)
    assert result.solved
    assert result.valid
