# nonogram_pysat.py
# Solve an N×N nonogram by encoding every row and column to CNF and handing
# the clauses to a SAT backend (PySAT by default, Z3 as an alternative).
# Requires: pip install python-sat z3-solver

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, Iterator, List, Optional, Sequence, Tuple

from pysat.formula import CNF, IDPool
from pysat.solvers import NoSuchSolverError, Solver  # name="g3" by default; swap to "cd15", "m22", etc.
from z3 import Bool, BoolVal, Not, Or, is_true, sat, unsat
from z3 import Solver as Z3Solver

from nonogram import Board, Nonogram
from nonogram_cnf import group_cnf
from nonogram_errors import DecodeMismatch, NonogramError, UnknownBackendError
from nonogram_log import get_logger

LOGGER = get_logger(__name__)


class SolveStatus(str, Enum):
    """Outcome of one solve call."""

    SATISFIABLE = "SATISFIABLE"
    UNSATISFIABLE = "UNSATISFIABLE"
    UNKNOWN = "UNKNOWN"  # interrupted by the timeout


# ---------- backends ----------
class SatBackend(ABC):
    """
    The four capabilities the encoder needs from a SAT engine. Literals are
    positive ints; a clause is a list of signed literals.
    """

    @abstractmethod
    def allocate_literal(self, key: Optional[Hashable] = None) -> int:
        """Fresh literal, unique per call. `key` only names it for debugging."""

    @abstractmethod
    def add_clause(self, clause: Sequence[int]) -> None:
        ...

    @abstractmethod
    def solve(self, timeout: Optional[float] = None) -> SolveStatus:
        ...

    @abstractmethod
    def model(self) -> Dict[int, bool]:
        """Truth value of every allocated literal after a SATISFIABLE solve."""

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class PySatBackend(SatBackend):
    def __init__(self, name: str = "g3"):
        self.name = name
        self.pool = IDPool()
        try:
            self.solver = Solver(name=name)
        except NoSuchSolverError:
            raise UnknownBackendError(f"unknown PySAT solver {name!r}") from None

    def allocate_literal(self, key: Optional[Hashable] = None) -> int:
        if key is None:
            key = ("aux", self.pool.top + 1)
        if key in self.pool.obj2id:
            raise ValueError(f"literal for {key!r} already allocated")
        return self.pool.id(key)

    def add_clause(self, clause: Sequence[int]) -> None:
        self.solver.add_clause(list(clause))

    def solve(self, timeout: Optional[float] = None) -> SolveStatus:
        if timeout is None:
            res = self.solver.solve()
        else:
            try:
                res = self._solve_interruptible(timeout)
            except NotImplementedError:
                # e.g. lingeling has no interrupt support
                LOGGER.warning("solver %s cannot be interrupted; solving without a timeout", self.name)
                res = self.solver.solve()
        if res is None:
            return SolveStatus.UNKNOWN
        return SolveStatus.SATISFIABLE if res else SolveStatus.UNSATISFIABLE

    def _solve_interruptible(self, timeout: float) -> Optional[bool]:
        timer = threading.Timer(timeout, self.solver.interrupt)
        timer.start()
        try:
            res = self.solver.solve_limited(expect_interrupt=True)
        finally:
            timer.cancel()
        self.solver.clear_interrupt()
        return res

    def model(self) -> Dict[int, bool]:
        model = self.solver.get_model()
        if model is None:
            raise NonogramError("no model: last solve was not satisfiable")
        values = {abs(lit): lit > 0 for lit in model}
        # literals that appear in no clause may be missing from the model
        for lit in range(1, self.pool.top + 1):
            values.setdefault(lit, False)
        return values

    def close(self) -> None:
        self.solver.delete()


class Z3Backend(SatBackend):
    def __init__(self):
        self.solver = Z3Solver()
        self.vars: Dict[int, object] = {}

    def allocate_literal(self, key: Optional[Hashable] = None) -> int:
        lit = len(self.vars) + 1
        if isinstance(key, tuple) and len(key) == 2:
            name = f"x_{key[0]}_{key[1]}"
        else:
            name = f"v_{lit}"
        self.vars[lit] = Bool(name)
        return lit

    def _term(self, lit: int):
        return self.vars[lit] if lit > 0 else Not(self.vars[-lit])

    def add_clause(self, clause: Sequence[int]) -> None:
        if not clause:
            self.solver.add(BoolVal(False))
            return
        self.solver.add(Or([self._term(lit) for lit in clause]))

    def solve(self, timeout: Optional[float] = None) -> SolveStatus:
        if timeout is not None:
            self.solver.set("timeout", int(timeout * 1000))
        res = self.solver.check()
        if res == sat:
            return SolveStatus.SATISFIABLE
        if res == unsat:
            return SolveStatus.UNSATISFIABLE
        return SolveStatus.UNKNOWN

    def model(self) -> Dict[int, bool]:
        m = self.solver.model()
        return {lit: is_true(m.eval(v, model_completion=True)) for lit, v in self.vars.items()}


# ---------- configuration ----------
@dataclass
class SolveConfig:
    """
    backend: 'pysat' | 'z3'
    solver_name: PySAT solver name ('g3', 'cd15', 'm22', ...)
    all_solutions: keep solving with blocking clauses after the first model
    max_solutions: cap for all_solutions (None = no cap)
    timeout: seconds per solve call (None = wait forever)
    """

    backend: str = "pysat"
    solver_name: str = "g3"
    all_solutions: bool = False
    max_solutions: Optional[int] = None
    timeout: Optional[float] = None


_BACKENDS = {
    "pysat": lambda cfg: PySatBackend(cfg.solver_name),
    "z3": lambda cfg: Z3Backend(),
}


def make_backend(config: SolveConfig) -> SatBackend:
    try:
        factory = _BACKENDS[config.backend]
    except KeyError:
        raise UnknownBackendError(
            f"unknown backend {config.backend!r} (choose from {', '.join(sorted(_BACKENDS))})"
        ) from None
    return factory(config)


# ---------- cell <-> literal mapping ----------
class CellLiterals:
    """
    Row-major bijection between grid cells and solver literals. Built once
    per solve and shared by clause submission and model decoding.
    """

    def __init__(self, size: int, literals: Sequence[int]):
        if len(literals) != size * size:
            raise ValueError(f"need {size * size} literals, got {len(literals)}")
        self.size = size
        self._lits = list(literals)
        self._cells = {lit: divmod(i, size) for i, lit in enumerate(self._lits)}
        if len(self._cells) != len(self._lits):
            raise ValueError("cell literals must be distinct")

    @classmethod
    def allocate(cls, backend: SatBackend, size: int) -> "CellLiterals":
        return cls(size, [backend.allocate_literal((r, c)) for r in range(size) for c in range(size)])

    def __len__(self) -> int:
        return len(self._lits)

    def __iter__(self) -> Iterator[int]:
        return iter(self._lits)

    def literal(self, row: int, col: int) -> int:
        return self._lits[row * self.size + col]

    def cell(self, lit: int) -> Tuple[int, int]:
        return self._cells[abs(lit)]

    def row(self, r: int) -> List[int]:
        return self._lits[r * self.size:(r + 1) * self.size]

    def col(self, c: int) -> List[int]:
        return self._lits[c::self.size]

    def lines(self) -> Iterator[Tuple[str, int, List[int]]]:
        """('row', r, literals) for every row, then ('col', c, literals)."""
        for r in range(self.size):
            yield "row", r, self.row(r)
        for c in range(self.size):
            yield "col", c, self.col(c)


# ---------- encoding ----------
def remap_clause(clause: Sequence[int], lits: Sequence[int]) -> List[int]:
    """Map local literal ±i (line position i-1) onto ±lits[i-1]."""
    return [lits[l - 1] if l > 0 else -lits[-l - 1] for l in clause]


def add_line_rules(backend: SatBackend, lits: Sequence[int], clues: Sequence[int]) -> int:
    """Submit the clauses of one row/column; returns how many were added."""
    cnf = group_cnf(len(lits), clues)
    for generic_clause in cnf:
        backend.add_clause(remap_clause(generic_clause, lits))
    return len(cnf)


def _line_clues(puzzle: Nonogram, kind: str, index: int) -> List[int]:
    return puzzle.row_clues[index] if kind == "row" else puzzle.col_clues[index]


def puzzle_cnf(puzzle: Nonogram) -> CNF:
    """Whole-puzzle CNF with literal row*N + col + 1 for cell (row, col)."""
    n = puzzle.size
    literals = CellLiterals(n, range(1, n * n + 1))
    cnf = CNF()
    for kind, index, lits in literals.lines():
        for generic_clause in group_cnf(n, _line_clues(puzzle, kind, index)):
            cnf.append(remap_clause(generic_clause, lits))
    return cnf


def decode_model(model: Dict[int, bool], literals: CellLiterals) -> Board:
    """Turn a model (literal -> bool) into an N×N board."""
    if len(model) < len(literals):
        raise DecodeMismatch(f"model has {len(model)} literals, grid needs {len(literals)}")
    n = literals.size
    out = [[False] * n for _ in range(n)]
    for r in range(n):
        for c in range(n):
            lit = literals.literal(r, c)
            try:
                out[r][c] = bool(model[lit])
            except KeyError:
                raise DecodeMismatch(f"model has no value for cell ({r}, {c}), literal {lit}") from None
    return out


def _blocking_clause(board: Board, literals: CellLiterals) -> List[int]:
    return [-literals.literal(r, c) if cell else literals.literal(r, c)
            for r, row in enumerate(board) for c, cell in enumerate(row)]


# ---------- solver ----------
@dataclass
class SolveResult:
    status: SolveStatus
    solutions: List[Board] = field(default_factory=list)
    valid: bool = False
    exhausted: bool = False  # all_solutions mode proved there are no more
    num_literals: int = 0
    num_clauses: int = 0

    @property
    def solved(self) -> bool:
        return self.status is SolveStatus.SATISFIABLE


def solve_nonogram(
    puzzle: Nonogram,
    config: Optional[SolveConfig] = None,
    backend: Optional[SatBackend] = None,
) -> SolveResult:
    """
    Encode `puzzle`, solve it and, when satisfiable, write the (first)
    solution onto `puzzle` in place and validate it.
    An unsatisfiable puzzle is reported through `status`; the board is left as is.
    """
    config = config or SolveConfig()
    if backend is not None:
        return _solve(puzzle, config, backend)
    with make_backend(config) as owned:
        return _solve(puzzle, config, owned)


def _solve(puzzle: Nonogram, config: SolveConfig, backend: SatBackend) -> SolveResult:
    for kind, index in puzzle.infeasible_lines():
        LOGGER.warning("%s %d: clues %s cannot fit in %d cells",
                       kind.capitalize(), index, _line_clues(puzzle, kind, index), puzzle.size)

    literals = CellLiterals.allocate(backend, puzzle.size)
    num_clauses = 0
    for kind, index, lits in literals.lines():
        num_clauses += add_line_rules(backend, lits, _line_clues(puzzle, kind, index))
    LOGGER.info("%dx%d puzzle: %d literals, %d clauses", puzzle.size, puzzle.size, len(literals), num_clauses)

    result = SolveResult(SolveStatus.UNSATISFIABLE, num_literals=len(literals), num_clauses=num_clauses)
    while True:
        status = backend.solve(config.timeout)
        if status is not SolveStatus.SATISFIABLE:
            if status is SolveStatus.UNKNOWN:
                LOGGER.warning("solve interrupted after %s s", config.timeout)
            if result.solutions:
                result.exhausted = status is SolveStatus.UNSATISFIABLE
            else:
                result.status = status
            break

        board = decode_model(backend.model(), literals)
        result.solutions.append(board)
        result.status = SolveStatus.SATISFIABLE
        if not config.all_solutions:
            break
        if config.max_solutions is not None and len(result.solutions) >= config.max_solutions:
            break
        # forbid this exact grid and ask again
        backend.add_clause(_blocking_clause(board, literals))

    LOGGER.info("status %s, %d solution(s)", result.status.value, len(result.solutions))
    if result.solutions:
        puzzle.set_board(result.solutions[0])
        result.valid = puzzle.validate()
    return result


# ---------- demo ----------
if __name__ == "__main__":
    from nonogram import print_grid

    # plus shape: unique solution
    PUZZLE = Nonogram(3, [[1], [3], [1]], [[1], [3], [1]])
    res = solve_nonogram(PUZZLE)
    if not res.solved:
        print("UNSAT (no solution)")
    else:
        print_grid(PUZZLE)
        print("Nonogram valid:", res.valid)
