# nonogram.py
# Nonogram grid model, scan-based line validator, puzzle reader and printer.

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from nonogram_errors import ParseError
from nonogram_log import get_logger

LOGGER = get_logger(__name__)

Clues = List[int]
Board = List[List[bool]]


# ---------- line validator ----------
def check_line(values: Sequence[bool], clues: Sequence[int]) -> bool:
    """
    True iff the filled cells of `values` form exactly the runs in `clues`,
    in order. Leading empties are skipped before each run, each run must
    match its clue exactly and nothing may be filled after the last run.
    """
    i = 0
    n = len(values)
    for clue in clues:
        while i < n and not values[i]:
            i += 1
        count = 0
        while i < n and values[i]:
            i += 1
            count += 1
        if count != clue:
            return False
    return not any(values[i:])


def line_clues(values: Sequence[bool]) -> Clues:
    """Clue sequence described by a line of cells."""
    clues: Clues = []
    count = 0
    for cell in values:
        if cell:
            count += 1
        elif count:
            clues.append(count)
            count = 0
    if count:
        clues.append(count)
    return clues


def fits(clues: Sequence[int], size: int) -> bool:
    """Can `clues` be placed on a line of length `size` at all?"""
    return sum(clues) + max(len(clues) - 1, 0) <= size


# ---------- grid model ----------
class Nonogram:
    """
    Square N×N puzzle. `col_clues[c]` lists the runs of column c top to
    bottom, `row_clues[r]` the runs of row r left to right. Cells start
    empty and are only written by decoding a solver model.
    """

    def __init__(self, size: int, col_clues: Sequence[Sequence[int]], row_clues: Sequence[Sequence[int]]):
        if size < 1:
            raise ParseError(f"grid size must be positive (got {size})")
        if len(col_clues) != size or len(row_clues) != size:
            raise ParseError(
                f"expected {size} column and {size} row clue lines, "
                f"got {len(col_clues)} and {len(row_clues)}"
            )
        for clues in list(col_clues) + list(row_clues):
            if any(c < 1 for c in clues):
                raise ParseError(f"clue values must be positive (got {list(clues)})")

        self.size = size
        self.col_clues: List[Clues] = [list(c) for c in col_clues]
        self.row_clues: List[Clues] = [list(r) for r in row_clues]
        self.board: Board = [[False] * size for _ in range(size)]

    @classmethod
    def from_picture(cls, picture: Sequence[Sequence[bool]]) -> "Nonogram":
        """Puzzle whose clues describe `picture`; the board itself stays empty."""
        n = len(picture)
        assert all(len(row) == n for row in picture), "Picture must be square"
        rows = [line_clues(row) for row in picture]
        cols = [line_clues([picture[r][c] for r in range(n)]) for c in range(n)]
        return cls(n, cols, rows)

    def get(self, row: int, col: int) -> bool:
        return self.board[row][col]

    def set(self, row: int, col: int, val: bool) -> None:
        self.board[row][col] = val

    def set_board(self, board: Sequence[Sequence[bool]]) -> None:
        """Overwrite every cell in place."""
        if len(board) != self.size or any(len(row) != self.size for row in board):
            raise ValueError(f"board must be {self.size}x{self.size}")
        for r in range(self.size):
            for c in range(self.size):
                self.board[r][c] = bool(board[r][c])

    def row(self, r: int) -> List[bool]:
        return list(self.board[r])

    def col(self, c: int) -> List[bool]:
        return [self.board[r][c] for r in range(self.size)]

    def infeasible_lines(self) -> List[Tuple[str, int]]:
        """Lines whose clues cannot fit in `size` cells."""
        bad = [("row", r) for r, clues in enumerate(self.row_clues) if not fits(clues, self.size)]
        bad += [("col", c) for c, clues in enumerate(self.col_clues) if not fits(clues, self.size)]
        return bad

    def invalid_lines(self) -> List[Tuple[str, int]]:
        bad = [("row", r) for r in range(self.size) if not check_line(self.row(r), self.row_clues[r])]
        bad += [("col", c) for c in range(self.size) if not check_line(self.col(c), self.col_clues[c])]
        return bad

    def validate(self) -> bool:
        """Check every row and column against its clues."""
        bad = self.invalid_lines()
        for kind, index in bad:
            LOGGER.warning("%s %d invalid", kind.capitalize(), index)
        return not bad


# ---------- parsing ----------
def _parse_clues(raw: str, lineno: int) -> Clues:
    try:
        clues = [int(tok) for tok in raw.split()]
    except ValueError:
        raise ParseError(f"non-integer clue in {raw.strip()!r}", lineno) from None
    if clues == [0]:
        # a lone 0 is the usual spelling of an empty line
        return []
    if any(c < 1 for c in clues):
        raise ParseError(f"clue values must be positive, got {raw.strip()!r}", lineno)
    return clues


def parse_puzzle(lines: Sequence[str]) -> Nonogram:
    """
    Accepts:
      - line 1: grid size N
      - next N lines: column clues, space-separated
      - next N lines: row clues, space-separated
    An empty clue line (or a lone 0) is a line with no filled cells.
    """
    lines = [line.rstrip("\r\n") for line in lines]
    if not lines or not lines[0].strip():
        raise ParseError("missing grid size", 1)
    try:
        size = int(lines[0].strip())
    except ValueError:
        raise ParseError(f"grid size must be an integer, got {lines[0].strip()!r}", 1) from None
    if size < 1:
        raise ParseError(f"grid size must be positive (got {size})", 1)

    expected = 1 + 2 * size
    if len(lines) < expected:
        raise ParseError(f"expected {2 * size} clue lines after the size, got {len(lines) - 1}", len(lines) + 1)
    for lineno, extra in enumerate(lines[expected:], start=expected + 1):
        if extra.strip():
            raise ParseError(f"unexpected content after the last row clue: {extra.strip()!r}", lineno)

    col_clues = [_parse_clues(lines[1 + i], 2 + i) for i in range(size)]
    row_clues = [_parse_clues(lines[1 + size + i], 2 + size + i) for i in range(size)]
    LOGGER.debug("cols: %s", col_clues)
    LOGGER.debug("rows: %s", row_clues)
    return Nonogram(size, col_clues, row_clues)


def read_puzzle(path: Union[str, Path]) -> Nonogram:
    path = Path(path)
    LOGGER.info("Reading file: %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"not UTF-8 text: {exc.reason}", 1) from exc
    return parse_puzzle(text.splitlines())


# ---------- printing ----------
def format_grid(puzzle: Nonogram, filled: str = "x", empty: Optional[str] = None) -> str:
    """
    Render the board with column clues stacked above each column and row
    clues in a left gutter.
    """
    empty = " " if empty is None else empty
    all_clues = [c for clues in puzzle.col_clues + puzzle.row_clues for c in clues]
    cellw = max([len(str(c)) for c in all_clues] + [len(filled), len(empty)])
    gutter = max(len(" ".join(map(str, clues))) for clues in puzzle.row_clues)
    depth = max(len(clues) for clues in puzzle.col_clues)

    out: List[str] = []
    for line in range(depth):
        parts = []
        for clues in puzzle.col_clues:
            k = len(clues) - (depth - line)
            parts.append((str(clues[k]) if k >= 0 else "").rjust(cellw))
        out.append((" " * (gutter + 1) + " ".join(parts)).rstrip())

    for r in range(puzzle.size):
        prefix = " ".join(map(str, puzzle.row_clues[r])).rjust(gutter)
        cells = " ".join((filled if cell else empty).rjust(cellw) for cell in puzzle.board[r])
        out.append((prefix + " " + cells).rstrip())
    return "\n".join(out)


def print_grid(puzzle: Nonogram) -> None:
    print(format_grid(puzzle))
    print()
