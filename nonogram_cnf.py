# nonogram_cnf.py
# Compile one nonogram line (length N + run clues) to CNF.
# Every legal placement is enumerated; every other row of the line's truth
# table is forbidden by one clause (De Morgan on the forbidden conjunction).
# Clause count is 2^N - |placements|, so this is only practical for N up to ~20.

from functools import lru_cache
from itertools import product
from typing import FrozenSet, Iterable, List, Sequence, Tuple

from nonogram_log import get_logger

LOGGER = get_logger(__name__)

# A line assignment: entry i is +(i+1) when cell i is filled, -(i+1) when empty.
Assignment = Tuple[int, ...]


# ---------- truth table ----------
def all_assignments(magnitudes: Sequence[int]) -> List[Assignment]:
    """
    Every sign assignment over `magnitudes`: one binary choice per magnitude
    (positive / negative), combined. 2^N distinct vectors, positive first.
    """
    mags = [abs(m) for m in magnitudes]
    if not all(m > 0 for m in mags):
        raise ValueError(f"magnitudes must be non-zero (got {list(magnitudes)})")
    if len(set(mags)) != len(mags):
        raise ValueError(f"magnitudes must be distinct (got {list(magnitudes)})")
    return [tuple(combo) for combo in product(*[(m, -m) for m in mags])]


@lru_cache(maxsize=None)
def universal_set(n: int) -> Tuple[Assignment, ...]:
    """Truth table for a line of length n over literals 1..n (memoized per n)."""
    return tuple(all_assignments(range(1, n + 1)))


# ---------- legal placements ----------
def _to_assignment(mask: int, n: int) -> Assignment:
    return tuple(i + 1 if mask >> i & 1 else -(i + 1) for i in range(n))


def possible_assignments(n: int, clues: Sequence[int]) -> FrozenSet[Assignment]:
    """
    All assignments of a length-n line whose filled cells are exactly the
    runs in `clues`, in order, separated by at least one empty cell.
    Empty clues give the all-empty line; clues that do not fit give nothing.
    """
    clues = tuple(clues)
    if any(c < 1 for c in clues):
        raise ValueError(f"clue values must be positive (got {list(clues)})")
    k = len(clues)

    # room[i]: cells needed by clues[i:] including the gaps between them
    room = [0] * (k + 1)
    for i in range(k - 1, -1, -1):
        room[i] = clues[i] + room[i + 1] + (1 if i + 1 < k else 0)

    result = set()
    # (cursor, next clue index, working line as a bitmask of filled cells)
    stack = [(0, 0, 0)]
    while stack:
        cursor, index, mask = stack.pop()
        if index == k:
            result.add(_to_assignment(mask, n))
            continue
        size = clues[index]
        run = (1 << size) - 1
        keep = (1 << cursor) - 1
        for start in range(cursor, n - room[index] + 1):
            # cells before the cursor are settled; cursor..start and the tail are cleared
            placed = (mask & keep) | (run << start)
            stack.append((start + size + 1, index + 1, placed))
    return frozenset(result)


# ---------- De Morgan compile ----------
def negate(assignment: Iterable[int]) -> List[int]:
    return [-lit for lit in assignment]


def line_cnf(universal: Iterable[Assignment], possible: FrozenSet[Assignment]) -> List[List[int]]:
    """
    One clause per forbidden assignment: NOT(l1 AND l2 AND ...) is the
    clause (-l1 OR -l2 OR ...). The result is satisfied exactly by `possible`.
    """
    return [negate(combo) for combo in universal if combo not in possible]


def group_cnf(n: int, clues: Sequence[int]) -> List[List[int]]:
    """CNF over local literals 1..n for one row or column."""
    possible = possible_assignments(n, clues)
    cnf = line_cnf(universal_set(n), possible)
    LOGGER.debug("clues %s: %d placements, %d clauses", list(clues), len(possible), len(cnf))
    return cnf


def satisfies(cnf: Iterable[Sequence[int]], assignment: Assignment) -> bool:
    """Does a full assignment make every clause true?"""
    true_lits = set(assignment)
    return all(any(lit in true_lits for lit in clause) for clause in cnf)
