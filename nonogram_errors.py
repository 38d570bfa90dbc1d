"""Exception hierarchy for the nonogram SAT solver."""


class NonogramError(Exception):
    """Base exception for solver failures."""


class ParseError(NonogramError):
    """Raised when a puzzle source cannot be parsed; no grid is built."""

    def __init__(self, message: str, line: int = 0):
        self.line = line
        if line:
            message = f"line {line}: {message}"
        super().__init__(message)


class DecodeMismatch(NonogramError):
    """Raised when a solver model does not cover the cell literals."""


class UnknownBackendError(NonogramError):
    """Raised when a configuration names a SAT backend that does not exist."""
