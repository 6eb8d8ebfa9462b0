"""Exception hierarchy for bookbench."""


class BookbenchError(Exception):
    """Base class for all bookbench errors."""


class GenerationError(BookbenchError, ValueError):
    """Invalid parameters passed to the record generator."""


class InvalidRangeError(GenerationError):
    """A numeric range whose lower bound exceeds its upper bound."""

    def __init__(self, lo: int, hi: int) -> None:
        super().__init__(f"Invalid range: min {lo} is greater than max {hi}")
        self.lo = lo
        self.hi = hi


class CodecError(BookbenchError, ValueError):
    """A CSV row that cannot be parsed."""


class LoadError(BookbenchError):
    """A batched insert statement failed.

    The underlying engine error is chained as ``__cause__``.
    """

    def __init__(self, table: str, batch_index: int, message: str) -> None:
        super().__init__(f"Batch {batch_index} into {table} failed: {message}")
        self.table = table
        self.batch_index = batch_index


class ProcessError(BookbenchError):
    """An external tool could not be started or exited with a non-zero code."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class TimerError(BookbenchError, KeyError):
    """A timer label was ended without being started."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
