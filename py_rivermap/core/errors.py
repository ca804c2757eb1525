"""
Exception taxonomy shared by the grid kernel and both river engines.

PathGenerationFailure is the only retryable error; everything else is fatal
and propagates to the caller untouched.
"""

from typing import Optional


class RiverMapError(Exception):
    """Base class for every error raised by py_rivermap."""


class GridIndexError(RiverMapError, IndexError):
    """An out-of-range index was used with the THROW out-of-bounds rule."""

    def __init__(self, position, size):
        self.position = position
        self.size = size
        super().__init__(f"Position {position} is outside of a grid of size {size}")


class ConfigurationError(RiverMapError, ValueError):
    """Grid dimensions or ratios make river generation impossible."""


class PathGenerationFailure(RiverMapError):
    """A single generation attempt dead-ended. Retry with another seed."""

    def __init__(self, message: str, seed: Optional[int] = None, path_length: int = 0):
        self.seed = seed
        self.path_length = path_length
        super().__init__(message)


class RiverGenerationError(RiverMapError):
    """Every allowed generation attempt failed."""

    def __init__(self, attempts: int, first_seed: int, last_failure: Optional[Exception] = None):
        self.attempts = attempts
        self.first_seed = first_seed
        self.last_failure = last_failure
        super().__init__(
            f"River generation failed {attempts} times in a row "
            f"(seeds {first_seed} to {first_seed + attempts - 1}): {last_failure}"
        )


class InferenceInconsistency(RiverMapError):
    """A deduction contradicts a cell that was already resolved."""

    def __init__(self, position, existing, attempted):
        self.position = position
        self.existing = existing
        self.attempted = attempted
        super().__init__(
            f"Cell {position} is already known as {existing.name} "
            f"but a deduction tried to set it to {attempted.name}"
        )
