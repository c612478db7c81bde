"""Errors raised by the puzzle store and the state aggregator."""


class PuzzleError(Exception):
    pass


class ValidationError(PuzzleError):
    """A write was rejected before reaching storage."""


class StorageError(PuzzleError):
    """The underlying table operation failed."""
