class StorageError(Exception):
    """A query against the player store failed."""


class StorageConnectionError(Exception):
    """
    The player store could not be reached.

    Not a `StorageError`: it is never turned into a falsy result and
    always reaches the caller.
    """


class ConstraintViolation(StorageError):
    """A write was refused because it would break a row invariant."""
