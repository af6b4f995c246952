"""
Error types for the dense kernel.

Precondition violations (shape or distribution mismatches, pivot counts out
of range, reallocation of borrowed storage, out-of-bounds access) are caller
programming errors. They are raised as PreconditionError, an AssertionError
subclass, and are never caught inside the package.

Under MPI an uncaught error on one rank leaves the other ranks blocked in the
next collective, so drivers should be launched with ``python -m mpi4py`` to
turn it into an MPI_Abort of the whole job.

Author: Anthony Poole
"""


class PreconditionError(AssertionError):
    """A caller violated the contract of a kernel operation."""


def require(condition: bool, message: str):
    """Raise PreconditionError with `message` unless `condition` holds."""
    if not condition:
        raise PreconditionError(message)
