"""
Vector: 1-D counterpart of Matrix.

A distributed Vector holds this rank's slice of the entries; an undistributed
one holds every entry on every rank.

Author: Anthony Poole
"""

import numpy as np
from mpi4py import MPI

from .config import get_config
from .errors import PreconditionError, require
from .mpi_utils import get_comm
from .storage import OwnedBuffer, BorrowedBuffer


class Vector:
    """A simple vector whose entries may be distributed across processes."""

    def __init__(
        self,
        dim: int = 0,
        distributed: bool = False,
        data=None,
        copy_data: bool = True,
        comm=None,
    ):
        require(dim >= 0, f"Vector dimension must be non-negative, got {dim}")
        self.comm = get_comm(comm)
        self._distributed = bool(distributed)

        if data is None:
            self._storage = OwnedBuffer(dim, 1)
        elif copy_data:
            self._storage = OwnedBuffer.copy_of(data, dim, 1)
        else:
            self._storage = BorrowedBuffer(data, dim, 1)

    # -------------------------------------------------------------------------
    # Shape and ownership
    # -------------------------------------------------------------------------

    @property
    def dim(self) -> int:
        """Number of entries on this rank."""
        return self._storage.rows

    @property
    def distributed(self) -> bool:
        return self._distributed

    @property
    def owns_data(self) -> bool:
        return self._storage.owns_data

    @property
    def alloc_size(self) -> int:
        return self._storage.alloc_size

    @property
    def num_processes(self) -> int:
        return self.comm.Get_size()

    @property
    def rank(self) -> int:
        return self.comm.Get_rank()

    @property
    def local(self) -> np.ndarray:
        """1-D view of this rank's entries."""
        return self._storage.flat()

    def resize(self, dim: int):
        """Set the dimension, reallocating owned storage only when it is too small."""
        self._storage.resize(dim, 1)

    # -------------------------------------------------------------------------
    # Element access
    # -------------------------------------------------------------------------

    def _check_index(self, i):
        if __debug__ and get_config().check_bounds:
            if not 0 <= i < self.dim:
                raise PreconditionError(f"Index {i} out of range for dimension {self.dim}")

    def item(self, i: int) -> float:
        self._check_index(i)
        return self.local[i]

    def __getitem__(self, i):
        return self.item(i)

    def __setitem__(self, i, value):
        self._check_index(i)
        self.local[i] = value

    # -------------------------------------------------------------------------
    # Assignment and arithmetic
    # -------------------------------------------------------------------------

    def fill(self, value: float) -> "Vector":
        self.local[:] = value
        return self

    def assign(self, other: "Vector") -> "Vector":
        """Make this a copy of `other` (resizing as needed)."""
        self._distributed = other.distributed
        self.resize(other.dim)
        self.local[:] = other.local
        return self

    def copy(self) -> "Vector":
        return Vector(self.dim, self.distributed, data=self.local, copy_data=True, comm=self.comm)

    def _check_compatible(self, other: "Vector"):
        require(self.distributed == other.distributed,
                "Vectors must share the same distribution")
        require(self.dim == other.dim,
                f"Vector dimensions differ: {self.dim} != {other.dim}")

    def __iadd__(self, other: "Vector"):
        self._check_compatible(other)
        self.local[:] += other.local
        return self

    def __isub__(self, other: "Vector"):
        self._check_compatible(other)
        self.local[:] -= other.local
        return self

    def plus_ax(self, a: float, x: "Vector") -> "Vector":
        """this += a*x"""
        self._check_compatible(x)
        self.local[:] += a * x.local
        return self

    # -------------------------------------------------------------------------
    # Reductions
    # -------------------------------------------------------------------------

    def inner_product(self, other: "Vector") -> float:
        """Global inner product; collective when distributed."""
        self._check_compatible(other)
        local_ip = float(np.dot(self.local, other.local))
        if self.distributed:
            return self.comm.allreduce(local_ip, op=MPI.SUM)
        return local_ip

    def norm(self) -> float:
        return float(np.sqrt(self.inner_product(self)))

    def norm2(self) -> float:
        return self.inner_product(self)

    def normalize(self) -> float:
        """Scale to unit norm; returns the norm before scaling."""
        n = self.norm()
        if n > 0.0:
            self.local[:] /= n
        return n

    def __repr__(self):
        return (f"Vector(dim={self.dim}, distributed={self.distributed}, "
                f"owns_data={self.owns_data})")
