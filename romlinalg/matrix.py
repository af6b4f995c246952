"""
Matrix: a dense matrix whose rows may be distributed across MPI ranks.

A distributed Matrix holds this rank's block of rows (row counts may differ
between ranks, the column count may not); an undistributed Matrix holds a
full copy on every rank. Values live in a row-major storage block that is
either owned by the Matrix or borrowed from the caller.

Operations that involve other ranks (balanced, row_topology, transpose_mult
and qrcp_pivots_transpose on distributed matrices, gather) are collective:
every rank of the communicator must call them in the same order.

Author: Anthony Poole
"""

import numpy as np

from . import io
from . import kernels
from .config import get_config
from .errors import PreconditionError, require
from .mpi_utils import get_comm, distribute_indices, gather_to_root, allgather_rows
from .qrcp import qrcp_pivots_transpose
from .storage import OwnedBuffer, BorrowedBuffer
from .topology import RowTopology
from .vector import Vector


class Matrix:
    """
    Row-major dense matrix, optionally row-distributed.

    Parameters
    ----------
    num_rows : int
        Local row count when distributed, total row count otherwise.
    num_cols : int
        Column count (identical on every rank).
    distributed : bool
        Whether the rows are spread over the ranks of `comm`.
    data : array_like, optional
        Initial values (row-major, at least num_rows * num_cols entries).
        Without data the values are uninitialized.
    copy_data : bool
        Copy `data` into owned storage (True) or use it as storage (False).
        Borrowed storage must be a C-contiguous float64 numpy array that
        outlives the Matrix; it is never reallocated.
    comm : MPI communicator, optional
        Defaults to MPI.COMM_WORLD.
    """

    def __init__(
        self,
        num_rows: int = 0,
        num_cols: int = 0,
        distributed: bool = False,
        data=None,
        copy_data: bool = True,
        comm=None,
    ):
        require(num_rows >= 0 and num_cols >= 0,
                f"Matrix shape must be non-negative, got ({num_rows}, {num_cols})")
        self.comm = get_comm(comm)
        self._distributed = bool(distributed)

        if data is None:
            self._storage = OwnedBuffer(num_rows, num_cols)
        elif copy_data:
            self._storage = OwnedBuffer.copy_of(data, num_rows, num_cols)
        else:
            self._storage = BorrowedBuffer(data, num_rows, num_cols)

    @classmethod
    def from_array(cls, array, distributed: bool = False, copy_data: bool = True, comm=None) -> "Matrix":
        """Matrix with the shape and values of a 2-D array (this rank's rows if distributed)."""
        if copy_data:
            array = np.asarray(array, dtype=np.float64)
        shape = np.shape(array)
        require(len(shape) == 2, f"Expected a 2-D array, got shape {shape}")
        rows, cols = shape
        return cls(rows, cols, distributed, data=array, copy_data=copy_data, comm=comm)

    @classmethod
    def from_global(cls, array, distributed: bool = True, row_counts=None, comm=None) -> "Matrix":
        """
        Split a globally known array into row blocks, one per rank.

        Parameters
        ----------
        array : array_like, shape (n_total, n_cols)
            Full matrix, identical on every rank.
        distributed : bool
            If False, every rank keeps the full array.
        row_counts : sequence of int, optional
            Rows per rank; defaults to distribute_indices (remainder on the
            last rank).
        """
        comm = get_comm(comm)
        array = np.asarray(array, dtype=np.float64)
        require(array.ndim == 2, f"Expected a 2-D array, got shape {array.shape}")

        if not distributed:
            return cls.from_array(array, False, comm=comm)

        rank, size = comm.Get_rank(), comm.Get_size()
        if row_counts is None:
            start, end, _ = distribute_indices(rank, array.shape[0], size)
        else:
            require(len(row_counts) == size,
                    f"Expected {size} row counts, got {len(row_counts)}")
            require(sum(row_counts) == array.shape[0],
                    f"Row counts sum to {sum(row_counts)}, array has {array.shape[0]} rows")
            start = int(sum(row_counts[:rank]))
            end = start + int(row_counts[rank])

        return cls.from_array(array[start:end], True, comm=comm)

    # -------------------------------------------------------------------------
    # Shape, distribution and ownership
    # -------------------------------------------------------------------------

    @property
    def num_rows(self) -> int:
        """Rows on this rank (all rows when undistributed)."""
        return self._storage.rows

    @property
    def num_columns(self) -> int:
        return self._storage.cols

    @property
    def alloc_size(self) -> int:
        return self._storage.alloc_size

    @property
    def owns_data(self) -> bool:
        return self._storage.owns_data

    @property
    def distributed(self) -> bool:
        return self._distributed

    @property
    def num_processes(self) -> int:
        return self.comm.Get_size()

    @property
    def rank(self) -> int:
        return self.comm.Get_rank()

    @property
    def local(self) -> np.ndarray:
        """Row-major view of this rank's rows."""
        return self._storage.view()

    def resize(self, num_rows: int, num_cols: int):
        """
        Set the shape, reallocating owned storage only when it is too small.

        Values are not preserved or remapped. Growing a matrix with borrowed
        storage beyond its capacity raises PreconditionError.
        """
        self._storage.resize(num_rows, num_cols)

    set_size = resize

    def row_topology(self) -> RowTopology:
        """Row layout of this matrix; collective when distributed."""
        return RowTopology.build(self.comm, self.num_rows, self.distributed)

    def balanced(self) -> bool:
        """True if every rank holds the same number of rows; collective when distributed."""
        if not self.distributed:
            return True
        return self.row_topology().balanced

    def global_num_rows(self) -> int:
        """Total row count over all ranks; collective when distributed."""
        return self.row_topology().total_rows

    # -------------------------------------------------------------------------
    # Element access
    # -------------------------------------------------------------------------

    def _check_index(self, row: int, col: int):
        if __debug__ and get_config().check_bounds:
            if not (0 <= row < self.num_rows and 0 <= col < self.num_columns):
                raise PreconditionError(
                    f"Index ({row}, {col}) out of range for local shape "
                    f"({self.num_rows}, {self.num_columns})"
                )

    def item(self, row: int, col: int) -> float:
        """Value at local (row, col)."""
        self._check_index(row, col)
        return self._storage.flat()[row * self.num_columns + col]

    def __getitem__(self, index):
        row, col = index
        return self.item(row, col)

    def __setitem__(self, index, value):
        row, col = index
        self._check_index(row, col)
        self._storage.flat()[row * self.num_columns + col] = value

    # -------------------------------------------------------------------------
    # Assignment and arithmetic
    # -------------------------------------------------------------------------

    def fill(self, value: float) -> "Matrix":
        """Set every local entry to `value`."""
        self.local[:] = value
        return self

    def assign(self, other: "Matrix") -> "Matrix":
        """Make this a copy of `other` (shape, distribution, values)."""
        values = other.local.copy() if other is not self else other.local
        self._distributed = other.distributed
        self.resize(other.num_rows, other.num_columns)
        self.local[:] = values
        return self

    def copy(self) -> "Matrix":
        """Owned deep copy."""
        return Matrix(self.num_rows, self.num_columns, self.distributed,
                      data=self._storage.flat(), copy_data=True, comm=self.comm)

    def _check_same_layout(self, other: "Matrix"):
        require(self.distributed == other.distributed,
                "Matrices must share the same distribution")
        require(self.num_rows == other.num_rows and self.num_columns == other.num_columns,
                f"Matrix shapes differ: ({self.num_rows}, {self.num_columns}) vs "
                f"({other.num_rows}, {other.num_columns})")

    def __iadd__(self, other: "Matrix"):
        self._check_same_layout(other)
        self.local[:] += other.local
        return self

    def __isub__(self, other: "Matrix"):
        self._check_same_layout(other)
        self.local[:] -= other.local
        return self

    def gather(self, root: int = None):
        """
        Collect the rows of a distributed matrix into an undistributed one.

        With root=None every rank receives the full matrix; otherwise only
        `root` does and the other ranks get None. Collective when distributed.
        """
        if not self.distributed:
            return self.copy()

        if root is None:
            full = allgather_rows(self.comm, np.ascontiguousarray(self.local),
                                  get_config().max_chunk_bytes)
        else:
            full = gather_to_root(self.comm, np.ascontiguousarray(self.local), root=root)
            if full is None:
                return None

        return Matrix.from_array(full, False, comm=self.comm)

    # -------------------------------------------------------------------------
    # Dense algebra
    # -------------------------------------------------------------------------

    def mult(self, other, result=None):
        """
        Product this @ other for a Matrix or a Vector `other`.

        `other` must be undistributed; the product shares the distribution of
        this matrix. If `result` is given it is resized and filled.
        """
        if isinstance(other, Vector):
            if result is None:
                result = Vector(0, self.distributed, comm=self.comm)
            return kernels.mult_vector(self, other, result)

        if result is None:
            result = Matrix(0, 0, self.distributed, comm=self.comm)
        return kernels.mult_matrix(self, other, result)

    def mult_plus(self, a: Vector, b: Vector, c: float) -> Vector:
        """a += c * this @ b"""
        return kernels.mult_plus(self, a, b, c)

    def transpose_mult(self, other, result=None):
        """
        Product this.T @ other for a Matrix or a Vector `other`.

        Both operands share a distribution; the product is undistributed.
        Collective when distributed.
        """
        if isinstance(other, Vector):
            if result is None:
                result = Vector(0, False, comm=self.comm)
            return kernels.transpose_mult_vector(self, other, result)

        if result is None:
            result = Matrix(0, 0, False, comm=self.comm)
        return kernels.transpose_mult_matrix(self, other, result)

    def inverse(self, result: "Matrix" = None) -> "Matrix":
        """Inverse of this square undistributed matrix, in `result` or a new Matrix."""
        if result is None:
            result = Matrix(0, 0, False, comm=self.comm)
        return kernels.inverse(self, result)

    def inverse_in_place(self) -> "Matrix":
        """Replace this square undistributed matrix by its inverse."""
        return kernels.inverse(self, self)

    def pseudoinverse(self) -> "Matrix":
        """
        Replace this matrix by the TRANSPOSE of its Moore-Penrose pseudoinverse.

        Requires an undistributed matrix with num_rows >= num_columns. The shape
        is unchanged: a (m, n) matrix A becomes pinv(A).T, also (m, n).
        """
        return kernels.pseudoinverse(self)

    def qrcp_pivots_transpose(self, pivots_requested: int, backend: str = None) -> tuple:
        """
        Leading row pivots from QR with column pivoting of this matrix's transpose.

        Returns
        -------
        row_pivot : np.ndarray of int64
            Global row indices, most significant pivot first.
        row_pivot_owner : np.ndarray of int64
            Rank owning each pivot row.
        """
        return qrcp_pivots_transpose(self, pivots_requested, backend=backend)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def print(self, prefix: str) -> str:
        """Write this rank's rows to the ASCII file <prefix>.<rank>."""
        return io.print_matrix(self, prefix)

    def write(self, base_file_name: str) -> str:
        """Write this rank's rows to the HDF5 file <base_file_name>.<rank>."""
        return io.write_matrix(self, base_file_name)

    def read(self, base_file_name: str) -> "Matrix":
        """Read this rank's rows from the HDF5 file <base_file_name>.<rank>."""
        return io.read_matrix(self, base_file_name)

    def __repr__(self):
        return (f"Matrix(num_rows={self.num_rows}, num_cols={self.num_columns}, "
                f"distributed={self.distributed}, owns_data={self.owns_data})")
