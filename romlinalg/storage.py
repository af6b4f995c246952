"""
Dense storage blocks.

A storage block is a contiguous float64 buffer with a logical row-major shape
(rows, cols) and a capacity that may exceed rows*cols. Two variants:

    OwnedBuffer     - allocated by the block, may be regrown
    BorrowedBuffer  - view over a caller-managed array, never reallocated

The caller of a BorrowedBuffer guarantees the wrapped array outlives it.

Author: Anthony Poole
"""

import numpy as np

from .errors import PreconditionError, require


class DenseStorage:
    """Common logic of the owned and borrowed storage blocks."""

    owns_data = False

    def __init__(self, buffer: np.ndarray, rows: int, cols: int):
        self._buffer = buffer
        self.rows = rows
        self.cols = cols

    @property
    def alloc_size(self) -> int:
        return self._buffer.size

    @property
    def shape(self) -> tuple:
        return (self.rows, self.cols)

    @property
    def size(self) -> int:
        return self.rows * self.cols

    def flat(self) -> np.ndarray:
        """1-D view of the first rows*cols entries."""
        return self._buffer[:self.size]

    def view(self) -> np.ndarray:
        """Row-major 2-D view of the logical shape."""
        return self._buffer[:self.size].reshape(self.rows, self.cols)

    def resize(self, rows: int, cols: int):
        """
        Set the logical shape, growing the buffer only when it is too small.

        Content is not preserved across a reallocation, and a reshape within
        capacity leaves the buffer bytes as they were.
        """
        require(rows >= 0 and cols >= 0, f"Invalid shape ({rows}, {cols})")
        new_size = rows * cols
        if new_size > self.alloc_size:
            self._grow(new_size)
        self.rows = rows
        self.cols = cols

    def _grow(self, new_size: int):
        raise NotImplementedError

    def __repr__(self):
        return (f"{type(self).__name__}(rows={self.rows}, cols={self.cols}, "
                f"alloc_size={self.alloc_size})")


class OwnedBuffer(DenseStorage):
    """Storage allocated and released by the block itself."""

    owns_data = True

    def __init__(self, rows: int = 0, cols: int = 0):
        require(rows >= 0 and cols >= 0, f"Invalid shape ({rows}, {cols})")
        super().__init__(np.empty(rows * cols, dtype=np.float64), rows, cols)

    @classmethod
    def copy_of(cls, array, rows: int, cols: int) -> "OwnedBuffer":
        """New owned block holding a copy of the first rows*cols entries of `array`."""
        source = np.asarray(array, dtype=np.float64).reshape(-1)
        require(source.size >= rows * cols,
                f"Buffer of {source.size} entries is too small for ({rows}, {cols})")
        block = cls(rows, cols)
        block._buffer[:] = source[:rows * cols]
        return block

    def _grow(self, new_size: int):
        self._buffer = np.empty(new_size, dtype=np.float64)


class BorrowedBuffer(DenseStorage):
    """Non-owning view over a caller-managed float64 array."""

    def __init__(self, array: np.ndarray, rows: int, cols: int):
        require(isinstance(array, np.ndarray), "Borrowed storage must be a numpy array")
        require(array.dtype == np.float64,
                f"Borrowed storage must be float64, got {array.dtype}")
        require(array.flags['C_CONTIGUOUS'], "Borrowed storage must be C-contiguous")
        require(rows >= 0 and cols >= 0, f"Invalid shape ({rows}, {cols})")
        require(array.size >= rows * cols,
                f"Buffer of {array.size} entries is too small for ({rows}, {cols})")
        super().__init__(array.reshape(-1), rows, cols)

    def _grow(self, new_size: int):
        raise PreconditionError("Can not reallocate externally owned storage.")
