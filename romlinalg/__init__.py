"""
Row-distributed dense linear algebra for model-order reduction.

This package provides the dense kernel underneath the ROM pipelines:
matrices whose rows are spread across MPI ranks, the products needed by
POD/DMD-style algorithms, and a distributed QR with column pivoting that
selects representative rows (interpolation / sampling points).

Modules:
    storage     - Owned and borrowed dense storage blocks
    topology    - Row layouts (replicated, balanced, unbalanced)
    matrix      - Matrix (optionally row-distributed)
    vector      - Vector (optionally distributed)
    kernels     - mult, mult_plus, transpose_mult, inverse, pseudoinverse
    qrcp        - Distributed pivoted-QR row selection
    io          - ASCII dumps and HDF5 persistence
    config      - Kernel configuration (YAML)
    mpi_utils   - MPI communication helpers
    sample_rows - Command-line driver for row selection

Collective operations must be called by every rank of the communicator in
the same order.

Author: Anthony Poole
"""

from .errors import PreconditionError

from .config import (
    KernelConfig,
    load_config,
    save_config,
    get_config,
    set_config,
)

from .storage import (
    OwnedBuffer,
    BorrowedBuffer,
)

from .topology import (
    RowTopology,
    ReplicatedRows,
    BalancedRows,
    UnbalancedRows,
)

from .vector import Vector
from .matrix import Matrix

from .qrcp import (
    qrcp_pivots_transpose,
    householder_reflector,
)

from .io import (
    write_pivots,
    read_pivots,
)

from .utils import setup_logging

__version__ = "0.1.0"
__author__ = "Anthony Poole"

__all__ = [
    "PreconditionError",
    "KernelConfig",
    "load_config",
    "save_config",
    "get_config",
    "set_config",
    "OwnedBuffer",
    "BorrowedBuffer",
    "RowTopology",
    "ReplicatedRows",
    "BalancedRows",
    "UnbalancedRows",
    "Vector",
    "Matrix",
    "qrcp_pivots_transpose",
    "householder_reflector",
    "write_pivots",
    "read_pivots",
    "setup_logging",
]
