"""
Dense algebra kernels.

Canonical bodies of the Matrix products, the inverse and the pseudoinverse.
Each function fills an already constructed result; the Matrix methods decide
whether that result is freshly allocated or supplied by the caller, so every
calling form runs the same numerics.

Distribution rules:

    mult            distributed x undistributed -> distributed
                    undistributed x undistributed -> undistributed
    mult_plus       a += c * this @ b, a shares this' distribution, b undistributed
    transpose_mult  operands share a distribution, result is undistributed
                    (distributed operands are summed over ranks)
    inverse/pinv    undistributed only

Author: Anthony Poole
"""

import logging

import numpy as np
import scipy.linalg

from .config import get_config
from .errors import require
from .mpi_utils import allreduce_sum


logger = logging.getLogger(__name__)


# =============================================================================
# PRODUCTS
# =============================================================================

def mult_matrix(a, b, result):
    """result = a @ b for Matrix operands."""
    require(not b.distributed, "Right operand of mult must be undistributed")
    require(a.num_columns == b.num_rows,
            f"Shape mismatch in mult: ({a.num_rows}, {a.num_columns}) @ "
            f"({b.num_rows}, {b.num_columns})")
    require(result.distributed == a.distributed,
            "Result of mult must share the distribution of the left operand")

    product = a.local @ b.local
    result.resize(a.num_rows, b.num_columns)
    result.local[:] = product
    return result


def mult_vector(a, x, result):
    """result = a @ x for a Vector operand."""
    require(not x.distributed, "Vector operand of mult must be undistributed")
    require(a.num_columns == x.dim,
            f"Shape mismatch in mult: {a.num_columns} columns vs vector dimension {x.dim}")
    require(result.distributed == a.distributed,
            "Result of mult must share the distribution of the matrix")

    product = a.local @ x.local
    result.resize(a.num_rows)
    result.local[:] = product
    return result


def mult_plus(m, a, b, c: float):
    """a += c * m @ b"""
    require(a.distributed == m.distributed,
            "Accumulator of mult_plus must share the distribution of the matrix")
    require(not b.distributed, "Vector operand of mult_plus must be undistributed")
    require(m.num_columns == b.dim,
            f"Shape mismatch in mult_plus: {m.num_columns} columns vs dimension {b.dim}")
    require(m.num_rows == a.dim,
            f"Shape mismatch in mult_plus: {m.num_rows} rows vs accumulator dimension {a.dim}")

    a.local[:] += c * (m.local @ b.local)
    return a


def transpose_mult_matrix(a, b, result):
    """
    result = a.T @ b, always undistributed.

    For distributed operands each rank contracts its own rows and the partial
    products are summed with an Allreduce (chunked above max_chunk_bytes).
    """
    require(a.distributed == b.distributed,
            "Operands of transpose_mult must share the same distribution")
    require(a.num_rows == b.num_rows,
            f"Shape mismatch in transpose_mult: {a.num_rows} rows vs {b.num_rows} rows")
    require(not result.distributed, "Result of transpose_mult must be undistributed")

    partial = a.local.T @ b.local
    if a.distributed:
        product = allreduce_sum(a.comm, partial, get_config().max_chunk_bytes)
        if a.rank == 0:
            logger.debug(f"  [DIAG] transpose_mult reduced {product.shape} over {a.num_processes} ranks")
    else:
        product = partial

    result.resize(a.num_columns, b.num_columns)
    result.local[:] = product
    return result


def transpose_mult_vector(a, x, result):
    """result = a.T @ x, always undistributed."""
    require(a.distributed == x.distributed,
            "Operands of transpose_mult must share the same distribution")
    require(a.num_rows == x.dim,
            f"Shape mismatch in transpose_mult: {a.num_rows} rows vs dimension {x.dim}")
    require(not result.distributed, "Result of transpose_mult must be undistributed")

    partial = a.local.T @ x.local
    if a.distributed:
        product = allreduce_sum(a.comm, partial, get_config().max_chunk_bytes)
    else:
        product = partial

    result.resize(a.num_columns)
    result.local[:] = product
    return result


# =============================================================================
# INVERSES
# =============================================================================

def inverse(a, result):
    """result = inv(a) for a square undistributed matrix."""
    require(not a.distributed, "inverse requires an undistributed matrix")
    require(a.num_rows == a.num_columns,
            f"inverse requires a square matrix, got ({a.num_rows}, {a.num_columns})")
    require(not result.distributed, "Result of inverse must be undistributed")

    inv = scipy.linalg.inv(a.local)
    result.resize(a.num_rows, a.num_columns)
    result.local[:] = inv
    return result


def pseudoinverse(a):
    """
    Overwrite `a` with the TRANSPOSE of its Moore-Penrose pseudoinverse.

    pinv(a) has shape (cols, rows); its transpose has the shape of `a`, so the
    result fits the existing storage (borrowed storage included).
    """
    require(not a.distributed, "pseudoinverse requires an undistributed matrix")
    require(a.num_rows >= a.num_columns,
            f"pseudoinverse requires rows >= columns, got ({a.num_rows}, {a.num_columns})")

    pinv = scipy.linalg.pinv(a.local)
    a.local[:] = pinv.T
    return a
