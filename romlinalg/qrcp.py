"""
Distributed pivoted-QR row selection.

Computes the leading column pivots of a QR factorization with column pivoting
(QRCP) of the TRANSPOSE of a row-distributed matrix. Columns of the transpose
are rows of the matrix, so each rank owns whole candidate columns and the
Householder reflectors (length = number of matrix columns) are replicated.

Algorithm (one pivot per step j):
1. Trailing norms ||row[j:]|| of every unselected local row
2. Global maximum norm (Allreduce MAX)
3. Tie-break: among rows with norm >= max * (1 - tie_rtol) the lowest global
   index wins; candidates travel as (global index, rank) pairs (allgather)
4. The owner broadcasts the winning row's trailing part, every rank builds the
   same reflector and applies it to its own rows

The serial, balanced and unbalanced cases differ only through the row
topology. Row-wise reductions make the norms independent of how rows are
partitioned, so any distribution of the same rows selects the same pivots as
the replicated matrix.

A second back end ("lapack") gathers the matrix on rank 0 and calls
scipy.linalg.qr with pivoting. Its pivots are checked against the same
tie-break and the rows past the column count come out in ascending index,
so both back ends return the same selection.

Author: Anthony Poole
"""

import logging

import numpy as np
import scipy.linalg
from mpi4py import MPI

from .config import QRCP_BACKENDS, get_config
from .errors import require
from .mpi_utils import gather_to_root


logger = logging.getLogger(__name__)


# =============================================================================
# HOUSEHOLDER REFLECTORS
# =============================================================================

def householder_reflector(x: np.ndarray) -> tuple:
    """
    Elementary reflector H = I - tau * v v^T with H x = beta e_1 and v[0] = 1.

    Parameters
    ----------
    x : np.ndarray
        Vector to annihilate below its first entry.

    Returns
    -------
    v : np.ndarray
        Householder vector (same length as x).
    tau : float
        Scaling factor; 0 when x is already a multiple of e_1.
    beta : float
        First entry of H x.
    """
    v = np.zeros(x.size, dtype=np.float64)
    if x.size == 0:
        return v, 0.0, 0.0

    alpha = float(x[0])
    sigma = float(np.sqrt(np.sum(x[1:] * x[1:])))
    v[0] = 1.0

    if sigma == 0.0:
        return v, 0.0, alpha

    beta = -np.copysign(np.hypot(alpha, sigma), alpha)
    tau = (beta - alpha) / beta
    v[1:] = x[1:] / (alpha - beta)
    return v, tau, beta


def _trailing_norms(work: np.ndarray, j: int) -> np.ndarray:
    """Row norms of work[:, j:], summed row by row."""
    if j >= work.shape[1]:
        return np.zeros(work.shape[0], dtype=np.float64)
    trailing = work[:, j:]
    return np.sqrt((trailing * trailing).sum(axis=1))


# =============================================================================
# HOUSEHOLDER QRCP (ALL TOPOLOGIES)
# =============================================================================

def select_pivots(local: np.ndarray, topology, pivots_requested: int, comm,
                  tie_rtol: float = 1e-12) -> tuple:
    """
    Leading QRCP pivots of the transpose of a (possibly distributed) matrix.

    Parameters
    ----------
    local : np.ndarray, shape (n_local, n_cols)
        Rows held by this rank (all rows when the topology is replicated).
    topology : RowTopology
        Row layout of `local`.
    pivots_requested : int
        Number of pivots to compute.
    comm : MPI communicator
        Communicator of the matrix (unused for replicated rows).
    tie_rtol : float
        Relative tolerance under which two norms count as tied.

    Returns
    -------
    row_pivot : np.ndarray of int64
        Global row indices in pivot order.
    row_pivot_owner : np.ndarray of int64
        Rank owning each pivot row.
    """
    work = np.array(local, dtype=np.float64, copy=True)
    n_local, n_cols = work.shape
    distributed = topology.distributed
    rank = topology.rank
    offset = topology.local_offset
    total_rows = topology.total_rows
    global_ids = topology.local_global_indices()

    available = np.ones(n_local, dtype=bool)
    row_pivot = np.empty(pivots_requested, dtype=np.int64)
    row_pivot_owner = np.empty(pivots_requested, dtype=np.int64)

    for j in range(pivots_requested):
        norms = _trailing_norms(work, j)
        norms[~available] = -1.0

        local_max = float(norms.max()) if n_local > 0 else -1.0
        if distributed:
            global_max = comm.allreduce(local_max, op=MPI.MAX)
        else:
            global_max = local_max

        eligible = np.flatnonzero(norms >= global_max * (1.0 - tie_rtol))
        local_choice = int(global_ids[eligible[0]]) if eligible.size else total_rows

        if distributed:
            winner, owner = min(comm.allgather((local_choice, rank)))
        else:
            winner, owner = local_choice, rank

        row_pivot[j] = winner
        row_pivot_owner[j] = owner

        pivot_tail = None
        if owner == rank:
            pivot_local = winner - offset
            available[pivot_local] = False
            pivot_tail = work[pivot_local, j:].copy()

        if j >= n_cols:
            # Trailing space exhausted: remaining rows tie at zero norm
            continue

        if distributed:
            pivot_tail = comm.bcast(pivot_tail, root=owner)

        v, tau, _ = householder_reflector(pivot_tail)

        if rank == 0:
            logger.debug(f"  [DIAG] pivot {j}: row {winner} on rank {owner}, "
                         f"norm {global_max:.6e}, tau {tau:.3e}")

        if tau != 0.0 and available.any():
            block = work[available, j:]
            coeffs = (block * v).sum(axis=1)
            block -= tau * np.outer(coeffs, v)
            work[available, j:] = block

    return row_pivot, row_pivot_owner


# =============================================================================
# LAPACK REFERENCE BACK END
# =============================================================================

def _geqp3_ranking(columns: np.ndarray, pivots_requested: int, tie_rtol: float) -> np.ndarray:
    """
    Column pivots of `columns` from scipy.linalg.qr, held to the tie-break rule.

    Each pivot geqp3 picks is checked against the exact trailing norms read
    off its R factor. When a lower-indexed column is tied within `tie_rtol`,
    that column is forced with one explicit reflector and geqp3 restarts on
    the remaining block. Once the row space is exhausted the leftover columns
    follow in ascending index.
    """
    n_rows, n_total = columns.shape
    steps = min(pivots_requested, n_rows)
    block = np.array(columns, dtype=np.float64)
    index = np.arange(n_total, dtype=np.int64)
    pivots = []

    while len(pivots) < steps:
        R, perm = scipy.linalg.qr(block, mode='r', pivoting=True)
        forced = None
        accepted = 0
        for i in range(min(steps - len(pivots), R.shape[0], R.shape[1])):
            trailing = R[i:, i:]
            norms = np.sqrt((trailing * trailing).sum(axis=0))
            candidates = index[perm[i:]]
            winner = int(candidates[norms >= norms.max() * (1.0 - tie_rtol)].min())
            if winner != index[perm[i]]:
                forced = winner
                break
            pivots.append(winner)
            accepted += 1

        if forced is None:
            continue

        # Trailing block after the accepted steps, columns back in index order
        remaining = perm[accepted:]
        order = np.argsort(index[remaining], kind='stable')
        trailing = R[accepted:, accepted:][:, order]
        remaining = remaining[order]

        position = int(np.flatnonzero(index[remaining] == forced)[0])
        v, tau, _ = householder_reflector(trailing[:, position])
        if tau != 0.0:
            trailing = trailing - tau * np.outer(v, v @ trailing)

        pivots.append(forced)
        keep = np.arange(remaining.size) != position
        block = np.ascontiguousarray(trailing[1:, keep])
        index = index[remaining[keep]]

    selected = np.asarray(pivots, dtype=np.int64)
    if pivots_requested > selected.size:
        rest = np.setdiff1d(np.arange(n_total, dtype=np.int64), selected)
        selected = np.concatenate((selected, rest[:pivots_requested - selected.size]))
    return selected


def select_pivots_lapack(local: np.ndarray, topology, pivots_requested: int, comm,
                         tie_rtol: float = 1e-12) -> tuple:
    """
    Leading QRCP pivots of the transpose via scipy.linalg.qr (LAPACK geqp3).

    Distributed rows are gathered on rank 0, which factors the transpose and
    broadcasts the pivots. Ties and the order past the column count follow
    the same rules as select_pivots.
    """
    if topology.distributed:
        full = gather_to_root(comm, np.ascontiguousarray(local), root=0)
    else:
        full = local

    pivots = None
    if not topology.distributed or topology.rank == 0:
        pivots = _geqp3_ranking(np.asarray(full).T, pivots_requested, tie_rtol)

    if topology.distributed:
        pivots = comm.bcast(pivots, root=0)

    owners = np.asarray(topology.owner(pivots), dtype=np.int64)
    return pivots, owners


# =============================================================================
# ENTRY POINT
# =============================================================================

def qrcp_pivots_transpose(matrix, pivots_requested: int, backend: str = None) -> tuple:
    """
    Leading row pivots of `matrix` from QRCP of its transpose.

    Collective over the matrix communicator when the matrix is distributed;
    every rank must call it with the same arguments.

    Parameters
    ----------
    matrix : Matrix
        Distributed or undistributed matrix.
    pivots_requested : int
        Number of pivots, 0 <= pivots_requested <= global row count.
    backend : str, optional
        "householder" or "lapack"; defaults to KernelConfig.qrcp_backend.

    Returns
    -------
    row_pivot, row_pivot_owner : np.ndarray of int64
        Global row indices (pivot order) and their owning ranks.
    """
    cfg = get_config()
    backend = backend or cfg.qrcp_backend
    if backend not in QRCP_BACKENDS:
        raise ValueError(f"Unknown QRCP backend '{backend}', expected one of {QRCP_BACKENDS}")

    topology = matrix.row_topology()

    require(0 <= pivots_requested <= topology.total_rows,
            f"pivots_requested={pivots_requested} outside [0, {topology.total_rows}]")
    if pivots_requested == 0:
        return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64)
    require(int(topology.counts.min()) > 0,
            f"QRCP requires rows on every process, got row counts {topology.counts.tolist()}")

    if topology.rank == 0:
        logger.debug(f"  [DIAG] QRCP ({backend}) of {type(topology).__name__}: "
                     f"{topology.total_rows} rows x {matrix.num_columns} cols, "
                     f"{pivots_requested} pivots")

    if backend == "lapack":
        return select_pivots_lapack(matrix.local, topology, pivots_requested, matrix.comm,
                                    cfg.tie_rtol)
    return select_pivots(matrix.local, topology, pivots_requested, matrix.comm, cfg.tie_rtol)
