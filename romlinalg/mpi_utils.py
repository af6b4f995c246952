"""
MPI communication utilities.

Provides helper functions for the distributed kernel:
- Default communicator resolution
- Row distribution across ranks
- Chunked broadcasts and reductions (avoiding 32-bit count overflow)
- Row gathers

Author: Anthony Poole
"""

import numpy as np
from mpi4py import MPI


def get_comm(comm=None):
    """Return `comm`, or MPI.COMM_WORLD when none is given."""
    return MPI.COMM_WORLD if comm is None else comm


def distribute_indices(rank: int, n_total: int, size: int) -> tuple:
    """
    Default row block of `rank` when `n_total` rows are split over `size` ranks.

    Every rank gets n_total // size rows and the last rank also takes the
    remainder, so blocks are contiguous and in rank order.

    Returns:
        Tuple of (start_row, end_row, n_local_rows)
    """
    rows_per_rank = n_total // size
    start = rank * rows_per_rank
    end = n_total if rank == size - 1 else start + rows_per_rank
    return start, end, end - start


def chunked_bcast(comm, data, root: int = 0, max_bytes: int = 2**30):
    """
    Broadcast a row-major array from `root`, split into row chunks.

    Used to replicate a gathered matrix on every rank. A single Bcast carries
    at most `max_bytes` (KernelConfig.max_chunk_bytes) so large matrices stay
    under the 32-bit MPI count limit.

    Args:
        comm: MPI communicator
        data: Array to broadcast (only read on root)
        root: Rank holding the data
        max_bytes: Largest message per Bcast

    Returns:
        The array on every rank
    """
    rank = comm.Get_rank()

    # Shape and dtype travel first so the other ranks can allocate
    if rank == root:
        data = np.ascontiguousarray(data)
        meta = (data.shape, data.dtype)
    else:
        meta = None
    shape, dtype = comm.bcast(meta, root=root)

    if rank != root:
        data = np.empty(shape, dtype=dtype)

    if data.nbytes <= max_bytes or data.ndim == 0:
        comm.Bcast(data, root=root)
        return data

    # Row slices of a C-contiguous array are contiguous, so each chunk is
    # received in place
    rows = data.reshape(shape[0], -1)
    rows_per_chunk = max(1, max_bytes // max(1, rows[0].nbytes))
    for start_row in range(0, rows.shape[0], rows_per_chunk):
        comm.Bcast(rows[start_row:start_row + rows_per_chunk], root=root)

    return data


def gather_to_root(comm, local_data, root: int = 0):
    """
    Gather row blocks from all ranks to root.

    Args:
        comm: MPI communicator
        local_data: Local numpy array (rows are stacked in rank order)
        root: Root rank to gather to

    Returns:
        Concatenated array on root, None on other ranks
    """
    rank = comm.Get_rank()
    gathered = comm.gather(local_data, root=root)

    if rank == root:
        return np.concatenate(gathered)
    return None


def allgather_rows(comm, local_data, max_bytes: int = 2**30):
    """Gather row blocks from all ranks onto every rank."""
    full = gather_to_root(comm, local_data, root=0)
    return chunked_bcast(comm, full, root=0, max_bytes=max_bytes)


def allreduce_sum(comm, local_array, max_bytes: int = 2**30):
    """
    Allreduce with sum operation.

    Arrays larger than `max_bytes` are reduced row chunk by row chunk.

    Args:
        comm: MPI communicator
        local_array: Local numpy array
        max_bytes: Maximum bytes per reduction

    Returns:
        Sum across all ranks
    """
    local_array = np.ascontiguousarray(local_array)
    global_array = np.zeros_like(local_array)

    if local_array.nbytes <= max_bytes or local_array.ndim == 0:
        comm.Allreduce(local_array, global_array, op=MPI.SUM)
        return global_array

    n_rows = local_array.shape[0]
    send_flat = local_array.reshape(n_rows, -1)
    recv_flat = global_array.reshape(n_rows, -1)
    bytes_per_row = max(1, send_flat.shape[1] * send_flat.itemsize)
    rows_per_chunk = max(1, max_bytes // bytes_per_row)

    for start_row in range(0, n_rows, rows_per_chunk):
        end_row = min(start_row + rows_per_chunk, n_rows)
        send_buf = np.ascontiguousarray(send_flat[start_row:end_row, :])
        recv_buf = np.zeros_like(send_buf)
        comm.Allreduce(send_buf, recv_buf, op=MPI.SUM)
        recv_flat[start_row:end_row, :] = recv_buf

    return global_array
