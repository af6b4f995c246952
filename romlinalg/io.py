"""
Matrix persistence.

Provides:
- ASCII dumps of each rank's rows (print)
- HDF5 write/read of each rank's rows, one file per rank
- HDF5 storage of pivot selections

A matrix written with base name "snap" on N ranks produces the files
snap.000000 ... snap.{N-1:06d}; reading it back requires the same number of
ranks.

Author: Anthony Poole
"""

import os
import logging

import numpy as np
import h5py

from .errors import require


logger = logging.getLogger(__name__)


def rank_file_name(base_file_name: str, rank: int) -> str:
    """Per-rank file name for `base_file_name`."""
    return f"{base_file_name}.{rank:06d}"


# =============================================================================
# ASCII
# =============================================================================

def print_matrix(matrix, prefix: str) -> str:
    """Write this rank's rows to an ASCII file, one matrix row per line."""
    file_name = rank_file_name(prefix, matrix.rank)
    np.savetxt(file_name, matrix.local, fmt='%.16e')
    return file_name


# =============================================================================
# HDF5
# =============================================================================

def write_matrix(matrix, base_file_name: str) -> str:
    """
    Write this rank's rows to an HDF5 file.

    Datasets: distributed, num_rows, num_cols (integers) and data (row-major
    float64 of length num_rows * num_cols).
    """
    file_name = rank_file_name(base_file_name, matrix.rank)
    directory = os.path.dirname(file_name)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with h5py.File(file_name, 'w') as f:
        f.create_dataset("distributed", data=int(matrix.distributed))
        f.create_dataset("num_rows", data=matrix.num_rows)
        f.create_dataset("num_cols", data=matrix.num_columns)
        f.create_dataset("data", data=np.ascontiguousarray(matrix.local).reshape(-1))
        f.attrs["num_processes"] = matrix.num_processes

    if matrix.rank == 0:
        logger.debug(f"  [DIAG] Wrote {matrix.num_rows}x{matrix.num_columns} block to {file_name}")

    return file_name


def read_matrix(matrix, base_file_name: str):
    """
    Read this rank's rows from an HDF5 file written by write_matrix.

    The matrix is resized to the stored shape (a borrowed matrix must already
    have enough capacity) and takes the stored distribution flag.
    """
    file_name = rank_file_name(base_file_name, matrix.rank)
    require(os.path.exists(file_name), f"Matrix file not found: {file_name}")

    with h5py.File(file_name, 'r') as f:
        distributed = bool(f["distributed"][()])
        num_rows = int(f["num_rows"][()])
        num_cols = int(f["num_cols"][()])
        data = f["data"][()]

    require(data.size == num_rows * num_cols,
            f"Corrupt matrix file {file_name}: {data.size} values for ({num_rows}, {num_cols})")

    matrix.resize(num_rows, num_cols)
    matrix._distributed = distributed
    matrix.local[:] = data.reshape(num_rows, num_cols)
    return matrix


def write_pivots(file_path: str, row_pivot: np.ndarray, row_pivot_owner: np.ndarray,
                 metadata: dict = None) -> str:
    """Save a pivot selection (global rows and owning ranks) to HDF5."""
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with h5py.File(file_path, 'w') as f:
        f.create_dataset("row_pivot", data=np.asarray(row_pivot, dtype=np.int64))
        f.create_dataset("row_pivot_owner", data=np.asarray(row_pivot_owner, dtype=np.int64))
        for key, value in (metadata or {}).items():
            f.attrs[key] = value

    return file_path


def read_pivots(file_path: str) -> tuple:
    """Load a pivot selection saved by write_pivots."""
    with h5py.File(file_path, 'r') as f:
        return f["row_pivot"][()], f["row_pivot_owner"][()]
