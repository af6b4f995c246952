"""
Row sampling driver.

Reads a matrix written by Matrix.write (one HDF5 file per rank), selects the
leading QRCP pivots of its transpose and saves them (rank 0).

Usage:
    mpirun -np 4 python -m mpi4py -m romlinalg.sample_rows --input snapshots --num-pivots 20
    mpirun -np 4 python -m mpi4py -m romlinalg.sample_rows --config config/default.yaml \
        --input snapshots --num-pivots 20 --output run/pivots.h5

Author: Anthony Poole
"""

import os
import time
import argparse

from mpi4py import MPI

from .config import QRCP_BACKENDS, KernelConfig, load_config, save_config, set_config
from .io import write_pivots
from .matrix import Matrix
from .utils import DummyLogger, setup_logging, print_header


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Select interpolation rows by QR with column pivoting of the transpose"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to YAML configuration file"
    )
    parser.add_argument(
        "--input", type=str, required=True,
        help="Base file name of the matrix (files <input>.<rank>)"
    )
    parser.add_argument(
        "--num-pivots", type=int, required=True,
        help="Number of rows to select"
    )
    parser.add_argument(
        "--output", type=str, default=None,
        help="Output HDF5 file (default: <output_dir>/pivots.h5)"
    )
    parser.add_argument(
        "--backend", type=str, default=None, choices=QRCP_BACKENDS,
        help="Override the QRCP back end from the config"
    )
    return parser.parse_args(argv)


def main(argv=None, comm=None):
    """Run the driver; returns (row_pivot, row_pivot_owner) on every rank."""
    args = parse_args(argv)

    comm = MPI.COMM_WORLD if comm is None else comm
    rank = comm.Get_rank()
    size = comm.Get_size()

    cfg = load_config(args.config) if args.config else KernelConfig()
    if args.backend:
        cfg.qrcp_backend = args.backend
    previous = set_config(cfg)

    logger = setup_logging("romlinalg", cfg.output_dir, cfg.log_level, rank) if rank == 0 else DummyLogger()

    try:
        if rank == 0:
            logger.info(f"Reading matrix '{args.input}' on {size} ranks...")

        A = Matrix(comm=comm).read(args.input)
        balanced = A.balanced()
        n_total = A.global_num_rows()

        if rank == 0:
            logger.info(f"  Global shape: ({n_total}, {A.num_columns}), "
                        f"distributed={A.distributed}, balanced={balanced}")
            logger.info(f"Selecting {args.num_pivots} pivots ({cfg.qrcp_backend})...")

        start_time = time.time()
        row_pivot, row_pivot_owner = A.qrcp_pivots_transpose(args.num_pivots)
        elapsed = time.time() - start_time

        if rank == 0:
            logger.info(f"  Pivots selected in {elapsed:.2f}s")
            logger.debug(f"  [DIAG] Pivots: {row_pivot.tolist()}")
            logger.debug(f"  [DIAG] Owners: {row_pivot_owner.tolist()}")

            output = args.output or os.path.join(cfg.output_dir, "pivots.h5")
            write_pivots(output, row_pivot, row_pivot_owner, {
                "backend": cfg.qrcp_backend,
                "num_processes": size,
                "total_rows": n_total,
            })
            if cfg.output_dir:
                save_config(cfg, cfg.output_dir, "sample_rows")

            print_header("ROW SAMPLING COMPLETE")
            print(f"  Pivots: {len(row_pivot)} of {n_total} rows")
            print(f"  Output: {output}")

    finally:
        set_config(previous)

    return row_pivot, row_pivot_owner


if __name__ == "__main__":
    main()
