"""
Shared fixtures.

`spmd` runs a function on N in-process ranks (one thread per rank) connected
by ThreadComm, which implements the subset of the mpi4py communicator API the
kernel uses (Get_rank, Get_size, Barrier, allgather, allreduce, bcast,
gather, Allreduce, Bcast). It lets multi-rank behaviour be tested under a
plain `pytest` run.

ThreadComm is a test double only. The authoritative multi-process check is
tests/test_mpi.py on a real communicator:
    mpirun -np 3 python -m mpi4py -m pytest tests/test_mpi.py
"""

import copy
import logging
import threading

import numpy as np
import pytest
from mpi4py import MPI

from romlinalg import get_config, set_config


class _SharedState:
    def __init__(self, size: int):
        self.size = size
        self.slots = [None] * size
        self.barrier = threading.Barrier(size, timeout=60)


class ThreadComm:
    """Communicator between threads of one process, one thread per rank."""

    def __init__(self, state: _SharedState, rank: int):
        self._state = state
        self._rank = rank

    def Get_rank(self):
        return self._rank

    def Get_size(self):
        return self._state.size

    def Barrier(self):
        self._state.barrier.wait()

    def allgather(self, obj):
        self._state.slots[self._rank] = copy.deepcopy(obj)
        self._state.barrier.wait()
        result = [copy.deepcopy(x) for x in self._state.slots]
        self._state.barrier.wait()
        return result

    def allreduce(self, obj, op=MPI.SUM):
        values = self.allgather(obj)
        if op == MPI.SUM:
            total = values[0]
            for v in values[1:]:
                total = total + v
            return total
        if op == MPI.MAX:
            return np.maximum.reduce(values) if isinstance(values[0], np.ndarray) else max(values)
        if op == MPI.MIN:
            return np.minimum.reduce(values) if isinstance(values[0], np.ndarray) else min(values)
        raise NotImplementedError(f"Unsupported reduction {op}")

    def bcast(self, obj, root=0):
        return self.allgather(obj if self._rank == root else None)[root]

    def gather(self, obj, root=0):
        values = self.allgather(obj)
        return values if self._rank == root else None

    def Allreduce(self, sendbuf, recvbuf, op=MPI.SUM):
        recvbuf[...] = self.allreduce(np.array(sendbuf, copy=True), op=op)

    def Bcast(self, buf, root=0):
        data = self.bcast(np.array(buf, copy=True) if self._rank == root else None, root=root)
        buf[...] = data


def run_ranks(size: int, fn, *args):
    """Run fn(comm, *args) on `size` thread ranks; returns the per-rank results."""
    state = _SharedState(size)
    results = [None] * size
    errors = [None] * size

    def worker(rank):
        try:
            results[rank] = fn(ThreadComm(state, rank), *args)
        except BaseException as e:
            errors[rank] = e
            state.barrier.abort()

    threads = [threading.Thread(target=worker, args=(r,)) for r in range(size)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    raised = [e for e in errors if e is not None]
    primary = [e for e in raised if not isinstance(e, threading.BrokenBarrierError)]
    if primary:
        raise primary[0]
    if raised:
        raise raised[0]
    return results


@pytest.fixture
def spmd():
    return run_ranks


@pytest.fixture
def rng():
    return np.random.default_rng(20240615)


@pytest.fixture(autouse=True)
def restore_kernel_state():
    """Restore the process-wide config and drop log handlers added by a test."""
    saved = get_config()
    yield
    set_config(saved)
    package_logger = logging.getLogger("romlinalg")
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers = []
