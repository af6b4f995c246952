"""
Row topologies of a row-distributed matrix.

A topology maps a row between its local index on the owning rank, its global
index and the owning rank. The pivot selector and the gather/scatter helpers
are written once against this interface:

    ReplicatedRows  - undistributed matrix, every rank holds every row
    BalancedRows    - distributed, equal local row counts
    UnbalancedRows  - distributed, arbitrary local row counts

Author: Anthony Poole
"""

import numpy as np


class RowTopology:
    """Distributed rows laid out in rank order (rank 0 holds the first block)."""

    distributed = True

    def __init__(self, counts, rank: int):
        self.counts = np.asarray(counts, dtype=np.int64)
        self.rank = rank
        self.size = len(self.counts)
        self.offsets = np.concatenate(([0], np.cumsum(self.counts)[:-1])).astype(np.int64)

    @staticmethod
    def build(comm, local_rows: int, distributed: bool) -> "RowTopology":
        """
        Build the topology of a matrix with `local_rows` rows on this rank.

        Collective over `comm` when `distributed` (one allgather of the local
        row counts); local otherwise.
        """
        rank = comm.Get_rank()
        if not distributed:
            return ReplicatedRows(local_rows, rank, comm.Get_size())

        counts = comm.allgather(int(local_rows))
        if all(c == counts[0] for c in counts):
            return BalancedRows(counts, rank)
        return UnbalancedRows(counts, rank)

    @property
    def total_rows(self) -> int:
        return int(self.counts.sum())

    @property
    def local_rows(self) -> int:
        return int(self.counts[self.rank])

    @property
    def local_offset(self) -> int:
        return int(self.offsets[self.rank])

    @property
    def balanced(self) -> bool:
        return bool(np.all(self.counts == self.counts[0]))

    def to_global(self, local):
        """Global index of local row(s) on this rank."""
        return self.local_offset + np.asarray(local, dtype=np.int64)

    def to_local(self, global_index):
        """Local index on this rank of global row(s) this rank owns."""
        return np.asarray(global_index, dtype=np.int64) - self.local_offset

    def owner(self, global_index):
        """Rank owning global row(s)."""
        g = np.asarray(global_index, dtype=np.int64)
        return np.searchsorted(self.offsets, g, side='right') - 1

    def local_global_indices(self) -> np.ndarray:
        """Global indices of this rank's rows, in local order."""
        return np.arange(self.local_offset, self.local_offset + self.local_rows, dtype=np.int64)

    def __repr__(self):
        return f"{type(self).__name__}(rank={self.rank}, counts={self.counts.tolist()})"


class BalancedRows(RowTopology):
    """Every rank holds the same number of rows."""

    def owner(self, global_index):
        g = np.asarray(global_index, dtype=np.int64)
        n = int(self.counts[0])
        if n == 0:
            return np.zeros_like(g)
        return g // n


class UnbalancedRows(RowTopology):
    """Ranks hold arbitrary row counts; owners come from the offset table."""


class ReplicatedRows(RowTopology):
    """Undistributed matrix: all rows live on every rank, each rank owns its copy."""

    distributed = False

    def __init__(self, num_rows: int, rank: int, size: int = 1):
        self.counts = np.array([num_rows], dtype=np.int64)
        self.offsets = np.zeros(1, dtype=np.int64)
        self.rank = rank
        self.size = size

    @property
    def local_rows(self) -> int:
        return int(self.counts[0])

    @property
    def local_offset(self) -> int:
        return 0

    @property
    def balanced(self) -> bool:
        return True

    def owner(self, global_index):
        g = np.asarray(global_index, dtype=np.int64)
        return np.full_like(g, self.rank)
