"""Tests for ASCII dumps and HDF5 persistence."""

import os

import h5py
import numpy as np
import pytest

from romlinalg import Matrix, PreconditionError, write_pivots, read_pivots
from romlinalg.io import rank_file_name


class TestHDF5Matrix:

    def test_round_trip_is_exact(self, tmp_path, rng):
        G = rng.standard_normal((5, 4))
        base = str(tmp_path / "snap")

        file_name = Matrix.from_array(G).write(base)
        B = Matrix().read(base)

        assert file_name == rank_file_name(base, 0)
        assert file_name.endswith(".000000")
        assert np.array_equal(B.local, G)
        assert not B.distributed

    def test_file_layout(self, tmp_path):
        base = str(tmp_path / "layout")
        Matrix.from_array(np.arange(6.0).reshape(2, 3), distributed=True).write(base)

        with h5py.File(rank_file_name(base, 0), 'r') as f:
            assert int(f["distributed"][()]) == 1
            assert int(f["num_rows"][()]) == 2
            assert int(f["num_cols"][()]) == 3
            assert np.array_equal(f["data"][()], np.arange(6.0))

    def test_distributed_flag_restored(self, tmp_path):
        base = str(tmp_path / "flag")
        Matrix.from_array(np.ones((2, 2)), distributed=True).write(base)
        assert Matrix().read(base).distributed

    def test_creates_directories(self, tmp_path):
        base = str(tmp_path / "nested" / "dir" / "snap")
        Matrix.from_array(np.eye(2)).write(base)
        assert os.path.exists(rank_file_name(base, 0))

    def test_unbalanced_multi_rank(self, spmd, tmp_path, rng):
        G = rng.standard_normal((6, 3))
        counts = [1, 3, 2]
        base = str(tmp_path / "multi")

        def body(comm):
            Matrix.from_global(G, row_counts=counts, comm=comm).write(base)
            comm.Barrier()
            B = Matrix(comm=comm).read(base)
            return B.distributed, B.local.copy()

        results = spmd(3, body)
        assert all(distributed for distributed, _ in results)
        assert [block.shape[0] for _, block in results] == counts
        assert np.array_equal(np.vstack([block for _, block in results]), G)
        for rank in range(3):
            assert os.path.exists(rank_file_name(base, rank))

    def test_read_into_borrowed_storage(self, tmp_path, rng):
        G = rng.standard_normal((3, 2))
        base = str(tmp_path / "borrowed")
        Matrix.from_array(G).write(base)

        buffer = np.zeros(8)
        B = Matrix(4, 2, data=buffer, copy_data=False).read(base)

        assert (B.num_rows, B.num_columns) == (3, 2)
        assert np.array_equal(buffer[:6].reshape(3, 2), G)

    def test_read_into_small_borrowed_storage(self, tmp_path, rng):
        base = str(tmp_path / "small")
        Matrix.from_array(rng.standard_normal((3, 3))).write(base)

        B = Matrix(2, 2, data=np.zeros(4), copy_data=False)
        with pytest.raises(PreconditionError):
            B.read(base)

    def test_missing_file(self, tmp_path):
        with pytest.raises(PreconditionError, match="not found"):
            Matrix().read(str(tmp_path / "absent"))


class TestPrint:

    def test_print_is_exact(self, tmp_path, rng):
        G = rng.standard_normal((4, 3))
        file_name = Matrix.from_array(G).print(str(tmp_path / "dump"))
        assert file_name.endswith(".000000")
        assert np.array_equal(np.loadtxt(file_name, ndmin=2), G)

    def test_print_per_rank(self, spmd, tmp_path, rng):
        G = rng.standard_normal((5, 2))
        prefix = str(tmp_path / "dump")

        def body(comm):
            return Matrix.from_global(G, row_counts=[2, 3], comm=comm).print(prefix)

        files = spmd(2, body)
        assert files == [rank_file_name(prefix, 0), rank_file_name(prefix, 1)]
        assert np.array_equal(np.vstack([np.loadtxt(f, ndmin=2) for f in files]), G)


class TestPivotFiles:

    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "out" / "pivots.h5")
        write_pivots(path, [4, 0, 2], [1, 0, 0], {"backend": "householder", "total_rows": 6})

        pivots, owners = read_pivots(path)
        assert pivots.dtype == np.int64
        assert pivots.tolist() == [4, 0, 2]
        assert owners.tolist() == [1, 0, 0]

        with h5py.File(path, 'r') as f:
            assert f.attrs["backend"] == "householder"
            assert int(f.attrs["total_rows"]) == 6
