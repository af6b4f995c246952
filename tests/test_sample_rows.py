"""Tests for the row sampling driver (single process)."""

import os

import h5py
import numpy as np
import pytest
import scipy.linalg

from romlinalg import Matrix, KernelConfig, get_config, read_pivots, save_config
from romlinalg.sample_rows import main, parse_args


@pytest.fixture
def snapshot_base(tmp_path, rng):
    G = rng.standard_normal((10, 4))
    base = str(tmp_path / "snap")
    Matrix.from_array(G, distributed=True).write(base)
    return base, G


class TestParseArgs:

    def test_required(self):
        with pytest.raises(SystemExit):
            parse_args(["--input", "snap"])

    def test_backend_choices(self):
        with pytest.raises(SystemExit):
            parse_args(["--input", "snap", "--num-pivots", "2", "--backend", "gpu"])

    def test_values(self):
        args = parse_args(["--input", "snap", "--num-pivots", "3", "--backend", "lapack"])
        assert args.input == "snap"
        assert args.num_pivots == 3
        assert args.backend == "lapack"
        assert args.config is None


class TestMain:

    def test_writes_pivots(self, tmp_path, snapshot_base):
        base, G = snapshot_base
        output = str(tmp_path / "pivots.h5")

        pivots, owners = main(["--input", base, "--num-pivots", "3", "--output", output])

        expected, _ = Matrix.from_array(G).qrcp_pivots_transpose(3)
        assert np.array_equal(pivots, expected)
        assert owners.tolist() == [0, 0, 0]

        saved, saved_owners = read_pivots(output)
        assert np.array_equal(saved, expected)
        assert np.array_equal(saved_owners, owners)
        with h5py.File(output, 'r') as f:
            assert f.attrs["backend"] == "householder"
            assert int(f.attrs["total_rows"]) == 10

    def test_config_and_backend_override(self, tmp_path, snapshot_base):
        base, G = snapshot_base
        run_dir = str(tmp_path / "run")
        os.makedirs(run_dir)
        config_path = save_config(KernelConfig(output_dir=run_dir), run_dir)

        before = get_config()
        pivots, _ = main(["--config", config_path, "--input", base,
                          "--num-pivots", "4", "--backend", "lapack"])

        _, perm = scipy.linalg.qr(G.T, mode='r', pivoting=True)
        assert np.array_equal(pivots, perm[:4])
        assert get_config() is before

        saved, _ = read_pivots(os.path.join(run_dir, "pivots.h5"))
        assert np.array_equal(saved, pivots)
        assert os.path.exists(os.path.join(run_dir, "config_sample_rows.yaml"))
        assert os.path.exists(os.path.join(run_dir, "romlinalg.log"))

    def test_too_many_pivots_restores_config(self, tmp_path, snapshot_base):
        base, _ = snapshot_base
        before = get_config()
        with pytest.raises(AssertionError):
            main(["--input", base, "--num-pivots", "11",
                  "--output", str(tmp_path / "p.h5")])
        assert get_config() is before
