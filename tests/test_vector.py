"""Tests for Vector."""

import numpy as np
import pytest

from romlinalg import Vector, Matrix, PreconditionError


class TestVector:

    def test_construction_and_access(self):
        v = Vector(3, data=np.array([1.0, 2.0, 3.0]))
        assert v.dim == 3
        assert not v.distributed
        assert v[1] == 2.0
        v[2] = 9.0
        assert v.item(2) == 9.0

    def test_out_of_bounds(self):
        v = Vector(2).fill(0.0)
        with pytest.raises(PreconditionError):
            v.item(2)

    def test_borrowed(self):
        data = np.zeros(4)
        v = Vector(4, data=data, copy_data=False)
        v[0] = 1.0
        assert data[0] == 1.0
        with pytest.raises(PreconditionError):
            v.resize(5)

    def test_arithmetic(self):
        a = Vector(2, data=np.array([1.0, 2.0]))
        b = Vector(2, data=np.array([3.0, 4.0]))
        a += b
        assert np.array_equal(a.local, [4.0, 6.0])
        a -= b
        assert np.array_equal(a.local, [1.0, 2.0])
        a.plus_ax(2.0, b)
        assert np.array_equal(a.local, [7.0, 10.0])

    def test_mismatch_raises(self):
        a = Vector(2).fill(0.0)
        with pytest.raises(PreconditionError):
            a += Vector(3).fill(0.0)
        with pytest.raises(PreconditionError):
            a.inner_product(Vector(2, distributed=True).fill(0.0))

    def test_norm_and_normalize(self):
        v = Vector(2, data=np.array([3.0, 4.0]))
        assert v.norm() == pytest.approx(5.0)
        assert v.normalize() == pytest.approx(5.0)
        assert v.norm() == pytest.approx(1.0)

    def test_copy_and_assign(self):
        v = Vector(2, data=np.array([1.0, 2.0]))
        w = v.copy()
        w[0] = 5.0
        assert v[0] == 1.0
        u = Vector()
        u.assign(w)
        assert u.dim == 2 and u[0] == 5.0

    def test_distributed_inner_product(self, spmd):
        full = np.arange(1.0, 8.0)

        def body(comm):
            counts = [3, 1, 3]
            start = sum(counts[:comm.Get_rank()])
            local = full[start:start + counts[comm.Get_rank()]]
            v = Vector(local.size, distributed=True, data=local, comm=comm)
            return v.inner_product(v), v.norm()

        for ip, norm in spmd(3, body):
            assert ip == pytest.approx(np.dot(full, full))
            assert norm == pytest.approx(np.linalg.norm(full))

    def test_matrix_vector_product_distribution_follows_matrix(self):
        A = Matrix.from_array(np.ones((2, 2)), distributed=True)
        x = Vector(2, data=np.array([1.0, 2.0]))
        y = A.mult(x)
        assert y.distributed
        assert np.array_equal(y.local, [3.0, 3.0])
