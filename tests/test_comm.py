# -*- coding: utf-8 -*-
import numpy as np
import pytest
from numpy.testing import assert_allclose

import Update
from Comm import SerialComm

def test_serial_comm_is_identity():
    comm = SerialComm()
    assert comm.rank == 0 and comm.size == 1
    values = np.array([1., -2.])
    total = comm.Sum(values)
    assert_allclose(total, values)
    total[0] = 5.
    assert values[0] == 1.
    assert comm.Sum(3) == 3.
    assert comm.Max(0.25) == 0.25

def test_mpi_comm_single_process():
    pytest.importorskip('mpi4py')
    from Comm import MPIComm
    comm = MPIComm()
    if comm.size != 1:
        pytest.skip("requires a single MPI process")
    assert_allclose(comm.Sum(np.array([1., 2.])), [1., 2.])
    assert comm.Sum(2.5) == 2.5
    assert comm.Max(-1.) == -1.

@pytest.mark.parametrize('subsolver', ['Dual', 'PrimalDual'])
def test_partitioned_design_matches_serial(toy, run_parallel, subsolver):
    serial = Update.MMA(toy.x0.copy(), 2, toy.xMin, toy.xMax, subsolver=subsolver)
    serialChange = []
    for it in range(5):
        f, dfdx, g, dgdx = toy.Evaluate(serial.x)
        serialChange.append(serial.Update(dfdx, g, dgdx))

    slices = [slice(0, 2), slice(2, 3)]
    xFull = toy.x0.copy()
    parts = {}

    def step(rank, comm):
        local = slices[rank]
        if rank not in parts:
            parts[rank] = Update.MMA(xFull[local].copy(), 2, toy.xMin[local],
                                     toy.xMax[local], subsolver=subsolver, comm=comm)
        mma = parts[rank]
        f, dfdx, g, dgdx = toy.Evaluate(xFull)
        change = mma.Update(dfdx[local], g, dgdx[local])
        return mma.x, change, mma.nGlobal

    parallelChange = []
    for it in range(5):
        results = run_parallel(step, 2)
        xFull = np.concatenate([res[0] for res in results])
        assert results[0][1] == results[1][1]
        assert results[0][2] == 3
        parallelChange.append(results[0][1])

    assert_allclose(xFull, serial.x, rtol=1e-6)
    assert_allclose(parallelChange, serialChange, rtol=1e-5, atol=1e-9)

def test_partitioned_oc_matches_serial(run_parallel):
    dfdx = np.array([-1., -4., -2., -3.])
    dgdx = np.ones((4, 1))
    serial = Update.MMA(0.5 * np.ones(4), 1, np.zeros(4), np.ones(4))
    serial.Update(dfdx, [0.], dgdx)

    def step(rank, comm):
        local = slice(2 * rank, 2 * rank + 2)
        mma = Update.MMA(0.5 * np.ones(2), 1, np.zeros(2), np.ones(2), comm=comm)
        change = mma.Update(dfdx[local], [0.], dgdx[local])
        return mma.x, change

    results = run_parallel(step, 2)
    assert_allclose(np.concatenate([res[0] for res in results]), serial.x, atol=1e-4)
    assert results[0][1] == results[1][1]
    assert_allclose(results[0][1], serial.Change, atol=1e-4)
