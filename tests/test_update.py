# -*- coding: utf-8 -*-
import warnings
import numpy as np
import pytest
from numpy.testing import assert_allclose

import Update
from Approximation import SubproblemWarning

class ForbiddenSolver:
    def Solve(self, approx):
        raise AssertionError("subproblem solver must not run for a single constraint")

def toy_mma(toy, **kwargs):
    return Update.MMA(toy.x0.copy(), 2, toy.xMin, toy.xMax, **kwargs)

def test_single_variable_scenario():
    mma = Update.MMA(np.array([0.5]), 1, np.zeros(1), np.ones(1),
                     subsolver=ForbiddenSolver())
    with pytest.warns(SubproblemWarning):
        change = mma.Update(np.array([1.]), np.array([0.5]), np.array([[0.1]]))
    assert mma.alfa[0] <= 0.5 <= mma.beta[0]
    assert mma.beta[0] - mma.alfa[0] <= 2 * mma.move
    assert change <= mma.move
    assert_allclose(mma.low, 0.5 - 0.5)
    assert_allclose(mma.upp, 0.5 + 0.5)
    # The violated constraint drives the design down by the OC move limit
    assert_allclose(mma.x, [0.3])
    assert_allclose(change, 0.2)

def test_single_constraint_uses_optimality_criteria():
    x = np.array([0.5, 0.5])
    mma = Update.MMA(x, 1, np.zeros(2), np.ones(2), subsolver=ForbiddenSolver())
    with warnings.catch_warnings():
        warnings.simplefilter('error', SubproblemWarning)
        change = mma.Update(np.array([-1., -4.]), np.array([0.]), np.array([[1.], [1.]]))
    # x_i = 0.5 * sqrt(|dfdx_i| / l) with sum(x) = 1 gives l = 2.25
    assert_allclose(x, [1 / 3, 2 / 3], atol=1e-4)
    assert_allclose(change, 0.5 - 1 / 3, atol=1e-4)
    assert mma.solution is None

def test_oc_update_scheme_matches_mma_fallback():
    oc = Update.OCUpdateScheme(0.2, 0.5, np.array([0.5, 0.5]), np.zeros(2), np.ones(2))
    change = oc.Update(np.array([-1., -4.]), 0., np.array([1., 1.]))
    assert_allclose(oc.x, [1 / 3, 2 / 3], atol=1e-4)
    assert_allclose(change, 0.5 - 1 / 3, atol=1e-4)
    with pytest.raises(ValueError):
        oc.Update(np.array([-1., -4.]), np.array([0., 1.]), np.ones((2, 2)))

def test_oc_move_limit():
    oc = Update.OCUpdateScheme(0.2, 0.5, np.array([0.5, 0.5]), np.zeros(2), np.ones(2))
    change = oc.Update(np.array([-1., -100.]), 0., np.array([1., 1.]))
    assert change <= 0.2 + 1e-12
    assert_allclose(oc.x.sum(), 1., atol=1e-3)

def test_oc_warns_when_constraint_cannot_be_bracketed():
    x = np.array([0.5, 0.5])
    with pytest.warns(SubproblemWarning):
        xNew = Update.OCStep(x, np.array([-1., -1.]), 10., np.array([1., 1.]),
                             np.zeros(2), np.ones(2), 0.2 * np.ones(2), 0.5)
    assert_allclose(xNew, [0.3, 0.3])

@pytest.mark.parametrize('subsolver', ['Dual', 'PrimalDual'])
def test_bounds_hold_every_iteration(toy, subsolver):
    mma = toy_mma(toy, subsolver=subsolver)
    for it in range(12):
        f, dfdx, g, dgdx = toy.Evaluate(mma.x)
        mma.Update(dfdx, g, dgdx)
        xval = mma.xold1
        assert (mma.xMin <= mma.alfa).all()
        assert (mma.alfa <= xval).all()
        assert (xval <= mma.beta).all()
        assert (mma.beta <= mma.xMax).all()
        assert (mma.low < xval).all() and (xval < mma.upp).all()
        assert (mma.low < mma.x).all() and (mma.x < mma.upp).all()
        assert (mma.alfa <= mma.x + 1e-12).all() and (mma.x <= mma.beta + 1e-12).all()
        if it >= 2:
            xRange = mma.xRange
            assert (mma.low >= xval - 10 * xRange - 1e-12).all()
            assert (mma.low <= xval - 0.01 * xRange + 1e-12).all()
            assert (mma.upp >= xval + 0.01 * xRange - 1e-12).all()
            assert (mma.upp <= xval + 10 * xRange + 1e-12).all()

@pytest.mark.parametrize('subsolver', ['Dual', 'PrimalDual'])
def test_toy_problem_converges(toy, subsolver):
    mma = toy_mma(toy, subsolver=subsolver)
    for it in range(100):
        f, dfdx, g, dgdx = toy.Evaluate(mma.x)
        change = mma.Update(dfdx, g, dgdx)
        if change < 1e-6:
            break
    assert_allclose(mma.x, toy.optimum, atol=2e-3)
    f, dfdx, g, dgdx = toy.Evaluate(mma.x)
    residunorm, residumax = mma.KKTCheck(dfdx, g, dgdx)
    assert residunorm < 1e-2
    assert (mma.solution.lamda > 0.1).all()

def test_repeated_gradients_at_stationary_point():
    # dfdx + dgdx * [1, 0] = 0 with the first constraint active
    x = np.array([0.4, 0.6])
    mma = Update.MMA(x, 2, np.zeros(2), np.ones(2))
    dfdx = np.array([-1., -1.])
    g = np.array([0., -1.])
    dgdx = np.array([[1., 0.], [1., 0.]])
    changes = [mma.Update(dfdx, g, dgdx) for i in range(2)]
    assert changes[0] < 1e-5
    assert changes[1] < 1e-5
    # Equal up to the barrier floor of the subproblem
    assert changes[1] <= changes[0] + mma.epsimin
    assert_allclose(x, [0.4, 0.6], atol=1e-5)

def test_zero_gradients_keep_design():
    x = np.array([0.2, 0.7, 0.9])
    mma = Update.MMA(x, 2, np.zeros(3), np.ones(3))
    change = mma.Update(np.zeros(3), np.array([-0.5, -0.5]), np.zeros((3, 2)))
    assert change < 1e-10
    assert_allclose(x, [0.2, 0.7, 0.9])

def test_single_constraint_zero_gradients_keep_design():
    x = np.array([0.3])
    mma = Update.MMA(x, 1, 0., 1., subsolver=ForbiddenSolver())
    with pytest.warns(SubproblemWarning) as record:
        change = mma.Update(np.zeros(1), [-0.5], np.zeros((1, 1)))
    assert not [w for w in record if issubclass(w.category, RuntimeWarning)]
    assert np.isfinite(x).all()
    assert_allclose(x, [0.3])
    assert change == 0.

def test_oc_step_fixes_only_insensitive_variables():
    x = np.array([0.5, 0.5])
    xNew = Update.OCStep(x, np.array([0., -1.]), 0., np.array([0., 1.]),
                         np.zeros(2), np.ones(2), 0.2 * np.ones(2), 0.5)
    assert xNew[0] == 0.5
    assert_allclose(xNew[1], 0.5, atol=1e-3)

def test_set_m_resets_weights_only_when_count_changes(toy):
    mma = toy_mma(toy)
    mma.c[:] = 50.
    f, dfdx, g, dgdx = toy.Evaluate(mma.x)
    mma.Update(dfdx, g, dgdx)
    assert_allclose(mma.c, [50., 50.])

    mma.Update(dfdx, g[:1], dgdx[:, :1])
    assert mma.m == 1
    assert_allclose(mma.c, [1000.])
    assert_allclose(mma.a, [0.])
    assert mma.a0 == 1 and mma.b0 == 1

def test_passive_variables_are_not_updated(toy):
    x = toy.x0.copy()
    mma = Update.MMA(x, 2, toy.xMin, toy.xMax, passive=[1])
    f, dfdx, g, dgdx = toy.Evaluate(x)
    mma.Update(dfdx, g, dgdx)
    assert x[1] == toy.x0[1]
    assert mma.n == 2
    assert not np.allclose(x[[0, 2]], toy.x0[[0, 2]])

def test_restart_from_data(toy):
    mma = toy_mma(toy)
    for it in range(4):
        f, dfdx, g, dgdx = toy.Evaluate(mma.x)
        mma.Update(dfdx, g, dgdx)
    data = mma.GetData()

    restart = Update.MMA(np.zeros(3), 2, toy.xMin, toy.xMax)
    restart.Load({key:np.copy(value) if isinstance(value, np.ndarray) else value
                  for key, value in data.items()})
    f, dfdx, g, dgdx = toy.Evaluate(mma.x)
    assert_allclose(restart.Update(dfdx, g, dgdx), mma.Update(dfdx, g, dgdx))
    assert_allclose(restart.x, mma.x)
    assert_allclose(restart.low, mma.low)

def test_invalid_input():
    with pytest.raises(ValueError):
        Update.MMA(np.ones(2), 2, np.zeros(2), np.ones(2), subsolver='Newton')
    with pytest.raises(ValueError):
        Update.MMA(np.ones(2), 2, np.ones(2), np.ones(2))
    mma = Update.MMA(0.5 * np.ones(2), 2, np.zeros(2), np.ones(2))
    with pytest.raises(ValueError):
        mma.Update(np.ones(3), np.zeros(2), np.ones((2, 2)))
    with pytest.raises(ValueError):
        mma.Update(np.ones(2), np.zeros(2), np.ones((2, 3)))
    with pytest.raises(ValueError):
        mma.KKTCheck(np.ones(2), np.zeros(2), np.ones((2, 2)))
