# -*- coding: utf-8 -*-
"""
Created on Thu Jun 13 16:20:05 2019

@author: Darin
"""

import threading
from concurrent.futures import ThreadPoolExecutor
import numpy as np
import pytest

class ToyProblem:
    """ Svanberg's toy problem

        min  x1^2 + x2^2 + x3^2
        s.t. (x1-5)^2 + (x2-2)^2 + (x3-1)^2 <= 9
             (x1-3)^2 + (x2-4)^2 + (x3-3)^2 <= 9
             0 <= x <= 5
    """

    x0 = np.array([4., 3., 2.])
    xMin = np.zeros(3)
    xMax = 5 * np.ones(3)
    centers = np.array([[5., 2., 1.], [3., 4., 3.]])
    optimum = np.array([2.0175, 1.7800, 1.2375])

    def Objective(self, x):
        return np.inner(x, x), 2 * x

    def Constraint(self, i):
        def constraint(x):
            return np.sum((x - self.centers[i]) ** 2), 2 * (x - self.centers[i])
        return constraint

    def Evaluate(self, x):
        f, dfdx = self.Objective(x)
        g = np.array([np.sum((x - c) ** 2) - 9 for c in self.centers])
        dgdx = 2 * (x.reshape(-1, 1) - self.centers.T)
        return f, dfdx, g, dgdx

class ThreadComm:
    """ Reduction service shared by threads that play the role of processes """

    def __init__(self, rank, size, shared):
        self.rank = rank
        self.size = size
        self.shared = shared

    def _Reduce(self, value, op):
        self.shared['buffer'][self.rank] = value
        self.shared['barrier'].wait()
        result = op(list(self.shared['buffer']))
        self.shared['barrier'].wait()
        return result

    def Sum(self, values):
        if np.isscalar(values):
            return float(self._Reduce(float(values), sum))
        return self._Reduce(np.array(values, dtype=float),
                            lambda buf: np.sum(buf, axis=0))

    def Max(self, value):
        return self._Reduce(float(value), max)

def RunParallel(func, size):
    """ Run func(rank, comm) on size threads sharing one ThreadComm buffer """
    shared = {'buffer':[None] * size, 'barrier':threading.Barrier(size, timeout=60)}
    comms = [ThreadComm(rank, size, shared) for rank in range(size)]
    with ThreadPoolExecutor(max_workers=size) as pool:
        futures = [pool.submit(func, rank, comms[rank]) for rank in range(size)]
        return [future.result() for future in futures]

@pytest.fixture
def toy():
    return ToyProblem()

@pytest.fixture
def run_parallel():
    return RunParallel
