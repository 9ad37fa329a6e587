# -*- coding: utf-8 -*-
"""
Created on Mon Jun 10 11:40:02 2019

@author: Darin
"""

import numpy as np
from Comm import SerialComm

class Approximation:
    """ Separable convex MMA approximation of the optimization problem at the
    current design point. Rebuilt every iteration.

    The subproblem is

        min  sum(p0/(upp-x) + q0/(x-low)) + a0*z + sum(c*y + 0.5*d*y**2)
        s.t. sum(P/(upp-x) + Q/(x-low)) - a*z - y <= b
             alfa <= x <= beta,  y >= 0,  z >= 0

    where the sums over x run across the design vector of all processes.
    """

    def __init__(self, xval, low, upp, alfa, beta, p0, q0, P, Q, b,
                 a0, a, b0, c, d, comm=None, nGlobal=None):
        self.xval = xval
        self.low = low
        self.upp = upp
        self.alfa = alfa
        self.beta = beta
        self.p0 = p0
        self.q0 = q0
        self.P = P
        self.Q = Q
        self.b = b
        self.a0 = a0
        self.a = a
        self.b0 = b0
        self.c = c
        self.d = d
        self.comm = SerialComm() if comm is None else comm
        self.n = xval.size
        self.m = b.size
        if nGlobal is None:
            nGlobal = int(self.comm.Sum(self.n))
        self.nGlobal = nGlobal

    def Terms(self, x, lamda):
        """ Common terms of the approximation evaluated at x and lamda

        Parameters
        ----------
        x : array_like
            Design values
        lamda : array_like
            Constraint multipliers

        Returns
        -------
        ux1, xl1 : array_like
            Distances to the upper and lower asymptotes
        plam, qlam : array_like
            Lagrangian coefficients p0 + P*lamda and q0 + Q*lamda

        """

        ux1 = self.upp - x
        xl1 = x - self.low
        plam = self.p0 + np.dot(self.P, lamda)
        qlam = self.q0 + np.dot(self.Q, lamda)
        return ux1, xl1, plam, qlam

    def ConstraintSum(self, ux1, xl1):
        """ Global value of the separable constraint sums
        (blocking reduction)
        """

        return self.comm.Sum(np.dot(self.P.T, 1 / ux1) + np.dot(self.Q.T, 1 / xl1))

def Build(xval, low, upp, alfa, beta, dfdx, g, dgdx, a0, a, b0, c, d,
          raa0=1e-5, comm=None, nGlobal=None):
    """ Construct the MMA approximation from raw gradients

    Parameters
    ----------
    xval : array_like
        Current (local) design values
    low, upp : array_like
        Lower and upper asymptotes
    alfa, beta : array_like
        Move limits of the subproblem
    dfdx : array_like
        Objective gradients (local)
    g : array_like
        Constraint values (global)
    dgdx : array_like
        Constraint gradients, local variables by constraints
    a0, a, b0, c, d : scalar or array_like
        Weights of the artificial variables y and z
    raa0 : scalar
        Regularization added to keep the approximation strictly convex
    comm : reduction service, optional
        Provides the global sum for b
    nGlobal : integer, optional
        Total number of design variables across processes

    Returns
    -------
    approx : Approximation
        The separable convex approximation

    """

    comm = SerialComm() if comm is None else comm
    dgdx = np.asarray(dgdx, dtype=float).reshape(xval.size, -1)
    g = np.atleast_1d(np.asarray(g, dtype=float))

    xmami = np.maximum(upp - low, 1e-5)
    xmamiinv = 1 / xmami
    ux1 = upp - xval
    ux2 = ux1 ** 2
    xl1 = xval - low
    xl2 = xl1 ** 2

    p0 = np.maximum(dfdx, 0)
    q0 = np.maximum(-dfdx, 0)
    pq0 = 0.001 * (p0 + q0) + 0.5 * raa0 * xmamiinv
    p0 = (p0 + pq0) * ux2
    q0 = (q0 + pq0) * xl2

    P = np.maximum(dgdx, 0)
    Q = np.maximum(-dgdx, 0)
    PQ = 0.001 * (P + Q) + 0.5 * raa0 * xmamiinv.reshape(-1, 1)
    P = (P + PQ) * ux2.reshape(-1, 1)
    Q = (Q + PQ) * xl2.reshape(-1, 1)

    # Global constraint sums at xval, less the constraint values
    b = comm.Sum(np.dot(P.T, 1 / ux1) + np.dot(Q.T, 1 / xl1)) - g

    return Approximation(xval, low, upp, alfa, beta, p0, q0, P, Q, b,
                         a0, a, b0, c, d, comm=comm, nGlobal=nGlobal)

class SubproblemWarning(UserWarning):
    """ Issued when a subproblem solve stops on an iteration cap """
    pass

class Solution:
    """ Primal and dual variables of a solved MMA subproblem
    """

    def __init__(self, x, y, z, lamda, xsi, eta, mu, zet, s):
        self.x = x
        self.y = y
        self.z = z
        self.lamda = lamda
        self.xsi = xsi
        self.eta = eta
        self.mu = mu
        self.zet = zet
        self.s = s
