# -*- coding: utf-8 -*-
"""
Created on Tue Jun 11 14:02:51 2019

@author: Darin
"""

import warnings
import numpy as np
from Approximation import Solution, SubproblemWarning

class DualSolver:
    """ Solves the MMA subproblem through its dual (Aage and Lazarov, 2013).
    Only m-sized systems are formed, so every process solves them redundantly
    after the local contributions have been summed.
    """

    def __init__(self, epsimin=1e-7, maxit=100):
        """ Set the barrier floor and iteration cap

        Parameters
        ----------
        epsimin : scalar
            Smallest barrier parameter
        maxit : integer
            Maximum number of Newton iterations per barrier parameter

        """

        self.epsimin = epsimin
        self.maxit = maxit

    def Solve(self, approx):
        """ Solve the MMA sub-problem using dual method

        Parameters
        ----------
        approx : Approximation
            Separable convex approximation to solve

        Returns
        -------
        solution : Solution
            Primal variables and the multipliers of the subproblem
        info : dict
            Residual of the final Newton iteration and iteration counts

        """

        epsi = 1.
        eta = np.ones(approx.m)
        lamda = 500 * eta
        x, y, z, plam, qlam = self.XYZofLam(approx, lamda)
        ux1, xl1 = approx.upp - x, x - approx.low
        hvec = self.DualGrad(approx, ux1, xl1, y, z)

        total = 0
        minMult = min(lamda.min(), eta.min())
        while epsi > self.epsimin:
            residual, residunorm, residumax = self.DualResidual(hvec, eta, lamda, epsi)

            ittt = 0
            while residumax > 0.9 * epsi and ittt < self.maxit:
                ittt += 1

                ddpsi = self.DualHess(approx, x, lamda, ux1, xl1, plam, qlam)
                dellam, deleta = self.SearchDir(ddpsi, hvec, lamda, eta, epsi)
                theta = self.SearchDis(lamda, eta, dellam, deleta)

                lamda = lamda + theta * dellam
                eta = eta + theta * deleta
                minMult = min(minMult, lamda.min(), eta.min())

                x, y, z, plam, qlam = self.XYZofLam(approx, lamda)
                ux1, xl1 = approx.upp - x, x - approx.low
                hvec = self.DualGrad(approx, ux1, xl1, y, z)

                residual, residunorm, residumax = self.DualResidual(hvec, eta,
                                                                    lamda, epsi)

            if ittt == self.maxit:
                warnings.warn('Maximum iterations reached for epsi = %1.2g' % epsi,
                              SubproblemWarning)
            total += ittt
            epsi *= 0.1

        solution = self.Multipliers(approx, x, y, z, lamda, eta, plam, qlam)
        info = {'residual':residual, 'residunorm':residunorm,
                'residumax':residumax, 'iterations':total,
                'minMultiplier':minMult}
        return solution, info

    def DualResidual(self, hvec, eta, lamda, epsi):
        """ Residual of dual subproblem

        Parameters
        ----------
        hvec : array_like
            Gradients of the dual variables
        eta : array_like
        lamda : array_like
            Dual variables
        epsi : scalar
            Barrier parameter

        Returns
        -------
        res : array_like
            Residual in the dual variables
        norm2 : scalar
            2-norm of res
        norminf : scalar
            Infinity-norm of res

        """

        reslam = hvec + eta
        reseta = eta * lamda - epsi
        res = np.concatenate([reslam, reseta])
        norm2 = np.linalg.norm(res, 2)
        norminf = np.abs(res).max()

        return res, norm2, norminf

    def XYZofLam(self, approx, lamda):
        """ Minimizers of the Lagrangian for fixed multipliers

        Parameters
        ----------
        approx : Approximation
        lamda : array_like
            Dual variables

        Returns
        -------
        x : array_like
        y : array_like
        z : scalar
        plam : array_like
        qlam : array_like

        """

        plam = approx.p0 + np.dot(approx.P, lamda)
        qlam = approx.q0 + np.dot(approx.Q, lamda)
        plamrt = np.sqrt(plam)
        qlamrt = np.sqrt(qlam)
        x = (plamrt * approx.low + qlamrt * approx.upp) / (plamrt + qlamrt)
        x = np.maximum(np.minimum(x, approx.beta), approx.alfa)

        y = np.maximum((lamda - approx.c) / approx.d, 0)
        z = 10 * max((np.inner(lamda, approx.a) - approx.a0) / approx.b0, 0)

        return x, y, z, plam, qlam

    def DualGrad(self, approx, ux1, xl1, y, z):
        """ Gradient of the dual function

        Parameters
        ----------
        approx : Approximation
        ux1 : array_like
            upper asymptote minus x
        xl1 : array_like
            x minus lower asymptote
        y : array_like
        z : scalar

        Returns
        -------
        hvec : array_like
            Gradient of dual variables

        """

        hvec = approx.ConstraintSum(ux1, xl1)
        hvec -= approx.b + approx.a * z + y
        return hvec

    def DualHess(self, approx, x, lamda, ux1, xl1, plam, qlam):
        """ Computes Hessian of dual variables

        Parameters
        ----------
        approx : Approximation
        x : array_like
            Primal variables at lamda
        lamda : array_like
            Dual variables
        ux1 : array_like
            upper asymptote minus x
        xl1 : array_like
            x minus lower asymptote
        plam : array_like
        qlam : array_like

        Returns
        -------
        ddpsi : array_like
            Hessian of dual variables

        """

        ux2 = ux1 ** 2
        xl2 = xl1 ** 2
        dhdx = approx.P / ux2.reshape(-1, 1) - approx.Q / xl2.reshape(-1, 1)

        # Variables sitting on a move limit do not respond to lamda
        free = np.logical_and(x > approx.alfa, x < approx.beta)
        dLdxx = free / (2 * plam / (ux1 * ux2) + 2 * qlam / (xl1 * xl2))

        ddpsi = -approx.comm.Sum(np.dot(dhdx.T, dLdxx.reshape(-1, 1) * dhdx))
        ddpsi -= np.diag((lamda > approx.c).astype(float))

        if np.inner(lamda, approx.a) > 0:
            ddpsi -= 10 * np.outer(approx.a, approx.a) / approx.b0

        return ddpsi

    def SearchDir(self, ddpsi, hvec, lamda, eta, epsi):
        """ Newton direction of the barrier dual problem

        Parameters
        ----------
        ddpsi : array_like
            Hessian of dual variables
        hvec : array_like
            Gradient of dual variables
        lamda : array_like
            Dual variables
        eta : array_like
        epsi : scalar
            Barrier parameter

        Returns
        -------
        dellam : array_like
            Search direction for lamda
        deleta : array_like
            Search direction for eta

        """

        m = lamda.size
        A = ddpsi - np.diag(eta / lamda)
        A += min(1e-4 * np.trace(A) / m, -1e-7) * np.identity(m)
        b = -hvec - epsi / lamda
        dellam = np.linalg.solve(A, b)
        deleta = -eta + epsi / lamda - dellam * eta / lamda

        return dellam, deleta

    def SearchDis(self, lamda, eta, dellam, deleta):
        """ Fraction-to-boundary step length

        Parameters
        ----------
        lamda : array_like
            Dual variables
        eta : array_like
        dellam : array_like
            Search direction for lamda
        deleta : array_like
            Search direction for eta

        Returns
        -------
        theta : scalar
            Step size

        """

        with np.errstate(divide='ignore', invalid='ignore'):
            ratio = np.concatenate([-0.99 * lamda / dellam, -0.99 * eta / deleta])
        ratio = ratio[ratio >= 0]

        return min(ratio.min(), 1.) if ratio.size else 1.

    def Multipliers(self, approx, x, y, z, lamda, eta, plam, qlam):
        """ Recover the full set of subproblem multipliers from the dual solution

        Parameters
        ----------
        approx : Approximation
        x, y, z : array_like, array_like, scalar
            Primal variables
        lamda : array_like
            Constraint multipliers
        eta : array_like
            Multipliers of lamda >= 0, equal to the constraint slacks
        plam, qlam : array_like

        Returns
        -------
        solution : Solution

        """

        dpsidx = plam / (approx.upp - x) ** 2 - qlam / (x - approx.low) ** 2
        xsi = np.maximum(dpsidx, 0)
        etax = np.maximum(-dpsidx, 0)
        mu = np.maximum(approx.c + approx.d * y - lamda, 0)
        zet = max(approx.a0 - np.inner(approx.a, lamda), 0)

        return Solution(x, y, z, lamda.copy(), xsi, etax, mu, zet, eta.copy())
