# -*- coding: utf-8 -*-
"""
Created on Wed Jun 12 08:47:30 2019

@author: Darin
"""

import warnings
import numpy as np
import scipy.sparse as sparse
from Approximation import Solution, SubproblemWarning
from Comm import SerialComm

class PrimalDualSolver:
    """ Solves the MMA subproblem with a primal-dual interior point Newton
    method on the full KKT system (Svanberg, 2002)
    """

    def __init__(self, epsimin=1e-7, maxit=200):
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
        """ Solve the MMA sub-problem using primal-dual method

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

        m = approx.m
        epsi = 1.
        x = 0.5 * (approx.alfa + approx.beta)
        y = np.ones(m)
        z = 1.
        lamda = np.ones(m)
        xsi = np.maximum(1 / (x - approx.alfa), 1)
        eta = np.maximum(1 / (approx.beta - x), 1)
        mu = np.maximum(1, 0.5 * approx.c)
        zet = 1.
        s = np.ones(m)
        total = 0
        backtrackCap = 0

        while epsi > self.epsimin:
            residual, residunorm, residumax = self.Residual(approx, epsi, x, y, z, lamda,
                                                            xsi, eta, mu, zet, s)

            ittt = 0
            while residumax > 0.9 * epsi and ittt < self.maxit:
                ittt += 1

                dx, dy, dz, dlam, dxsi, deta, dmu, dzet, ds = self.NewtonStep(
                        approx, epsi, x, y, z, lamda, xsi, eta, mu, zet, s)
                steg = self.StepLength(approx, x, [y, [z], lamda, mu, [zet], s],
                                       [dy, [dz], dlam, dmu, [dzet], ds],
                                       [xsi, eta], [dxsi, deta], dx)

                xold, yold, zold, lamold = x, y, z, lamda
                xsiold, etaold, muold, zetold, sold = xsi, eta, mu, zet, s

                itto = 0
                resinew = 2 * residunorm
                while resinew > residunorm and itto < 50:
                    itto += 1
                    x = xold + steg * dx
                    y = yold + steg * dy
                    z = zold + steg * dz
                    lamda = lamold + steg * dlam
                    xsi = xsiold + steg * dxsi
                    eta = etaold + steg * deta
                    mu = muold + steg * dmu
                    zet = zetold + steg * dzet
                    s = sold + steg * ds

                    residual, resinew, residumax = self.Residual(approx, epsi, x, y, z,
                                                                 lamda, xsi, eta, mu, zet, s)
                    steg /= 2

                if resinew > residunorm:
                    backtrackCap += 1
                residunorm = resinew

            if ittt == self.maxit:
                warnings.warn('Maximum iterations reached for epsi = %1.2g' % epsi,
                              SubproblemWarning)
            total += ittt
            epsi *= 0.1

        info = {'residual':residual, 'residunorm':residunorm,
                'residumax':residumax, 'iterations':total,
                'backtrackCap':backtrackCap}
        return Solution(x, y, z, lamda, xsi, eta, mu, zet, s), info

    def Residual(self, approx, epsi, x, y, z, lamda, xsi, eta, mu, zet, s):
        """ Residual of primal subproblem

        Parameters
        ----------
        approx : Approximation
        epsi : scalar
            Barrier parameter
        x, y, z, lamda, xsi, eta, mu, zet, s
            Primal and dual variables

        Returns
        -------
        res : array_like
            Residual of the local part of the KKT system
        norm2 : scalar
            Global 2-norm of res
        norminf : scalar
            Global infinity-norm of res

        """

        ux1, xl1, plam, qlam = approx.Terms(x, lamda)
        gvec = approx.ConstraintSum(ux1, xl1)
        dpsidx = plam / ux1 ** 2 - qlam / xl1 ** 2

        rex = dpsidx - xsi + eta  # d/dx
        rey = approx.c + approx.d * y - mu - lamda  # d/dy
        rez = approx.a0 - zet - np.inner(approx.a, lamda)  # d/dz
        relam = gvec - approx.a * z - y + s - approx.b  # d/dlam
        rexsi = xsi * (x - approx.alfa) - epsi  # d/dxsi
        reeta = eta * (approx.beta - x) - epsi  # d/deta
        remu = mu * y - epsi  # d/dmu
        rezet = zet * z - epsi  # d/dzeta
        res = lamda * s - epsi  # d/ds

        return _Assemble(approx.comm, [rex, rexsi, reeta],
                         [rey, [rez], relam, remu, [rezet], res])

    def NewtonStep(self, approx, epsi, x, y, z, lamda, xsi, eta, mu, zet, s):
        """ Newton direction of the barrier KKT system

        Returns
        -------
        dx, dy, dz, dlam, dxsi, deta, dmu, dzet, ds
            Search directions of all variables

        """

        m = approx.m
        n = approx.n
        a = approx.a
        comm = approx.comm

        ux1, xl1, plam, qlam = approx.Terms(x, lamda)
        ux2 = ux1 ** 2
        xl2 = xl1 ** 2
        ux3 = ux1 * ux2
        xl3 = xl1 * xl2
        gvec = approx.ConstraintSum(ux1, xl1)

        GG = (sparse.diags(1 / ux2) @ approx.P - sparse.diags(1 / xl2) @ approx.Q).T
        dpsidx = plam / ux2 - qlam / xl2

        delx = dpsidx - epsi / (x - approx.alfa) + epsi / (approx.beta - x)
        dely = approx.c + approx.d * y - lamda - epsi / y
        delz = approx.a0 - np.inner(a, lamda) - epsi / z
        dellam = gvec - a * z - y - approx.b + epsi / lamda

        diagx = plam / ux3 + qlam / xl3
        diagx = 2 * diagx + xsi / (x - approx.alfa) + eta / (approx.beta - x)
        diagy = approx.d + mu / y
        diaglam = s / lamda
        diaglamyi = diaglam + 1 / diagy

        # The x-block can only be assembled when one process holds every variable
        if m < approx.nGlobal or comm.size > 1:
            blam = dellam + dely / diagy - comm.Sum(np.dot(GG, delx / diagx))
            bb = np.concatenate([blam, [delz]])
            Alam = np.diag(diaglamyi)
            Alam += comm.Sum(np.dot(GG, (GG / diagx).T))
            AA = np.zeros((m + 1, m + 1))
            AA[:m, :m] = Alam
            AA[m, :m] = a
            AA[:m, m] = a
            AA[m, m] = -zet / z

            solut = np.linalg.solve(AA, bb)
            dlam = solut[:m]
            dz = solut[m]
            dx = -delx / diagx - np.dot(GG.T, dlam) / diagx

        else:
            dellamyi = dellam + dely / diagy
            Axx = np.diag(diagx)
            Axx += np.dot(GG.T, GG / diaglamyi.reshape(-1, 1))
            azz = zet / z + np.inner(a, a / diaglamyi)
            axz = -np.dot(GG.T, a / diaglamyi)
            bx = delx + np.dot(GG.T, dellamyi / diaglamyi)
            bz = delz - np.inner(a, dellamyi / diaglamyi)
            AA = np.zeros((n + 1, n + 1))
            AA[:n, :n] = Axx
            AA[n, :n] = axz
            AA[:n, n] = axz
            AA[n, n] = azz
            bb = np.concatenate([-bx, [-bz]])

            solut = np.linalg.solve(AA, bb)
            dx = solut[:n]
            dz = solut[n]
            dlam = np.dot(GG, dx) / diaglamyi - dz * (a / diaglamyi)
            dlam += dellamyi / diaglamyi

        dy = -dely / diagy + dlam / diagy
        dxsi = -xsi + epsi / (x - approx.alfa) - (xsi * dx) / (x - approx.alfa)
        deta = -eta + epsi / (approx.beta - x) + (eta * dx) / (approx.beta - x)
        dmu = -mu + epsi / y - (mu * dy) / y
        dzet = -zet + epsi / z - zet * dz / z
        ds = -s + epsi / lamda - (s * dlam) / lamda

        return dx, dy, dz, dlam, dxsi, deta, dmu, dzet, ds

    def StepLength(self, approx, x, xx, dxx, xxLocal, dxxLocal, dx):
        """ Fraction-to-boundary step over all positive variables

        Parameters
        ----------
        approx : Approximation
        x : array_like
            Design variables
        xx, dxx : list of array_like
            Replicated positive variables and their directions
        xxLocal, dxxLocal : list of array_like
            Distributed positive variables and their directions
        dx : array_like
            Direction of the design variables

        Returns
        -------
        steg : scalar
            Step size

        """

        stmxx = np.max(-1.01 * np.concatenate(dxx) / np.concatenate(xx))
        stmloc = np.concatenate([-1.01 * np.concatenate(dxxLocal) / np.concatenate(xxLocal),
                                 -1.01 * dx / (x - approx.alfa),
                                 1.01 * dx / (approx.beta - x)])
        stmloc = approx.comm.Max(np.max(stmloc, initial=-np.inf))
        stminv = max(stmloc, stmxx, 1)

        return 1 / stminv

def _Assemble(comm, local, replicated):
    """ Stack residual blocks and take global norms """
    local = np.concatenate(local)
    replicated = np.concatenate(replicated)
    residual = np.concatenate([local, replicated])
    residunorm = np.sqrt(comm.Sum(np.inner(local, local)) + np.inner(replicated, replicated))
    residumax = max(comm.Max(np.max(np.abs(local), initial=0)),
                    np.abs(replicated).max())

    return residual, residunorm, residumax

def KKTCheck(solution, dfdx, g, dgdx, xMin, xMax, a0, a, c, d, comm=None):
    """ KKT residual of the full problem at a subproblem solution.
    The functions and gradients must be evaluated at solution.x.

    Parameters
    ----------
    solution : Solution
        Output of either subproblem solver
    dfdx : array_like
        Objective gradients (local)
    g : array_like
        Constraint values (global)
    dgdx : array_like
        Constraint gradients, local variables by constraints
    xMin, xMax : array_like
        Bounds of the design variables
    a0, a, c, d : scalar or array_like
        Weights of the artificial variables y and z
    comm : reduction service, optional

    Returns
    -------
    residual : array_like
        Local part of the KKT residual
    residunorm : scalar
        Global 2-norm of the residual
    residumax : scalar
        Global infinity-norm of the residual

    """

    comm = SerialComm() if comm is None else comm
    sol = solution
    dgdx = np.asarray(dgdx, dtype=float).reshape(sol.x.size, -1)
    g = np.atleast_1d(np.asarray(g, dtype=float))

    rex = dfdx + np.dot(dgdx, sol.lamda) - sol.xsi + sol.eta
    rey = c + d * sol.y - sol.mu - sol.lamda
    rez = a0 - sol.zet - np.inner(a, sol.lamda)
    relam = g - a * sol.z - sol.y + sol.s
    rexsi = sol.xsi * (sol.x - xMin)
    reeta = sol.eta * (xMax - sol.x)
    remu = sol.mu * sol.y
    rezet = sol.zet * sol.z
    res = sol.lamda * sol.s

    return _Assemble(comm, [rex, rexsi, reeta], [rey, [rez], relam, remu, [rezet], res])
