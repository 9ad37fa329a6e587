# -*- coding: utf-8 -*-
"""
Created on Wed May 22 18:51:26 2019

@author: Darin
"""

import warnings
import numpy as np
import Approximation
from Approximation import SubproblemWarning
from Asymptotes import AsymptoteManager
from Comm import SerialComm
from DualSolver import DualSolver
from PrimalDual import PrimalDualSolver, KKTCheck

def OCStep(x0, dfdx, g, dgdx, xMin, xMax, move, eta, comm=None):
    """ Optimality criteria update for a single constraint

    Parameters
    ----------
    x0 : array_like
        Current design values
    dfdx : array_like
        Objective gradients
    g : scalar
        Constraint function value (<0 satisfied, >0 violated)
    dgdx : array_like
        Constraint gradients
    xMin : array_like
        Minimum value of each design variable
    xMax : array_like
        Maximum value of each design variable
    move : array_like
        Absolute move limit of each design variable
    eta : scalar
        power in the update scheme
    comm : reduction service, optional

    Returns
    -------
    xNew : array_like
        Updated design values

    """

    comm = SerialComm() if comm is None else comm
    g = float(np.ravel(g)[0])
    dfdx = np.asarray(dfdx, dtype=float)
    dgdx = np.asarray(dgdx, dtype=float)
    # Variables without any sensitivity keep their value
    fixed = np.logical_and(dfdx == 0, dgdx == 0)
    ratio = np.divide(np.abs(dfdx), np.abs(dgdx), out=np.full(dfdx.shape, np.inf),
                      where=dgdx != 0)
    ratio[fixed] = 1.

    l1 = 0
    l2 = 1e6
    lower, upper = l1, l2
    while l2 - l1 > 1e-4:
        lmid = (l1 + l2) / 2
        B = ratio / lmid
        xCnd = xMin + (x0 - xMin) * B ** eta
        xNew = np.maximum(np.maximum(np.minimum(np.minimum(xCnd, x0 + move),
                                     xMax), x0 - move), xMin)
        xNew = np.where(fixed, x0, xNew)
        if g + comm.Sum(np.inner(dgdx, xNew - x0)) > 0:
            l1 = lmid
        else:
            l2 = lmid

    if l1 == lower or l2 == upper:
        warnings.warn('OC multiplier not bracketed by [%g, %g]' % (lower, upper),
                      SubproblemWarning)

    return xNew

class OCUpdateScheme():
    """ The optimality criteria update scheme
    """

    def __init__(self, move, eta, x, xMin, xMax, passive=None, comm=None):
        """ Update the design variables

        Parameters
        ----------
        move : scalar
            move limit
        eta : scalar
            power in the update scheme
        x : array_like
            Initial design values
        xMin : array_like
            Minimum value of each design variable
        xMax : array_like
            Maximum value of each design variable
        passive : array_like, optional
            Which elements will be passive
        comm : reduction service, optional
            Sum and max over the processes sharing the design vector

        """

        self.x = x
        self.active, self.passive = _Partition(x.size, passive)
        self.xMin = np.broadcast_to(xMin, x.shape)[self.active].astype(float)
        self.xMax = np.broadcast_to(xMax, x.shape)[self.active].astype(float)
        self.move = move * (self.xMax - self.xMin)
        self.eta = eta
        self.it = 0
        self.n = self.active.size
        self.m = 1
        self.comm = SerialComm() if comm is None else comm
        self.Change = 1.

    def GetData(self):
        """ Get important data from the class

        Parameters
        ----------
        None

        Returns
        -------
        data : dict
            Dictionary of all important data in the structure

        """

        return {'x':self.x, 'it':self.it, 'xMin':self.xMin, 'xMax':self.xMax,
                'active':self.active, 'passive':self.passive,
                'move':self.move, 'eta':self.eta, 'type':'OC'}

    def Load(self, data):
        """ Rebuild the class with data from GetData

        Parameters
        ----------
        data : dict
            Data from GetData

        Returns
        -------
        None

        """

        self.x = data['x']
        self.active = data['active']
        self.passive = np.setdiff1d(np.arange(len(self.x)), self.active)
        self.it = data['it']
        self.xMin = data['xMin']
        self.xMax = data['xMax']
        self.n = self.active.size
        self.move = data['move']
        self.eta = data['eta']

    def Update(self, dfdx, g, dgdx):
        """ Update the design variables

        Parameters
        ----------
        dfdx : array_like
            Objective gradients
        g : scalar
            Constraint function value (<0 satisfied, >0 violated)
        dgdx : array_like
            Constraint gradients

        Returns
        -------
        Change : scalar
            Maximum change in the design variables

        """

        if np.size(g) > 1:
            raise ValueError("OC update must not have multiple constraints")
        dfdx = np.asarray(dfdx, dtype=float)[self.active]
        dgdx = np.asarray(dgdx, dtype=float).reshape(self.x.size, -1)[self.active, 0]

        x0 = self.x[self.active]
        xNew = OCStep(x0, dfdx, g, dgdx, self.xMin, self.xMax, self.move,
                      self.eta, self.comm)

        self.Change = _Change(xNew, x0, self.xMax - self.xMin, self.comm)
        self.x[self.active] = xNew
        self.it += 1
        return self.Change

class MMA():
    """ The Method of Moving Asymptotes (Svanberg, 1987)
    """

    def __init__(self, x, m, xMin, xMax, maxit=None, passive=None,
                 subsolver='Dual', move=0.5, comm=None, asyinit=0.5,
                 asyincr=1.2, asydecr=0.7, albefa=0.1, raa0=1e-5, epsimin=1e-7):
        """ Update the design variables

        Parameters
        ----------
        x : array_like
            Initial design values, updated in place
        m : integer
            Number of constraints
        xMin : array_like
            Minimum value of each design variable
        xMax : array_like
            Maximum value of each design variable
        maxit : integer, optional
            Maximum number of subspace iterations per barrier parameter,
            100 for the dual solver and 200 for the primal-dual solver
        passive : array_like, optional
            Which elements will be passive
        subsolver : string or object
            'Dual' or 'PrimalDual' to select which solver to use on the
            subproblem, or any object with a Solve(approx) method
        move : scalar
            Move limit for each design variable as a fraction of its range
        comm : reduction service, optional
            Sum and max over the processes sharing the design vector,
            a serial run is assumed if not given
        asyinit, asyincr, asydecr : scalar
            Initial distance, expansion and contraction of the asymptotes
        albefa : scalar
            Fraction of the asymptote distance blocked by the move limits
        raa0 : scalar
            Regularization of the approximation
        epsimin : scalar
            Smallest barrier parameter of the subsolver

        """

        self.x = x
        self.active, self.passive = _Partition(x.size, passive)
        self.xMin = np.broadcast_to(xMin, x.shape)[self.active].astype(float)
        self.xMax = np.broadcast_to(xMax, x.shape)[self.active].astype(float)
        if (self.xMin >= self.xMax).any():
            raise ValueError("xMin must be smaller than xMax for every active variable")

        self.xold1 = self.x[self.active]
        self.xold2 = self.x[self.active]
        self.n = self.active.size
        self.xRange = self.xMax - self.xMin
        self.comm = SerialComm() if comm is None else comm
        self.nGlobal = int(self.comm.Sum(self.n))

        self.raa0 = raa0
        self.epsimin = epsimin
        self.maxit = maxit
        self.OCeta = 0.5
        self.OCMove = 0.2
        self.asymptotes = AsymptoteManager(self.xMin, self.xMax, asyinit, asyincr,
                                           asydecr, albefa, move)
        self.SetSubsolver(subsolver)
        self.Set_m(m)

        self.it = 0
        self.solution = None
        self.residual = np.zeros(0)
        self.residunorm = 0.
        self.residumax = 0.
        self.Change = 1.

    def Set_m(self, m):
        """ Set the number of constraints and reset the constraint weights.
        The weights may be overwritten afterwards.

        Parameters
        ----------
        m : integer
            Number of constraints

        Returns
        -------
        None

        """

        self.m = m
        self.a0 = 1.
        self.b0 = 1.
        self.a = np.zeros(m)
        self.d = np.ones(m)
        self.c = 1000 * np.ones(m)

    def SetSubsolver(self, subsolver):
        """ Select the subproblem solver

        Parameters
        ----------
        subsolver : string or object
            'Dual', 'PrimalDual', or an object with a Solve(approx) method

        Returns
        -------
        None

        """

        if subsolver == 'Dual':
            self.subsolver = DualSolver(self.epsimin, 100 if self.maxit is None else self.maxit)
        elif subsolver == 'PrimalDual':
            self.subsolver = PrimalDualSolver(self.epsimin,
                                              200 if self.maxit is None else self.maxit)
        elif hasattr(subsolver, 'Solve'):
            self.subsolver = subsolver
        else:
            raise ValueError('Subsolver type must be "Dual" or "PrimalDual"')

    @property
    def low(self):
        return self.asymptotes.low

    @property
    def upp(self):
        return self.asymptotes.upp

    @property
    def move(self):
        return self.asymptotes.move

    def GetData(self):
        """ Get important data from the class

        Parameters
        ----------
        None

        Returns
        -------
        data : dict
            Dictionary of all important data in the structure

        """

        return {'x':self.x, 'xold1':self.xold1, 'xold2':self.xold2, 'it':self.it,
                'xMin':self.xMin, 'xMax':self.xMax, 'a0':self.a0, 'a':self.a,
                'b0':self.b0, 'c':self.c, 'd':self.d, 'low':self.low, 'upp':self.upp,
                'active':self.active, 'passive':self.passive,
                'subsolver':type(self.subsolver).__name__, 'move':self.move,
                'type':'MMA'}

    def Load(self, data):
        """ Rebuild the class with data from GetData

        Parameters
        ----------
        data : dict
            Data from GetData

        Returns
        -------
        None

        """

        self.x = data['x']
        self.it = data['it']
        self.active = data['active']
        self.passive = np.setdiff1d(np.arange(len(self.x)), self.active)
        self.n = self.active.size
        self.xold1 = data['xold1']
        self.xold2 = data['xold2']
        self.xMin = data['xMin']
        self.xMax = data['xMax']
        self.xRange = self.xMax - self.xMin
        self.Set_m(len(data['a']))
        self.a0 = data['a0']
        self.a = data['a']
        self.b0 = data['b0']
        self.c = data['c']
        self.d = data['d']
        self.asymptotes.xMin = self.xMin
        self.asymptotes.xMax = self.xMax
        self.asymptotes.xRange = self.xRange
        self.asymptotes.move = data['move']
        self.asymptotes.Load(data)

    def Update(self, dfdx, g, dgdx):
        """ Update the design variables

        Parameters
        ----------
        dfdx : array_like
            Objective gradients
        g : array_like
            Constraint function values (<0 satisfied, >0 violated)
        dgdx : array_like
            Constraint gradients, design variables by constraints

        Returns
        -------
        Change : scalar
            Maximum change in the design variables

        """

        g = np.atleast_1d(np.asarray(g, dtype=float))
        if g.size == 0:
            raise ValueError("MMA update requires at least one constraint")
        if g.size != self.m:
            self.Set_m(g.size)
        dfdx = np.asarray(dfdx, dtype=float)
        dgdx = np.asarray(dgdx, dtype=float)
        if dfdx.size != self.x.size or dgdx.size != self.x.size * self.m:
            raise ValueError("Expected %i objective and %ix%i constraint gradients" %
                             (self.x.size, self.x.size, self.m))
        dfdx = dfdx.ravel()[self.active]
        dgdx = dgdx.reshape(self.x.size, self.m)[self.active]
        xact = self.x[self.active]

        # Calculation of the asymptotes low and upp, and the bounds alfa and beta
        self.asymptotes.Asymptotes(self.it + 1, xact, self.xold1, self.xold2)
        self.alfa, self.beta = self.asymptotes.MoveLimits(xact)

        self.xold2 = self.xold1
        self.xold1 = xact.copy()

        if self.m < 2:
            xNew = OCStep(xact, dfdx, g, dgdx[:, 0], self.xMin, self.xMax,
                          self.OCMove * self.xRange, self.OCeta, self.comm)
            self.solution = None
        else:
            approx = Approximation.Build(xact, self.low, self.upp, self.alfa, self.beta,
                                         dfdx, g, dgdx, self.a0, self.a, self.b0,
                                         self.c, self.d, self.raa0, self.comm,
                                         self.nGlobal)
            self.solution, info = self.subsolver.Solve(approx)
            self.residual = info['residual']
            self.residunorm = info['residunorm']
            self.residumax = info['residumax']
            xNew = self.solution.x

        self.Change = _Change(xNew, self.xold1, self.xRange, self.comm)
        self.x[self.active] = xNew
        self.it += 1
        return self.Change

    def KKTCheck(self, dfdx, g, dgdx):
        """ KKT residual of the full problem at the latest design

        Parameters
        ----------
        dfdx : array_like
            Objective gradients at the latest design
        g : array_like
            Constraint function values at the latest design
        dgdx : array_like
            Constraint gradients at the latest design

        Returns
        -------
        residunorm : scalar
            2-norm of the KKT residual
        residumax : scalar
            Infinity-norm of the KKT residual

        """

        if self.solution is None:
            raise ValueError("KKT check requires a completed MMA subproblem solve")
        dfdx = np.asarray(dfdx, dtype=float).ravel()[self.active]
        dgdx = np.asarray(dgdx, dtype=float).reshape(self.x.size, -1)[self.active]

        return KKTCheck(self.solution, dfdx, g, dgdx, self.xMin, self.xMax,
                        self.a0, self.a, self.c, self.d, self.comm)[1:]

def _Partition(size, passive):
    """ Split the variable indices into active and passive sets """
    active = np.arange(size)
    if passive is None:
        return active, np.array([], dtype=int)
    passive = np.asarray(passive, dtype=int)
    return np.setdiff1d(active, passive), passive

def _Change(xNew, xOld, xRange, comm):
    """ Largest relative step across all processes """
    change = np.max(np.abs(xNew - xOld) / xRange, initial=0)
    return comm.Max(change)
