# -*- coding: utf-8 -*-
"""
Created on Mon Jun 10 10:03:17 2019

@author: Darin
"""

import numpy as np

class AsymptoteManager:
    """ Maintains the moving asymptotes and move limits of the MMA subproblem
    """

    def __init__(self, xMin, xMax, asyinit=0.5, asyincr=1.2, asydecr=0.7,
                 albefa=0.1, move=0.5):
        """ Store the fixed bounds and the asymptote parameters

        Parameters
        ----------
        xMin : array_like
            Minimum value of each design variable
        xMax : array_like
            Maximum value of each design variable
        asyinit : scalar
            Initial distance of the asymptotes as a fraction of the range
        asyincr : scalar
            Expansion factor for variables moving monotonically
        asydecr : scalar
            Contraction factor for oscillating variables
        albefa : scalar
            Fraction of the asymptote distance blocked by the move limits
        move : scalar
            Move limit as a fraction of the range

        """

        self.xMin = xMin
        self.xMax = xMax
        self.xRange = xMax - xMin
        self.asyinit = asyinit
        self.asyincr = asyincr
        self.asydecr = asydecr
        self.albefa = albefa
        self.move = move
        self.low = None
        self.upp = None

    def Asymptotes(self, it, x, xold1, xold2):
        """ Update the asymptotes low and upp

        Parameters
        ----------
        it : integer
            Iteration number, starting at 1
        x : array_like
            Current design values
        xold1 : array_like
            Design values one iteration ago
        xold2 : array_like
            Design values two iterations ago

        Returns
        -------
        low : array_like
            Lower asymptotes
        upp : array_like
            Upper asymptotes

        """

        if it < 2.5 or self.low is None:
            self.low = x - self.asyinit * self.xRange
            self.upp = x + self.asyinit * self.xRange
        else:
            # Check for oscillations
            zzz = (x - xold1) * (xold1 - xold2)
            factor = np.ones(x.size)
            factor[zzz > 0] = self.asyincr
            factor[zzz < 0] = self.asydecr
            low = x - factor * (xold1 - self.low)
            upp = x + factor * (self.upp - xold1)

            lowMin = x - 10 * self.xRange
            lowMax = x - 0.01 * self.xRange
            uppMin = x + 0.01 * self.xRange
            uppMax = x + 10 * self.xRange
            self.low = np.minimum(np.maximum(low, lowMin), lowMax)
            self.upp = np.maximum(np.minimum(upp, uppMax), uppMin)

        return self.low, self.upp

    def MoveLimits(self, x):
        """ Bounds on the design variables for the current subproblem

        Parameters
        ----------
        x : array_like
            Current design values

        Returns
        -------
        alfa : array_like
            Lower bound of the subproblem
        beta : array_like
            Upper bound of the subproblem

        """

        zzz1 = self.low + self.albefa * (x - self.low)
        zzz2 = x - self.move * self.xRange
        alfa = np.maximum(np.maximum(zzz1, zzz2), self.xMin)
        zzz1 = self.upp - self.albefa * (self.upp - x)
        zzz2 = x + self.move * self.xRange
        beta = np.minimum(np.minimum(zzz1, zzz2), self.xMax)

        return alfa, beta

    def GetData(self):
        return {'low':self.low, 'upp':self.upp}

    def Load(self, data):
        self.low = data['low']
        self.upp = data['upp']
