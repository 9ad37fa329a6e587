# -*- coding: utf-8 -*-
"""
Created on Fri May 10 13:30:43 2019

@author: Darin
"""

import numpy as np
import matplotlib.pyplot as plt

class PyOpt:
    """ Outer optimization loop around an update scheme
    """

    def __init__(self, update=None, verbose=True):
        """Constructor

        Parameters
        ----------
        update : Update scheme object
            Provides functionality to store and update design variables
        verbose : bool
            Print the function values every iteration (first process only)
        """

        self.update = update
        self.verbose = verbose
        self.objectives = []
        self.constraints = []
        self.f = []
        self.g = []
        self.change = []

    def AddFunction(self, function, value, minimum, maximum, funcType):
        """ Add an objective or constraint function to the list of functions
        to be evaluated

        Parameters
        ----------
        function : callable
            Called with the local design variables, returns the global function
            value and the local design sensitivities
        value : scalar
            The objective weight or constraint value.
            Objective weights should be adjusted so all weights sum to 1.
        minimum : scalar
            Mimimum function value for normalization
        maximum : scalar
            Maximum function value for normalization
        funcType : str
            'objective' or 'constraint'

        Returns
        -------
        None

        """

        if maximum <= minimum:
            raise ValueError("Normalization maximum must exceed the minimum")
        if funcType.lower() == 'objective':
            self.objectives.append({'function':function, 'weight':value,
                                    'min':minimum, 'max':maximum})
        elif funcType.lower() == 'constraint':
            self.constraints.append({'function':function, 'constraint':value,
                                     'min':minimum, 'max':maximum})
        else:
            raise ValueError('Function type must be "objective" or "constraint"')

    def CallFunctions(self):
        """ Call all functions to get objective and constraint value as well
        as all function sensitivities

        Parameters
        ----------
        None

        Returns
        -------
        f : scalar
            Objective value
        dfdx : array_like
            Objective gradients
        g : array_like
            Constraint values
        dgdx : array_like
            Constraint gradients

        """

        x = self.update.x
        f = 0
        dfdx = np.zeros(x.size)
        g = np.zeros(len(self.constraints))
        dgdx = np.zeros((x.size, g.size))

        for funDict in self.objectives:
            obj, dobjdx = funDict['function'](x)
            scale = funDict['max'] - funDict['min']
            f += funDict['weight'] * (obj - funDict['min']) / scale
            dfdx += funDict['weight'] * np.asarray(dobjdx) / scale

        for i, funDict in enumerate(self.constraints):
            con, dcondx = funDict['function'](x)
            scale = funDict['max'] - funDict['min']
            g[i] = (con - funDict['constraint']) / scale
            dgdx[:,i] = np.asarray(dcondx) / scale

        self.f.append(f)
        self.g.append(g)
        return f, dfdx, g, dgdx

    def Print(self, message):
        if self.verbose and getattr(self.update.comm, 'rank', 0) == 0:
            print(message)

    def Optimize(self, maxit=100, tol=1e-5):
        """ Iteratively improve the design

        Parameters
        ----------
        maxit : integer
            Maximum number of iterations to run
        tol : scalar
            Minimum change in a single design variable to continue iterating

        Returns
        -------
        it : integer
            Number of iterations performed

        """

        if not self.constraints:
            raise ValueError("At least one constraint is required")

        for it in range(maxit):
            f, dfdx, g, dgdx = self.CallFunctions()
            change = self.update.Update(dfdx, g, dgdx)
            self.change.append(change)
            self.Print("%4i\tf: %12.6g\tg: %s\tchange: %8.3g" %
                       (it, f, np.array2string(g, precision=4), change))

            if change < tol:
                break

        return it + 1

    def PlotHistory(self, filename=None):
        """ Plot the convergence history

        Parameters
        ----------
        filename : str, optional
            Save the figure to this file

        Returns
        -------
        fig : matplotlib figure

        """

        fig, axes = plt.subplots(3, 1, num="History", figsize=(8,9), sharex=True,
                                 clear=True)
        its = np.arange(len(self.f))
        axes[0].plot(its, self.f, 'k-')
        axes[0].set_ylabel('Objective')
        if self.g:
            axes[1].plot(its, np.array(self.g))
        axes[1].axhline(0, color='gray', linestyle=':')
        axes[1].set_ylabel('Constraints')
        axes[2].semilogy(np.arange(len(self.change)), np.maximum(self.change, 1e-16), 'k-')
        axes[2].set_ylabel('Change')
        axes[2].set_xlabel('Iteration')

        if filename:
            plt.tight_layout()
            fig.savefig(filename, bbox_inches='tight')
        else:
            plt.draw()
        return fig
