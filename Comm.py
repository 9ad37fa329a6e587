# -*- coding: utf-8 -*-
"""
Created on Mon Jun 10 09:12:44 2019

@author: Darin
"""

import numpy as np

class SerialComm:
    """ Reduction service for a single process. Every reduction is the identity.
    """

    rank = 0
    size = 1

    def Sum(self, values):
        """ Sum local contributions across all processes

        Parameters
        ----------
        values : array_like or scalar
            Local contribution

        Returns
        -------
        total : array_like or scalar
            Global sum

        """

        if np.isscalar(values):
            return float(values)
        return np.array(values, dtype=float)

    def Max(self, value):
        """ Maximum of a scalar across all processes

        Parameters
        ----------
        value : scalar
            Local value

        Returns
        -------
        value : scalar
            Global maximum

        """

        return float(value)

class MPIComm:
    """ Reduction service backed by an mpi4py communicator. Each call is a
    blocking collective and must be reached by every process in the same order.
    """

    def __init__(self, comm=None):
        """ Wrap an MPI communicator

        Parameters
        ----------
        comm : mpi4py communicator, optional
            Communicator over which the design vector is partitioned,
            defaults to MPI.COMM_WORLD

        """

        from mpi4py import MPI
        self.MPI = MPI
        if comm is None:
            comm = MPI.COMM_WORLD
        self.comm = comm
        self.rank = comm.Get_rank()
        self.size = comm.Get_size()

    def Sum(self, values):
        """ Sum local contributions across all processes

        Parameters
        ----------
        values : array_like or scalar
            Local contribution

        Returns
        -------
        total : array_like or scalar
            Global sum

        """

        if np.isscalar(values):
            return self.comm.allreduce(float(values), op=self.MPI.SUM)
        local = np.ascontiguousarray(values, dtype=float)
        total = np.empty_like(local)
        self.comm.Allreduce(local, total, op=self.MPI.SUM)
        return total

    def Max(self, value):
        """ Maximum of a scalar across all processes

        Parameters
        ----------
        value : scalar
            Local value

        Returns
        -------
        value : scalar
            Global maximum

        """

        return self.comm.allreduce(float(value), op=self.MPI.MAX)
