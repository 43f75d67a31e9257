"""
Unit tests for the deformation potential solver.
"""

import unittest

import numpy as np
from firedrake.exceptions import ConvergenceError
from firedrake.utility_meshes import UnitSquareMesh

from griddeform.fields import MonitorFunctionBuilder
from griddeform.monitor import BallMonitorBuilder, ConstantMonitorBuilder
from griddeform.pde import DeformationPDESolver
from griddeform.triangulation import Triangulation


class TestDeformationPDESolver(unittest.TestCase):
    """
    Unit tests for :class:`~.DeformationPDESolver`.
    """

    def setUp(self):
        self.tri = Triangulation.from_mesh(UnitSquareMesh(8, 8))

    def fields(self, monitor_builder):
        fields = MonitorFunctionBuilder(self.tri, monitor_callback=monitor_builder())
        fields.compute_area_field()
        fields.evaluate_monitor()
        fields.normalise_numeric()
        fields.normalise_inverse()
        return fields

    def vertex(self, point):
        distances = np.linalg.norm(self.tri.coordinates - point, axis=1)
        return int(np.argmin(distances))

    def test_matching_fields(self):
        fields = self.fields(ConstantMonitorBuilder())
        pde = DeformationPDESolver(fields.f, fields.g)
        phi = pde.solve()
        self.assertTrue(np.allclose(phi.dat.data, 0))
        v = pde.recover_gradient()
        self.assertTrue(np.allclose(v.dat.data, 0))

    def test_velocity_towards_small_monitor(self):
        mb = BallMonitorBuilder(centre=(0.5, 0.5), radius=0, amplitude=4, width=10)
        fields = self.fields(mb)
        pde = DeformationPDESolver(fields.f, fields.g)
        pde.solve()
        self.assertGreater(pde.iterations, 0)
        v = pde.recover_gradient().dat.data
        self.assertLess(v[self.vertex((0.75, 0.5)), 0], 0)
        self.assertGreater(v[self.vertex((0.25, 0.5)), 0], 0)
        self.assertLess(v[self.vertex((0.5, 0.75)), 1], 0)
        self.assertGreater(v[self.vertex((0.5, 0.25)), 1], 0)

    def test_convergenceerror(self):
        mb = BallMonitorBuilder(centre=(0.5, 0.5), radius=0, amplitude=4, width=10)
        fields = self.fields(mb)
        solver_parameters = {
            "ksp_type": "cg",
            "pc_type": "none",
            "ksp_max_it": 1,
            "ksp_rtol": 1.0e-14,
            "ksp_atol": 1.0e-50,
        }
        pde = DeformationPDESolver(
            fields.f, fields.g, solver_parameters=solver_parameters
        )
        with self.assertRaises(ConvergenceError):
            pde.solve()
