import firedrake
import ufl
from animate.recovery import recover_gradient_l2
from firedrake.petsc import PETSc

import griddeform.solver_parameters as sp

__all__ = ["DeformationPDESolver"]


class DeformationPDESolver:
    r"""
    Solver for the potential :math:`\phi` of the deformation velocity field, which
    satisfies the pure Neumann problem

    .. math::
        -\Delta\phi = \frac1f - \frac1g \quad\text{in }\Omega,
        \qquad \nabla\phi\cdot\mathbf{n} = 0 \quad\text{on }\partial\Omega,

    where :math:`f` is the (blended) monitor function and :math:`g` is the area
    distribution, both normalised such that their reciprocals integrate to
    :math:`|\Omega|`. The solution is unique up to a constant, which is removed by
    attaching the constant null space to the solver. The velocity field
    :math:`\mathbf{v}=\nabla\phi` is obtained by :math:`L^2` gradient recovery.
    """

    def __init__(self, f, g, solver_parameters=None, quadrature_degree=None):
        """
        :arg f: the monitor function
        :type f: :class:`firedrake.function.Function`
        :arg g: the area distribution
        :type g: :class:`firedrake.function.Function`
        :kwarg solver_parameters: PETSc options for the linear solver
        :type solver_parameters: :class:`dict`
        :kwarg quadrature_degree: quadrature degree to be passed to Firedrake's measures
        :type quadrature_degree: :class:`int`
        """
        self.V = f.function_space()
        self.mesh = self.V.mesh()
        self.solver_parameters = solver_parameters or sp.cg
        self.phi = firedrake.Function(self.V, name="Deformation potential")
        self.dx = firedrake.dx(domain=self.mesh, degree=quadrature_degree)

        phi = firedrake.TrialFunction(self.V)
        psi = firedrake.TestFunction(self.V)
        a = ufl.inner(ufl.grad(phi), ufl.grad(psi)) * self.dx
        L = (1 / f - 1 / g) * psi * self.dx
        problem = firedrake.LinearVariationalProblem(a, L, self.phi)
        nullspace = firedrake.VectorSpaceBasis(constant=True, comm=self.mesh.comm)
        self._solver = firedrake.LinearVariationalSolver(
            problem,
            solver_parameters=self.solver_parameters,
            nullspace=nullspace,
            transpose_nullspace=nullspace,
        )

    @property
    def iterations(self):
        """
        :return: the number of Krylov iterations taken in the last solve
        :rtype: :class:`int`
        """
        return self._solver.snes.ksp.getIterationNumber()

    @PETSc.Log.EventDecorator()
    def solve(self):
        """
        Solve for the potential.

        Raises :class:`firedrake.exceptions.ConvergenceError` if the linear solver
        does not converge.

        :return: the potential
        :rtype: :class:`firedrake.function.Function`
        """
        self._solver.solve()
        return self.phi

    @PETSc.Log.EventDecorator()
    def recover_gradient(self):
        """
        :return: the velocity field :math:`\\nabla\\phi`, recovered in vector
            :math:`\\mathbb{P}1` space
        :rtype: :class:`firedrake.function.Function`
        """
        P1_vec = firedrake.VectorFunctionSpace(self.mesh, "CG", 1)
        return recover_gradient_l2(self.phi, target_space=P1_vec)
