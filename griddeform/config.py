"""
Configuration of grid deformation runs.
"""

import dataclasses
from collections.abc import Callable, Sequence

__all__ = ["DeformationConfig"]


@dataclasses.dataclass(frozen=True)
class DeformationConfig:
    """
    Immutable set of parameters controlling a grid deformation run.

    :ivar num_adaptation_steps: number of adaptation iterations
    :ivar num_time_steps: number of explicit Euler steps per vertex and iteration
    :ivar blending_parameters: explicit blending parameter for each iteration. If
        ``None``, the schedule :math:`t_k=(k/N)^{1/4}` is used, with :math:`t_N=1`.
    :ivar solver_rtol: relative tolerance of the potential equation solver
    :ivar solver_atol: absolute tolerance of the potential equation solver
    :ivar solver_maxiter: maximum number of Krylov iterations
    :ivar boundary_level: ``0`` to keep boundary vertices fixed, ``1`` to let them
        slide along their boundary segments
    :ivar max_hops: maximum number of hops in raytracing point location
    :ivar tolerance: relative tolerance of point-in-element tests
    :ivar quality_hook: callable invoked with the mesh mover after each iteration
    """

    num_adaptation_steps: int = 20
    num_time_steps: int = 20
    blending_parameters: Sequence[float] | None = None
    solver_rtol: float = 1.0e-10
    solver_atol: float = 1.0e-12
    solver_maxiter: int = 500
    boundary_level: int = 1
    max_hops: int = 100
    tolerance: float = 1.0e-10
    quality_hook: Callable | None = None

    def __post_init__(self):
        if self.num_adaptation_steps < 1:
            raise ValueError(
                "Number of adaptation steps must be positive,"
                f" not {self.num_adaptation_steps}."
            )
        if self.num_time_steps < 1:
            raise ValueError(
                f"Number of time steps must be positive, not {self.num_time_steps}."
            )
        if self.blending_parameters is not None:
            params = tuple(float(t) for t in self.blending_parameters)
            if len(params) != self.num_adaptation_steps:
                raise ValueError(
                    f"Expected {self.num_adaptation_steps} blending parameters,"
                    f" got {len(params)}."
                )
            if any(t < 0 or t > 1 for t in params):
                raise ValueError("Blending parameters must lie in [0, 1].")
            object.__setattr__(self, "blending_parameters", params)
        for name in ("solver_rtol", "solver_atol", "tolerance"):
            if getattr(self, name) < 0:
                raise ValueError(f"'{name}' must be non-negative.")
        if self.solver_maxiter < 1:
            raise ValueError(
                "Maximum solver iterations must be positive,"
                f" not {self.solver_maxiter}."
            )
        if self.boundary_level not in (0, 1):
            raise ValueError(
                f"Boundary level must be 0 or 1, not {self.boundary_level}."
            )
        if self.max_hops < 1:
            raise ValueError(f"Maximum hops must be positive, not {self.max_hops}.")
        if self.quality_hook is not None and not callable(self.quality_hook):
            raise ValueError("Quality hook must be callable.")

    @classmethod
    def from_dict(cls, options):
        """
        Build a configuration from a dictionary, such as one read from a parameter
        file.

        :arg options: values for (some of) the configuration fields
        :type options: :class:`dict`
        :rtype: :class:`DeformationConfig`
        """
        names = {field.name for field in dataclasses.fields(cls)}
        unknown = set(options) - names
        if unknown:
            raise ValueError(f"Unknown configuration options {sorted(unknown)}.")
        return cls(**options)

    def replace(self, **changes):
        """
        :return: a copy of the configuration with some fields changed
        :rtype: :class:`DeformationConfig`
        """
        return dataclasses.replace(self, **changes)

    def blending_schedule(self):
        """
        :return: the blending parameter for each adaptation iteration
        :rtype: :class:`list` of :class:`float`\\s
        """
        if self.blending_parameters is not None:
            return list(self.blending_parameters)
        n = self.num_adaptation_steps
        return [(k / n) ** 0.25 for k in range(1, n)] + [1.0]
