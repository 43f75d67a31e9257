import abc

import numpy as np

__all__ = [
    "ConstantMonitorBuilder",
    "DistanceBandMonitorBuilder",
    "BallMonitorBuilder",
]


class MonitorBuilder(metaclass=abc.ABCMeta):
    """
    Abstract base class for monitor function factories.

    Monitor functions take the array of vertex coordinates and return the target
    relative element size at each vertex: small values request small elements. Only
    relative sizes matter, since the deformation driver normalises the monitor
    function.
    """

    @abc.abstractmethod
    def monitor(self, coordinates):
        """
        Abstract method to evaluate a monitor function.

        :arg coordinates: vertex coordinates
        :type coordinates: :class:`numpy.ndarray` of shape :math:`n_v\\times2`
        :return: monitor function values at the vertices
        :rtype: :class:`numpy.ndarray`
        """
        pass

    def get_monitor(self):
        """
        Returns a callable monitor function whose only argument is the array of vertex
        coordinates.

        :return: monitor function
        :rtype: callable monitor function with a single argument
        """

        def monitor(coordinates):
            coordinates = np.asarray(coordinates, dtype=float)
            m = np.broadcast_to(self.monitor(coordinates), (len(coordinates),))
            return np.array(m, dtype=float)

        return monitor

    def __call__(self):
        """
        Alias for :meth:`get_monitor`.

        :return: monitor function
        :rtype: callable monitor function with a single argument
        """
        return self.get_monitor()


class ConstantMonitorBuilder(MonitorBuilder):
    """
    Builder class for constant monitor functions, which request uniform element
    sizes.
    """

    def __init__(self, value=1.0):
        """
        :kwarg value: the constant value
        :type value: :class:`float`
        """
        assert value > 0
        self.value = value

    def monitor(self, coordinates):
        return np.full(len(coordinates), self.value)


class DistanceBandMonitorBuilder(MonitorBuilder):
    r"""
    Builder class for monitor functions requesting small elements in a circular band:

    .. math::
        m(\mathbf{x}) = \min\left(\max\left(
        \frac{\left|\|\mathbf{x}-\mathbf{c}\| - r\right|}{w}, m_{\min}\right), 1\right),

    where :math:`\mathbf{c}` is the centre of the band, :math:`r` its radius,
    :math:`w` its width and :math:`m_{\min}` the smallest relative element size.
    """

    def __init__(self, centre=(0.5, 0.5), radius=0.2, width=0.2, minimum=0.1):
        r"""
        :kwarg centre: the centre of the band
        :type centre: :class:`tuple` of :class:`float`\s
        :kwarg radius: the radius of the band
        :type radius: :class:`float`
        :kwarg width: the distance from the band over which the monitor function
            returns to one
        :type width: :class:`float`
        :kwarg minimum: the monitor function value on the band
        :type minimum: :class:`float`
        """
        assert len(centre) == 2
        assert radius >= 0
        assert width > 0
        assert 0 < minimum <= 1
        self.centre = np.array(centre, dtype=float)
        self.radius = radius
        self.width = width
        self.minimum = minimum

    def monitor(self, coordinates):
        dist = np.linalg.norm(coordinates - self.centre, axis=1)
        return np.clip(np.abs(dist - self.radius) / self.width, self.minimum, 1.0)


class BallMonitorBuilder(MonitorBuilder):
    r"""
    Builder class for monitor functions focused around ball shapes:

    .. math::
        m(\mathbf{x}) = \left(1 + \frac{\alpha}
        {\cosh^2\left(\beta\left((\mathbf{x}-\mathbf{c})\cdot(\mathbf{x}-\mathbf{c})
        -\gamma^2\right)\right)}\right)^{-1},

    where :math:`\mathbf{c}` is the centre point, :math:`\alpha` is the amplitude of the
    resolution increase, :math:`\beta` is the width of the transition region, and
    :math:`\gamma` is the radius of the ball. A zero radius concentrates resolution at
    the centre point.
    """

    def __init__(self, centre, radius, amplitude, width):
        r"""
        :arg centre: the centre of the ball
        :type centre: :class:`tuple` of :class:`float`\s
        :arg radius: the radius of the ball
        :type radius: :class:`float`
        :arg amplitude: the amplitude of the resolution increase
        :type amplitude: :class:`float`
        :arg width: the width of the transition region
        :type width: :class:`float`
        """
        assert len(centre) == 2
        assert radius >= 0
        assert amplitude > 0
        assert width > 0
        self.centre = np.array(centre, dtype=float)
        self.radius = radius
        self.amplitude = amplitude
        self.width = width

    def monitor(self, coordinates):
        diff = coordinates - self.centre
        dist = np.einsum("ij,ij->i", diff, diff)
        return 1.0 / (
            1.0 + self.amplitude / np.cosh(self.width * (dist - self.radius**2)) ** 2
        )
