"""Imposed axial temperature profiles for isothermal-mode PFR runs."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence, Tuple

import numpy as np
from scipy.interpolate import FloaterHormannInterpolator

__all__ = ["TemperatureProfile"]

_DEFAULT_ORDER = 3


class TemperatureProfile:
    """Continuous temperature as a function of distance from the inlet.

    Parameters
    ----------
    points:
        Control points as a ``{distance: temperature}`` mapping or a sequence
        of ``(distance, temperature)`` pairs, distances in m and temperatures
        in K.
    inlet_temperature:
        Temperature at the reactor inlet.  When the first control point lies
        downstream of the inlet, ``(0, inlet_temperature)`` is prepended so the
        profile starts at the inlet state.  If the first control point is at
        ``z = 0`` its temperature must equal ``inlet_temperature``; this is not
        checked.
    order:
        Blending order of the barycentric rational (Floater-Hormann)
        interpolant, capped at ``len(points) - 1``.
    """

    def __init__(
        self,
        points: Mapping[float, float] | Iterable[Tuple[float, float]],
        inlet_temperature: float,
        order: int = _DEFAULT_ORDER,
    ) -> None:
        pairs = sorted(
            (float(z), float(T))
            for z, T in (points.items() if isinstance(points, Mapping) else points)
        )
        if pairs and pairs[0][0] > 0.0:
            pairs.insert(0, (0.0, float(inlet_temperature)))
        if len(pairs) < 2:
            raise ValueError("Temperature profile needs at least two control points")
        distances = np.array([z for z, _ in pairs])
        if np.any(np.diff(distances) <= 0.0):
            raise ValueError("Temperature profile distances must be unique")
        self.inlet_temperature = float(inlet_temperature)
        self.distances = distances
        self.temperatures = np.array([T for _, T in pairs])
        self.order = max(0, min(int(order), len(pairs) - 1))
        self._interp = FloaterHormannInterpolator(
            self.distances, self.temperatures, d=self.order
        )

    def __call__(self, z: float) -> float:
        if z <= self.distances[0]:
            return self.inlet_temperature
        if z == self.distances[-1]:
            return float(self.temperatures[-1])
        return float(self._interp(z))

    def slope(self, z: float, step: float = 1e-7) -> float:
        """One-sided finite-difference derivative dT/dz at ``z``."""

        h = step * max(1.0, abs(z))
        return (self(z + h) - self(z)) / h

    @property
    def control_points(self) -> Sequence[Tuple[float, float]]:
        return list(zip(self.distances.tolist(), self.temperatures.tolist()))

    def __repr__(self) -> str:
        return f"TemperatureProfile({self.control_points!r}, order={self.order})"
