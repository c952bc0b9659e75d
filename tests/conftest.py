"""Lightweight numpy chemistry providers shared by the PFR tests.

``ToyGas`` holds A, B and N2 with a single first-order isomerisation
A => B, so isothermal profiles have a closed form.  ``ToySurface`` adsorbs
and desorbs A on a single site type; its pseudo steady state is explicit.
"""

from __future__ import annotations

from typing import List

import numpy as np
import pytest

GAS_CONSTANT = 8314.46261815324  # J/kmol/K
T_REF = 298.15


class ToyGas:
    def __init__(
        self,
        T: float = 800.0,
        P: float = 101325.0,
        Y=(0.1, 0.0, 0.9),
        rate_constant: float = 5.0,
    ) -> None:
        self._names = ["A", "B", "N2"]
        self._W = np.array([32.0, 32.0, 28.0])
        self._h0 = np.array([0.0, -5.0e7, 0.0])
        self._cp_molar = 29100.0
        self._k = rate_constant
        self._mult = [1.0]
        self._offsets = np.zeros(3)
        self.set_state(T, P, np.asarray(Y, dtype=float))

    @property
    def n_species(self) -> int:
        return 3

    @property
    def species_names(self) -> List[str]:
        return list(self._names)

    @property
    def molecular_weights(self) -> np.ndarray:
        return self._W.copy()

    @property
    def T(self) -> float:
        return self._T

    @property
    def P(self) -> float:
        return self._P

    @property
    def Y(self) -> np.ndarray:
        return self._Y.copy()

    @property
    def mean_molecular_weight(self) -> float:
        return 1.0 / float(np.sum(self._Y / self._W))

    @property
    def density(self) -> float:
        return self._P * self.mean_molecular_weight / (GAS_CONSTANT * self._T)

    @property
    def concentrations(self) -> np.ndarray:
        return self.density * self._Y / self._W

    @property
    def cp_mass(self) -> float:
        return self._cp_molar / self.mean_molecular_weight

    @property
    def partial_molar_enthalpies(self) -> np.ndarray:
        return self._h0 + self._offsets + self._cp_molar * (self._T - T_REF)

    @property
    def enthalpy_mass(self) -> float:
        return float(np.dot(self._Y / self._W, self.partial_molar_enthalpies))

    @property
    def int_energy_mass(self) -> float:
        return self.enthalpy_mass - GAS_CONSTANT * self._T / self.mean_molecular_weight

    @property
    def n_reactions(self) -> int:
        return 1

    @property
    def net_rates_of_progress(self) -> np.ndarray:
        return np.array([self._k * self._mult[0] * self.concentrations[0]])

    @property
    def net_production_rates(self) -> np.ndarray:
        r = self.net_rates_of_progress[0]
        return np.array([-r, r, 0.0])

    def set_state(self, T: float, P: float, Y: np.ndarray) -> None:
        self._T = float(T)
        self._P = float(P)
        self._Y = np.array(Y, dtype=float)

    def species_index(self, name: str) -> int:
        return self._names.index(name)

    def reaction_labels(self) -> List[str]:
        return ["A => B"]

    def reaction_index(self, label) -> int:
        if label in (0, "A => B"):
            return 0
        raise KeyError(label)

    def multiplier(self, i: int) -> float:
        return self._mult[i]

    def set_multiplier(self, i: int, value: float) -> None:
        self._mult[i] = float(value)

    def enthalpy_offset(self, k: int) -> float:
        return float(self._offsets[k])

    def set_enthalpy_offset(self, k: int, value: float) -> None:
        self._offsets[k] = float(value)


class ToySurface:
    def __init__(
        self,
        gas: ToyGas,
        k_ads: float = 1.0,
        k_des: float = 5.0e4,
        site_density: float = 2.7e-8,
    ) -> None:
        self._gas = gas
        self._names = ["PT(S)", "A(S)"]
        self._k = [k_ads, k_des]
        self._mult = [1.0, 1.0]
        self._gamma = site_density
        self._offsets = np.zeros(2)
        self._theta = np.array([1.0, 0.0])
        self._T = gas.T
        self._P = gas.P

    @property
    def n_species(self) -> int:
        return 2

    @property
    def species_names(self) -> List[str]:
        return list(self._names)

    @property
    def site_density(self) -> float:
        return self._gamma

    @property
    def coverages(self) -> np.ndarray:
        return self._theta.copy()

    @property
    def n_reactions(self) -> int:
        return 2

    @property
    def net_rates_of_progress(self) -> np.ndarray:
        c_a = self._gas.concentrations[0]
        r_ads = self._k[0] * self._mult[0] * c_a * self._theta[0]
        r_des = self._k[1] * self._mult[1] * self._gamma * self._theta[1]
        return np.array([r_ads, r_des])

    @property
    def gas_production_rates(self) -> np.ndarray:
        r_ads, r_des = self.net_rates_of_progress
        return np.array([r_des - r_ads, 0.0, 0.0])

    @property
    def coverage_production_rates(self) -> np.ndarray:
        r_ads, r_des = self.net_rates_of_progress
        return np.array([r_des - r_ads, r_ads - r_des])

    @property
    def partial_molar_enthalpies(self) -> np.ndarray:
        return self._offsets.copy()

    def set_state(self, T: float, P: float, coverages: np.ndarray) -> None:
        self._T = float(T)
        self._P = float(P)
        self._theta = np.array(coverages, dtype=float)

    def solve_pseudo_steady_state(self) -> None:
        ads = self._k[0] * self._mult[0] * self._gas.concentrations[0]
        des = self._k[1] * self._mult[1] * self._gamma
        theta_a = ads / (ads + des)
        self._theta = np.array([1.0 - theta_a, theta_a])

    def species_index(self, name: str) -> int:
        return self._names.index(name)

    def reaction_labels(self) -> List[str]:
        return ["A + PT(S) => A(S)", "A(S) => A + PT(S)"]

    def reaction_index(self, label) -> int:
        if isinstance(label, int) and 0 <= label < 2:
            return label
        labels = self.reaction_labels()
        if label in labels:
            return labels.index(label)
        raise KeyError(label)

    def multiplier(self, i: int) -> float:
        return self._mult[i]

    def set_multiplier(self, i: int, value: float) -> None:
        self._mult[i] = float(value)

    def enthalpy_offset(self, k: int) -> float:
        return float(self._offsets[k])

    def set_enthalpy_offset(self, k: int, value: float) -> None:
        self._offsets[k] = float(value)


@pytest.fixture
def toy_gas() -> ToyGas:
    return ToyGas()


@pytest.fixture
def toy_surface(toy_gas: ToyGas) -> ToySurface:
    surface = ToySurface(toy_gas)
    surface.solve_pseudo_steady_state()
    return surface


@pytest.fixture
def inert_gas() -> ToyGas:
    gas = ToyGas()
    gas.set_multiplier(0, 0.0)
    return gas


@pytest.fixture
def inert_surface(inert_gas: ToyGas) -> ToySurface:
    surface = ToySurface(inert_gas)
    surface.solve_pseudo_steady_state()
    return surface
