"""Gas and surface chemistry providers consumed by the 1-D PFR model."""

from __future__ import annotations

import logging
from typing import Dict, List, Protocol, runtime_checkable

import cantera as ct
import numpy as np

logger = logging.getLogger(__name__)

__all__ = [
    "GasProvider",
    "SurfaceProvider",
    "CanteraGas",
    "CanteraSurface",
]


@runtime_checkable
class GasProvider(Protocol):
    """Thermodynamic, kinetic and state access for the gas mixture."""

    @property
    def n_species(self) -> int: ...

    @property
    def species_names(self) -> List[str]: ...

    @property
    def molecular_weights(self) -> np.ndarray: ...

    @property
    def T(self) -> float: ...

    @property
    def P(self) -> float: ...

    @property
    def Y(self) -> np.ndarray: ...

    @property
    def density(self) -> float: ...

    @property
    def mean_molecular_weight(self) -> float: ...

    @property
    def cp_mass(self) -> float: ...

    @property
    def int_energy_mass(self) -> float: ...

    @property
    def net_production_rates(self) -> np.ndarray: ...

    @property
    def partial_molar_enthalpies(self) -> np.ndarray: ...

    @property
    def net_rates_of_progress(self) -> np.ndarray: ...

    @property
    def n_reactions(self) -> int: ...

    def set_state(self, T: float, P: float, Y: np.ndarray) -> None: ...

    def species_index(self, name: str) -> int: ...

    def reaction_labels(self) -> List[str]: ...

    def reaction_index(self, label: str | int) -> int: ...

    def multiplier(self, i: int) -> float: ...

    def set_multiplier(self, i: int, value: float) -> None: ...

    def enthalpy_offset(self, k: int) -> float: ...

    def set_enthalpy_offset(self, k: int, value: float) -> None: ...


@runtime_checkable
class SurfaceProvider(Protocol):
    """Coverage state and interface kinetics of one catalytic surface."""

    @property
    def n_species(self) -> int: ...

    @property
    def species_names(self) -> List[str]: ...

    @property
    def site_density(self) -> float: ...

    @property
    def coverages(self) -> np.ndarray: ...

    @property
    def gas_production_rates(self) -> np.ndarray: ...

    @property
    def coverage_production_rates(self) -> np.ndarray: ...

    @property
    def partial_molar_enthalpies(self) -> np.ndarray: ...

    @property
    def net_rates_of_progress(self) -> np.ndarray: ...

    @property
    def n_reactions(self) -> int: ...

    def set_state(self, T: float, P: float, coverages: np.ndarray) -> None: ...

    def solve_pseudo_steady_state(self) -> None: ...

    def species_index(self, name: str) -> int: ...

    def reaction_labels(self) -> List[str]: ...

    def reaction_index(self, label: str | int) -> int: ...

    def multiplier(self, i: int) -> float: ...

    def set_multiplier(self, i: int, value: float) -> None: ...

    def enthalpy_offset(self, k: int) -> float: ...

    def set_enthalpy_offset(self, k: int, value: float) -> None: ...


# ---------------------------------------------------------------------------
# Cantera implementations
# ---------------------------------------------------------------------------

class _CanteraKineticsMixin:
    """Reaction lookup, rate multipliers and NASA7 enthalpy offsets."""

    _phase: ct.ThermoPhase
    _offsets: Dict[int, float]
    _base_thermo: Dict[int, tuple]

    @property
    def n_reactions(self) -> int:
        return int(self._phase.n_reactions)

    @property
    def net_rates_of_progress(self) -> np.ndarray:
        return np.asarray(self._phase.net_rates_of_progress, dtype=float)

    def reaction_labels(self) -> List[str]:
        return list(self._phase.reaction_equations())

    def reaction_index(self, label: str | int) -> int:
        if isinstance(label, (int, np.integer)):
            if not 0 <= int(label) < self.n_reactions:
                raise KeyError(f"Reaction index {label} out of range")
            return int(label)
        equations = self.reaction_equations_normalised()
        key = _normalise_equation(str(label))
        if key not in equations:
            raise KeyError(f"Reaction '{label}' not found in {self._phase.name}")
        return equations[key]

    def reaction_equations_normalised(self) -> Dict[str, int]:
        mapping: Dict[str, int] = {}
        for i, equation in enumerate(self._phase.reaction_equations()):
            mapping.setdefault(_normalise_equation(equation), i)
        return mapping

    def multiplier(self, i: int) -> float:
        return float(self._phase.multiplier(i))

    def set_multiplier(self, i: int, value: float) -> None:
        self._phase.set_multiplier(value, i)

    def species_index(self, name: str) -> int:
        return int(self._phase.species_index(name))

    def enthalpy_offset(self, k: int) -> float:
        return float(self._offsets.get(k, 0.0))

    def set_enthalpy_offset(self, k: int, value: float) -> None:
        """Shift the formation enthalpy of species ``k`` by ``value`` J/kmol.

        Only NASA 7-coefficient thermo is supported.  The unshifted
        coefficients are kept so that an offset of zero restores the
        original species exactly.
        """

        if k not in self._base_thermo:
            thermo = self._phase.species(k).thermo
            if not isinstance(thermo, ct.NasaPoly2):
                raise NotImplementedError(
                    f"Enthalpy offsets need NASA7 thermo; species "
                    f"{self._phase.species_names[k]} uses {type(thermo).__name__}"
                )
            self._base_thermo[k] = (
                thermo.min_temp,
                thermo.max_temp,
                thermo.reference_pressure,
                np.array(thermo.coeffs, copy=True),
            )
        t_low, t_high, p_ref, coeffs = self._base_thermo[k]
        shifted = coeffs.copy()
        if value != 0.0:
            # H/RT carries a5/T in both temperature ranges
            shifted[6] += value / ct.gas_constant
            shifted[13] += value / ct.gas_constant
        species = self._phase.species(k)
        species.thermo = ct.NasaPoly2(t_low, t_high, p_ref, shifted)
        self._phase.modify_species(k, species)
        self._offsets[k] = float(value)
        self._refresh_rate_cache()

    def _refresh_rate_cache(self) -> None:
        # Kinetics caches equilibrium constants per temperature; evaluate once
        # at a nudged temperature so the next query recomputes them.
        T, P = self._phase.T, self._phase.P
        self._phase.TP = T * (1.0 + 1e-9), P
        _ = self._phase.forward_rate_constants
        self._phase.TP = T, P


def _normalise_equation(equation: str) -> str:
    return " ".join(equation.split())


class CanteraGas(_CanteraKineticsMixin):
    """Gas provider backed by a Cantera ``Solution``."""

    def __init__(self, solution: ct.Solution) -> None:
        self._phase = solution
        self._offsets = {}
        self._base_thermo = {}

    @classmethod
    def from_mechanism(cls, mechanism: str, name: str | None = None) -> "CanteraGas":
        if name:
            return cls(ct.Solution(mechanism, name))
        return cls(ct.Solution(mechanism))

    @property
    def solution(self) -> ct.Solution:
        return self._phase

    @property
    def n_species(self) -> int:
        return int(self._phase.n_species)

    @property
    def species_names(self) -> List[str]:
        return list(self._phase.species_names)

    @property
    def molecular_weights(self) -> np.ndarray:
        return np.asarray(self._phase.molecular_weights, dtype=float)

    @property
    def T(self) -> float:
        return float(self._phase.T)

    @property
    def P(self) -> float:
        return float(self._phase.P)

    @property
    def Y(self) -> np.ndarray:
        return np.asarray(self._phase.Y, dtype=float)

    @property
    def density(self) -> float:
        return float(self._phase.density)

    @property
    def mean_molecular_weight(self) -> float:
        return float(self._phase.mean_molecular_weight)

    @property
    def cp_mass(self) -> float:
        return float(self._phase.cp_mass)

    @property
    def int_energy_mass(self) -> float:
        return float(self._phase.int_energy_mass)

    @property
    def net_production_rates(self) -> np.ndarray:
        return np.asarray(self._phase.net_production_rates, dtype=float)

    @property
    def partial_molar_enthalpies(self) -> np.ndarray:
        return np.asarray(self._phase.partial_molar_enthalpies, dtype=float)

    def set_state(self, T: float, P: float, Y: np.ndarray) -> None:
        self._phase.set_unnormalized_mass_fractions(Y)
        self._phase.TP = T, P

    def set_inlet(self, T: float, P: float, X: str | Dict[str, float]) -> None:
        self._phase.TPX = T, P, X


class CanteraSurface(_CanteraKineticsMixin):
    """Surface provider backed by a Cantera ``Interface``."""

    def __init__(self, interface: ct.Interface, gas: ct.Solution) -> None:
        self._phase = interface
        self._gas = gas
        self._offsets = {}
        self._base_thermo = {}

    @classmethod
    def from_mechanism(
        cls, mechanism: str, name: str, gas: CanteraGas | ct.Solution
    ) -> "CanteraSurface":
        solution = gas.solution if isinstance(gas, CanteraGas) else gas
        return cls(ct.Interface(mechanism, name, [solution]), solution)

    @property
    def interface(self) -> ct.Interface:
        return self._phase

    @property
    def n_species(self) -> int:
        return int(self._phase.n_species)

    @property
    def species_names(self) -> List[str]:
        return list(self._phase.species_names)

    @property
    def site_density(self) -> float:
        return float(self._phase.site_density)

    @property
    def coverages(self) -> np.ndarray:
        return np.asarray(self._phase.coverages, dtype=float)

    @property
    def gas_production_rates(self) -> np.ndarray:
        return np.asarray(self._phase.get_net_production_rates(self._gas), dtype=float)

    @property
    def coverage_production_rates(self) -> np.ndarray:
        return np.asarray(self._phase.get_net_production_rates(self._phase), dtype=float)

    @property
    def partial_molar_enthalpies(self) -> np.ndarray:
        return np.asarray(self._phase.partial_molar_enthalpies, dtype=float)

    def set_state(self, T: float, P: float, coverages: np.ndarray) -> None:
        self._phase.TP = T, P
        self._phase.set_unnormalized_coverages(coverages)

    def solve_pseudo_steady_state(self) -> None:
        self._phase.TP = self._gas.T, self._gas.P
        self._phase.advance_coverages_to_steady_state()
        logger.debug(
            "Pseudo steady state of %s: %s",
            self._phase.name,
            {
                name: round(float(theta), 6)
                for name, theta in zip(self.species_names, self.coverages)
                if theta > 1e-6
            },
        )

