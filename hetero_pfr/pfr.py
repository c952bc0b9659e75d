"""One-dimensional steady plug-flow reactor with gas and surface chemistry."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np

from .configuration import ConfigurationError
from .layout import StateLayout
from .profile import TemperatureProfile
from .providers import GasProvider, SurfaceProvider
from .sensitivity import (
    DEFAULT_ENTHALPY_DELTA,
    DEFAULT_REACTION_DELTA,
    SensitivityRegistry,
)

logger = logging.getLogger(__name__)

__all__ = [
    "PFR1d",
    "EvalType",
    "STATUS_OK",
    "STATUS_RECOVERABLE",
    "STATUS_FAILED",
]

STATUS_OK = 0
STATUS_RECOVERABLE = 1
STATUS_FAILED = -1

COVERAGE_TOLERANCE = 1e-6

_PROVIDER_ERRORS = (RuntimeError, ValueError, ArithmeticError)


class EvalType(str, Enum):
    BASE = "base"
    JACOBIAN = "jacobian"
    SENSITIVITY = "sensitivity"


class _NonPhysicalState(ValueError):
    pass


class PFR1d:
    """Residual model of a 1-D plug-flow reactor along the axial distance z.

    The steady state of the PFR is written as ``F(z, y, y') = 0``.  At the
    inlet the surfaces are expected to be at their pseudo steady state for
    the inlet gas; the resulting inlet state is propagated along ``z`` by a
    DAE driver calling :meth:`eval_resid`.

    The state holds velocity, density, pressure, temperature (energy balance
    only), gas mass fractions and, per surface, the coverages.

    Every residual evaluation writes the trial state into the gas and surface
    providers and leaves it there.  The model is the only writer of provider
    state while a run is in progress; callers must not read the providers
    between driver calls and expect the accepted state, and runs sharing
    providers must be sequential.
    """

    def __init__(
        self,
        gas: GasProvider,
        surfaces: Sequence[SurfaceProvider] | None,
        area: float | None,
        cat_abyv: float,
        velocity: float,
    ) -> None:
        if gas is None:
            raise ConfigurationError("Gas provider is not set")
        surfaces = list(surfaces or [])
        for i, surface in enumerate(surfaces):
            if surface is None:
                raise ConfigurationError(f"Surface provider {i} is not set")
        if area is not None and area <= 0:
            raise ConfigurationError("Reactor cross-sectional area must be positive")

        self._gas = gas
        self._surfaces = surfaces
        self._area = float(area) if area is not None else None
        self._cat_abyv = float(cat_abyv)
        self._u0 = float(velocity)

        self._nsp = int(gas.n_species)
        self._W = np.asarray(gas.molecular_weights, dtype=float).copy()
        self._rho_ref = float(gas.density)
        self._T0 = float(gas.T)
        self._P0 = float(gas.P)

        self._energy = False
        self._heat = False
        self._htc = 0.0
        self._t_ext = 0.0
        self._wall_abyv = 0.0
        self._t_profile: TemperatureProfile | None = None

        self._wdot = np.zeros(self._nsp)
        self._sdot = np.zeros(self._nsp)
        self._coverage_rates: List[np.ndarray] = [np.zeros(s.n_species) for s in surfaces]

        # balances replaced by the sum-to-one rows
        self._gas_closure = int(np.argmax(gas.Y))
        self._surface_closures = [int(np.argmax(s.coverages)) for s in surfaces]

        self._sens = SensitivityRegistry([gas, *surfaces])
        self.evaluations: Dict[str, int] = {kind.value: 0 for kind in EvalType}
        self.reinit()

    def reinit(self) -> None:
        self._layout = StateLayout.build(
            self._energy,
            self._gas.species_names,
            self._gas_closure,
            [(s.species_names, c) for s, c in zip(self._surfaces, self._surface_closures)],
        )

    # ------------------------------------------------------------------
    # Layout and naming
    # ------------------------------------------------------------------
    @property
    def layout(self) -> StateLayout:
        return self._layout

    @property
    def neq(self) -> int:
        return self._layout.neq

    @property
    def neqs_extra(self) -> int:
        return self._layout.neqs_extra

    @property
    def nsp(self) -> int:
        return self._nsp

    def variable_names(self) -> List[str]:
        return self._layout.names()

    def state_variable_names(self) -> List[str]:
        return self._layout.names("state")

    def gas_variable_names(self) -> List[str]:
        return self._layout.names("gas")

    def surface_variable_names(self) -> List[str]:
        return self._layout.names("surface")

    def species_index(self, name: str) -> int:
        return self._gas.species_index(name)

    def constraints(self) -> np.ndarray:
        """Sign constraints per variable: 2 strictly positive, 1 non-negative."""

        codes = np.ones(self.neq, dtype=int)
        codes[: self.neqs_extra] = 2
        return codes

    # ------------------------------------------------------------------
    # Reactor contents and inlet
    # ------------------------------------------------------------------
    @property
    def contents(self) -> GasProvider:
        if self._gas is None:
            raise ConfigurationError("Reactor contents not defined")
        return self._gas

    def surface(self, n: int) -> SurfaceProvider:
        return self._surfaces[n]

    @property
    def surfaces(self) -> List[SurfaceProvider]:
        return list(self._surfaces)

    @property
    def int_energy_mass(self) -> float:
        return self._gas.int_energy_mass

    @property
    def rho_ref(self) -> float:
        return self._rho_ref

    @property
    def inlet_temperature(self) -> float:
        return self._T0

    @property
    def inlet_pressure(self) -> float:
        return self._P0

    @property
    def velocity(self) -> float:
        return self._u0

    @property
    def cat_abyv(self) -> float:
        return self._cat_abyv

    def set_velocity(self, velocity: float) -> None:
        self._u0 = float(velocity)

    def set_flow_rate(self, flow_rate: float) -> None:
        """Set the inlet velocity from a volumetric flow rate (m3/s)."""

        if not self._area:
            raise ConfigurationError("Reactor cross section not defined")
        self._u0 = float(flow_rate) / self._area

    def set_mass_flow_rate(self, mass_flow_rate: float) -> None:
        """Set the inlet velocity from a mass flow rate (kg/s)."""

        if not self._area:
            raise ConfigurationError("Reactor cross section not defined")
        self._u0 = float(mass_flow_rate) / (self._rho_ref * self._area)

    # ------------------------------------------------------------------
    # Physics switches
    # ------------------------------------------------------------------
    def set_energy(self, flag: bool | int) -> None:
        """Solve the energy balance (``flag > 0``) or impose the temperature.

        Must be called before :meth:`get_initial_conditions`; the layout of
        ``y`` changes with it.
        """

        self._energy = bool(flag) and flag > 0
        self.reinit()

    @property
    def energy_enabled(self) -> bool:
        return self._energy

    def set_heat_transfer(self, htc: float, t_ext: float, wall_abyv: float) -> None:
        self._heat = True
        self._htc = float(htc)
        self._t_ext = float(t_ext)
        self._wall_abyv = float(wall_abyv)

    @property
    def heat_enabled(self) -> bool:
        return self._heat

    def get_heat(self, t_int: float) -> float:
        """Heat supplied through the wall per reactor volume (W/m3)."""

        return self._htc * self._wall_abyv * (self._t_ext - t_int)

    def set_t_profile(
        self,
        profile: TemperatureProfile | Mapping[float, float] | Iterable[Tuple[float, float]],
    ) -> None:
        if isinstance(profile, TemperatureProfile):
            self._t_profile = profile
        else:
            self._t_profile = TemperatureProfile(profile, self._T0)

    def get_t(self, z: float) -> float:
        """Imposed temperature at ``z``; only meaningful without the energy balance."""

        if self._t_profile is None:
            return self._T0
        return self._t_profile(z)

    # ------------------------------------------------------------------
    # Sensitivity parameters
    # ------------------------------------------------------------------
    def add_sensitivity_reaction(
        self,
        reaction: str | int,
        owner: int | None = None,
        delta: float = DEFAULT_REACTION_DELTA,
    ) -> int:
        """Register the rate multiplier of ``reaction`` as a parameter.

        The gas kinetics are searched first, then the surfaces in order,
        unless ``owner`` (0 gas, 1.. surfaces) pins the provider.
        """

        providers = [self._gas, *self._surfaces]
        owners = range(len(providers)) if owner is None else [owner]
        for i in owners:
            try:
                index = providers[i].reaction_index(reaction)
            except KeyError:
                continue
            return self._sens.add_reaction(i, index, name=str(reaction), delta=delta)
        raise KeyError(f"Reaction '{reaction}' not found in gas or surface kinetics")

    def add_sensitivity_species(
        self, species: str, delta: float = DEFAULT_ENTHALPY_DELTA
    ) -> int:
        """Register the formation enthalpy of ``species`` as a parameter."""

        providers = [self._gas, *self._surfaces]
        for phase, provider in enumerate(providers):
            if species in provider.species_names:
                k = provider.species_index(species)
                return self._sens.add_species_enthalpy(
                    phase, k, name=f"{species} enthalpy", delta=delta
                )
        raise KeyError(f"Species '{species}' not found in gas or surface phases")

    def n_sens_params(self) -> int:
        return len(self._sens)

    def sensitivity_names(self) -> List[str]:
        return self._sens.names

    @property
    def sensitivity(self) -> SensitivityRegistry:
        return self._sens

    def apply_sensitivity(self, param_id: int, delta: float | None = None) -> None:
        if delta is None:
            delta = self._sens[param_id].delta
        self._sens.apply(param_id, delta)

    def reset_sensitivity(self) -> None:
        self._sens.reset_all()

    # ------------------------------------------------------------------
    # DAE callbacks
    # ------------------------------------------------------------------
    def get_initial_conditions(self, z0: float, y: np.ndarray, ydot: np.ndarray) -> int:
        """Fill ``y`` from the providers and ``ydot`` consistently with ``y``.

        The derivatives of the algebraic variables are left at zero.
        """

        if self._gas is None or any(s is None for s in self._surfaces):
            logger.error("Initial conditions requested with an unset provider")
            return STATUS_FAILED
        layout = self._layout
        gas = self._gas
        y[:] = 0.0
        ydot[:] = 0.0
        y[0] = self._u0
        y[1] = gas.density
        y[2] = gas.P
        if self._energy:
            y[3] = gas.T
        y[layout.gas_slice] = gas.Y
        for surface, (start, stop) in zip(self._surfaces, layout.surface_blocks):
            y[start:stop] = surface.coverages

        resid = np.zeros(layout.neq)
        status = self.eval_resid(z0, 0.0, y, ydot, resid)
        if status != STATUS_OK:
            return status

        u, rho, P = y[0], y[1], y[2]
        rho_u = rho * u
        T = y[3] if self._energy else self.get_t(z0)
        closure = layout.gas_closure - layout.neqs_extra

        dYdz = -resid[layout.gas_slice] / rho_u
        dYdz[closure] = 0.0
        dYdz[closure] = -dYdz.sum()
        ydot[layout.gas_slice] = dYdz

        if self._energy:
            dTdz = -resid[3] / (rho_u * gas.cp_mass)
            ydot[3] = dTdz
        elif self._t_profile is not None:
            dTdz = self._t_profile.slope(z0)
        else:
            dTdz = 0.0

        # zero-derivative continuity row is -Ts / rho_ref
        Ts = -resid[0] * self._rho_ref
        mean_w = gas.mean_molecular_weight
        A = np.array(
            [
                [rho, u, 0.0],  # continuity
                [rho_u, 0.0, 1.0],  # momentum
                [0.0, 1.0, -rho / P],  # differentiated ideal-gas law
            ]
        )
        b = np.array(
            [
                Ts,
                -u * Ts,
                rho * (-dTdz / T - mean_w * float(np.dot(dYdz, 1.0 / self._W))),
            ]
        )
        try:
            ydot[:3] = np.linalg.solve(A, b)
        except np.linalg.LinAlgError as exc:
            logger.warning("Singular initial-derivative system at z=%.3e: %s", z0, exc)
            return STATUS_RECOVERABLE
        return STATUS_OK

    def eval_resid(
        self,
        z: float,
        delta_z: float,
        y: np.ndarray,
        ydot: np.ndarray,
        resid: np.ndarray,
        eval_type: EvalType | str = EvalType.BASE,
        param_id: int = -1,
        param_delta: float = 0.0,
    ) -> int:
        """Evaluate ``F(z, y, y')`` into ``resid``.

        ``param_id`` and ``param_delta`` perturb one registered sensitivity
        parameter for this evaluation only; the perturbation is undone before
        returning, whatever the outcome.  Numerical trouble is reported as
        :data:`STATUS_RECOVERABLE` so the driver can retry with a smaller
        step.
        """

        key = EvalType(eval_type).value
        self.evaluations[key] += 1
        try:
            T = self._set_state(z, y)
            with self._sens.perturbed(param_id, param_delta):
                self._assemble(T, y, ydot, resid)
        except _PROVIDER_ERRORS as exc:
            logger.debug("Residual evaluation failed at z=%.6e (%s): %s", z, key, exc)
            return STATUS_RECOVERABLE
        return STATUS_OK

    def eval_quad_rhs(
        self, z: float, y: np.ndarray, ydot: np.ndarray, rhs_q: np.ndarray
    ) -> int:
        """Net rates of progress of all reactions as the quadrature integrand.

        Gas reactions come first (kmol/m3/s), then each surface's reactions
        scaled by the catalyst area per volume.
        """

        try:
            self._set_state(z, y)
            n = self._gas.n_reactions
            rhs_q[:n] = self._gas.net_rates_of_progress
            for surface in self._surfaces:
                m = surface.n_reactions
                rhs_q[n : n + m] = self._cat_abyv * surface.net_rates_of_progress
                n += m
        except _PROVIDER_ERRORS as exc:
            logger.debug("Quadrature evaluation failed at z=%.6e: %s", z, exc)
            return STATUS_RECOVERABLE
        return STATUS_OK

    @property
    def n_quad(self) -> int:
        return self._gas.n_reactions + sum(s.n_reactions for s in self._surfaces)

    def quadrature_names(self) -> List[str]:
        names = [f"gas: {label}" for label in self._gas.reaction_labels()]
        for i, surface in enumerate(self._surfaces):
            names.extend(f"surface {i}: {label}" for label in surface.reaction_labels())
        return names

    def eval_surfaces(self) -> float:
        """Query surface rates at the current state.

        Caches the gas-species source from all surfaces (kmol/m3/s) and the
        coverage production rates, and returns the mass transferred from the
        surfaces to the gas per unit volume (kg/m3/s).
        """

        self._sdot[:] = 0.0
        for j, surface in enumerate(self._surfaces):
            self._sdot += self._cat_abyv * np.asarray(surface.gas_production_rates)
            self._coverage_rates[j] = np.asarray(surface.coverage_production_rates, dtype=float)
        return float(np.dot(self._W, self._sdot))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _set_state(self, z: float, y: np.ndarray) -> float:
        layout = self._layout
        u, rho, P = y[0], y[1], y[2]
        T = y[3] if self._energy else self.get_t(z)
        if not (u > 0.0 and rho > 0.0 and P > 0.0 and T > 0.0):
            raise _NonPhysicalState(
                f"non-physical state u={u:.3e}, rho={rho:.3e}, P={P:.3e}, T={T:.3e}"
            )
        self._gas.set_state(T, P, y[layout.gas_slice])
        for surface, (start, stop) in zip(self._surfaces, layout.surface_blocks):
            theta = y[start:stop]
            if np.any(theta < -COVERAGE_TOLERANCE) or np.any(theta > 1.0 + COVERAGE_TOLERANCE):
                raise _NonPhysicalState("coverage outside [0, 1]")
            surface.set_state(T, P, theta)
        return T

    def _assemble(self, T: float, y: np.ndarray, ydot: np.ndarray, resid: np.ndarray) -> None:
        layout = self._layout
        gas = self._gas
        u, rho = y[0], y[1]
        dudz, drhodz, dPdz = ydot[0], ydot[1], ydot[2]
        Y = y[layout.gas_slice]
        dYdz = ydot[layout.gas_slice]

        self._wdot[:] = gas.net_production_rates
        Ts = self.eval_surfaces()
        omega = self._W * (self._wdot + self._sdot)  # kg/m3/s

        resid[0] = (u * drhodz + rho * dudz - Ts) / self._rho_ref
        resid[1] = rho * u * dudz + dPdz + u * Ts
        resid[2] = gas.density - rho

        if self._energy:
            hk = gas.partial_molar_enthalpies
            heat_release = float(np.dot(hk, omega / self._W))
            for surface, rates in zip(self._surfaces, self._coverage_rates):
                heat_release += self._cat_abyv * float(
                    np.dot(surface.partial_molar_enthalpies, rates)
                )
            q_wall = self.get_heat(T) if self._heat else 0.0
            resid[3] = rho * u * gas.cp_mass * ydot[3] + heat_release - q_wall

        resid[layout.gas_slice] = rho * u * dYdz + Y * Ts - omega
        resid[layout.gas_closure] = Y.sum() - 1.0

        for surface, rates, (start, stop), closure in zip(
            self._surfaces, self._coverage_rates, layout.surface_blocks, layout.surface_closures
        ):
            resid[start:stop] = rates / surface.site_density
            resid[closure] = y[start:stop].sum() - 1.0

        if not np.all(np.isfinite(resid[: layout.neq])):
            raise FloatingPointError("non-finite residual")
