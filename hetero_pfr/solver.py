"""SUNDIALS IDA driver marching the PFR residual model along the reactor."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import numpy as np
import pandas as pd
import sksundae as sun

from .pfr import STATUS_OK, EvalType, PFR1d

logger = logging.getLogger(__name__)

__all__ = ["IntegrationBailout", "IntegrationMonitor", "PFR1dResult", "PFR1dSolver"]

DEFAULT_MAX_STEPS = 30000


class IntegrationBailout(RuntimeError):
    """Raised when the PFR integration exceeds safety limits."""

    def __init__(self, message: str, reason: str, diagnostics: dict[str, float | int | str]):
        super().__init__(message)
        self.reason = reason
        self.diagnostics = diagnostics


@dataclass
class IntegrationMonitor:
    """Step statistics and safety limits of one integration run."""

    start_time: float
    timeout: float
    reject_limit: int
    max_steps: int
    accepted: int = 0
    residual_failures: int = 0
    sensitivity_runs: int = 0
    last_z: float = 0.0
    last_step: float = 0.0
    termination_reason: str | None = None

    def check_timeout(self) -> None:
        if self.timeout <= 0:
            return
        if time.perf_counter() - self.start_time > self.timeout:
            self.fail("PFR integration aborted due to timeout", "timeout")

    def check_steps(self) -> None:
        if self.max_steps and self.accepted >= self.max_steps:
            self.fail(
                f"PFR integration reached the maximum of {self.max_steps} steps "
                f"at z={self.last_z:.6e}",
                "max_steps",
            )

    def note_rejection(self) -> None:
        self.residual_failures += 1

    def check_rejections(self) -> None:
        if self.reject_limit and self.residual_failures > self.reject_limit:
            self.fail(
                "PFR integration aborted after excessive rejected trial states", "reject_limit"
            )

    def note_accept(self, z: float, h: float) -> None:
        self.accepted += 1
        self.last_z = z
        self.last_step = h

    def snapshot(self) -> dict[str, float | int | str]:
        return {
            "accepted": self.accepted,
            "residual_failures": self.residual_failures,
            "sensitivity_runs": self.sensitivity_runs,
            "last_z": self.last_z,
            "last_step": self.last_step,
            "elapsed_s": time.perf_counter() - self.start_time,
        }

    def fail(self, message: str, reason: str) -> None:
        self.termination_reason = reason
        logger.warning("%s", message)
        raise IntegrationBailout(message, reason, self.snapshot())


@dataclass
class PFR1dResult:
    """Axial profiles reported by :class:`PFR1dSolver`."""

    z: np.ndarray
    states: np.ndarray
    variable_names: List[str]
    state_names: List[str]
    gas_names: List[str]
    surface_names: List[str]
    quadrature: np.ndarray | None = None
    quadrature_names: List[str] = field(default_factory=list)
    sensitivities: np.ndarray | None = None
    sensitivity_names: List[str] = field(default_factory=list)
    diagnostics: Dict[str, float | int | str] = field(default_factory=dict)

    def profile(self, name: str) -> np.ndarray:
        return self.states[:, self.variable_names.index(name)]

    @property
    def gas_mass_fractions(self) -> np.ndarray:
        start = len(self.state_names)
        return self.states[:, start : start + len(self.gas_names)]

    @property
    def coverages(self) -> np.ndarray:
        start = len(self.state_names) + len(self.gas_names)
        return self.states[:, start:]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            np.column_stack([self.z, self.states]),
            columns=["z", *self.variable_names],
        )

    def quadrature_dataframe(self) -> pd.DataFrame:
        if self.quadrature is None:
            raise ValueError("Quadrature was not computed for this run")
        return pd.DataFrame(
            np.column_stack([self.z, self.quadrature]),
            columns=["z", *self.quadrature_names],
        )

    def sensitivity_dataframe(self) -> pd.DataFrame:
        if self.sensitivities is None:
            raise ValueError("Sensitivities were not computed for this run")
        data = {"z": self.z}
        for p, param in enumerate(self.sensitivity_names):
            for i, var in enumerate(self.variable_names):
                data[f"d[{var}]/d[{param}]"] = self.sensitivities[:, i, p]
        return pd.DataFrame(data)


class PFR1dSolver:
    """Drive :class:`PFR1d` with the variable-order BDF solver IDA.

    The residual model is handed to ``sksundae.ida.IDA`` as
    ``F(z, y, y') = 0``.  Algebraic variables and sign constraints come from
    the model's state layout.  Quadratures are appended to the system as
    differential rows ``q' - rates(z, y) = 0``.  Sensitivities are central
    differences of two runs per parameter, each evaluating the residual with
    that parameter perturbed and reported on the accepted base grid.

    A rejected trial state fills the residual with NaN, which IDA treats as
    a recoverable convergence failure and retries with a smaller step.
    """

    def __init__(
        self,
        reactor: PFR1d,
        rtol: float = 1e-6,
        atol: float | np.ndarray = 1e-10,
        max_steps: int = DEFAULT_MAX_STEPS,
        first_step: float | None = None,
        max_step: float | None = None,
        quadrature: bool = False,
        sensitivity: bool | None = None,
        timeout: float | None = None,
        reject_limit: int | None = None,
    ) -> None:
        self.reactor = reactor
        self.rtol = float(rtol)
        self.atol = atol
        self.max_steps = int(max_steps)
        self.first_step = first_step
        self.max_step = max_step
        self.quadrature = quadrature
        self.sensitivity = sensitivity
        self.timeout = timeout
        self.reject_limit = reject_limit
        self._result: PFR1dResult | None = None

    def set_tolerances(self, rtol: float, atol: float | np.ndarray) -> None:
        self.rtol = float(rtol)
        self.atol = atol

    def set_max_num_steps(self, max_steps: int) -> None:
        self.max_steps = int(max_steps)

    @property
    def result(self) -> PFR1dResult:
        if self._result is None:
            raise RuntimeError("solve() has not been run")
        return self._result

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def solve(self, length: float, z0: float = 0.0) -> PFR1dResult:
        model = self.reactor
        n = model.neq
        length = float(length)
        if length <= z0:
            raise ValueError("Reactor length must exceed the starting position")

        monitor = IntegrationMonitor(
            start_time=time.perf_counter(),
            timeout=max(float(self.timeout or 0.0), 0.0),
            reject_limit=max(int(self.reject_limit or 0), 0),
            max_steps=self.max_steps,
        )
        y0 = np.zeros(n)
        yp0 = np.zeros(n)
        if model.get_initial_conditions(z0, y0, yp0) != STATUS_OK:
            monitor.fail("Failed to compute consistent initial conditions", "initial_conditions")

        n_quad = model.n_quad if self.quadrature else 0
        n_sens = model.n_sens_params() if self.sensitivity is not False else 0
        if n_quad:
            rates = np.zeros(n_quad)
            if model.eval_quad_rhs(z0, y0, yp0, rates) != STATUS_OK:
                monitor.fail("Quadrature integrand failed at the inlet", "initial_conditions")
            y0 = np.concatenate([y0, np.zeros(n_quad)])
            yp0 = np.concatenate([yp0, rates])

        solver = self._build(self._residual(monitor, n_quad), n_quad)
        soln = solver.init_step(z0, y0, yp0)
        if not soln.success:
            monitor.fail(
                f"IDA could not start the integration: {soln.message}", "initial_conditions"
            )
        z, y, yp = _unpack(soln)

        zs = [z]
        ys = [y.copy()]
        while length - z > 1e-12 * max(abs(length), 1.0):
            monitor.check_timeout()
            monitor.check_steps()
            soln = solver.step(length, method="onestep", tstop=length)
            monitor.check_rejections()
            if not soln.success:
                monitor.fail(
                    f"IDA failed after z={monitor.last_z:.6e}: {soln.message}", "step_failure"
                )
            z_new, y, yp = _unpack(soln)
            monitor.note_accept(z_new, z_new - z)
            z = z_new
            zs.append(z)
            ys.append(y.copy())

        states = np.vstack(ys)
        sensitivities = None
        if n_sens:
            sensitivities = self._sensitivities(np.asarray(zs), ys[0][:n], yp0[:n], monitor)

        # leave the providers at the last accepted state
        model.eval_resid(z, monitor.last_step, y[:n], yp[:n], np.zeros(n))

        diagnostics: Dict[str, float | int | str] = {"status": "ok", **monitor.snapshot()}
        diagnostics["residual_evaluations"] = sum(model.evaluations.values())
        logger.info(
            "PFR run finished: z=%.4e steps=%d rejected trial states=%d",
            z,
            monitor.accepted,
            monitor.residual_failures,
        )
        self._result = PFR1dResult(
            z=np.asarray(zs),
            states=states[:, :n],
            variable_names=model.variable_names(),
            state_names=model.state_variable_names(),
            gas_names=model.gas_variable_names(),
            surface_names=model.surface_variable_names(),
            quadrature=states[:, n:] if n_quad else None,
            quadrature_names=model.quadrature_names() if n_quad else [],
            sensitivities=sensitivities,
            sensitivity_names=model.sensitivity_names() if n_sens else [],
            diagnostics=diagnostics,
        )
        return self._result

    def write_results(self, path: str | Path) -> Path:
        """Write the axial profiles as a tab-separated table."""

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.result.to_dataframe().to_csv(path, sep="\t", index=False, float_format="%.10e")
        return path

    def write_sensitivity(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.result.sensitivity_dataframe().to_csv(
            path, sep="\t", index=False, float_format="%.10e"
        )
        return path

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build(self, resfn: Callable, n_quad: int) -> "sun.ida.IDA":
        model = self.reactor
        n = model.neq
        atol = np.broadcast_to(np.asarray(self.atol, dtype=float), (n,))
        if n_quad:
            atol = np.concatenate([atol, np.full(n_quad, float(atol.min()))])

        codes = model.constraints()
        constrained = np.flatnonzero(codes)
        options = dict(
            rtol=self.rtol,
            atol=np.array(atol),
            max_num_steps=self.max_steps,
            algebraic_idx=np.flatnonzero(~model.layout.differential_variables()),
            constraints_idx=constrained,
            constraints_type=codes[constrained],
            calc_initcond="yp0",
        )
        if self.first_step:
            options["first_step"] = float(self.first_step)
        if self.max_step:
            options["max_step"] = float(self.max_step)
        return sun.ida.IDA(resfn, **options)

    def _residual(
        self,
        monitor: IntegrationMonitor,
        n_quad: int = 0,
        eval_type: EvalType = EvalType.BASE,
        param_id: int = -1,
        param_delta: float = 0.0,
    ) -> Callable:
        model = self.reactor
        n = model.neq
        rates = np.zeros(n_quad)

        def resfn(z, y, yp, res) -> None:
            status = model.eval_resid(
                z, 0.0, y[:n], yp[:n], res[:n], eval_type,
                param_id=param_id, param_delta=param_delta,
            )
            if status == STATUS_OK and n_quad:
                status = model.eval_quad_rhs(z, y[:n], yp[:n], rates)
                res[n:] = yp[n:] - rates
            if status != STATUS_OK:
                monitor.note_rejection()
                res[:] = np.nan

        return resfn

    def _sensitivities(
        self, zs: np.ndarray, y0: np.ndarray, yp0: np.ndarray, monitor: IntegrationMonitor
    ) -> np.ndarray:
        """Central-difference sensitivities on the accepted grid ``zs``."""

        model = self.reactor
        n_sens = model.n_sens_params()
        sens = np.zeros((zs.size, model.neq, n_sens))
        for p in range(n_sens):
            delta = model.sensitivity[p].delta
            upper = self._perturbed_run(zs, y0, yp0, p, delta, monitor)
            lower = self._perturbed_run(zs, y0, yp0, p, -delta, monitor)
            sens[:, :, p] = (upper - lower) / (2.0 * delta)
        return sens

    def _perturbed_run(
        self,
        zs: np.ndarray,
        y0: np.ndarray,
        yp0: np.ndarray,
        param_id: int,
        delta: float,
        monitor: IntegrationMonitor,
    ) -> np.ndarray:
        model = self.reactor
        name = model.sensitivity[param_id].name
        resfn = self._residual(monitor, 0, EvalType.SENSITIVITY, param_id, delta)

        check = np.zeros(model.neq)
        status = model.eval_resid(
            zs[0], 0.0, y0, yp0, check, EvalType.SENSITIVITY, param_id=param_id, param_delta=delta
        )
        if status != STATUS_OK:
            monitor.fail(
                f"Residual with {name} perturbed by {delta:g} failed at the inlet", "sensitivity"
            )

        solver = self._build(resfn, 0)
        soln = solver.init_step(zs[0], y0, yp0)
        if not soln.success:
            monitor.fail(
                f"IDA could not start the run with {name} perturbed: {soln.message}", "sensitivity"
            )
        states = np.zeros((zs.size, model.neq))
        states[0] = _unpack(soln)[1]
        for i, z in enumerate(zs[1:], start=1):
            monitor.check_timeout()
            soln = solver.step(z, tstop=zs[-1])
            if not soln.success:
                monitor.fail(
                    f"IDA failed at z={z:.6e} with {name} perturbed: {soln.message}", "sensitivity"
                )
            states[i] = _unpack(soln)[1]
        monitor.sensitivity_runs += 1
        return states


def _unpack(soln) -> Tuple[float, np.ndarray, np.ndarray]:
    """Last position, state and derivative of an IDA step result."""

    t = float(np.ravel(soln.t)[-1])
    y = np.atleast_2d(soln.y)[-1].astype(float)
    yp = np.atleast_2d(soln.yp)[-1].astype(float)
    return t, y, yp
