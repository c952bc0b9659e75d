"""End-to-end integration of the toy PFR with the IDA driver."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from hetero_pfr.pfr import PFR1d
from hetero_pfr.solver import IntegrationBailout, PFR1dSolver

GAS_CONSTANT = 8314.46261815324


def _solve(gas, surfaces, length=0.1, energy=False, cat_abyv=100.0, **options):
    reactor = PFR1d(gas, list(surfaces), area=1e-4, cat_abyv=cat_abyv, velocity=0.5)
    if energy:
        reactor.set_energy(1)
    solver = PFR1dSolver(reactor, **options)
    return reactor, solver, solver.solve(length)


def test_isothermal_conversion_matches_closed_form(toy_gas, toy_surface):
    _, _, result = _solve(toy_gas, [toy_surface])
    y_a = result.profile("A")
    assert result.z[-1] == pytest.approx(0.1)
    assert np.all(np.diff(y_a) <= 0.0)
    # constant density and velocity: Y_A = Y_A0 exp(-k z / u)
    expected = 0.1 * np.exp(-5.0 * result.z / 0.5)
    np.testing.assert_allclose(y_a, expected, rtol=1e-4)
    assert result.profile("B")[-1] == pytest.approx(0.1 - expected[-1], rel=1e-4)
    assert result.diagnostics["accepted"] < 1000


def test_mass_fraction_and_coverage_closure(toy_gas, toy_surface):
    _, _, result = _solve(toy_gas, [toy_surface])
    assert np.max(np.abs(result.gas_mass_fractions.sum(axis=1) - 1.0)) < 1e-10
    assert np.max(np.abs(result.coverages.sum(axis=1) - 1.0)) < 1e-10


def test_inert_reactor_stays_flat(inert_gas, inert_surface):
    _, _, result = _solve(inert_gas, [inert_surface], cat_abyv=0.0)
    inlet = result.states[0]
    assert np.allclose(result.states, inlet, rtol=1e-10, atol=1e-12)

    rho = result.profile("Density")
    pressure = result.profile("Pressure")
    mean_w = 1.0 / (result.gas_mass_fractions / np.array([32.0, 32.0, 28.0])).sum(axis=1)
    assert rho == pytest.approx(pressure * mean_w / (GAS_CONSTANT * 800.0), rel=1e-12)


def test_adiabatic_run_conserves_enthalpy_and_mass_flux(toy_gas):
    _, _, result = _solve(toy_gas, [], energy=True)
    temperature = result.profile("Temperature")
    assert np.all(np.diff(temperature) >= 0.0)
    assert temperature[-1] > temperature[0] + 10.0

    mass_flux = result.profile("Density") * result.profile("Velocity")
    assert mass_flux[-1] == pytest.approx(mass_flux[0], rel=1e-3)

    def enthalpy(row):
        toy_gas.set_state(row[3], row[2], row[4:7])
        return toy_gas.enthalpy_mass

    h_in = enthalpy(result.states[0])
    h_out = enthalpy(result.states[-1])
    assert h_out == pytest.approx(h_in, abs=2e3)


def test_wall_heating_approaches_external_temperature(inert_gas):
    reactor = PFR1d(inert_gas, [], area=1e-4, cat_abyv=0.0, velocity=0.5)
    reactor.set_energy(1)
    reactor.set_heat_transfer(htc=100.0, t_ext=900.0, wall_abyv=400.0)
    result = PFR1dSolver(reactor).solve(0.1)
    temperature = result.profile("Temperature")
    assert np.all(np.diff(temperature) >= -1e-3)
    assert temperature[-1] == pytest.approx(900.0, abs=0.5)
    assert temperature.max() <= 900.0 + 1e-3


def test_quadrature_accumulates_rates_of_progress(toy_gas, toy_surface):
    _, _, result = _solve(toy_gas, [toy_surface], quadrature=True)
    assert result.quadrature_names[0] == "gas: A => B"
    assert result.quadrature.shape == (result.z.size, 3)
    assert np.all(result.quadrature[0] == 0.0)
    # isothermal: rho u Y_B(z) = W_B * integral of the rate of progress
    mass_flux = result.profile("Density")[-1] * result.profile("Velocity")[-1]
    y_b = result.profile("B")[-1]
    assert result.quadrature[-1, 0] == pytest.approx(y_b * mass_flux / 32.0, rel=1e-3)


def test_reaction_sensitivity_matches_closed_form(toy_gas, toy_surface):
    reactor = PFR1d(toy_gas, [toy_surface], area=1e-4, cat_abyv=100.0, velocity=0.5)
    reactor.add_sensitivity_reaction("A => B")
    result = PFR1dSolver(reactor).solve(0.1)

    assert result.sensitivity_names == ["A => B"]
    assert result.sensitivities.shape == (result.z.size, reactor.neq, 1)
    a = result.variable_names.index("A")
    expected = -5.0 * 0.1 / 0.5 * result.profile("A")[-1]
    assert result.sensitivities[-1, a, 0] == pytest.approx(expected, rel=1e-3)
    assert toy_gas.multiplier(0) == 1.0
    assert reactor.sensitivity.active == []


def test_enthalpy_sensitivity_sign(toy_gas):
    reactor = PFR1d(toy_gas, [], area=1e-4, cat_abyv=0.0, velocity=0.5)
    reactor.set_energy(1)
    reactor.add_sensitivity_species("B")
    result = PFR1dSolver(reactor).solve(0.05)
    t_index = result.variable_names.index("Temperature")
    # a less stable product releases less heat
    assert result.sensitivities[-1, t_index, 0] < 0.0
    assert toy_gas.enthalpy_offset(1) == 0.0


def test_step_limit_raises_bailout(toy_gas, toy_surface):
    reactor = PFR1d(toy_gas, [toy_surface], area=1e-4, cat_abyv=100.0, velocity=0.5)
    solver = PFR1dSolver(reactor, max_steps=5)
    with pytest.raises(IntegrationBailout) as info:
        solver.solve(1.0)
    assert info.value.reason == "max_steps"
    assert info.value.diagnostics["accepted"] == 5


def test_results_table(tmp_path, toy_gas, toy_surface):
    reactor = PFR1d(toy_gas, [toy_surface], area=1e-4, cat_abyv=100.0, velocity=0.5)
    reactor.add_sensitivity_reaction("A => B")
    solver = PFR1dSolver(reactor)
    result = solver.solve(0.02)

    frame = result.to_dataframe()
    assert list(frame.columns) == ["z", *reactor.variable_names()]
    assert result.diagnostics["status"] == "ok"
    assert result.diagnostics["accepted"] == result.z.size - 1

    path = solver.write_results(tmp_path / "1d_pfr.out")
    table = pd.read_csv(path, sep="\t")
    assert table["A"].iloc[-1] == pytest.approx(result.profile("A")[-1], rel=1e-8)

    sens_path = solver.write_sensitivity(tmp_path / "1d_pfr_sensitivity.out")
    sens = pd.read_csv(sens_path, sep="\t")
    assert "d[A]/d[A => B]" in sens.columns


def test_failing_perturbed_residual_raises_bailout(toy_gas, monkeypatch):
    reactor = PFR1d(toy_gas, [], area=1e-4, cat_abyv=0.0, velocity=0.5)
    reactor.add_sensitivity_reaction("A => B")

    def refuse(i, value):
        raise RuntimeError("multiplier is locked")

    monkeypatch.setattr(toy_gas, "set_multiplier", refuse)
    with pytest.raises(IntegrationBailout) as info:
        PFR1dSolver(reactor).solve(0.01)
    assert info.value.reason == "sensitivity"
    assert info.value.diagnostics["accepted"] > 0


def test_sensitivity_columns_can_be_disabled(toy_gas, toy_surface):
    reactor = PFR1d(toy_gas, [toy_surface], area=1e-4, cat_abyv=100.0, velocity=0.5)
    reactor.add_sensitivity_reaction("A => B")
    result = PFR1dSolver(reactor, sensitivity=False).solve(0.02)
    assert result.sensitivities is None
    assert reactor.evaluations["sensitivity"] == 0
