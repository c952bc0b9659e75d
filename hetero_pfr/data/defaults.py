"""Default reactor definitions and solver settings."""

from __future__ import annotations

from typing import Dict

DEFAULT_SOLVER = {
    "atol": 1e-10,
    "rtol": 1e-6,
    "max_steps": 30000,
}

# Methane oxidation over platinum with the ptcombust mechanism shipped with
# Cantera.  Geometry follows a 1 cm^2 channel, 1 cm long.
REACTOR_DEFAULTS: Dict[str, Dict[str, object]] = {
    "pt_methane_isothermal": {
        "mechanism": "ptcombust.yaml",
        "gas_phase": "gas",
        "surface_phases": ["Pt_surf"],
        "reactor": {
            "mode": "isothermal",
            "area": 1.0e-4,
            "length": 1.0e-2,
            "cat_abyv": 200.0,
        },
        "inlet_gas": {
            "temperature_K": 900.0,
            "pressure_Pa": 101325.0,
            "composition": "CH4:0.095, O2:0.21, AR:0.695",
            "velocity_m_per_s": 0.3,
        },
        "solver": dict(DEFAULT_SOLVER),
    },
    "pt_methane_adiabatic": {
        "mechanism": "ptcombust.yaml",
        "gas_phase": "gas",
        "surface_phases": ["Pt_surf"],
        "reactor": {
            "mode": "adiabatic",
            "area": 1.0e-4,
            "length": 1.0e-2,
            "cat_abyv": 200.0,
        },
        "inlet_gas": {
            "temperature_K": 900.0,
            "pressure_Pa": 101325.0,
            "composition": "CH4:0.095, O2:0.21, AR:0.695",
            "mass_flow_rate_kg_per_s": 1.4e-5,
        },
        "solver": dict(DEFAULT_SOLVER),
    },
}
