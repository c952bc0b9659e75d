"""Dataclasses and loaders for 1-D PFR reactor definitions."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Mapping, MutableMapping, Sequence, Tuple

import json

import yaml

from .data.defaults import DEFAULT_SOLVER, REACTOR_DEFAULTS

MODES = ("isothermal", "tprofile", "adiabatic", "heat")


class ConfigurationError(ValueError):
    """Raised when a reactor cannot be set up from the supplied inputs."""


@dataclass
class InletGas:
    temperature_K: float
    pressure_Pa: float
    composition: str | Mapping[str, float]
    velocity_m_per_s: float | None = None
    mass_flow_rate_kg_per_s: float | None = None

    def __post_init__(self) -> None:
        has_velocity = self.velocity_m_per_s is not None
        has_mfr = self.mass_flow_rate_kg_per_s is not None
        if has_velocity == has_mfr:
            raise ConfigurationError(
                "Inlet gas needs exactly one of velocity_m_per_s or mass_flow_rate_kg_per_s"
            )
        if self.temperature_K <= 0 or self.pressure_Pa <= 0:
            raise ConfigurationError("Inlet temperature and pressure must be positive")


@dataclass
class HeatTransfer:
    htc_W_m2K: float
    external_temperature_K: float
    wall_abyv: float


@dataclass
class SolverSettings:
    atol: float = DEFAULT_SOLVER["atol"]
    rtol: float = DEFAULT_SOLVER["rtol"]
    max_steps: int = DEFAULT_SOLVER["max_steps"]
    first_step: float | None = None
    max_step: float | None = None
    quadrature: bool = False
    timeout: float | None = None


@dataclass
class SensitivitySettings:
    reactions: Sequence[str] = field(default_factory=list)
    species: Sequence[str] = field(default_factory=list)
    reaction_delta: float = 1e-2
    enthalpy_delta: float = 1e4

    @property
    def enabled(self) -> bool:
        return bool(self.reactions) or bool(self.species)


@dataclass
class ReactorDefinition:
    """Everything needed to set up and run one PFR simulation."""

    name: str
    mechanism: str
    gas_phase: str | None
    surface_phases: Sequence[str]
    area: float
    length: float
    cat_abyv: float
    inlet: InletGas
    mode: str = "isothermal"
    temperature_profile: List[Tuple[float, float]] = field(default_factory=list)
    heat_transfer: HeatTransfer | None = None
    solver: SolverSettings = field(default_factory=SolverSettings)
    sensitivity: SensitivitySettings = field(default_factory=SensitivitySettings)

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ConfigurationError(f"Unknown reactor mode '{self.mode}'; expected one of {MODES}")
        if self.area <= 0:
            raise ConfigurationError("Reactor cross-sectional area must be positive")
        if self.length <= 0:
            raise ConfigurationError("Reactor length must be positive")
        if self.cat_abyv < 0:
            raise ConfigurationError("Catalyst area per volume must be non-negative")
        if self.mode == "tprofile" and not self.temperature_profile:
            raise ConfigurationError("Mode 'tprofile' requires a temperature profile")
        if self.mode == "heat" and self.heat_transfer is None:
            raise ConfigurationError("Mode 'heat' requires heat transfer parameters")

    @property
    def energy(self) -> bool:
        return self.mode in ("adiabatic", "heat")


def load_reactor_definition(source: str | Path | Mapping[str, object]) -> ReactorDefinition:
    """Load a reactor definition by default name, YAML/JSON path, or mapping."""

    if isinstance(source, Mapping):
        data = deepcopy(dict(source))
    else:
        data = _load_mapping(source)
    name = str(data.get("name", source if isinstance(source, str) else "custom"))

    reactor = data.get("reactor")
    if not isinstance(reactor, Mapping):
        raise ConfigurationError("Reactor definition lacks a 'reactor' section")
    for key in ("area", "length"):
        if reactor.get(key) is None:
            raise ConfigurationError(f"Reactor definition lacks '{key}'")
    inlet_data = data.get("inlet_gas")
    if not isinstance(inlet_data, Mapping):
        raise ConfigurationError("Reactor definition lacks an 'inlet_gas' section")
    if "mechanism" not in data:
        raise ConfigurationError("Reactor definition lacks 'mechanism'")

    heat = reactor.get("heat_transfer")
    sens = data.get("sensitivity") or {}
    profile = reactor.get("temperature_profile") or []
    if isinstance(profile, Mapping):
        profile = list(profile.items())

    return ReactorDefinition(
        name=name,
        mechanism=str(data["mechanism"]),
        gas_phase=data.get("gas_phase"),
        surface_phases=list(data.get("surface_phases") or []),
        area=float(reactor["area"]),
        length=float(reactor["length"]),
        cat_abyv=float(reactor.get("cat_abyv", 0.0)),
        inlet=_section(InletGas, inlet_data, "inlet_gas"),
        mode=str(reactor.get("mode", "isothermal")),
        temperature_profile=[(float(z), float(T)) for z, T in profile],
        heat_transfer=_section(HeatTransfer, heat, "heat_transfer") if heat else None,
        solver=_section(SolverSettings, data.get("solver") or {}, "solver"),
        sensitivity=_section(SensitivitySettings, sens, "sensitivity"),
    )


def _section(cls, data: object, section: str):
    """Build the dataclass ``cls`` from one definition section."""

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Section '{section}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(str(key) for key in data if key not in known)
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in '{section}': {', '.join(unknown)}")
    try:
        return cls(**data)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid '{section}' section: {exc}") from exc


def _load_mapping(source: str | Path) -> MutableMapping[str, object]:
    if isinstance(source, str) and source in REACTOR_DEFAULTS:
        return deepcopy(REACTOR_DEFAULTS[source]) | {"name": source}
    path = Path(source)
    if not path.exists():
        raise ConfigurationError(f"Reactor definition '{source}' not found")
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() == ".json":
            data: Dict[str, object] = json.load(handle)
        else:
            data = yaml.safe_load(handle) or {}
    if "name" not in data:
        data["name"] = path.stem
    return data
