"""Steady 1-D plug-flow reactor with coupled gas and surface chemistry."""

from .configuration import (
    ConfigurationError,
    HeatTransfer,
    InletGas,
    ReactorDefinition,
    SensitivitySettings,
    SolverSettings,
    load_reactor_definition,
)
from .pfr import PFR1d, EvalType, STATUS_FAILED, STATUS_OK, STATUS_RECOVERABLE
from .profile import TemperatureProfile
from .providers import CanteraGas, CanteraSurface, GasProvider, SurfaceProvider
from .runner import run_1d_reactor
from .sensitivity import SensitivityParameter, SensitivityRegistry
from .solver import IntegrationBailout, PFR1dResult, PFR1dSolver

__all__ = [
    "ConfigurationError",
    "HeatTransfer",
    "InletGas",
    "ReactorDefinition",
    "SensitivitySettings",
    "SolverSettings",
    "load_reactor_definition",
    "PFR1d",
    "EvalType",
    "STATUS_OK",
    "STATUS_RECOVERABLE",
    "STATUS_FAILED",
    "TemperatureProfile",
    "GasProvider",
    "SurfaceProvider",
    "CanteraGas",
    "CanteraSurface",
    "SensitivityParameter",
    "SensitivityRegistry",
    "PFR1dSolver",
    "PFR1dResult",
    "IntegrationBailout",
    "run_1d_reactor",
]
