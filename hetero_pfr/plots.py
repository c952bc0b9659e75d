"""Plotting helpers for PFR axial profiles."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np

from .solver import PFR1dResult

plt.rcParams["axes.prop_cycle"] = plt.cycler(
    color=[
        "#1f77b4",
        "#ff7f0e",
        "#2ca02c",
        "#d62728",
        "#9467bd",
        "#8c564b",
    ]
)


def plot_axial_profiles(
    result: PFR1dResult,
    species: Sequence[str],
    out_path: Path,
) -> None:
    fig, ax = plt.subplots(1, 2, figsize=(11, 4), dpi=150)
    z_mm = result.z * 1e3
    if "Temperature" in result.state_names:
        ax[0].plot(z_mm, result.profile("Temperature"), label="T", linewidth=2)
        ax[0].set_ylabel("Temperature (K)")
        ax[0].set_title("Axial temperature")
    else:
        ax[0].plot(z_mm, result.profile("Velocity"), label="u", linewidth=2)
        ax[0].set_ylabel("Velocity (m/s)")
        ax[0].set_title("Axial velocity")
    ax[0].set_xlabel("Axial position (mm)")
    ax[0].grid(True, alpha=0.3)

    for specie in species:
        if specie not in result.gas_names:
            continue
        ax[1].plot(z_mm, result.profile(specie), label=specie, linewidth=2)
    ax[1].set_xlabel("Axial position (mm)")
    ax[1].set_ylabel("Mass fraction")
    ax[1].legend(ncol=2, fontsize=8)
    ax[1].set_title("Gas species profiles")

    fig.tight_layout()
    fig.savefig(out_path)
    plt.close(fig)


def plot_coverages(result: PFR1dResult, out_path: Path, threshold: float = 1e-3) -> None:
    fig, ax = plt.subplots(figsize=(6, 4), dpi=150)
    z_mm = result.z * 1e3
    coverages = result.coverages
    for i, name in enumerate(result.surface_names):
        series = coverages[:, i]
        if np.max(series) < threshold:
            continue
        ax.plot(z_mm, series, label=name)
    ax.set_xlabel("Axial position (mm)")
    ax.set_ylabel("Coverage")
    ax.set_ylim(0.0, 1.0)
    ax.grid(True, alpha=0.3)
    ax.legend(frameon=False, fontsize=8, ncol=2)
    fig.tight_layout()
    fig.savefig(out_path)
    plt.close(fig)
