"""CLI for running a 1-D heterogeneous plug-flow reactor simulation."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Sequence

from .configuration import ConfigurationError, load_reactor_definition
from .runner import run_1d_reactor
from .solver import IntegrationBailout

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run a steady 1-D plug-flow reactor with gas and surface chemistry."
    )
    parser.add_argument(
        "definition",
        help="Default reactor name (e.g. pt_methane_isothermal) or YAML/JSON definition file.",
    )
    parser.add_argument(
        "--out", type=Path, default=Path("results"), help="Output directory."
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Write axial profile and coverage plots next to the tables.",
    )
    parser.add_argument(
        "--species",
        default="CH4,O2,CO2,H2O",
        help="Comma-separated gas species to plot.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    out_dir = args.out
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        definition = load_reactor_definition(args.definition)
        result = run_1d_reactor(definition, output_dir=out_dir)
    except ConfigurationError as exc:
        logger.error("Invalid reactor definition: %s", exc)
        return 2
    except IntegrationBailout as exc:
        logger.warning("Integration stopped (%s): %s", exc.reason, exc)
        (out_dir / "diagnostics.json").write_text(
            json.dumps({"reason": exc.reason, **exc.diagnostics}, indent=2)
        )
        return 1

    (out_dir / "diagnostics.json").write_text(json.dumps(result.diagnostics, indent=2))
    if args.plot:
        from .plots import plot_axial_profiles, plot_coverages

        species = [name.strip() for name in args.species.split(",") if name.strip()]
        plot_axial_profiles(result, species, out_dir / "axial_profiles.png")
        if result.surface_names:
            plot_coverages(result, out_dir / "coverages.png")
    outlet = result.states[-1]
    logger.info(
        "Outlet state: %s",
        {name: float(value) for name, value in zip(result.state_names, outlet)},
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
