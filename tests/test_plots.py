import matplotlib

matplotlib.use("Agg")

from hetero_pfr.pfr import PFR1d
from hetero_pfr.plots import plot_axial_profiles, plot_coverages
from hetero_pfr.solver import PFR1dSolver


def test_profile_plots_are_written(tmp_path, toy_gas, toy_surface):
    reactor = PFR1d(toy_gas, [toy_surface], area=1e-4, cat_abyv=100.0, velocity=0.5)
    result = PFR1dSolver(reactor).solve(0.01)
    plot_axial_profiles(result, ["A", "B", "missing"], tmp_path / "profiles.png")
    plot_coverages(result, tmp_path / "coverages.png")
    assert (tmp_path / "profiles.png").stat().st_size > 0
    assert (tmp_path / "coverages.png").stat().st_size > 0
