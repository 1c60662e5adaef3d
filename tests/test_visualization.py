"""Smoke tests for the matplotlib plots."""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402

from tensor_streets.config import BasisFieldSpec, MapConfig, StreamlineParams, Viewport  # noqa: E402
from tensor_streets.generator import CityGenerator  # noqa: E402
from tensor_streets.vector import Vector  # noqa: E402
from tensor_streets.visualization import (  # noqa: E402
    plot_histogram,
    plot_map,
    plot_summary,
    plot_tensor_field,
)


@pytest.fixture(scope="module")
def generator():
    config = MapConfig(
        seed=2,
        viewport=Viewport(Vector(0.0, 0.0), Vector(200.0, 200.0)),
        basis_fields=[BasisFieldSpec(type="radial", x=100.0, y=100.0, size=300.0, decay=1.0)],
        main=StreamlineParams(dsep=80.0, dtest=40.0),
        major=StreamlineParams(dsep=40.0, dtest=20.0),
    )
    generator = CityGenerator(config)
    generator.generate_main_roads()
    generator.generate_major_roads()
    return generator


class TestPlots:
    """Figures render without errors."""

    def test_plot_map(self, generator):
        ax = plot_map(generator, show_intersections=True)
        assert ax.collections
        plt.close("all")

    def test_plot_tensor_field(self, generator):
        ax = plot_tensor_field(generator.tensor_field, generator.viewport, spacing=25.0)
        assert len(ax.collections) == 1
        plt.close("all")

    def test_plot_histogram(self):
        ax = plot_histogram((np.linspace(0, 10, 6), np.array([1, 2, 3, 2, 1])))
        assert len(ax.patches) == 5
        plt.close("all")

    def test_plot_summary_saves(self, generator, tmp_path):
        path = tmp_path / "map.png"
        fig = plot_summary(generator, save_path=str(path), dpi=50)

        assert path.exists()
        assert len(fig.axes) == 4
        plt.close(fig)
