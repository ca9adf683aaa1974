"""Tests for noise synthesis functions."""

import numpy as np
import pytest

from worldsynth.config import WarpConfig
from worldsynth.noise import (
    NoiseSeed,
    domain_warp,
    fbm,
    gradient_noise,
    make_permutation,
    make_rng,
    make_voronoi_points,
    ridge_noise,
    smoothstep,
    voronoi_noise,
)


@pytest.fixture
def grid():
    """Normalized 32x32 coordinate grid."""
    coords = np.arange(32, dtype=np.float64) / 32
    return np.meshgrid(coords, coords)


class TestRandomStreams:
    """Tests for seeded random streams."""

    def test_same_seed_and_stream_identical(self) -> None:
        """Same (seed, stream) yields identical draws."""
        a = make_rng(42, 1).random(10)
        b = make_rng(42, 1).random(10)
        np.testing.assert_array_equal(a, b)

    def test_streams_independent(self) -> None:
        """Different streams of one seed differ."""
        a = make_rng(42, 1).random(10)
        b = make_rng(42, 2).random(10)
        assert not np.array_equal(a, b)

    def test_negative_seed_accepted(self) -> None:
        """Negative 32-bit seeds map to a valid stream."""
        values = make_rng(-123, 0).random(3)
        assert values.shape == (3,)


class TestPermutation:
    """Tests for the permutation table."""

    def test_doubled_permutation(self) -> None:
        """Table is a 256-permutation repeated twice."""
        table = make_permutation(make_rng(1, 0))
        assert table.shape == (512,)
        assert sorted(table[:256]) == list(range(256))
        np.testing.assert_array_equal(table[:256], table[256:])

    def test_read_only(self) -> None:
        """Table cannot be modified."""
        table = make_permutation(make_rng(1, 0))
        with pytest.raises(ValueError):
            table[0] = 5

    def test_noise_seed_offsets_in_range(self) -> None:
        """Offsets are drawn from [0, 100)."""
        seed = NoiseSeed.from_rng(make_rng(9, 0))
        for offset in (seed.terrain_offset, seed.moisture_offset, seed.temperature_offset):
            assert all(0.0 <= v < 100.0 for v in offset)


class TestGradientNoise:
    """Tests for single-octave gradient noise."""

    def test_range(self, noise_seed) -> None:
        """Values lie in [0, 1]."""
        rng = np.random.default_rng(0)
        x = rng.uniform(-50, 50, 5000)
        z = rng.uniform(-50, 50, 5000)
        values = gradient_noise(noise_seed.permutation, x, z)
        assert values.min() >= 0.0
        assert values.max() <= 1.0

    def test_lattice_points_are_midpoint(self, noise_seed) -> None:
        """Integer lattice points evaluate to exactly 0.5."""
        x = np.array([0.0, 3.0, 17.0, -4.0])
        z = np.array([0.0, 5.0, 200.0, 9.0])
        np.testing.assert_array_equal(gradient_noise(noise_seed.permutation, x, z), 0.5)

    def test_deterministic(self, noise_seed) -> None:
        """Same inputs give identical outputs."""
        x = np.linspace(0, 10, 100)
        a = gradient_noise(noise_seed.permutation, x, x * 0.5)
        b = gradient_noise(noise_seed.permutation, x, x * 0.5)
        np.testing.assert_array_equal(a, b)

    def test_different_permutation_differs(self) -> None:
        """Different seeds produce different fields."""
        x = np.linspace(0.1, 10.3, 200)
        a = gradient_noise(make_permutation(make_rng(1, 0)), x, x * 0.7)
        b = gradient_noise(make_permutation(make_rng(2, 0)), x, x * 0.7)
        assert not np.allclose(a, b)


class TestFbm:
    """Tests for fractal Brownian motion."""

    def test_output_shape(self, noise_seed, grid) -> None:
        """Output matches the coordinate shape."""
        nx, nz = grid
        result = fbm(noise_seed.permutation, nx, nz, 4, 0.5, 2.0, 10.0)
        assert result.shape == (32, 32)

    def test_range(self, noise_seed, grid) -> None:
        """Values lie in [0, 1]."""
        nx, nz = grid
        result = fbm(noise_seed.permutation, nx, nz, 6, 0.5, 2.0, 50.0)
        assert result.min() >= 0.0
        assert result.max() <= 1.0

    def test_zero_persistence_is_single_octave(self, noise_seed, grid) -> None:
        """With persistence 0, fBm equals one octave of raw noise."""
        nx, nz = grid
        result = fbm(noise_seed.permutation, nx, nz, 5, 0.0, 2.0, 7.3)
        expected = gradient_noise(noise_seed.permutation, nx * 7.3, nz * 7.3)
        np.testing.assert_array_equal(result, expected)

    def test_more_octaves_more_detail(self, noise_seed, grid) -> None:
        """More octaves add higher-frequency variation."""
        nx, nz = grid
        low = fbm(noise_seed.permutation, nx, nz, 1, 0.5, 2.0, 4.0)
        high = fbm(noise_seed.permutation, nx, nz, 6, 0.5, 2.0, 4.0)
        assert np.abs(np.diff(high, axis=1)).mean() > np.abs(np.diff(low, axis=1)).mean()


class TestRidgeNoise:
    """Tests for ridge noise."""

    def test_range(self, noise_seed, grid) -> None:
        """Values lie in [0, 1]."""
        nx, nz = grid
        result = ridge_noise(noise_seed.permutation, nx, nz, 4, 10.0, 3.0)
        assert result.min() >= 0.0
        assert result.max() <= 1.0

    def test_lattice_points_are_crests(self, noise_seed) -> None:
        """Raw noise of 0.5 folds to the maximum ridge value."""
        x = np.array([1.0, 2.0])
        z = np.array([4.0, 8.0])
        result = ridge_noise(noise_seed.permutation, x, z, 1, 1.0, 1.0)
        np.testing.assert_array_equal(result, 1.0)


class TestDomainWarp:
    """Tests for recursive domain warping."""

    def test_zero_strength_is_identity(self, noise_seed, grid) -> None:
        """Strength 0 leaves coordinates unchanged."""
        nx, nz = grid
        wx, wz = domain_warp(
            noise_seed.permutation, nx, nz, WarpConfig(strength=0.0), 50.0, (3.0, 4.0)
        )
        np.testing.assert_array_equal(wx, nx)
        np.testing.assert_array_equal(wz, nz)

    def test_displacement_bounded(self, noise_seed, grid) -> None:
        """Displacement never exceeds 1.5 times the strength."""
        nx, nz = grid
        wx, wz = domain_warp(noise_seed.permutation, nx, nz, WarpConfig(strength=0.2), 50.0)
        assert np.all(wx - nx >= 0.0)
        assert np.all(wx - nx <= 0.3 + 1e-12)
        assert np.all(wz - nz <= 0.3 + 1e-12)

    def test_fine_weight_scales_second_level(self, noise_seed, grid) -> None:
        """With no second-level weight the displacement is the first field alone."""
        nx, nz = grid
        config = WarpConfig(strength=0.2, fine_weight=0.0)
        wx, wz = domain_warp(noise_seed.permutation, nx, nz, config, 50.0)
        first = fbm(
            noise_seed.permutation,
            nx,
            nz,
            config.octaves,
            config.persistence,
            config.lacunarity,
            50.0 * config.scale,
        )
        np.testing.assert_allclose(wx, nx + first * 0.2)


class TestVoronoiNoise:
    """Tests for F2-F1 cellular noise."""

    def test_no_points_is_zero(self) -> None:
        """An empty point set yields zeros."""
        points = np.empty((0, 2))
        result = voronoi_noise(points, np.array([0.1, 0.5]), np.array([0.2, 0.9]))
        np.testing.assert_array_equal(result, 0.0)

    def test_single_point_is_infinite(self) -> None:
        """A single point has no second-nearest neighbour."""
        points = np.array([[0.5, 0.5]])
        result = voronoi_noise(points, np.array([0.1]), np.array([0.2]))
        assert np.isinf(result[0])

    def test_zero_on_cell_boundary(self) -> None:
        """Equidistant samples lie on a cell edge."""
        points = np.array([[0.25, 0.5], [0.75, 0.5]])
        result = voronoi_noise(points, np.array([0.5]), np.array([0.5]))
        assert result[0] == 0.0

    def test_non_negative(self) -> None:
        """F2 - F1 is never negative."""
        points = make_voronoi_points(make_rng(3, 0), 20)
        rng = np.random.default_rng(1)
        result = voronoi_noise(points, rng.random(1000), rng.random(1000))
        assert result.min() >= 0.0

    def test_points_in_unit_square(self) -> None:
        """Points are scattered in [0, 1)."""
        points = make_voronoi_points(make_rng(3, 0), 50)
        assert points.shape == (50, 2)
        assert points.min() >= 0.0
        assert points.max() < 1.0


class TestSmoothstep:
    """Tests for smoothstep interpolation."""

    def test_edges(self) -> None:
        """Values clamp to 0 below and 1 above the edges."""
        result = smoothstep(0.2, 0.4, np.array([0.0, 0.2, 0.3, 0.4, 1.0]))
        np.testing.assert_allclose(result, [0.0, 0.0, 0.5, 1.0, 1.0])
