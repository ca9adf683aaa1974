"""Pytest configuration and fixtures for worldsynth tests."""

import tempfile
from pathlib import Path

import numpy as np
import pytest

from worldsynth.config import WorldGenConfig
from worldsynth.noise import NoiseSeed, make_rng, make_voronoi_points


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def small_config() -> WorldGenConfig:
    """A 64x64 world with reduced erosion and hydrology work."""
    return WorldGenConfig.model_validate(
        {
            "seed": 42,
            "world_size": 64,
            "water_level": 0.3,
            "noise": {"octaves": 4, "erosion_iterations": 1},
            "voronoi": {"cell_count": 16},
            "erosion": {"droplets_per_iteration": 200, "thermal_iterations": 2},
            "rivers": {"particle_count": 200, "source_step": 16},
            "features": {
                "lake_step": 8,
                "lake_separation": 16.0,
                "peak_step": 8,
                "peak_separation": 24.0,
                "village_step": 8,
                "village_flat_radius": 4,
                "village_water_radius": 8,
                "village_separation": 16.0,
                "cave_step": 8,
                "cave_separation": 16.0,
            },
        }
    )


@pytest.fixture
def island_config() -> WorldGenConfig:
    """A riverless 64x64 island shaped only by the spawn disk.

    Every noise layer is weighted out, so the normalized height is
    ``1 - smoothstep(0, 0.5, dist)`` around the center: a smooth hill in a
    flat sea at exactly 0.
    """
    return WorldGenConfig.model_validate(
        {
            "seed": 42,
            "world_size": 64,
            "water_level": 0.2,
            "noise": {"erosion_iterations": 0, "add_ridges": False},
            "warp": {"enabled": False},
            "voronoi": {"enabled": False},
            "heightmap": {
                "continent_weight": 0.0,
                "base_weight": 0.0,
                "mountain_weight": 0.0,
                "detail_weight": 0.0,
                "micro_weight": 0.0,
                "safe_zone_radius": 0.0,
                "safe_zone_transition": 0.5,
                "safe_zone_height": 0.5,
            },
            "rivers": {"particle_count": 0},
            "features": {
                "lake_step": 8,
                "lake_separation": 16.0,
                "village_step": 8,
                "village_flat_radius": 2,
                "village_water_radius": 8,
                "village_score_radius": 2,
                "village_score_water_radius": 8,
                "village_separation": 16.0,
            },
        }
    )


@pytest.fixture
def noise_seed() -> NoiseSeed:
    """Seed tables for seed 42."""
    return NoiseSeed.from_rng(make_rng(42, 0))


@pytest.fixture
def voronoi_points() -> np.ndarray:
    """Sixteen plateau points for seed 42."""
    return make_voronoi_points(make_rng(42, 0), 16)


@pytest.fixture
def sample_config_toml():
    """Sample world config as TOML string."""
    return """
seed = 7
world_size = 96
water_level = 0.25

[noise]
octaves = 3
erosion_iterations = 0

[rivers]
particle_count = 0

[biomes]
beach_band = 0.05
"""


@pytest.fixture
def config_file(temp_dir, sample_config_toml):
    """Create a temporary config file."""
    config_path = temp_dir / "test_config.toml"
    config_path.write_text(sample_config_toml)
    return config_path
