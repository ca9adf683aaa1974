"""Tests for feature extraction."""

from dataclasses import fields

import numpy as np
import pytest

from worldsynth.config import FeatureConfig, WorldGenConfig
from worldsynth.features import (
    FEATURE_FIELDS,
    FeatureSet,
    extract_features,
    find_cave_mouths,
    find_lakes,
    find_peaks,
    find_village_sites,
    height_variance,
    is_near_water,
    is_separated,
    slope_at,
    village_score,
)
from worldsynth.orchestrator import WorldResult
from worldsynth.types import FeatureKind, FeatureSite, GridPosition, WorldPosition


def make_config(**features) -> WorldGenConfig:
    return WorldGenConfig.model_validate(
        {"world_size": 128, "water_level": 0.3, "features": features}
    )


def gaussian(size: int, cx: int, cz: int, sigma: float, amplitude: float) -> np.ndarray:
    coords = np.arange(size, dtype=np.float64)
    x, z = np.meshgrid(coords, coords)
    return amplitude * np.exp(-((x - cx) ** 2 + (z - cz) ** 2) / (2 * sigma**2))


def assert_separated(sites: list[FeatureSite], separation: float) -> None:
    for i, a in enumerate(sites):
        for b in sites[i + 1 :]:
            assert a.grid_position.distance_to(b.grid_position) >= separation


class TestHelpers:
    """Tests for terrain sampling helpers."""

    def test_variance_of_flat_window(self) -> None:
        """Flat ground has zero variance."""
        variance = height_variance(np.full((20, 20), 0.4), 10, 10, 5)
        assert variance == pytest.approx(0.0, abs=1e-15)

    def test_variance_clipped_at_edge(self) -> None:
        """Windows are clipped rather than wrapped."""
        height = np.zeros((20, 20))
        height[:, -1] = 1.0
        assert height_variance(height, 0, 0, 3) == 0.0

    def test_near_water(self) -> None:
        """Water within the radius is detected."""
        height = np.full((20, 20), 0.5)
        height[10, 15] = 0.1
        assert is_near_water(height, 10, 10, 5, 0.3)
        assert not is_near_water(height, 10, 10, 4, 0.3)

    def test_slope_zero_on_border(self) -> None:
        """Border cells report zero slope."""
        height = np.tile(np.arange(10, dtype=np.float64), (10, 1))
        assert slope_at(height, 0, 5) == 0.0
        assert slope_at(height, 5, 5) == pytest.approx(2.0)

    def test_is_separated(self) -> None:
        """Separation is measured in grid cells."""
        site = FeatureSite(
            kind=FeatureKind.PEAK,
            grid_position=GridPosition(x=0, z=0),
            world_position=WorldPosition(x=0, y=0, z=0),
        )
        assert is_separated([site], GridPosition(x=3, z=4), 5.0)
        assert not is_separated([site], GridPosition(x=3, z=4), 5.1)
        assert is_separated([], GridPosition(x=0, z=0), 100.0)


class TestFindPeaks:
    """Tests for peak detection."""

    def test_single_mountain(self) -> None:
        """A lone mountain yields one peak at its summit."""
        height = gaussian(128, 64, 64, 12.0, 0.9)
        peaks = find_peaks(height, make_config())
        assert len(peaks) == 1
        assert peaks[0].grid_position == GridPosition(x=64, z=64)
        assert peaks[0].world_position.y == pytest.approx(90.0)

    def test_close_peaks_deduplicated(self) -> None:
        """Two summits closer than the separation keep only the first."""
        height = np.maximum(gaussian(128, 40, 64, 3.0, 0.9), gaussian(128, 56, 64, 3.0, 0.9))
        peaks = find_peaks(height, make_config(peak_step=8, peak_separation=96.0))
        assert [p.grid_position for p in peaks] == [GridPosition(x=40, z=64)]

    def test_low_terrain_no_peaks(self) -> None:
        """Summits below the minimum height are ignored."""
        height = gaussian(128, 64, 64, 12.0, 0.6)
        assert find_peaks(height, make_config()) == []


class TestFindLakes:
    """Tests for lake detection."""

    def test_basin_is_lake(self) -> None:
        """A large basin below water level is a lake."""
        coords = np.arange(128, dtype=np.float64)
        x, z = np.meshgrid(coords, coords)
        dist = np.sqrt((x - 64) ** 2 + (z - 64) ** 2)
        height = np.where(dist < 10, 0.1 + dist * 0.01, 0.5)
        lakes = find_lakes(height, make_config())
        assert [lake.grid_position for lake in lakes] == [GridPosition(x=64, z=64)]
        assert lakes[0].world_position.y == pytest.approx(30.0)
        assert lakes[0].kind == FeatureKind.LAKE

    def test_single_cell_pit_rejected(self) -> None:
        """A pit smaller than the minimum region is not a lake."""
        height = np.full((128, 128), 0.5)
        height[64, 64] = 0.1
        assert find_lakes(height, make_config()) == []


@pytest.fixture
def shore():
    """Water west of x = 20, flat land at 0.4 elsewhere."""
    height = np.full((128, 128), 0.4)
    height[:, :20] = 0.1
    return height


class TestFindVillageSites:
    """Tests for village site selection."""

    def test_best_site_first(self, shore) -> None:
        """Flat shoreline land is chosen; separation limits the count."""
        config = make_config(village_step=16, village_separation=100.0)
        villages = find_village_sites(shore, config)
        assert [v.grid_position for v in villages] == [GridPosition(x=48, z=16)]

    def test_separation_and_cap(self, shore) -> None:
        """Sites respect the separation and the count cap."""
        config = make_config(village_step=16, village_separation=30.0, village_count=3)
        villages = find_village_sites(shore, config)
        assert 0 < len(villages) <= 3
        assert_separated(villages, 30.0)
        for village in villages:
            h = shore[village.grid_position.z, village.grid_position.x]
            assert 0.35 < h < 0.5

    def test_no_water_no_villages(self) -> None:
        """Villages need water nearby."""
        height = np.full((128, 128), 0.4)
        assert find_village_sites(height, make_config(village_step=16)) == []

    def test_score_water_weight(self, shore) -> None:
        """With only the water term weighted, the score is 1 near water and 0 away."""
        params = FeatureConfig(
            village_flatness_weight=0.0, village_water_weight=1.0, village_elevation_weight=0.0
        )
        assert village_score(shore, 30, 64, 0.3, params) == 1.0
        assert village_score(shore, 100, 64, 0.3, params) == 0.0

    def test_score_elevation_penalty(self, shore) -> None:
        """The elevation term falls off from the ideal height at the configured rate."""
        params = FeatureConfig(
            village_flatness_weight=0.0,
            village_water_weight=0.0,
            village_elevation_weight=1.0,
            village_elevation_penalty=4.0,
        )
        assert village_score(shore, 100, 64, 0.3, params) == pytest.approx(0.8)


class TestFindCaveMouths:
    """Tests for cave mouth detection."""

    @pytest.fixture
    def cliff(self):
        """A steep north-south escarpment around x = 64."""
        x = np.arange(128, dtype=np.float64)
        return np.tile(np.clip(0.2 * (x - 61), 0.0, 1.0), (128, 1))

    def test_cliff_caves_capped(self, cliff) -> None:
        """Caves line the escarpment up to the cap."""
        config = make_config(cave_step=8, cave_separation=16.0, cave_count=3)
        caves = find_cave_mouths(cliff, config)
        assert [c.grid_position for c in caves] == [
            GridPosition(x=64, z=8),
            GridPosition(x=64, z=24),
            GridPosition(x=64, z=40),
        ]

    def test_separation(self, cliff) -> None:
        """No two caves are closer than the separation."""
        config = make_config(cave_step=8, cave_separation=20.0)
        caves = find_cave_mouths(cliff, config)
        assert caves
        assert_separated(caves, 20.0)

    def test_zero_cap(self, cliff) -> None:
        """cave_count == 0 finds nothing."""
        assert find_cave_mouths(cliff, make_config(cave_step=8, cave_count=0)) == []


class TestExtractFeatures:
    """Tests for the combined extraction stage."""

    def test_flat_world_empty(self) -> None:
        """A featureless world has no sites."""
        features = extract_features(np.full((128, 128), 0.5), make_config())
        assert features.counts() == {kind.value: 0 for kind in FeatureKind}

    def test_world_position_scaled(self) -> None:
        """World positions use world_scale and terrain_amplitude."""
        height = gaussian(128, 64, 64, 12.0, 0.9)
        config = WorldGenConfig(world_size=128, world_scale=2.0, terrain_amplitude=50.0)
        features = extract_features(height, config)
        peak = features.by_kind(FeatureKind.PEAK)[0]
        assert peak.world_position.x == 128.0
        assert peak.world_position.z == 128.0
        assert peak.world_position.y == pytest.approx(45.0)


class TestFeatureFields:
    """Tests for the kind-to-attribute mapping."""

    def test_covers_every_kind(self) -> None:
        """Every feature kind maps to an attribute."""
        assert set(FEATURE_FIELDS) == set(FeatureKind)

    def test_by_kind_returns_attribute(self) -> None:
        """by_kind hands back the list stored under the mapped attribute."""
        features = FeatureSet()
        for kind, name in FEATURE_FIELDS.items():
            assert features.by_kind(kind) is getattr(features, name)

    def test_world_result_has_fields(self) -> None:
        """WorldResult stores sites under the same attribute names."""
        names = {f.name for f in fields(WorldResult)}
        assert set(FEATURE_FIELDS.values()) <= names
