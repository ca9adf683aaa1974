"""Feature extraction: lakes, peaks, village sites and cave mouths.

Each finder scans a sparse lattice of sample cells (``step`` apart,
skipping a one-step border) and accepts candidates that satisfy its
terrain test and keep the minimum separation from previously accepted
sites of the same kind.
"""

from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from .config import FeatureConfig, WorldGenConfig
from .types import FeatureKind, FeatureSite, GridPosition, WorldPosition

logger = structlog.get_logger()


# Attribute holding the sites of each kind, on FeatureSet and WorldResult
FEATURE_FIELDS = {
    FeatureKind.LAKE: "lakes",
    FeatureKind.PEAK: "peaks",
    FeatureKind.VILLAGE_SITE: "village_sites",
    FeatureKind.CAVE_MOUTH: "cave_mouths",
}


@dataclass
class FeatureSet:
    """Located sites, one list per kind."""

    lakes: list[FeatureSite] = field(default_factory=list)
    peaks: list[FeatureSite] = field(default_factory=list)
    village_sites: list[FeatureSite] = field(default_factory=list)
    cave_mouths: list[FeatureSite] = field(default_factory=list)

    def by_kind(self, kind: FeatureKind) -> list[FeatureSite]:
        return getattr(self, FEATURE_FIELDS[kind])

    def counts(self) -> dict[str, int]:
        return {kind.value: len(self.by_kind(kind)) for kind in FeatureKind}


def _sample_cells(size: int, step: int):
    """Yield (x, z) lattice cells at least one step from every edge."""
    for z in range(step, size - step, step):
        for x in range(step, size - step, step):
            yield x, z


def _window(
    height: NDArray[np.float64], x: int, z: int, radius: int
) -> NDArray[np.float64]:
    """Square neighbourhood around (x, z), clipped to the grid."""
    size_z, size_x = height.shape
    return height[
        max(z - radius, 0) : min(z + radius + 1, size_z),
        max(x - radius, 0) : min(x + radius + 1, size_x),
    ]


def is_separated(
    sites: list[FeatureSite], position: GridPosition, min_distance: float
) -> bool:
    """True if ``position`` is at least ``min_distance`` cells from every site."""
    return all(site.grid_position.distance_to(position) >= min_distance for site in sites)


def _make_site(
    kind: FeatureKind, x: int, z: int, y: float, config: WorldGenConfig
) -> FeatureSite:
    return FeatureSite(
        kind=kind,
        grid_position=GridPosition(x=x, z=z),
        world_position=WorldPosition(
            x=x * config.world_scale,
            y=y * config.terrain_amplitude,
            z=z * config.world_scale,
        ),
    )


def height_variance(height: NDArray[np.float64], x: int, z: int, radius: int) -> float:
    """Population variance of heights within ``radius`` of (x, z)."""
    return float(np.var(_window(height, x, z, radius)))


def is_near_water(
    height: NDArray[np.float64], x: int, z: int, radius: int, water_level: float
) -> bool:
    """True if any cell within ``radius`` of (x, z) is below water level."""
    return bool(np.any(_window(height, x, z, radius) < water_level))


def slope_at(height: NDArray[np.float64], x: int, z: int) -> float:
    """Central-difference slope magnitude; zero on the grid border."""
    size_z, size_x = height.shape
    if x <= 0 or x >= size_x - 1 or z <= 0 or z >= size_z - 1:
        return 0.0
    dx = float(height[z, x + 1] - height[z, x - 1])
    dz = float(height[z + 1, x] - height[z - 1, x])
    return float(np.hypot(dx, dz))


def find_lakes(height: NDArray[np.float64], config: WorldGenConfig) -> list[FeatureSite]:
    """Find lake centers.

    A sample qualifies when it is below water level, no sampled neighbour
    within one step is lower, and its contiguous below-water region holds
    at least ``lake_min_cells`` cells.
    """
    params = config.features
    water_level = config.water_level
    step = params.lake_step
    stride = max(1, step // 2)
    size_z, size_x = height.shape

    labels, _ = ndimage.label(height < water_level)
    region_sizes = np.bincount(labels.ravel())

    lakes: list[FeatureSite] = []
    for x, z in _sample_cells(min(size_z, size_x), step):
        center = height[z, x]
        if center >= water_level:
            continue
        if region_sizes[labels[z, x]] < params.lake_min_cells:
            continue

        is_min = True
        for dz in range(-step, step + 1, stride):
            for dx in range(-step, step + 1, stride):
                nx, nz = x + dx, z + dz
                if 0 <= nx < size_x and 0 <= nz < size_z and height[nz, nx] < center:
                    is_min = False
                    break
            if not is_min:
                break
        if not is_min:
            continue

        if is_separated(lakes, GridPosition(x=x, z=z), params.lake_separation):
            lakes.append(_make_site(FeatureKind.LAKE, x, z, water_level, config))

    return lakes


def find_peaks(height: NDArray[np.float64], config: WorldGenConfig) -> list[FeatureSite]:
    """Find samples strictly higher than their eight neighbours one step away."""
    params = config.features
    step = params.peak_step
    size_z, size_x = height.shape

    peaks: list[FeatureSite] = []
    for x, z in _sample_cells(min(size_z, size_x), step):
        center = height[z, x]
        if center <= params.peak_min_height:
            continue

        is_peak = True
        for dz in (-step, 0, step):
            for dx in (-step, 0, step):
                if dx == 0 and dz == 0:
                    continue
                nx, nz = x + dx, z + dz
                if 0 <= nx < size_x and 0 <= nz < size_z and height[nz, nx] >= center:
                    is_peak = False
                    break
            if not is_peak:
                break

        if is_peak and is_separated(peaks, GridPosition(x=x, z=z), params.peak_separation):
            peaks.append(_make_site(FeatureKind.PEAK, x, z, float(center), config))

    return peaks


def village_score(
    height: NDArray[np.float64], x: int, z: int, water_level: float, params: FeatureConfig
) -> float:
    """Weighted score of flatness, water proximity and closeness to the ideal height."""
    variance = height_variance(height, x, z, params.village_score_radius)
    flatness = 1.0 - variance * params.village_variance_penalty
    water = 1.0 if is_near_water(
        height, x, z, params.village_score_water_radius, water_level
    ) else 0.0
    offset = abs(float(height[z, x]) - params.village_ideal_height)
    elevation = 1.0 - offset * params.village_elevation_penalty
    return (
        flatness * params.village_flatness_weight
        + water * params.village_water_weight
        + elevation * params.village_elevation_weight
    )


def find_village_sites(
    height: NDArray[np.float64], config: WorldGenConfig
) -> list[FeatureSite]:
    """Find flat, water-adjacent sites in the lowland band, best first.

    Candidates are ranked by village_score; ranked candidates are accepted
    until ``village_count`` sites respect the separation distance.
    """
    params = config.features
    water_level = config.water_level
    low = water_level + params.village_min_above_water
    size = min(height.shape)

    candidates: list[tuple[int, int]] = []
    for x, z in _sample_cells(size, params.village_step):
        h = height[z, x]
        if not (low < h < params.village_max_height):
            continue
        if height_variance(height, x, z, params.village_flat_radius) >= params.village_max_variance:
            continue
        if is_near_water(height, x, z, params.village_water_radius, water_level):
            candidates.append((x, z))

    # sorted() is stable, so equal scores keep scan order
    ranked = sorted(
        candidates,
        key=lambda c: village_score(height, c[0], c[1], water_level, params),
        reverse=True,
    )

    villages: list[FeatureSite] = []
    for x, z in ranked:
        if len(villages) >= params.village_count:
            break
        if is_separated(villages, GridPosition(x=x, z=z), params.village_separation):
            villages.append(
                _make_site(FeatureKind.VILLAGE_SITE, x, z, float(height[z, x]), config)
            )

    return villages


def find_cave_mouths(
    height: NDArray[np.float64], config: WorldGenConfig
) -> list[FeatureSite]:
    """Find mid-slope samples on mid-to-high ground, up to ``cave_count``."""
    params = config.features
    caves: list[FeatureSite] = []
    if params.cave_count == 0:
        return caves

    for x, z in _sample_cells(min(height.shape), params.cave_step):
        h = float(height[z, x])
        if not (params.cave_min_height < h < params.cave_max_height):
            continue
        slope = slope_at(height, x, z)
        if not (params.cave_min_slope < slope < params.cave_max_slope):
            continue
        if is_separated(caves, GridPosition(x=x, z=z), params.cave_separation):
            caves.append(_make_site(FeatureKind.CAVE_MOUTH, x, z, h, config))
            if len(caves) >= params.cave_count:
                break

    return caves


def extract_features(height: NDArray[np.float64], config: WorldGenConfig) -> FeatureSet:
    """Run every finder over the final height grid.

    Args:
        height: Final height grid indexed [z, x].
        config: World configuration.

    Returns:
        FeatureSet with all four lists.
    """
    features = FeatureSet(
        lakes=find_lakes(height, config),
        peaks=find_peaks(height, config),
        village_sites=find_village_sites(height, config),
        cave_mouths=find_cave_mouths(height, config),
    )
    logger.info("features_found", **features.counts())
    return features
