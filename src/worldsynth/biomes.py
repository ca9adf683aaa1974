"""Biome classification: an ordered decision table over height, moisture and temperature.

Rules are evaluated top-down and the first match wins. The same rule
table drives both per-cell and whole-grid classification, so the two
always agree.
"""

from typing import Callable

import numpy as np
import structlog
from numpy.typing import NDArray

from .config import BiomeConfig
from .types import DEFAULT_BIOME, BiomeCategory

logger = structlog.get_logger()

Predicate = Callable[..., object]

# (category, predicate(h, m, t, water_level, config)) in evaluation order
BIOME_RULES: tuple[tuple[BiomeCategory, Predicate], ...] = (
    (BiomeCategory.OCEAN, lambda h, m, t, wl, c: h < wl),
    (BiomeCategory.BEACH, lambda h, m, t, wl, c: h < wl + c.beach_band),
    (BiomeCategory.MOUNTAINS, lambda h, m, t, wl, c: h > c.mountain_height),
    # Highlands
    (BiomeCategory.TUNDRA, lambda h, m, t, wl, c: (h > c.highland_height) & (t < c.highland_cold)),
    (BiomeCategory.MOUNTAINS, lambda h, m, t, wl, c: (h > c.highland_height) & (m < c.highland_dry)),
    (BiomeCategory.FOREST, lambda h, m, t, wl, c: h > c.highland_height),
    # Cold
    (BiomeCategory.TUNDRA, lambda h, m, t, wl, c: (t < c.cold) & (m < c.cold_dry)),
    (BiomeCategory.FOREST, lambda h, m, t, wl, c: t < c.cold),
    # Temperate
    (BiomeCategory.DESERT, lambda h, m, t, wl, c: (t < c.temperate) & (m < c.temperate_dry)),
    (BiomeCategory.PLAINS, lambda h, m, t, wl, c: (t < c.temperate) & (m < c.temperate_humid)),
    (BiomeCategory.FOREST, lambda h, m, t, wl, c: t < c.temperate),
    # Warm
    (BiomeCategory.DESERT, lambda h, m, t, wl, c: (t < c.warm) & (m < c.warm_dry)),
    (BiomeCategory.PLAINS, lambda h, m, t, wl, c: (t < c.warm) & (m < c.warm_moderate)),
    (BiomeCategory.FOREST, lambda h, m, t, wl, c: (t < c.warm) & (m < c.warm_humid)),
    (BiomeCategory.SWAMP, lambda h, m, t, wl, c: t < c.warm),
    # Tropical
    (BiomeCategory.DESERT, lambda h, m, t, wl, c: m < c.tropical_dry),
    (BiomeCategory.PLAINS, lambda h, m, t, wl, c: m < c.tropical_moderate),
    (BiomeCategory.FOREST, lambda h, m, t, wl, c: m < c.tropical_humid),
    (BiomeCategory.SWAMP, lambda h, m, t, wl, c: m >= c.tropical_humid),
)


def biome_code(biome: BiomeCategory) -> int:
    """Convert a BiomeCategory to its uint8 storage value."""
    return _BIOME_CODES[biome]


def code_to_biome(value: int) -> BiomeCategory:
    """Convert a uint8 storage value back to a BiomeCategory.

    Unknown values map to the default biome.
    """
    return _CODE_BIOMES.get(int(value), DEFAULT_BIOME)


_BIOME_CODES: dict[BiomeCategory, int] = {
    biome: index for index, biome in enumerate(BiomeCategory)
}
_CODE_BIOMES: dict[int, BiomeCategory] = {
    index: biome for biome, index in _BIOME_CODES.items()
}


def match_biome(
    height: float,
    moisture: float,
    temperature: float,
    water_level: float,
    config: BiomeConfig,
) -> BiomeCategory | None:
    """Return the first matching rule's category, or None if no rule matches."""
    for biome, predicate in BIOME_RULES:
        if predicate(height, moisture, temperature, water_level, config):
            return biome
    return None


def classify_biome(
    height: float,
    moisture: float,
    temperature: float,
    water_level: float,
    config: BiomeConfig,
) -> BiomeCategory:
    """Classify a single cell.

    Args:
        height: Normalized height.
        moisture: Moisture in [0, 1].
        temperature: Temperature in [0, 1].
        water_level: Normalized water level.
        config: Decision thresholds.

    Returns:
        Exactly one BiomeCategory; the default biome if nothing matches.
    """
    biome = match_biome(height, moisture, temperature, water_level, config)
    return DEFAULT_BIOME if biome is None else biome


def classify_grid(
    height: NDArray[np.float64],
    moisture: NDArray[np.float64],
    temperature: NDArray[np.float64],
    water_level: float,
    config: BiomeConfig,
) -> NDArray[np.uint8]:
    """Classify every cell of parallel grids.

    Args:
        height: Height grid.
        moisture: Moisture grid.
        temperature: Temperature grid.
        water_level: Normalized water level.
        config: Decision thresholds.

    Returns:
        uint8 grid of biome codes (see biome_code).
    """
    conditions = [
        np.asarray(predicate(height, moisture, temperature, water_level, config), dtype=bool)
        for _, predicate in BIOME_RULES
    ]
    choices = [biome_code(biome) for biome, _ in BIOME_RULES]
    codes = np.select(conditions, choices, default=biome_code(DEFAULT_BIOME))
    return codes.astype(np.uint8)


def biome_coverage(codes: NDArray[np.uint8]) -> dict[BiomeCategory, float]:
    """Fraction of cells per biome category."""
    total = codes.size
    return {
        biome: float(np.count_nonzero(codes == biome_code(biome))) / total if total else 0.0
        for biome in BiomeCategory
    }
