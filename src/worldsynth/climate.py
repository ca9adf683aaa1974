"""Climate fields: moisture and temperature derived from terrain and noise."""

import numpy as np
import structlog
from numpy.typing import NDArray

from .config import ClimateConfig, WorldGenConfig
from .noise import NoiseSeed, fbm

logger = structlog.get_logger()


def _normalized_coords(size: int) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    coords = np.arange(size, dtype=np.float64) / size
    return np.meshgrid(coords, coords)


def rain_shadow(
    height: NDArray[np.float64],
    config: ClimateConfig,
) -> NDArray[np.float64]:
    """Penalty where the cell ``shadow_distance`` to the west is much higher.

    Args:
        height: Height grid indexed [z, x].
        config: Climate parameters.

    Returns:
        Grid of zeros and ``-shadow_penalty`` values.
    """
    shadow = np.zeros_like(height)
    d = config.shadow_distance
    if height.shape[1] <= d:
        return shadow
    upwind = height[:, :-d]
    shadowed = upwind > height[:, d:] + config.shadow_height
    shadow[:, d:][shadowed] = -config.shadow_penalty
    return shadow


def make_moisture(
    height: NDArray[np.float64],
    river: NDArray[np.float64],
    noise_seed: NoiseSeed,
    config: WorldGenConfig,
) -> NDArray[np.float64]:
    """Generate moisture from noise, water proximity, rivers and rain shadow.

    Args:
        height: Final height grid indexed [z, x].
        river: River intensity grid.
        noise_seed: Seed tables for this run.
        config: World configuration.

    Returns:
        Moisture grid in [0, 1].
    """
    climate = config.climate
    nx, nz = _normalized_coords(height.shape[0])
    ox, oz = noise_seed.moisture_offset

    base = fbm(
        noise_seed.permutation,
        nx * climate.moisture_frequency + ox,
        nz * climate.moisture_frequency + oz,
        climate.moisture_octaves,
        climate.moisture_persistence,
        climate.moisture_lacunarity,
        config.noise.scale * climate.moisture_scale,
    )

    # Linear falloff over a band above water level; full bonus at or below it
    wetness = np.clip(1.0 - (height - config.water_level) / climate.water_band, 0.0, 1.0)
    water_bonus = climate.water_bonus * wetness

    river_bonus = river * climate.river_bonus

    moisture = base + water_bonus + river_bonus + rain_shadow(height, climate)
    return np.clip(moisture, 0.0, 1.0)


def make_temperature(
    height: NDArray[np.float64],
    noise_seed: NoiseSeed,
    config: WorldGenConfig,
) -> NDArray[np.float64]:
    """Generate temperature from latitude, altitude, noise and maritime effect.

    The vertical midline (z = size / 2) is the equator.

    Args:
        height: Final height grid indexed [z, x].
        noise_seed: Seed tables for this run.
        config: World configuration.

    Returns:
        Temperature grid in [0, 1].
    """
    climate = config.climate
    nx, nz = _normalized_coords(height.shape[0])
    ox, oz = noise_seed.temperature_offset

    latitude = np.abs(nz - 0.5) * 2.0
    baseline = 1.0 - latitude * climate.latitude_range

    altitude = height * climate.altitude_lapse

    variation = fbm(
        noise_seed.permutation,
        nx * climate.temperature_frequency + ox,
        nz * climate.temperature_frequency + oz,
        climate.temperature_octaves,
        climate.temperature_persistence,
        climate.temperature_lacunarity,
        config.noise.scale * climate.temperature_scale,
    )
    variation = variation * climate.temperature_noise - climate.temperature_noise / 2.0

    maritime = np.where(
        height < config.water_level + climate.maritime_band, climate.maritime_bonus, 0.0
    )

    return np.clip(baseline - altitude + variation + maritime, 0.0, 1.0)


def build_climate(
    height: NDArray[np.float64],
    river: NDArray[np.float64],
    noise_seed: NoiseSeed,
    config: WorldGenConfig,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Build moisture and temperature grids. ``height`` is never modified.

    Returns:
        Tuple of (moisture, temperature).
    """
    moisture = make_moisture(height, river, noise_seed, config)
    temperature = make_temperature(height, noise_seed, config)
    logger.info(
        "climate_built",
        mean_moisture=float(np.mean(moisture)),
        mean_temperature=float(np.mean(temperature)),
    )
    return moisture, temperature
