"""Heightmap synthesis: layered noise, plateaus, ridges, terraces, spawn zone."""

from typing import Iterator

import numpy as np
import structlog
from numpy.typing import NDArray

from .config import LayerConfig, WorldGenConfig
from .noise import (
    NoiseSeed,
    domain_warp,
    fbm,
    lerp,
    ridge_noise,
    smoothstep,
    voronoi_noise,
)

logger = structlog.get_logger()


def _layer(
    permutation: NDArray[np.int64],
    wx: NDArray[np.float64],
    wz: NDArray[np.float64],
    offset: tuple[float, float],
    layer: LayerConfig,
    base_scale: float,
) -> NDArray[np.float64]:
    """Sample one fBm layer of the height blend."""
    ox, oz = offset
    return fbm(
        permutation,
        wx * layer.frequency + ox + layer.offset,
        wz * layer.frequency + oz + layer.offset,
        layer.octaves,
        layer.persistence,
        layer.lacunarity,
        base_scale * layer.scale,
    )


def synthesize_rows(
    config: WorldGenConfig,
    noise_seed: NoiseSeed,
    voronoi_points: NDArray[np.float64],
    z_start: int,
    z_stop: int,
) -> NDArray[np.float64]:
    """Compute raw (un-normalized) heights for rows ``z_start:z_stop``.

    Every cell depends only on its own coordinates and the seed tables, so
    any row range can be computed independently.

    Args:
        config: World configuration.
        noise_seed: Permutation table and offsets for this run.
        voronoi_points: Plateau point set in normalized space.
        z_start: First row (inclusive).
        z_stop: Last row (exclusive).

    Returns:
        Array of shape (z_stop - z_start, world_size) with values in [0, 1].
    """
    size = config.world_size
    noise = config.noise
    shape = config.heightmap
    perm = noise_seed.permutation
    offset = noise_seed.terrain_offset
    ox, oz = offset

    xs = np.arange(size, dtype=np.float64) / size
    zs = np.arange(z_start, z_stop, dtype=np.float64) / size
    nx, nz = np.meshgrid(xs, zs)

    if config.warp.enabled:
        wx, wz = domain_warp(perm, nx, nz, config.warp, noise.scale, offset)
    else:
        wx, wz = nx, nz

    # Continental mask, sharpened to separate land from ocean
    continent = _layer(perm, wx, wz, offset, shape.continent, noise.scale)
    continent = continent ** shape.continent_exponent

    base = fbm(
        perm,
        wx + ox,
        wz + oz,
        noise.octaves,
        noise.persistence,
        noise.lacunarity,
        noise.scale,
    )
    mountain = _layer(perm, wx, wz, offset, shape.mountain, noise.scale)
    detail = _layer(perm, wx, wz, offset, shape.detail, noise.scale)
    micro = _layer(perm, wx, wz, offset, shape.micro, noise.scale)

    height = (
        continent * shape.continent_weight
        + base * shape.base_weight
        + mountain * shape.mountain_weight
        + detail * shape.detail_weight
        + micro * shape.micro_weight
    )

    # Plateaus only on elevated ground
    if config.voronoi.enabled and len(voronoi_points) > 0:
        cells = np.clip(
            voronoi_noise(voronoi_points, wx, wz) * config.voronoi.contrast, 0.0, 1.0
        )
        mask = np.clip((height - shape.plateau_threshold) * shape.plateau_gain, 0.0, 1.0)
        height = lerp(
            height, height + cells * shape.plateau_height, mask * config.voronoi.weight
        )

    # Ridges only on mountains
    if noise.add_ridges:
        ridges = ridge_noise(
            perm, wx + ox, wz + oz, noise.ridge_octaves, noise.scale, noise.ridge_scale
        )
        mask = np.clip((height - shape.ridge_threshold) * shape.ridge_gain, 0.0, 1.0)
        height = lerp(height, height + ridges * shape.ridge_height, mask * noise.ridge_weight)

    terraced = np.round(height * shape.terrace_steps) / shape.terrace_steps
    terrace_mask = np.clip((height - shape.terrace_threshold) * shape.terrace_gain, 0.0, 1.0)
    height = lerp(height, terraced, shape.terrace_strength * terrace_mask)

    height = np.clip(height, 0.0, 1.0) ** noise.redistribution

    height = _apply_safe_zone(height, nx, nz, config)
    height = height * edge_falloff(nx, nz, shape.edge_falloff_width)

    return np.clip(height, 0.0, 1.0)


def _apply_safe_zone(
    height: NDArray[np.float64],
    nx: NDArray[np.float64],
    nz: NDArray[np.float64],
    config: WorldGenConfig,
) -> NDArray[np.float64]:
    """Flatten a disk at the world center toward the spawn height."""
    shape = config.heightmap
    radius = shape.safe_zone_radius
    target = shape.safe_zone_height
    dist = np.sqrt((nx - 0.5) ** 2 + (nz - 0.5) ** 2)

    if radius > 0:
        inner = lerp(target, height, dist / radius * shape.safe_zone_flatness)
    else:
        inner = height
    blend = smoothstep(radius, radius + shape.safe_zone_transition, dist)
    outer = lerp(target, height, blend)

    return np.where(dist < radius, inner, outer)


def edge_falloff(
    nx: NDArray[np.float64],
    nz: NDArray[np.float64],
    width: float,
) -> NDArray[np.float64]:
    """Smoothstep multiplier falling to zero at the grid boundary.

    Args:
        nx: Normalized x coordinates.
        nz: Normalized z coordinates.
        width: Falloff band width (normalized).

    Returns:
        Multiplier in [0, 1]; exactly 1 beyond the band.
    """
    dist_to_edge = np.minimum(np.minimum(nx, 1.0 - nx), np.minimum(nz, 1.0 - nz))
    return smoothstep(0.0, width, dist_to_edge)


def iter_heightmap_rows(
    config: WorldGenConfig,
    noise_seed: NoiseSeed,
    voronoi_points: NDArray[np.float64],
    height: NDArray[np.float64],
) -> Iterator[int]:
    """Fill ``height`` in row batches, yielding rows completed after each.

    Args:
        config: World configuration.
        noise_seed: Seed tables for this run.
        voronoi_points: Plateau point set.
        height: Output array of shape (world_size, world_size).

    Yields:
        Number of rows written so far.
    """
    size = config.world_size
    batch = config.heightmap.row_batch

    for z_start in range(0, size, batch):
        z_stop = min(z_start + batch, size)
        height[z_start:z_stop, :] = synthesize_rows(
            config, noise_seed, voronoi_points, z_start, z_stop
        )
        yield z_stop


def normalize_heightmap(height: NDArray[np.float64]) -> NDArray[np.float64]:
    """Linearly rescale so the grid spans exactly [0, 1].

    A flat grid (min == max) is returned unchanged.
    """
    low = float(np.min(height))
    high = float(np.max(height))
    span = high - low
    if span > 0:
        return (height - low) / span
    return height.copy()


def build_heightmap(
    config: WorldGenConfig,
    noise_seed: NoiseSeed,
    voronoi_points: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Synthesize and normalize a complete height grid.

    Args:
        config: World configuration.
        noise_seed: Seed tables for this run.
        voronoi_points: Plateau point set.

    Returns:
        Height grid of shape (world_size, world_size), indexed [z, x].
    """
    size = config.world_size
    height = np.empty((size, size), dtype=np.float64)
    for _ in iter_heightmap_rows(config, noise_seed, voronoi_points, height):
        pass

    height = normalize_heightmap(height)
    logger.debug("heightmap_built", size=size, mean=float(np.mean(height)))
    return height
