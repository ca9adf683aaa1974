"""Hydrology: river sources, particle descent, flow accumulation, channel carving.

Particles follow the downhill gradient with inertia like erosion
droplets, but they accumulate flow volume instead of moving sediment.
"""

import math
from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from .config import RiverConfig
from .types import RiverPath

logger = structlog.get_logger()


@dataclass
class HydrologyResult:
    """Output of river tracing."""

    height: NDArray[np.float64]  # carved height grid
    accumulation: NDArray[np.float64]  # raw accumulated flow volume
    river: NDArray[np.float64]  # river intensity, 0 where no channel
    paths: list[RiverPath] = field(default_factory=list)


def find_river_sources(
    height: NDArray[np.float64],
    config: RiverConfig,
) -> list[tuple[int, int]]:
    """Find sparse local maxima on high ground.

    Samples every ``source_step`` cells and keeps samples above
    ``source_min_height`` that no checked cell within half a step exceeds.

    Args:
        height: Height grid indexed [z, x].
        config: River parameters.

    Returns:
        List of (x, z) source coordinates in scan order.
    """
    size_z, size_x = height.shape
    step = config.source_step
    half = step // 2
    stride = max(1, step // config.source_check_divisor)
    sources: list[tuple[int, int]] = []

    for z in range(step, size_z - step, step):
        for x in range(step, size_x - step, step):
            center = height[z, x]
            if center <= config.source_min_height:
                continue

            is_max = True
            for dz in range(-half, half + 1, stride):
                for dx in range(-half, half + 1, stride):
                    if dx == 0 and dz == 0:
                        continue
                    nx, nz = x + dx, z + dz
                    if 0 <= nx < size_x and 0 <= nz < size_z and height[nz, nx] > center:
                        is_max = False
                        break
                if not is_max:
                    break

            if is_max:
                sources.append((x, z))

    return sources


def terrain_gradient(
    height: NDArray[np.float64], x: int, z: int
) -> tuple[float, float]:
    """Central-difference gradient (uphill direction), clamped at edges."""
    size_z, size_x = height.shape
    left = height[z, max(0, x - 1)]
    right = height[z, min(size_x - 1, x + 1)]
    down = height[max(0, z - 1), x]
    up = height[min(size_z - 1, z + 1), x]
    return float(right - left), float(up - down)


def trace_particle(
    height: NDArray[np.float64],
    accumulation: NDArray[np.float64],
    start: tuple[int, int],
    rng: np.random.Generator,
    water_level: float,
    config: RiverConfig,
) -> RiverPath | None:
    """Trace one water particle downhill, adding its volume to ``accumulation``.

    The particle stops when it nears the grid edge, evaporates, reaches
    water level, or joins an established flow (confluence).

    Args:
        height: Height grid indexed [z, x].
        accumulation: Flow accumulation grid, updated in place.
        start: (x, z) start cell.
        rng: Random stream for flat-ground directions.
        water_level: Normalized water level.
        config: River parameters.

    Returns:
        The traced path if it is longer than ``min_length``, else None.
    """
    size_z, size_x = height.shape
    margin = config.boundary_margin
    path: list[tuple[int, int]] = []

    pos_x, pos_z = float(start[0]), float(start[1])
    vel_x = 0.0
    vel_z = 0.0
    volume = 1.0
    inertia = config.inertia

    for _ in range(config.max_lifetime):
        node_x = min(max(int(math.floor(pos_x)), 1), size_x - 2)
        node_z = min(max(int(math.floor(pos_z)), 1), size_z - 2)

        path.append((node_x, node_z))
        accumulation[node_z, node_x] += volume

        grad_x, grad_z = terrain_gradient(height, node_x, node_z)
        vel_x = vel_x * inertia - grad_x * (1.0 - inertia)
        vel_z = vel_z * inertia - grad_z * (1.0 - inertia)

        magnitude = math.sqrt(vel_x * vel_x + vel_z * vel_z)
        if magnitude > 1e-3:
            vel_x /= magnitude
            vel_z /= magnitude
        else:
            angle = rng.random() * 2.0 * math.pi
            vel_x = math.cos(angle)
            vel_z = math.sin(angle)

        vel_x *= 1.0 - config.friction
        vel_z *= 1.0 - config.friction
        pos_x += vel_x
        pos_z += vel_z
        volume *= 1.0 - config.evaporation

        if not (margin <= pos_x < size_x - margin and margin <= pos_z < size_z - margin):
            break
        if volume < config.min_volume:
            break
        if height[node_z, node_x] < water_level + config.water_margin:
            break
        # Confluence: join the existing river instead of running alongside it
        if (
            accumulation[node_z, node_x] > config.confluence_flow
            and len(path) > config.confluence_min_length
        ):
            break

    if len(path) > config.min_length:
        return RiverPath(
            points=tuple(path),
            source_height=float(height[start[1], start[0]]),
        )
    return None


def _bank_kernel(radius: int) -> NDArray[np.float64]:
    """Quadratic falloff weights within ``radius``, zero at the center."""
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    dx, dz = np.meshgrid(offsets, offsets)
    dist = np.sqrt(dx * dx + dz * dz)
    falloff = (1.0 - dist / (radius + 1.0)) ** 2
    falloff[dist > radius] = 0.0
    falloff[radius, radius] = 0.0
    return falloff


def carve_channels(
    height: NDArray[np.float64],
    accumulation: NDArray[np.float64],
    config: RiverConfig,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Carve river beds where normalized flow exceeds the threshold.

    The center cell drops by ``depth * sqrt(flow)``; banks within a radius
    that grows with flow drop with quadratic falloff.

    Args:
        height: Height grid indexed [z, x]. Not modified.
        accumulation: Raw flow accumulation.
        config: River parameters.

    Returns:
        Tuple of (carved height, river intensity grid).
    """
    size_z, size_x = height.shape
    carved = height.copy()
    river = np.zeros_like(height)

    max_flow = float(np.max(accumulation)) if accumulation.size else 0.0
    if max_flow < 0.01:
        return carved, river

    normalized = accumulation / max_flow
    interior = np.zeros_like(normalized, dtype=bool)
    interior[1:-1, 1:-1] = normalized[1:-1, 1:-1] > config.carve_threshold

    kernels: dict[int, NDArray[np.float64]] = {}

    for z, x in zip(*np.nonzero(interior)):
        intensity = math.sqrt(normalized[z, x])
        depth = config.depth * intensity
        carved[z, x] -= depth

        radius = math.ceil(config.width * intensity)
        if radius > 0:
            kernel = kernels.get(radius)
            if kernel is None:
                kernel = kernels[radius] = _bank_kernel(radius)

            z0, z1 = max(z - radius, 0), min(z + radius + 1, size_z)
            x0, x1 = max(x - radius, 0), min(x + radius + 1, size_x)
            carved[z0:z1, x0:x1] -= (
                depth
                * config.bank_factor
                * kernel[z0 - z + radius : z1 - z + radius, x0 - x + radius : x1 - x + radius]
            )

        river[z, x] = intensity

    return carved, river


def smooth_river_beds(
    height: NDArray[np.float64],
    river: NDArray[np.float64],
    config: RiverConfig,
) -> NDArray[np.float64]:
    """Blend river cells toward their 3x3 mean; other cells are untouched."""
    mean = ndimage.uniform_filter(height, size=3, mode="nearest")
    mask = river > config.smooth_threshold
    mask[0, :] = mask[-1, :] = False
    mask[:, 0] = mask[:, -1] = False
    blended = height + (mean - height) * config.smooth_blend
    return np.where(mask, blended, height)


def trace_rivers(
    height: NDArray[np.float64],
    rng: np.random.Generator,
    water_level: float,
    config: RiverConfig,
) -> HydrologyResult:
    """Trace rivers from sampled sources and random high starts, then carve.

    ``particle_count == 0`` disables hydrology: the height grid is returned
    unchanged with all-zero flow grids.

    Args:
        height: Eroded height grid indexed [z, x].
        rng: Random stream for particle starts.
        water_level: Normalized water level.
        config: River parameters.

    Returns:
        HydrologyResult with carved heights, flow grids and retained paths.
    """
    size_z, size_x = height.shape
    accumulation = np.zeros_like(height)

    if config.particle_count == 0 or min(size_z, size_x) < 3:
        return HydrologyResult(
            height=height.copy(),
            accumulation=accumulation,
            river=np.zeros_like(height),
        )

    paths: list[RiverPath] = []

    sources = find_river_sources(height, config)
    for source in sources:
        path = trace_particle(height, accumulation, source, rng, water_level, config)
        if path is not None:
            paths.append(path)

    margin = config.particle_margin
    if size_x - margin > margin and size_z - margin > margin:
        for _ in range(config.particle_count):
            start_x = int(rng.integers(margin, size_x - margin))
            start_z = int(rng.integers(margin, size_z - margin))
            if height[start_z, start_x] > config.particle_min_height:
                path = trace_particle(
                    height, accumulation, (start_x, start_z), rng, water_level, config
                )
                if path is not None:
                    paths.append(path)

    carved, river = carve_channels(height, accumulation, config)
    carved = smooth_river_beds(carved, river, config)
    carved = np.clip(carved, 0.0, 1.0)

    logger.info(
        "rivers_traced",
        sources=len(sources),
        paths=len(paths),
        river_cells=int(np.count_nonzero(river)),
    )

    return HydrologyResult(
        height=carved,
        accumulation=accumulation,
        river=river,
        paths=paths,
    )
