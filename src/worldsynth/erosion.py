"""Erosion: hydraulic droplet simulation and thermal talus slumping."""

import math

import numpy as np
import structlog
from numpy.typing import NDArray

from .config import ErosionConfig, WorldGenConfig

logger = structlog.get_logger()

# Thermal neighbour order as (dx, dz): cardinals first, then diagonals
THERMAL_DX = np.array([-1, 1, 0, 0, -1, 1, -1, 1], dtype=np.int64)
THERMAL_DZ = np.array([0, 0, -1, 1, -1, -1, 1, 1], dtype=np.int64)


def erosion_weights(radius: int) -> NDArray[np.float64]:
    """Footprint weights decaying linearly with distance, summing to 1.

    Args:
        radius: Footprint radius in cells.

    Returns:
        Array of shape (2r+1, 2r+1) indexed [dz + r, dx + r].
    """
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    dx, dz = np.meshgrid(offsets, offsets)
    dist = np.sqrt(dx * dx + dz * dz)
    weights = np.where(dist <= radius, np.maximum(0.0, radius - dist), 0.0)
    return weights / weights.sum()


def _bilinear(height: NDArray[np.float64], x: float, z: float) -> tuple[float, float, float]:
    """Height and gradient at a continuous position (x, z).

    The 2x2 cell neighbourhood is clamped to the grid.

    Returns:
        Tuple of (height, gradient_x, gradient_z).
    """
    size_z, size_x = height.shape
    node_x = int(math.floor(x))
    node_z = int(math.floor(z))
    u = x - node_x
    v = z - node_z
    x1 = min(node_x + 1, size_x - 1)
    z1 = min(node_z + 1, size_z - 1)

    h00 = float(height[node_z, node_x])
    h10 = float(height[node_z, x1])
    h01 = float(height[z1, node_x])
    h11 = float(height[z1, x1])

    value = h00 * (1 - u) * (1 - v) + h10 * u * (1 - v) + h01 * (1 - u) * v + h11 * u * v
    grad_x = (h10 - h00) * (1 - v) + (h11 - h01) * v
    grad_z = (h01 - h00) * (1 - u) + (h11 - h10) * u
    return value, grad_x, grad_z


def _deposit(
    height: NDArray[np.float64], x: float, z: float, amount: float
) -> None:
    """Split ``amount`` bilinearly across the four cells around (x, z)."""
    size_z, size_x = height.shape
    node_x = int(math.floor(x))
    node_z = int(math.floor(z))
    u = x - node_x
    v = z - node_z
    x1 = min(node_x + 1, size_x - 1)
    z1 = min(node_z + 1, size_z - 1)

    height[node_z, node_x] += amount * (1 - u) * (1 - v)
    height[node_z, x1] += amount * u * (1 - v)
    height[z1, node_x] += amount * (1 - u) * v
    height[z1, x1] += amount * u * v


def _erode_footprint(
    height: NDArray[np.float64],
    node_x: int,
    node_z: int,
    amount: float,
    weights: NDArray[np.float64],
) -> None:
    """Remove ``amount`` from a weighted neighbourhood, skipping cells off the grid."""
    size_z, size_x = height.shape
    radius = weights.shape[0] // 2

    z0 = max(node_z - radius, 0)
    z1 = min(node_z + radius + 1, size_z)
    x0 = max(node_x - radius, 0)
    x1 = min(node_x + radius + 1, size_x)

    window = height[z0:z1, x0:x1]
    kernel = weights[
        z0 - (node_z - radius) : z1 - (node_z - radius),
        x0 - (node_x - radius) : x1 - (node_x - radius),
    ]
    np.maximum(window - amount * kernel, 0.0, out=window)


def apply_hydraulic_erosion(
    height: NDArray[np.float64],
    droplet_count: int,
    rng: np.random.Generator,
    config: ErosionConfig,
) -> NDArray[np.float64]:
    """Simulate water droplets carving and depositing sediment.

    Droplets are simulated one at a time; each mutates the grid before
    the next starts.

    Args:
        height: Height grid indexed [z, x]. Not modified.
        droplet_count: Number of droplets to simulate.
        rng: Random stream for start positions and flat-ground directions.
        config: Erosion parameters.

    Returns:
        Eroded copy of the grid. No cell is negative.
    """
    height = height.copy()
    size = height.shape[0]
    radius = config.radius
    low, high = radius, size - radius

    if high <= low or droplet_count <= 0:
        return height

    weights = erosion_weights(radius)
    inertia = config.inertia

    for _ in range(droplet_count):
        pos_x = float(rng.integers(low, high))
        pos_z = float(rng.integers(low, high))
        dir_x = 0.0
        dir_z = 0.0
        speed = 1.0
        water = 1.0
        sediment = 0.0

        for _ in range(config.max_lifetime):
            node_x = int(math.floor(pos_x))
            node_z = int(math.floor(pos_z))
            if not (low <= node_x < high and low <= node_z < high):
                break

            current, grad_x, grad_z = _bilinear(height, pos_x, pos_z)

            dir_x = dir_x * inertia - grad_x * (1 - inertia)
            dir_z = dir_z * inertia - grad_z * (1 - inertia)
            length = math.sqrt(dir_x * dir_x + dir_z * dir_z)
            if length < 1e-4:
                angle = rng.random() * 2.0 * math.pi
                dir_x = math.cos(angle)
                dir_z = math.sin(angle)
            else:
                dir_x /= length
                dir_z /= length

            new_x = pos_x + dir_x
            new_z = pos_z + dir_z
            if not (low <= new_x < high and low <= new_z < high):
                break

            delta = _bilinear(height, new_x, new_z)[0] - current

            capacity = max(
                -delta * speed * water * config.sediment_capacity_factor,
                config.min_sediment_capacity,
            )

            if sediment > capacity or delta > 0:
                if delta > 0:
                    deposit = min(delta, sediment)
                else:
                    deposit = (sediment - capacity) * config.deposit_speed
                sediment -= deposit
                _deposit(height, pos_x, pos_z, deposit)
            else:
                erode = min((capacity - sediment) * config.erode_speed, -delta)
                _erode_footprint(height, node_x, node_z, erode, weights)
                sediment += erode

            speed = math.sqrt(max(0.0, speed * speed - delta * config.gravity))
            water *= 1 - config.evaporate_speed

            pos_x = new_x
            pos_z = new_z

            if water < config.min_water:
                break

    return np.maximum(height, 0.0)


def apply_thermal_erosion(
    height: NDArray[np.float64],
    config: ErosionConfig,
) -> NDArray[np.float64]:
    """Slump material from each interior cell toward its lowest neighbour.

    The talus threshold ramps from ``base_talus`` on low ground to
    ``rock_talus`` on high ground. All cells are updated together per
    iteration.

    Args:
        height: Height grid indexed [z, x]. Not modified.
        config: Erosion parameters.

    Returns:
        Slumped copy of the grid. No cell is negative.
    """
    height = height.copy()
    size_z, size_x = height.shape
    if size_z < 3 or size_x < 3:
        return height

    for _ in range(config.thermal_iterations):
        interior = height[1:-1, 1:-1]
        neighbors = np.stack([
            height[1 + dz : size_z - 1 + dz, 1 + dx : size_x - 1 + dx]
            for dx, dz in zip(THERMAL_DX, THERMAL_DZ)
        ])

        lowest = np.argmin(neighbors, axis=0)
        min_neighbor = np.take_along_axis(neighbors, lowest[np.newaxis], axis=0)[0]
        diff = interior - min_neighbor

        rock = np.clip((interior - config.rock_threshold) * config.rock_gain, 0.0, 1.0)
        talus = config.base_talus + (config.rock_talus - config.base_talus) * rock
        moving = diff > talus

        transfer = np.where(moving, diff * config.thermal_transfer, 0.0)
        result = height.copy()
        result[1:-1, 1:-1] -= transfer

        zs, xs = np.nonzero(moving)
        direction = lowest[moving]
        np.add.at(
            result,
            (zs + 1 + THERMAL_DZ[direction], xs + 1 + THERMAL_DX[direction]),
            transfer[moving] * config.thermal_retention,
        )
        height = np.maximum(result, 0.0)

    return height


def erode(
    height: NDArray[np.float64],
    config: WorldGenConfig,
    rng: np.random.Generator,
) -> NDArray[np.float64]:
    """Run the hydraulic pass followed by the thermal pass.

    ``noise.erosion_iterations == 0`` disables both passes and returns an
    unmodified copy.

    Args:
        height: Normalized height grid.
        config: World configuration.
        rng: Random stream for droplets.

    Returns:
        Eroded grid clamped to [0, 1].
    """
    iterations = config.noise.erosion_iterations
    if iterations == 0:
        return height.copy()

    droplet_count = iterations * config.erosion.droplets_per_iteration
    eroded = apply_hydraulic_erosion(height, droplet_count, rng, config.erosion)
    eroded = apply_thermal_erosion(eroded, config.erosion)
    eroded = np.clip(eroded, 0.0, 1.0)

    logger.info(
        "erosion_applied",
        droplets=droplet_count,
        thermal_iterations=config.erosion.thermal_iterations,
        mean_change=float(np.mean(np.abs(eroded - height))),
    )
    return eroded
