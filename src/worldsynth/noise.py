"""Noise synthesis for terrain and climate fields.

Provides seeded gradient noise, fBm (fractal Brownian motion), ridge
noise, recursive domain warping and Voronoi F2-F1 cellular noise. All
functions are pure: they take coordinate arrays plus seed-derived tables
and return arrays of the same shape.
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .config import WarpConfig

# Gradient directions for 2D gradient noise
_GRADIENTS = np.array(
    [[1, 1], [-1, 1], [1, -1], [-1, -1], [1, 0], [-1, 0], [0, 1], [0, -1]],
    dtype=np.float64,
)

# Offset range for seed-derived coordinate shifts
_OFFSET_RANGE = 100.0


def make_rng(seed: int, stream: int) -> np.random.Generator:
    """Create an independent random stream for one consumer of a seed.

    Args:
        seed: Signed 32-bit world seed.
        stream: Stream identifier, unique per consumer.

    Returns:
        Seeded NumPy generator.
    """
    return np.random.default_rng([seed & 0xFFFFFFFF, stream])


def make_permutation(rng: np.random.Generator) -> NDArray[np.int64]:
    """Build a shuffled 256-entry permutation table, doubled to 512."""
    p = np.arange(256, dtype=np.int64)
    rng.shuffle(p)
    table = np.concatenate([p, p])
    table.flags.writeable = False
    return table


@dataclass(frozen=True)
class NoiseSeed:
    """Seed-derived tables shared by every noise evaluation of a run."""

    permutation: NDArray[np.int64]
    terrain_offset: tuple[float, float]
    moisture_offset: tuple[float, float]
    temperature_offset: tuple[float, float]

    @classmethod
    def from_rng(cls, rng: np.random.Generator) -> "NoiseSeed":
        permutation = make_permutation(rng)
        offsets = rng.uniform(0.0, _OFFSET_RANGE, size=6)
        return cls(
            permutation=permutation,
            terrain_offset=(float(offsets[0]), float(offsets[1])),
            moisture_offset=(float(offsets[2]), float(offsets[3])),
            temperature_offset=(float(offsets[4]), float(offsets[5])),
        )


def _fade(t: NDArray[np.float64]) -> NDArray[np.float64]:
    "6t^5 - 15t^4 + 10t^3"
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def lerp(a, b, t):
    "Linear interpolation."
    return a + t * (b - a)


def _gradient_dot(
    h: NDArray[np.int64], dx: NDArray[np.float64], dz: NDArray[np.float64]
) -> NDArray[np.float64]:
    g = _GRADIENTS[h & 7]
    return g[..., 0] * dx + g[..., 1] * dz


def gradient_noise(
    permutation: NDArray[np.int64],
    x: ArrayLike,
    z: ArrayLike,
) -> NDArray[np.float64]:
    """Evaluate single-octave coherent gradient noise.

    Args:
        permutation: 512-entry table from make_permutation.
        x: Sample x coordinates (lattice units).
        z: Sample z coordinates (lattice units).

    Returns:
        Noise values in [0, 1], shaped like the broadcast of x and z.
    """
    x, z = np.broadcast_arrays(
        np.asarray(x, dtype=np.float64), np.asarray(z, dtype=np.float64)
    )
    x0 = np.floor(x)
    z0 = np.floor(z)
    xf = x - x0
    zf = z - z0
    xi = x0.astype(np.int64) & 255
    zi = z0.astype(np.int64) & 255

    u = _fade(xf)
    v = _fade(zf)

    p = permutation
    h00 = p[p[xi] + zi]
    h01 = p[p[xi] + zi + 1]
    h10 = p[p[xi + 1] + zi]
    h11 = p[p[xi + 1] + zi + 1]

    n00 = _gradient_dot(h00, xf, zf)
    n10 = _gradient_dot(h10, xf - 1.0, zf)
    n01 = _gradient_dot(h01, xf, zf - 1.0)
    n11 = _gradient_dot(h11, xf - 1.0, zf - 1.0)

    n = lerp(lerp(n00, n10, u), lerp(n01, n11, u), v)
    return np.clip(0.5 + 0.5 * n, 0.0, 1.0)


def fbm(
    permutation: NDArray[np.int64],
    x: ArrayLike,
    z: ArrayLike,
    octaves: int,
    persistence: float,
    lacunarity: float,
    scale: float,
) -> NDArray[np.float64]:
    """Fractal Brownian motion over normalized coordinates.

    Octave i is sampled at frequency ``scale * lacunarity**i`` with
    amplitude ``persistence**i``; the sum is divided by the total
    amplitude so the result stays in [0, 1].

    Args:
        permutation: Noise permutation table.
        x: Normalized x coordinates.
        z: Normalized z coordinates.
        octaves: Number of noise layers to sum.
        persistence: Amplitude multiplier between octaves.
        lacunarity: Frequency multiplier between octaves.
        scale: Base frequency.

    Returns:
        Noise values in [0, 1].
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    total = np.zeros(np.broadcast_shapes(x.shape, z.shape), dtype=np.float64)

    amplitude = 1.0
    frequency = 1.0
    max_value = 0.0

    for _ in range(octaves):
        total += gradient_noise(
            permutation, x * scale * frequency, z * scale * frequency
        ) * amplitude
        max_value += amplitude
        amplitude *= persistence
        frequency *= lacunarity

    return total / max_value


def ridge_noise(
    permutation: NDArray[np.int64],
    x: ArrayLike,
    z: ArrayLike,
    octaves: int,
    scale: float,
    ridge_scale: float,
    persistence: float = 0.5,
    lacunarity: float = 2.0,
) -> NDArray[np.float64]:
    """Ridge noise: each octave folded by ``1 - |2n - 1|`` and squared.

    Produces sharp crest lines where the underlying noise crosses its
    midpoint.

    Returns:
        Noise values in [0, 1].
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    total = np.zeros(np.broadcast_shapes(x.shape, z.shape), dtype=np.float64)

    amplitude = 1.0
    frequency = ridge_scale
    max_value = 0.0

    for _ in range(octaves):
        n = gradient_noise(permutation, x * frequency * scale, z * frequency * scale)
        n = 1.0 - np.abs(n * 2.0 - 1.0)
        total += n * n * amplitude
        max_value += amplitude
        amplitude *= persistence
        frequency *= lacunarity

    return total / max_value


def domain_warp(
    permutation: NDArray[np.int64],
    x: ArrayLike,
    z: ArrayLike,
    config: WarpConfig,
    scale: float,
    offset: tuple[float, float] = (0.0, 0.0),
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Displace coordinates by a warp field, then by a warp of the warp.

    The second level samples the first level's displaced coordinates,
    which breaks up axis-aligned artifacts.

    Args:
        permutation: Noise permutation table.
        x: Normalized x coordinates.
        z: Normalized z coordinates.
        config: Warp strength, octaves and frequencies.
        scale: Base terrain frequency; warp fields use multiples of it.
        offset: Seed-derived coordinate offset.

    Returns:
        Tuple of (warped_x, warped_z).
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    ox, oz = offset
    strength = config.strength
    coarse = scale * config.scale
    fine = scale * config.fine_scale
    persistence = config.persistence
    lacunarity = config.lacunarity

    # Fixed shifts decorrelate the x and z warp fields
    warp_x1 = fbm(permutation, x + ox, z + oz, config.octaves, persistence, lacunarity, coarse)
    warp_z1 = fbm(
        permutation, x + ox + 5.2, z + oz + 1.3, config.octaves, persistence, lacunarity, coarse
    )

    inner_x = x + warp_x1 * strength
    inner_z = z + warp_z1 * strength
    warp_x2 = fbm(
        permutation, inner_x + ox, inner_z + oz, config.fine_octaves, persistence, lacunarity, fine
    )
    warp_z2 = fbm(
        permutation,
        inner_x + ox + 3.7,
        inner_z + oz + 8.3,
        config.fine_octaves,
        persistence,
        lacunarity,
        fine,
    )

    warped_x = x + (warp_x1 + warp_x2 * config.fine_weight) * strength
    warped_z = z + (warp_z1 + warp_z2 * config.fine_weight) * strength
    return warped_x, warped_z


def make_voronoi_points(rng: np.random.Generator, count: int) -> NDArray[np.float64]:
    """Scatter ``count`` points uniformly in the unit square.

    Returns:
        Read-only array of shape (count, 2) holding (x, z) pairs.
    """
    points = rng.random((count, 2))
    points.flags.writeable = False
    return points


def voronoi_noise(
    points: NDArray[np.float64],
    x: ArrayLike,
    z: ArrayLike,
) -> NDArray[np.float64]:
    """Cellular noise: distance to second-nearest minus nearest point.

    Values vanish on cell boundaries and grow toward cell interiors.

    Args:
        points: (n, 2) array of normalized (x, z) points.
        x: Normalized x coordinates.
        z: Normalized z coordinates.

    Returns:
        F2 - F1 per sample. Zero when there are no points, infinite
        when there is exactly one.
    """
    x, z = np.broadcast_arrays(
        np.asarray(x, dtype=np.float64), np.asarray(z, dtype=np.float64)
    )
    if len(points) == 0:
        return np.zeros(x.shape, dtype=np.float64)
    if len(points) == 1:
        return np.full(x.shape, np.inf, dtype=np.float64)

    dx = x[..., np.newaxis] - points[:, 0]
    dz = z[..., np.newaxis] - points[:, 1]
    dist = np.sqrt(dx * dx + dz * dz)

    nearest = np.partition(dist, 1, axis=-1)
    return nearest[..., 1] - nearest[..., 0]


def smoothstep(edge0: float, edge1: float, x: ArrayLike) -> NDArray[np.float64]:
    """Smooth Hermite interpolation between 0 and 1.

    Args:
        edge0: Lower edge of transition.
        edge1: Upper edge of transition.
        x: Input values.

    Returns:
        Smoothly interpolated values in [0, 1].
    """
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)
