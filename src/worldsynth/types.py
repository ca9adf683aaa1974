"""Core types shared by the generation stages.

Coordinate system: every grid is a ``(size, size)`` array indexed
``grid[z, x]`` (row = z, column = x). Public coordinates are always
passed and returned in ``(x, z)`` order.
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel


class BiomeCategory(str, Enum):
    """Closed set of biome categories produced by the decision table."""

    OCEAN = "ocean"
    BEACH = "beach"
    PLAINS = "plains"
    FOREST = "forest"
    DESERT = "desert"
    SWAMP = "swamp"
    TUNDRA = "tundra"
    MOUNTAINS = "mountains"


DEFAULT_BIOME = BiomeCategory.PLAINS


class FeatureKind(str, Enum):
    """Kinds of notable sites located in a finished world."""

    LAKE = "lake"
    PEAK = "peak"
    VILLAGE_SITE = "village_site"
    CAVE_MOUTH = "cave_mouth"


class GridPosition(BaseModel, frozen=True):
    """Immutable grid cell coordinate."""

    x: int
    z: int

    def distance_to(self, other: "GridPosition") -> float:
        """Euclidean distance in cells."""
        return ((self.x - other.x) ** 2 + (self.z - other.z) ** 2) ** 0.5


class WorldPosition(BaseModel, frozen=True):
    """Immutable position in world units (y is up)."""

    x: float
    y: float
    z: float


class FeatureSite(BaseModel, frozen=True):
    """A located site of a given kind."""

    kind: FeatureKind
    grid_position: GridPosition
    world_position: WorldPosition


@dataclass(frozen=True)
class RiverPath:
    """One particle's descent from source to termination."""

    points: tuple[tuple[int, int], ...]  # (x, z) coordinates
    source_height: float

    def __len__(self) -> int:
        return len(self.points)

    @property
    def source(self) -> tuple[int, int]:
        return self.points[0]
