"""Post-generation validation of a finished world."""

from typing import TYPE_CHECKING

import numpy as np
import structlog
from numpy.typing import NDArray

from .types import FeatureKind, FeatureSite, RiverPath

if TYPE_CHECKING:
    from .orchestrator import WorldResult

logger = structlog.get_logger()


class ValidationResult:
    """Result of world validation."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.passed = True

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.errors.append(message)
        self.passed = False

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)


def validate_world(world: "WorldResult") -> ValidationResult:
    """Check a finished world against the pipeline invariants.

    Args:
        world: Completed result bundle.

    Returns:
        ValidationResult with any errors/warnings.
    """
    result = ValidationResult()
    config = world.config
    size = config.world_size

    grids = {
        "height": world.height,
        "moisture": world.moisture,
        "temperature": world.temperature,
        "river": world.river,
        "accumulation": world.accumulation,
    }

    # Check 1: All grids share the configured dimensions
    _check_shapes(grids, size, result)

    # Check 2: Unit-range fields stay in [0, 1]
    for name in ("height", "moisture", "temperature", "river"):
        _check_unit_range(name, grids[name], result)

    # Check 3: River paths stay on the grid and are long enough
    _check_river_paths(world.river_paths, size, config.rivers.min_length, result)

    # Check 4: Feature sites are in bounds and separated
    separations = {
        FeatureKind.LAKE: config.features.lake_separation,
        FeatureKind.PEAK: config.features.peak_separation,
        FeatureKind.VILLAGE_SITE: config.features.village_separation,
        FeatureKind.CAVE_MOUTH: config.features.cave_separation,
    }
    for kind, separation in separations.items():
        _check_feature_sites(kind, world.features(kind), size, separation, result)

    if not np.any(world.height > config.water_level):
        result.add_warning("World has no land above water level")

    if result.passed:
        logger.info("world_validation_passed", warnings=len(result.warnings))
    else:
        logger.warning("world_validation_failed", errors=result.errors)

    for warning in result.warnings:
        logger.warning("world_validation_warning", message=warning)

    return result


def _check_shapes(
    grids: dict[str, NDArray[np.float64]], size: int, result: ValidationResult
) -> None:
    """Check every grid is (size, size)."""
    for name, grid in grids.items():
        if grid.shape != (size, size):
            result.add_error(f"{name} grid has shape {grid.shape}, expected {(size, size)}")


def _check_unit_range(
    name: str, grid: NDArray[np.float64], result: ValidationResult
) -> None:
    """Check values lie in [0, 1] and are finite."""
    if not np.all(np.isfinite(grid)):
        result.add_error(f"{name} grid contains non-finite values")
        return
    low = float(np.min(grid))
    high = float(np.max(grid))
    if low < 0.0 or high > 1.0:
        result.add_error(f"{name} grid out of range: [{low:.4f}, {high:.4f}]")


def _check_river_paths(
    paths: tuple[RiverPath, ...], size: int, min_length: int, result: ValidationResult
) -> None:
    """Check river points lie inside the grid and paths exceed the minimum length."""
    for index, path in enumerate(paths):
        if len(path) <= min_length:
            result.add_error(f"River path {index} has only {len(path)} points")
        outside = [(x, z) for x, z in path.points if not (0 <= x < size and 0 <= z < size)]
        if outside:
            result.add_error(f"River path {index} leaves the grid at {outside[0]}")


def _check_feature_sites(
    kind: FeatureKind,
    sites: list[FeatureSite],
    size: int,
    separation: float,
    result: ValidationResult,
) -> None:
    """Check sites of one kind are on the grid and pairwise separated."""
    for site in sites:
        pos = site.grid_position
        if not (0 <= pos.x < size and 0 <= pos.z < size):
            result.add_error(f"{kind.value} at ({pos.x}, {pos.z}) is outside the grid")

    for i, first in enumerate(sites):
        for second in sites[i + 1 :]:
            distance = first.grid_position.distance_to(second.grid_position)
            if distance < separation:
                result.add_error(
                    f"{kind.value} sites {first.grid_position} and {second.grid_position} "
                    f"are {distance:.1f} apart (minimum {separation})"
                )
