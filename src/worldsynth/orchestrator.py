"""Generation orchestration: stage sequencing, progress, cancellation, results.

Stages run strictly forward:

    IDLE -> SYNTHESIZING_HEIGHTMAP -> TRACING_HYDROLOGY -> BUILDING_CLIMATE
         -> EXTRACTING_FEATURES -> APPLYING_DOWNSTREAM -> COMPLETE

Hydrology runs before climate because moisture consumes the river grid.
``CANCELLED`` and ``FAILED`` are terminal as well.
"""

import hashlib
import threading
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Callable, Iterator, Sequence

import numpy as np
import structlog
from numpy.typing import NDArray

from .biomes import classify_biome, classify_grid
from .climate import build_climate
from .config import WorldGenConfig
from .erosion import erode
from .exceptions import ConfigurationError, GenerationCancelled, GenerationStateError
from .features import FEATURE_FIELDS, extract_features
from .heightmap import iter_heightmap_rows, normalize_heightmap
from .hydrology import trace_rivers
from .noise import NoiseSeed, make_rng, make_voronoi_points
from .types import DEFAULT_BIOME, BiomeCategory, FeatureKind, FeatureSite, RiverPath
from .validation import ValidationResult, validate_world

logger = structlog.get_logger()

# Independent random streams per consumer of the seed
NOISE_STREAM = 0
EROSION_STREAM = 1
HYDROLOGY_STREAM = 2


class GenerationState(str, Enum):
    """Orchestrator lifecycle states."""

    IDLE = "idle"
    SYNTHESIZING_HEIGHTMAP = "synthesizing_heightmap"
    TRACING_HYDROLOGY = "tracing_hydrology"
    BUILDING_CLIMATE = "building_climate"
    EXTRACTING_FEATURES = "extracting_features"
    APPLYING_DOWNSTREAM = "applying_downstream"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {GenerationState.COMPLETE, GenerationState.CANCELLED, GenerationState.FAILED}
)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification."""

    state: GenerationState
    label: str
    progress: float


class CancellationToken:
    """Thread-safe cooperative cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled("World generation was cancelled")


@dataclass(frozen=True, eq=False)
class WorldResult:
    """Immutable bundle of everything a generation run produced.

    All grids are read-only arrays of shape (world_size, world_size),
    indexed [z, x].
    """

    config: WorldGenConfig
    height: NDArray[np.float64]
    moisture: NDArray[np.float64]
    temperature: NDArray[np.float64]
    river: NDArray[np.float64]
    accumulation: NDArray[np.float64]
    voronoi_points: NDArray[np.float64]
    river_paths: tuple[RiverPath, ...] = ()
    lakes: tuple[FeatureSite, ...] = ()
    peaks: tuple[FeatureSite, ...] = ()
    village_sites: tuple[FeatureSite, ...] = ()
    cave_mouths: tuple[FeatureSite, ...] = ()

    def __post_init__(self) -> None:
        for grid in (
            self.height,
            self.moisture,
            self.temperature,
            self.river,
            self.accumulation,
            self.voronoi_points,
        ):
            grid.flags.writeable = False

    @property
    def size(self) -> int:
        return self.config.world_size

    def in_bounds(self, x: int, z: int) -> bool:
        return 0 <= x < self.size and 0 <= z < self.size

    def biome_at(self, x: int, z: int) -> BiomeCategory:
        """Biome of grid cell (x, z); the default biome outside the grid."""
        if not self.in_bounds(x, z):
            return DEFAULT_BIOME
        return classify_biome(
            float(self.height[z, x]),
            float(self.moisture[z, x]),
            float(self.temperature[z, x]),
            self.config.water_level,
            self.config.biomes,
        )

    @cached_property
    def _biome_codes(self) -> NDArray[np.uint8]:
        codes = classify_grid(
            self.height,
            self.moisture,
            self.temperature,
            self.config.water_level,
            self.config.biomes,
        )
        codes.flags.writeable = False
        return codes

    def biome_map(self) -> NDArray[np.uint8]:
        """Read-only biome codes for every cell (see biomes.code_to_biome)."""
        return self._biome_codes

    def _grid_cell(self, world_x: float, world_z: float) -> tuple[int, int]:
        scale = self.config.world_scale
        x = min(max(int(world_x / scale), 0), self.size - 1)
        z = min(max(int(world_z / scale), 0), self.size - 1)
        return x, z

    def height_at(self, world_x: float, world_z: float) -> float:
        """Terrain height in world units at a world position, clamped to the grid."""
        x, z = self._grid_cell(world_x, world_z)
        return float(self.height[z, x]) * self.config.terrain_amplitude

    def is_underwater(self, world_x: float, world_z: float) -> bool:
        x, z = self._grid_cell(world_x, world_z)
        return bool(self.height[z, x] < self.config.water_level)

    def features(self, kind: FeatureKind) -> list[FeatureSite]:
        return list(getattr(self, FEATURE_FIELDS[kind]))

    def checksum(self) -> str:
        """SHA-256 hex digest over every grid, for determinism checks."""
        digest = hashlib.sha256()
        for grid in (self.height, self.moisture, self.temperature, self.river, self.accumulation):
            digest.update(np.ascontiguousarray(grid, dtype=np.float64).tobytes())
        return digest.hexdigest()


ProgressCallback = Callable[[ProgressEvent], None]
DownstreamConsumer = Callable[[WorldResult], None]


class GenerationOrchestrator:
    """Runs one generation from a config to a WorldResult.

    Drive it either with ``run()`` or by iterating ``steps()``, which
    yields a ProgressEvent after every heightmap row batch and every
    stage. An orchestrator runs once; create a new one per world.
    """

    def __init__(
        self,
        config: WorldGenConfig,
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
        downstream: Sequence[DownstreamConsumer] = (),
    ):
        self.config = config
        self.progress_callback = progress_callback
        self.cancel_token = cancel_token or CancellationToken()
        self.downstream = tuple(downstream)

        self.state = GenerationState.IDLE
        self.progress = 0.0
        self.result: WorldResult | None = None
        self.validation: ValidationResult | None = None
        self._started = False

    def _check_cancelled(self) -> None:
        self.cancel_token.raise_if_cancelled()

    def _advance(self, state: GenerationState, label: str, progress: float) -> ProgressEvent:
        """Enter ``state`` and report progress, never moving it backwards."""
        self.state = state
        self.progress = min(1.0, max(self.progress, progress))
        event = ProgressEvent(state=state, label=label, progress=self.progress)
        logger.debug("generation_progress", state=state.value, label=label, progress=self.progress)
        if self.progress_callback is not None:
            self.progress_callback(event)
        return event

    def steps(self) -> Iterator[ProgressEvent]:
        """Run the pipeline incrementally.

        Yields:
            ProgressEvent after every row batch and stage.

        Raises:
            GenerationStateError: If this orchestrator already ran.
            ConfigurationError: If ``world_size`` is not positive.
            GenerationCancelled: If the cancel token was set.
        """
        if self._started:
            raise GenerationStateError(
                f"Generation already started (state: {self.state.value})"
            )
        self._started = True

        if self.config.world_size <= 0:
            self.state = GenerationState.FAILED
            raise ConfigurationError(
                f"world_size must be positive, got {self.config.world_size}"
            )

        try:
            yield from self._generate()
        except GenerationCancelled:
            self.state = GenerationState.CANCELLED
            logger.info("generation_cancelled", progress=self.progress)
            raise
        except GeneratorExit:
            if self.state not in TERMINAL_STATES:
                self.state = GenerationState.CANCELLED
            raise
        except Exception:
            self.state = GenerationState.FAILED
            raise

    def run(self) -> WorldResult:
        """Run the whole pipeline and return the result."""
        for _ in self.steps():
            pass
        if self.result is None:
            raise GenerationStateError(
                f"Generation finished without a result (state: {self.state.value})"
            )
        return self.result

    def _generate(self) -> Iterator[ProgressEvent]:
        config = self.config
        size = config.world_size
        seed = config.seed

        logger.info("generation_started", seed=seed, world_size=size)
        self._check_cancelled()

        # Stage 1: Heightmap
        noise_rng = make_rng(seed, NOISE_STREAM)
        noise_seed = NoiseSeed.from_rng(noise_rng)
        voronoi_points = make_voronoi_points(noise_rng, config.voronoi.cell_count)
        yield self._advance(GenerationState.SYNTHESIZING_HEIGHTMAP, "heightmap", 0.05)

        height = np.empty((size, size), dtype=np.float64)
        for rows in iter_heightmap_rows(config, noise_seed, voronoi_points, height):
            self._check_cancelled()
            yield self._advance(
                GenerationState.SYNTHESIZING_HEIGHTMAP, "heightmap", 0.05 + 0.1 * rows / size
            )

        height = normalize_heightmap(height)
        logger.info(
            "heightmap_built",
            min=float(np.min(height)),
            max=float(np.max(height)),
            mean=float(np.mean(height)),
        )

        self._check_cancelled()
        height = erode(height, config, make_rng(seed, EROSION_STREAM))
        yield self._advance(GenerationState.SYNTHESIZING_HEIGHTMAP, "erosion", 0.2)

        # Stage 2: Hydrology
        self._check_cancelled()
        self.state = GenerationState.TRACING_HYDROLOGY
        hydrology = trace_rivers(
            height, make_rng(seed, HYDROLOGY_STREAM), config.water_level, config.rivers
        )
        height = hydrology.height
        yield self._advance(GenerationState.TRACING_HYDROLOGY, "hydrology", 0.3)

        # Stage 3: Climate
        self._check_cancelled()
        self.state = GenerationState.BUILDING_CLIMATE
        moisture, temperature = build_climate(height, hydrology.river, noise_seed, config)
        yield self._advance(GenerationState.BUILDING_CLIMATE, "climate", 0.4)

        # Stage 4: Features
        self._check_cancelled()
        self.state = GenerationState.EXTRACTING_FEATURES
        features = extract_features(height, config)

        result = WorldResult(
            config=config,
            height=height,
            moisture=moisture,
            temperature=temperature,
            river=hydrology.river,
            accumulation=hydrology.accumulation,
            voronoi_points=voronoi_points,
            river_paths=tuple(hydrology.paths),
            lakes=tuple(features.lakes),
            peaks=tuple(features.peaks),
            village_sites=tuple(features.village_sites),
            cave_mouths=tuple(features.cave_mouths),
        )
        self.validation = validate_world(result)
        yield self._advance(GenerationState.EXTRACTING_FEATURES, "features", 0.45)

        # Stage 5: Downstream consumers see the finished, read-only result
        count = len(self.downstream)
        for index, consumer in enumerate(self.downstream):
            self._check_cancelled()
            self.state = GenerationState.APPLYING_DOWNSTREAM
            consumer(result)
            yield self._advance(
                GenerationState.APPLYING_DOWNSTREAM,
                "downstream",
                0.45 + 0.55 * (index + 1) / count,
            )

        self._check_cancelled()
        self.result = result
        logger.info("generation_complete", seed=seed, checksum=result.checksum())
        yield self._advance(GenerationState.COMPLETE, "complete", 1.0)


def generate_world(
    config: WorldGenConfig,
    progress_callback: ProgressCallback | None = None,
    cancel_token: CancellationToken | None = None,
    downstream: Sequence[DownstreamConsumer] = (),
) -> WorldResult:
    """Generate a complete world from configuration.

    Args:
        config: World configuration.
        progress_callback: Optional receiver of ProgressEvents.
        cancel_token: Optional cooperative cancellation flag.
        downstream: Optional consumers run on the finished result.

    Returns:
        The finished WorldResult.
    """
    return GenerationOrchestrator(
        config,
        progress_callback=progress_callback,
        cancel_token=cancel_token,
        downstream=downstream,
    ).run()
