"""Procedural world synthesis from a single integer seed.

Grid convention: every grid is a NumPy array of shape ``(size, size)``
indexed ``grid[z, x]`` (row = z, column = x). Public coordinates are
always given as ``(x, z)``.
"""

from .biomes import classify_biome, classify_grid, code_to_biome
from .config import WorldGenConfig, find_config, list_configs, load_config
from .exceptions import (
    ConfigurationError,
    GenerationCancelled,
    GenerationStateError,
    WorldGenError,
)
from .orchestrator import (
    CancellationToken,
    GenerationOrchestrator,
    GenerationState,
    ProgressEvent,
    WorldResult,
    generate_world,
)
from .types import (
    DEFAULT_BIOME,
    BiomeCategory,
    FeatureKind,
    FeatureSite,
    GridPosition,
    RiverPath,
    WorldPosition,
)
from .validation import ValidationResult, validate_world

__all__ = [
    # Types
    "BiomeCategory",
    "DEFAULT_BIOME",
    "FeatureKind",
    "FeatureSite",
    "GridPosition",
    "WorldPosition",
    "RiverPath",
    # Config
    "WorldGenConfig",
    "load_config",
    "find_config",
    "list_configs",
    # Orchestration
    "GenerationOrchestrator",
    "GenerationState",
    "ProgressEvent",
    "CancellationToken",
    "WorldResult",
    "generate_world",
    # Biomes
    "classify_biome",
    "classify_grid",
    "code_to_biome",
    # Validation
    "ValidationResult",
    "validate_world",
    # Exceptions
    "WorldGenError",
    "ConfigurationError",
    "GenerationCancelled",
    "GenerationStateError",
]
