"""World generation configuration models and TOML loading."""

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class NoiseConfig(BaseModel):
    """Base terrain noise parameters."""

    scale: float = Field(default=50.0, gt=0, description="Base sampling frequency")
    octaves: int = Field(default=6, ge=1, description="Number of octaves for fBm")
    persistence: float = Field(
        default=0.5, ge=0.0, description="Amplitude multiplier per octave"
    )
    lacunarity: float = Field(default=2.0, gt=0, description="Frequency multiplier per octave")
    redistribution: float = Field(
        default=1.2, gt=0, description="Power-law exponent for valley/peak contrast"
    )
    add_ridges: bool = Field(default=True, description="Blend ridge noise on high terrain")
    ridge_weight: float = Field(default=0.3, ge=0.0, description="Ridge blend weight")
    ridge_scale: float = Field(default=3.0, gt=0, description="Ridge frequency multiplier")
    ridge_octaves: int = Field(default=4, ge=1, description="Ridge noise octaves")
    erosion_iterations: int = Field(
        default=3, ge=0, description="Hydraulic erosion iterations (0 disables erosion)"
    )


class WarpConfig(BaseModel):
    """Domain warping configuration."""

    enabled: bool = Field(default=True, description="Warp coordinates before sampling")
    strength: float = Field(default=0.15, description="Warp displacement strength")
    octaves: int = Field(default=4, ge=1, description="Octaves of the first warp level")
    persistence: float = Field(default=0.5, ge=0.0)
    lacunarity: float = Field(default=2.0, gt=0)
    scale: float = Field(
        default=0.5, gt=0, description="First warp frequency as a multiple of noise.scale"
    )
    fine_octaves: int = Field(default=3, ge=1, description="Octaves of the warp-of-warp")
    fine_scale: float = Field(
        default=0.3, gt=0, description="Warp-of-warp frequency as a multiple of noise.scale"
    )
    fine_weight: float = Field(default=0.5, description="Warp-of-warp displacement weight")


class VoronoiConfig(BaseModel):
    """Cellular plateau noise configuration."""

    enabled: bool = Field(default=True, description="Blend Voronoi plateaus")
    weight: float = Field(default=0.1, ge=0.0, description="Plateau blend weight")
    cell_count: int = Field(default=64, ge=0, description="Number of Voronoi points")
    contrast: float = Field(default=5.0, description="F2-F1 scale before clamping")


class LayerConfig(BaseModel):
    """One fBm layer of the height blend."""

    frequency: float = Field(default=1.0, gt=0, description="Coordinate multiplier")
    octaves: int = Field(default=4, ge=1)
    persistence: float = Field(default=0.5, ge=0.0)
    lacunarity: float = Field(default=2.0, gt=0)
    scale: float = Field(default=1.0, gt=0, description="Multiple of noise.scale")
    offset: float = Field(default=0.0, description="Extra coordinate shift")


class HeightmapConfig(BaseModel):
    """Layer weights and shaping passes for height synthesis.

    The base layer uses the top-level ``noise`` parameters; the other four
    layers are configured here.
    """

    continent_weight: float = Field(default=0.25, description="Continental mask weight")
    base_weight: float = Field(default=0.35, description="Base terrain weight")
    mountain_weight: float = Field(default=0.25, description="Mountain noise weight")
    detail_weight: float = Field(default=0.10, description="Detail noise weight")
    micro_weight: float = Field(default=0.05, description="Micro-detail weight")
    continent: LayerConfig = Field(
        default_factory=lambda: LayerConfig(
            frequency=0.3, octaves=3, persistence=0.6, lacunarity=2.0, scale=0.2
        )
    )
    mountain: LayerConfig = Field(
        default_factory=lambda: LayerConfig(
            frequency=1.5, octaves=5, persistence=0.55, lacunarity=2.2, scale=0.8, offset=100.0
        )
    )
    detail: LayerConfig = Field(
        default_factory=lambda: LayerConfig(
            frequency=3.0, octaves=4, persistence=0.4, lacunarity=2.5, scale=2.5
        )
    )
    micro: LayerConfig = Field(
        default_factory=lambda: LayerConfig(
            frequency=8.0, octaves=3, persistence=0.3, lacunarity=2.0, scale=5.0
        )
    )
    continent_exponent: float = Field(
        default=1.5, description="Exponent sharpening land/ocean separation"
    )
    plateau_threshold: float = Field(
        default=0.4, description="Height above which Voronoi plateaus fade in"
    )
    plateau_gain: float = Field(default=3.0, description="Plateau mask ramp steepness")
    plateau_height: float = Field(default=0.15, description="Plateau height contribution")
    ridge_threshold: float = Field(
        default=0.55, description="Height above which ridges fade in"
    )
    ridge_gain: float = Field(default=2.5, description="Ridge mask ramp steepness")
    ridge_height: float = Field(default=0.25, description="Ridge height contribution")
    terrace_steps: int = Field(default=12, ge=1, description="Terrace quantization steps")
    terrace_strength: float = Field(default=0.03, description="Terrace blend strength")
    terrace_threshold: float = Field(
        default=0.5, description="Height above which terracing fades in"
    )
    terrace_gain: float = Field(default=2.0, description="Terrace mask ramp steepness")
    safe_zone_radius: float = Field(
        default=0.15, ge=0.0, description="Flat spawn disk radius (normalized)"
    )
    safe_zone_transition: float = Field(
        default=0.1, gt=0, description="Spawn disk transition width (normalized)"
    )
    safe_zone_height: float = Field(default=0.38, description="Spawn disk target height")
    safe_zone_flatness: float = Field(
        default=0.3, description="Residual terrain blend inside the spawn disk"
    )
    edge_falloff_width: float = Field(
        default=0.1, gt=0, description="Edge falloff width (normalized)"
    )
    row_batch: int = Field(default=16, ge=1, description="Rows synthesized per step")


class ErosionConfig(BaseModel):
    """Hydraulic droplet and thermal slump parameters."""

    droplets_per_iteration: int = Field(default=1000, ge=0)
    inertia: float = Field(default=0.05, description="Resistance to direction change")
    sediment_capacity_factor: float = Field(default=4.0)
    min_sediment_capacity: float = Field(default=0.01)
    erode_speed: float = Field(default=0.3)
    deposit_speed: float = Field(default=0.3)
    evaporate_speed: float = Field(default=0.01)
    gravity: float = Field(default=4.0)
    max_lifetime: int = Field(default=30, ge=1)
    radius: int = Field(default=3, ge=1, description="Erosion footprint radius")
    min_water: float = Field(default=0.01, description="Droplet dies below this water")
    thermal_iterations: int = Field(default=3, ge=0)
    base_talus: float = Field(default=0.03, description="Talus threshold on soil")
    rock_talus: float = Field(default=0.06, description="Talus threshold on rock")
    rock_threshold: float = Field(
        default=0.5, description="Height above which talus ramps toward rock"
    )
    rock_gain: float = Field(default=2.0, description="Soil-to-rock talus ramp steepness")
    thermal_transfer: float = Field(
        default=0.3, description="Fraction of the difference moved downhill"
    )
    thermal_retention: float = Field(
        default=0.8, description="Fraction of moved material that is kept"
    )


class RiverConfig(BaseModel):
    """River tracing and channel carving parameters."""

    particle_count: int = Field(
        default=5000, ge=0, description="Random river particles (0 disables hydrology)"
    )
    depth: float = Field(default=0.02, ge=0.0, description="Channel carve depth")
    width: float = Field(default=3.0, ge=0.0, description="Channel bank width")
    source_step: int = Field(default=32, ge=2, description="Source sampling step")
    source_check_divisor: int = Field(
        default=8, ge=1, description="Local-maximum checks are source_step / this apart"
    )
    source_min_height: float = Field(
        default=0.65, description="Minimum height of sampled local-maximum sources"
    )
    particle_min_height: float = Field(
        default=0.5, description="Minimum height of random particle starts"
    )
    particle_margin: int = Field(default=10, ge=0, description="Random start margin")
    inertia: float = Field(default=0.3)
    friction: float = Field(default=0.1)
    evaporation: float = Field(default=0.002)
    max_lifetime: int = Field(default=500, ge=1)
    min_volume: float = Field(default=0.01)
    boundary_margin: int = Field(
        default=2, ge=1, description="Particles stop this close to the edge"
    )
    water_margin: float = Field(
        default=0.02, description="Particles stop below water level plus this margin"
    )
    confluence_flow: float = Field(
        default=2.0, description="Accumulated flow that counts as an existing river"
    )
    confluence_min_length: int = Field(default=10)
    min_length: int = Field(
        default=20, ge=0, description="Paths must be longer than this to be kept"
    )
    carve_threshold: float = Field(
        default=0.1, description="Normalized flow above which channels are carved"
    )
    bank_factor: float = Field(default=0.3, description="Bank depth relative to channel")
    smooth_threshold: float = Field(
        default=0.1, description="River intensity above which beds are smoothed"
    )
    smooth_blend: float = Field(default=0.5)


class ClimateConfig(BaseModel):
    """Moisture and temperature coefficients."""

    moisture_frequency: float = Field(default=3.0)
    moisture_octaves: int = Field(default=4, ge=1)
    moisture_persistence: float = Field(default=0.5, ge=0.0)
    moisture_lacunarity: float = Field(default=2.0, gt=0)
    moisture_scale: float = Field(default=0.5, gt=0, description="Multiple of noise.scale")
    water_band: float = Field(
        default=0.1, gt=0, description="Height band above water that gets wetter"
    )
    water_bonus: float = Field(default=0.3)
    river_bonus: float = Field(default=0.4)
    shadow_distance: int = Field(default=10, ge=1, description="Upwind sample distance in cells")
    shadow_height: float = Field(default=0.15)
    shadow_penalty: float = Field(default=0.2)
    latitude_range: float = Field(
        default=0.7, description="Temperature drop from equator to pole"
    )
    altitude_lapse: float = Field(default=0.4)
    temperature_frequency: float = Field(default=2.0)
    temperature_octaves: int = Field(default=3, ge=1)
    temperature_persistence: float = Field(default=0.4, ge=0.0)
    temperature_lacunarity: float = Field(default=2.0, gt=0)
    temperature_scale: float = Field(default=0.3, gt=0, description="Multiple of noise.scale")
    temperature_noise: float = Field(
        default=0.2, description="Peak-to-peak amplitude of temperature noise"
    )
    maritime_band: float = Field(default=0.05)
    maritime_bonus: float = Field(default=0.1)


class BiomeConfig(BaseModel):
    """Decision table thresholds."""

    beach_band: float = Field(default=0.03)
    mountain_height: float = Field(default=0.75)
    highland_height: float = Field(default=0.6)
    highland_cold: float = Field(default=0.25)
    highland_dry: float = Field(default=0.3)
    cold: float = Field(default=0.2)
    temperate: float = Field(default=0.5)
    warm: float = Field(default=0.75)
    cold_dry: float = Field(default=0.3)
    temperate_dry: float = Field(default=0.2)
    temperate_humid: float = Field(default=0.5)
    warm_dry: float = Field(default=0.2)
    warm_moderate: float = Field(default=0.4)
    warm_humid: float = Field(default=0.7)
    tropical_dry: float = Field(default=0.25)
    tropical_moderate: float = Field(default=0.5)
    tropical_humid: float = Field(default=0.75)


class FeatureConfig(BaseModel):
    """Site extraction parameters."""

    lake_step: int = Field(default=16, ge=2)
    lake_min_cells: int = Field(
        default=6, ge=1, description="Minimum contiguous below-water cells for a lake"
    )
    lake_separation: float = Field(default=32.0)
    peak_step: int = Field(default=32, ge=1)
    peak_min_height: float = Field(default=0.7)
    peak_separation: float = Field(default=96.0)
    village_step: int = Field(default=64, ge=1)
    village_min_above_water: float = Field(default=0.05)
    village_max_height: float = Field(default=0.5)
    village_flat_radius: int = Field(default=16, ge=1)
    village_max_variance: float = Field(default=0.02)
    village_water_radius: int = Field(default=32, ge=1)
    village_score_radius: int = Field(default=24, ge=1)
    village_score_water_radius: int = Field(default=48, ge=1)
    village_ideal_height: float = Field(default=0.35)
    village_flatness_weight: float = Field(default=0.4)
    village_water_weight: float = Field(default=0.3)
    village_elevation_weight: float = Field(default=0.3)
    village_variance_penalty: float = Field(
        default=10.0, description="Flatness score lost per unit of height variance"
    )
    village_elevation_penalty: float = Field(
        default=2.0, description="Elevation score lost per unit away from the ideal height"
    )
    village_count: int = Field(default=5, ge=0)
    village_separation: float = Field(default=100.0)
    cave_step: int = Field(default=48, ge=1)
    cave_min_height: float = Field(default=0.4)
    cave_max_height: float = Field(default=0.75)
    cave_min_slope: float = Field(default=0.3)
    cave_max_slope: float = Field(default=0.7)
    cave_count: int = Field(default=8, ge=0)
    cave_separation: float = Field(default=64.0)


class WorldGenConfig(BaseModel):
    """Complete world generation configuration."""

    seed: int = Field(default=42, ge=INT32_MIN, le=INT32_MAX, description="32-bit seed")
    world_size: int = Field(default=512, gt=0, description="Grid side length in cells")
    world_scale: float = Field(default=1.0, gt=0, description="World units per cell")
    terrain_amplitude: float = Field(default=100.0, description="World units at height 1")
    water_level: float = Field(default=0.3, ge=0.0, le=1.0)

    noise: NoiseConfig = Field(default_factory=NoiseConfig)
    warp: WarpConfig = Field(default_factory=WarpConfig)
    voronoi: VoronoiConfig = Field(default_factory=VoronoiConfig)
    heightmap: HeightmapConfig = Field(default_factory=HeightmapConfig)
    erosion: ErosionConfig = Field(default_factory=ErosionConfig)
    rivers: RiverConfig = Field(default_factory=RiverConfig)
    climate: ClimateConfig = Field(default_factory=ClimateConfig)
    biomes: BiomeConfig = Field(default_factory=BiomeConfig)
    features: FeatureConfig = Field(default_factory=FeatureConfig)


# Presets are package data
CONFIGS_DIR = Path(__file__).parent / "configs"


def load_config(config_path: Path) -> WorldGenConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Parsed WorldGenConfig.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
        pydantic.ValidationError: If values are out of range.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return WorldGenConfig.model_validate(data)


def find_config(name: str) -> Path:
    """Find a config file by name.

    Searches in the following order:
    1. Exact path if name contains path separator or ends in .toml
    2. configs/{name}.toml

    Args:
        name: Preset name or path.

    Returns:
        Path to the config file.

    Raises:
        FileNotFoundError: If config file is not found.
    """
    if "/" in name or name.endswith(".toml"):
        path = Path(name)
        if path.exists():
            return path
        raise FileNotFoundError(f"Config file not found: {name}")

    config_path = CONFIGS_DIR / f"{name}.toml"
    if config_path.exists():
        return config_path

    raise FileNotFoundError(
        f"Config '{name}' not found in {CONFIGS_DIR}. "
        f"Available configs: {list_configs()}"
    )


def list_configs() -> list[str]:
    """List available preset names."""
    if not CONFIGS_DIR.exists():
        return []
    return sorted(p.stem for p in CONFIGS_DIR.glob("*.toml"))
