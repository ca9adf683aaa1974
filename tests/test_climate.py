"""Tests for moisture and temperature derivation."""

import numpy as np

from worldsynth.climate import build_climate, make_moisture, make_temperature, rain_shadow
from worldsynth.config import ClimateConfig
from worldsynth.noise import fbm


class TestRainShadow:
    """Tests for the rain shadow penalty."""

    def test_leeward_of_wall(self) -> None:
        """Cells downwind of a tall ridge are penalized."""
        height = np.zeros((8, 32))
        height[:, 5] = 1.0
        config = ClimateConfig()
        shadow = rain_shadow(height, config)
        np.testing.assert_array_equal(shadow[:, 15], -config.shadow_penalty)
        assert np.count_nonzero(shadow) == 8

    def test_narrow_grid(self) -> None:
        """Grids narrower than the shadow distance get no penalty."""
        height = np.random.default_rng(0).uniform(0, 1, (8, 8))
        np.testing.assert_array_equal(rain_shadow(height, ClimateConfig()), 0.0)


class TestMoisture:
    """Tests for moisture generation."""

    def test_range(self, small_config, noise_seed) -> None:
        """Moisture lies in [0, 1]."""
        height = np.random.default_rng(1).uniform(0, 1, (64, 64))
        moisture = make_moisture(height, np.zeros_like(height), noise_seed, small_config)
        assert moisture.min() >= 0.0
        assert moisture.max() <= 1.0

    def test_rivers_add_moisture(self, small_config, noise_seed) -> None:
        """River cells are never drier than without rivers."""
        height = np.full((64, 64), 0.6)
        dry = make_moisture(height, np.zeros_like(height), noise_seed, small_config)
        wet = make_moisture(height, np.ones_like(height), noise_seed, small_config)
        assert np.all(wet >= dry)
        assert wet.mean() > dry.mean()

    def test_near_water_wetter(self, small_config, noise_seed) -> None:
        """Low-lying ground gets the water bonus."""
        low = make_moisture(
            np.full((64, 64), 0.3), np.zeros((64, 64)), noise_seed, small_config
        )
        high = make_moisture(
            np.full((64, 64), 0.8), np.zeros((64, 64)), noise_seed, small_config
        )
        assert np.all(low >= high)

    def test_noise_parameters(self, small_config, noise_seed) -> None:
        """Moisture octave falloff and scale come from the climate config."""
        climate = small_config.climate.model_copy(
            update={"moisture_persistence": 0.7, "moisture_lacunarity": 2.5, "moisture_scale": 1.5}
        )
        config = small_config.model_copy(update={"climate": climate})
        height = np.ones((64, 64))
        moisture = make_moisture(height, np.zeros_like(height), noise_seed, config)

        coords = np.arange(64, dtype=np.float64) / 64
        nx, nz = np.meshgrid(coords, coords)
        ox, oz = noise_seed.moisture_offset
        expected = fbm(
            noise_seed.permutation,
            nx * climate.moisture_frequency + ox,
            nz * climate.moisture_frequency + oz,
            climate.moisture_octaves,
            0.7,
            2.5,
            config.noise.scale * 1.5,
        )
        np.testing.assert_allclose(moisture, expected)


class TestTemperature:
    """Tests for temperature generation."""

    def test_range(self, small_config, noise_seed) -> None:
        """Temperature lies in [0, 1]."""
        height = np.random.default_rng(2).uniform(0, 1, (64, 64))
        temperature = make_temperature(height, noise_seed, small_config)
        assert temperature.min() >= 0.0
        assert temperature.max() <= 1.0

    def test_equator_warmer_than_poles(self, small_config, noise_seed) -> None:
        """The z midline is warmer than the top edge."""
        height = np.full((64, 64), 0.5)
        temperature = make_temperature(height, noise_seed, small_config)
        assert temperature[32].mean() > temperature[0].mean() + 0.3

    def test_altitude_cools(self, small_config, noise_seed) -> None:
        """Higher ground is colder."""
        warm = make_temperature(np.full((64, 64), 0.4), noise_seed, small_config)
        cold = make_temperature(np.full((64, 64), 0.9), noise_seed, small_config)
        assert np.all(cold <= warm)
        assert cold.mean() < warm.mean()


class TestBuildClimate:
    """Tests for the climate stage."""

    def test_height_not_modified(self, small_config, noise_seed) -> None:
        """Climate never writes to the height grid."""
        height = np.random.default_rng(3).uniform(0, 1, (64, 64))
        original = height.copy()
        moisture, temperature = build_climate(
            height, np.zeros_like(height), noise_seed, small_config
        )
        np.testing.assert_array_equal(height, original)
        assert moisture.shape == temperature.shape == (64, 64)
