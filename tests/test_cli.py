"""Tests for the command-line interface."""

import pytest

from worldsynth.cli import build_parser, main, resolve_config


class TestResolveConfig:
    """Tests for config resolution and overrides."""

    def test_defaults_without_config(self):
        """No --config means built-in defaults."""
        config = resolve_config(build_parser().parse_args([]))
        assert config.world_size == 512
        assert config.seed == 42

    def test_overrides(self, config_file):
        """--seed and --size override the file."""
        args = build_parser().parse_args(
            ["--config", str(config_file), "--seed", "99", "--size", "48"]
        )
        config = resolve_config(args)
        assert config.seed == 99
        assert config.world_size == 48
        assert config.water_level == 0.25


class TestMain:
    """Tests for the CLI entry point."""

    def test_generates_world(self, config_file, capsys):
        """A run prints coverage, feature counts and a checksum."""
        main(["--config", str(config_file), "--size", "32"])
        out = capsys.readouterr().out
        assert "Generating 32x32 world with seed 7" in out
        assert "Biome coverage:" in out
        assert "village sites:" in out
        assert "Checksum: " in out

    def test_missing_config_exits(self, temp_dir):
        """An unknown config exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(temp_dir / "missing.toml")])
        assert exc_info.value.code == 1

    def test_invalid_size_exits(self, config_file):
        """A non-positive size exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(config_file), "--size", "0"])
        assert exc_info.value.code == 1
