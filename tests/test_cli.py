"""Tests for the createlut command line."""

from __future__ import annotations

from typer.testing import CliRunner

from spectralut.cli.app import app

runner = CliRunner()


class TestCli:
    """Tests for argument handling and exit codes."""

    def test_missing_arguments(self):
        result = runner.invoke(app, ["16"])
        assert result.exit_code == 2

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "SpectraLUT" in result.output

    def test_corrupt_brightness_map(self, corrupt_brightness_map_file, out_dir):
        """A bad brightness map exits with 3 and leaves no LUT files behind."""
        result = runner.invoke(app, [
            "16", str(out_dir / "abney.pfm"), "xyz",
            "--macadam", str(corrupt_brightness_map_file),
        ])
        assert result.exit_code == 3
        assert not (out_dir / "spectra.lut").exists()
        assert not (out_dir / "abney.lut").exists()

    def test_unreadable_brightness_map(self, brightness_map_file, out_dir, monkeypatch):
        """An unreadable brightness map exits with the input error code."""
        from pathlib import Path

        def deny(self):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "read_bytes", deny)
        result = runner.invoke(app, [
            "16", str(out_dir / "abney.pfm"), "--macadam", str(brightness_map_file),
        ])
        assert result.exit_code == 3
        assert not (out_dir / "spectra.lut").exists()

    def test_bad_interpolation(self, brightness_map_file, out_dir):
        result = runner.invoke(app, [
            "16", str(out_dir / "abney.pfm"),
            "--macadam", str(brightness_map_file), "--interp", "cubic",
        ])
        assert result.exit_code == 2

    def test_generate(self, brightness_map_file, out_dir):
        result = runner.invoke(app, [
            "16", str(out_dir / "abney.pfm"), "srgb",
            "--macadam", str(brightness_map_file), "--workers", "2",
        ])
        assert result.exit_code == 0, result.output
        assert (out_dir / "spectra.lut").exists()
        assert (out_dir / "abney.lut").exists()
        assert (out_dir / "abney.pfm").exists()
        assert "Quality Metrics" in result.output

    def test_resolution_too_small(self, brightness_map_file, out_dir):
        result = runner.invoke(app, [
            "4", str(out_dir / "abney.pfm"), "--macadam", str(brightness_map_file),
        ])
        assert result.exit_code == 1
