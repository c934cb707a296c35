"""
Tests for the rcat command group using Click's CliRunner.

- TestInventoryCommand: progress lines, summary, option overrides
- TestInspectCommand: PASS / FAIL verdicts and exit codes
- TestConvertCommand: missing upstream artifact
- TestCatalogCommand: summary output
- TestRunCommand: full pipeline
"""

import pytest
from click.testing import CliRunner

from cli.main import app
from cli.options import settings_with
from core.config import StatsMode


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, pipeline_settings):
    def _invoke(*args, settings=None):
        obj = {"settings": settings or pipeline_settings}
        return runner.invoke(app, list(args), obj=obj)

    return _invoke


@pytest.fixture
def data_dir(pipeline_settings, make_raster):
    data = pipeline_settings.data_dir
    make_raster(data / "water" / "water_status.tif")
    make_raster(data / "water" / "water_domain_score.tif")
    make_raster(data / "carbon" / "carbon_status.tif", res=30.0)
    return data


class TestHelp:
    """Tests for --help and --version."""

    def test_group_help(self, runner):
        result = runner.invoke(app, ["--help"], obj={})
        assert result.exit_code == 0
        for command in ("inventory", "inspect", "convert", "catalog", "run"):
            assert command in result.output

    @pytest.mark.parametrize("command", ["inventory", "inspect", "convert", "catalog", "run"])
    def test_command_help(self, runner, command):
        result = runner.invoke(app, [command, "--help"], obj={})
        assert result.exit_code == 0


class TestInventoryCommand:
    """Tests for `rcat inventory`."""

    def test_inventory(self, invoke, data_dir, pipeline_settings):
        result = invoke("inventory")

        assert result.exit_code == 0, result.output
        assert "[1/3]" in result.output
        assert "INCONSISTENT" in result.output
        assert "=== Inventory Summary ===" in result.output
        assert "Consistent:         2" in result.output
        assert pipeline_settings.consistent_path.exists()

    def test_rerun_is_up_to_date(self, invoke, data_dir):
        invoke("inventory")
        result = invoke("inventory")
        assert result.exit_code == 0
        assert "up to date" in result.output

    def test_data_dir_option(self, invoke, tmp_path, make_raster, pipeline_settings):
        other = tmp_path / "elsewhere"
        make_raster(other / "water" / "water_status.tif")

        result = invoke("inventory", "--data-dir", str(other))

        assert result.exit_code == 0, result.output
        assert "Consistent:         1" in result.output

    def test_missing_data_dir_is_an_error(self, invoke):
        result = invoke("inventory")
        assert result.exit_code == 1
        assert "Data directory not found" in result.output

    def test_invalid_batch_size(self, invoke, data_dir):
        result = invoke("inventory", "--batch-size", "0")
        assert result.exit_code == 2

    def test_invalid_stats_choice(self, invoke, data_dir):
        result = invoke("inventory", "--stats", "exact")
        assert result.exit_code == 2


class TestInspectCommand:
    """Tests for `rcat inspect`."""

    def test_pass(self, invoke, make_raster, pipeline_settings):
        path = make_raster(pipeline_settings.data_dir / "water" / "water_status.tif")

        result = invoke("inspect", str(path), "--no-stats")

        assert result.exit_code == 0, result.output
        assert "PASS" in result.output
        assert "water" in result.output

    def test_fail(self, invoke, make_raster, pipeline_settings):
        path = make_raster(pipeline_settings.data_dir / "water" / "water_status.tif", crs="EPSG:4326")

        result = invoke("inspect", str(path), "--no-stats")

        assert result.exit_code == 1
        assert "FAIL: CRS mismatch" in result.output

    def test_unreadable(self, invoke, tmp_path):
        path = tmp_path / "broken.tif"
        path.write_bytes(b"garbage")

        result = invoke("inspect", str(path))

        assert result.exit_code == 1
        assert "Read failed" in result.output

    def test_nonexistent_path(self, invoke, tmp_path):
        result = invoke("inspect", str(tmp_path / "nope.tif"))
        assert result.exit_code == 2


class TestConvertCommand:
    """Tests for `rcat convert`."""

    def test_requires_inventory(self, invoke):
        result = invoke("convert")
        assert result.exit_code == 1
        assert "rcat inventory" in result.output

    def test_convert_after_inventory(self, invoke, data_dir, pipeline_settings):
        invoke("inventory")

        result = invoke("convert", "--threads", "2")

        assert result.exit_code == 0, result.output
        assert "=== COG Conversion Summary ===" in result.output
        assert "converted: 2" in result.output
        assert (pipeline_settings.cog_dir / "water_status.tif").exists()


class TestCatalogCommand:
    """Tests for `rcat catalog`."""

    def test_requires_inventory(self, invoke):
        result = invoke("catalog")
        assert result.exit_code == 1
        assert "rcat inventory" in result.output

    def test_catalog_from_log_requires_convert(self, invoke, data_dir):
        invoke("inventory")
        result = invoke("catalog", "--from", "log")
        assert result.exit_code == 1
        assert "rcat convert" in result.output


class TestRunCommand:
    """Tests for `rcat run`."""

    def test_full_pipeline(self, invoke, data_dir, pipeline_settings):
        result = invoke("run")

        assert result.exit_code == 0, result.output
        assert "[1/3] inventory" in result.output
        assert "[3/3] catalog" in result.output
        assert "=== STAC Creation Summary ===" in result.output
        assert (pipeline_settings.stac_dir / "catalog.json").exists()
        items = sorted(p.name for p in (pipeline_settings.stac_dir / "collections" / "wri_ignitR" / "items").iterdir())
        assert items == ["water_domain_score.json", "water_status.json"]

    def test_skip_convert(self, invoke, data_dir, pipeline_settings):
        result = invoke("run", "--skip-convert")

        assert result.exit_code == 0, result.output
        assert "[1/1] inventory" in result.output
        assert not pipeline_settings.cog_dir.exists()

    def test_stage_failure_names_stage(self, invoke):
        result = invoke("run")
        assert result.exit_code == 1
        assert "inventory:" in result.output


class TestSettingsWith:
    """Tests for option overrides."""

    def test_none_keeps_value(self, pipeline_settings):
        assert settings_with(pipeline_settings, data_dir=None) is pipeline_settings

    def test_strings_become_enums(self, pipeline_settings):
        updated = settings_with(pipeline_settings, stats_mode="global")
        assert updated.stats_mode == StatsMode.GLOBAL
        assert updated.expected.crs_code == pipeline_settings.expected.crs_code
        assert updated.data_dir == pipeline_settings.data_dir
