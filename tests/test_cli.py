# -*- coding: utf-8 -*-
"""Tests for the carbonmarket command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from carbonmarket import __version__
from carbonmarket.cli.main import app
from carbonmarket.footprint.setup import bundled_registry_path

from conftest import SAMPLE_REQUEST

runner = CliRunner()


@pytest.fixture
def request_file(tmp_path):
    path = tmp_path / "assessment.json"
    path.write_text(json.dumps(SAMPLE_REQUEST), encoding="utf-8")
    return path


class TestConvertCommand:
    """carbonmarket convert"""

    def test_convert(self):
        result = runner.invoke(app, ["convert", "1000", "kWh", "MMBtu"])
        assert result.exit_code == 0
        assert "1000 kWh = 3.41214 MMBtu" in result.stdout

    def test_unsupported_pair(self):
        result = runner.invoke(app, ["convert", "1", "kWh", "kg"])
        assert result.exit_code == 1
        assert "Cannot convert from kWh to kg" in result.stdout


class TestVersionCommand:
    """carbonmarket version"""

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"carbonmarket v{__version__}" in result.stdout


class TestFactorsCommand:
    """carbonmarket factors"""

    def test_builtin_factors(self):
        result = runner.invoke(app, ["factors", "--category", "material"])
        assert result.exit_code == 0
        assert "Total: 3 factors" in result.stdout
        assert "built-in factors" in result.stdout

    def test_registry_factors(self):
        result = runner.invoke(app, [
            "factors", "--registry", str(bundled_registry_path()), "--region", "US", "--scope", "2",
        ])
        assert result.exit_code == 0
        assert "Total:" in result.stdout
        assert "built-in factors" not in result.stdout

    def test_no_match(self):
        result = runner.invoke(app, ["factors", "--search", "unobtainium"])
        assert result.exit_code == 0
        assert "No factors found" in result.stdout


class TestCalculateCommand:
    """carbonmarket calculate"""

    def test_calculate_with_registry(self, request_file):
        result = runner.invoke(app, [
            "calculate", str(request_file), "--registry", str(bundled_registry_path()),
        ])
        assert result.exit_code == 0
        assert "Emissions by Scope" in result.stdout
        assert "Average confidence: 78%" in result.stdout
        assert "Switch to Renewable Energy" in result.stdout

    def test_yaml_input(self, tmp_path):
        path = tmp_path / "assessment.yaml"
        path.write_text(
            "assessment:\n"
            "  organizationName: Acme\n"
            "  assessmentYear: 2024\n"
            "scope2Data:\n"
            "  - activityData: 1000\n"
            "    activityUnit: kWh\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["calculate", str(path), "--region", "GB"])
        assert result.exit_code == 0
        assert "Emissions by Scope" in result.stdout

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["calculate", str(tmp_path / "absent.json")])
        assert result.exit_code == 1
        assert "Input file not found" in result.stdout

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "assessment.txt"
        path.write_text("{}", encoding="utf-8")
        result = runner.invoke(app, ["calculate", str(path)])
        assert result.exit_code == 1
        assert "Unsupported input format" in result.stdout

    def test_calculation_error(self, tmp_path):
        request = json.loads(json.dumps(SAMPLE_REQUEST))
        request["scope1Data"][0]["fuelType"] = "unobtainium"
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(request), encoding="utf-8")

        result = runner.invoke(app, ["calculate", str(path)])
        assert result.exit_code == 1
        assert "Error:" in result.stdout
