"""Smoke tests for the command line entry points."""

from __future__ import annotations

import pytest
import yaml
from typer.testing import CliRunner

from macrobius_tutor.cli import app


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "paths": {
                    "data_dir": str(tmp_path / "data"),
                    "profiles_dir": str(tmp_path / "data" / "profiles"),
                    "sessions_log": str(tmp_path / "data" / "sessions.jsonl"),
                },
                "logging": {"level": "WARNING"},
            }
        ),
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def runner():
    return CliRunner()


def test_create_and_show_profile(runner, config_file):
    created = runner.invoke(
        app,
        ["create-profile", "marcus", "--style", "visual", "--weakness", "Philosophy", "--config", config_file],
    )
    assert created.exit_code == 0, created.output
    assert "visual" in created.output

    shown = runner.invoke(app, ["profile", "marcus", "--config", config_file])
    assert shown.exit_code == 0
    assert "Philosophy" in shown.output

    duplicate = runner.invoke(app, ["create-profile", "marcus", "--config", config_file])
    assert duplicate.exit_code == 1
    assert "already exists" in duplicate.output


def test_unknown_profile_exits_with_error(runner, config_file):
    result = runner.invoke(app, ["profile", "ghost", "--config", config_file])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_recommend_lists_weakness_first(runner, config_file):
    runner.invoke(app, ["create-profile", "marcus", "--weakness", "Law", "--config", config_file])
    result = runner.invoke(app, ["recommend", "marcus", "--config", config_file])
    assert result.exit_code == 0
    assert "Focus on Law" in result.output


def test_tutor_session_round_trip(runner, config_file, tmp_path):
    runner.invoke(app, ["create-profile", "marcus", "--config", config_file])
    result = runner.invoke(
        app,
        ["tutor", "marcus", "--theme", "Astronomy", "--config", config_file],
        input="What are the planets?\n/hint stars\n/end\nGratias\n",
    )

    assert result.exit_code == 0, result.output
    assert "Session closed after 3 interactions" in result.output
    archive = (tmp_path / "data" / "sessions.jsonl").read_text(encoding="utf-8")
    assert len(archive.splitlines()) == 1


def test_health_uses_bundled_data_by_default(runner, config_file):
    result = runner.invoke(app, ["health", "--config", config_file])
    assert result.exit_code == 0
    assert "reachable" in result.output
