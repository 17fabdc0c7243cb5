"""Tests for the CLI entry point (argument parsing and --check)."""

import json
from pathlib import Path

import pytest

from triager.main import main, parse_args


def test_parse_args_defaults() -> None:
    args = parse_args([])
    assert args.config == Path("config.yaml")
    assert args.check is False
    assert args.subcommand == "serve"


def test_parse_args_serve_subcommand() -> None:
    args = parse_args(["serve", "--config", "custom.yaml", "--check"])
    assert args.config == Path("custom.yaml")
    assert args.check is True


def _write_config(tmp_path: Path, with_teams: bool = True) -> Path:
    kb = tmp_path / "kb"
    kb.mkdir()
    if with_teams:
        (kb / "team_rules.json").write_text(json.dumps({"T1": {"name": "Platform"}}), encoding="utf-8")
    (kb / "labels.json").write_text(
        json.dumps({"data": {"issueLabels": {"nodes": [{"id": "L1"}, {"id": "L2"}]}}}), encoding="utf-8"
    )
    path = tmp_path / "config.yaml"
    path.write_text(
        f"knowledge_base:\n  directory: {kb}\nstate:\n  directory: {tmp_path / 'state'}\n",
        encoding="utf-8",
    )
    return path


def test_check_reports_knowledge_base(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--check", "--config", str(_write_config(tmp_path))]) == 0
    out = capsys.readouterr().out
    assert "Config OK" in out
    assert "teams=1" in out
    assert "labels=2" in out
    assert "Issues awaiting info: 0" in out


def test_check_fails_without_team_rules(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--check", "--config", str(_write_config(tmp_path, with_teams=False))]) == 1
    assert "team_rules.json" in capsys.readouterr().out


def test_serve_without_api_keys_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("LINEAR_API_KEY", "LINEAR_API_KEY_FILE", "OPENAI_API_KEY", "OPENAI_API_KEY_FILE"):
        monkeypatch.delenv(key, raising=False)
    assert main(["serve", "--config", str(_write_config(tmp_path))]) == 1
