import json
from pathlib import Path
from typing import Any

from pytest import MonkeyPatch
from typer.testing import CliRunner

from drejtshkruaj_sync import cli
from drejtshkruaj_sync.cli import app
from tests.utils import FakeChecker

runner = CliRunner()


def test_cli_check_outputs_findings(monkeypatch: MonkeyPatch, tmp_path: Path):
    """check command runs every paragraph through the checker and emits JSON."""
    source = tmp_path / "letter.txt"
    source.write_text("Pershendetje!\nKy eshte gabimm.\n", encoding="utf-8")
    created: dict[str, Any] = {}

    def fake_client(settings, credentials):
        created["settings"] = settings
        created["token"] = credentials.token
        return FakeChecker(["gabimm"])

    monkeypatch.setattr(cli, "CheckerClient", fake_client)
    result = runner.invoke(
        app,
        [
            "check",
            "--input-path",
            str(source),
            "--server",
            "http://checker.test/",
            "--token",
            "abc",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["status"] == "checked"
    assert payload["counts"]["spelling"] == 1
    assert payload["counts"]["total"] == 1
    (finding,) = payload["findings"]
    assert finding["text"] == "gabimm"
    assert finding["suggestions"] == ["gabim"]
    assert finding["category"] == "spelling"
    assert created["settings"].base_url == "http://checker.test/"
    assert created["token"] == "abc"


def test_cli_check_reads_config_file(monkeypatch: MonkeyPatch, tmp_path: Path):
    """check command honours values from --config."""
    source = tmp_path / "text.txt"
    source.write_text("tekst i paster", encoding="utf-8")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "max_suggestions: 1\nchecker:\n  base_url: http://from-config/\n",
        encoding="utf-8",
    )
    seen: dict[str, Any] = {}

    def fake_client(settings, credentials):
        seen["base_url"] = settings.base_url
        return FakeChecker()

    monkeypatch.setattr(cli, "CheckerClient", fake_client)
    result = runner.invoke(
        app, ["check", "--input-path", str(source), "--config", str(config_path)]
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["findings"] == []
    assert seen["base_url"] == "http://from-config/"


def test_cli_print_config():
    """print-config command dumps the current configuration values."""
    result = runner.invoke(app, ["print-config"])
    assert result.exit_code == 0
    assert "cooldown_seconds" in result.stdout
    assert "spellings_path" in result.stdout
