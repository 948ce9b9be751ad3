from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from gllm_export import __version__, cli
from gllm_export.exceptions import NotAGitRepositoryError
from gllm_export.models import BranchExportOutcome, ExportSummary

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_parse_args_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["--version"])

    assert exc_info.value.code == 0
    assert __version__ in capsys.readouterr().out


@pytest.mark.unit
def test_cli_overrides_keep_only_given_options() -> None:
    args = cli.parse_args(["-c", "5", "--no-secret-scan", "--exclude", "dist,build", "-b", "main"])

    overrides = cli.cli_overrides(args)

    assert overrides.model_dump(exclude_none=True) == {
        "commits_per_branch": 5,
        "secret_scan": False,
        "exclude": ["dist", "build"],
        "branches": "main",
    }


@pytest.mark.unit
def test_parse_args_init_config_default_path() -> None:
    assert cli.parse_args(["--init-config"]).init_config == ".gllmrc"
    assert cli.parse_args(["--init-config", "cfg.json"]).init_config == "cfg.json"
    assert cli.parse_args([]).init_config is None


@pytest.mark.unit
def test_main_init_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / "gllm.config.json"

    exit_code = cli.main(["--init-config", str(target)])

    assert exit_code == 0
    assert json.loads(target.read_text(encoding="utf-8"))["performance"]["concurrency"] == 6
    assert "Sample configuration created" in capsys.readouterr().out


@pytest.mark.unit
def test_main_invalid_option_is_fatal(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--repo", str(tmp_path), "--concurrency", "0"])

    assert exit_code == 1
    assert "Fatal:" in capsys.readouterr().err


@pytest.mark.unit
def test_main_config_info(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / ".gllmrc.json").write_text(json.dumps({"performance": {"concurrency": 7}}), encoding="utf-8")

    exit_code = cli.main(["--repo", str(tmp_path), "--config-info"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "CLI arguments" in out
    assert "Concurrency: 7" in out


@pytest.mark.unit
def test_main_stats_without_previous_export(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--repo", str(tmp_path), "--out", str(tmp_path / "out"), "--stats"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "- Processed commits: 0" in out
    assert "- Exported branches: 0" in out


@pytest.mark.unit
def test_main_prints_summary(
    tmp_path: Path,
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
) -> None:
    summary = ExportSummary.from_outcomes(
        [
            BranchExportOutcome(branch="main", commits=["c1", "c2"]),
            BranchExportOutcome(branch="dev", success=False, error="boom"),
        ],
    )
    coordinator = mocker.patch.object(cli, "ExportCoordinator")
    coordinator.return_value.export = mocker.AsyncMock(return_value=summary)

    exit_code = cli.main(["--repo", str(tmp_path), "--out", str(tmp_path / "out")])

    out = capsys.readouterr().out
    assert exit_code == 0
    settings = coordinator.call_args.args[0]
    assert settings.out == tmp_path / "out"
    assert "- Branches processed: 1/2" in out
    assert "- Total commits exported: 2" in out
    assert "- Failed branches: dev" in out
    assert "Recommendation: first feed index.md" in out


@pytest.mark.unit
def test_main_fatal_export_error(
    tmp_path: Path,
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
) -> None:
    coordinator = mocker.patch.object(cli, "ExportCoordinator")
    coordinator.return_value.export = mocker.AsyncMock(side_effect=NotAGitRepositoryError(folder=tmp_path))

    exit_code = cli.main(["--repo", str(tmp_path), "--out", str(tmp_path / "out")])

    assert exit_code == 1
    assert "not a Git repository" in capsys.readouterr().err


@pytest.mark.unit
def test_main_config_info_with_conflicting_config_file(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    (tmp_path / ".gllmrc").write_text("output=foo\noutput.directory=x\n", encoding="utf-8")

    exit_code = cli.main(["--repo", str(tmp_path), "--config-info"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "file:" not in out
    assert "Output directory: gllm_export" in out
