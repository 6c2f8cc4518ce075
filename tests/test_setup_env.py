from datetime import datetime
from typing import Iterator

import click
import pytest

from cloudrun_kit.config import RunContext
from cloudrun_kit.prompts import Prompter
from cloudrun_kit.setup_env import CONFIG_FILE, EnvironmentSetup

from conftest import FakeRunner


def _setup(runner, tmp_path, *, dry_run: bool = False) -> EnvironmentSetup:  # noqa: ANN001
    ctx = RunContext(dry_run=dry_run, non_interactive=True, base_dir=str(tmp_path))
    return EnvironmentSetup(ctx, runner, Prompter(non_interactive=True))


def test_verify_tools_reports_missing_required_tool(tmp_path) -> None:  # noqa: ANN001
    assert _setup(FakeRunner(), tmp_path).verify_tools() is True
    assert _setup(FakeRunner(tools=("gcloud",)), tmp_path).verify_tools() is False


def test_non_interactive_skips_login(runner, tmp_path) -> None:  # noqa: ANN001
    _setup(runner, tmp_path).configure_gcloud()

    assert not runner.commands("gcloud", "auth", "login")
    assert not runner.commands("gcloud", "config", "set")


def test_enable_apis_requires_authentication(runner, tmp_path) -> None:  # noqa: ANN001
    runner.respond("gcloud", "config", "get-value", "project", stdout="test-project\n")

    assert _setup(runner, tmp_path).enable_apis() is False
    assert not runner.commands("gcloud", "services", "enable")


def test_enable_apis_uses_current_project(runner, tmp_path) -> None:  # noqa: ANN001
    runner.respond("gcloud", "auth", "list", stdout="dev@example.com\n")
    runner.respond("gcloud", "config", "get-value", "project", stdout="test-project\n")

    assert _setup(runner, tmp_path).enable_apis() is True
    (enable,) = runner.commands("gcloud", "services", "enable")
    assert "run.googleapis.com" in enable
    assert enable[-1] == "--project=test-project"


def test_write_config_file(runner, tmp_path) -> None:  # noqa: ANN001
    runner.respond("gcloud", "config", "get-value", "project", stdout="test-project\n")

    path = _setup(runner, tmp_path).write_config_file(datetime(2024, 1, 2, 3, 4, 5))

    content = (tmp_path / CONFIG_FILE).read_text(encoding="utf-8")
    assert path == str(tmp_path / CONFIG_FILE)
    assert content.startswith("# GCP Cloud Run Configuration\n")
    assert "PROJECT_ID=test-project\n" in content
    assert "REGION=not set\n" in content
    assert "DOCKER_INSTALLED=true\n" in content
    assert "INSTALLED_ON=2024-01-02T03:04:05\n" in content


def test_dry_run_does_not_write_config(dry_runner, tmp_path) -> None:  # noqa: ANN001
    assert _setup(dry_runner, tmp_path, dry_run=True).run() is True

    assert not (tmp_path / CONFIG_FILE).exists()
    assert not dry_runner.commands("gcloud", "auth", "login")


def test_login_also_sets_application_default_credentials(runner, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    # 인증 -> ADC -> 기본 프로젝트(아니오) -> 기본 리전(아니오)
    answers: Iterator[bool] = iter([True, True, False, False])
    monkeypatch.setattr(click, "confirm", lambda *args, **kwargs: next(answers))
    ctx = RunContext(base_dir=str(tmp_path))

    EnvironmentSetup(ctx, runner, Prompter()).configure_gcloud()

    assert runner.calls == [
        ["gcloud", "auth", "login"],
        ["gcloud", "auth", "application-default", "login"],
    ]
