from typing import List

import pytest

from cloudrun_kit import quickstart
from cloudrun_kit.config import RunContext
from cloudrun_kit.prompts import Prompter

from conftest import FakeRunner


@pytest.fixture
def steps(monkeypatch) -> List[str]:  # noqa: ANN001
    recorded: List[str] = []

    class _Wizard:
        def __init__(self, *args, **kwargs) -> None:  # noqa: ANN002, ANN003
            pass

        def run(self) -> None:
            recorded.append("deploy")

    class _Setup:
        def __init__(self, *args, **kwargs) -> None:  # noqa: ANN002, ANN003
            pass

        def run(self) -> bool:
            recorded.append("setup")
            return True

    monkeypatch.setattr(quickstart, "DeployWizard", _Wizard)
    monkeypatch.setattr(quickstart, "EnvironmentSetup", _Setup)
    return recorded


def _run(runner, tmp_path) -> bool:  # noqa: ANN001
    ctx = RunContext(non_interactive=True, base_dir=str(tmp_path))
    return quickstart.run_quickstart(ctx, runner, Prompter(non_interactive=True), {})


def test_ready_environment_goes_straight_to_deploy(steps, tmp_path) -> None:  # noqa: ANN001
    runner = FakeRunner()
    runner.respond("gcloud", "auth", "list", stdout="dev@example.com\n")
    runner.respond("gcloud", "config", "get-value", "project", stdout="test-project\n")

    assert _run(runner, tmp_path) is True
    assert steps == ["deploy"]


def test_missing_tools_run_setup_before_deploy(steps, tmp_path, capsys) -> None:  # noqa: ANN001
    runner = FakeRunner(tools=("gcloud",))

    assert _run(runner, tmp_path) is True
    assert steps == ["setup", "deploy"]
    assert "Docker 가 설치되어 있지 않습니다" in capsys.readouterr().out
