"""
quickstart
----------

처음 쓰는 사람을 위한 안내 흐름: 환경 점검 -> (필요하면) 환경 설정 -> 배포.
"""

from __future__ import annotations

from typing import Mapping, Optional

import click

from .config import RunContext
from .deploy_wizard import DeployWizard
from .logging_utils import get_logger, print_banner
from .orchestrator import check_environment
from .prompts import Prompter
from .setup_env import EnvironmentSetup
from .subprocess_utils import CommandRunner
from . import gcp_project


logger = get_logger(__name__)


def show_welcome(prompter: Prompter) -> None:
    print_banner("GCP Cloud Run - 빠른 시작")
    logger.info("GCP Cloud Run 빠른 시작에 오신 것을 환영합니다!")
    click.echo("다음 과정을 안내합니다:")
    click.echo("  1. 환경 설정")
    click.echo("  2. 애플리케이션 배포")
    click.echo("  3. 서비스 관리")
    click.echo("예상 소요 시간: 10~20분")
    prompter.pause()


def show_next_steps(runner: CommandRunner) -> None:
    logger.success("빠른 시작 완료!")
    logger.info("다음에 할 수 있는 일:")
    click.echo("  서비스 관리:      cloudrun-kit manage")
    click.echo("  CI/CD 설정:       cloudrun-kit cicd")
    project = gcp_project.current_project(runner)
    click.echo(f"  Cloud Console:    https://console.cloud.google.com/run?project={project}")
    logger.info("유용한 명령:")
    click.echo("  gcloud run services list")
    click.echo("  gcloud run services logs tail SERVICE_NAME")
    click.echo("  gcloud run services describe SERVICE_NAME")


def run_quickstart(
    ctx: RunContext,
    runner: CommandRunner,
    prompter: Prompter,
    env: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Returns:
        안내 흐름을 끝까지 진행했으면 True, 사용자가 설정을 건너뛰고 나갔으면 False
    """
    show_welcome(prompter)

    logger.step("현재 설정 상태 확인")
    report, has_issues = check_environment(runner)
    click.echo(report)

    if not has_issues:
        logger.info("환경이 이미 준비되어 있습니다.")
        if prompter.confirm("지금 애플리케이션을 배포하시겠습니까?", default=True):
            DeployWizard(ctx, runner, prompter, env).run()
    else:
        if not prompter.confirm("지금 환경 설정을 진행하시겠습니까?", default=True):
            logger.info("나중에 직접 설정할 수 있습니다: cloudrun-kit setup")
            return False
        EnvironmentSetup(ctx, runner, prompter).run()
        if prompter.confirm("설정이 끝났습니다. 지금 애플리케이션을 배포하시겠습니까?", default=True):
            DeployWizard(ctx, runner, prompter, env).run()

    show_next_steps(runner)
    return True
