"""
setup_env
---------

로컬 도구 확인과 gcloud 기본 설정(인증/프로젝트/리전), 필수 API 활성화,
`.gcp_cloudrun_config` 작성까지를 한 번에 진행한다.
OS 패키지 설치는 하지 않고 설치 안내만 남긴다.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Dict, Optional

import click

from .config import RunContext
from .logging_utils import get_logger, print_banner
from .prompts import Prompter
from .subprocess_utils import CommandRunner
from . import gcp_auth, gcp_project


logger = get_logger(__name__)

CONFIG_FILE = ".gcp_cloudrun_config"

REQUIRED_TOOLS = {
    "docker": "https://docs.docker.com/get-docker/",
    "gcloud": "https://cloud.google.com/sdk/docs/install",
}
OPTIONAL_TOOLS = ("jq", "git")

COMMON_REGIONS = [
    "us-central1 (Iowa)",
    "us-east1 (South Carolina)",
    "us-west1 (Oregon)",
    "europe-west1 (Belgium)",
    "asia-east1 (Taiwan)",
    "australia-southeast1 (Sydney)",
]


class EnvironmentSetup:
    def __init__(self, ctx: RunContext, runner: CommandRunner, prompter: Prompter) -> None:
        self.ctx = ctx
        self.runner = runner
        self.prompter = prompter

    def _version(self, tool: str) -> str:
        result = self.runner.query(tool, ["--version"])
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else ""

    def verify_tools(self) -> bool:
        """필수 도구가 모두 있으면 True. 선택 도구는 경고만 남긴다."""
        logger.step("도구 설치 확인")
        all_ok = True
        for tool, url in REQUIRED_TOOLS.items():
            if self.runner.which(tool):
                logger.success("✓ %s: %s", tool, self._version(tool) or "installed")
            else:
                logger.error("✗ %s: 설치되어 있지 않습니다. 설치: %s", tool, url)
                all_ok = False
        for tool in OPTIONAL_TOOLS:
            if self.runner.which(tool):
                logger.success("✓ %s", tool)
            else:
                logger.warning("○ %s: 없음 (선택)", tool)
        return all_ok

    def configure_gcloud(self) -> None:
        logger.step("Google Cloud SDK 설정")
        p = self.prompter
        if not p.confirm("지금 GCP 인증을 진행하시겠습니까?", default=not p.non_interactive):
            logger.info("인증을 건너뜁니다. 나중에 `gcloud auth login` 을 실행하세요.")
            return

        gcp_auth.login(self.runner)
        logger.success("인증 완료")

        if p.confirm("애플리케이션 기본 인증(ADC)도 설정하시겠습니까? (시크릿 존재 확인에 필요)", default=True):
            gcp_auth.application_default_login(self.runner)
            logger.success("애플리케이션 기본 인증 완료")

        if p.confirm("기본 프로젝트를 설정하시겠습니까?", default=True):
            gcp_project.list_projects(self.runner)
            project = p.ask_required("프로젝트 ID")
            gcp_project.set_config_value(self.runner, "project", project)
            logger.success("기본 프로젝트: %s", project)

        if p.confirm("기본 리전을 설정하시겠습니까?", default=True):
            logger.info("자주 쓰는 리전:")
            for region in COMMON_REGIONS:
                click.echo(f"  - {region}")
            region = p.ask_required("리전", gcp_project.DEFAULT_REGION)
            gcp_project.set_config_value(self.runner, "run/region", region)
            logger.success("기본 리전: %s", region)

    def enable_apis(self) -> bool:
        """인증과 기본 프로젝트가 갖춰진 경우에만 Cloud Run 필수 API 를 켠다."""
        logger.step("GCP API 확인")
        if not self.runner.dry_run:
            if not self.runner.which("gcloud"):
                logger.warning("gcloud 가 없어 API 활성화를 건너뜁니다.")
                return False
            if not gcp_auth.active_account(self.runner):
                logger.warning("GCP 인증이 되어 있지 않아 API 활성화를 건너뜁니다.")
                return False

        project = gcp_project.current_project(self.runner)
        if not project and not self.runner.dry_run:
            logger.warning("기본 프로젝트가 없어 API 활성화를 건너뜁니다.")
            return False

        if not self.prompter.confirm("Cloud Run 필수 API 를 활성화하시겠습니까?", default=True):
            return False
        gcp_project.enable_apis(self.runner, project, gcp_project.REQUIRED_APIS_RUN)
        return True

    def config_values(self, now: Optional[datetime] = None) -> Dict[str, str]:
        now = now or datetime.now()
        return {
            "PROJECT_ID": gcp_project.current_project(self.runner) or "not set",
            "REGION": gcp_project.current_region(self.runner) or "not set",
            "ACCOUNT": gcp_project.get_config_value(self.runner, "account") or "not set",
            "DOCKER_INSTALLED": str(self.runner.which("docker")).lower(),
            "GCLOUD_INSTALLED": str(self.runner.which("gcloud")).lower(),
            "INSTALLED_ON": now.isoformat(timespec="seconds"),
        }

    def write_config_file(self, now: Optional[datetime] = None) -> str:
        path = os.path.join(self.ctx.base_dir, CONFIG_FILE)
        values = self.config_values(now)
        if self.runner.dry_run:
            logger.info("[DRY-RUN] 설정 파일 작성을 건너뜁니다: %s", path)
            return path

        lines = ["# GCP Cloud Run Configuration", f"# Generated on: {values['INSTALLED_ON']}", ""]
        lines.extend(f"{k}={v}" for k, v in values.items())
        with open(path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        logger.success("설정을 저장했습니다: %s", path)
        return path

    def run(self) -> Optional[bool]:
        """필수 도구가 모두 있으면 True, 없으면 False. 사용자가 취소하면 None."""
        print_banner("GCP Cloud Run - 환경 설정", "도구 확인과 GCP 기본 설정")
        logger.info("다음 항목을 확인하고 설정합니다:")
        click.echo("  1. Docker / gcloud 설치 여부")
        click.echo("  2. GCP 인증과 기본 프로젝트/리전")
        click.echo("  3. Cloud Run 필수 API")
        if not self.prompter.confirm("계속하시겠습니까?", default=True):
            logger.info("설정을 취소했습니다.")
            return None

        tools_ok = self.verify_tools()
        self.configure_gcloud()
        self.enable_apis()
        self.write_config_file()

        if tools_ok:
            logger.success("환경 설정 완료!")
        else:
            logger.warning("필수 도구가 일부 없습니다. 설치 후 다시 실행하세요.")
        logger.info("다음 단계:")
        click.echo("  1. `cloudrun-kit deploy` 로 애플리케이션을 배포하세요.")
        click.echo(f"  2. 설정 파일을 확인하세요: {CONFIG_FILE}")
        return tools_ok
