"""
ci_cd
-----

Cloud Build / GitHub Actions 기반 CI/CD 설정 콘솔.
파이프라인 파일은 templates 모듈로 생성하고, 트리거/권한은 gcp_build 로 설정한다.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import List, Mapping, Optional

import click

from .config import RunContext, env_default
from .logging_utils import get_logger, print_banner
from .menu import Menu
from .prompts import Prompter
from .subprocess_utils import CommandRunner
from . import gcp_artifact_registry, gcp_auth, gcp_build, gcp_project, templates, validation


logger = get_logger(__name__)


class CiCdAction(Enum):
    BASIC = "기본 Cloud Build 설정"
    ADVANCED = "고급 Cloud Build 설정 (테스트 포함)"
    GITHUB_ACTIONS = "GitHub Actions 워크플로 생성 (OIDC)"
    MAKEFILE = "Makefile 생성"
    DEPLOYMENT_FILES = "배포 설정 파일 생성"
    LOCAL_TEST = "Cloud Build 로컬 테스트"
    PERMISSIONS = "Cloud Build 권한 부여"
    COMPLETE = "전체 설정 (위 항목 모두)"
    EXIT = "종료"


class TriggerType(Enum):
    MANUAL = "수동 실행"
    GITHUB = "GitHub 트리거"
    CSR = "Cloud Source Repositories 트리거"
    BITBUCKET = "Bitbucket 트리거 (Console 안내)"


REGISTRY_ARTIFACT = "Artifact Registry (권장)"
REGISTRY_GCR = "Container Registry (gcr.io)"

GITHUB_NEXT_STEPS = [
    "1. GCP 에 Workload Identity Federation 풀과 공급자를 만드세요.",
    "2. 서비스 계정을 만들고 roles/run.admin, roles/iam.serviceAccountUser, roles/storage.admin 을 부여하세요.",
    "3. GitHub Action 이 서비스 계정을 가장(impersonate)할 수 있도록 허용하세요.",
    "4. GitHub 저장소 secrets 에 WIF_PROVIDER, WIF_SERVICE_ACCOUNT 를 추가하세요.",
]


class CiCdConsole:
    def __init__(
        self,
        ctx: RunContext,
        runner: CommandRunner,
        prompter: Prompter,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.ctx = ctx
        self.runner = runner
        self.prompter = prompter
        self.env = dict(os.environ if env is None else env)
        self.project = ""
        self.project_number = ""
        self.service = ""
        self.region = ""
        self.created: List[Path] = []

    # -----------------------------
    # 공통
    # -----------------------------
    def resolve_project(self) -> None:
        logger.step("프로젝트 설정 확인")
        self.project = gcp_project.resolve_project(self.runner, self.prompter, self.env.get("PROJECT_ID", ""))
        self.project_number = gcp_project.get_project_number(self.runner, self.project)
        logger.success("프로젝트: %s", self.project)

    def _ask_service_and_region(self) -> None:
        p = self.prompter
        self.service = p.ask_validated(
            "서비스 이름", validation.validate_service_name, self.service or env_default("SERVICE_NAME", self.env)
        )
        self.region = p.ask_required("리전", self.region or env_default("REGION", self.env))

    def _emit(self, template_id: str, substitutions: Mapping[str, str]) -> List[Path]:
        written = templates.emit(
            template_id,
            substitutions,
            self.ctx.base_dir,
            confirm_overwrite=lambda path: self.prompter.confirm(
                f"{path} 파일이 이미 있습니다. 덮어쓰시겠습니까?", default=False
            ),
            dry_run=self.runner.dry_run,
        )
        for path in written:
            if path not in self.created:
                self.created.append(path)
        return written

    def enable_apis(self) -> None:
        logger.step("필수 API 활성화")
        gcp_project.enable_apis(self.runner, self.project, gcp_project.REQUIRED_APIS_CICD)

    # -----------------------------
    # 핸들러
    # -----------------------------
    def grant_permissions(self) -> None:
        gcp_build.grant_cloudbuild_permissions(self.runner, self.project, self.project_number)

    def _select_image(self) -> str:
        p = self.prompter
        default = REGISTRY_GCR if self.env.get("REGISTRY", "").lower() == "gcr" else REGISTRY_ARTIFACT
        registry = p.choose("레지스트리를 선택하세요:", [REGISTRY_ARTIFACT, REGISTRY_GCR], default=default)
        if registry == REGISTRY_GCR:
            return f"gcr.io/{self.project}/{self.service}"
        repo = p.ask_required("Artifact Registry 리포지토리", env_default("AR_REPO", self.env))
        gcp_artifact_registry.ensure_repository(self.runner, p, repo, self.region, self.project)
        return f"{gcp_artifact_registry.registry_host(self.region)}/{self.project}/{repo}/{self.service}"

    def create_basic_cloudbuild(self) -> None:
        logger.step("Cloud Build 설정 생성")
        self._ask_service_and_region()
        image_url = self._select_image()

        trigger = self.prompter.choose(
            "CI/CD 트리거를 선택하세요:", [t.value for t in TriggerType], default=TriggerType.MANUAL.value
        )

        self._emit(
            "cloudbuild-basic",
            {"service_name": self.service, "region": self.region, "image_url": image_url},
        )
        self._create_trigger(TriggerType(trigger))

    def _create_trigger(self, trigger: TriggerType) -> None:
        p = self.prompter
        if trigger is TriggerType.MANUAL:
            logger.info("빌드 실행: gcloud builds submit --config=cloudbuild.yaml")
            if p.confirm("지금 빌드를 실행하시겠습니까?", default=False):
                gcp_build.submit_build(
                    self.runner, self.project, substitutions={"SHORT_SHA": self._short_sha()}
                )
            return

        if trigger is TriggerType.BITBUCKET:
            self._bitbucket_guide()
            return

        branch = p.ask_required("브랜치 패턴", gcp_build.DEFAULT_BRANCH_PATTERN)
        if trigger is TriggerType.GITHUB:
            owner = p.ask_required("GitHub 저장소 소유자")
            repo = p.ask_required("GitHub 저장소 이름")
            logger.info("Cloud Console 에서 GitHub 저장소를 먼저 연결하세요:")
            click.echo(gcp_build.connect_repository_url(self.project))
            p.pause("저장소 연결 후 Enter 를 누르세요...")
            gcp_build.create_github_trigger(self.runner, self.service, owner, repo, self.project, branch)
        else:
            repo = p.ask_required("저장소 이름")
            gcp_build.create_csr_trigger(self.runner, self.service, repo, self.project, branch)

    def _short_sha(self) -> str:
        """수동 빌드용 $SHORT_SHA. git 저장소가 아니면 "manual"."""
        if not self.runner.which("git"):
            return "manual"
        result = self.runner.query("git", ["rev-parse", "--short", "HEAD"])
        return result.stdout.strip() or "manual"

    def _bitbucket_guide(self) -> None:
        p = self.prompter
        logger.info("Bitbucket 트리거 설정")
        logger.info("Cloud Console 에서 Bitbucket 저장소를 먼저 연결하세요:")
        click.echo(gcp_build.connect_repository_url(self.project))
        p.pause("저장소 연결 후 Enter 를 누르세요...")
        repo = p.ask_required("Bitbucket 저장소")
        branch = p.ask_required("브랜치 패턴", gcp_build.DEFAULT_BRANCH_PATTERN)
        logger.warning("Bitbucket 트리거는 Cloud Console 에서 직접 생성해야 합니다.")
        click.echo(f"  이름:        {self.service}-bitbucket-trigger")
        click.echo(f"  저장소:      {repo}")
        click.echo(f"  브랜치:      {branch}")
        click.echo("  빌드 설정:   cloudbuild.yaml")

    def create_advanced_cloudbuild(self) -> None:
        logger.step("고급 Cloud Build 설정 생성")
        self._ask_service_and_region()
        self._emit("cloudbuild-advanced", {"service_name": self.service, "region": self.region})

    def create_deployment_files(self) -> None:
        logger.step("배포 설정 파일 생성")
        self._emit(
            "deployment-files",
            {
                "project_id": self.project,
                "region": self.region or env_default("REGION", self.env),
                "service_name": self.service or env_default("SERVICE_NAME", self.env) or "your-service-name",
            },
        )

    def create_makefile(self) -> None:
        logger.step("Makefile 생성")
        self._emit(
            "makefile",
            {
                "service_name": self.service or env_default("SERVICE_NAME", self.env) or "my-service",
                "region": self.region or env_default("REGION", self.env),
            },
        )

    def create_github_actions(self) -> None:
        logger.step("GitHub Actions 워크플로 생성")
        self._ask_service_and_region()
        self._emit("github-actions", {"service_name": self.service, "region": self.region})
        logger.info("GitHub Actions (OIDC) 다음 단계:")
        for line in GITHUB_NEXT_STEPS:
            click.echo(f"  {line}")

    def test_locally(self) -> None:
        logger.step("Cloud Build 설정 로컬 테스트")
        install = False
        if not self.runner.dry_run and not self.runner.which("cloud-build-local"):
            install = self.prompter.confirm("cloud-build-local 을 지금 설치하시겠습니까?", default=True)
        gcp_build.test_locally(self.runner, install=install)

    def show_summary(self) -> None:
        logger.success("CI/CD 설정 완료!")
        logger.info("생성된 파일:")
        if self.created:
            for path in self.created:
                click.echo(f"  - {path}")
        else:
            click.echo("  - (none)")
        logger.info("다음 단계:")
        click.echo("  1. 생성된 설정 파일을 검토하고 필요에 맞게 수정하세요.")
        click.echo("  2. 변경 사항을 커밋/푸시해서 파이프라인을 실행하세요.")
        click.echo("  3. Google Cloud Console 에서 빌드를 모니터링하세요.")

    def basic_setup(self) -> None:
        self.enable_apis()
        self.grant_permissions()
        self.create_basic_cloudbuild()
        self.create_deployment_files()
        self.show_summary()

    def advanced_setup(self) -> None:
        self.enable_apis()
        self.grant_permissions()
        self.create_advanced_cloudbuild()
        self.create_deployment_files()
        self.show_summary()

    def github_setup(self) -> None:
        self.enable_apis()
        self.create_github_actions()

    def complete_setup(self) -> None:
        self.enable_apis()
        self.grant_permissions()
        self.create_basic_cloudbuild()
        self.create_deployment_files()
        self.create_makefile()
        self.create_github_actions()
        self.show_summary()

    # -----------------------------
    # 진입점
    # -----------------------------
    def menu(self) -> Menu:
        return Menu(
            "CI/CD 설정 메뉴",
            CiCdAction,
            {
                CiCdAction.BASIC: self.basic_setup,
                CiCdAction.ADVANCED: self.advanced_setup,
                CiCdAction.GITHUB_ACTIONS: self.github_setup,
                CiCdAction.MAKEFILE: self.create_makefile,
                CiCdAction.DEPLOYMENT_FILES: self.create_deployment_files,
                CiCdAction.LOCAL_TEST: self.test_locally,
                CiCdAction.PERMISSIONS: self.grant_permissions,
                CiCdAction.COMPLETE: self.complete_setup,
            },
            self.prompter,
            exit_action=CiCdAction.EXIT,
        )

    def run(self) -> None:
        print_banner("GCP Cloud Run - CI/CD 설정", "빌드와 배포 자동화")
        gcp_auth.check_prerequisites(self.runner, require_docker=False)
        self.resolve_project()
        self.menu().loop()
