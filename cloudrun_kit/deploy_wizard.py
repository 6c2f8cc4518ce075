"""
deploy_wizard
-------------

대화형 배포 흐름. 프롬프트 순서는 고정되어 있다.
앞 단계의 답(빌드 모드, 레지스트리 선택 등)이 뒤 단계의 기본값과 질문 여부를 결정하기 때문이다.

비대화형 모드에서는 모든 질문이 `env.get(NAME, 문서화된 기본값)` 으로 즉시 결정된다.
"""

from __future__ import annotations

import os
from typing import Dict, Mapping, Optional

import click

from .config import DeploymentConfig, RunContext, env_default
from .errors import PrerequisiteError, ValidationError
from .logging_utils import get_logger, print_banner
from .orchestrator import apply_deploy, plan_deploy
from .prompts import Prompter
from .subprocess_utils import CommandRunner
from . import (
    gcp_artifact_registry,
    gcp_auth,
    gcp_cloud_run,
    gcp_project,
    gcp_secrets,
    templates,
    validation,
)


logger = get_logger(__name__)

COMMON_REGIONS = [
    ("us-central1", "Iowa"),
    ("us-east1", "South Carolina"),
    ("us-west1", "Oregon"),
    ("europe-west1", "Belgium"),
    ("europe-west2", "London"),
    ("asia-east1", "Taiwan"),
    ("asia-northeast1", "Tokyo"),
    ("asia-northeast3", "Seoul"),
    ("australia-southeast1", "Sydney"),
]

BUILD_DOCKER = "로컬 Docker 로 빌드"
BUILD_SOURCE = "Cloud Build 로 소스 빌드 (로컬 Docker 불필요)"

REGISTRY_ARTIFACT = "Artifact Registry (권장)"
REGISTRY_GCR = "Container Registry (gcr.io)"

RUNTIME_LABELS: Dict[str, str] = {
    "Node.js": "nodejs",
    "Python": "python",
    "Go": "go",
    "Java": "java",
    ".NET": "dotnet",
    "Ruby": "ruby",
    "PHP": "php",
}

MEMORY_OPTIONS = "128Mi, 256Mi, 512Mi, 1Gi, 2Gi, 4Gi, 8Gi"
CPU_OPTIONS = "1, 2, 4, 8"


class DeployWizard:
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

    def _default(self, name: str) -> str:
        return env_default(name, self.env)

    def _path(self, path: str) -> str:
        return path if os.path.isabs(path) else os.path.join(self.ctx.base_dir, path)

    # -----------------------------
    # 프로젝트 / 리전
    # -----------------------------
    def _select_project(self) -> str:
        current = gcp_project.current_project(self.runner)
        default = self.env.get("PROJECT_ID", "") or current
        p = self.prompter

        if p.non_interactive:
            project = default
        elif default:
            logger.info("현재 프로젝트: %s", default)
            project = default
            if not p.confirm("이 프로젝트를 사용하시겠습니까?", default=True):
                gcp_project.list_projects(self.runner)
                project = p.ask_required("GCP 프로젝트 ID")
        else:
            logger.info("사용 가능한 프로젝트:")
            gcp_project.list_projects(self.runner)
            project = p.ask_required("GCP 프로젝트 ID")

        if not project:
            raise PrerequisiteError(
                "GCP 프로젝트가 설정되어 있지 않습니다. "
                "PROJECT_ID 를 지정하거나 `gcloud config set project` 를 실행하세요."
            )
        if project != current:
            gcp_project.set_config_value(self.runner, "project", project)
        logger.success("프로젝트: %s", project)
        return project

    def _select_region(self) -> str:
        current = gcp_project.current_region(self.runner)
        default = self.env.get("REGION") or current or self._default("REGION")

        if not self.prompter.non_interactive:
            click.echo("주요 Cloud Run 리전:")
            for idx, (name, place) in enumerate(COMMON_REGIONS, start=1):
                click.echo(f"  {idx}. {name} ({place})")
        region = self.prompter.ask_required("리전", default)

        if region != current:
            gcp_project.set_config_value(self.runner, "run/region", region)
        logger.success("리전: %s", region)
        return region

    # -----------------------------
    # 빌드 / 이미지
    # -----------------------------
    def _ensure_dockerfile(self, dockerfile_path: str, port: str) -> str:
        if os.path.isfile(self._path(dockerfile_path)):
            return dockerfile_path

        logger.warning("Dockerfile 을 찾을 수 없습니다: %s", dockerfile_path)
        p = self.prompter
        if not p.confirm("샘플 Dockerfile 을 생성하시겠습니까?", default=True):
            raise ValidationError("Dockerfile 없이는 진행할 수 없습니다.")

        runtime_default = next(
            (label for label, rt in RUNTIME_LABELS.items() if rt == self.env.get("APP_RUNTIME", "")),
            None,
        )
        if p.non_interactive and runtime_default is None:
            raise ValidationError(
                "비대화형 모드에서 Dockerfile 을 생성하려면 APP_RUNTIME 이 필요합니다.",
                "선택 가능: " + ", ".join(RUNTIME_LABELS.values()),
            )
        label = p.choose("애플리케이션 종류를 선택하세요:", list(RUNTIME_LABELS), default=runtime_default)
        templates.emit(
            f"dockerfile-{RUNTIME_LABELS[label]}",
            {"port": port},
            self.ctx.base_dir,
            confirm_overwrite=lambda path: p.confirm(f"{path} 파일을 덮어쓰시겠습니까?", default=False),
            dry_run=self.runner.dry_run,
        )
        return "./Dockerfile"

    def _select_image(self, service: str, region: str, project: str) -> str:
        p = self.prompter
        default = REGISTRY_GCR if self.env.get("REGISTRY", "").lower() == "gcr" else REGISTRY_ARTIFACT
        registry = p.choose("컨테이너 레지스트리를 선택하세요:", [REGISTRY_ARTIFACT, REGISTRY_GCR], default=default)

        if registry == REGISTRY_GCR:
            return gcp_artifact_registry.gcr_image_url(project, service)

        repo = p.ask_required("Artifact Registry 리포지토리 이름", self._default("AR_REPO"))
        if not gcp_artifact_registry.ensure_repository(self.runner, p, repo, region, project):
            logger.warning("리포지토리 없이 계속합니다. push 단계에서 실패할 수 있습니다: %s", repo)
        return gcp_artifact_registry.artifact_image_url(region, project, repo, service)

    # -----------------------------
    # 리소스
    # -----------------------------
    def _ask_int(self, text: str, name: str, minimum: int, maximum: Optional[int] = None) -> int:
        return self.prompter.ask_validated(
            text,
            lambda v: validation.validate_int_range(v, text, minimum, maximum),
            self._default(name),
        )

    def _collect_mappings(self) -> Dict[str, Dict[str, str]]:
        p = self.prompter
        env_vars: Dict[str, str] = {}
        secrets: Dict[str, str] = {}

        if p.confirm("환경변수를 설정하시겠습니까?", default=False):
            logger.info("KEY=VALUE 형식으로 입력하고, 끝나면 빈 줄을 입력하세요.")
            env_vars = p.collect_pairs("환경변수", validation.parse_env_var)

        if p.confirm("Secret Manager 시크릿을 연결하시겠습니까?", default=False):
            logger.info("형식: ENV_VAR_NAME=SECRET_NAME:VERSION (예: DATABASE_PASSWORD=db-password:latest)")
            secrets = p.collect_pairs("시크릿", validation.parse_secret_mount)

        return {"env_vars": env_vars, "secrets": secrets}

    def _warn_missing_secrets(self, secrets: Mapping[str, str], project: str) -> None:
        names = [ref.split(":", 1)[0] for ref in secrets.values()]
        for line in gcp_secrets.check_secrets(self.runner, names, project):
            if "없음" in line or "확인 불가" in line:
                logger.warning("%s", line)

    # -----------------------------
    # 전체 수집
    # -----------------------------
    def collect(self) -> DeploymentConfig:
        p = self.prompter

        logger.step("프로젝트 설정 확인")
        project = self._select_project()
        region = self._select_region()

        logger.step("애플리케이션 설정")
        click.echo(validation.SERVICE_NAME_RULES)
        service = p.ask_validated("Cloud Run 서비스 이름", validation.validate_service_name, self._default("SERVICE_NAME"))

        default_mode = BUILD_SOURCE if self.env.get("BUILD_MODE", "").lower() == "source" else BUILD_DOCKER
        mode = p.choose("빌드 방식을 선택하세요:", [BUILD_DOCKER, BUILD_SOURCE], default=default_mode)
        build_from_source = mode == BUILD_SOURCE

        image_url = ""
        source_path = self._default("SOURCE_PATH")
        dockerfile_path = self._default("DOCKERFILE_PATH")
        build_context = self._default("BUILD_CONTEXT")
        build_args: Dict[str, str] = {}

        port = self._ask_int("컨테이너 포트", "PORT", 1, 65535)

        if build_from_source:
            source_path = p.ask_required("소스 디렉토리", source_path)
        else:
            dockerfile_path = self._ensure_dockerfile(p.ask_required("Dockerfile 경로", dockerfile_path), str(port))
            build_context = p.ask_required("빌드 컨텍스트 디렉토리", build_context)
            if p.confirm("빌드 인자를 추가하시겠습니까?", default=False):
                build_args = p.collect_pairs("빌드 인자 (KEY=VALUE)", validation.parse_env_var)
            image_url = self._select_image(service, region, project)

        logger.step("리소스 설정")
        logger.info("메모리 선택지: %s", MEMORY_OPTIONS)
        memory = p.ask_validated("메모리", validation.validate_memory, self._default("MEMORY"))
        logger.info("CPU 선택지: %s", CPU_OPTIONS)
        cpu = p.ask_validated("CPU", validation.validate_cpu, self._default("CPU"))
        concurrency = self._ask_int("인스턴스당 최대 동시 요청 수", "CONCURRENCY", 1, 1000)
        min_instances = self._ask_int("최소 인스턴스 수", "MIN_INSTANCES", 0)
        max_instances = self._ask_int("최대 인스턴스 수", "MAX_INSTANCES", max(min_instances, 1))
        timeout = self._ask_int("요청 타임아웃(초, 최대 3600)", "TIMEOUT", 1, 3600)

        allow_unauth = p.confirm("인증 없이(공개) 접근을 허용하시겠습니까?", default=False)

        mappings = self._collect_mappings()
        if mappings["secrets"]:
            self._warn_missing_secrets(mappings["secrets"], project)

        cloudsql = ""
        if p.confirm("Cloud SQL 에 연결하시겠습니까?", default=False):
            cloudsql = p.ask_validated(
                "Cloud SQL 연결 이름 (PROJECT:REGION:INSTANCE)", validation.validate_cloudsql_connection
            )

        vpc_connector = ""
        if p.confirm("VPC 커넥터를 사용하시겠습니까?", default=False):
            vpc_connector = p.ask_required("VPC 커넥터 이름")

        logger.step("고급 배포 옵션")
        ingress = p.ask_validated(
            "Ingress (" + ", ".join(validation.INGRESS_CHOICES) + ")",
            lambda v: validation.validate_choice(v, validation.INGRESS_CHOICES, "ingress"),
            self._default("INGRESS"),
        )
        vpc_egress = p.ask_validated(
            "VPC egress (" + ", ".join(validation.VPC_EGRESS_CHOICES) + ")",
            lambda v: validation.validate_choice(v, validation.VPC_EGRESS_CHOICES, "vpc egress"),
            self._default("VPC_EGRESS"),
        )
        exec_env = p.ask_validated(
            "실행 환경 (gen1/gen2, gen2 권장)",
            lambda v: validation.validate_choice(v, validation.EXEC_ENV_CHOICES, "execution environment"),
            self._default("EXEC_ENV"),
        )
        service_account = p.ask("실행 서비스 계정 이메일 (비우면 기본값)", self._default("SERVICE_ACCOUNT"))
        labels = p.ask_validated(
            "라벨 (쉼표로 구분한 key=value, 비우면 생략)",
            lambda v: validation.parse_pair_list(v, validation.parse_label),
            self._default("LABELS"),
        )
        annotations = p.ask_validated(
            "어노테이션 (쉼표로 구분한 key=value, 비우면 생략)",
            lambda v: validation.parse_pair_list(v, validation.parse_annotation),
            self._default("ANNOTATIONS"),
        )
        revision_tag = p.ask("리비전 URL 태그 (예: blue, canary / 비우면 생략)", self._default("REV_TAG"))
        no_traffic = p.confirm("트래픽 없이 배포하시겠습니까?", default=False)
        revision_suffix = p.ask("리비전 접미사 (비우면 자동 생성)", self._default("REV_SUFFIX"))

        return DeploymentConfig(
            service_name=service,
            region=region,
            project_id=project,
            image_url=image_url,
            build_from_source=build_from_source,
            source_path=source_path,
            dockerfile_path=dockerfile_path,
            build_context=build_context,
            build_args=build_args,
            port=port,
            memory=memory,
            cpu=cpu,
            concurrency=concurrency,
            min_instances=min_instances,
            max_instances=max_instances,
            timeout=timeout,
            ingress=ingress,
            vpc_egress=vpc_egress,
            execution_environment=exec_env,
            allow_unauthenticated=allow_unauth,
            service_account=service_account,
            labels=labels,
            annotations=annotations,
            revision_tag=revision_tag,
            revision_suffix=revision_suffix,
            no_traffic=no_traffic,
            env_vars=mappings["env_vars"],
            secrets=mappings["secrets"],
            cloudsql_instances=cloudsql,
            vpc_connector=vpc_connector,
        )

    def run(self) -> Optional[DeploymentConfig]:
        """
        전체 배포 흐름. 사용자가 취소하면 None 을 돌려준다.
        """
        print_banner("GCP Cloud Run - 배포", "빌드, 푸시, 배포")

        require_docker = self.env.get("BUILD_MODE", "").lower() != "source"
        gcp_auth.check_prerequisites(self.runner, require_docker=require_docker)

        cfg = self.collect()

        click.echo("")
        click.echo(plan_deploy(cfg))
        click.echo("")

        if not self.prompter.confirm("배포를 진행하시겠습니까?", default=True):
            logger.info("배포가 취소되었습니다.")
            return None

        summary, service_url = apply_deploy(cfg, self.runner, base_dir=self.ctx.base_dir)
        click.echo("")
        click.echo(summary)

        if service_url and self.prompter.confirm("지금 서비스를 테스트하시겠습니까?", default=True):
            gcp_cloud_run.probe(self.runner, service_url)

        logger.success("배포가 완료되었습니다.")
        return cfg
