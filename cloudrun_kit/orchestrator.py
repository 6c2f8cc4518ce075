from __future__ import annotations

from typing import List, Tuple

from .config import DeploymentConfig, save_deployment_config
from .logging_utils import get_logger
from .subprocess_utils import CommandRunner
from . import (
    gcp_auth,
    gcp_project,
    gcp_artifact_registry,
    gcp_cloud_run,
)


logger = get_logger(__name__)

# 배포 단계 이름. 순서가 곧 실행 순서다.
DEPLOY_STEPS: List[str] = [
    "docker-auth",
    "build",
    "push",
    "secret-api",
    "deploy",
    "wait",
    "save-config",
]

_IMAGE_STEPS = {"docker-auth", "build", "push"}


def _step_enabled(name: str, cfg: DeploymentConfig) -> bool:
    if name in _IMAGE_STEPS:
        return not cfg.build_from_source
    if name == "secret-api":
        return bool(cfg.secrets)
    return True


def _mapping_line(values: dict) -> str:
    return ", ".join(f"{k}={v}" for k, v in values.items()) or "(none)"


def plan_deploy(cfg: DeploymentConfig) -> str:
    """
    동결된 설정과 실행될 단계, 합성된 배포 명령을 요약 텍스트로 돌려준다.
    실제 GCP 호출은 하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- project: {cfg.project_id}")
    lines.append(f"- region: {cfg.region}")
    lines.append(f"- service: {cfg.service_name}")
    lines.append("")

    lines.append("## Config summary")
    if cfg.build_from_source:
        lines.append(f"- source: {cfg.source_path}")
    else:
        lines.append(f"- image: {cfg.image_url}")
        lines.append(f"- dockerfile: {cfg.dockerfile_path}")
        lines.append(f"- build_context: {cfg.build_context}")
    lines.append(f"- port: {cfg.port}")
    lines.append(f"- memory: {cfg.memory}")
    lines.append(f"- cpu: {cfg.cpu}")
    lines.append(f"- concurrency: {cfg.concurrency}")
    lines.append(f"- instances: {cfg.min_instances} ~ {cfg.max_instances}")
    lines.append(f"- timeout: {cfg.timeout}s")
    lines.append(f"- public_access: {cfg.allow_unauthenticated}")
    lines.append(f"- env_vars: {_mapping_line(cfg.env_vars)}")
    # 시크릿은 참조(name:version)만 담고 있으므로 그대로 보여도 된다.
    lines.append(f"- secrets: {_mapping_line(cfg.secrets)}")
    lines.append("")

    lines.append("## Steps")
    for name in DEPLOY_STEPS:
        status = "ENABLED" if _step_enabled(name, cfg) else "SKIPPED"
        lines.append(f"- {name}: {status}")
    lines.append("")

    lines.append("## Command")
    lines.append(gcp_cloud_run.render_command(gcp_cloud_run.build_deploy_args(cfg)))

    return "\n".join(lines)


def apply_deploy(
    cfg: DeploymentConfig,
    runner: CommandRunner,
    *,
    base_dir: str = ".",
    wait_timeout: float = 300.0,
) -> Tuple[str, str]:
    """
    단계별로 실제 배포를 수행한다. 첫 실패에서 중단하고 예외를 그대로 올린다.
    이미 끝난 단계(예: 이미지 push)는 되돌리지 않는다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        service_url: 배포된 서비스 URL (dry-run 이면 빈 문자열)
    """
    executed: List[str] = []
    skipped: List[str] = []
    warnings: List[str] = []
    service_url = ""

    for name in DEPLOY_STEPS:
        if not _step_enabled(name, cfg):
            skipped.append(name)
            continue

        logger.step("단계 실행: %s", name)
        try:
            if name == "docker-auth":
                gcp_artifact_registry.configure_docker_auth(runner, _registry_region(cfg))
            elif name == "build":
                gcp_artifact_registry.build_image(
                    runner,
                    cfg.image_url,
                    dockerfile_path=cfg.dockerfile_path,
                    context_dir=cfg.build_context,
                    build_args=cfg.build_args,
                )
            elif name == "push":
                gcp_artifact_registry.push_image(runner, cfg.image_url)
            elif name == "secret-api":
                gcp_project.enable_apis(runner, cfg.project_id, gcp_project.REQUIRED_APIS_SECRETS)
            elif name == "deploy":
                gcp_cloud_run.deploy_service(runner, cfg)
            elif name == "wait":
                ready = gcp_cloud_run.wait_for_service(
                    runner, cfg.service_name, cfg.region, cfg.project_id, timeout=wait_timeout
                )
                if not ready:
                    warnings.append(f"서비스가 {int(wait_timeout)}초 안에 준비되지 않았습니다.")
                service_url = gcp_cloud_run.get_service_url(runner, cfg.service_name, cfg.region, cfg.project_id)
            elif name == "save-config":
                if runner.dry_run:
                    logger.info("[DRY-RUN] 설정 파일 저장을 건너뜁니다.")
                    skipped.append(name)
                    continue
                path = save_deployment_config(cfg, service_url, base_dir)
                logger.success("설정을 저장했습니다: %s", path)
        except Exception:
            logger.error("단계 실행 실패: %s", name)
            raise

        executed.append(name)

    lines: List[str] = []
    lines.append("# Deploy summary")
    lines.append(f"- project: {cfg.project_id}")
    lines.append(f"- region: {cfg.region}")
    lines.append(f"- service: {cfg.service_name}")
    lines.append(f"- url: {service_url or '(unknown)'}")
    lines.append("")

    lines.append("## Executed steps")
    if executed:
        for s in executed:
            lines.append(f"- {s}")
    else:
        lines.append("- (none)")

    lines.append("")
    lines.append("## Skipped steps")
    if skipped:
        for s in skipped:
            lines.append(f"- {s}")
    else:
        lines.append("- (none)")

    if warnings:
        lines.append("")
        lines.append("## Warnings")
        lines.extend(f"- {w}" for w in warnings)

    if service_url:
        lines.append("")
        lines.append(f"로그 보기: gcloud run services logs read {cfg.service_name} --region={cfg.region}")
        lines.append(f"콘솔: https://console.cloud.google.com/run/detail/{cfg.region}/{cfg.service_name}")

    return "\n".join(lines), service_url


def _registry_region(cfg: DeploymentConfig) -> str:
    # gcr.io 이미지는 리전 호스트가 없다.
    return "" if cfg.image_url.startswith("gcr.io/") else cfg.region


def check_environment(runner: CommandRunner) -> Tuple[str, bool]:
    """
    docker / gcloud 설치, 인증, 기본 프로젝트 설정 여부를 점검한다.
    (실제 리소스 생성/변경은 하지 않는다)

    Returns:
        report: 사람이 읽기 좋은 텍스트 요약
        has_issues: 하나라도 준비되지 않은 항목이 있는지 여부
    """
    lines: List[str] = ["# Environment check"]
    issues: List[str] = []

    def _record(ok: bool, good: str, bad: str) -> None:
        if ok:
            lines.append(f"- ✓ {good}")
        else:
            lines.append(f"- ✗ {bad}")
            issues.append(bad)

    _record(runner.which("docker"), "Docker 설치됨", "Docker 가 설치되어 있지 않습니다")
    gcloud_ok = runner.which("gcloud")
    _record(gcloud_ok, "gcloud SDK 설치됨", "gcloud SDK 가 설치되어 있지 않습니다")

    if gcloud_ok:
        account = gcp_auth.active_account(runner)
        _record(bool(account), f"인증됨: {account}", "GCP 인증이 되어 있지 않습니다")
        project = gcp_project.current_project(runner)
        _record(bool(project), f"프로젝트 설정됨: {project}", "기본 프로젝트가 설정되어 있지 않습니다")

    lines.append("")
    lines.append("## Summary")
    if issues:
        lines.append("- 상태: 일부 설정이 필요합니다.")
    else:
        lines.append("- 상태: 환경이 준비되었습니다.")

    return "\n".join(lines), bool(issues)
