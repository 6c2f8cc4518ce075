from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values, load_dotenv


ENV_FILES_DEFAULT_ORDER = [".env", ".env.cloudrun"]

CONFIG_FILE_TEMPLATE = ".cloudrun_deploy_{service}.conf"

# 비대화형 모드에서 프롬프트가 그대로 돌려주는 기본값들
DEFAULTS: Dict[str, str] = {
    "REGION": "us-central1",
    "PORT": "8080",
    "MEMORY": "512Mi",
    "CPU": "1",
    "CONCURRENCY": "80",
    "MIN_INSTANCES": "0",
    "MAX_INSTANCES": "100",
    "TIMEOUT": "300",
    "INGRESS": "all",
    "VPC_EGRESS": "all-traffic",
    "EXEC_ENV": "gen2",
    "AR_REPO": "cloud-run-apps",
    "DOCKERFILE_PATH": "./Dockerfile",
    "BUILD_CONTEXT": ".",
    "SOURCE_PATH": ".",
}


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_bool(name: str, default: bool = False,
              env: Optional[Mapping[str, str]] = None) -> bool:
    source = os.environ if env is None else env
    raw = source.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def env_default(name: str, env: Optional[Mapping[str, str]] = None) -> str:
    """환경변수 값이 있으면 그것을, 없으면 문서화된 기본값(없으면 빈 문자열)을 돌려준다."""
    source = os.environ if env is None else env
    value = source.get(name)
    if value:
        return value
    return DEFAULTS.get(name, "")


@dataclass(frozen=True)
class RunContext:
    """
    실행 모드. 시작 시 한 번 만들어져 모든 컴포넌트에 명시적으로 전달된다.
    """

    dry_run: bool = False
    non_interactive: bool = False
    debug: bool = False
    base_dir: str = "."

    @classmethod
    def from_env(cls, base_dir: str = ".",
                 env: Optional[Mapping[str, str]] = None) -> "RunContext":
        return cls(
            dry_run=_get_bool("DRY_RUN", False, env),
            non_interactive=_get_bool("NON_INTERACTIVE", False, env),
            debug=_get_bool("DEBUG", False, env),
            base_dir=base_dir,
        )


@dataclass(frozen=True)
class DeploymentConfig:
    # 필수 공통
    service_name: str
    region: str
    project_id: str

    # 빌드 모드: 이미지 배포 vs 소스 빌드
    image_url: str = ""
    build_from_source: bool = False
    source_path: str = "."
    dockerfile_path: str = "./Dockerfile"
    build_context: str = "."
    build_args: Dict[str, str] = field(default_factory=dict)

    # 리소스 / 스케일링
    port: int = 8080
    memory: str = "512Mi"
    cpu: str = "1"
    concurrency: int = 80
    min_instances: int = 0
    max_instances: int = 100
    timeout: int = 300

    # 네트워크 / 실행 환경
    ingress: str = "all"
    vpc_egress: str = "all-traffic"
    execution_environment: str = "gen2"
    allow_unauthenticated: bool = False

    # 선택 설정들 (비어 있으면 명령에서 생략)
    service_account: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    revision_tag: str = ""
    revision_suffix: str = ""
    no_traffic: bool = False
    env_vars: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)
    cloudsql_instances: str = ""
    vpc_connector: str = ""

    @property
    def access_flag(self) -> str:
        return "--allow-unauthenticated" if self.allow_unauthenticated else "--no-allow-unauthenticated"


def _join_mapping(values: Mapping[str, str]) -> str:
    return ",".join(f"{k}={v}" for k, v in values.items())


def save_deployment_config(cfg: DeploymentConfig, service_url: str = "",
                           base_dir: str = ".") -> str:
    """
    배포 성공 후 설정을 `.cloudrun_deploy_<service>.conf` 로 남긴다.
    같은 서비스 이름으로 다시 배포하면 파일 전체를 새로 쓴다.
    """
    path = os.path.join(base_dir, CONFIG_FILE_TEMPLATE.format(service=cfg.service_name))
    values = {
        "PROJECT_ID": cfg.project_id,
        "REGION": cfg.region,
        "SERVICE_NAME": cfg.service_name,
        "IMAGE_URL": cfg.image_url,
        "BUILD_FROM_SOURCE": str(cfg.build_from_source).lower(),
        "SOURCE_PATH": cfg.source_path if cfg.build_from_source else "",
        "PORT": str(cfg.port),
        "MEMORY": cfg.memory,
        "CPU": cfg.cpu,
        "CONCURRENCY": str(cfg.concurrency),
        "MIN_INSTANCES": str(cfg.min_instances),
        "MAX_INSTANCES": str(cfg.max_instances),
        "TIMEOUT": str(cfg.timeout),
        "INGRESS": cfg.ingress,
        "VPC_EGRESS": cfg.vpc_egress,
        "EXEC_ENV": cfg.execution_environment,
        "ALLOW_UNAUTH": cfg.access_flag,
        "SERVICE_ACCOUNT": cfg.service_account,
        "LABELS": _join_mapping(cfg.labels),
        "REV_TAG": cfg.revision_tag,
        "SERVICE_URL": service_url,
        "DOCKERFILE_PATH": cfg.dockerfile_path,
        "BUILD_CONTEXT": cfg.build_context,
    }

    lines = [
        "# Cloud Run Deployment Configuration",
        f"# Service: {cfg.service_name}",
        f"# Generated: {datetime.now().isoformat(timespec='seconds')}",
        "",
    ]
    lines.extend(f"{k}={v}" for k, v in values.items())

    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    return path


def load_deployment_config(path: str) -> Dict[str, str]:
    """저장된 배포 설정 파일을 dict 로 읽는다. 값이 없는 키는 빈 문자열."""
    return {k: (v or "") for k, v in dotenv_values(dotenv_path=path).items()}
