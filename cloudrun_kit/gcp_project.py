"""
gcp_project
-----------

gcloud 기본 설정(프로젝트/리전)과 필수 API enable 을 담당하는 모듈.
"""

from __future__ import annotations

from typing import Iterable, List

from .logging_utils import get_logger
from .prompts import Prompter
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)


REQUIRED_APIS_RUN = [
    "run.googleapis.com",
    "artifactregistry.googleapis.com",
    "cloudbuild.googleapis.com",
    "containerregistry.googleapis.com",
]

REQUIRED_APIS_SECRETS = ["secretmanager.googleapis.com"]

REQUIRED_APIS_CICD = REQUIRED_APIS_RUN + [
    "cloudresourcemanager.googleapis.com",
    "iamcredentials.googleapis.com",
]

_UNSET = "(unset)"

DEFAULT_REGION = "us-central1"


def get_config_value(runner: CommandRunner, key: str) -> str:
    """`gcloud config get-value` 결과. 설정되지 않았으면 빈 문자열."""
    result = runner.query("gcloud", ["config", "get-value", key])
    value = result.stdout.strip() if result.ok else ""
    return "" if value == _UNSET else value


def set_config_value(runner: CommandRunner, key: str, value: str) -> None:
    runner.run("gcloud", ["config", "set", key, value])


def current_project(runner: CommandRunner) -> str:
    return get_config_value(runner, "project")


def current_region(runner: CommandRunner) -> str:
    return get_config_value(runner, "run/region")


def list_projects(runner: CommandRunner) -> None:
    runner.run("gcloud", ["projects", "list", "--format=table(projectId,name,projectNumber)"])


def get_project_number(runner: CommandRunner, project: str) -> str:
    result = runner.query("gcloud", ["projects", "describe", project, "--format=value(projectNumber)"])
    return result.stdout.strip()


def enable_apis(runner: CommandRunner, project: str, apis: Iterable[str]) -> List[str]:
    """
    필요한 API 들을 한 번의 `gcloud services enable` 호출로 켠다.
    이미 켜져 있는 API 는 gcloud 가 그대로 통과시킨다.
    """
    unique_apis = sorted(set(apis))
    if not unique_apis:
        return []
    logger.info("다음 API 들을 활성화합니다: %s", unique_apis)
    runner.run("gcloud", ["services", "enable", *unique_apis, f"--project={project}"])
    logger.success("API 활성화 완료")
    return unique_apis


def resolve_project(runner: CommandRunner, prompter: Prompter, override: str = "") -> str:
    """
    override > gcloud 기본 프로젝트 순으로 정하고, 둘 다 없으면 목록을 보여준 뒤 묻는다.
    """
    project = override or current_project(runner)
    if not project:
        if not prompter.non_interactive:
            list_projects(runner)
        project = prompter.ask_required("GCP 프로젝트 ID")
        set_config_value(runner, "project", project)
    return project


def resolve_region(runner: CommandRunner, prompter: Prompter, override: str = "") -> str:
    region = override or current_region(runner)
    if not region:
        region = prompter.ask_required("리전", DEFAULT_REGION)
        set_config_value(runner, "run/region", region)
    return region
