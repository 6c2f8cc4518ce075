"""
gcp_secrets
-----------

Secret Manager 시크릿 생성/업데이트와 Cloud Run 런타임 서비스 계정에
접근 권한을 부여하는 모듈.

값은 항상 stdin(`--data-file=-`)으로 넘기고 명령 인자에는 남기지 않는다.
존재 여부 확인은 Secret Manager 클라이언트로 읽기만 한다.
"""

from __future__ import annotations

from typing import Iterable, List

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import secretmanager

from .logging_utils import get_logger
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)

ACCESSOR_ROLE = "roles/secretmanager.secretAccessor"


def compute_service_account(project_number: str) -> str:
    return f"{project_number}-compute@developer.gserviceaccount.com"


def create_secret(runner: CommandRunner, name: str, value: str, project: str) -> None:
    logger.info("시크릿 생성: %s", name)
    runner.run(
        "gcloud",
        [
            "secrets",
            "create",
            name,
            "--data-file=-",
            "--replication-policy=automatic",
            f"--project={project}",
        ],
        input_text=value,
    )
    logger.success("시크릿 생성 완료: %s", name)


def update_secret(runner: CommandRunner, name: str, value: str, project: str) -> None:
    logger.info("시크릿 업데이트: %s", name)
    runner.run(
        "gcloud",
        ["secrets", "versions", "add", name, "--data-file=-", f"--project={project}"],
        input_text=value,
    )
    logger.success("시크릿 업데이트 완료: %s", name)


def grant_secret_access(runner: CommandRunner, name: str, project_number: str, project: str) -> str:
    member = f"serviceAccount:{compute_service_account(project_number)}"
    logger.info("시크릿 접근 권한 부여: %s -> %s", name, member)
    runner.run(
        "gcloud",
        [
            "secrets",
            "add-iam-policy-binding",
            name,
            f"--member={member}",
            f"--role={ACCESSOR_ROLE}",
            f"--project={project}",
        ],
    )
    return member


def secret_exists(client: secretmanager.SecretManagerServiceClient, name: str, project: str) -> bool:
    try:
        client.get_secret(name=f"projects/{project}/secrets/{name}")
    except NotFound:
        return False
    return True


def check_secrets(runner: CommandRunner, names: Iterable[str], project: str,
                  client: secretmanager.SecretManagerServiceClient | None = None) -> List[str]:
    """
    배포에 참조된 시크릿이 Secret Manager 에 존재하는지 확인만 한다.
    (없어도 생성하지 않고, 상태 문자열 목록을 돌려준다)

    권한 부족이나 인증 정보 누락으로 확인하지 못한 이름은 "확인 불가" 로 표시하고 계속한다.
    """
    targets = sorted(set(names))
    if not targets:
        return []
    if runner.dry_run:
        return [f"Secrets: 확인 생략 (dry-run) ({n})" for n in targets]

    if client is None:
        try:
            client = secretmanager.SecretManagerServiceClient()
        except GoogleAuthError as e:
            logger.warning("Secret Manager 인증 정보가 없어 시크릿 확인을 건너뜁니다: %s", e)
            logger.info("확인하려면 `gcloud auth application-default login` 을 실행하세요.")
            return [f"Secrets: 확인 불가 ({n})" for n in targets]

    results: List[str] = []
    for name in targets:
        try:
            exists = secret_exists(client, name, project)
        except (GoogleAPIError, GoogleAuthError) as e:
            logger.warning("시크릿을 확인할 수 없습니다: %s (%s)", name, e)
            results.append(f"Secrets: 확인 불가 ({name})")
            continue
        if exists:
            results.append(f"Secrets: 존재함 ({name})")
        else:
            results.append(f"Secrets: 없음 (생성이 필요함) ({name})")
    return results
