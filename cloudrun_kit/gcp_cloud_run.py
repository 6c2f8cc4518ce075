"""
gcp_cloud_run
-------------

Cloud Run 서비스 배포 명령 합성과 서비스/리비전 운영 명령을 담당하는 모듈.

`build_deploy_args` 는 외부 호출이 없는 순수 함수이고,
나머지는 모두 CommandRunner 를 통해 gcloud / curl 을 호출한다.
"""

from __future__ import annotations

import json
import os
import random
import shlex
import string
import time
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import DeploymentConfig
from .errors import ValidationError
from .logging_utils import get_logger
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)

INVOKER_ROLE = "roles/run.invoker"

# 값이 설정된 경우에만 붙는 플래그. 순서가 곧 명령상의 순서다.
OPTIONAL_FLAGS: Tuple[Tuple[str, str], ...] = (
    ("service_account", "--service-account"),
    ("labels", "--labels"),
    ("annotations", "--annotations"),
    ("revision_tag", "--tag"),
    ("revision_suffix", "--revision-suffix"),
    ("no_traffic", "--no-traffic"),
    ("env_vars", "--set-env-vars"),
    ("secrets", "--set-secrets"),
    ("cloudsql_instances", "--add-cloudsql-instances"),
    ("vpc_connector", "--vpc-connector"),
)

_ALT_DELIMITERS = ("@", "#", "|", ";", "~", "%", "+")


def join_mapping(values: Mapping[str, str]) -> str:
    """
    KEY=VALUE 목록을 gcloud 리스트 인자 하나로 합친다.
    값에 쉼표가 있으면 gcloud 의 대체 구분자 문법(`^@^A=1@B=2`)을 쓴다.
    """
    items = [f"{k}={v}" for k, v in values.items()]
    if not any("," in item for item in items):
        return ",".join(items)
    for delim in _ALT_DELIMITERS:
        if all(delim not in item for item in items):
            return f"^{delim}^" + delim.join(items)
    raise ValidationError("값에 사용 가능한 구분자가 남아 있지 않습니다: " + ", ".join(values))


def build_deploy_args(cfg: DeploymentConfig) -> List[str]:
    """
    DeploymentConfig 로부터 `gcloud` 다음에 올 인자 목록을 만든다.

    - 필수 플래그는 항상 고정 순서로, 각각 `--flag=value` 한 토큰으로 넣는다.
    - 선택 플래그는 값이 비어 있지 않을 때만 정확히 한 번 넣는다.
    - --image / --source 중 정확히 하나만 넣는다.
    """
    args = ["run", "deploy", cfg.service_name]

    if cfg.build_from_source:
        args.append(f"--source={cfg.source_path or '.'}")
    else:
        if not cfg.image_url.strip():
            raise ValidationError("이미지 배포 모드에는 이미지 URL 이 필요합니다.")
        args.append(f"--image={cfg.image_url}")

    args += [
        "--platform=managed",
        f"--region={cfg.region}",
        f"--project={cfg.project_id}",
        f"--port={cfg.port}",
        f"--memory={cfg.memory}",
        f"--cpu={cfg.cpu}",
        f"--concurrency={cfg.concurrency}",
        f"--min-instances={cfg.min_instances}",
        f"--max-instances={cfg.max_instances}",
        f"--timeout={cfg.timeout}",
        f"--ingress={cfg.ingress}",
        f"--vpc-egress={cfg.vpc_egress}",
        f"--execution-environment={cfg.execution_environment}",
        cfg.access_flag,
    ]

    for field_name, flag in OPTIONAL_FLAGS:
        value = getattr(cfg, field_name)
        if isinstance(value, bool):
            if value:
                args.append(flag)
        elif isinstance(value, Mapping):
            if value:
                args.append(f"{flag}={join_mapping(value)}")
        elif value and value.strip():
            args.append(f"{flag}={value.strip()}")

    return args


def render_command(args: Sequence[str], tool: str = "gcloud") -> str:
    return shlex.join([tool, *args])


def _scope(region: str, project: str, *, platform: bool = True) -> List[str]:
    scope = [f"--region={region}", f"--project={project}"]
    if platform:
        scope.insert(0, "--platform=managed")
    return scope


# -----------------------------
# 배포 / 조회
# -----------------------------
def deploy_service(runner: CommandRunner, cfg: DeploymentConfig) -> None:
    args = build_deploy_args(cfg)
    logger.info("배포 명령: %s", render_command(args))
    runner.run("gcloud", args)
    logger.success("배포 명령이 완료되었습니다: %s", cfg.service_name)


def list_services(runner: CommandRunner, region: str, project: str) -> None:
    runner.run("gcloud", ["run", "services", "list", *_scope(region, project)])


def describe_service(runner: CommandRunner, service: str, region: str, project: str) -> None:
    runner.run("gcloud", ["run", "services", "describe", service, *_scope(region, project)])


def _describe_value(runner: CommandRunner, service: str, region: str, project: str, fmt: str) -> str:
    result = runner.query(
        "gcloud",
        ["run", "services", "describe", service, *_scope(region, project), f"--format=value({fmt})"],
    )
    return result.stdout.strip() if result.ok else ""


def get_service_url(runner: CommandRunner, service: str, region: str, project: str) -> str:
    return _describe_value(runner, service, region, project, "status.url")


def get_service_status(runner: CommandRunner, service: str, region: str, project: str) -> str:
    return _describe_value(runner, service, region, project, "status.conditions[0].status")


def get_service_image(runner: CommandRunner, service: str, region: str, project: str) -> str:
    return _describe_value(runner, service, region, project, "spec.template.spec.containers[0].image")


def service_exists(runner: CommandRunner, service: str, region: str, project: str) -> bool:
    return runner.succeeds("gcloud", ["run", "services", "describe", service, *_scope(region, project)])


def wait_for_service(
    runner: CommandRunner,
    service: str,
    region: str,
    project: str,
    *,
    timeout: float = 300.0,
    interval: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """
    Ready 조건이 True 가 될 때까지 interval 간격으로 조회한다.
    timeout 안에 준비되지 않으면 예외 없이 False 를 돌려준다.
    """
    if runner.dry_run:
        runner.query("gcloud", ["run", "services", "describe", service, *_scope(region, project),
                                "--format=value(status.conditions[0].status)"])
        return True

    logger.info("서비스 준비 대기 중: %s (최대 %ss)", service, int(timeout))
    deadline = clock() + timeout
    while True:
        if get_service_status(runner, service, region, project) == "True":
            logger.success("서비스가 준비되었습니다: %s", service)
            return True
        if clock() >= deadline:
            logger.warning("서비스 준비 대기 시간이 초과되었습니다: %s", service)
            return False
        sleep(interval)


# -----------------------------
# 업데이트
# -----------------------------
def _update(runner: CommandRunner, service: str, region: str, project: str, flags: Sequence[str]) -> None:
    runner.run("gcloud", ["run", "services", "update", service, *flags, *_scope(region, project)])


def update_image(runner: CommandRunner, service: str, image: str, region: str, project: str) -> None:
    _update(runner, service, region, project, [f"--image={image}"])


def set_env_vars(runner: CommandRunner, service: str, env_vars: Mapping[str, str],
                 region: str, project: str) -> None:
    _update(runner, service, region, project, [f"--set-env-vars={join_mapping(env_vars)}"])


def remove_env_vars(runner: CommandRunner, service: str, names: Sequence[str],
                    region: str, project: str) -> None:
    _update(runner, service, region, project, [f"--remove-env-vars={','.join(names)}"])


def clear_env_vars(runner: CommandRunner, service: str, region: str, project: str) -> None:
    _update(runner, service, region, project, ["--clear-env-vars"])


def update_resources(runner: CommandRunner, service: str, memory: str, cpu: str,
                     region: str, project: str) -> None:
    _update(runner, service, region, project, [f"--memory={memory}", f"--cpu={cpu}"])


def update_scaling(runner: CommandRunner, service: str, min_instances: int, max_instances: int,
                   concurrency: int, region: str, project: str) -> None:
    _update(
        runner, service, region, project,
        [f"--min-instances={min_instances}", f"--max-instances={max_instances}", f"--concurrency={concurrency}"],
    )


def update_traffic(runner: CommandRunner, service: str, split: Mapping[str, int],
                   region: str, project: str) -> None:
    to_revisions = ",".join(f"{rev}={pct}" for rev, pct in split.items())
    runner.run(
        "gcloud",
        ["run", "services", "update-traffic", service, f"--to-revisions={to_revisions}", *_scope(region, project)],
    )


def rollback(runner: CommandRunner, service: str, revision: str, region: str, project: str) -> None:
    update_traffic(runner, service, {revision: 100}, region, project)


def _iam_binding(action: str, service: str, member: str, region: str, project: str) -> List[str]:
    return [
        "run", "services", action, service,
        f"--member={member}",
        f"--role={INVOKER_ROLE}",
        *_scope(region, project, platform=False),
    ]


def make_public(runner: CommandRunner, service: str, region: str, project: str) -> None:
    runner.run("gcloud", _iam_binding("add-iam-policy-binding", service, "allUsers", region, project))


def make_private(runner: CommandRunner, service: str, region: str, project: str) -> None:
    # 바인딩이 원래 없으면 실패하므로 결과는 무시한다.
    runner.run("gcloud", _iam_binding("remove-iam-policy-binding", service, "allUsers", region, project),
               check=False)


def add_invoker(runner: CommandRunner, service: str, member: str, region: str, project: str) -> None:
    runner.run("gcloud", _iam_binding("add-iam-policy-binding", service, member, region, project))


def delete_service(runner: CommandRunner, service: str, region: str, project: str) -> None:
    runner.run("gcloud", ["run", "services", "delete", service, *_scope(region, project), "--quiet"])


# -----------------------------
# 리비전
# -----------------------------
def list_revisions(runner: CommandRunner, service: str, region: str, project: str) -> None:
    runner.run("gcloud", ["run", "revisions", "list", f"--service={service}",
                          *_scope(region, project, platform=False)])


def _revision_names(runner: CommandRunner, service: str, region: str, project: str,
                    limit: Optional[int] = None) -> List[str]:
    args = [
        "run", "revisions", "list",
        f"--service={service}",
        *_scope(region, project, platform=False),
        "--format=value(metadata.name)",
        "--sort-by=~metadata.creationTimestamp",
    ]
    if limit is not None:
        args.append(f"--limit={limit}")
    result = runner.query("gcloud", args, check=True)
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def get_latest_revision(runner: CommandRunner, service: str, region: str, project: str) -> str:
    names = _revision_names(runner, service, region, project, limit=1)
    return names[0] if names else ""


def revisions_to_delete(revisions: Sequence[str], keep: int) -> List[str]:
    """최신순으로 정렬된 리비전 목록에서 keep 개를 남기고 나머지를 돌려준다."""
    if keep < 0:
        raise ValidationError(f"keep 값은 0 이상이어야 합니다: {keep}")
    return list(revisions[keep:])


def cleanup_old_revisions(runner: CommandRunner, service: str, region: str, project: str,
                          keep: int = 5) -> List[str]:
    logger.info("오래된 리비전 정리 (최신 %s개 유지)", keep)
    targets = revisions_to_delete(_revision_names(runner, service, region, project), keep)
    for revision in targets:
        logger.info("리비전 삭제: %s", revision)
        runner.run("gcloud", ["run", "revisions", "delete", revision,
                              *_scope(region, project, platform=False), "--quiet"])
    logger.success("정리 완료 (%s개 삭제)", len(targets))
    return targets


def _container_spec(raw_json: str) -> Dict[str, object]:
    if not raw_json.strip():
        return {}
    data = json.loads(raw_json)
    containers = data.get("spec", {}).get("containers") or [{}]
    return containers[0]


def compare_revisions(runner: CommandRunner, first: str, second: str,
                      region: str, project: str) -> Tuple[Dict[str, object], Dict[str, object]]:
    specs = []
    for revision in (first, second):
        result = runner.query(
            "gcloud",
            ["run", "revisions", "describe", revision, *_scope(region, project, platform=False), "--format=json"],
            check=True,
        )
        specs.append(_container_spec(result.stdout))
    return specs[0], specs[1]


# -----------------------------
# 설정 백업 / 복원
# -----------------------------
def _describe_yaml(runner: CommandRunner, service: str, region: str, project: str) -> str:
    result = runner.query(
        "gcloud",
        ["run", "services", "describe", service, *_scope(region, project), "--format=yaml"],
        check=True,
    )
    return result.stdout


def _write_text(runner: CommandRunner, path: str, content: str) -> str:
    if runner.dry_run:
        logger.info("[DRY-RUN] 파일 쓰기 생략: %s", path)
        return path
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


def export_service_config(runner: CommandRunner, service: str, region: str, project: str,
                          base_dir: str = ".") -> str:
    path = os.path.join(base_dir, f"{service}_config.yaml")
    _write_text(runner, path, _describe_yaml(runner, service, region, project))
    logger.success("서비스 설정을 내보냈습니다: %s", path)
    return path


def backup_service_config(runner: CommandRunner, service: str, region: str, project: str,
                          backup_dir: str = "./.cloudrun_backups",
                          now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    if not runner.dry_run:
        os.makedirs(backup_dir, exist_ok=True)
    path = os.path.join(backup_dir, f"{service}_{stamp}.yaml")
    _write_text(runner, path, _describe_yaml(runner, service, region, project))
    logger.success("설정을 백업했습니다: %s", path)
    return path


def restore_service_config(runner: CommandRunner, backup_file: str, region: str, project: str) -> None:
    if not os.path.isfile(backup_file):
        raise ValidationError(f"백업 파일을 찾을 수 없습니다: {backup_file}")
    runner.run("gcloud", ["run", "services", "replace", backup_file, *_scope(region, project, platform=False)])


# -----------------------------
# 도메인 매핑
# -----------------------------
def list_domain_mappings(runner: CommandRunner, region: str, project: str) -> None:
    runner.run("gcloud", ["run", "domain-mappings", "list", *_scope(region, project, platform=False)])


def create_domain_mapping(runner: CommandRunner, service: str, domain: str, region: str, project: str) -> None:
    runner.run("gcloud", ["run", "domain-mappings", "create", f"--service={service}", f"--domain={domain}",
                          *_scope(region, project, platform=False)])


def delete_domain_mapping(runner: CommandRunner, domain: str, region: str, project: str) -> None:
    runner.run("gcloud", ["run", "domain-mappings", "delete", domain,
                          *_scope(region, project, platform=False), "--quiet"])


# -----------------------------
# 엔드포인트 점검
# -----------------------------
def test_endpoint(runner: CommandRunner, url: str, expected_status: int = 200) -> bool:
    logger.info("엔드포인트 테스트: %s", url)
    result = runner.query("curl", ["-s", "-o", "/dev/null", "-w", "%{http_code}", url])
    if runner.dry_run:
        return True
    status = result.stdout.strip()
    if status == str(expected_status):
        logger.success("테스트 통과! status=%s", status)
        return True
    logger.error("테스트 실패! expected=%s got=%s", expected_status, status or "(none)")
    return False


def probe(runner: CommandRunner, url: str) -> bool:
    """`curl -i` 로 응답 헤더와 본문을 그대로 보여준다."""
    return runner.run("curl", ["-i", url], check=False).ok


LOAD_TEST_TOOLS = ("ab", "hey")


def load_test(runner: CommandRunner, url: str, requests: int = 100, concurrency: int = 10) -> bool:
    """
    ab(ApacheBench) 또는 hey 로 간단한 부하 테스트를 돌린다.
    둘 다 없으면 설치 안내만 남기고 False.
    """
    logger.info("부하 테스트: %s (requests=%d, concurrency=%d)", url, requests, concurrency)
    tool = next((t for t in LOAD_TEST_TOOLS if runner.which(t)), None)
    if tool is None:
        logger.warning("부하 테스트 도구(ab, hey)를 찾을 수 없습니다.")
        logger.info("ApacheBench 설치: sudo apt-get install apache2-utils")
        logger.info("hey 설치: go install github.com/rakyll/hey@latest")
        return False
    runner.run(tool, ["-n", str(requests), "-c", str(concurrency), url])
    return True


def show_quotas(runner: CommandRunner, project: str) -> None:
    """프로젝트의 서비스별 URL / 트래픽 비율을 표로 보여준다."""
    logger.info("Cloud Run 현황: %s", project)
    runner.run(
        "gcloud",
        [
            "run", "services", "list",
            f"--project={project}",
            "--format=table(metadata.name, status.url, status.traffic[0].percent)",
        ],
        check=False,
    )


def generate_service_name(prefix: str = "service", length: int = 8) -> str:
    rng = random.SystemRandom()
    suffix = "".join(rng.choice(string.ascii_lowercase + string.digits) for _ in range(length))
    return f"{prefix}-{suffix}"
