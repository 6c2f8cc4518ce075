"""
validation
----------

프롬프트 경계에서 입력을 검사/파싱한다.
여기서 걸러진 값만 DeploymentConfig 와 명령 합성 단계로 넘어간다.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Sequence, Tuple

from .errors import ValidationError


SERVICE_NAME_RE = re.compile(r"^[a-z][a-z0-9-]{0,62}$")
MEMORY_RE = re.compile(r"^[0-9]+(Mi|Gi)$")
CPU_RE = re.compile(r"^([0-9]+(\.[0-9]+)?|[0-9]+m)$")
ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
LABEL_KEY_RE = re.compile(r"^[a-z][a-z0-9_-]{0,62}$")
SECRET_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,255}$")
SECRET_VERSION_RE = re.compile(r"^(latest|[0-9]+)$")
CLOUDSQL_RE = re.compile(r"^[^:\s]+:[^:\s]+:[^:\s]+$")
FRESHNESS_RE = re.compile(r"^[0-9]+[smhdw]$")

INGRESS_CHOICES = ("all", "internal", "internal-and-cloud-load-balancing")
VPC_EGRESS_CHOICES = ("all-traffic", "private-ranges-only")
EXEC_ENV_CHOICES = ("gen1", "gen2")

SERVICE_NAME_RULES = "\n".join(
    [
        "서비스 이름 규칙:",
        "  - 영문 소문자로 시작",
        "  - 소문자, 숫자, 하이픈(-)만 사용",
        "  - 최대 63자",
    ]
)


def validate_service_name(name: str) -> str:
    if not SERVICE_NAME_RE.match(name):
        raise ValidationError(f"잘못된 서비스 이름입니다: {name!r}", SERVICE_NAME_RULES)
    return name


def validate_memory(value: str) -> str:
    if not MEMORY_RE.match(value):
        raise ValidationError(
            f"잘못된 메모리 값입니다: {value!r}",
            "숫자 뒤에 Mi 또는 Gi 단위를 붙이세요 (예: 512Mi, 1Gi)",
        )
    return value


def validate_cpu(value: str) -> str:
    if not CPU_RE.match(value):
        raise ValidationError(f"잘못된 CPU 값입니다: {value!r}", "예: 1, 2, 4, 8 또는 1000m")
    return value


def validate_int_range(value: str, name: str, minimum: int = 0,
                       maximum: int | None = None) -> int:
    try:
        number = int(value)
    except ValueError:
        raise ValidationError(f"{name} 값은 정수여야 합니다: {value!r}") from None
    if number < minimum or (maximum is not None and number > maximum):
        upper = "" if maximum is None else f" ~ {maximum}"
        raise ValidationError(f"{name} 값이 허용 범위를 벗어났습니다: {number}", f"허용 범위: {minimum}{upper}")
    return number


def validate_choice(value: str, choices: Sequence[str], name: str) -> str:
    if value not in choices:
        raise ValidationError(f"{name} 값이 올바르지 않습니다: {value!r}", "선택 가능: " + ", ".join(choices))
    return value


def _split_pair(entry: str, what: str) -> Tuple[str, str]:
    if "=" not in entry:
        raise ValidationError(f"{what} 형식이 올바르지 않습니다 (KEY=VALUE): {entry!r}")
    key, value = entry.split("=", 1)
    return key.strip(), value.strip()


def parse_env_var(entry: str) -> Tuple[str, str]:
    key, value = _split_pair(entry, "환경변수")
    if not ENV_KEY_RE.match(key):
        raise ValidationError(f"잘못된 환경변수 이름입니다: {key!r}", "영문/숫자/밑줄만 사용하고 숫자로 시작할 수 없습니다")
    return key, value


def parse_label(entry: str) -> Tuple[str, str]:
    key, value = _split_pair(entry, "라벨")
    if not LABEL_KEY_RE.match(key):
        raise ValidationError(f"잘못된 라벨 키입니다: {key!r}", "라벨 키는 소문자로 시작하고 소문자/숫자/-/_ 만 사용합니다")
    return key, value


def parse_annotation(entry: str) -> Tuple[str, str]:
    key, value = _split_pair(entry, "어노테이션")
    if not key:
        raise ValidationError(f"어노테이션 키가 비어 있습니다: {entry!r}")
    return key, value


def parse_secret_mount(entry: str) -> Tuple[str, str]:
    """
    `ENV_VAR=secret-name[:version]` 또는 `/mount/path=secret-name[:version]`.
    버전을 생략하면 latest 를 붙인다.
    """
    target, ref = _split_pair(entry, "시크릿")
    if not (target.startswith("/") or ENV_KEY_RE.match(target)):
        raise ValidationError(f"잘못된 시크릿 대상입니다: {target!r}", "환경변수 이름 또는 /로 시작하는 마운트 경로를 사용하세요")
    name, _, version = ref.partition(":")
    version = version or "latest"
    if not SECRET_NAME_RE.match(name) or not SECRET_VERSION_RE.match(version):
        raise ValidationError(
            f"잘못된 시크릿 참조입니다: {ref!r}",
            "형식: ENV_VAR_NAME=SECRET_NAME:VERSION (예: DATABASE_PASSWORD=db-password:latest)",
        )
    return target, f"{name}:{version}"


def parse_pairs(entries: Iterable[str], parser=parse_env_var) -> Dict[str, str]:  # noqa: ANN001
    result: Dict[str, str] = {}
    for entry in entries:
        if not entry.strip():
            continue
        key, value = parser(entry.strip())
        result[key] = value
    return result


def parse_pair_list(raw: str, parser=parse_label) -> Dict[str, str]:  # noqa: ANN001
    """`a=b,c=d` 형태의 한 줄 입력을 파싱한다. 빈 문자열이면 빈 dict."""
    return parse_pairs(raw.split(","), parser)


def validate_cloudsql_connection(value: str) -> str:
    if not CLOUDSQL_RE.match(value):
        raise ValidationError(
            f"잘못된 Cloud SQL 연결 이름입니다: {value!r}",
            "형식: PROJECT:REGION:INSTANCE",
        )
    return value


def validate_freshness(value: str) -> str:
    if not FRESHNESS_RE.match(value):
        raise ValidationError(f"잘못된 시간 범위입니다: {value!r}", "예: 30m, 1h, 2d")
    return value


def parse_traffic_split(raw: str) -> Dict[str, int]:
    """
    `rev-a=50,rev-b=50` 형식. 각 비율은 0~100, 합계는 100 을 넘을 수 없다.
    """
    split = parse_pair_list(raw, _split_traffic_entry)
    if not split:
        raise ValidationError("트래픽 분할 값이 비어 있습니다", "예: myservice-00001-abc=50,myservice-00002-xyz=50")
    result = {rev: validate_int_range(pct, f"{rev} 트래픽 비율", 0, 100) for rev, pct in split.items()}
    total = sum(result.values())
    if total > 100:
        raise ValidationError(f"트래픽 비율 합계가 100 을 넘습니다: {total}")
    return result


def _split_traffic_entry(entry: str) -> Tuple[str, str]:
    rev, pct = _split_pair(entry, "트래픽 분할")
    if not rev:
        raise ValidationError(f"리비전 이름이 비어 있습니다: {entry!r}")
    return rev, pct
