"""
gcp_monitoring
--------------

Cloud Run 로그 조회와 Cloud Monitoring 메트릭 조회.
"""

from __future__ import annotations

from typing import Dict

from .errors import ValidationError
from .logging_utils import get_logger
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)

SEVERITIES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

METRIC_TYPES: Dict[str, str] = {
    "requests": "run.googleapis.com/request_count",
    "latency": "run.googleapis.com/request_latencies",
    "instances": "run.googleapis.com/container/instance_count",
}


def _revision_filter(service: str) -> str:
    return f"resource.type=cloud_run_revision AND resource.labels.service_name={service}"


def read_logs(runner: CommandRunner, service: str, region: str, project: str, limit: int = 50) -> None:
    runner.run(
        "gcloud",
        ["run", "services", "logs", "read", service, f"--region={region}", f"--project={project}", f"--limit={limit}"],
    )


def tail_logs(runner: CommandRunner, service: str, region: str, project: str) -> None:
    logger.info("로그를 따라갑니다 (Ctrl+C 로 중지)...")
    runner.run(
        "gcloud",
        ["beta", "run", "services", "logs", "tail", service, f"--region={region}", f"--project={project}"],
    )


def read_logs_since(runner: CommandRunner, service: str, freshness: str, project: str, limit: int = 100) -> None:
    runner.run(
        "gcloud",
        ["logging", "read", _revision_filter(service), f"--freshness={freshness}",
         f"--limit={limit}", f"--project={project}"],
    )


def read_logs_by_severity(runner: CommandRunner, service: str, severity: str, project: str,
                          limit: int = 50) -> None:
    level = severity.strip().upper()
    if level not in SEVERITIES:
        raise ValidationError(f"알 수 없는 로그 레벨입니다: {severity!r}", "선택 가능: " + ", ".join(SEVERITIES))
    runner.run(
        "gcloud",
        ["logging", "read", f"{_revision_filter(service)} AND severity>={level}",
         f"--limit={limit}", "--format=json", f"--project={project}"],
    )


def metric_filter(service: str, metric: str) -> str:
    try:
        metric_type = METRIC_TYPES[metric]
    except KeyError:
        raise ValidationError(
            f"알 수 없는 메트릭 종류입니다: {metric!r}", "선택 가능: " + ", ".join(METRIC_TYPES)
        ) from None
    return f"{_revision_filter(service)} AND metric.type={metric_type}"


def query_metric(runner: CommandRunner, service: str, metric: str, project: str, fmt: str = "") -> None:
    args = ["monitoring", "time-series", "list", f"--filter={metric_filter(service, metric)}", f"--project={project}"]
    if fmt:
        args.append(f"--format={fmt}")
    runner.run("gcloud", args)


def console_metrics_url(service: str, region: str, project: str) -> str:
    return f"https://console.cloud.google.com/run/detail/{region}/{service}/metrics?project={project}"
