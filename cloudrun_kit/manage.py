"""
manage
------

배포된 Cloud Run 서비스 운영 콘솔 (조회, 로그, 업데이트, 롤백, 삭제, 메트릭, 도메인 매핑).
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Mapping, Optional, Tuple

import click

from .config import RunContext
from .errors import ValidationError
from .logging_utils import get_logger, print_banner
from .menu import Menu
from .prompts import Prompter
from .subprocess_utils import CommandRunner
from . import gcp_auth, gcp_cloud_run, gcp_monitoring, gcp_project, validation


logger = get_logger(__name__)


class MainAction(Enum):
    LIST = "모든 서비스 목록"
    DETAILS = "서비스 상세 정보"
    LOGS = "서비스 로그 보기"
    UPDATE = "서비스 업데이트"
    ROLLBACK = "서비스 롤백"
    DELETE = "서비스 삭제"
    METRICS = "서비스 메트릭 보기"
    EXPORT = "서비스 설정 내보내기"
    TEST = "서비스 엔드포인트 테스트"
    DOMAINS = "도메인 매핑"
    CHANGE_TARGET = "프로젝트/리전 변경"
    EXIT = "종료"


class LogAction(Enum):
    TAIL = "로그 따라가기 (follow)"
    RECENT = "최근 로그 (50줄)"
    SINCE = "시간 범위로 조회"
    SEVERITY = "심각도로 필터링"
    BACK = "메인 메뉴로"


class UpdateAction(Enum):
    IMAGE = "이미지 변경"
    ENV_VARS = "환경변수 변경"
    RESOURCES = "리소스 한도 변경 (메모리/CPU)"
    SCALING = "스케일링 설정 변경"
    TRAFFIC = "트래픽 분할 변경"
    IAM = "IAM 정책 변경"
    BACK = "메인 메뉴로"


class EnvAction(Enum):
    SET = "변수 설정/변경"
    REMOVE = "변수 삭제"
    CLEAR = "모든 변수 삭제"
    BACK = "업데이트 메뉴로"


class IamAction(Enum):
    PUBLIC = "인증 없는 접근 허용 (공개)"
    PRIVATE = "인증 필요 (비공개)"
    MEMBER = "특정 멤버 추가"
    BACK = "업데이트 메뉴로"


class DomainAction(Enum):
    LIST = "도메인 매핑 목록"
    CREATE = "도메인 매핑 생성"
    DELETE = "도메인 매핑 삭제"
    BACK = "메인 메뉴로"


class ManageConsole:
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
        self.region = ""
        self.service = ""

    # -----------------------------
    # 공통
    # -----------------------------
    def resolve_target(self) -> None:
        self.project = gcp_project.resolve_project(self.runner, self.prompter, self.env.get("PROJECT_ID", ""))
        self.region = gcp_project.resolve_region(self.runner, self.prompter, self.env.get("REGION", ""))
        logger.success("연결됨: 프로젝트 %s (리전: %s)", self.project, self.region)

    def _ask_service(self, text: str = "서비스 이름") -> str:
        self.service = self.prompter.ask_validated(
            text, validation.validate_service_name, self.service or self.env.get("SERVICE_NAME", "")
        )
        return self.service

    def _scope(self) -> Tuple[str, str]:
        return self.region, self.project

    # -----------------------------
    # 메인 메뉴 핸들러
    # -----------------------------
    def list_services(self) -> None:
        logger.step("Cloud Run 서비스 목록")
        gcp_cloud_run.list_services(self.runner, *self._scope())

    def show_details(self) -> None:
        service = self._ask_service()
        logger.step("서비스 상세 정보: %s", service)
        gcp_cloud_run.describe_service(self.runner, service, *self._scope())
        url = gcp_cloud_run.get_service_url(self.runner, service, *self._scope())
        logger.info("서비스 URL: %s", url or "(unknown)")

    def view_logs(self) -> None:
        self._ask_service()
        Menu(
            "로그 보기 옵션:",
            LogAction,
            {
                LogAction.TAIL: lambda: gcp_monitoring.tail_logs(self.runner, self.service, *self._scope()),
                LogAction.RECENT: lambda: gcp_monitoring.read_logs(self.runner, self.service, *self._scope()),
                LogAction.SINCE: self._logs_since,
                LogAction.SEVERITY: self._logs_by_severity,
            },
            self.prompter,
            exit_action=LogAction.BACK,
        ).dispatch_once()

    def _logs_since(self) -> None:
        freshness = self.prompter.ask_validated("시간 범위 (예: 1h, 30m, 2d)", validation.validate_freshness, "1h")
        gcp_monitoring.read_logs_since(self.runner, self.service, freshness, self.project)

    def _logs_by_severity(self) -> None:
        logger.info("심각도: %s", ", ".join(gcp_monitoring.SEVERITIES))
        severity = self.prompter.ask("심각도", "ERROR")
        gcp_monitoring.read_logs_by_severity(self.runner, self.service, severity, self.project)

    def update_service(self) -> None:
        service = self._ask_service()
        logger.step("업데이트 옵션: %s", service)
        Menu(
            "업데이트 항목을 선택하세요:",
            UpdateAction,
            {
                UpdateAction.IMAGE: self._update_image,
                UpdateAction.ENV_VARS: self._update_env_vars,
                UpdateAction.RESOURCES: self._update_resources,
                UpdateAction.SCALING: self._update_scaling,
                UpdateAction.TRAFFIC: self._update_traffic,
                UpdateAction.IAM: self._update_iam,
            },
            self.prompter,
            exit_action=UpdateAction.BACK,
        ).dispatch_once()

    def _update_image(self) -> None:
        image = self.prompter.ask_required("새 이미지 URL")
        logger.info("이미지 변경: %s", image)
        gcp_cloud_run.update_image(self.runner, self.service, image, *self._scope())
        logger.success("이미지가 변경되었습니다.")

    def _update_env_vars(self) -> None:
        Menu(
            "환경변수 작업:",
            EnvAction,
            {
                EnvAction.SET: self._set_env_vars,
                EnvAction.REMOVE: self._remove_env_vars,
                EnvAction.CLEAR: self._clear_env_vars,
            },
            self.prompter,
            exit_action=EnvAction.BACK,
        ).dispatch_once()

    def _set_env_vars(self) -> None:
        logger.info("KEY=VALUE 형식, 여러 개는 쉼표로 구분")
        env_vars = self.prompter.ask_validated(
            "환경변수", lambda v: validation.parse_pair_list(v, validation.parse_env_var)
        )
        if not env_vars:
            raise ValidationError("설정할 환경변수가 없습니다.")
        gcp_cloud_run.set_env_vars(self.runner, self.service, env_vars, *self._scope())
        logger.success("환경변수가 변경되었습니다.")

    def _remove_env_vars(self) -> None:
        raw = self.prompter.ask_required("삭제할 변수 이름 (쉼표로 구분)")
        names = [n.strip() for n in raw.split(",") if n.strip()]
        gcp_cloud_run.remove_env_vars(self.runner, self.service, names, *self._scope())
        logger.success("환경변수가 삭제되었습니다.")

    def _clear_env_vars(self) -> None:
        gcp_cloud_run.clear_env_vars(self.runner, self.service, *self._scope())
        logger.success("모든 환경변수가 삭제되었습니다.")

    def _update_resources(self) -> None:
        memory = self.prompter.ask_validated("메모리 (예: 512Mi, 1Gi, 2Gi)", validation.validate_memory, "512Mi")
        cpu = self.prompter.ask_validated("CPU (1, 2, 4, 8)", validation.validate_cpu, "1")
        gcp_cloud_run.update_resources(self.runner, self.service, memory, cpu, *self._scope())
        logger.success("리소스 설정이 변경되었습니다.")

    def _update_scaling(self) -> None:
        p = self.prompter
        min_instances = p.ask_validated("최소 인스턴스 수", lambda v: validation.validate_int_range(v, "최소 인스턴스", 0), "0")
        max_instances = p.ask_validated(
            "최대 인스턴스 수",
            lambda v: validation.validate_int_range(v, "최대 인스턴스", max(min_instances, 1)),
            "100",
        )
        concurrency = p.ask_validated(
            "인스턴스당 최대 동시 요청 수", lambda v: validation.validate_int_range(v, "동시 요청 수", 1, 1000), "80"
        )
        gcp_cloud_run.update_scaling(
            self.runner, self.service, min_instances, max_instances, concurrency, *self._scope()
        )
        logger.success("스케일링 설정이 변경되었습니다.")

    def _update_traffic(self) -> None:
        logger.info("현재 리비전:")
        gcp_cloud_run.list_revisions(self.runner, self.service, *self._scope())
        logger.info("형식: REVISION-NAME=PERCENTAGE (예: myservice-00001-abc=50,myservice-00002-xyz=50)")
        split = self.prompter.ask_validated("트래픽 분할", validation.parse_traffic_split)
        gcp_cloud_run.update_traffic(self.runner, self.service, split, *self._scope())
        logger.success("트래픽 분할이 변경되었습니다.")

    def _update_iam(self) -> None:
        Menu(
            "IAM 정책 작업:",
            IamAction,
            {
                IamAction.PUBLIC: self._make_public,
                IamAction.PRIVATE: self._make_private,
                IamAction.MEMBER: self._add_member,
            },
            self.prompter,
            exit_action=IamAction.BACK,
        ).dispatch_once()

    def _make_public(self) -> None:
        gcp_cloud_run.make_public(self.runner, self.service, *self._scope())
        logger.success("서비스가 공개되었습니다.")

    def _make_private(self) -> None:
        gcp_cloud_run.make_private(self.runner, self.service, *self._scope())
        logger.success("서비스에 인증이 필요합니다.")

    def _add_member(self) -> None:
        member = self.prompter.ask_required("멤버 (예: user:email@example.com)")
        gcp_cloud_run.add_invoker(self.runner, self.service, member, *self._scope())
        logger.success("IAM 정책에 멤버를 추가했습니다.")

    def rollback(self) -> None:
        service = self._ask_service()
        logger.step("사용 가능한 리비전: %s", service)
        gcp_cloud_run.list_revisions(self.runner, service, *self._scope())
        revision = self.prompter.ask_required("롤백할 리비전 이름")
        logger.info("리비전으로 롤백: %s", revision)
        gcp_cloud_run.rollback(self.runner, service, revision, *self._scope())
        logger.success("롤백이 완료되었습니다.")

    def delete(self) -> None:
        service = self._ask_service("삭제할 서비스 이름")
        if not self.prompter.confirm(f"서비스 {service} 를 영구 삭제합니다. 계속하시겠습니까?", default=False):
            logger.info("삭제가 취소되었습니다.")
            return
        gcp_cloud_run.delete_service(self.runner, service, *self._scope())
        logger.success("서비스가 삭제되었습니다.")

    def metrics(self) -> None:
        service = self._ask_service()
        logger.step("서비스 메트릭: %s", service)
        logger.info("요청 수:")
        gcp_monitoring.query_metric(
            self.runner, service, "requests", self.project,
            fmt="table(metric.labels.response_code_class, points[0].value.int64Value)",
        )
        logger.info("인스턴스 수:")
        gcp_monitoring.query_metric(self.runner, service, "instances", self.project)
        logger.info("Cloud Console 에서 자세한 메트릭 보기:")
        click.echo(gcp_monitoring.console_metrics_url(service, self.region, self.project))

    def export(self) -> None:
        service = self._ask_service()
        gcp_cloud_run.export_service_config(self.runner, service, *self._scope(), base_dir=self.ctx.base_dir)

    def test(self) -> None:
        service = self._ask_service()
        url = gcp_cloud_run.get_service_url(self.runner, service, *self._scope())
        logger.info("서비스 URL: %s", url or "(unknown)")
        path = self.prompter.ask("테스트할 경로", "/")
        if not path.startswith("/"):
            path = "/" + path
        logger.info("테스트: %s%s", url, path)
        gcp_cloud_run.probe(self.runner, f"{url}{path}")

    def domains(self) -> None:
        Menu(
            "도메인 매핑:",
            DomainAction,
            {
                DomainAction.LIST: lambda: gcp_cloud_run.list_domain_mappings(self.runner, *self._scope()),
                DomainAction.CREATE: self._create_domain,
                DomainAction.DELETE: self._delete_domain,
            },
            self.prompter,
            exit_action=DomainAction.BACK,
        ).dispatch_once()

    def _create_domain(self) -> None:
        service = self._ask_service()
        domain = self.prompter.ask_required("도메인 (예: app.example.com)")
        gcp_cloud_run.create_domain_mapping(self.runner, service, domain, *self._scope())
        logger.success("도메인 매핑을 생성했습니다. 출력된 안내에 따라 DNS 를 설정하세요.")

    def _delete_domain(self) -> None:
        domain = self.prompter.ask_required("삭제할 도메인 (예: app.example.com)")
        if not self.prompter.confirm(f"{domain} 도메인 매핑을 삭제합니다. 계속하시겠습니까?", default=False):
            logger.info("작업이 취소되었습니다.")
            return
        gcp_cloud_run.delete_domain_mapping(self.runner, domain, *self._scope())
        logger.success("도메인 매핑을 삭제했습니다.")

    def change_target(self) -> None:
        p = self.prompter
        self.project = p.ask_required("GCP 프로젝트 ID", self.project)
        gcp_project.set_config_value(self.runner, "project", self.project)
        self.region = p.ask_required("리전", self.region or gcp_project.DEFAULT_REGION)
        gcp_project.set_config_value(self.runner, "run/region", self.region)
        logger.success("연결됨: 프로젝트 %s (리전: %s)", self.project, self.region)

    # -----------------------------
    # 진입점
    # -----------------------------
    def menu(self) -> Menu:
        return Menu(
            "Cloud Run 관리 메뉴",
            MainAction,
            {
                MainAction.LIST: self.list_services,
                MainAction.DETAILS: self.show_details,
                MainAction.LOGS: self.view_logs,
                MainAction.UPDATE: self.update_service,
                MainAction.ROLLBACK: self.rollback,
                MainAction.DELETE: self.delete,
                MainAction.METRICS: self.metrics,
                MainAction.EXPORT: self.export,
                MainAction.TEST: self.test,
                MainAction.DOMAINS: self.domains,
                MainAction.CHANGE_TARGET: self.change_target,
            },
            self.prompter,
            exit_action=MainAction.EXIT,
        )

    def run(self) -> None:
        print_banner("GCP Cloud Run - 관리", "서비스 운영, 모니터링, 제어")
        gcp_auth.check_prerequisites(self.runner, require_docker=False)
        self.resolve_target()
        self.menu().loop(pause=True)
