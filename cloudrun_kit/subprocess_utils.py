from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from textwrap import shorten
from typing import Sequence

import click

from .errors import CommandError, PrerequisiteError
from .logging_utils import get_logger


logger = get_logger(__name__)

DRY_RUN_PREFIX = "[DRY-RUN]"


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def format_trace(tool: str, args: Sequence[str]) -> str:
    return " ".join([DRY_RUN_PREFIX, tool, *args])


class CommandRunner:
    """
    외부 명령(gcloud, docker, curl ...)이 지나가는 단일 관문.

    - dry_run=True : `[DRY-RUN] <tool> <args>` 한 줄을 stdout 에 남기고 성공을 돌려준다.
                     trace=False 이면 아무것도 출력하지 않는다 (plan 처럼 결과만 보여줄 때).
    - dry_run=False: 실제로 실행하고 종료 코드를 그대로 전달한다. 재시도는 하지 않는다.
    """

    def __init__(self, *, dry_run: bool = False, cwd: str | None = None, trace: bool = True) -> None:
        self.dry_run = dry_run
        self.cwd = cwd
        self.trace = trace

    def _trace(self, tool: str, args: Sequence[str]) -> RunResult:
        if self.trace:
            click.echo(format_trace(tool, args))
        else:
            logger.debug("명령 생략: %s", format_trace(tool, args))
        return RunResult(returncode=0, stdout="", stderr="")

    def _missing(self, tool: str) -> PrerequisiteError:
        return PrerequisiteError(
            f"필요한 명령을 찾을 수 없습니다: {tool} (설치 및 PATH 설정을 확인하세요)"
        )

    def run(
        self,
        tool: str,
        args: Sequence[str],
        *,
        check: bool = True,
        input_text: str | None = None,
    ) -> RunResult:
        """
        상태를 바꾸는 명령 실행. stdout/stderr 는 캡처하지 않고 터미널에 그대로 흘린다.

        check=True 이면 0 이 아닌 종료 코드를 CommandError 로 올린다.
        """
        cmd = [tool, *args]
        if self.dry_run:
            return self._trace(tool, args)

        logger.debug("명령 실행: %s", " ".join(cmd))
        try:
            proc = subprocess.run(  # noqa: S603
                cmd,
                cwd=self.cwd,
                input=input_text,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise self._missing(tool) from e

        if proc.returncode != 0 and check:
            raise CommandError(cmd, proc.returncode)
        return RunResult(returncode=proc.returncode, stdout="", stderr="")

    def query(
        self,
        tool: str,
        args: Sequence[str],
        *,
        check: bool = False,
    ) -> RunResult:
        """
        출력값을 파싱해야 하는 읽기 전용 호출(설정값, URL, 상태 조회 등).
        dry-run 에서도 trace 를 남기고 빈 출력으로 성공한다.
        """
        cmd = [tool, *args]
        if self.dry_run:
            return self._trace(tool, args)

        logger.debug("명령 실행(조회): %s", " ".join(cmd))
        try:
            proc = subprocess.run(  # noqa: S603
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise self._missing(tool) from e

        stdout = proc.stdout or ""
        stderr = proc.stderr or ""
        if stdout:
            logger.debug("명령 stdout: %s", shorten(stdout.strip(), width=2000))
        if stderr:
            logger.debug("명령 stderr: %s", shorten(stderr.strip(), width=2000))

        if proc.returncode != 0 and check:
            detail = ""
            if stderr.strip():
                detail = "stderr:\n" + shorten(stderr.strip(), width=2000)
            raise CommandError(cmd, proc.returncode, detail)
        return RunResult(returncode=proc.returncode, stdout=stdout, stderr=stderr)

    def succeeds(self, tool: str, args: Sequence[str]) -> bool:
        """존재 여부 확인용. 0 이 아닌 종료 코드는 오류가 아니라 '없음'으로 본다."""
        return self.query(tool, args, check=False).ok

    def which(self, tool: str) -> bool:
        return shutil.which(tool) is not None
