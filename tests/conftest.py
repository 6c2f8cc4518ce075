"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 cloudrun_kit 패키지가 있으면
site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있으므로 repo root 를 sys.path 최상단에 고정한다.

gcloud / docker / curl 은 실제로 호출하지 않는다.
`runner` fixture 가 CommandRunner 와 같은 인터페이스로 호출을 기록하고, 미리 정해 둔 출력을 돌려준다.
"""

from __future__ import annotations

import os
import sys
from typing import Iterable, List, Tuple

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


class FakeRunner:
    def __init__(self, *, dry_run: bool = False, tools: Iterable[str] = ("gcloud", "docker")) -> None:
        from cloudrun_kit.subprocess_utils import RunResult

        self._result_cls = RunResult
        self.dry_run = dry_run
        self.cwd = None
        self.tools = set(tools)
        self.calls: List[List[str]] = []
        self.inputs: List[str] = []
        self._responses: List[Tuple[Tuple[str, ...], object]] = []

    def respond(self, *prefix: str, stdout: str = "", returncode: int = 0) -> None:
        """prefix 로 시작하는 명령에 돌려줄 출력. 나중에 등록한 것이 우선한다."""
        self._responses.append((prefix, self._result_cls(returncode, stdout, "")))

    def _result(self, cmd: List[str]):  # noqa: ANN202
        if self.dry_run:
            return self._result_cls(0, "", "")
        for prefix, result in reversed(self._responses):
            if tuple(cmd[: len(prefix)]) == prefix:
                return result
        return self._result_cls(0, "", "")

    def run(self, tool, args, *, check=True, input_text=None):  # noqa: ANN001, ANN201
        from cloudrun_kit.errors import CommandError

        cmd = [tool, *args]
        self.calls.append(cmd)
        if input_text is not None:
            self.inputs.append(input_text)
        result = self._result(cmd)
        if check and not result.ok:
            raise CommandError(cmd, result.returncode)
        return result

    def query(self, tool, args, *, check=False):  # noqa: ANN001, ANN201
        from cloudrun_kit.errors import CommandError

        cmd = [tool, *args]
        self.calls.append(cmd)
        result = self._result(cmd)
        if check and not result.ok:
            raise CommandError(cmd, result.returncode)
        return result

    def succeeds(self, tool, args) -> bool:  # noqa: ANN001
        return self.query(tool, args).ok

    def which(self, tool: str) -> bool:
        return tool in self.tools

    def commands(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def dry_runner() -> FakeRunner:
    return FakeRunner(dry_run=True)
