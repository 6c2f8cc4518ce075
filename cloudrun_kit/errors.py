"""
errors
------

CLI 경계에서 종료 코드로 변환되는 예외들.
대기 타임아웃은 예외가 아니라 `wait_for_service` 의 False 반환으로 표현한다.
"""

from __future__ import annotations

from typing import Sequence


class PrerequisiteError(RuntimeError):
    """필수 도구 미설치, 인증 없음, 프로젝트 미설정 등."""


class ValidationError(ValueError):
    """
    잘못된 입력값. explanation 은 재입력 안내에 그대로 쓰인다.
    """

    def __init__(self, message: str, explanation: str = "") -> None:
        super().__init__(message)
        self.explanation = explanation


class CommandError(RuntimeError):
    def __init__(self, cmd: Sequence[str], returncode: int, detail: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        message = f"명령 실행 실패: {' '.join(self.cmd)} (exit={returncode})"
        if detail:
            message += "\n" + detail
        super().__init__(message)
