"""
prompts
-------

사람에게 값을 묻거나(대화형), 기본값을 그대로 돌려주는(비대화형) 프롬프트 수집기.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import click

from .errors import ValidationError
from .logging_utils import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


def match_option(token: str, options: Sequence[str]) -> Optional[str]:
    """번호(1..N) 또는 정확한 라벨 문자열로 선택지를 찾는다. 없으면 None."""
    token = token.strip()
    if token.isdigit():
        idx = int(token)
        if 1 <= idx <= len(options):
            return options[idx - 1]
        return None
    if token in options:
        return token
    return None


class Prompter:
    def __init__(self, *, non_interactive: bool = False) -> None:
        self.non_interactive = non_interactive

    def _skipped(self, text: str, value: object) -> None:
        logger.info("프롬프트 건너뜀(비대화형): %s -> %r", text, value)

    def ask(self, text: str, default: str = "") -> str:
        if self.non_interactive:
            self._skipped(text, default)
            return default
        value = click.prompt(text, default=default, show_default=bool(default), type=str)
        return value.strip()

    def ask_validated(self, text: str, validator: Callable[[str], T], default: str = "") -> T:
        """
        검증 실패 시 설명과 함께 다시 묻는다.
        비대화형 모드에서는 다시 물을 수 없으므로 ValidationError 를 그대로 올린다.
        """
        while True:
            raw = self.ask(text, default)
            try:
                return validator(raw)
            except ValidationError as e:
                if self.non_interactive:
                    raise
                logger.error("%s", e)
                if e.explanation:
                    click.echo(e.explanation)

    def ask_required(self, text: str, default: str = "") -> str:
        def _non_empty(value: str) -> str:
            if not value:
                raise ValidationError(f"값을 입력해야 합니다: {text}")
            return value

        return self.ask_validated(text, _non_empty, default)

    def confirm(self, text: str, default: bool = False) -> bool:
        if self.non_interactive:
            self._skipped(text, default)
            return default
        return click.confirm(text, default=default)

    def collect_list(self, text: str) -> List[str]:
        """빈 줄이 입력될 때까지 한 줄씩 모은다."""
        if self.non_interactive:
            self._skipped(text, [])
            return []
        items: List[str] = []
        while True:
            value = self.ask(text)
            if not value:
                return items
            items.append(value)

    def collect_pairs(self, text: str, parser: Callable[[str], Tuple[str, str]]) -> Dict[str, str]:
        """
        collect_list 와 같지만 각 줄을 즉시 파싱한다.
        형식이 잘못된 줄은 오류를 알리고 버린 뒤 계속 입력받는다.
        """
        if self.non_interactive:
            self._skipped(text, {})
            return {}
        result: Dict[str, str] = {}
        while True:
            value = self.ask(text)
            if not value:
                return result
            try:
                key, parsed = parser(value)
            except ValidationError as e:
                logger.error("%s", e)
                if e.explanation:
                    click.echo(e.explanation)
                continue
            result[key] = parsed

    def choose(self, text: str, options: Sequence[str], default: Optional[str] = None) -> str:
        if self.non_interactive:
            if default is None:
                raise ValidationError(f"비대화형 모드에서는 선택할 수 없습니다: {text}")
            self._skipped(text, default)
            return default

        click.echo(text)
        for idx, label in enumerate(options, start=1):
            click.echo(f"  {idx}) {label}")
        while True:
            token = click.prompt("#?", default=default or "", show_default=bool(default), type=str)
            selected = match_option(token, options)
            if selected is not None:
                return selected
            logger.error("잘못된 선택입니다: %s", token)

    def pause(self, message: str = "계속하려면 Enter 를 누르세요...") -> None:
        if self.non_interactive:
            logger.info("일시정지 건너뜀(비대화형): %s", message)
            return
        click.prompt(message, default="", show_default=False, prompt_suffix="")
