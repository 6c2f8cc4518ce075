"""
menu
----

번호 목록 메뉴. 각 스크립트는 Enum(값 = 라벨)으로 동작을 정의하고
{action: handler} 테이블로 핸들러를 묶는다.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Mapping, Optional, Type

import click

from .errors import ValidationError
from .logging_utils import get_logger
from .prompts import Prompter


logger = get_logger(__name__)

Handler = Callable[[], object]


class Menu:
    def __init__(
        self,
        title: str,
        actions: Type[Enum],
        handlers: Mapping[Enum, Handler],
        prompter: Prompter,
        exit_action: Optional[Enum] = None,
    ) -> None:
        missing = [a for a in actions if a is not exit_action and a not in handlers]
        if missing:
            raise ValueError(f"핸들러가 없는 메뉴 항목: {', '.join(a.name for a in missing)}")
        self.title = title
        self.actions = list(actions)
        self.handlers = dict(handlers)
        self.prompter = prompter
        self.exit_action = exit_action

    def select(self) -> Enum:
        labels = [a.value for a in self.actions]
        default = self.exit_action.value if (self.exit_action is not None and self.prompter.non_interactive) else None
        label = self.prompter.choose(self.title, labels, default=default)
        return next(a for a in self.actions if a.value == label)

    def dispatch_once(self) -> Enum:
        """
        하나를 선택받아 해당 핸들러 하나만 실행하고 선택된 action 을 돌려준다.
        종료 항목이면 아무것도 실행하지 않는다.
        """
        action = self.select()
        if action is self.exit_action:
            return action
        logger.debug("메뉴 실행: %s", action.name)
        self.handlers[action]()
        return action

    def loop(self, *, pause: bool = False) -> None:
        """
        종료 항목이 선택될 때까지 반복한다.
        ValidationError 는 알리고 다음 메뉴로 넘어가며, 그 외 예외는 호출자에게 올린다.
        """
        while True:
            click.echo("")
            try:
                action = self.dispatch_once()
            except ValidationError as e:
                if self.prompter.non_interactive:
                    raise
                logger.error("%s", e)
                if e.explanation:
                    click.echo(e.explanation)
                continue
            if action is self.exit_action:
                logger.info("종료합니다.")
                return
            if pause:
                self.prompter.pause()
