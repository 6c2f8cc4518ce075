import logging
import sys

import click


STEP = 22
SUCCESS = 25

logging.addLevelName(STEP, "STEP")
logging.addLevelName(SUCCESS, "SUCCESS")

_TAG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "blue",
    "STEP": "magenta",
    "SUCCESS": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red",
}


class TagFormatter(logging.Formatter):
    """
    `[INFO] 메시지` 형태의 색상 태그 포맷.
    detailed=True 이면 시각/로거 이름을 앞에 붙인다.
    """

    def __init__(self, *, color: bool = True, detailed: bool = False) -> None:
        super().__init__()
        self._color = color
        self._detailed = detailed

    def format(self, record: logging.LogRecord) -> str:
        tag = f"[{record.levelname}]"
        if self._color:
            tag = click.style(tag, fg=_TAG_COLORS.get(record.levelname), bold=record.levelno >= logging.ERROR)
        text = f"{tag} {record.getMessage()}"
        if self._detailed:
            text = f"{self.formatTime(record)} | {record.name} | {text}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def setup_logging(verbosity: int = 0) -> None:
    level = logging.INFO
    if verbosity >= 1:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(TagFormatter(color=sys.stderr.isatty(), detailed=verbosity >= 1))
    logging.basicConfig(level=level, handlers=[handler], force=True)


class KitLogger(logging.LoggerAdapter):
    def step(self, msg, *args, **kwargs) -> None:  # noqa: ANN001
        self.log(STEP, msg, *args, **kwargs)

    def success(self, msg, *args, **kwargs) -> None:  # noqa: ANN001
        self.log(SUCCESS, msg, *args, **kwargs)


def get_logger(name: str) -> KitLogger:
    return KitLogger(logging.getLogger(name), {})


def print_banner(title: str, subtitle: str = "") -> None:
    width = 62
    lines = ["╔" + "═" * (width + 2) + "╗", f"║ {(' ' + title):<{width}} ║"]
    if subtitle:
        lines.append(f"║ {(' ' + subtitle):<{width}} ║")
    lines.append("╚" + "═" * (width + 2) + "╝")
    click.secho("\n".join(lines), fg="cyan")
