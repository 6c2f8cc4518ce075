"""
templates
---------

패키지에 포함된 정적 템플릿(Dockerfile, Cloud Build, GitHub Actions, Makefile 등)에
수집된 값 몇 개만 치환해서 작업 디렉토리에 파일로 쓴다.

치환 문법은 `@@{name}` 하나뿐이다. 템플릿 안에서는 분기/반복을 하지 않는다.
`$VAR`, `${{ ... }}` 같은 셸/YAML 문법은 그대로 남는다.
"""

from __future__ import annotations

import os
import string
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Set

from .logging_utils import get_logger


logger = get_logger(__name__)

ASSET_PACKAGE = "cloudrun_kit.assets"


class _AtTemplate(string.Template):
    delimiter = "@@"
    pattern = r"""
    @@(?:
        (?P<escaped>@@)
      | \{(?P<braced>[a-z_][a-z0-9_]*)\}
      | (?P<named>(?!))
      | (?P<invalid>)
    )
    """


@dataclass(frozen=True)
class TemplateFile:
    asset: str
    output: str
    executable: bool = False


RUNTIMES = ("nodejs", "python", "go", "java", "dotnet", "ruby", "php")

TEMPLATES: Dict[str, List[TemplateFile]] = {
    **{f"dockerfile-{rt}": [TemplateFile(f"Dockerfile.{rt}", "Dockerfile")] for rt in RUNTIMES},
    "cloudbuild-basic": [TemplateFile("cloudbuild-basic.yaml", "cloudbuild.yaml")],
    "cloudbuild-advanced": [TemplateFile("cloudbuild-advanced.yaml", "cloudbuild.yaml")],
    "deployment-files": [
        TemplateFile("env.example", ".env.example"),
        TemplateFile("gcloudignore", ".gcloudignore"),
        TemplateFile("deploy.sh", "deploy.sh", executable=True),
    ],
    "makefile": [TemplateFile("Makefile.cloudrun", "Makefile")],
    "github-actions": [
        TemplateFile("github-deploy-to-cloudrun.yml", ".github/workflows/deploy-to-cloudrun.yml"),
    ],
}

ConfirmOverwrite = Callable[[Path], bool]


def _read_asset(name: str) -> str:
    return resources.files(ASSET_PACKAGE).joinpath(name).read_text(encoding="utf-8")


def _files_for(template_id: str) -> List[TemplateFile]:
    try:
        return TEMPLATES[template_id]
    except KeyError:
        raise ValueError(
            f"알 수 없는 템플릿입니다: {template_id!r} (사용 가능: {', '.join(sorted(TEMPLATES))})"
        ) from None


def placeholders(template_id: str) -> Set[str]:
    """템플릿이 요구하는 치환 키 목록."""
    names: Set[str] = set()
    for tf in _files_for(template_id):
        for m in _AtTemplate.pattern.finditer(_read_asset(tf.asset)):
            if m.group("braced"):
                names.add(m.group("braced"))
    return names


def render(asset: str, substitutions: Mapping[str, str]) -> str:
    try:
        return _AtTemplate(_read_asset(asset)).substitute(substitutions)
    except KeyError as e:
        raise ValueError(f"템플릿 {asset} 에 필요한 값이 없습니다: {e.args[0]}") from None


def emit(
    template_id: str,
    substitutions: Mapping[str, str],
    dest_dir: str = ".",
    *,
    overwrite: bool = False,
    confirm_overwrite: Optional[ConfirmOverwrite] = None,
    dry_run: bool = False,
) -> List[Path]:
    """
    템플릿을 렌더링해서 dest_dir 아래에 쓰고, 실제로 쓴 파일 경로 목록을 돌려준다.

    이미 같은 이름의 파일이 있고 내용이 다르면 overwrite=True 이거나
    confirm_overwrite(path) 가 True 일 때만 덮어쓴다. 그렇지 않으면 경고 후 건너뛴다.
    내용이 같으면 그대로 다시 쓴다.
    dry_run=True 이면 렌더링(치환 값 검사)까지만 하고 아무 파일도 쓰지 않는다.
    """
    rendered = [(tf, render(tf.asset, substitutions)) for tf in _files_for(template_id)]

    written: List[Path] = []
    for tf, content in rendered:
        path = Path(dest_dir) / tf.output
        if dry_run:
            logger.info("[DRY-RUN] 파일 쓰기 생략: %s", path)
            continue
        if path.exists():
            existing = path.read_text(encoding="utf-8")
            if existing != content and not overwrite:
                if confirm_overwrite is None or not confirm_overwrite(path):
                    logger.warning("기존 파일이 있어 건너뜁니다: %s", path)
                    continue

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if tf.executable:
            os.chmod(path, path.stat().st_mode | 0o111)
        logger.success("생성됨: %s", path)
        written.append(path)

    return written
