"""Runtime configuration helpers for jinja_collect."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

try:  # Prefer optional dotenv loading to keep env setup simple outside the repo
    from dotenv import load_dotenv  # type: ignore

    load_dotenv()  # best-effort; safe no-op if .env missing
except ImportError:
    pass

SECURITY_MODES = ("sandbox", "immutable", "none", "unrestricted")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _load_env_json(name: str) -> Dict[str, Any]:
    """Return JSON data from the environment when available."""
    raw = os.environ.get(name)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass
    return {}


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for template rendering."""

    project_root: Path
    security_mode: str
    strict_undefined: bool
    template_dirs: Tuple[Path, ...]
    log_level: str
    extra_globals: Dict[str, Any]

    @classmethod
    def load(cls) -> "Settings":
        project_root = Path(os.environ.get("JINJA_COLLECT_ROOT", Path.cwd())).expanduser().resolve()

        security_mode = os.environ.get("JINJA_COLLECT_SECURITY_MODE", "sandbox").lower()
        if security_mode not in SECURITY_MODES:
            security_mode = "sandbox"

        strict_undefined = _bool_env("JINJA_COLLECT_STRICT_UNDEFINED", True)

        template_dirs_raw = os.environ.get("JINJA_COLLECT_TEMPLATE_DIRS", "")
        template_dirs = tuple(
            Path(entry).expanduser()
            for entry in template_dirs_raw.split(os.pathsep)
            if entry.strip()
        )

        log_level = os.environ.get("JINJA_COLLECT_LOG_LEVEL", "WARNING").upper()
        if log_level not in LOG_LEVELS:
            log_level = "WARNING"

        extra_globals = _load_env_json("JINJA_COLLECT_EXTRA_GLOBALS")

        return cls(
            project_root=project_root,
            security_mode=security_mode,
            strict_undefined=strict_undefined,
            template_dirs=template_dirs,
            log_level=log_level,
            extra_globals=extra_globals,
        )


def _bool_env(name: str, default: bool) -> bool:
    raw: Optional[str] = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


settings = Settings.load()
