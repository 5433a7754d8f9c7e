"""Workspace configuration stored in ``<root>/.palace/config.json``."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from .guardrails import Guardrails, merge_globs
from .models import VerifyMode

log = logging.getLogger(__name__)

PALACE_DIR = ".palace"
CONFIG_FILENAME = "config.json"
DEFAULT_MAX_LINES = 120
DEFAULT_MAX_BYTES = 8 * 1024
DEFAULT_WORKERS = max(1, min(4, os.cpu_count() or 1))
DEFAULT_VERIFY_MODE = VerifyMode.FAST.value
SUPPORTED_VERIFY_MODES: tuple[str, ...] = tuple(mode.value for mode in VerifyMode)


@dataclass
class Config:
    do_not_touch_globs: tuple[str, ...] = field(default_factory=tuple)
    read_only_globs: tuple[str, ...] = field(default_factory=tuple)
    max_lines: int = DEFAULT_MAX_LINES
    max_bytes: int = DEFAULT_MAX_BYTES
    workers: int = DEFAULT_WORKERS
    verify_mode: str = DEFAULT_VERIFY_MODE

    @property
    def guardrails(self) -> Guardrails:
        """Default guardrails extended with the configured globs."""
        return Guardrails.with_defaults(self.do_not_touch_globs, self.read_only_globs)


def config_path(root: Path | str) -> Path:
    return Path(root) / PALACE_DIR / CONFIG_FILENAME


def _coerce_positive(value: object, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _coerce_verify_mode(value: object) -> str:
    normalized = str(value or DEFAULT_VERIFY_MODE).strip().lower()
    if normalized not in SUPPORTED_VERIFY_MODES:
        return DEFAULT_VERIFY_MODE
    return normalized


def _coerce_globs(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return merge_globs(item for item in value if isinstance(item, str))


def config_from_mapping(raw: Dict[str, Any]) -> Config:
    guardrails = raw.get("guardrails") if isinstance(raw.get("guardrails"), dict) else {}
    index = raw.get("index") if isinstance(raw.get("index"), dict) else {}
    verify = raw.get("verify") if isinstance(raw.get("verify"), dict) else {}
    return Config(
        do_not_touch_globs=_coerce_globs(guardrails.get("doNotTouchGlobs")),
        read_only_globs=_coerce_globs(guardrails.get("readOnlyGlobs")),
        max_lines=_coerce_positive(index.get("maxLines"), DEFAULT_MAX_LINES),
        max_bytes=_coerce_positive(index.get("maxBytes"), DEFAULT_MAX_BYTES),
        workers=_coerce_positive(index.get("workers"), DEFAULT_WORKERS),
        verify_mode=_coerce_verify_mode(verify.get("mode")),
    )


def load_config(root: Path | str) -> Config:
    """Read the workspace config; a missing or unreadable file yields defaults."""

    config_file = config_path(root)
    if not config_file.exists():
        return Config()
    try:
        raw = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("Ignoring unreadable config %s: %s", config_file, exc)
        return Config()
    if not isinstance(raw, dict):
        log.warning("Ignoring config %s: top-level value is not an object", config_file)
        return Config()
    return config_from_mapping(raw)


def save_config(root: Path | str, config: Config) -> Path:
    config_file = config_path(root)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {
        "guardrails": {},
        "index": {
            "maxLines": config.max_lines,
            "maxBytes": config.max_bytes,
            "workers": config.workers,
        },
        "verify": {"mode": _coerce_verify_mode(config.verify_mode)},
    }
    if config.do_not_touch_globs:
        data["guardrails"]["doNotTouchGlobs"] = list(config.do_not_touch_globs)
    if config.read_only_globs:
        data["guardrails"]["readOnlyGlobs"] = list(config.read_only_globs)
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return config_file


def load_guardrails(root: Path | str) -> Guardrails:
    return load_config(root).guardrails
