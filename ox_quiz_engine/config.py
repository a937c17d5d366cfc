from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigError
from .utils import load_json

DEFAULTS: dict[str, dict[str, Any]] = {
    "storage": {
        "data_dir": "./data",
        "key": "@memo_for_dex_data",
    },
    "extraction": {
        "anthropic_model": "claude-sonnet-4-20250514",
        "openai_model": "gpt-4o",
        "max_tokens": 4096,
        "timeout_seconds": 60,
        "max_image_side": 1568,
        "jpeg_quality": 85,
        "question_language": "Korean",
    },
    "quiz": {
        "default_count": None,
        "weakest_top_n": 5,
    },
}

# First non-empty variable wins. EXPO_PUBLIC_* are the names the mobile app uses.
_API_KEY_ENV = {
    "anthropic_api_key": ("ANTHROPIC_API_KEY", "EXPO_PUBLIC_ANTHROPIC_API_KEY"),
    "openai_api_key": ("OPENAI_API_KEY", "EXPO_PUBLIC_OPENAI_API_KEY"),
}


@dataclass(frozen=True)
class EngineConfig:
    storage: dict[str, Any]
    extraction: dict[str, Any]
    quiz: dict[str, Any]

    @property
    def data_dir(self) -> Path:
        return Path(self.storage["data_dir"])

    @property
    def storage_key(self) -> str:
        return str(self.storage["key"])


def _section(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    raw = data.get(name, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"config section {name} must be an object")
    out = dict(DEFAULTS[name])
    out.update(raw)
    return out


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> EngineConfig:
    """Defaults <- JSON file (optional) <- environment."""
    env = os.environ if env is None else env

    data: Any = {}
    if config_path is not None:
        try:
            data = load_json(config_path)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read config {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config {config_path} must be a JSON object")

    storage = _section(data, "storage")
    extraction = _section(data, "extraction")
    quiz = _section(data, "quiz")

    if env.get("OX_QUIZ_DATA_DIR"):
        storage["data_dir"] = env["OX_QUIZ_DATA_DIR"]

    for field_name, names in _API_KEY_ENV.items():
        if extraction.get(field_name):
            continue
        extraction[field_name] = next((env[n] for n in names if env.get(n)), "")

    return EngineConfig(storage=storage, extraction=extraction, quiz=quiz)
