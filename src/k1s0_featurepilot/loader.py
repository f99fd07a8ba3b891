"""設定ファイル読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import FeaturePilotConfig
from .exceptions import FeaturePilotError, FeaturePilotErrorCodes

ROOT_KEY = "featurepilot"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """環境別設定 override を base に重ねた新しい辞書を返す。

    ネストした辞書同士のみ再帰的に重ね、それ以外（リスト含む）は override で置き換える。
    """
    merged = {**base}
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = deep_merge(current, value)
        merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    """YAML ファイルを読み込み、featurepilot セクションを返す。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FeaturePilotError(
            code=FeaturePilotErrorCodes.READ_FILE,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise FeaturePilotError(
            code=FeaturePilotErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise FeaturePilotError(
            code=FeaturePilotErrorCodes.PARSE_YAML,
            message=f"Config root must be a mapping: {path}",
        )
    section = data.get(ROOT_KEY, data) or {}
    if not isinstance(section, dict):
        raise FeaturePilotError(
            code=FeaturePilotErrorCodes.PARSE_YAML,
            message=f"'{ROOT_KEY}' section must be a mapping: {path}",
        )
    return section


def load(base_path: Path, env_path: Path | None = None) -> FeaturePilotConfig:
    """設定ファイルを読み込んで FeaturePilotConfig を返す。

    base_path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合はベースにマージ。
    """
    data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = deep_merge(data, _read_yaml(env_path))
    try:
        return FeaturePilotConfig.model_validate(data)
    except ValidationError as e:
        raise FeaturePilotError(
            code=FeaturePilotErrorCodes.VALIDATION,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
