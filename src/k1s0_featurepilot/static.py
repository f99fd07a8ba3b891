"""StaticFlowResolver 実装"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from .constants import DEFAULT_FLOW
from .context import FeatureContext

if TYPE_CHECKING:
    from .config import FeaturePilotConfig


class StaticFlowResolver:
    """起動時に読み込んだ静的なフラグ設定から解決するリゾルバー。"""

    def __init__(self, flags: Mapping[str, str | None] | None = None) -> None:
        self._flags: Mapping[str, str | None] = MappingProxyType(dict(flags or {}))

    @classmethod
    def from_config(cls, config: FeaturePilotConfig) -> StaticFlowResolver:
        return cls(config.flags)

    def resolve(self, feature: str, context: FeatureContext) -> str:
        value = self._flags.get(feature)
        if value is None or not value.strip():
            return DEFAULT_FLOW
        return value.strip()

    @property
    def flags(self) -> Mapping[str, str | None]:
        return self._flags
