"""FeatureClient 実装（インターセプト外で使う読み取り専用 API）"""

from __future__ import annotations

from .context import FeatureContext
from .resolver import FlowResolver


class FeatureClient:
    """FlowResolver へ委譲するだけのステートレスなクライアント。"""

    def __init__(self, resolver: FlowResolver) -> None:
        self._resolver = resolver

    def resolve(self, feature: str, context: FeatureContext | None = None) -> str:
        return self._resolver.resolve(feature, context if context is not None else FeatureContext.empty())

    def is_enabled(
        self,
        feature: str,
        flow: str,
        context: FeatureContext | None = None,
    ) -> bool:
        """解決したフローが flow と完全一致（大文字小文字を区別）すれば True。"""
        return self.resolve(feature, context) == flow
