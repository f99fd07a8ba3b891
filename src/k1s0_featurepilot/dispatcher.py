"""FlowDispatcher 実装（フロー解決とハンドラー呼び出し）"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from .context import FeatureContext
from .registry import FlowRegistry, FlowTarget
from .resolver import FlowResolver

logger = structlog.get_logger(__name__)


class FlowDispatcher:
    """解決したフローに対応するハンドラーを呼び出す。

    ハンドラーが登録されていなければ fallthrough（元の処理）を呼び出す。
    ハンドラー・fallthrough が送出した例外はそのまま呼び出し元へ伝播する。
    """

    def __init__(self, registry: FlowRegistry, resolver: FlowResolver) -> None:
        self._registry = registry
        self._resolver = resolver

    @property
    def resolver(self) -> FlowResolver:
        return self._resolver

    @property
    def registry(self) -> FlowRegistry:
        return self._registry

    def select(self, feature: str, context: FeatureContext | None = None) -> FlowTarget | None:
        """呼び出し対象のハンドラーを返す。なければ None。"""
        flow = self._resolver.resolve(feature, context if context is not None else FeatureContext.empty())
        target = self._registry.lookup(feature, flow)
        logger.debug(
            "Flow resolved",
            feature=feature,
            flow=flow,
            matched=target is not None,
        )
        return target

    def dispatch(
        self,
        feature: str,
        context: FeatureContext | None,
        fallthrough: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        target = self.select(feature, context)
        if target is None:
            return fallthrough(*args, **kwargs)
        return target.invoke(*args, **kwargs)
