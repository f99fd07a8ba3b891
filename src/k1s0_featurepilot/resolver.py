"""FlowResolver プロトコル"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .context import FeatureContext


@runtime_checkable
class FlowResolver(Protocol):
    """フィーチャーの有効なフローを決定するストラテジー。

    設定が存在しない場合は例外を送出せず DEFAULT_FLOW を返すこと。
    """

    def resolve(self, feature: str, context: FeatureContext) -> str: ...
