"""フロー登録レジストリ"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import structlog

from .exceptions import FeaturePilotError, FeaturePilotErrorCodes

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FlowTarget:
    """(feature, flow) に束縛されたハンドラー。

    receiver が None の場合 method は素の関数として呼び出す。
    """

    receiver: Any
    method: Callable[..., Any]

    def invoke(self, *args: Any, **kwargs: Any) -> Any:
        if self.receiver is None:
            return self.method(*args, **kwargs)
        return self.method(self.receiver, *args, **kwargs)

    @classmethod
    def of(cls, fn: Callable[..., Any]) -> FlowTarget:
        """関数またはバウンドメソッドから FlowTarget を作る。"""
        if inspect.ismethod(fn):
            return cls(receiver=fn.__self__, method=fn.__func__)
        return cls(receiver=None, method=fn)


HandlerSource = Iterable[tuple[str, str, FlowTarget]]


class FlowRegistry:
    """feature -> flow -> FlowTarget の対応表。

    起動時に単一スレッドで構築し、freeze() 以降は読み取り専用として
    複数スレッドから参照する。
    """

    def __init__(self) -> None:
        self._flows: dict[str, dict[str, FlowTarget]] = {}
        self._frozen = False

    def register(self, feature: str, flow: str, target: FlowTarget) -> None:
        """エントリを登録する。同じキーが既にあれば上書きする。"""
        if self._frozen:
            raise FeaturePilotError(
                code=FeaturePilotErrorCodes.REGISTRY_FROZEN,
                message=f"Cannot register flow {feature}/{flow}: registry is frozen",
            )
        flows = self._flows.setdefault(feature, {})
        if flow in flows:
            logger.warning(
                "Duplicate flow registration, overwriting",
                feature=feature,
                flow=flow,
            )
        flows[flow] = target

    def register_source(self, source: HandlerSource) -> int:
        """HandlerSource の全エントリを登録し、登録件数を返す。"""
        count = 0
        for feature, flow, target in source:
            self.register(feature, flow, target)
            count += 1
        return count

    def lookup(self, feature: str, flow: str) -> FlowTarget | None:
        flows = self._flows.get(feature)
        if flows is None:
            return None
        return flows.get(flow)

    def freeze(self) -> None:
        """以降の登録を禁止し、内部の対応表を読み取り専用にする。"""
        if self._frozen:
            return
        self._flows = {
            feature: MappingProxyType(dict(flows))  # type: ignore[misc]
            for feature, flows in self._flows.items()
        }
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def features(self) -> list[str]:
        return sorted(self._flows)

    def flows(self, feature: str) -> Mapping[str, FlowTarget]:
        return MappingProxyType(dict(self._flows.get(feature, {})))

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        return self.lookup(key[0], key[1]) is not None

    def __iter__(self) -> Iterator[tuple[str, str, FlowTarget]]:
        for feature, flows in self._flows.items():
            for flow, target in flows.items():
                yield feature, flow, target

    def __len__(self) -> int:
        return sum(len(flows) for flows in self._flows.values())
