"""フロー宣言・エントリポイント用デコレーター

@flow でフローハンドラーを宣言し、scan_flows() で収集する。
FeatureInterceptor.feature() で装飾した関数・メソッドは呼び出しのたびに
FlowDispatcher を経由して対応するハンドラーへ振り分けられる。

Example:
    >>> class PaymentService:
    ...     @flow("payment", "v2")
    ...     def pay_v2(self, amount, user_id):
    ...         return f"v2:{amount}"
    >>> registry.register_source(scan_flows(PaymentService()))
    >>>
    >>> class Checkout:
    ...     @interceptor.feature("payment", context=["user_id"])
    ...     def pay(self, amount, user_id):
    ...         return f"v1:{amount}"
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any, TypeVar

from .context import FeatureContext, build_context
from .dispatcher import FlowDispatcher
from .registry import FlowTarget

F = TypeVar("F", bound=Callable[..., Any])

FLOW_MARKER = "__featurepilot_flows__"


def flow(feature: str, flow: str) -> Callable[[F], F]:
    """関数を (feature, flow) のハンドラーとして宣言する。挙動は変えない。"""

    def decorator(fn: F) -> F:
        marks: list[tuple[str, str]] = list(getattr(fn, FLOW_MARKER, ()))
        marks.append((feature, flow))
        setattr(fn, FLOW_MARKER, tuple(marks))
        return fn

    return decorator


def scan_flows(*receivers: Any) -> Iterator[tuple[str, str, FlowTarget]]:
    """@flow が付いたメソッド・関数を探して (feature, flow, FlowTarget) を返す。

    receivers にはインスタンス・モジュール・関数を渡せる。
    """
    for receiver in receivers:
        if inspect.isfunction(receiver):
            for feature, name in getattr(receiver, FLOW_MARKER, ()):
                yield feature, name, FlowTarget(receiver=None, method=receiver)
            continue
        if inspect.ismodule(receiver):
            for _, member in inspect.getmembers(receiver, inspect.isfunction):
                for feature, name in getattr(member, FLOW_MARKER, ()):
                    yield feature, name, FlowTarget(receiver=None, method=member)
            continue
        for attr in dir(type(receiver)):
            raw = inspect.getattr_static(type(receiver), attr, None)
            if isinstance(raw, (staticmethod, classmethod)):
                raw = raw.__func__
            marks = getattr(raw, FLOW_MARKER, ())
            for feature, name in marks:
                yield feature, name, FlowTarget.of(getattr(receiver, attr))


def _normalize_context_keys(
    context: Sequence[str] | Mapping[str, str] | None,
) -> tuple[tuple[str, str], ...]:
    if context is None:
        return ()
    if isinstance(context, str):
        return ((context, context),)
    if isinstance(context, Mapping):
        return tuple(context.items())
    return tuple((name, name) for name in context)


class FeatureEntryPoint:
    """@feature で装飾された関数。メソッドとして参照されるとレシーバーに束縛される。"""

    def __init__(
        self,
        fn: Callable[..., Any],
        dispatcher: FlowDispatcher,
        feature: str,
        context_keys: tuple[tuple[str, str], ...],
    ) -> None:
        self._fn = fn
        self._dispatcher = dispatcher
        self._feature = feature
        self._context_keys = context_keys
        self._signature = inspect.signature(fn)
        functools.update_wrapper(self, fn)

    @property
    def feature(self) -> str:
        return self._feature

    def build_context(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> FeatureContext:
        """呼び出し引数から context 対象のパラメーターを取り出す。"""
        if not self._context_keys:
            return FeatureContext.empty()
        bound = self._signature.bind_partial(*args, **kwargs)
        bound.apply_defaults()
        return build_context(
            (key, bound.arguments[param])
            for key, param in self._context_keys
            if param in bound.arguments
        )

    def _call(self, receiver: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        if receiver is None:
            context = self.build_context(args, kwargs)
            fallthrough = self._fn
        else:
            context = self.build_context((receiver, *args), kwargs)
            fallthrough = functools.partial(self._fn, receiver)
        return self._dispatcher.dispatch(self._feature, context, fallthrough, *args, **kwargs)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._call(None, args, kwargs)

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self

        def bound(*args: Any, **kwargs: Any) -> Any:
            return self._call(instance, args, kwargs)

        functools.update_wrapper(bound, self._fn)
        return bound


class FeatureInterceptor:
    """エントリポイントへの呼び出しを FlowDispatcher へ振り向ける。"""

    def __init__(self, dispatcher: FlowDispatcher) -> None:
        self._dispatcher = dispatcher

    def feature(
        self,
        key: str,
        context: Sequence[str] | Mapping[str, str] | None = None,
    ) -> Callable[[Callable[..., Any]], FeatureEntryPoint]:
        """関数・メソッドをフィーチャーのエントリポイントとして装飾する。

        Args:
            key: フィーチャーキー
            context: コンテキストに渡すパラメーター名の列、
                または {コンテキストキー: パラメーター名} の辞書
        """
        context_keys = _normalize_context_keys(context)

        def decorator(fn: Callable[..., Any]) -> FeatureEntryPoint:
            return FeatureEntryPoint(fn, self._dispatcher, key, context_keys)

        return decorator
