"""フィーチャー評価コンテキスト"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any


class FeatureContext(Mapping[str, Any]):
    """フロー解決に渡される不変のキー・バリューコンテキスト。

    値の検証や型変換は一切行わない。存在しないキーは None を返す。
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None, **values: Any) -> None:
        merged: dict[str, Any] = dict(data or {})
        merged.update(values)
        self._data: Mapping[str, Any] = MappingProxyType(merged)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, Any]]) -> FeatureContext:
        """(key, value) の列からコンテキストを構築する。

        同じキーが複数回現れた場合は後勝ち。
        """
        return cls(dict(pairs))

    @classmethod
    def empty(cls) -> FeatureContext:
        return _EMPTY

    def get(self, key: str, default: Any = None) -> Any:  # type: ignore[override]
        return self._data.get(key, default)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FeatureContext({dict(self._data)!r})"


_EMPTY = FeatureContext()


def build_context(pairs: Iterable[tuple[str, Any]] = ()) -> FeatureContext:
    """インターセプト層から渡された (key, value) の列でコンテキストを作る。"""
    return FeatureContext.from_pairs(pairs)
