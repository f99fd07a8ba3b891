"""RemoteFlowResolver 実装（バックグラウンドスレッドでポーリング）"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Protocol

import structlog

from .config import ServerSection
from .constants import DEFAULT_FLOW, REMOTE_POLLER_THREAD
from .context import FeatureContext
from .http_client import HttpFlagFetcher

logger = structlog.get_logger(__name__)

_EMPTY: Mapping[str, str] = MappingProxyType({})


class FlagFetcher(Protocol):
    """リモートから feature -> flow の対応を取得するプロトコル。"""

    def fetch(self) -> Mapping[str, str]: ...

    def close(self) -> None: ...


class RemoteFlowResolver:
    """リモートサーバーのフラグをキャッシュして解決するリゾルバー。

    resolve() はキャッシュを参照するだけでネットワーク I/O を行わない。
    キャッシュは専用のデーモンスレッドが固定ディレイで更新し、
    成功時は新しい不変マッピングへ丸ごと差し替える。失敗時は
    fallback が有効ならキャッシュを空にし、無効なら直前の内容を保持する。

    Threading Model:
        - 呼び出し側スレッド: resolve() のみ（ロックなし）
        - ポーリングスレッド: refresh() を直列に実行
    """

    def __init__(
        self,
        server: ServerSection,
        fetcher: FlagFetcher | None = None,
        autostart: bool = True,
    ) -> None:
        self._server = server
        self._fetcher: FlagFetcher = fetcher if fetcher is not None else HttpFlagFetcher(server)
        self._interval = server.refresh / 1000.0
        self._cache: Mapping[str, str] = _EMPTY
        self._poll_lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        if autostart:
            self.start()

    def resolve(self, feature: str, context: FeatureContext) -> str:
        # context は将来のターゲティング用に受け取るのみ
        return self._cache.get(feature, DEFAULT_FLOW)

    def snapshot(self) -> Mapping[str, str]:
        """現在のキャッシュ世代（読み取り専用）を返す。"""
        return self._cache

    def start(self) -> None:
        """ポーリングスレッドを開始する。初回の取得は即時に行う。

        Raises:
            RuntimeError: 既に開始済みの場合
        """
        if self._thread is not None:
            raise RuntimeError("RemoteFlowResolver already running")
        # 停止が間に合わなかった旧スレッドと停止イベントを共有しない
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._poll_loop,
            args=(stop_event,),
            name=REMOTE_POLLER_THREAD,
            daemon=True,
        )
        self._thread.start()
        logger.info("Remote flag polling enabled", interval_ms=self._server.refresh)

    def stop(self, timeout: float = 5.0) -> None:
        """ポーリングスレッドを停止する。未開始でも安全に呼べる。"""
        thread = self._thread
        if thread is None or self._stop_event is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
        logger.info("Remote flag polling stopped")

    def close(self) -> None:
        self.stop()
        self._fetcher.close()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def refresh(self) -> bool:
        """1 回分のポーリングを実行し、成功したかどうかを返す。"""
        with self._poll_lock:
            try:
                flags = dict(self._fetcher.fetch())
            except Exception as e:
                self._on_failure(e)
                return False
            self._cache = MappingProxyType(flags)
            logger.debug("Remote flags updated", count=len(flags))
            return True

    def _on_failure(self, error: Exception) -> None:
        cleared = self._server.fallback
        if cleared:
            self._cache = _EMPTY
        logger.warning(
            "Remote flag polling failed, using fallback behavior",
            error=str(error),
            cache_cleared=cleared,
        )

    def _poll_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.refresh()
            if stop_event.wait(self._interval):
                break

    def __enter__(self) -> RemoteFlowResolver:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
