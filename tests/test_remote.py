"""RemoteFlowResolver のユニットテスト"""

import threading
import time
from collections.abc import Callable, Mapping

import httpx
import pytest
from k1s0_featurepilot import (
    DEFAULT_FLOW,
    FeatureContext,
    FeaturePilotError,
    FeaturePilotErrorCodes,
    HttpFlagFetcher,
    RemoteFlowResolver,
    ServerSection,
)
from k1s0_featurepilot.constants import REMOTE_POLLER_THREAD
from structlog.testing import capture_logs

BASE_URL = "http://featurepilot-server:8080"


class FakeFetcher:
    """呼び出しごとに results を順に返す（例外なら送出する）フェッチャー。"""

    def __init__(self, *results: Mapping[str, str] | Exception) -> None:
        self._results = list(results)
        self.calls = 0
        self.closed = False

    def fetch(self) -> Mapping[str, str]:
        self.calls += 1
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, Exception):
            raise result
        return result

    def close(self) -> None:
        self.closed = True


def make_server(fallback: bool = False, refresh: int = 60_000) -> ServerSection:
    return ServerSection(url=BASE_URL, project="shop", refresh=refresh, fallback=fallback)


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def poll_error() -> FeaturePilotError:
    return FeaturePilotError(FeaturePilotErrorCodes.HTTP_ERROR, "boom")


def test_resolve_before_first_poll_returns_default() -> None:
    """初回ポーリング前はすべて default。"""
    resolver = RemoteFlowResolver(make_server(), fetcher=FakeFetcher({"f1": "v2"}), autostart=False)
    assert resolver.resolve("f1", FeatureContext()) == DEFAULT_FLOW


def test_successful_poll_replaces_cache() -> None:
    """ポーリング成功後は取得した値で解決し、未知のキーは default。"""
    resolver = RemoteFlowResolver(make_server(), fetcher=FakeFetcher({"f1": "v2"}), autostart=False)
    assert resolver.refresh() is True
    assert resolver.resolve("f1", FeatureContext()) == "v2"
    assert resolver.resolve("f2", FeatureContext()) == DEFAULT_FLOW


def test_poll_replaces_whole_generation() -> None:
    """前回にあって今回ないキーは消えること。"""
    fetcher = FakeFetcher({"f1": "v1", "f2": "v1"}, {"f2": "v2"})
    resolver = RemoteFlowResolver(make_server(), fetcher=fetcher, autostart=False)
    resolver.refresh()
    before = resolver.snapshot()
    resolver.refresh()
    assert dict(resolver.snapshot()) == {"f2": "v2"}
    assert dict(before) == {"f1": "v1", "f2": "v1"}
    assert resolver.resolve("f1", FeatureContext()) == DEFAULT_FLOW


def test_failure_without_fallback_keeps_cache() -> None:
    """fallback=False の失敗時は直前のキャッシュを保持すること。"""
    fetcher = FakeFetcher({"f1": "v2"}, poll_error())
    resolver = RemoteFlowResolver(make_server(fallback=False), fetcher=fetcher, autostart=False)
    resolver.refresh()
    with capture_logs() as logs:
        assert resolver.refresh() is False
    assert dict(resolver.snapshot()) == {"f1": "v2"}
    assert resolver.resolve("f1", FeatureContext()) == "v2"
    assert logs[0]["log_level"] == "warning"
    assert logs[0]["cache_cleared"] is False


def test_failure_with_fallback_clears_cache() -> None:
    """fallback=True の失敗時はキャッシュを空にすること。"""
    fetcher = FakeFetcher({"f1": "v2"}, poll_error())
    resolver = RemoteFlowResolver(make_server(fallback=True), fetcher=fetcher, autostart=False)
    resolver.refresh()
    assert resolver.refresh() is False
    assert dict(resolver.snapshot()) == {}
    assert resolver.resolve("f1", FeatureContext()) == DEFAULT_FLOW


def test_next_success_after_failure_recovers() -> None:
    """失敗の次のポーリングが成功すればキャッシュが戻ること。"""
    fetcher = FakeFetcher(poll_error(), {"f1": "v3"})
    resolver = RemoteFlowResolver(make_server(fallback=True), fetcher=fetcher, autostart=False)
    assert resolver.refresh() is False
    assert resolver.refresh() is True
    assert resolver.resolve("f1", FeatureContext()) == "v3"


def test_missing_project_is_poll_failure() -> None:
    """プロジェクト未設定はポーリング失敗として扱われること。"""
    server = ServerSection(url=BASE_URL, project=None, fallback=False)
    resolver = RemoteFlowResolver(server, autostart=False)
    assert resolver.refresh() is False
    assert resolver.resolve("f1", FeatureContext()) == DEFAULT_FLOW
    resolver.close()


def test_first_tick_fires_immediately() -> None:
    """開始直後に初回ポーリングが行われること（refresh 間隔を待たない）。"""
    fetcher = FakeFetcher({"f1": "v2"})
    resolver = RemoteFlowResolver(make_server(refresh=60_000), fetcher=fetcher)
    try:
        assert wait_for(lambda: resolver.resolve("f1", FeatureContext()) == "v2")
        assert fetcher.calls == 1
    finally:
        resolver.stop()


def test_poller_thread_is_daemon() -> None:
    """ポーリングスレッドはデーモンであること。"""
    resolver = RemoteFlowResolver(make_server(), fetcher=FakeFetcher({}))
    try:
        threads = [t for t in threading.enumerate() if t.name == REMOTE_POLLER_THREAD]
        assert threads
        assert all(t.daemon for t in threads)
        assert resolver.is_running
    finally:
        resolver.stop()
    assert not resolver.is_running


def test_start_twice_raises() -> None:
    """二重に開始すると RuntimeError。"""
    resolver = RemoteFlowResolver(make_server(), fetcher=FakeFetcher({}))
    try:
        with pytest.raises(RuntimeError):
            resolver.start()
    finally:
        resolver.stop()


def test_polls_never_overlap() -> None:
    """遅いポーリングでも同時に実行されないこと。"""
    lock = threading.Lock()
    state = {"active": 0, "max_active": 0, "calls": 0}

    class SlowFetcher:
        def fetch(self) -> Mapping[str, str]:
            with lock:
                state["active"] += 1
                state["calls"] += 1
                state["max_active"] = max(state["max_active"], state["active"])
            time.sleep(0.03)
            with lock:
                state["active"] -= 1
            return {"f1": "v1"}

        def close(self) -> None:
            pass

    resolver = RemoteFlowResolver(make_server(refresh=1), fetcher=SlowFetcher())
    try:
        manual = threading.Thread(target=resolver.refresh)
        manual.start()
        assert wait_for(lambda: state["calls"] >= 4)
        manual.join(timeout=5)
    finally:
        resolver.stop()
    assert state["max_active"] == 1


def test_resolve_never_performs_network_io() -> None:
    """resolve() はポーリングスレッド以外から通信しないこと。"""
    callers: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        callers.append(threading.current_thread().name)
        if threading.current_thread().name != REMOTE_POLLER_THREAD:
            raise AssertionError("network call outside the poller thread")
        return httpx.Response(200, json={"f1": "v2"})

    server = make_server(refresh=60_000)
    client = httpx.Client(transport=httpx.MockTransport(handler))
    resolver = RemoteFlowResolver(server, fetcher=HttpFlagFetcher(server, client=client))
    try:
        assert wait_for(lambda: resolver.resolve("f1", FeatureContext()) == "v2")
        for _ in range(100):
            resolver.resolve("f1", FeatureContext(user="u1"))
            resolver.resolve("unknown", FeatureContext())
    finally:
        resolver.stop()
        client.close()
    assert callers == [REMOTE_POLLER_THREAD]


def test_close_stops_and_closes_fetcher() -> None:
    """close() でスレッド停止とフェッチャーのクローズが行われること。"""
    fetcher = FakeFetcher({})
    with RemoteFlowResolver(make_server(), fetcher=fetcher) as resolver:
        assert resolver.is_running
    assert not resolver.is_running
    assert fetcher.closed


def test_restart_after_timed_out_stop_leaves_single_poller() -> None:
    """stop() の join がタイムアウトした直後に start() しても旧スレッドは終了すること。"""
    lock = threading.Lock()
    entered = threading.Event()
    callers: list[int] = []

    class SlowFetcher:
        def fetch(self) -> Mapping[str, str]:
            with lock:
                callers.append(threading.get_ident())
            entered.set()
            time.sleep(0.3)
            return {"f1": "v1"}

        def close(self) -> None:
            pass

    resolver = RemoteFlowResolver(make_server(refresh=20), fetcher=SlowFetcher())
    try:
        assert entered.wait(timeout=5)
        old_ident = callers[0]
        resolver.stop(timeout=0.01)
        resolver.start()
        time.sleep(1.0)
        with lock:
            mark = len(callers)
        time.sleep(1.0)
        with lock:
            recent = set(callers[mark:])
        assert len(recent) == 1
        assert old_ident not in recent
        assert not any(t.ident == old_ident and t.is_alive() for t in threading.enumerate())
    finally:
        resolver.stop(timeout=5)


def test_snapshot_is_always_a_whole_generation() -> None:
    """refresh() の繰り返し中も、読み取り側は常に単一世代のキャッシュを見ること。"""
    first = {"a": "1", "b": "1", "c": "1"}
    second = {"a": "2", "b": "2", "c": "2"}

    class AlternatingFetcher:
        def __init__(self) -> None:
            self.calls = 0

        def fetch(self) -> Mapping[str, str]:
            self.calls += 1
            return first if self.calls % 2 else second

        def close(self) -> None:
            pass

    resolver = RemoteFlowResolver(make_server(), fetcher=AlternatingFetcher(), autostart=False)
    done = threading.Event()

    def refresher() -> None:
        for _ in range(2000):
            resolver.refresh()
        done.set()

    writer = threading.Thread(target=refresher)
    writer.start()
    seen: list[dict[str, str]] = []
    try:
        while not done.is_set():
            snapshot = dict(resolver.snapshot())
            assert snapshot in ({}, first, second)
            seen.append(snapshot)
            assert resolver.resolve("a", FeatureContext()) in (DEFAULT_FLOW, "1", "2")
    finally:
        writer.join(timeout=10)
    assert seen
    assert dict(resolver.snapshot()) == second
