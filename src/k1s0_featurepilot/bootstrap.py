"""FeaturePilot の組み立て

設定からリゾルバーを選択し、レジストリ・ディスパッチャー・クライアント・
インターセプターを明示的に結線する。グローバルなシングルトンは持たない。
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from .client import FeatureClient
from .config import FeaturePilotConfig
from .constants import PROVIDER_LOCAL, PROVIDER_SERVER
from .context import FeatureContext
from .decorators import FeatureEntryPoint, FeatureInterceptor, scan_flows
from .dispatcher import FlowDispatcher
from .exceptions import FeaturePilotError, FeaturePilotErrorCodes
from .loader import load
from .logger import configure_logging
from .registry import FlowRegistry, FlowTarget, HandlerSource
from .remote import FlagFetcher, RemoteFlowResolver
from .resolver import FlowResolver
from .static import StaticFlowResolver

logger = structlog.get_logger(__name__)


def create_resolver(
    config: FeaturePilotConfig,
    fetcher: FlagFetcher | None = None,
    autostart: bool = True,
) -> FlowResolver:
    """provider 設定に応じたリゾルバーを生成する。

    Raises:
        FeaturePilotError: provider が不明、または server 設定が欠けている場合
    """
    provider = config.source.provider.strip().lower()
    if provider == PROVIDER_LOCAL:
        return StaticFlowResolver.from_config(config)
    if provider == PROVIDER_SERVER:
        if config.source.server is None:
            raise FeaturePilotError(
                code=FeaturePilotErrorCodes.CONFIG_ERROR,
                message="provider 'server' requires a source.server section",
            )
        return RemoteFlowResolver(config.source.server, fetcher=fetcher, autostart=autostart)
    raise FeaturePilotError(
        code=FeaturePilotErrorCodes.UNKNOWN_PROVIDER,
        message=f"Unknown provider: {config.source.provider}",
    )


class FeaturePilot:
    """レジストリ・リゾルバー・ディスパッチャーをまとめたファサード。

    起動時に register()/scan() でハンドラーを登録し、freeze() で確定する。
    close() でリモートのポーリングスレッドを停止する。
    """

    def __init__(self, resolver: FlowResolver, registry: FlowRegistry | None = None) -> None:
        self.registry = registry if registry is not None else FlowRegistry()
        self.resolver = resolver
        self.dispatcher = FlowDispatcher(self.registry, resolver)
        self.client = FeatureClient(resolver)
        self.interceptor = FeatureInterceptor(self.dispatcher)

    @classmethod
    def from_config(
        cls,
        config: FeaturePilotConfig,
        handlers: HandlerSource | None = None,
        fetcher: FlagFetcher | None = None,
        autostart: bool = True,
        setup_logging: bool = False,
    ) -> FeaturePilot:
        """設定から FeaturePilot を組み立てる。

        setup_logging=True の場合は config.log に従って structlog を構成する。
        """
        if setup_logging:
            configure_logging(config.log)
        pilot = cls(create_resolver(config, fetcher=fetcher, autostart=autostart))
        if handlers is not None:
            pilot.registry.register_source(handlers)
            pilot.freeze()
        logger.info(
            "FeaturePilot initialized",
            provider=config.source.provider,
            flows=len(pilot.registry),
        )
        return pilot

    @classmethod
    def from_file(
        cls,
        base_path: Path,
        env_path: Path | None = None,
        handlers: HandlerSource | None = None,
        fetcher: FlagFetcher | None = None,
        autostart: bool = True,
        setup_logging: bool = False,
    ) -> FeaturePilot:
        config = load(base_path, env_path)
        return cls.from_config(
            config,
            handlers=handlers,
            fetcher=fetcher,
            autostart=autostart,
            setup_logging=setup_logging,
        )

    def register(self, feature: str, flow: str, handler: Callable[..., Any] | FlowTarget) -> None:
        target = handler if isinstance(handler, FlowTarget) else FlowTarget.of(handler)
        self.registry.register(feature, flow, target)

    def scan(self, *receivers: Any) -> int:
        """@flow が付いたハンドラーを探して登録し、登録件数を返す。"""
        return self.registry.register_source(scan_flows(*receivers))

    def freeze(self) -> None:
        self.registry.freeze()

    def feature(
        self,
        key: str,
        context: Sequence[str] | Mapping[str, str] | None = None,
    ) -> Callable[[Callable[..., Any]], FeatureEntryPoint]:
        return self.interceptor.feature(key, context=context)

    def dispatch(
        self,
        feature: str,
        context: FeatureContext | None,
        fallthrough: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        return self.dispatcher.dispatch(feature, context, fallthrough, *args, **kwargs)

    def close(self) -> None:
        if isinstance(self.resolver, RemoteFlowResolver):
            self.resolver.close()

    def __enter__(self) -> FeaturePilot:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
