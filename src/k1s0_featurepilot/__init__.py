"""k1s0 featurepilot library."""

from .bootstrap import FeaturePilot, create_resolver
from .client import FeatureClient
from .config import (
    AuthSection,
    FeaturePilotConfig,
    LogSection,
    ServerSection,
    SourceSection,
)
from .constants import DEFAULT_FLOW, PROVIDER_LOCAL, PROVIDER_SERVER
from .context import FeatureContext, build_context
from .decorators import FeatureEntryPoint, FeatureInterceptor, flow, scan_flows
from .dispatcher import FlowDispatcher
from .exceptions import FeaturePilotError, FeaturePilotErrorCodes
from .http_client import HttpFlagFetcher
from .loader import load
from .logger import configure_logging, new_logger
from .registry import FlowRegistry, FlowTarget, HandlerSource
from .remote import FlagFetcher, RemoteFlowResolver
from .resolver import FlowResolver
from .static import StaticFlowResolver

__all__ = [
    "AuthSection",
    "DEFAULT_FLOW",
    "FeatureClient",
    "FeatureContext",
    "FeatureEntryPoint",
    "FeatureInterceptor",
    "FeaturePilot",
    "FeaturePilotConfig",
    "FeaturePilotError",
    "FeaturePilotErrorCodes",
    "FlagFetcher",
    "FlowDispatcher",
    "FlowRegistry",
    "FlowResolver",
    "FlowTarget",
    "HandlerSource",
    "HttpFlagFetcher",
    "LogSection",
    "PROVIDER_LOCAL",
    "PROVIDER_SERVER",
    "RemoteFlowResolver",
    "ServerSection",
    "SourceSection",
    "StaticFlowResolver",
    "build_context",
    "configure_logging",
    "create_resolver",
    "flow",
    "load",
    "new_logger",
    "scan_flows",
]
